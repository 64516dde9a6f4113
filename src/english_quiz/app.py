"""Interactive CLI application."""
import logging
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from english_quiz.config import get_settings
from english_quiz.dashboard import CATEGORY_NAMES, get_dashboard, get_score_color
from english_quiz.db import init_db
from english_quiz.exceptions import NotFoundError, PersistenceError, QuizError
from english_quiz.exercises import list_exercises
from english_quiz.importer import import_exercises, import_user_stats
from english_quiz.log import configure_logging
from english_quiz.models import CATEGORIES
from english_quiz.pending import queue_submission, sync_pending
from english_quiz.quiz import (
    build_result, check_answer, correct_answer_text, get_practice_items, get_quiz_items,
)
from english_quiz.review import get_history, get_weak_points
from english_quiz.seed import is_seeded, seed_all
from english_quiz.stats import update_stats
from english_quiz.users import (
    get_current_user_id, get_user, login_user, register_user, set_current_user,
)

console = Console()
logger = logging.getLogger(__name__)

OPTION_LETTERS = "ABCDEFGH"


def show_welcome():
    console.print(Panel(
        "[bold]English Quiz[/bold]\n[dim]Reading, listening and cloze practice[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("register", "Create an account"),
        ("login", "Sign in"),
        ("quiz", "Take a quiz by category"),
        ("practice", "Re-practice your priority questions"),
        ("dashboard", "Success rate + category breakdown"),
        ("history", "Recent answers"),
        ("weak", "Weak point analysis"),
        ("exercises", "List available exercises"),
        ("import", "Import exercises or exported stats"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def require_user(db_path: str) -> int | None:
    user_id = get_current_user_id(db_path)
    if user_id is None:
        console.print("[yellow]Please 'login' or 'register' first.[/yellow]")
    return user_id


def ask_answer(item: dict):
    """Prompt for one answer; fill-blank questions return one string per blank."""
    if item["type"] == "fill-blank":
        return [
            Prompt.ask(f"  Blank {n}") for n in range(1, len(item["blanks"]) + 1)
        ]
    if item["type"] == "true-false":
        return Prompt.ask("\nTrue or False", choices=["True", "False"])
    letters = list(OPTION_LETTERS[:len(item["options"])])
    for letter, option in zip(letters, item["options"]):
        console.print(f"  [cyan]{letter})[/cyan] {option}")
    return Prompt.ask("\nYour answer", choices=letters)


def sync_saved_results(db_path: str, pending_path: str, user_id: int) -> int:
    try:
        synced = sync_pending(db_path, pending_path, user_id)
    except PersistenceError as e:
        console.print(f"[yellow]Saved quiz results could not be synced: {e.message}[/yellow]")
        return 0
    if synced:
        console.print(f"[green]Synced {synced} saved quiz result(s).[/green]")
    return synced


def submit_results(db_path: str, pending_path: str, user_id: int, results: list, time_spent: dict) -> bool:
    """Save a finished quiz; keeps it locally when the database write fails."""
    # older queued quizzes go first
    sync_saved_results(db_path, pending_path, user_id)
    try:
        update_stats(db_path, user_id, results, time_spent)
    except PersistenceError as e:
        waiting = queue_submission(pending_path, user_id, results, time_spent)
        console.print(f"[yellow]Could not save results ({e.message}). "
                      f"Kept locally; {waiting} submission(s) waiting to sync.[/yellow]")
        return False
    return True


def run_quiz_session(db_path: str, pending_path: str, user_id: int, items: list) -> tuple[int, int]:
    if not items:
        console.print("[yellow]No questions available![/yellow]")
        return 0, 0
    correct = 0
    results = []
    time_spent = {}
    shown_context = set()
    console.print(f"\n[bold]Quiz[/bold] - {len(items)} questions\n")
    for i, item in enumerate(items, 1):
        if item.get("context") and item["exerciseId"] not in shown_context:
            console.print(Panel(item["context"], title=item.get("title", ""), border_style="cyan"))
            shown_context.add(item["exerciseId"])
        console.print(f"[bold]Q{i}.[/bold] {item['question']}\n")
        started = time.monotonic()
        answer = ask_answer(item)
        time_spent[f"{item['exerciseId']}-{item['id']}"] = round(time.monotonic() - started, 1)
        is_correct = check_answer(item, answer)
        if is_correct:
            console.print("[green]Correct![/green]")
            correct += 1
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{correct_answer_text(item)}[/green]")
        results.append(build_result(item, answer, is_correct))
        console.print()
    console.print(f"[bold]Score: {correct}/{len(items)} ({correct/len(items)*100:.0f}%)[/bold]\n")
    submit_results(db_path, pending_path, user_id, results, time_spent)
    return correct, len(items)


def cmd_register(db_path: str):
    username = Prompt.ask("Username")
    email = Prompt.ask("Email")
    password = Prompt.ask("Password", password=True)
    user = register_user(db_path, username, email, password)
    set_current_user(db_path, user.id)
    console.print(f"[green]Welcome, {user.username}! You are signed in.[/green]")


def cmd_login(db_path: str, pending_path: str):
    username = Prompt.ask("Username or email")
    password = Prompt.ask("Password", password=True)
    user = login_user(db_path, username, password)
    set_current_user(db_path, user.id)
    console.print(f"[green]Signed in as {user.username}.[/green]")
    sync_saved_results(db_path, pending_path, user.id)


def cmd_quiz(db_path: str, pending_path: str):
    user_id = require_user(db_path)
    if user_id is None:
        return
    category = Prompt.ask("Category", choices=list(CATEGORIES), default="reading")
    count = IntPrompt.ask("Number of questions", default=10)
    run_quiz_session(db_path, pending_path, user_id, get_quiz_items(db_path, category, count))


def cmd_practice(db_path: str, pending_path: str):
    user_id = require_user(db_path)
    if user_id is None:
        return
    category = Prompt.ask("Category", choices=["all", *CATEGORIES], default="all")
    count = IntPrompt.ask("Number of questions", default=10)
    items = get_practice_items(db_path, user_id, None if category == "all" else category, count)
    if not items:
        console.print("[yellow]Nothing to practice yet. Take a quiz first![/yellow]")
        return
    run_quiz_session(db_path, pending_path, user_id, items)


def cmd_dashboard(db_path: str):
    user_id = require_user(db_path)
    if user_id is None:
        return
    data = get_dashboard(db_path, user_id)
    perf = data["performance"]
    color = data["color"]

    bar_filled = int(data["score"] / 5)
    bar = f"[{color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{color}]"
    console.print(Panel(
        f"Overall: [bold]{data['score']}%[/bold] {bar} [{color}]{data['label']}[/{color}]\n"
        f"Answered: [bold]{perf['totalQuestions']}[/bold]  |  Correct: [bold]{perf['correctAnswers']}[/bold]  |  "
        f"Weak points: [bold]{perf['weakPoints']}[/bold]  |  Needs review: [bold]{perf['needsReview']}[/bold]",
        title="Performance Dashboard", border_style="blue",
    ))

    table = Table(title="Category Breakdown")
    table.add_column("Category", style="cyan")
    table.add_column("Answered", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    for cat in data["categories"]:
        sc_color = get_score_color(cat["score"])
        table.add_row(cat["name"], str(cat["total"]), f"{cat['score']}%", f"[{sc_color}]{cat['label']}[/{sc_color}]")
    console.print(table)

    if perf["priorityQuestions"]:
        console.print("\n[bold]Practice next:[/bold]")
        for q in perf["priorityQuestions"]:
            console.print(f"  [red]{q['successRate']:.0f}%[/red] - {q['questionText']} "
                          f"[dim]({CATEGORY_NAMES.get(q['category'], q['category'])})[/dim]")


def cmd_history(db_path: str):
    user_id = require_user(db_path)
    if user_id is None:
        return
    page = IntPrompt.ask("Page", default=1)
    data = get_history(db_path, user_id, limit=20, page=page)
    table = Table(title=f"Answer History (page {data['currentPage']} of {max(data['totalPages'], 1)})")
    table.add_column("When")
    table.add_column("Category")
    table.add_column("Question")
    table.add_column("Your answer")
    table.add_column("Result")
    for h in data["history"]:
        table.add_row(
            (h["timestamp"] or "")[:16].replace("T", " "),
            h["category"],
            h["questionText"],
            h["selectedAnswer"],
            "[green]✓[/green]" if h["isCorrect"] else f"[red]✗[/red] {h['correctAnswer']}",
        )
    console.print(table)


def cmd_weak(db_path: str):
    user_id = require_user(db_path)
    if user_id is None:
        return
    data = get_weak_points(db_path, user_id)
    if not data["weakPoints"]:
        console.print("[green]No weak points detected! Keep up the good work.[/green]")
        return
    table = Table(title="Weak Points by Question Type")
    table.add_column("Type")
    table.add_column("Questions", justify="right")
    table.add_column("Avg Success", justify="right")
    for qtype, entry in data["analysisByType"].items():
        table.add_row(qtype, str(entry["count"]), f"{entry['avgSuccessRate']:.0f}%")
    console.print(table)
    console.print("\n[bold]Weakest questions:[/bold]")
    for q in data["weakPoints"][:5]:
        console.print(f"  [red]{q['successRate']:.0f}%[/red] over {q['totalAttempts']} attempts - {q['questionText']}")


def cmd_exercises(db_path: str):
    grouped = list_exercises(db_path)
    table = Table(title="Exercises")
    table.add_column("ID", style="cyan")
    table.add_column("Category")
    table.add_column("Title / Question")
    table.add_column("Questions", justify="right")
    for category, exercises in grouped.items():
        for ex in exercises:
            label = getattr(ex, "title", None) or getattr(ex, "question", "")
            table.add_row(ex.id, CATEGORY_NAMES[category], label, str(len(ex.questions) if hasattr(ex, "questions") else 1))
    console.print(table)


def cmd_import(db_path: str):
    kind = Prompt.ask("Import", choices=["exercises", "stats"], default="exercises")
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    if kind == "stats":
        user_id = require_user(db_path)
        if user_id is None:
            return
        stats = import_user_stats(db_path, user_id, file_path)
        console.print(f"[green]Imported stats: {stats.total_questions} answers, "
                      f"{len(stats.question_performance)} questions tracked.[/green]")
        return
    result = import_exercises(db_path, file_path)
    counts = ", ".join(f"{n} {c}" for c, n in result["imported"].items())
    console.print(f"[green]Imported {result['filename']}: {counts}[/green]"
                  + (f" [yellow]({result['skipped']} skipped)[/yellow]" if result["skipped"] else ""))


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    db_path = settings.db_path
    pending_path = settings.pending_path
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()
    user_id = get_current_user_id(db_path)
    if user_id is not None:
        try:
            console.print(f"[dim]Signed in as {get_user(db_path, user_id).username}[/dim]")
        except NotFoundError:
            set_current_user(db_path, None)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz").strip().lower()
        try:
            if choice == "register":
                cmd_register(db_path)
            elif choice == "login":
                cmd_login(db_path, pending_path)
            elif choice == "quiz":
                cmd_quiz(db_path, pending_path)
            elif choice == "practice":
                cmd_practice(db_path, pending_path)
            elif choice == "dashboard":
                cmd_dashboard(db_path)
            elif choice == "history":
                cmd_history(db_path)
            elif choice == "weak":
                cmd_weak(db_path)
            elif choice == "exercises":
                cmd_exercises(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Keep practicing![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except QuizError as e:
            logger.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e.message}[/red]")


if __name__ == "__main__":
    main()
