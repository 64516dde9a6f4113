from unittest.mock import patch

from conftest import make_result

from english_quiz.app import (
    ask_answer, cmd_quiz, main, require_user, run_quiz_session, submit_results,
)
from english_quiz.config import Settings
from english_quiz.exceptions import PersistenceError
from english_quiz.pending import load_pending, queue_submission
from english_quiz.quiz import get_quiz_items
from english_quiz.seed import seed_all
from english_quiz.stats import get_stats
from english_quiz.users import get_current_user_id, set_current_user


def _cloze_items(db_path):
    items = get_quiz_items(db_path, "clozetext", count=50)
    return sorted(items, key=lambda i: i["id"])


def test_ask_answer_fill_blank_prompts_each_blank():
    item = {"type": "fill-blank", "blanks": ["seven", "eight"], "options": []}
    with patch("english_quiz.app.Prompt.ask", side_effect=["seven", "nine"]) as ask:
        assert ask_answer(item) == ["seven", "nine"]
    assert ask.call_count == 2


def test_ask_answer_multiple_choice_offers_letters():
    item = {"type": "multiple-choice", "options": ["a", "b", "c", "d"], "blanks": []}
    with patch("english_quiz.app.Prompt.ask", return_value="C") as ask:
        assert ask_answer(item) == "C"
    assert ask.call_args.kwargs["choices"] == ["A", "B", "C", "D"]


def test_run_quiz_session_records_results(tmp_db, user, tmp_path):
    seed_all(tmp_db)
    items = _cloze_items(tmp_db)
    # seeded answers are B, B, A, C
    with patch("english_quiz.app.Prompt.ask", side_effect=["B", "A", "A", "D"]):
        correct, total = run_quiz_session(tmp_db, str(tmp_path / "pending.json"), user.id, items)
    assert (correct, total) == (2, 4)
    stats = get_stats(tmp_db, user.id)
    assert stats["totalQuestions"] == 4
    assert stats["categoryStats"]["clozetext"] == {"total": 4, "correct": 2}
    assert {w["questionId"] for w in stats["wrongAnswers"]} == {"clozetext-2", "clozetext-4"}


def test_run_quiz_session_without_items(tmp_db, user, tmp_path):
    assert run_quiz_session(tmp_db, str(tmp_path / "pending.json"), user.id, []) == (0, 0)


def test_submit_results_queues_on_database_failure(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    with patch("english_quiz.app.update_stats", side_effect=PersistenceError("locked")):
        assert submit_results(tmp_db, pending, user.id, [{"id": "q1"}], {}) is False
    entries = load_pending(pending)
    assert entries[0]["userId"] == user.id
    assert entries[0]["results"] == [{"id": "q1"}]


def test_require_user(tmp_db, user):
    assert require_user(tmp_db) is None
    set_current_user(tmp_db, user.id)
    assert require_user(tmp_db) == user.id


def test_cmd_quiz_needs_login(tmp_db, user, tmp_path):
    with patch("english_quiz.app.Prompt.ask") as ask:
        cmd_quiz(tmp_db, str(tmp_path / "pending.json"))
    ask.assert_not_called()


def test_main_register_then_quit(tmp_db, tmp_path):
    settings = Settings(
        db_path=tmp_db, log_level="WARNING", db_timeout=5.0,
        pending_path=str(tmp_path / "pending.json"),
    )
    answers = ["register", "dave", "dave@example.com", "secret123", "dashboard", "bogus", "quit"]
    with patch("english_quiz.app.get_settings", return_value=settings), \
         patch("english_quiz.app.Prompt.ask", side_effect=answers):
        main()
    assert get_current_user_id(tmp_db) is not None


def test_main_reports_errors_and_continues(tmp_db, tmp_path):
    settings = Settings(
        db_path=tmp_db, log_level="WARNING", db_timeout=5.0,
        pending_path=str(tmp_path / "pending.json"),
    )
    answers = ["login", "ghost", "secret123", "quit"]
    with patch("english_quiz.app.get_settings", return_value=settings), \
         patch("english_quiz.app.Prompt.ask", side_effect=answers) as ask:
        main()
    assert ask.call_count == 4
    assert get_current_user_id(tmp_db) is None


def test_submit_results_replays_queue_first(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    queue_submission(pending, user.id, [make_result("old")], {})
    assert submit_results(tmp_db, pending, user.id, [make_result("new")], {}) is True
    history = get_stats(tmp_db, user.id)["answerHistory"]
    assert [h["questionId"] for h in history] == ["old", "new"]
    assert load_pending(pending) == []


def test_submit_results_survives_corrupt_queue_file(tmp_db, user, tmp_path):
    pending = tmp_path / "pending.json"
    pending.write_text("{not json")
    assert submit_results(tmp_db, str(pending), user.id, [make_result("q1")], {}) is True
    assert get_stats(tmp_db, user.id)["totalQuestions"] == 1
