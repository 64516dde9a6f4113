"""Tests for recording results and reading back user statistics."""
import sqlite3
import threading
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from conftest import make_result
from english_quiz import stats as stats_module
from english_quiz.exceptions import NotFoundError, PersistenceError, ValidationError
from english_quiz.models import UserStats
from english_quiz.schemas import parse_submission
from english_quiz.stats import (
    HISTORY_LIMIT, apply_results, get_performance, get_priority, get_stats,
    read_stats, replace_stats, update_stats,
)
from english_quiz.users import register_user

NOW = datetime(2024, 6, 1, 12, 0, 0)


def test_first_batch_scenario(tmp_db, user):
    results = [
        make_result("q1", "ex1", "reading", True),
        make_result("q2", "ex1", "reading", False),
    ]
    data = update_stats(tmp_db, user.id, results, now=NOW)
    assert data["totalQuestions"] == 2
    assert data["correctAnswers"] == 1
    assert data["categoryStats"]["reading"] == {"total": 2, "correct": 1}
    assert [w["questionId"] for w in data["wrongAnswers"]] == ["q2"]
    assert len(data["frequentlyWrong"]) == 1
    assert data["frequentlyWrong"][0]["questionId"] == "q2"
    assert data["frequentlyWrong"][0]["count"] == 1
    assert len(data["answerHistory"]) == 2
    assert len(data["questionPerformance"]) == 2


def test_update_is_persisted(tmp_db, user):
    update_stats(tmp_db, user.id, [make_result("q1", is_correct=False)], now=NOW)
    stored = read_stats(tmp_db, user.id)
    assert stored.total_questions == 1
    assert stored.wrong_answers[0].question_id == "q1"
    assert stored.question_performance[0].last_attempt_at == NOW
    assert stored.answer_history[0].timestamp == NOW


def test_repeated_wrong_answer_across_batches(tmp_db, user):
    update_stats(tmp_db, user.id, [make_result("q1", is_correct=False)], now=NOW)
    data = update_stats(
        tmp_db, user.id, [make_result("q1", is_correct=False)], now=NOW + timedelta(minutes=5),
    )
    assert len(data["frequentlyWrong"]) == 1
    assert data["frequentlyWrong"][0]["count"] == 2
    assert data["frequentlyWrong"][0]["lastWrongAt"] == (NOW + timedelta(minutes=5)).isoformat()
    assert len(data["wrongAnswers"]) == 2
    perf = data["questionPerformance"][0]
    assert perf["totalAttempts"] == 2
    assert perf["isWeakPoint"] is True


def test_frequently_wrong_sorted_by_count(tmp_db, user):
    update_stats(tmp_db, user.id, [make_result("B", is_correct=False)], now=NOW)
    data = update_stats(tmp_db, user.id, [
        make_result("A", is_correct=False),
        make_result("A", is_correct=False),
        make_result("A", is_correct=False),
    ], now=NOW)
    assert [w["questionId"] for w in data["frequentlyWrong"]] == ["A", "B"]
    assert [w["count"] for w in data["frequentlyWrong"]] == [3, 1]


def test_frequently_wrong_ties_keep_order():
    stats = UserStats()
    submission = parse_submission({"results": [
        make_result("first", is_correct=False),
        make_result("second", is_correct=False),
    ]})
    apply_results(stats, submission.results, now=NOW)
    assert [w.question_id for w in stats.frequently_wrong] == ["first", "second"]


def test_history_capped_fifo():
    stats = UserStats()
    results = parse_submission({"results": [
        make_result(f"q{i}") for i in range(HISTORY_LIMIT + 5)
    ]}).results
    apply_results(stats, results, now=NOW)
    assert len(stats.answer_history) == HISTORY_LIMIT
    assert stats.answer_history[0].question_id == "q5"
    assert stats.answer_history[-1].question_id == f"q{HISTORY_LIMIT + 4}"
    assert stats.total_questions == HISTORY_LIMIT + 5


def test_time_spent_lookup_by_exercise_and_question(tmp_db, user):
    data = update_stats(
        tmp_db, user.id,
        [make_result("q1", "reading-1"), make_result("q2", "reading-1")],
        time_spent={"reading-1-q1": 12.5},
        now=NOW,
    )
    history = data["answerHistory"]
    assert history[0]["timeSpentSeconds"] == 12.5
    assert history[1]["timeSpentSeconds"] == 0
    assert data["questionPerformance"][0]["averageTimeSpentSeconds"] == 12.5


def test_empty_batch_changes_nothing(tmp_db, user):
    before = get_stats(tmp_db, user.id)
    after = update_stats(tmp_db, user.id, [])
    assert after == before


def test_unknown_user(tmp_db, user):
    with pytest.raises(NotFoundError):
        update_stats(tmp_db, user.id + 99, [make_result()])
    with pytest.raises(NotFoundError):
        get_stats(tmp_db, user.id + 99)


def test_invalid_batch_stores_nothing(tmp_db, user):
    results = [make_result("q1"), {"id": "q2", "category": "reading"}]
    with pytest.raises(ValidationError) as exc_info:
        update_stats(tmp_db, user.id, results)
    assert exc_info.value.errors
    assert read_stats(tmp_db, user.id).total_questions == 0


def test_unknown_category_rejected(tmp_db, user):
    with pytest.raises(ValidationError):
        update_stats(tmp_db, user.id, [make_result(category="grammar")])


def test_negative_time_rejected(tmp_db, user):
    with pytest.raises(ValidationError):
        update_stats(tmp_db, user.id, [make_result("q1")], time_spent={"reading-1-q1": -3})


def test_failed_write_keeps_previous_stats(tmp_db, user):
    update_stats(tmp_db, user.id, [make_result("q1")], now=NOW)
    real_save = stats_module.save_stats

    def failing_save(conn, user_id, stats):
        real_save(conn, user_id, stats)
        raise sqlite3.OperationalError("disk I/O error")

    with patch("english_quiz.stats.save_stats", side_effect=failing_save):
        with pytest.raises(PersistenceError):
            update_stats(tmp_db, user.id, [make_result("q2", is_correct=False)], now=NOW)

    stored = read_stats(tmp_db, user.id)
    assert stored.total_questions == 1
    assert stored.wrong_answers == []
    assert [p.question_id for p in stored.question_performance] == ["q1"]


def test_results_accept_numeric_ids_and_list_answers(tmp_db, user):
    data = update_stats(tmp_db, user.id, [
        make_result(3, "reading-1", type="fill-blank", userAnswer=["seven", "nine"],
                    correctAnswer=["seven", "eight"], isCorrect=False),
    ], now=NOW)
    attempt = data["answerHistory"][0]
    assert attempt["questionId"] == "3"
    assert attempt["selectedAnswer"] == "seven, nine"
    assert attempt["correctAnswer"] == "seven, eight"


def test_replace_stats(tmp_db, user):
    replace_stats(tmp_db, user.id, UserStats(total_questions=7, correct_answers=5))
    assert get_stats(tmp_db, user.id)["totalQuestions"] == 7
    with pytest.raises(NotFoundError):
        replace_stats(tmp_db, user.id + 1, UserStats())


def test_get_priority(tmp_db, user):
    update_stats(tmp_db, user.id, [
        make_result("r1", "reading-1", "reading", False),
        make_result("r1", "reading-1", "reading", False),
        make_result("l1", "listening-1", "listening", False),
        make_result("ok", "reading-1", "reading", True),
    ], now=NOW)
    data = get_priority(tmp_db, user.id)
    assert [q["questionId"] for q in data["priorityQuestions"]] == ["r1", "l1", "ok"]
    assert data["totalWeakPoints"] == 1
    assert data["totalNeedsReview"] == 2

    listening = get_priority(tmp_db, user.id, category="listening", limit=5)
    assert [q["questionId"] for q in listening["priorityQuestions"]] == ["l1"]
    assert listening["totalWeakPoints"] == 1


def test_reads_are_idempotent(tmp_db, user):
    update_stats(tmp_db, user.id, [make_result("q1", is_correct=False), make_result("q2")], now=NOW)
    assert get_priority(tmp_db, user.id) == get_priority(tmp_db, user.id)
    assert get_performance(tmp_db, user.id) == get_performance(tmp_db, user.id)
    assert get_stats(tmp_db, user.id) == get_stats(tmp_db, user.id)


def test_users_do_not_share_stats(tmp_db, user):
    other = register_user(tmp_db, "bob", "bob@example.com", "secret123")
    update_stats(tmp_db, user.id, [make_result("q1")], now=NOW)
    assert get_stats(tmp_db, other.id)["totalQuestions"] == 0


def test_concurrent_submissions_for_one_user_are_all_kept(tmp_db, user):
    errors = []

    def submit(worker):
        for n in range(10):
            try:
                update_stats(tmp_db, user.id, [make_result(f"w{worker}-{n}")])
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=submit, args=(w,)) for w in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    stats = get_stats(tmp_db, user.id)
    assert stats["totalQuestions"] == 40
    assert stats["categoryStats"]["reading"]["total"] == 40
    assert len(stats["questionPerformance"]) == 40
