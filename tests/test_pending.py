from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import make_result
from english_quiz.exceptions import PersistenceError
from english_quiz.pending import load_pending, queue_submission, sync_pending
from english_quiz.stats import get_stats, update_stats


def test_queue_and_load(tmp_path):
    pending = str(tmp_path / "pending.json")
    assert load_pending(pending) == []
    assert queue_submission(pending, 1, [make_result("q1")], {"reading-1-q1": 4}) == 1
    assert queue_submission(pending, 2, [make_result("q2")], {}) == 2
    entries = load_pending(pending)
    assert [e["userId"] for e in entries] == [1, 2]
    assert entries[0]["timeSpent"] == {"reading-1-q1": 4}


def test_sync_replays_only_that_user(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    queue_submission(pending, user.id, [make_result("q1")], {})
    queue_submission(pending, user.id + 50, [make_result("q9")], {})
    queue_submission(pending, user.id, [make_result("q2", is_correct=False)], {})
    assert sync_pending(tmp_db, pending, user.id) == 2
    stats = get_stats(tmp_db, user.id)
    assert stats["totalQuestions"] == 2
    assert [h["questionId"] for h in stats["answerHistory"]] == ["q1", "q2"]
    assert [e["userId"] for e in load_pending(pending)] == [user.id + 50]


def test_sync_removes_empty_queue_file(tmp_db, user, tmp_path):
    pending = tmp_path / "pending.json"
    queue_submission(str(pending), user.id, [make_result("q1")], {})
    sync_pending(tmp_db, str(pending), user.id)
    assert not pending.exists()


def test_sync_stops_at_first_failure(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    queue_submission(pending, user.id, [make_result("q1")], {})
    queue_submission(pending, user.id, [make_result("q2")], {})
    with patch("english_quiz.pending.update_stats", side_effect=PersistenceError("locked")):
        assert sync_pending(tmp_db, pending, user.id) == 0
    assert len(load_pending(pending)) == 2
    assert Path(pending).exists()
    assert get_stats(tmp_db, user.id)["totalQuestions"] == 0


def test_sync_drops_rejected_submission_without_replaying(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    queue_submission(pending, user.id, [make_result("q1")], {})
    queue_submission(pending, user.id, [{"id": "bad"}], {})
    assert sync_pending(tmp_db, pending, user.id) == 1
    assert sync_pending(tmp_db, pending, user.id) == 0
    assert get_stats(tmp_db, user.id)["totalQuestions"] == 1
    assert load_pending(pending) == []


def test_sync_drops_submission_for_missing_user(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    queue_submission(pending, user.id + 7, [make_result("q1")], {})
    assert sync_pending(tmp_db, pending, user.id + 7) == 0
    assert load_pending(pending) == []


def test_saved_entries_leave_queue_before_a_later_failure(tmp_db, user, tmp_path):
    pending = str(tmp_path / "pending.json")
    queue_submission(pending, user.id, [make_result("q1")], {})
    queue_submission(pending, user.id, [make_result("q2")], {})
    real_update = update_stats
    calls = []

    def flaky_update(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise PersistenceError("locked")
        return real_update(*args, **kwargs)

    with patch("english_quiz.pending.update_stats", side_effect=flaky_update):
        assert sync_pending(tmp_db, pending, user.id) == 1
    assert [e["results"][0]["id"] for e in load_pending(pending)] == ["q2"]
    assert sync_pending(tmp_db, pending, user.id) == 1
    assert get_stats(tmp_db, user.id)["totalQuestions"] == 2


def test_corrupt_queue_file(tmp_path):
    pending = tmp_path / "pending.json"
    pending.write_text("{not json")
    with pytest.raises(PersistenceError):
        load_pending(str(pending))
    pending.write_text('{"userId": 1}')
    with pytest.raises(PersistenceError):
        load_pending(str(pending))
