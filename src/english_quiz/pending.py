"""Local queue for quiz submissions that could not be saved to the database."""
import json
import logging
from datetime import datetime
from pathlib import Path

from english_quiz.exceptions import NotFoundError, PersistenceError, ValidationError
from english_quiz.stats import update_stats

logger = logging.getLogger(__name__)


def load_pending(pending_path: str) -> list[dict]:
    path = Path(pending_path)
    if not path.exists():
        return []
    try:
        entries = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PersistenceError(f"Pending results file {path} is unreadable: {e}", e) from e
    if not isinstance(entries, list):
        raise PersistenceError(f"Pending results file {path} is not a list of submissions")
    return entries


def _write_pending(pending_path: str, entries: list[dict]) -> None:
    path = Path(pending_path)
    if not entries:
        path.unlink(missing_ok=True)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(entries, indent=2), encoding="utf-8")


def queue_submission(pending_path: str, user_id: int, results: list, time_spent: dict) -> int:
    """Append a submission; returns how many are now waiting."""
    entries = load_pending(pending_path)
    entries.append({
        "userId": user_id,
        "results": results,
        "timeSpent": time_spent,
        "queuedAt": datetime.now().isoformat(),
    })
    _write_pending(pending_path, entries)
    logger.warning("Queued %d results for user %s until the database is reachable", len(results), user_id)
    return len(entries)


def sync_pending(db_path: str, pending_path: str, user_id: int) -> int:
    """Replay this user's queued submissions in order; returns how many were saved.

    Stops at the first persistence failure so later submissions keep their order.
    Submissions the database rejects outright are logged and dropped. The queue
    file is rewritten after every saved submission, so nothing is replayed twice.
    """
    entries = load_pending(pending_path)
    synced = 0
    index = 0
    while index < len(entries):
        entry = entries[index]
        if entry.get("userId") != user_id:
            index += 1
            continue
        try:
            update_stats(db_path, user_id, entry.get("results") or [], entry.get("timeSpent") or {})
        except PersistenceError:
            break
        except (ValidationError, NotFoundError) as e:
            logger.error("Dropped queued submission from %s for user %s: %s",
                         entry.get("queuedAt"), user_id, e.message)
        else:
            synced += 1
        del entries[index]
        _write_pending(pending_path, entries)
    if synced:
        logger.info("Synced %d queued submissions for user %s", synced, user_id)
    return synced
