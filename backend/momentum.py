"""Momentum scoring for queued tasks.

A queued task's momentum is how much it overlaps, by keyword, with the work
that was finished most recently. The score is the Jaccard similarity between
the task's keywords and the merged keywords of the completed-task corpus,
scaled to 0-100. With no completed work to compare against, the task's
priority stands in for its momentum.
"""
import logging
import re
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional, Set

from errors import PersistenceError
from models import Priority, TaskStatus
from store import now_iso

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "shall", "can", "need", "dare",
    "ought", "used", "it", "its", "this", "that", "these", "those", "as",
    "into", "through", "up", "out", "about", "after", "before", "between",
    "so", "if", "then", "than", "not", "no", "nor", "each", "every",
    "all", "both", "few", "more", "most", "other", "some", "such", "any",
})

PRIORITY_FALLBACK_SCORES = {
    Priority.HIGH.value: 80,
    Priority.MEDIUM.value: 50,
    Priority.LOW.value: 20,
}

_NON_WORD = re.compile(r"[^a-z0-9\s]")


def extract_keywords(text: str) -> Set[str]:
    """Lowercased words longer than two characters, minus stop words."""
    cleaned = _NON_WORD.sub(" ", (text or "").lower())
    return {w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS}


def task_keywords(task: dict) -> Set[str]:
    return extract_keywords(f"{task.get('title') or ''} {task.get('description') or ''}")


def calculate_score(keywords: Set[str], completed_keywords: Set[str]) -> int:
    """Jaccard similarity as a 0-100 integer, rounded half up."""
    if not completed_keywords:
        return 0
    total_unique = len(keywords | completed_keywords)
    if total_unique == 0:
        return 0
    matches = len(keywords & completed_keywords)
    # floor(100 * m / t + 1/2) in integers
    return (matches * 200 + total_unique) // (2 * total_unique)


def fallback_score(priority: Optional[str]) -> int:
    return PRIORITY_FALLBACK_SCORES.get(priority, PRIORITY_FALLBACK_SCORES[Priority.LOW.value])


def momentum_band(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def merged_keywords(tasks: Iterable[dict]) -> Set[str]:
    merged = set()
    for t in tasks:
        merged |= task_keywords(t)
    return merged


@dataclass
class MomentumUpdate:
    task_id: str
    momentum_score: int
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        if d["error"] is None:
            del d["error"]
        return d


def score_queue(queued: List[dict], done: List[dict]) -> List[MomentumUpdate]:
    """Score every queued task against the done corpus without touching storage."""
    if not done:
        return [MomentumUpdate(t["id"], fallback_score(t.get("priority"))) for t in queued]
    corpus = merged_keywords(done)
    return [MomentumUpdate(t["id"], calculate_score(task_keywords(t), corpus)) for t in queued]


def recalculate_momentum(repo, corpus_size: int = 10) -> List[MomentumUpdate]:
    """Rescore and persist momentum for every queued task.

    Failing to read the queued tasks or the corpus raises PersistenceError.
    A failed write for one task is recorded on that task's result and the
    remaining tasks are still written.
    """
    queued = repo.list_by_status(TaskStatus.QUEUED.value)
    done = repo.list_done_most_recent(corpus_size)
    if not queued:
        logger.debug("Momentum pass: no queued tasks")
        return []

    results = score_queue(queued, done)
    # sequential writes, one statement per task, only while it is still queued
    for r in results:
        try:
            written = repo.update_if_status(r.task_id, TaskStatus.QUEUED.value, {
                "momentum_score": r.momentum_score,
                "updated_at": now_iso(),
            })
        except PersistenceError as e:
            logger.warning("Momentum write failed for %s: %s", r.task_id, e)
            r.error = str(e)
            continue
        if not written:
            # assigned, completed or deleted since the queue was read
            r.error = "Task left the queue"

    failed = sum(1 for r in results if r.error)
    logger.info("Momentum pass: %d queued, %d in corpus, %d failed",
                len(results), len(done), failed)
    return results
