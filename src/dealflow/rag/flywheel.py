"""Flywheel: write accepted web sources back into the user's semantic index.

Only the first MAX_PERSISTED external sources of a retrieval are considered;
those with a URL and content each become a new ``web_document`` record with
a fresh id, tagged with the original URL as external id and with the
company/founder scope when known.

Persistence never sits on the response path. FlywheelPersister owns a bounded
queue and a single daemon worker:

- submit() never blocks; a full queue drops the job (counted in stats).
- A failed write is retried up to max_attempts times with linear backoff,
  then logged and counted as failed. Nothing is raised to the caller.
- drain()/close() let a short-lived process wait for pending writes.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from dealflow.rag.index import IndexRecord, SemanticIndex, user_namespace
from dealflow.rag.models import Origin, Source

logger = logging.getLogger(__name__)

MAX_PERSISTED = 3
WEB_DOCUMENT_KIND = "web_document"


def build_web_records(
    user_id: str,
    sources: Sequence[Source],
    company_id: str | None = None,
    founder_id: str | None = None,
    limit: int = MAX_PERSISTED,
    retrieved_at: str | None = None,
) -> list[IndexRecord]:
    """Turn the WEB sources among the first *limit* into fresh index records.

    The cap applies before filtering: an internal or empty source in the
    first *limit* positions uses up a slot.
    """
    stamp = retrieved_at or datetime.now(timezone.utc).isoformat()
    records: list[IndexRecord] = []
    for source in sources[:limit]:
        if source.origin is not Origin.WEB or not source.url or not source.content:
            continue
        records.append(
            IndexRecord(
                id=f"web_{uuid.uuid4().hex}",
                owner_id=user_id,
                content=source.content,
                source_kind=WEB_DOCUMENT_KIND,
                title=source.title,
                created_at=stamp,
                company_id=company_id,
                founder_id=founder_id,
                url=source.url,
                external_id=source.url,
            )
        )
    return records


def persist_web_sources(
    index: SemanticIndex,
    user_id: str,
    sources: Sequence[Source],
    company_id: str | None = None,
    founder_id: str | None = None,
    limit: int = MAX_PERSISTED,
) -> int:
    """Synchronously write up to *limit* web sources. Returns records written.

    Raises whatever the index raises; FlywheelPersister handles retries.
    """
    records = build_web_records(user_id, sources, company_id, founder_id, limit)
    if not records:
        return 0
    return index.upsert(user_namespace(user_id), records)


@dataclass(frozen=True)
class FlywheelJob:
    user_id: str
    sources: tuple[Source, ...]
    company_id: str | None = None
    founder_id: str | None = None


@dataclass(frozen=True)
class FlywheelStats:
    enqueued: int
    persisted: int
    failed: int
    dropped: int
    pending: int


class FlywheelPersister:
    """Background writer for flywheel jobs with a bounded queue and retry.

    Args:
        index: Destination index.
        max_documents: Web sources persisted per job.
        max_attempts: Total tries per job before giving up.
        backoff_seconds: Sleep between tries, multiplied by the attempt number.
        queue_size: Jobs waiting beyond this are dropped.
    """

    def __init__(
        self,
        index: SemanticIndex,
        max_documents: int = MAX_PERSISTED,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        queue_size: int = 64,
    ) -> None:
        self._index = index
        self._max_documents = max_documents
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._queue: queue.Queue[FlywheelJob | None] = queue.Queue(maxsize=queue_size)
        self._lock = threading.Lock()
        self._counts = {"enqueued": 0, "persisted": 0, "failed": 0, "dropped": 0}
        self._closed = False
        self._worker = threading.Thread(
            target=self._run, name="flywheel_persister", daemon=True
        )
        self._worker.start()

    def submit(
        self,
        user_id: str,
        sources: Sequence[Source],
        company_id: str | None = None,
        founder_id: str | None = None,
    ) -> bool:
        """Queue a job without blocking. Returns False if it was dropped."""
        web_sources = tuple(s for s in sources if s.origin is Origin.WEB)
        if not web_sources:
            return False
        if self._closed:
            logger.warning("Flywheel persister is closed; dropping job for user %s", user_id)
            self._bump("dropped")
            return False

        job = FlywheelJob(user_id, web_sources, company_id, founder_id)
        try:
            self._queue.put_nowait(job)
        except queue.Full:
            logger.warning("Flywheel queue full; dropping %d web sources", len(web_sources))
            self._bump("dropped")
            return False
        self._bump("enqueued")
        return True

    def stats(self) -> FlywheelStats:
        with self._lock:
            return FlywheelStats(pending=self._queue.unfinished_tasks, **self._counts)

    def drain(self, timeout: float | None = None) -> bool:
        """Wait until every queued job has been handled. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def close(self, timeout: float | None = 5.0) -> None:
        """Finish pending jobs (up to *timeout*) and stop the worker."""
        if self._closed:
            return
        self._closed = True
        self.drain(timeout)
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            logger.warning("Flywheel queue still full at close; worker left running")
            return
        self._worker.join(timeout)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                self._process(job)
            finally:
                self._queue.task_done()

    def _process(self, job: FlywheelJob) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                written = persist_web_sources(
                    self._index,
                    job.user_id,
                    job.sources,
                    job.company_id,
                    job.founder_id,
                    limit=self._max_documents,
                )
            except Exception as exc:
                logger.warning(
                    "Flywheel write failed (attempt %d/%d): %s",
                    attempt,
                    self._max_attempts,
                    exc,
                )
                if attempt < self._max_attempts and self._backoff > 0:
                    time.sleep(self._backoff * attempt)
                continue
            logger.debug("Flywheel persisted %d web documents for user %s", written, job.user_id)
            self._bump("persisted")
            return

        logger.error("Flywheel gave up after %d attempts for user %s", self._max_attempts, job.user_id)
        self._bump("failed")

    def _bump(self, key: str) -> None:
        with self._lock:
            self._counts[key] += 1
