"""
pipeline.py — batch lifecycle.
Ingestion (create_batch) runs on the request; analysis (analyze_batch) runs
on AnalysisQueue workers and fans out one inference call per review.

Batch status: PROCESSING at creation → COMPLETED once every review attempt
has resolved, degraded or not. FAILED is only written by the queue when an
analyze_batch job itself crashes.
"""
import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .aggregator import build_analysis
from .db import BatchStatus, ProductReview, UploadBatch
from .exceptions import AnalysisInProgressError, IngestionError, PersistenceFailure
from .inference import DEFAULT_RESULT, InferenceClient
from .ingest import ANONYMOUS, PRODUCT_COL, REVIEWER_COL, TEXT_COL
from .repository import AnalysisRepository, BatchRepository, ReviewRepository

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    batch_id: str
    total: int = 0
    analyzed: int = 0
    skipped: int = 0
    failed: int = 0
    degraded: int = 0
    completed: bool = False


def rows_to_reviews(rows: Sequence[Sequence[str]]) -> list[ProductReview]:
    """Map decoded CSV rows (header first) to unsaved reviews."""
    reviews = []
    # row numbers are 1-based and count the header
    for line_no, row in enumerate(rows[1:], start=2):
        if not any(cell.strip() for cell in row):
            continue
        if len(row) <= TEXT_COL:
            raise IngestionError(f"Row {line_no} has {len(row)} columns, expected at least {TEXT_COL + 1}")
        reviewer = row[REVIEWER_COL].strip() if len(row) > REVIEWER_COL else ""
        reviews.append(ProductReview(
            product_name=row[PRODUCT_COL],
            review_text=row[TEXT_COL],
            reviewer_name=reviewer or ANONYMOUS,
        ))
    if not reviews:
        raise IngestionError("Upload contains no reviews after the header row")
    return reviews


class BatchOrchestrator:
    def __init__(
        self,
        batches: BatchRepository,
        reviews: ReviewRepository,
        analyses: AnalysisRepository,
        client: InferenceClient,
        max_concurrency: int = 8,
    ):
        self.batches = batches
        self.reviews = reviews
        self.analyses = analyses
        self.client = client
        self.max_concurrency = max_concurrency
        self.scheduler: Optional[Callable[[str], Awaitable[None]]] = None
        self._in_flight: set[str] = set()

    async def create_batch(self, source_name: str, rows: Sequence[Sequence[str]]) -> str:
        reviews = rows_to_reviews(rows)

        batch = UploadBatch(
            batch_id=str(uuid.uuid4()),
            file_name=source_name,
            status=BatchStatus.PROCESSING.value,
        )
        try:
            await self.batches.create_with_reviews(batch, reviews)
        except SQLAlchemyError as e:
            logger.error("Could not store upload %s: %s", source_name, e)
            raise IngestionError(f"Could not store batch: {e}") from e

        logger.info("[%s] Stored %d reviews from %s", batch.batch_id, len(reviews), source_name)

        if self.scheduler is not None:
            await self.scheduler(batch.batch_id)
        return batch.batch_id

    async def analyze_batch(self, batch_id: str) -> BatchOutcome:
        """Analyze every not-yet-analyzed review of a batch, then mark it COMPLETED.

        Precondition: one run per batch at a time. A second concurrent call
        raises AnalysisInProgressError.
        """
        if batch_id in self._in_flight:
            raise AnalysisInProgressError(batch_id)
        self._in_flight.add(batch_id)
        try:
            return await self._analyze(batch_id)
        finally:
            self._in_flight.discard(batch_id)

    def is_analyzing(self, batch_id: str) -> bool:
        return batch_id in self._in_flight

    async def _analyze(self, batch_id: str) -> BatchOutcome:
        outcome = BatchOutcome(batch_id=batch_id)

        batch = await self.batches.find_by_id(batch_id)
        if batch is not None and batch.status != BatchStatus.PROCESSING.value:
            logger.info("[%s] Status is %s, nothing to analyze", batch_id, batch.status)
            return outcome

        reviews = await self.reviews.find_by_batch_id(batch_id)
        done = await self.analyses.analyzed_review_ids(batch_id)
        pending = [r for r in reviews if r.id not in done]
        outcome.total = len(reviews)
        outcome.skipped = len(reviews) - len(pending)
        logger.info("[%s] Started analysis of %d reviews", batch_id, len(pending))

        # ── FAN OUT ──────────────────────────────────────────────────
        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *(self._analyze_review(r, semaphore) for r in pending),
            return_exceptions=True,
        )

        # ── COLLECT ──────────────────────────────────────────────────
        for review, result in zip(pending, results):
            if isinstance(result, BaseException):
                outcome.failed += 1
                logger.error("[%s] Review %s failed: %s", batch_id, review.id, result)
            else:
                outcome.analyzed += 1
                if result:
                    outcome.degraded += 1

        # ── FINALIZE ─────────────────────────────────────────────────
        # every task above has resolved, so the status write cannot race them
        outcome.completed = await self.batches.update_status(batch_id, BatchStatus.COMPLETED)
        if outcome.completed:
            logger.info(
                "[%s] Analysis completed: %d analyzed (%d degraded), %d failed",
                batch_id, outcome.analyzed, outcome.degraded, outcome.failed,
            )
        else:
            logger.warning("[%s] Batch disappeared during analysis; status not updated", batch_id)
        return outcome

    async def _analyze_review(self, review: ProductReview, semaphore: asyncio.Semaphore) -> bool:
        """Returns True when the stored analysis is the degraded default."""
        async with semaphore:
            raw = await self.client.analyze(review.review_text)
            analysis = build_analysis(review, raw)
            try:
                await self.analyses.save(analysis)
            except SQLAlchemyError as e:
                raise PersistenceFailure(review.id, e) from e
        return raw == DEFAULT_RESULT


class AnalysisQueue:
    """asyncio.Queue of batch ids drained by a fixed pool of worker tasks."""

    def __init__(self, orchestrator: BatchOrchestrator, workers: int = 2):
        self.orchestrator = orchestrator
        self.workers = workers
        self.jobs: dict[str, str] = {}
        self.outcomes: dict[str, BatchOutcome] = {}
        self.counts: Counter[str] = Counter()
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []

    async def start(self):
        for n in range(self.workers):
            self._tasks.append(asyncio.create_task(self._worker(n), name=f"analysis-worker-{n}"))
        logger.info("Started %d analysis workers", self.workers)

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def enqueue(self, batch_id: str):
        self.jobs[batch_id] = "queued"
        self.counts["queued"] += 1
        await self._queue.put(batch_id)

    async def join(self):
        await self._queue.join()

    def snapshot(self) -> dict:
        states = Counter(self.jobs.values())
        return {
            "workers": len(self._tasks),
            "pending": self._queue.qsize(),
            "running": states.get("running", 0),
            "done": self.counts["done"],
            "failed": self.counts["failed"],
            "skipped": self.counts["skipped"],
        }

    async def _worker(self, n: int):
        while True:
            batch_id = await self._queue.get()
            try:
                await self._run(batch_id)
            finally:
                self._queue.task_done()

    async def _run(self, batch_id: str):
        self.jobs[batch_id] = "running"
        try:
            self.outcomes[batch_id] = await self.orchestrator.analyze_batch(batch_id)
        except AnalysisInProgressError as e:
            logger.warning("[%s] %s", batch_id, e)
            self.jobs[batch_id] = "skipped"
            self.counts["skipped"] += 1
            return
        except Exception:
            logger.exception("[%s] ANALYSIS JOB FAILED", batch_id)
            self.jobs[batch_id] = "failed"
            self.counts["failed"] += 1
            try:
                await self.orchestrator.batches.update_status(batch_id, BatchStatus.FAILED)
            except SQLAlchemyError as e:
                logger.error("[%s] Could not mark batch FAILED: %s", batch_id, e)
            return
        self.jobs[batch_id] = "done"
        self.counts["done"] += 1
