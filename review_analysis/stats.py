"""
stats.py - read side: batch status, sentiment distribution, analyses.
Counts are a snapshot of whatever analyses exist at call time; check the
status to know whether analysis has finished.
"""
from .db import BatchStatus, ReviewAnalysis, UploadBatch
from .exceptions import NotFoundError
from .repository import AnalysisRepository, BatchRepository


class StatsProvider:
    def __init__(self, batches: BatchRepository, analyses: AnalysisRepository):
        self.batches = batches
        self.analyses = analyses

    async def _require_batch(self, batch_id: str) -> UploadBatch:
        batch = await self.batches.find_by_id(batch_id)
        if batch is None:
            raise NotFoundError(batch_id)
        return batch

    async def get_status(self, batch_id: str) -> BatchStatus:
        batch = await self._require_batch(batch_id)
        return BatchStatus(batch.status)

    async def get_sentiment_distribution(self, batch_id: str) -> dict[str, int]:
        return await self.analyses.count_by_sentiment_for_batch(batch_id)

    async def get_dashboard_stats(self, batch_id: str) -> dict:
        """Status plus sentiment counts, e.g.
        {"status": "COMPLETED", "sentiment_distribution": {"Positive": 2, "Negative": 1}}
        """
        status = await self.get_status(batch_id)
        return {
            "status": status,
            "sentiment_distribution": await self.get_sentiment_distribution(batch_id),
        }

    async def get_analyses(self, batch_id: str) -> list[ReviewAnalysis]:
        await self._require_batch(batch_id)
        return await self.analyses.find_by_batch_id(batch_id)

    async def list_batches(self, limit: int = 20) -> list[UploadBatch]:
        return await self.batches.list_recent(limit)
