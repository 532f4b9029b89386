"""
repository.py — async SQLAlchemy access to batches, reviews and analyses.
Every call opens its own session, so concurrent analysis tasks never share one.
"""
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from .db import BatchStatus, ProductReview, ReviewAnalysis, UploadBatch, session_scope


class BatchRepository:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def save(self, batch: UploadBatch) -> UploadBatch:
        async with session_scope(self._sessionmaker) as session:
            session.add(batch)
        return batch

    async def create_with_reviews(self, batch: UploadBatch, reviews: Sequence[ProductReview]) -> UploadBatch:
        """Insert the batch and all of its reviews in one transaction."""
        async with session_scope(self._sessionmaker) as session:
            session.add(batch)
            # batch row must exist before its reviews reference it
            await session.flush()
            for review in reviews:
                review.batch_id = batch.batch_id
            session.add_all(reviews)
        return batch

    async def find_by_id(self, batch_id: str) -> Optional[UploadBatch]:
        async with self._sessionmaker() as session:
            return await session.get(UploadBatch, batch_id)

    async def update_status(self, batch_id: str, status: BatchStatus) -> bool:
        """Returns False when the batch no longer exists."""
        async with session_scope(self._sessionmaker) as session:
            batch = await session.get(UploadBatch, batch_id)
            if batch is None:
                return False
            batch.status = status.value
        return True

    async def list_recent(self, limit: int = 20) -> list[UploadBatch]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(UploadBatch).order_by(UploadBatch.upload_timestamp.desc()).limit(limit)
            )
            return list(result.scalars())


class ReviewRepository:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def find_by_batch_id(self, batch_id: str) -> list[ProductReview]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(ProductReview).where(ProductReview.batch_id == batch_id).order_by(ProductReview.id)
            )
            return list(result.scalars())


class AnalysisRepository:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def save(self, analysis: ReviewAnalysis) -> ReviewAnalysis:
        async with session_scope(self._sessionmaker) as session:
            session.add(analysis)
        return analysis

    async def find_by_batch_id(self, batch_id: str) -> list[ReviewAnalysis]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(ReviewAnalysis)
                .join(ReviewAnalysis.review)
                .where(ProductReview.batch_id == batch_id)
                .options(selectinload(ReviewAnalysis.review))
                .order_by(ReviewAnalysis.review_id)
            )
            return list(result.scalars())

    async def analyzed_review_ids(self, batch_id: str) -> set[int]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(ReviewAnalysis.review_id)
                .join(ReviewAnalysis.review)
                .where(ProductReview.batch_id == batch_id)
            )
            return set(result.scalars())

    async def count_by_sentiment_for_batch(self, batch_id: str) -> dict[str, int]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(ReviewAnalysis.sentiment, func.count(ReviewAnalysis.id))
                .join(ReviewAnalysis.review)
                .where(ProductReview.batch_id == batch_id)
                .group_by(ReviewAnalysis.sentiment)
            )
            return {sentiment: count for sentiment, count in result.all()}
