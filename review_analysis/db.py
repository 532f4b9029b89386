import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_batch_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class BatchStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


class UploadBatch(Base):
    __tablename__ = "upload_batches"

    batch_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_batch_id)
    file_name: Mapped[str] = mapped_column(String)
    upload_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    status: Mapped[str] = mapped_column(String(16), default=BatchStatus.PROCESSING.value)


class ProductReview(Base):
    __tablename__ = "product_reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[str] = mapped_column(ForeignKey("upload_batches.batch_id"), index=True)
    product_name: Mapped[str] = mapped_column(String)
    review_text: Mapped[str] = mapped_column(Text)
    reviewer_name: Mapped[str] = mapped_column(String, default="Anonymous")


class ReviewAnalysis(Base):
    __tablename__ = "review_analysis"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # unique: one analysis per review
    review_id: Mapped[int] = mapped_column(ForeignKey("product_reviews.id"), unique=True)
    sentiment: Mapped[str] = mapped_column(String(16), default=Sentiment.NEUTRAL.value)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    summary: Mapped[str] = mapped_column(Text, default="")
    pros: Mapped[list] = mapped_column(JSON, default=list)
    cons: Mapped[list] = mapped_column(JSON, default=list)

    review: Mapped[ProductReview] = relationship(lazy="raise")


def build_engine(database_url: str) -> AsyncEngine:
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        # concurrent analysis writes wait on the sqlite lock instead of failing
        connect_args["timeout"] = 30
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(url, echo=False, connect_args=connect_args)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(sessionmaker: async_sessionmaker[AsyncSession]):
    async with sessionmaker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
