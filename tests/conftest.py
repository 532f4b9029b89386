import json

import pytest
import pytest_asyncio

from review_analysis.config import InferenceConfig
from review_analysis.db import build_engine, build_sessionmaker, init_db
from review_analysis.inference import InferenceClient
from review_analysis.pipeline import BatchOrchestrator
from review_analysis.repository import AnalysisRepository, BatchRepository, ReviewRepository
from review_analysis.stats import StatsProvider

HEADER = ["id", "product_name", "review_text", "reviewer_name"]


class FakeTransport:
    """Returns a canned JSON reply, or raises whatever `error` is set to."""

    def __init__(self, reply=None, error=None):
        self.reply = reply or {
            "sentiment": "Positive",
            "confidence_score": 0.9,
            "summary": "Works well",
            "pros": ["fast"],
            "cons": [],
        }
        self.error = error
        self.prompts = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, str):
            return self.reply
        return json.dumps(self.reply)


def make_rows(n: int) -> list[list[str]]:
    rows = [HEADER]
    for i in range(n):
        rows.append([str(i), "Widget", f"Review number {i}", f"user{i}"])
    return rows


@pytest.fixture
def config():
    return InferenceConfig(api_key="test-key", timeout_seconds=2)


@pytest_asyncio.fixture
async def sessionmaker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield build_sessionmaker(engine)
    await engine.dispose()


@pytest.fixture
def batches(sessionmaker):
    return BatchRepository(sessionmaker)


@pytest.fixture
def reviews(sessionmaker):
    return ReviewRepository(sessionmaker)


@pytest.fixture
def analyses(sessionmaker):
    return AnalysisRepository(sessionmaker)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport, config):
    return InferenceClient(transport, config)


@pytest.fixture
def orchestrator(batches, reviews, analyses, client):
    return BatchOrchestrator(batches, reviews, analyses, client, max_concurrency=4)


@pytest.fixture
def stats(batches, analyses):
    return StatsProvider(batches, analyses)
