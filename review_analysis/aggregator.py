"""
aggregator.py — turns a raw LLM result into a ReviewAnalysis row.

The raw dict comes from a loosely structured upstream, so every field is
validated on its own and falls back to a default instead of failing the record.
Out-of-range confidence scores are rejected (left as None), never clamped.
"""
import math
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from .db import ProductReview, ReviewAnalysis, Sentiment

_SENTIMENTS = {s.value.lower(): s.value for s in Sentiment}


class AnalysisResult(BaseModel):
    sentiment: str = Sentiment.NEUTRAL.value
    confidence_score: Optional[float] = None
    summary: str = ""
    pros: list[str] = []
    cons: list[str] = []

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v: Any) -> str:
        if isinstance(v, str):
            return _SENTIMENTS.get(v.strip().lower(), Sentiment.NEUTRAL.value)
        return Sentiment.NEUTRAL.value

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> Optional[float]:
        # bool is an int subclass but not a score
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        try:
            v = float(v)
        except OverflowError:
            # JSON allows integers far beyond float range
            return None
        if math.isnan(v) or not 0.0 <= v <= 1.0:
            return None
        return v

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("pros", "cons", mode="before")
    @classmethod
    def _string_list(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [item for item in v if isinstance(item, str)]


def parse_result(raw: Any) -> AnalysisResult:
    """Validate a raw result. Never raises on bad input."""
    if not isinstance(raw, dict):
        return AnalysisResult()
    fields = {k: raw[k] for k in AnalysisResult.model_fields if k in raw and raw[k] is not None}
    return AnalysisResult.model_validate(fields)


def build_analysis(review: ProductReview, raw: Any) -> ReviewAnalysis:
    result = parse_result(raw)
    return ReviewAnalysis(
        review_id=review.id,
        sentiment=result.sentiment,
        confidence_score=result.confidence_score,
        summary=result.summary,
        pros=list(result.pros),
        cons=list(result.cons),
    )
