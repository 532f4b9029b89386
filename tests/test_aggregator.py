"""
Unit tests for the analysis aggregator.

Raw results come straight from the LLM, so each field must fall back to its
default without affecting the others.
"""
import json

from review_analysis.aggregator import build_analysis, parse_result
from review_analysis.db import ProductReview


def _review():
    return ProductReview(id=7, batch_id="b", product_name="Widget", review_text="ok", reviewer_name="Anonymous")


def test_complete_result_is_copied():
    analysis = build_analysis(_review(), {
        "sentiment": "Negative",
        "confidence_score": 0.75,
        "summary": "Broke after a week",
        "pros": ["cheap"],
        "cons": ["fragile", "loud"],
    })

    assert analysis.review_id == 7
    assert analysis.sentiment == "Negative"
    assert analysis.confidence_score == 0.75
    assert analysis.summary == "Broke after a week"
    assert analysis.pros == ["cheap"]
    assert analysis.cons == ["fragile", "loud"]


def test_missing_confidence_stays_absent():
    result = parse_result({"sentiment": "Positive", "summary": "Nice"})

    assert result.confidence_score is None


def test_out_of_range_confidence_is_rejected_not_clamped():
    assert parse_result({"confidence_score": 1.5}).confidence_score is None
    assert parse_result({"confidence_score": -0.1}).confidence_score is None
    assert parse_result({"confidence_score": float("nan")}).confidence_score is None


def test_huge_integer_confidence_is_absent():
    raw = json.loads('{"sentiment": "Positive", "confidence_score": 1' + "0" * 400 + "}")

    result = parse_result(raw)

    assert result.confidence_score is None
    assert result.sentiment == "Positive"


def test_non_numeric_confidence_is_absent():
    assert parse_result({"confidence_score": "0.8"}).confidence_score is None
    assert parse_result({"confidence_score": True}).confidence_score is None


def test_integer_confidence_at_bounds_is_kept():
    assert parse_result({"confidence_score": 1}).confidence_score == 1.0
    assert parse_result({"confidence_score": 0}).confidence_score == 0.0


def test_unknown_sentiment_defaults_to_neutral():
    assert parse_result({"sentiment": "Ecstatic"}).sentiment == "Neutral"
    assert parse_result({"sentiment": 3}).sentiment == "Neutral"
    assert parse_result({}).sentiment == "Neutral"


def test_sentiment_case_is_normalized():
    assert parse_result({"sentiment": " positive "}).sentiment == "Positive"


def test_wrong_shapes_fall_back_field_by_field():
    result = parse_result({
        "sentiment": "Positive",
        "confidence_score": 0.6,
        "summary": ["not", "a", "string"],
        "pros": "fast",
        "cons": ["slow", 42, None],
    })

    assert result.sentiment == "Positive"
    assert result.confidence_score == 0.6
    assert result.summary == ""
    assert result.pros == []
    assert result.cons == ["slow"]


def test_non_mapping_raw_gives_all_defaults():
    for raw in (None, "garbage", ["Positive"], 12):
        result = parse_result(raw)
        assert result.sentiment == "Neutral"
        assert result.confidence_score is None
        assert result.summary == ""
        assert result.pros == [] and result.cons == []


def test_explicit_nulls_use_defaults():
    result = parse_result({"sentiment": None, "summary": None, "pros": None})

    assert result.sentiment == "Neutral"
    assert result.summary == ""
    assert result.pros == []
