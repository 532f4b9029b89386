from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .db import BatchStatus


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    batch_id: str = Field(alias="batchId")


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_id: str = Field(alias="batchId")
    status: BatchStatus


class StatsResponse(BaseModel):
    status: BatchStatus
    sentiment_distribution: dict[str, int]


class BatchItem(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    batch_id: str = Field(alias="batchId")
    file_name: str
    upload_timestamp: datetime
    status: BatchStatus


class ReviewItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_name: str
    review_text: str
    reviewer_name: str


class AnalysisItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    review: ReviewItem
    sentiment: str
    confidence_score: Optional[float] = None
    summary: str
    pros: list[str]
    cons: list[str]
