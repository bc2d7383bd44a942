"""Ingestion API response schemas"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ArticleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_key: str = Field(..., alias="documentKey")
    url: str
    title: str
    description: str
    category: str
    source: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    published_at: Optional[str] = Field(None, alias="publishedAt")


class ArticleOutcomeResponse(BaseModel):
    url: str
    state: str
    record: Optional[ArticleResponse] = None
    error: Optional[str] = None


class ProcessArticleResponse(BaseModel):
    success: bool = True
    data: ArticleOutcomeResponse


class ProcessArticlesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    processed: int
    data: List[ArticleResponse] = Field(default_factory=list)
    failed_batches: int = Field(0, alias="failedBatches")
    message: Optional[str] = None


class TriggerResponse(BaseModel):
    success: bool = True
    accepted: bool
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Any = None
