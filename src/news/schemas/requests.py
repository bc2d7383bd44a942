"""Ingestion API request schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessArticleRequest(BaseModel):
    """Request model for processing a single article"""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    url: str = Field(..., min_length=1, description="Source article URL")
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    published_at: Optional[datetime] = Field(None, alias="publishedAt")
    source: Optional[str] = None
    category: Optional[str] = None


class ProcessArticlesRequest(BaseModel):
    """Request model for batch processing a list of article URLs"""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    urls: List[str] = Field(..., min_length=1, description="Article URLs")
    batch_size: Optional[int] = Field(None, alias="batchSize", ge=1, le=50)
