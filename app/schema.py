"""
Pydantic models describing what the API returns.

FastAPI uses them to validate responses, document the endpoints under /docs
and serialize the classifier's dataclasses to JSON.
"""

from pydantic import BaseModel
from typing import List, Optional


class CategoryProbability(BaseModel):
    category: str
    probability: float


class PredictionResponse(BaseModel):
    text: str
    top_label: str
    hypotheses: List[CategoryProbability]
    reason: Optional[str] = None
    timestamp: int


class ClassifierStatus(BaseModel):
    state: str
    categories: List[str]
    sentinel: str
    failure_reason: Optional[str] = None


class VisibilityResponse(BaseModel):
    hidden: bool


class RefreshResponse(BaseModel):
    requested_at: Optional[int] = None
    next_refresh: int
