"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import AlertType, AlertFrequency, AlertStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy or unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    cache: Dict[str, Any] = Field(default_factory=dict)
    environment: str


# ============================================================================
# Comparison Schemas
# ============================================================================

class TermShare(BaseModel):
    total: float
    share: float
    average: float


class ComparisonCoreResponse(BaseModel):
    """Smoothed series and headline numbers for a comparison page"""
    slug: str
    term_a: str
    term_b: str
    timeframe: str
    geo: str
    category: Optional[str] = None
    view_count: int = 0
    series: List[Dict[str, Any]]
    stats: Dict[str, TermShare]
    data_hash: Optional[str] = None


class CompareRequest(BaseModel):
    """Ad-hoc comparison of two raw terms"""
    terms: List[str] = Field(..., min_length=2, max_length=2)
    timeframe: str = "12m"
    geo: str = ""
    category: Optional[str] = None


class CompareResponse(BaseModel):
    slug: str
    terms: List[str]
    timeframe: str
    geo: str
    category: str
    scores: Dict[str, Any]
    verdict: Dict[str, Any]
    metrics: Dict[str, Any]
    evidence: List[Dict[str, Any]]
    faqs: List[Dict[str, Any]]
    saved: bool = False


# ============================================================================
# Warmup Schemas
# ============================================================================

class WarmupRequest(BaseModel):
    """
    Body of the execute-warmup call.

    Fields are optional here so a missing one produces a 400 from the
    route rather than a 422 from validation.
    """
    slug: Optional[str] = None
    tf: Optional[str] = None
    geo: Optional[str] = None
    data_hash: Optional[str] = Field(None, alias="dataHash")

    class Config:
        populate_by_name = True


class WarmupBatchRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=500)


# ============================================================================
# Saved Comparison / History Schemas
# ============================================================================

class SaveComparisonRequest(BaseModel):
    slug: str
    term_a: str
    term_b: str
    category: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)
    tags: Optional[List[str]] = None


class SavedComparisonResponse(BaseModel):
    id: int
    slug: str
    term_a: str
    term_b: str
    category: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class HistoryItemResponse(BaseModel):
    id: int
    slug: str
    term_a: str
    term_b: str
    timeframe: str
    geo: str
    viewed_at: datetime

    class Config:
        from_attributes = True


class MostViewedItem(BaseModel):
    slug: str
    term_a: str
    term_b: str
    count: int


class HistoryResponse(BaseModel):
    items: List[HistoryItemResponse]
    most_viewed: List[MostViewedItem]


# ============================================================================
# Alert Schemas
# ============================================================================

class CreateAlertRequest(BaseModel):
    slug: str
    term_a: str
    term_b: str
    alert_type: AlertType
    threshold: Optional[float] = Field(None, ge=0, le=100)
    change_percent: float = Field(10.0, gt=0, le=100)
    frequency: AlertFrequency = AlertFrequency.DAILY
    baseline_score_a: Optional[float] = None
    baseline_score_b: Optional[float] = None


class UpdateAlertRequest(BaseModel):
    status: AlertStatus

    @field_validator("status")
    @classmethod
    def not_deleted(cls, v):
        """Deletion goes through DELETE, not PATCH"""
        if v == AlertStatus.DELETED:
            raise ValueError("use DELETE to remove an alert")
        return v


class AlertResponse(BaseModel):
    id: int
    slug: str
    term_a: str
    term_b: str
    alert_type: AlertType
    threshold: Optional[float] = None
    change_percent: float
    frequency: AlertFrequency
    status: AlertStatus
    baseline_score_a: Optional[float] = None
    baseline_score_b: Optional[float] = None
    last_triggered: Optional[datetime] = None
    last_checked: Optional[datetime] = None
    notify_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


# ============================================================================
# Forecast / Keyword Schemas
# ============================================================================

class TrustStatsResponse(BaseModel):
    total_evaluated: int = 0
    winner_accuracy_percent: Optional[float] = None
    interval_coverage_percent: Optional[float] = None
    last_90_days_accuracy: Optional[float] = None
    sample_size: int = 0
    last_calculated: Optional[datetime] = None

    class Config:
        from_attributes = True


class KeywordValidateRequest(BaseModel):
    keywords: List[str] = Field(..., min_length=1, max_length=50)


class KeywordCheck(BaseModel):
    keyword: str
    sanitized: str
    valid: bool
    safe_for_slug: bool
    term: Optional[str] = None
    reason: Optional[str] = None


class KeywordValidateResponse(BaseModel):
    results: List[KeywordCheck]
    valid_keywords: List[str]
