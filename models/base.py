from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class AlertType(str, enum.Enum):
    """Trend alert trigger kinds"""
    SCORE_CHANGE = "score_change"
    POSITION_CHANGE = "position_change"
    THRESHOLD = "threshold"
    CUSTOM = "custom"


class AlertFrequency(str, enum.Enum):
    """How often an alert is re-checked"""
    INSTANT = "instant"
    DAILY = "daily"
    WEEKLY = "weekly"


class AlertStatus(str, enum.Enum):
    """Alert lifecycle"""
    ACTIVE = "active"
    PAUSED = "paused"
    DELETED = "deleted"


class ForecastTerm(str, enum.Enum):
    """Which side of a comparison a forecast point belongs to"""
    TERM_A = "termA"
    TERM_B = "termB"


class WarmupStatus(str, enum.Enum):
    """Status flag written to the cache around warmup work"""
    QUEUED = "queued"
    RUNNING = "running"
    READY = "ready"
    FAILED = "failed"
