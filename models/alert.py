from sqlalchemy import Column, Integer, String, DateTime, Float, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, AlertType, AlertFrequency, AlertStatus


class TrendAlert(Base):
    """
    User subscription to changes in a comparison.

    Baseline scores are captured when the alert is created; the alert job
    compares fresh scores against them according to alert_type.
    """
    __tablename__ = "trend_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    slug = Column(String(200), nullable=False)
    term_a = Column(String(100), nullable=False)
    term_b = Column(String(100), nullable=False)

    alert_type = Column(Enum(AlertType), nullable=False)
    threshold = Column(Float, nullable=True)
    baseline_score_a = Column(Float, nullable=True)
    baseline_score_b = Column(Float, nullable=True)
    baseline_date = Column(DateTime, nullable=True)
    change_percent = Column(Float, nullable=False, default=10.0)
    frequency = Column(Enum(AlertFrequency), nullable=False, default=AlertFrequency.DAILY)
    status = Column(Enum(AlertStatus), nullable=False, default=AlertStatus.ACTIVE, index=True)

    last_triggered = Column(DateTime, nullable=True)
    last_checked = Column(DateTime, nullable=True)
    notify_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="alerts")

    __table_args__ = (
        Index("idx_alert_status_checked", "status", "last_checked"),
        Index("idx_alert_user", "user_id", "status"),
    )
