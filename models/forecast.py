from sqlalchemy import (
    Column, Integer, String, DateTime, Float, Boolean, Enum, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, JSONType, ForecastTerm


class ForecastRun(Base):
    """
    One forecast computation for a comparison.

    Purpose:
    - Persist per-term forecasts and head-to-head outcome
    - Reuse results for the same data hash within 24 hours
    - Later evaluation against observed values
    """
    __tablename__ = "forecast_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    comparison_id = Column(
        Integer, ForeignKey("comparisons.id", ondelete="CASCADE"), nullable=False, index=True
    )

    timeframe = Column(String(20), nullable=False)
    horizon = Column(Integer, nullable=False, default=28)
    data_hash = Column(String(32), nullable=False)

    # Per-term model output
    model_term_a = Column(String(20), nullable=False)
    model_term_b = Column(String(20), nullable=False)
    confidence_score_a = Column(Float, nullable=False)
    confidence_score_b = Column(Float, nullable=False)
    metrics_a = Column(JSONType, nullable=True)
    metrics_b = Column(JSONType, nullable=True)
    quality_flags_a = Column(JSONType, nullable=True)
    quality_flags_b = Column(JSONType, nullable=True)

    # Head to head
    winner_probability = Column(Float, nullable=False)
    expected_margin = Column(Float, nullable=False)
    lead_change_risk = Column(String(10), nullable=False)

    computed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    evaluated_at = Column(DateTime, nullable=True)
    # Set with evaluated_at when the run could not be scored (no points, no actuals)
    evaluation_skipped_reason = Column(String(50), nullable=True)

    comparison = relationship("Comparison", back_populates="forecast_runs")
    points = relationship(
        "ForecastPoint", back_populates="forecast_run", cascade="all, delete-orphan", passive_deletes=True
    )
    evaluation = relationship(
        "ForecastEvaluation", back_populates="forecast_run", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("comparison_id", "timeframe", "horizon", "data_hash", name="uq_forecast_run_key"),
        Index("idx_forecast_run_evaluation", "evaluated_at", "computed_at"),
    )


class ForecastPoint(Base):
    """A single forecast day for one term with 80% and 95% bands."""
    __tablename__ = "forecast_points"

    id = Column(Integer, primary_key=True, autoincrement=True)
    forecast_run_id = Column(
        Integer, ForeignKey("forecast_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    term = Column(Enum(ForecastTerm), nullable=False)
    date = Column(DateTime, nullable=False)
    value = Column(Float, nullable=False)
    lower80 = Column(Float, nullable=False)
    upper80 = Column(Float, nullable=False)
    lower95 = Column(Float, nullable=False)
    upper95 = Column(Float, nullable=False)
    actual_value = Column(Float, nullable=True)

    forecast_run = relationship("ForecastRun", back_populates="points")

    __table_args__ = (
        UniqueConstraint("forecast_run_id", "term", "date", name="uq_forecast_point"),
    )


class ForecastEvaluation(Base):
    """Accuracy of a forecast run once its horizon has passed."""
    __tablename__ = "forecast_evaluations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    forecast_run_id = Column(
        Integer, ForeignKey("forecast_runs.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    winner_correct = Column(Boolean, nullable=True)
    direction_correct_a = Column(Boolean, nullable=True)
    direction_correct_b = Column(Boolean, nullable=True)
    interval_hit_rate80 = Column(Float, nullable=True)
    interval_hit_rate95 = Column(Float, nullable=True)
    mae = Column(Float, nullable=True)
    mape = Column(Float, nullable=True)
    evaluated_points = Column(Integer, nullable=False, default=0)

    evaluated_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    forecast_run = relationship("ForecastRun", back_populates="evaluation")


class ForecastTrustStats(Base):
    """Aggregate forecast accuracy, one row per period."""
    __tablename__ = "forecast_trust_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    period = Column(String(20), nullable=False, unique=True)

    total_evaluated = Column(Integer, nullable=False, default=0)
    winner_accuracy_percent = Column(Float, nullable=True)
    interval_coverage_percent = Column(Float, nullable=True)
    last_90_days_accuracy = Column(Float, nullable=True)
    sample_size = Column(Integer, nullable=False, default=0)

    last_calculated = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
