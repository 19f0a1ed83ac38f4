from sqlalchemy import Column, Integer, String, DateTime, Float, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, JSONType


class Comparison(Base):
    """
    A stored two-term comparison.

    Purpose:
    - Cache the provider series for (slug, timeframe, geo)
    - Track popularity (view_count, last_visited) for warmup selection
    - Anchor forecast runs

    Design:
    - series is a list of {"date": "YYYY-MM-DD", <termA>: n, <termB>: n}
    - data_hash changes whenever terms, timeframe, geo or series change
    """
    __tablename__ = "comparisons"

    id = Column(Integer, primary_key=True, autoincrement=True)

    slug = Column(String(200), nullable=False, index=True)
    timeframe = Column(String(20), nullable=False, default="12m")
    geo = Column(String(10), nullable=False, default="")

    terms = Column(JSONType, nullable=False)
    series = Column(JSONType, nullable=False)
    stats = Column(JSONType, nullable=True)
    ai = Column(JSONType, nullable=True)
    category = Column(String(50), nullable=True)
    data_hash = Column(String(32), nullable=True)

    # Popularity
    view_count = Column(Integer, nullable=False, default=0)
    last_visited = Column(DateTime, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    forecast_runs = relationship(
        "ForecastRun",
        back_populates="comparison",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("slug", "timeframe", "geo", name="uq_comparison_slug_tf_geo"),
        Index("idx_comparison_popularity", "view_count", "last_visited"),
    )

    def __repr__(self) -> str:
        return f"<Comparison {self.slug} tf={self.timeframe} geo={self.geo!r}>"


class ComparisonSnapshot(Base):
    """Point-in-time scores for a comparison a user looked at."""
    __tablename__ = "comparison_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)

    slug = Column(String(200), nullable=False, index=True)
    term_a = Column(String(100), nullable=False)
    term_b = Column(String(100), nullable=False)
    timeframe = Column(String(20), nullable=False, default="12m")
    geo = Column(String(10), nullable=False, default="")

    score_a = Column(Float, nullable=False)
    score_b = Column(Float, nullable=False)
    winner = Column(String(100), nullable=False)
    margin = Column(Float, nullable=False)
    confidence = Column(Float, nullable=True)
    volatility = Column(Float, nullable=True)
    agreement_index = Column(Float, nullable=True)

    computed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
