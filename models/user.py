from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, JSONType


class User(Base):
    """Account owning saved comparisons, history and alerts."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    saved_comparisons = relationship("SavedComparison", back_populates="user", cascade="all, delete-orphan")
    history = relationship("ComparisonHistory", back_populates="user", cascade="all, delete-orphan")
    alerts = relationship("TrendAlert", back_populates="user", cascade="all, delete-orphan")


class SavedComparison(Base):
    """A comparison bookmarked by a user, with optional notes and tags."""
    __tablename__ = "saved_comparisons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    slug = Column(String(200), nullable=False)
    term_a = Column(String(100), nullable=False)
    term_b = Column(String(100), nullable=False)
    category = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="saved_comparisons")

    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_saved_user_slug"),
        Index("idx_saved_user_created", "user_id", "created_at"),
    )


class ComparisonHistory(Base):
    """One row per comparison view by a signed-in user."""
    __tablename__ = "comparison_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    slug = Column(String(200), nullable=False)
    term_a = Column(String(100), nullable=False)
    term_b = Column(String(100), nullable=False)
    timeframe = Column(String(20), nullable=False, default="12m")
    geo = Column(String(10), nullable=False, default="")

    viewed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="history")

    __table_args__ = (
        Index("idx_history_user_viewed", "user_id", "viewed_at"),
        Index("idx_history_slug", "slug"),
    )
