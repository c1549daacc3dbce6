"""
SQLAlchemy ORM models for TiDB.

Tables:
  gourmet_friend_pins — confirmed Gourmet Friend relationships (pinner → pinned)
  taste_similarities  — persisted pair scores (batch job / note events),
                        read by discovery
"""
from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from taste_api.database import Base


class GourmetFriendPin(Base):
    __tablename__ = "gourmet_friend_pins"

    # Composite PK: at most one pin row per (pinner, pinned) pair
    pinner_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    pinned_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # list[str] of TasteCategory values, never empty
    categories: Mapped[list] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TasteSimilarity(Base):
    __tablename__ = "taste_similarities"

    # Canonical ordering: user_a_id < user_b_id
    user_a_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_b_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    category: Mapped[str] = mapped_column(String(20), primary_key=True)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    overlap_count: Mapped[int] = mapped_column(Integer, nullable=False)
    last_computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        # "all scores involving user X" is queried from both sides
        Index("idx_tss_user_b", "user_b_id", "category"),
        Index("idx_tss_category_score", "category", "score"),
    )
