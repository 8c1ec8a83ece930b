"""Position model: the job opening a question set is written for."""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, BigInteger, Integer, Boolean, DateTime, JSON, func, Index
from database.engine import Base
from datetime import datetime
from typing import Any


class Position(Base):
    """
    An open position within an organization.

    Experience bounds and skills feed the AI question generator.
    """

    __tablename__: str = "positions"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(100), nullable=True)

    min_experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mandatory_skills: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    optional_skills: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_position_org_active", "organization_id", "is_active"),
    )
