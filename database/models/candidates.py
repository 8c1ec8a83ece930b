"""
Candidate Models

Candidates belong to an organization and are bound to one or more
positions. Binding a candidate to a position is what makes them a
target of the assessment fan-out when the position's question set is saved.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    BigInteger,
    ForeignKey,
    DateTime,
    func,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Candidate Enums ===================== #
class CandidateStatus(str, PyEnum):
    """Status of a candidate profile."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    WITHDRAWN = "withdrawn"


# ==================== Candidate Model ===================== #
class Candidate(Base):
    """A job seeker known to an organization."""

    __tablename__: str = "candidates"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[CandidateStatus] = mapped_column(
        SQLEnum(CandidateStatus, name="candidate_status", values_callable=lambda e: [m.value for m in e]),
        default=CandidateStatus.ACTIVE,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_candidate_org_email"),
    )


class CandidatePosition(Base):
    """Binding of a candidate to a position they are being assessed for."""

    __tablename__: str = "candidate_positions"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False
    )
    position_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("positions.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("candidate_id", "position_id", name="uq_candidate_position"),
        Index("idx_candidate_position_org", "organization_id", "position_id"),
    )
