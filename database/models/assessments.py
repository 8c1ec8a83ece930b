from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    BigInteger,
    DateTime,
    func,
    Boolean,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from database.engine import Base
from datetime import datetime


class AssessmentSummary(Base):
    """Per-candidate assessment progress for one question set of a position."""

    __tablename__ = "assessment_summaries"

    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, nullable=False, autoincrement=True
    )

    candidate_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_set_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("question_sets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Totals
    total_rounds_assigned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_rounds_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_interview_time_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Round 1: general
    round1_assigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round1_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round1_allocated_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round1_time_taken: Mapped[str | None] = mapped_column(String(12))
    round1_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    round1_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Round 2: position specific
    round2_assigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round2_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round2_allocated_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round2_time_taken: Mapped[str | None] = mapped_column(String(12))
    round2_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    round2_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Round 3: coding
    round3_assigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round3_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round3_allocated_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round3_time_taken: Mapped[str | None] = mapped_column(String(12))
    round3_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    round3_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Round 4: aptitude
    round4_assigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round4_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round4_allocated_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round4_time_taken: Mapped[str | None] = mapped_column(String(12))
    round4_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    round4_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Status
    is_assessment_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_report_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "candidate_id", "position_id", "question_set_id", name="uq_assessment_candidate_position_set"
        ),
    )
