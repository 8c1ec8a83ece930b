"""
Question Set Models

A question set is the interview plan for a position: four rounds of
questions plus shared metadata. The aggregate row holds the canonical
rounds; the section row holds the per-round document consumed by the
interview runtime, and instruction rows hold candidate-facing text.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Text,
    BigInteger,
    Integer,
    Float,
    Boolean,
    ForeignKey,
    DateTime,
    JSON,
    func,
    Index,
    UniqueConstraint,
)
from database.engine import Base
from datetime import datetime
from typing import Any


class QuestionSet(Base):
    """The question-set aggregate."""

    __tablename__: str = "question_sets"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    organization_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    position_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    interview_platform: Mapped[str] = mapped_column(String(50), default="BROWSER", nullable=False)
    interview_mode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    instruction: Mapped[str | None] = mapped_column(Text, nullable=True)

    # {"general": bool, "position": bool, "coding": bool, "aptitude": bool}
    shuffle: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    # {"general": [...], "position": [...], "coding": [...], "aptitude": [...]}
    rounds: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    total_questions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_duration_minutes: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    general_questions_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    position_questions_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coding_questions_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    aptitude_questions_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_question_set_position_active", "position_id", "is_active"),
    )


class QuestionSection(Base):
    """Per-round section document for a question set (one per set)."""

    __tablename__: str = "question_sections"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    question_set_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("question_sets.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    general_questions: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    position_specific_questions: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    coding_questions: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    aptitude_questions: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    # hh:mm:ss
    round1_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round2_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round3_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)
    round4_time: Mapped[str] = mapped_column(String(12), default="00:00:00", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class InstructionSection(Base):
    """Candidate-facing instruction text attached to a question set."""

    __tablename__: str = "instruction_sections"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    question_set_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("question_sets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    instruction_text: Mapped[str] = mapped_column(Text, nullable=False)
    instruction_type: Mapped[str] = mapped_column(String(30), default="GENERAL", nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "question_set_id", "instruction_type", "order_index", name="uq_instruction_set_type_order"
        ),
    )
