"""Add question set, candidate binding and assessment summary tables

Revision ID: 001_add_question_set_tables
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_add_question_set_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _round_columns(number: int) -> list:
    prefix = f'round{number}'
    return [
        sa.Column(f'{prefix}_assigned', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column(f'{prefix}_completed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column(f'{prefix}_allocated_time', sa.String(length=12), nullable=False, server_default='00:00:00'),
        sa.Column(f'{prefix}_time_taken', sa.String(length=12), nullable=True),
        sa.Column(f'{prefix}_start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column(f'{prefix}_end_time', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create the question-set schema."""
    op.create_table(
        'positions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('organization_id', sa.BigInteger(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('domain', sa.String(length=100), nullable=True),
        sa.Column('min_experience', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_experience', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('mandatory_skills', sa.JSON(), nullable=False),
        sa.Column('optional_skills', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_positions_code'),
    )
    op.create_index('ix_positions_organization_id', 'positions', ['organization_id'])
    op.create_index('idx_position_org_active', 'positions', ['organization_id', 'is_active'])

    op.create_table(
        'candidates',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('organization_id', sa.BigInteger(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column(
            'status',
            sa.Enum('active', 'inactive', 'withdrawn', name='candidate_status'),
            nullable=False,
            server_default='active',
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'email', name='uq_candidate_org_email'),
    )
    op.create_index('ix_candidates_organization_id', 'candidates', ['organization_id'])

    op.create_table(
        'candidate_positions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('candidate_id', sa.BigInteger(), nullable=False),
        sa.Column('position_id', sa.BigInteger(), nullable=False),
        sa.Column('organization_id', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['position_id'], ['positions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('candidate_id', 'position_id', name='uq_candidate_position'),
    )
    op.create_index('idx_candidate_position_org', 'candidate_positions', ['organization_id', 'position_id'])

    op.create_table(
        'question_sets',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('organization_id', sa.BigInteger(), nullable=True),
        sa.Column('position_id', sa.BigInteger(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('interview_platform', sa.String(length=50), nullable=False, server_default='BROWSER'),
        sa.Column('interview_mode', sa.String(length=50), nullable=True),
        sa.Column('instruction', sa.Text(), nullable=True),
        sa.Column('shuffle', sa.JSON(), nullable=False),
        sa.Column('rounds', sa.JSON(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_duration_minutes', sa.Float(), nullable=False, server_default='0'),
        sa.Column('general_questions_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('position_questions_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('coding_questions_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('aptitude_questions_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['position_id'], ['positions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('code', name='uq_question_sets_code'),
    )
    op.create_index('ix_question_sets_organization_id', 'question_sets', ['organization_id'])
    op.create_index('ix_question_sets_position_id', 'question_sets', ['position_id'])
    op.create_index('idx_question_set_position_active', 'question_sets', ['position_id', 'is_active'])

    op.create_table(
        'question_sections',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('question_set_id', sa.BigInteger(), nullable=False),
        sa.Column('general_questions', sa.JSON(), nullable=False),
        sa.Column('position_specific_questions', sa.JSON(), nullable=False),
        sa.Column('coding_questions', sa.JSON(), nullable=False),
        sa.Column('aptitude_questions', sa.JSON(), nullable=False),
        sa.Column('round1_time', sa.String(length=12), nullable=False, server_default='00:00:00'),
        sa.Column('round2_time', sa.String(length=12), nullable=False, server_default='00:00:00'),
        sa.Column('round3_time', sa.String(length=12), nullable=False, server_default='00:00:00'),
        sa.Column('round4_time', sa.String(length=12), nullable=False, server_default='00:00:00'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['question_set_id'], ['question_sets.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('question_set_id', name='uq_question_sections_question_set_id'),
    )

    op.create_table(
        'instruction_sections',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('question_set_id', sa.BigInteger(), nullable=False),
        sa.Column('position_id', sa.BigInteger(), nullable=False),
        sa.Column('instruction_text', sa.Text(), nullable=False),
        sa.Column('instruction_type', sa.String(length=30), nullable=False, server_default='GENERAL'),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['question_set_id'], ['question_sets.id'], ondelete='CASCADE'),
        sa.UniqueConstraint(
            'question_set_id', 'instruction_type', 'order_index', name='uq_instruction_set_type_order'
        ),
    )
    op.create_index('ix_instruction_sections_question_set_id', 'instruction_sections', ['question_set_id'])

    op.create_table(
        'assessment_summaries',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('candidate_id', sa.BigInteger(), nullable=False),
        sa.Column('position_id', sa.BigInteger(), nullable=False),
        sa.Column('question_set_id', sa.BigInteger(), nullable=False),
        sa.Column('total_rounds_assigned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_rounds_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_interview_time_minutes', sa.Integer(), nullable=False, server_default='0'),
        *_round_columns(1),
        *_round_columns(2),
        *_round_columns(3),
        *_round_columns(4),
        sa.Column('is_assessment_completed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_report_generated', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['position_id'], ['positions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_set_id'], ['question_sets.id'], ondelete='CASCADE'),
        sa.UniqueConstraint(
            'candidate_id', 'position_id', 'question_set_id', name='uq_assessment_candidate_position_set'
        ),
    )
    op.create_index('ix_assessment_summaries_candidate_id', 'assessment_summaries', ['candidate_id'])
    op.create_index('ix_assessment_summaries_position_id', 'assessment_summaries', ['position_id'])
    op.create_index('ix_assessment_summaries_question_set_id', 'assessment_summaries', ['question_set_id'])


def downgrade() -> None:
    """Drop the question-set schema."""
    op.drop_table('assessment_summaries')
    op.drop_table('instruction_sections')
    op.drop_table('question_sections')
    op.drop_table('question_sets')
    op.drop_table('candidate_positions')
    op.drop_table('candidates')
    op.drop_table('positions')
    sa.Enum(name='candidate_status').drop(op.get_bind(), checkfirst=True)
