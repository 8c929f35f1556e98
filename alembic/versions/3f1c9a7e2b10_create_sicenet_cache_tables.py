"""create sicenet cache tables

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _row_table_head():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_id', sa.String(length=32), nullable=False),
    ]


def _row_table_tail():
    return [
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['sicenet_profile.student_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    ]


def upgrade() -> None:
    op.create_table(
        'sicenet_profile',
        sa.Column('student_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('program', sa.String(length=256), nullable=False),
        sa.Column('specialization', sa.String(length=256), nullable=False),
        sa.Column('current_term', sa.Integer(), nullable=False),
        sa.Column('accumulated_credits', sa.Integer(), nullable=False),
        sa.Column('current_credits', sa.Integer(), nullable=False),
        sa.Column('min_load_credits', sa.Integer(), nullable=False),
        sa.Column('max_load_credits', sa.Integer(), nullable=False),
        sa.Column('curriculum_code', sa.Integer(), nullable=False),
        sa.Column('education_model_code', sa.Integer(), nullable=False),
        sa.Column('reenrollment_date', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=64), nullable=False),
        sa.Column('enrolled', sa.Boolean(), nullable=False),
        sa.Column('has_debt', sa.Boolean(), nullable=False),
        sa.Column('debt_description', sa.String(length=512), nullable=False),
        sa.Column('photo_url', sa.String(length=512), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('student_id'),
    )

    op.create_table(
        'sicenet_course_load',
        *_row_table_head(),
        sa.Column('clv_oficial', sa.String(length=64), nullable=False),
        sa.Column('materia', sa.String(length=256), nullable=False),
        sa.Column('grupo', sa.String(length=32), nullable=False),
        sa.Column('creditos', sa.Integer(), nullable=False),
        sa.Column('docente', sa.String(length=256), nullable=False),
        sa.Column('observaciones', sa.String(length=512), nullable=False),
        sa.Column('estado_materia', sa.Integer(), nullable=False),
        sa.Column('semestre', sa.Integer(), nullable=False),
        *_row_table_tail(),
    )
    op.create_index('ix_sicenet_course_load_student_id', 'sicenet_course_load', ['student_id'])

    op.create_table(
        'sicenet_transcript',
        *_row_table_head(),
        sa.Column('clv_oficial', sa.String(length=64), nullable=False),
        sa.Column('materia', sa.String(length=256), nullable=False),
        sa.Column('semestre', sa.Integer(), nullable=False),
        sa.Column('creditos', sa.Integer(), nullable=False),
        sa.Column('calificacion', sa.String(length=16), nullable=False),
        sa.Column('acreditacion', sa.String(length=64), nullable=False),
        sa.Column('periodo', sa.String(length=64), nullable=False),
        sa.Column('observaciones', sa.String(length=512), nullable=False),
        *_row_table_tail(),
    )
    op.create_index('ix_sicenet_transcript_student_id', 'sicenet_transcript', ['student_id'])
    op.create_index('ix_sicenet_transcript_student_term', 'sicenet_transcript', ['student_id', 'semestre'])

    op.create_table(
        'sicenet_unit_grade',
        *_row_table_head(),
        sa.Column('clv_oficial', sa.String(length=64), nullable=False),
        sa.Column('materia', sa.String(length=256), nullable=False),
        sa.Column('grupo', sa.String(length=32), nullable=False),
        sa.Column('unidad', sa.Integer(), nullable=False),
        sa.Column('calificacion', sa.Float(), nullable=False),
        sa.Column('fecha', sa.String(length=32), nullable=False),
        sa.Column('observaciones', sa.String(length=512), nullable=False),
        *_row_table_tail(),
    )
    op.create_index('ix_sicenet_unit_grade_student_id', 'sicenet_unit_grade', ['student_id'])
    op.create_index(
        'ix_sicenet_unit_grade_student_course',
        'sicenet_unit_grade',
        ['student_id', 'clv_oficial', 'unidad'],
    )

    op.create_table(
        'sicenet_final_grade',
        *_row_table_head(),
        sa.Column('clv_oficial', sa.String(length=64), nullable=False),
        sa.Column('materia', sa.String(length=256), nullable=False),
        sa.Column('grupo', sa.String(length=32), nullable=False),
        sa.Column('calificacion', sa.String(length=16), nullable=False),
        sa.Column('acreditacion', sa.String(length=64), nullable=False),
        sa.Column('periodo', sa.String(length=64), nullable=False),
        sa.Column('creditos', sa.Integer(), nullable=False),
        sa.Column('observaciones', sa.String(length=512), nullable=False),
        *_row_table_tail(),
    )
    op.create_index('ix_sicenet_final_grade_student_id', 'sicenet_final_grade', ['student_id'])


def downgrade() -> None:
    op.drop_table('sicenet_final_grade')
    op.drop_table('sicenet_unit_grade')
    op.drop_table('sicenet_transcript')
    op.drop_table('sicenet_course_load')
    op.drop_table('sicenet_profile')
