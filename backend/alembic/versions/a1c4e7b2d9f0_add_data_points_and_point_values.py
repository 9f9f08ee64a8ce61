"""add_data_points_and_point_values

Revision ID: a1c4e7b2d9f0
Revises:
Create Date: 2026-03-02 10:00:00.000000

Point registry and the append-only point value samples.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = 'a1c4e7b2d9f0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'data_points',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('xid', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(250), nullable=False),
        sa.Column('data_type', sa.String(45), nullable=True),
    )

    op.create_table(
        'point_values',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('data_point_id', sa.Integer(),
                  sa.ForeignKey('data_points.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ts', sa.BigInteger(), nullable=False),
        sa.Column('point_value', sa.Float(), nullable=False),
    )
    op.create_index('ix_point_values_point_ts', 'point_values', ['data_point_id', 'ts'])


def downgrade() -> None:
    op.drop_index('ix_point_values_point_ts', table_name='point_values')
    op.drop_table('point_values')
    op.drop_table('data_points')
