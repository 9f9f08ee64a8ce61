"""add_plc_alarms

Revision ID: b7d2f5a8c3e1
Revises: a1c4e7b2d9f0
Create Date: 2026-03-02 12:00:00.000000

PLC faults and alarms:
- data_points.point_name / plc_alarm_level, backfilled from point names
- plc_alarms table, at most one open alarm (inactive_time = 0) per point
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from services.alarm_levels import classify_alarm_level


revision: str = 'b7d2f5a8c3e1'
down_revision: Union[str, None] = 'a1c4e7b2d9f0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- data_points: alarm configuration ---
    op.add_column('data_points', sa.Column('point_name', sa.String(250), nullable=True))
    op.add_column('data_points', sa.Column('plc_alarm_level', sa.SmallInteger(),
                                           server_default='0', nullable=False))

    data_points = sa.table(
        'data_points',
        sa.column('id', sa.Integer()),
        sa.column('name', sa.String()),
        sa.column('point_name', sa.String()),
        sa.column('plc_alarm_level', sa.SmallInteger()),
    )
    conn = op.get_bind()
    rows = conn.execute(sa.select(data_points.c.id, data_points.c.name)).all()
    for point_id, name in rows:
        conn.execute(
            data_points.update()
            .where(data_points.c.id == point_id)
            .values(point_name=name, plc_alarm_level=classify_alarm_level(name))
        )

    # --- plc_alarms ---
    op.create_table(
        'plc_alarms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('data_point_id', sa.Integer(),
                  sa.ForeignKey('data_points.id', ondelete='CASCADE'), nullable=False),
        sa.Column('data_point_xid', sa.String(50), nullable=True),
        sa.Column('data_point_name', sa.String(250), nullable=True),
        sa.Column('data_point_level', sa.SmallInteger(), nullable=True),
        sa.Column('active_time', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('inactive_time', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('acknowledge_time', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('level', sa.SmallInteger(), nullable=True),
    )
    op.create_index(
        'uq_plc_alarms_open_point', 'plc_alarms', ['data_point_id'],
        unique=True,
        postgresql_where=sa.text('inactive_time = 0'),
        sqlite_where=sa.text('inactive_time = 0'),
    )
    op.create_index('ix_plc_alarms_point_inactive', 'plc_alarms', ['data_point_id', 'inactive_time'])
    op.create_index('ix_plc_alarms_inactive', 'plc_alarms', ['inactive_time'])


def downgrade() -> None:
    op.drop_index('ix_plc_alarms_inactive', table_name='plc_alarms')
    op.drop_index('ix_plc_alarms_point_inactive', table_name='plc_alarms')
    op.drop_index('uq_plc_alarms_open_point', table_name='plc_alarms')
    op.drop_table('plc_alarms')
    op.drop_column('data_points', 'plc_alarm_level')
    op.drop_column('data_points', 'point_name')
