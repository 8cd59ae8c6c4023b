"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'devices',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=True, index=True),
        sa.Column('mac_address', sa.String(length=17), nullable=False, unique=True, index=True),
        sa.Column('device_type', sa.String(length=50), nullable=True, server_default='ESP32'),
        sa.Column('service_uuid', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='not_configured'),
        sa.Column('last_ssid', sa.String(length=255), nullable=True),
        sa.Column('last_configured', sa.DateTime(), nullable=True),
        sa.Column('rssi', sa.Integer, nullable=True),
        sa.Column('is_connected', sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'device_actions',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('device_id', sa.Integer, sa.ForeignKey('devices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('action_type', sa.String(length=100), nullable=False),
        sa.Column('action_data', sa.JSON, nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column('executed_at', sa.DateTime(), nullable=True),
        sa.Column('response_data', sa.JSON, nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
    )

    op.create_table(
        'sensor_data',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('device_id', sa.Integer, sa.ForeignKey('devices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sensor_type', sa.String(length=50), nullable=False),
        sa.Column('sensor_value', sa.Float, nullable=False),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column('metadata', sa.JSON, nullable=True),
    )
    op.create_index('ix_sensor_data_device_type_time', 'sensor_data', ['device_id', 'sensor_type', 'timestamp'])

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('action', sa.String(length=100), nullable=False, index=True),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.Integer, nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('details', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), index=True),
    )


def downgrade():
    op.drop_table('system_logs')
    op.drop_index('ix_sensor_data_device_type_time', table_name='sensor_data')
    op.drop_table('sensor_data')
    op.drop_table('device_actions')
    op.drop_table('devices')
    op.drop_table('users')
