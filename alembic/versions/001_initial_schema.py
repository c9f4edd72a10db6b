"""Initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-17 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create api_keys table
    op.create_table(
        'api_keys',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('token_suffix', sa.String(8), nullable=False),
        sa.Column('strategy', sa.String(16), nullable=False),
        sa.Column('owner', sa.String(255), nullable=False),
        sa.Column('plan', sa.String(50), nullable=False, server_default='free'),
        sa.Column('organization_id', sa.String(36), nullable=True),
        sa.Column('rate_limit', sa.Integer(), nullable=False, server_default='1000'),
        sa.Column('expires_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.TIMESTAMP(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash')
    )
    op.create_index('idx_api_keys_owner_created', 'api_keys', ['owner', 'created_at'])

    # Create api_usage table
    op.create_table(
        'api_usage',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('endpoint', sa.String(255), nullable=False),
        sa.Column('method', sa.String(10), nullable=False),
        sa.Column('status_code', sa.Integer(), nullable=False),
        sa.Column('input_tokens', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('output_tokens', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_tokens', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.TIMESTAMP(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['token_hash'], ['api_keys.token_hash'], ondelete='CASCADE')
    )
    op.create_index('idx_api_usage_key_timestamp', 'api_usage', ['token_hash', 'timestamp'])

    # Create rate_limits table
    op.create_table(
        'rate_limits',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('endpoint', sa.String(255), nullable=False),
        sa.Column('window_start', sa.TIMESTAMP(), nullable=False),
        sa.Column('window_size', sa.Integer(), nullable=False, server_default='3600'),
        sa.Column('requests_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('limit_exceeded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash', 'endpoint', 'window_start', name='uq_rate_limits_window')
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key constraints)
    op.drop_table('rate_limits')
    op.drop_table('api_usage')
    op.drop_table('api_keys')
