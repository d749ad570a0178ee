"""Create quotes and company_settings tables

Revision ID: 001_quotes_company_settings
Revises:
Create Date: 2026-10-18

Note: Using IF NOT EXISTS pattern so databases that already hold the
tables (created by init_db) can be stamped forward safely.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_quotes_company_settings'
down_revision = None
branch_labels = None
depends_on = None


def table_exists(conn, table_name):
    """Check if a table exists in the database."""
    return sa.inspect(conn).has_table(table_name)


def upgrade():
    """Create quotes and company_settings tables if they don't exist."""
    conn = op.get_bind()

    if not table_exists(conn, 'quotes'):
        op.create_table(
            'quotes',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('number', sa.String(64), nullable=False),
            sa.Column('date', sa.String(40), nullable=False),
            sa.Column('company', sa.JSON(), nullable=False),
            sa.Column('client', sa.JSON(), nullable=False),
            sa.Column('items', sa.JSON(), nullable=False),
            sa.Column('total', sa.Float(), nullable=False, server_default='0'),
            sa.Column('resend_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_resent_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index('ix_quotes_number', 'quotes', ['number'], unique=True)
        op.create_index('idx_quotes_date', 'quotes', ['date'])

    if not table_exists(conn, 'company_settings'):
        op.create_table(
            'company_settings',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('name', sa.String(255)),
            sa.Column('cnpj', sa.String(32)),
            sa.Column('phone', sa.String(32)),
            sa.Column('whatsapp', sa.String(32)),
            sa.Column('email', sa.String(255)),
            sa.Column('address', sa.Text()),
            sa.Column('pix', sa.String(255)),
            sa.Column('logo_url', sa.Text()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )


def downgrade():
    op.drop_table('company_settings')
    op.drop_index('idx_quotes_date', table_name='quotes')
    op.drop_index('ix_quotes_number', table_name='quotes')
    op.drop_table('quotes')
