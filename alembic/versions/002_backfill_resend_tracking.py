"""Move resend tracking out of the company snapshot

Revision ID: 002_backfill_resend_tracking
Revises: 001_quotes_company_settings
Create Date: 2026-10-18

Quotes saved by the first UI kept {resendCount, lastResentAt} inside
company._meta. Copy them into the typed columns and drop the key.
"""
from datetime import datetime

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_backfill_resend_tracking'
down_revision = '001_quotes_company_settings'
branch_labels = None
depends_on = None

quotes = sa.table(
    'quotes',
    sa.column('id', sa.Integer()),
    sa.column('company', sa.JSON()),
    sa.column('resend_count', sa.Integer()),
    sa.column('last_resent_at', sa.DateTime(timezone=True)),
)


def _parse(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def _count(value):
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def lift_meta(company):
    """Split company._meta off the snapshot; returns (company, values) or None."""
    if not isinstance(company, dict) or '_meta' not in company:
        return None
    company = dict(company)
    meta = company.pop('_meta')
    if not isinstance(meta, dict):
        meta = {}
    return company, {
        'resend_count': _count(meta.get('resendCount')),
        'last_resent_at': _parse(meta.get('lastResentAt')),
    }


def upgrade():
    conn = op.get_bind()
    rows = conn.execute(sa.select(quotes.c.id, quotes.c.company)).fetchall()
    for row_id, company in rows:
        lifted = lift_meta(company)
        if lifted is None:
            continue
        company, values = lifted
        conn.execute(
            quotes.update()
            .where(quotes.c.id == row_id)
            .values(company=company, **values)
        )


def downgrade():
    # Typed columns stay authoritative; nothing to restore.
    pass
