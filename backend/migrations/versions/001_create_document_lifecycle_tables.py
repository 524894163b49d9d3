"""Create document lifecycle tables

Revision ID: 001
Revises:
Create Date: 2026-10-16 00:00:00.000000

Tables: documents (live rows and version snapshots), templates,
owner_profiles, document_counters (numbering sequences).
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create documents, templates, owner_profiles and document_counters."""

    op.create_table(
        'documents',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('kind', sa.String(32), nullable=False),
        sa.Column('document_number', sa.Text(), nullable=False),
        sa.Column('template_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='draft'),
        sa.Column('currency', sa.String(3), nullable=False),

        # Document parts (money values stored as decimal strings)
        sa.Column('client', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('project', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('items', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('totals', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('payment', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('signature', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('email_history', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('view_history', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('attachments', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('valid_until', sa.TIMESTAMP(timezone=True), nullable=True),

        # Versioning
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('previous_versions', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('snapshot_of_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),

        # Timestamps
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['snapshot_of_id'], ['documents.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "status IN ('draft', 'sent', 'viewed', 'approved', 'rejected', 'expired', 'paid')",
            name='ck_documents_status'
        ),
        sa.CheckConstraint('version >= 1', name='ck_documents_version_positive'),
    )

    op.create_index('ix_documents_owner_id', 'documents', ['owner_id'])
    op.create_index('ix_documents_owner_status', 'documents', ['owner_id', 'status'])
    op.create_index('ix_documents_snapshot_of_id', 'documents', ['snapshot_of_id'])
    # Numbers are unique per owner among live documents; snapshots repeat their parent's number
    op.create_index(
        'uq_documents_live_number',
        'documents',
        ['owner_id', 'document_number'],
        unique=True,
        postgresql_where=sa.text('snapshot_of_id IS NULL')
    )

    op.create_table(
        'templates',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('kind', sa.String(32), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('sections', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('settings', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tags', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_templates_owner_id', 'templates', ['owner_id'])

    op.create_table(
        'owner_profiles',
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('company', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('branding', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('preferences', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.PrimaryKeyConstraint('owner_id'),
    )

    # One row per numbering sequence: numbering:{owner_id}:{kind}:{year}
    op.create_table(
        'document_counters',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.BigInteger(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade():
    """Drop document lifecycle tables."""
    op.drop_table('document_counters')
    op.drop_table('owner_profiles')
    op.drop_index('ix_templates_owner_id', table_name='templates')
    op.drop_table('templates')
    op.drop_index('uq_documents_live_number', table_name='documents')
    op.drop_index('ix_documents_snapshot_of_id', table_name='documents')
    op.drop_index('ix_documents_owner_status', table_name='documents')
    op.drop_index('ix_documents_owner_id', table_name='documents')
    op.drop_table('documents')
