"""Procurement documents: organizations, cases, running numbers, template packs, documents, audit

1. Creates 'organizations' as the tenant root
2. Creates 'procurement_cases' (read by the document pipeline)
3. Creates 'document_running_numbers' with one counter per (org, fiscal year, type)
4. Creates 'template_packs' for per-organization activation overrides
5. Creates 'documents' (N PDF rows + 1 ZIP row per generation)
6. Creates 'audit_logs'

Revision ID: pd001_procurement_documents
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'pd001_procurement_documents'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # STEP 1: Tenancy
    # ==========================================================================
    op.create_table('organizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_organizations_code', 'organizations', ['code'], unique=True)
    op.create_index('ix_organizations_is_active', 'organizations', ['is_active'])

    # ==========================================================================
    # STEP 2: Cases
    # ==========================================================================
    op.create_table('procurement_cases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('case_type', sa.String(length=16), nullable=False),
        sa.Column('subtype', sa.String(length=32), nullable=True),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('is_backdated', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('backdate_reason', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_procurement_cases_org_id'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_procurement_cases_org_id', 'procurement_cases', ['org_id'])
    op.create_index('ix_procurement_cases_case_type', 'procurement_cases', ['case_type'])
    op.create_index('ix_procurement_cases_org_fiscal_year', 'procurement_cases', ['org_id', 'fiscal_year'])

    # ==========================================================================
    # STEP 3: Running number counters
    # ==========================================================================
    # The unique constraint serializes first-insert races between allocators
    op.create_table('document_running_numbers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_doc_running_numbers_org_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'fiscal_year', 'document_type', name='uq_doc_running_numbers_org_year_type'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_document_running_numbers_org_id', 'document_running_numbers', ['org_id'])

    # ==========================================================================
    # STEP 4: Template pack activation
    # ==========================================================================
    op.create_table('template_packs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('case_type', sa.String(length=16), nullable=True),
        sa.Column('subtype', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_template_packs_org_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'pack_id', name='uq_template_packs_org_pack'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_template_packs_org_id', 'template_packs', ['org_id'])

    # ==========================================================================
    # STEP 5: Documents
    # ==========================================================================
    op.create_table('documents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('case_id', sa.Integer(), nullable=False),
        sa.Column('template_pack_id', sa.String(length=128), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('file_type', sa.String(length=8), nullable=False, server_default='PDF'),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=1024), nullable=False),
        sa.Column('running_number', sa.String(length=64), nullable=False),
        sa.Column('manual_number', sa.String(length=64), nullable=True),
        sa.Column('document_date', sa.Date(), nullable=True),
        sa.Column('generated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_documents_org_id'),
        sa.ForeignKeyConstraint(['case_id'], ['procurement_cases.id'], name='fk_documents_case_id'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_documents_org_id', 'documents', ['org_id'])
    op.create_index('ix_documents_case_id', 'documents', ['case_id'])
    op.create_index('ix_documents_org_case_generated', 'documents', ['org_id', 'case_id', 'generated_at'])
    op.create_index('ix_documents_running_number', 'documents', ['running_number'])

    # ==========================================================================
    # STEP 6: Audit
    # ==========================================================================
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('case_id', sa.Integer(), nullable=True),
        sa.Column('before', sa.JSON(), nullable=True),
        sa.Column('after', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_audit_logs_org_id'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_audit_logs_org_id', 'audit_logs', ['org_id'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_case_id', 'audit_logs', ['case_id'])
    op.create_index('ix_audit_logs_org_created', 'audit_logs', ['org_id', 'created_at'])
    op.create_index('ix_audit_logs_org_entity', 'audit_logs', ['org_id', 'entity'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('documents')
    op.drop_table('template_packs')
    op.drop_table('document_running_numbers')
    op.drop_table('procurement_cases')
    op.drop_table('organizations')
