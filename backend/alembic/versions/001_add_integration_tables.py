"""Add integrations, secrets and contexts tables

Revision ID: 001_integration_core
Revises:
Create Date: 2026-10-18

Adds tables for:
- integrations: tracker / document-provider connections per project
- secrets: sealed credentials, one row per (project, provider)
- contexts: uploaded documents indexed in the project's vector store

Also adds projects.openai_vector_store_id. The projects table itself is
owned by the project CRUD layer; it is created here only when missing.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic
revision = '001_integration_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    # ========================
    # Table: projects (partial)
    # ========================
    if not inspector.has_table('projects'):
        op.create_table(
            'projects',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('workspace_id', sa.String(36), nullable=True),
            sa.Column('name', sa.String(200), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('openai_vector_store_id', sa.String(100), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index('ix_projects_workspace_id', 'projects', ['workspace_id'])
    else:
        columns = {c['name'] for c in inspector.get_columns('projects')}
        if 'openai_vector_store_id' not in columns:
            op.add_column('projects', sa.Column('openai_vector_store_id', sa.String(100), nullable=True))

    # ========================
    # Table: integrations
    # ========================
    op.create_table(
        'integrations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),  # jira, azure_devops, confluence, sharepoint
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('credentials_ref', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_integrations_project_id', 'integrations', ['project_id'])

    # ========================
    # Table: secrets
    # ========================
    op.create_table(
        'secrets',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('encrypted_value', sa.Text(), nullable=False),  # v1:iv:data:tag, or JSON in plaintext mode
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('project_id', 'provider', name='uq_secrets_project_provider'),
    )
    op.create_index('ix_secrets_project_id', 'secrets', ['project_id'])

    # ========================
    # Table: contexts
    # ========================
    op.create_table(
        'contexts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_type', sa.String(50), nullable=False, server_default='upload'),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(100), nullable=True),
        sa.Column('provider', sa.String(50), nullable=False, server_default='openai'),
        sa.Column('openai_file_id', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='uploading'),
        sa.Column('chunk_count', sa.Integer(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_contexts_project_id', 'contexts', ['project_id'])
    op.create_index('ix_contexts_project_status', 'contexts', ['project_id', 'status'])


def downgrade():
    op.drop_index('ix_contexts_project_status', table_name='contexts')
    op.drop_index('ix_contexts_project_id', table_name='contexts')
    op.drop_table('contexts')
    op.drop_index('ix_secrets_project_id', table_name='secrets')
    op.drop_table('secrets')
    op.drop_index('ix_integrations_project_id', table_name='integrations')
    op.drop_table('integrations')
    # projects belongs to the CRUD layer; only the column added here is removed
    op.drop_column('projects', 'openai_vector_store_id')
