"""create lease and catalog tables

Revision ID: create_index_tables
Revises:
Create Date: 2026-10-18 12:00:00.000000

Creates the three tables the indexer coordinates through:
- repo_indexing: singleton lease for re-indexing the list of all repos
- repos: one lease row per discovered repo
- repo_tags: the catalog, one row per (repo, tag)
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_index_tables'
down_revision = None
branch_labels = None
depends_on = None

NEGATIVE_INFINITY = sa.text("'-infinity'::timestamptz")


def upgrade() -> None:
    op.create_table(
        'repo_indexing',
        sa.Column('id', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('indexing_began', sa.TIMESTAMP(timezone=True), server_default=NEGATIVE_INFINITY, nullable=False),
        sa.Column('indexing_finished', sa.TIMESTAMP(timezone=True), server_default=NEGATIVE_INFINITY, nullable=False),
        sa.CheckConstraint('id', name='ck_repo_indexing_singleton'),
        sa.PrimaryKeyConstraint('id', name='pk_repo_indexing'),
    )

    # Populate the one and only row
    op.execute("""
        INSERT INTO repo_indexing (id, indexing_began, indexing_finished)
        VALUES (TRUE, '-infinity', '-infinity')
        ON CONFLICT (id) DO NOTHING
    """)

    op.create_table(
        'repos',
        sa.Column('org_repo_name', sa.String(length=200), nullable=False),
        sa.Column('indexing_began', sa.TIMESTAMP(timezone=True), server_default=NEGATIVE_INFINITY, nullable=False),
        sa.Column('indexing_finished', sa.TIMESTAMP(timezone=True), server_default=NEGATIVE_INFINITY, nullable=False),
        sa.PrimaryKeyConstraint('org_repo_name', name='pk_repos'),
    )
    op.create_index('ix_repos_indexing_finished', 'repos', ['indexing_finished'])

    op.create_table(
        'repo_tags',
        sa.Column('org_repo_name', sa.String(length=200), nullable=False),
        sa.Column('tag_name', sa.String(length=255), nullable=False),
        sa.Column('module_path', sa.Text(), nullable=False),
        sa.Column('created', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['org_repo_name'], ['repos.org_repo_name'], name='fk_repo_tags_org_repo_name_repos'
        ),
        sa.PrimaryKeyConstraint('org_repo_name', 'tag_name', name='pk_repo_tags'),
    )
    op.create_index('ix_repo_tags_created', 'repo_tags', ['created'])


def downgrade() -> None:
    op.drop_index('ix_repo_tags_created', table_name='repo_tags')
    op.drop_table('repo_tags')
    op.drop_index('ix_repos_indexing_finished', table_name='repos')
    op.drop_table('repos')
    op.drop_table('repo_indexing')
