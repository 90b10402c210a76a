"""baseline schema

Revision ID: a1c4e9d27b10
Revises:
Create Date: 2026-09-14 10:02:11.418233

Entity tables (per kind plus legacy firms/funds) and the news intelligence
tables. Databases created earlier through create_all() (see app/main.py
lifespan) should be stamped with:

    alembic stamp head
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c4e9d27b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENTITY_TABLES = (
    ("entities_gp", "gp_name", "firm_type"),
    ("entities_lp", "lp_name", "firm_type"),
    ("entities_fund", "fund_name", "fund_type"),
    ("entities_portfolio_company", "company_name", "company_type"),
    ("entities_service_provider", "provider_name", "provider_type"),
)


def _owned_columns():
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("org_id", sa.String(36), nullable=False),
    ]


def upgrade() -> None:
    for table, name_column, type_column in ENTITY_TABLES:
        op.create_table(
            table,
            *_owned_columns(),
            sa.Column(name_column, sa.String(500), nullable=False),
            sa.Column(type_column, sa.String(100)),
            sa.Column("created_by", sa.String(36)),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(f"ix_{table}_org_id", table, ["org_id"])
        op.create_index(f"ix_{table}_org_name", table, ["org_id", name_column])

    op.create_table(
        "entities_contact",
        *_owned_columns(),
        sa.Column("first_name", sa.String(200)),
        sa.Column("last_name", sa.String(200)),
        sa.Column("company_name", sa.String(500)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_entities_contact_org_id", "entities_contact", ["org_id"])
    op.create_index(
        "ix_entities_contact_org_last_first", "entities_contact", ["org_id", "last_name", "first_name"]
    )

    for table in ("firms", "funds"):
        op.create_table(
            table,
            *_owned_columns(),
            sa.Column("name", sa.String(500)),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(f"ix_{table}_org_id", table, ["org_id"])

    op.create_table(
        "label_projects",
        *_owned_columns(),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("label_type", sa.String(50)),
        sa.Column("project_category", sa.String(50)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_label_projects_org_id", "label_projects", ["org_id"])

    op.create_table(
        "annotation_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("label_projects.id"), nullable=False),
        sa.Column("assigned_to", sa.String(36)),
        sa.Column("status", sa.String(50)),
        sa.Column("metadata", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_annotation_tasks_project_id", "annotation_tasks", ["project_id"])

    op.create_table(
        "news",
        *_owned_columns(),
        sa.Column("headline", sa.Text()),
        sa.Column("source_name", sa.String(500)),
        sa.Column("publish_date", sa.String(50)),
        sa.Column("url", sa.Text()),
        sa.Column("raw_text", sa.Text()),
        sa.Column("cleaned_text", sa.Text()),
        sa.Column("processing_status", sa.String(20), nullable=False),
        sa.Column("processing_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text()),
        sa.Column("next_retry_at", sa.DateTime()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_news_org_id", "news", ["org_id"])
    op.create_index("ix_news_processing_status", "news", ["processing_status"])
    op.create_index("ix_news_org_url", "news", ["org_id", "url"])
    op.create_index("ix_news_status_created", "news", ["processing_status", "created_at"])

    op.create_table(
        "ai_outputs",
        *_owned_columns(),
        sa.Column("source_type", sa.String(50), nullable=False),
        sa.Column("source_id", sa.String(36), nullable=False),
        sa.Column("output_json", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("model", sa.String(100)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_ai_outputs_org_id", "ai_outputs", ["org_id"])
    op.create_index("ix_ai_outputs_source_id", "ai_outputs", ["source_id"])

    op.create_table(
        "news_entity_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("news_id", sa.String(36), sa.ForeignKey("news.id", ondelete="CASCADE"), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("match_type", sa.String(20)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("news_id", "entity_type", "entity_id", name="uq_news_entity_link"),
    )
    op.create_index("ix_news_entity_links_news_id", "news_entity_links", ["news_id"])
    op.create_index("ix_news_entity_links_org_id", "news_entity_links", ["org_id"])
    op.create_index("ix_news_entity_links_entity", "news_entity_links", ["entity_type", "entity_id"])


def downgrade() -> None:
    for table in (
        "news_entity_links",
        "ai_outputs",
        "news",
        "annotation_tasks",
        "label_projects",
        "funds",
        "firms",
        "entities_contact",
        "entities_service_provider",
        "entities_portfolio_company",
        "entities_fund",
        "entities_lp",
        "entities_gp",
    ):
        op.drop_table(table)
