"""create crawl ingestion and audit tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None

AUDIT_COUNTER_COLUMNS = (
    "total_pages",
    "pages_missing_title",
    "too_short_title",
    "too_long_title",
    "pages_missing_description",
    "too_short_description",
    "too_long_description",
    "pages_missing_h1",
    "pages_with_multiple_h1s",
    "pages_with_duplicate_h1s",
    "pages_missing_h2",
    "pages_with_multiple_h2s",
    "pages_with_duplicate_h2s",
    "pages_missing_h3",
    "pages_with_multiple_h3s",
    "pages_with_duplicate_h3s",
    "pages_missing_h4",
    "pages_with_multiple_h4s",
    "pages_with_duplicate_h4s",
    "pages_missing_h5",
    "pages_with_multiple_h5s",
    "pages_with_duplicate_h5s",
    "pages_missing_h6",
    "pages_with_multiple_h6s",
    "pages_with_duplicate_h6s",
    "pages_200_response",
    "pages_3xx_response",
    "pages_4xx_response",
    "pages_5xx_response",
    "pages_301_permanent",
    "pages_302_temporary",
    "pages_303_see_other",
    "pages_307_temporary",
    "pages_308_permanent",
    "pages_3xx_other",
    "pages_401_unauthorized",
    "pages_403_forbidden",
    "pages_404_not_found",
    "pages_405_method_not_allowed",
    "pages_408_timeout",
    "pages_410_gone",
    "pages_429_rate_limited",
    "pages_4xx_other",
    "pages_500_internal_error",
    "pages_502_bad_gateway",
    "pages_503_unavailable",
    "pages_504_timeout",
    "pages_5xx_other",
    "pages_missing_canonical",
    "pages_canonicalised",
    "canonical_points_to_redirect",
    "canonical_points_to_404",
    "canonical_points_to_4xx",
    "canonical_points_to_5xx",
    "total_broken_internal_links",
    "total_redirect_internal_links",
    "total_images_missing_alt",
    "total_images_empty_alt",
    "total_images_missing_dimensions",
    "total_images_unoptimized_format",
    "pages_with_images_missing_alt",
    "pages_with_images_empty_alt",
    "pages_with_images_missing_dimensions",
    "pages_with_unoptimized_image_format",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _json() -> postgresql.JSONB:
    return postgresql.JSONB(astext_type=sa.Text())


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clients_is_active", "clients", ["is_active"], unique=False)

    op.create_table(
        "crawls",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("pages_received", sa.Integer(), server_default="0", nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crawls_client_id", "crawls", ["client_id"], unique=False)
    op.create_index("ix_crawls_state", "crawls", ["state"], unique=False)
    op.create_index("ix_crawls_client_id_created_at", "crawls", ["client_id", "created_at"], unique=False)

    op.create_table(
        "urls",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("crawl_id", sa.Integer(), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("status", sa.Integer(), nullable=True),
        sa.Column("original_status", sa.Integer(), nullable=True),
        sa.Column("redirect_target", sa.String(length=2048), nullable=True),
        sa.Column("canonical", sa.String(length=2048), nullable=True),
        sa.Column("canonical_status", sa.Integer(), nullable=True),
        sa.Column("has_canonical_tag", sa.Boolean(), nullable=False),
        sa.Column("is_self_referencing_canonical", sa.Boolean(), nullable=False),
        sa.Column("is_canonicalised", sa.Boolean(), nullable=False),
        sa.Column("meta_title", sa.Text(), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("h1", _json(), nullable=False),
        sa.Column("h2", _json(), nullable=False),
        sa.Column("h3", _json(), nullable=False),
        sa.Column("h4", _json(), nullable=False),
        sa.Column("h5", _json(), nullable=False),
        sa.Column("h6", _json(), nullable=False),
        sa.Column("internal_links", _json(), nullable=False),
        sa.Column("external_links", _json(), nullable=False),
        sa.Column("internal_link_statuses", _json(), nullable=False),
        sa.Column("images", _json(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["crawl_id"], ["crawls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("crawl_id", "url", name="uq_urls_crawl_id_url"),
    )
    op.create_index("ix_urls_client_id", "urls", ["client_id"], unique=False)
    op.create_index("ix_urls_crawl_id", "urls", ["crawl_id"], unique=False)

    op.create_table(
        "audits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("crawl_id", sa.Integer(), nullable=False),
        *[
            sa.Column(name, sa.Integer(), server_default="0", nullable=False)
            for name in AUDIT_COUNTER_COLUMNS
        ],
        sa.Column("score", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["crawl_id"], ["crawls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("crawl_id", name="uq_audits_crawl_id"),
    )
    op.create_index("ix_audits_client_id_created_at", "audits", ["client_id", "created_at"], unique=False)

    op.create_table(
        "audit_issues",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("audit_id", sa.Integer(), nullable=False),
        sa.Column("url_id", sa.Integer(), nullable=False),
        sa.Column("issue_key", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["audit_id"], ["audits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["url_id"], ["urls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("audit_id", "url_id", "issue_key", name="uq_audit_issues_audit_url_key"),
    )
    op.create_index(
        "ix_audit_issues_audit_id_issue_key",
        "audit_issues",
        ["audit_id", "issue_key"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_audit_issues_audit_id_issue_key", table_name="audit_issues")
    op.drop_table("audit_issues")
    op.drop_index("ix_audits_client_id_created_at", table_name="audits")
    op.drop_table("audits")
    op.drop_index("ix_urls_crawl_id", table_name="urls")
    op.drop_index("ix_urls_client_id", table_name="urls")
    op.drop_table("urls")
    op.drop_index("ix_crawls_client_id_created_at", table_name="crawls")
    op.drop_index("ix_crawls_state", table_name="crawls")
    op.drop_index("ix_crawls_client_id", table_name="crawls")
    op.drop_table("crawls")
    op.drop_index("ix_clients_is_active", table_name="clients")
    op.drop_table("clients")
