"""create brands, competitor accounts/videos and scrape jobs

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "brands",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("last_scraped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "competitor_accounts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("brand_id", sa.String(length=36), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False),
        sa.Column("handle", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("brand_id", "handle", name="uq_competitor_accounts_brand_handle"),
    )
    op.create_index("ix_competitor_accounts_brand_id", "competitor_accounts", ["brand_id"])

    op.create_table(
        "competitor_videos",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column(
            "account_id",
            sa.String(length=36),
            sa.ForeignKey("competitor_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("caption", sa.Text(), server_default="", nullable=False),
        sa.Column("hashtags", sa.JSON(), nullable=False),
        sa.Column("views", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("likes", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("comments", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("shares", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("saves", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("hook_type", sa.String(length=32), nullable=True),
        sa.Column("content_format", sa.String(length=32), nullable=True),
        sa.Column("emotional_trigger", sa.String(length=32), nullable=True),
        sa.Column("virality_score", sa.Float(), server_default="0", nullable=False),
        sa.Column("discovered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metrics_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_competitor_videos_account_id", "competitor_videos", ["account_id"])
    op.create_index("ix_competitor_videos_discovered_at", "competitor_videos", ["discovered_at"])

    op.create_table(
        "scrape_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("brand_id", sa.String(length=36), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scraper_type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("provider_run_id", sa.String(length=64), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("accounts_processed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("videos_found", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_scrape_jobs_brand_status", "scrape_jobs", ["brand_id", "status"])
    # single-flight: one pending/running job per brand
    op.create_index(
        "uq_scrape_jobs_brand_active",
        "scrape_jobs",
        ["brand_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'running')"),
    )


def downgrade() -> None:
    op.drop_index("uq_scrape_jobs_brand_active", table_name="scrape_jobs")
    op.drop_index("ix_scrape_jobs_brand_status", table_name="scrape_jobs")
    op.drop_table("scrape_jobs")
    op.drop_index("ix_competitor_videos_discovered_at", table_name="competitor_videos")
    op.drop_index("ix_competitor_videos_account_id", table_name="competitor_videos")
    op.drop_table("competitor_videos")
    op.drop_index("ix_competitor_accounts_brand_id", table_name="competitor_accounts")
    op.drop_table("competitor_accounts")
    op.drop_table("brands")
