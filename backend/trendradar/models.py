from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


def _uuid() -> str:
    return str(uuid.uuid4())


class ScrapeJobStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


NON_TERMINAL_STATUSES = (ScrapeJobStatus.pending.value, ScrapeJobStatus.running.value)
TERMINAL_STATUSES = (ScrapeJobStatus.completed.value, ScrapeJobStatus.failed.value)


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    last_scraped_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    accounts: Mapped[list["CompetitorAccount"]] = relationship(
        back_populates="brand", cascade="all, delete-orphan", passive_deletes=True
    )
    scrape_jobs: Mapped[list["ScrapeJob"]] = relationship(
        back_populates="brand", cascade="all, delete-orphan", passive_deletes=True
    )


class CompetitorAccount(Base):
    __tablename__ = "competitor_accounts"
    __table_args__ = (sa.UniqueConstraint("brand_id", "handle", name="uq_competitor_accounts_brand_handle"),)

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=_uuid)
    brand_id: Mapped[str] = mapped_column(
        sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
    )
    handle: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    brand: Mapped[Brand] = relationship(back_populates="accounts")
    videos: Mapped[list["CompetitorVideo"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )


class CompetitorVideo(Base):
    __tablename__ = "competitor_videos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Idempotency key across the whole system, not just per account.
    external_id: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    account_id: Mapped[str] = mapped_column(
        sa.ForeignKey("competitor_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    caption: Mapped[str] = mapped_column(sa.Text(), nullable=False, default="", server_default="")
    hashtags: Mapped[list[str]] = mapped_column(sa.JSON(), nullable=False, default=list)
    views: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    likes: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    comments: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    shares: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    saves: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    hook_type: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    content_format: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    emotional_trigger: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    virality_score: Mapped[float] = mapped_column(sa.Float(), nullable=False, default=0.0, server_default="0")
    discovered_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, index=True)
    metrics_updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    account: Mapped[CompetitorAccount] = relationship(back_populates="videos")


class ScrapeJob(Base):
    __tablename__ = "scrape_jobs"
    __table_args__ = (
        sa.Index("ix_scrape_jobs_brand_status", "brand_id", "status"),
        # At most one pending/running job per brand.
        sa.Index(
            "uq_scrape_jobs_brand_active",
            "brand_id",
            unique=True,
            postgresql_where=sa.text("status IN ('pending', 'running')"),
            sqlite_where=sa.text("status IN ('pending', 'running')"),
        ),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=_uuid)
    brand_id: Mapped[str] = mapped_column(sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    scraper_type: Mapped[str] = mapped_column(sa.String(64), nullable=False, default="competitor")
    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=ScrapeJobStatus.pending.value)
    provider_run_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    started_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    accounts_processed: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    videos_found: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    brand: Mapped[Brand] = relationship(back_populates="scrape_jobs")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
