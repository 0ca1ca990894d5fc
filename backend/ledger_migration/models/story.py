"""Story model with contributor, organization and community references.

Stories are keyed naturally by the Airtable record they were migrated from,
so a re-run finds and reuses the story instead of inserting it again.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_migration.core.database import Base


class StoryStatus(str, Enum):
    """Moderation status of a story."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    FEATURED = "featured"
    ARCHIVED = "archived"


class Story(Base):
    """Story model.

    Attributes:
        id: UUID primary key
        airtable_record_id: Source record id, unique natural key
        title, content: Story text
        category: One of the StoryCategory values
        themes: JSONB array of theme labels
        privacy_level: One of the PrivacyLevel values
        contributor_id: Profile of the contributor, nullable
        organization_id: Linked organization, nullable
        community_id: Owning community, nullable
        status: One of the StoryStatus values
        created_at: Submission time from the source, else migration time
        published_at: Set for approved stories only
    """

    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    airtable_record_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="community",
        index=True,
    )

    themes: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    privacy_level: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="private",
    )

    contributor_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    organization_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    community_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("communities.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    contributor_age_range: Mapped[str | None] = mapped_column(String(50), nullable=True)

    contributor_location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    audio_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    video_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    transcription: Mapped[str | None] = mapped_column(Text, nullable=True)

    sentiment_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    impact_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=StoryStatus.PENDING.value,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Story(id={self.id!r}, airtable_record_id={self.airtable_record_id!r})>"


