"""Community model with optional organization reference."""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_migration.core.database import Base


class Community(Base):
    """Community model.

    Attributes:
        id: UUID primary key
        name: Display name
        slug: Unique natural key derived from the name
        description: Free-text description
        geographic_level: e.g. 'city', 'region', 'national'
        location_data: JSONB, ``{"location": "..."}`` or empty
        organization_id: Owning organization, nullable
        is_active: Whether the community is active
        created_at: Timestamp when the row was created
    """

    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    geographic_level: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="city",
        server_default=text("'city'"),
    )

    location_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )

    organization_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    def __repr__(self) -> str:
        return f"<Community(id={self.id!r}, slug={self.slug!r})>"
