"""Organization model.

Organizations have no dependencies on other target entities. The slug is the
natural key: it is unique, and a migration that hits an existing slug reuses
that row instead of inserting a duplicate.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ledger_migration.core.database import Base


class Organization(Base):
    """Organization model.

    Attributes:
        id: UUID primary key
        name: Display name
        slug: Unique natural key derived from the name
        description: Free-text description
        website_url: Public website
        organization_type: One of the OrganizationType values
        headquarters_location: Free-text location
        support_email: Primary contact email
        is_active: Whether the organization is active
        created_at: Timestamp when the row was created
    """

    __tablename__ = "organizations"

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

    website_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    organization_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="community_group",
        server_default=text("'community_group'"),
    )

    headquarters_location: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    support_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

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
        return f"<Organization(id={self.id!r}, slug={self.slug!r})>"
