from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from .base import Base
from .types import ID_TYPE

if TYPE_CHECKING:
    from .entry import DrawEntry


class User(Base):
    """A customer who can earn draw entries.

    Accounts, authentication and billing live outside the draw engine; this
    table only anchors entry aggregates and winner records.
    """

    def __init__(
        self,
        external_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        """Create a new :class:`User` record.

        Parameters
        ----------
        external_id : str
            Identifier of the user in the shop application.
        email : str, optional
            Contact email, used by notification collaborators.
        display_name : str, optional
            Name shown in winner announcements.
        created_at : datetime, optional
            Explicit creation timestamp.
        updated_at : datetime, optional
            Explicit last update timestamp.
        """

        self.external_id = external_id
        self.email = email
        self.display_name = display_name
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    entries: Mapped[list["DrawEntry"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, external_id='{self.external_id}', "
            f"display_name='{self.display_name}')>"
        )

    @validates("email")
    def _normalize_email(self, _key: str, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None

    @classmethod
    def get_by_external_id(cls, session: Session, external_id: str) -> Optional["User"]:
        """Retrieve a user by their shop-side identifier."""

        return session.scalar(select(cls).where(cls.external_id == external_id))
