"""User model.

Users are identified by the opaque id handed over by the identity provider.
Rows are created lazily on the first authenticated write.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class User(Base):
    """Preset author / liker."""

    __tablename__ = "users"

    # Opaque identity-provider id (e.g. "github:12345")
    id: Mapped[str] = mapped_column(String(200), primary_key=True)

    name: Mapped[str | None] = mapped_column(String(200))
    avatar_url: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<User {self.id}>"
