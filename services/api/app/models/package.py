"""Package model.

Represents an npm package (natural key = package name, e.g. "react",
"@types/node"). Rows come from the ingestion job or from lazy hydration
and are never deleted by the API.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class Package(Base):
    """npm package metadata."""

    __tablename__ = "packages"

    # npm names are at most 214 characters
    id: Mapped[str] = mapped_column(String(214), primary_key=True)

    description: Mapped[str | None] = mapped_column(Text)
    weekly_downloads: Mapped[int] = mapped_column(BigInteger, default=0, index=True)
    repository: Mapped[str | None] = mapped_column(Text)
    homepage: Mapped[str | None] = mapped_column(Text)

    # Last refresh from the registry / ingestion
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Package {self.id}>"
