"""Tag models.

Tags are category labels ("frontend", "testing", ...) attached to packages.
The association set for one package is replaced as a whole
(delete-then-insert in one transaction).
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)  # e.g. "build-tool"
    name: Mapped[str] = mapped_column(String(100))  # e.g. "Build Tool"
    color: Mapped[str] = mapped_column(String(7), default="#6B7280")  # hex, e.g. "#3B82F6"

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tag {self.id}>"


class PackageTag(Base):
    __tablename__ = "package_tags"

    package_id: Mapped[str] = mapped_column(ForeignKey("packages.id"), primary_key=True)
    tag_id: Mapped[str] = mapped_column(ForeignKey("tags.id"), primary_key=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
