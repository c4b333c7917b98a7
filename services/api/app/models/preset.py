"""Preset model.

A preset is a named, ordered comparison of npm packages.

Example id: "react-vs-vue-lz3k9x1a" (slugified title + base-36 ms timestamp)

`likes_count` is a denormalized projection of the `likes` table and is only
ever changed in the same transaction as a like row insert/delete.
"""

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class Preset(Base):
    """Named comparison of 2-10 packages."""

    __tablename__ = "presets"
    __table_args__ = (CheckConstraint("likes_count >= 0", name="ck_presets_likes_count_non_negative"),)

    id: Mapped[str] = mapped_column(String(200), primary_key=True)

    title: Mapped[str] = mapped_column(String(100))

    # Ordered, lower-cased, deduplicated package names (JSON array)
    packages: Mapped[list[str]] = mapped_column(JSON)

    npmtrends_url: Mapped[str] = mapped_column(Text)

    owner_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)

    likes_count: Mapped[int] = mapped_column(Integer, default=0, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def __repr__(self) -> str:
        return f"<Preset {self.id} likes={self.likes_count}>"


class PresetPackage(Base):
    """Lookup row: which presets compare a given package.

    package_name is intentionally not a foreign key: presets may reference
    packages that have not been hydrated into the catalog yet.
    """

    __tablename__ = "preset_packages"

    preset_id: Mapped[str] = mapped_column(ForeignKey("presets.id"), primary_key=True)
    package_name: Mapped[str] = mapped_column(String(214), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
