"""Like model.

Existence of a row is the source of truth for "user liked preset".
The composite primary key enforces at most one like per (user, preset).
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class Like(Base):
    __tablename__ = "likes"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    preset_id: Mapped[str] = mapped_column(ForeignKey("presets.id"), primary_key=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Like {self.user_id} -> {self.preset_id}>"
