from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from repodash.models.base import Base


class Repository(Base):
    __tablename__ = "repositories"

    # Upstream (GitHub) repository id, kept as text so it round-trips unchanged.
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    default_branch: Mapped[str | None] = mapped_column(Text, nullable=True)
    private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[str | None] = mapped_column(Text, nullable=True)

    auto_review: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
