from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class KeyValidationRun(Base):
    """Summary of one key validation run of a project submission."""

    __tablename__ = "key_validation_runs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    project: Mapped[str] = mapped_column(String(255), nullable=False)
    # VALID, INVALID, ERROR, CANCELLED
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    dictionary_version: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    errors: Mapped[list["ReportedKeyError"]] = relationship(
        back_populates="run", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_key_validation_runs_project", "project"),
        Index("ix_key_validation_runs_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<KeyValidationRun(id={self.id}, project={self.project}, "
            f"status={self.status}, errors={self.error_count})>"
        )
