from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class ReportedKeyError(Base):
    """One reported key validation error (row-level or file-level)."""

    __tablename__ = "key_validation_errors"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        ForeignKey("key_validation_runs.id"), nullable=False
    )
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Non-positive for file-level errors
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    error_type: Mapped[str] = mapped_column(String(50), nullable=False)
    field_names_json: Mapped[str] = mapped_column(Text, nullable=False)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    params_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped["KeyValidationRun"] = relationship(back_populates="errors")

    __table_args__ = (
        Index("ix_key_validation_errors_run_id", "run_id"),
        Index("ix_key_validation_errors_file", "run_id", "file_type", "file_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReportedKeyError(id={self.id}, type={self.error_type}, "
            f"file={self.file_name}, line={self.line_number})>"
        )
