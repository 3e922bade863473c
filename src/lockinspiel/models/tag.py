# src/lockinspiel/models/tag.py
"""SQLAlchemy model for user-defined tags."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lockinspiel.db.base import Base


class Tag(Base):
    """A label that can be attached to timesheet groups."""

    __tablename__ = "tag"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tag: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
