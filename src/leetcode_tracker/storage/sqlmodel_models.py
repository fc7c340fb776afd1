"""SQLModel ORM tables for tracker state storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Text
from sqlmodel import Field, SQLModel

DEFAULT_USER_ID = "default_user"


class AppUser(SQLModel, table=True):
    __tablename__ = "users"  # type: ignore[bad-override]

    user_id: str = Field(primary_key=True, index=True)
    display_name: str = Field(index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class StateDocument(SQLModel, table=True):
    """One JSON state document per (user, document id)."""

    __tablename__ = "state_documents"  # type: ignore[bad-override]

    user_id: str = Field(
        default=DEFAULT_USER_ID,
        sa_column=Column(
            ForeignKey("users.user_id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
            server_default=DEFAULT_USER_ID,
        ),
    )
    doc_id: str = Field(primary_key=True)
    body: str = Field(sa_column=Column(Text, nullable=False))
    version: int = 0
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
