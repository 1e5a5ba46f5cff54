"""SQLAlchemy models mirroring the JSON registry structure."""
from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from .session import Base


class Hook(Base):
    __tablename__ = "hooks"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    public_id = Column("id", String(32), unique=True, nullable=False)
    slug = Column(String(64), unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_hit = Column(DateTime(timezone=True), nullable=True)
    hits = Column(Integer, nullable=False, default=0)


class HookLog(Base):
    __tablename__ = "hook_logs"
    __table_args__ = (Index("ix_hook_logs_hook_seq", "hook_pk", "seq"),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    hook_pk = Column(Integer, ForeignKey("hooks.pk", ondelete="CASCADE"), nullable=False)
    entry_id = Column(String(32), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    method = Column(String(16), nullable=True)
    headers = Column(JSON, nullable=True)
    query = Column(JSON, nullable=True)
    ip = Column(String(64), nullable=True)
    body = Column(Text, nullable=False, default="")
    body_preview = Column(Text, nullable=False, default="")
    is_json = Column(Boolean, nullable=False, default=False)
    formatted = Column(Text, nullable=True)
    byte_size = Column(Integer, nullable=False, default=0)
