from __future__ import annotations

from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, String, Text

from .db import Base


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="OPEN", index=True)
    priority = Column(String(20), nullable=False, default="NORMAL", index=True)
    created_at = Column(BigInteger, nullable=False)
    last_touched_at = Column(BigInteger, nullable=False, index=True)
    archived_at = Column(BigInteger, nullable=True)
    delete_after_at = Column(BigInteger, nullable=True)
    pinned_summary = Column(Text, nullable=False, default="")


class TimelineEntryModel(Base):
    __tablename__ = "timeline_entries"
    __table_args__ = (
        Index("ix_timeline_entries_task_order", "task_id", "sort_order"),
    )

    id = Column(String(36), primary_key=True)
    task_id = Column(
        String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False, index=True)
    sort_order = Column(Integer, nullable=False, default=0)


class GamificationModel(Base):
    __tablename__ = "gamification"

    key = Column(String(50), primary_key=True)
    xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    streak = Column(Integer, nullable=False, default=0)
    last_active_date = Column(BigInteger, nullable=False, default=0)
