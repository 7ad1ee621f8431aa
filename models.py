"""
資料庫模型

- Event：活動品牌資訊（標題、背景），由外部管理介面建立，抽獎核心只讀
- DrawSessionRecord：抽獎 Session 的 JSON 快照（session_store=database 時使用）
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, JSON, String

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    __tablename__ = "events"

    id = Column(String(6), primary_key=True)
    title = Column(String(200), nullable=False)
    background_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class DrawSessionRecord(Base):
    __tablename__ = "draw_sessions"

    session_id = Column(String(64), primary_key=True)
    state = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
