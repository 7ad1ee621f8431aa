"""
Event Manager：管理活動品牌資訊（標題、背景）

抽獎核心只讀取這些資料，從不修改；
活動被刪除時，由 API 層另外丟棄對應的抽獎 Session
"""
from sqlalchemy.orm import Session
from typing import Optional
import logging

from models import Event
from core.exceptions import EventNotFound
from services.naming_service import generate_event_code
from database import transactional

logger = logging.getLogger(__name__)


class EventManager:
    """活動資料管理器"""

    @staticmethod
    @transactional
    def create_event(db: Session, title: str, background_url: Optional[str] = None) -> Event:
        """
        建立新活動

        流程：
        1. 生成唯一的活動代碼（同時作為抽獎 Session ID）
        2. 建立 Event

        注意：
            - 使用 @transactional，自動處理 commit/rollback
            - 代碼碰撞機率極低（26^6），但仍會檢查唯一性
        """
        # 1. 生成唯一的活動代碼
        code = generate_event_code()
        while db.get(Event, code):
            code = generate_event_code()
            logger.warning(f"Event code collision detected, regenerating: {code}")

        # 2. 建立 Event
        event = Event(id=code, title=title, background_url=background_url)
        db.add(event)
        db.flush()

        logger.info(f"Created event {code} ({title})")
        return event

    @staticmethod
    def get_event(db: Session, event_id: str) -> Event:
        """
        異常：
            EventNotFound: Event 不存在
        """
        event = db.get(Event, event_id)
        if not event:
            raise EventNotFound(event_id)
        return event

    @staticmethod
    @transactional
    def delete_event(db: Session, event: Event) -> None:
        db.delete(event)
        logger.info(f"Deleted event {event.id}")
