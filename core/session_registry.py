"""
Session Registry：以 session_id 取得或建立 DrawSession

職責：
1. 第一次被引用時建立 Session（lazy）
2. 保存 Session 直到對應的活動被刪除（沒有自動過期）
3. 提供可替換的儲存實作：記憶體（測試 / 開發）與資料庫（正式環境）

SessionManager 透過建構子注入 repository，不使用全域單例
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from core.session_state import DrawSession, DrawStatus
from database import transactional
from models import DrawSessionRecord

logger = logging.getLogger(__name__)


class SessionRepository(ABC):
    """DrawSession 儲存介面"""

    @abstractmethod
    def get(self, session_id: str) -> Optional[DrawSession]:
        ...

    @abstractmethod
    def get_or_create(self, session_id: str) -> DrawSession:
        ...

    @abstractmethod
    def save(self, session: DrawSession) -> None:
        ...

    @abstractmethod
    def discard(self, session_id: str) -> bool:
        ...

    @abstractmethod
    def session_ids(self) -> List[str]:
        ...


class InMemorySessionRepository(SessionRepository):
    """行程生命週期內的記憶體儲存；save 不需要做任何事（物件本身就是狀態）"""

    def __init__(self) -> None:
        self._sessions: Dict[str, DrawSession] = {}

    def get(self, session_id: str) -> Optional[DrawSession]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> DrawSession:
        session = self.get(session_id)
        if session is None:
            session = DrawSession(session_id=session_id)
            self._sessions[session_id] = session
            logger.info(f"Created draw session {session_id}")
        return session

    def save(self, session: DrawSession) -> None:
        self._sessions[session.session_id] = session

    def discard(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def session_ids(self) -> List[str]:
        return list(self._sessions)


@transactional
def _upsert_record(db: Session, session: DrawSession) -> None:
    record = db.get(DrawSessionRecord, session.session_id)
    if record is None:
        record = DrawSessionRecord(session_id=session.session_id)
        db.add(record)
    record.state = session.to_dict()


@transactional
def _delete_record(db: Session, session_id: str) -> bool:
    record = db.get(DrawSessionRecord, session_id)
    if record is None:
        return False
    db.delete(record)
    return True


class DatabaseSessionRepository(InMemorySessionRepository):
    """
    Write-through 儲存：記憶體快取 + draw_sessions 資料表

    - get：快取沒有時從資料庫載入
    - save：每個指令結束後把完整狀態寫回（JSON）
    - discard：同時刪除快取與資料列

    注意：
        從資料庫載入時若狀態仍是 ROLLING，代表上一個行程在揭曉前結束，
        揭曉任務已不存在，因此直接中斷該次抽獎
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        super().__init__()
        self._session_factory = session_factory

    def get(self, session_id: str) -> Optional[DrawSession]:
        session = super().get(session_id)
        if session is not None:
            return session

        db = self._session_factory()
        try:
            record = db.get(DrawSessionRecord, session_id)
            if record is None:
                return None
            session = DrawSession.from_dict(record.state)
        finally:
            db.close()

        if session.status == DrawStatus.ROLLING:
            logger.warning(
                f"Session {session_id} restored while ROLLING, dropping unrevealed winner"
            )
            session.invalidate_draw()

        self._sessions[session_id] = session
        return session

    def get_or_create(self, session_id: str) -> DrawSession:
        session = self.get(session_id)
        if session is None:
            session = super().get_or_create(session_id)
            self.save(session)
        return session

    def save(self, session: DrawSession) -> None:
        super().save(session)
        db = self._session_factory()
        try:
            _upsert_record(db, session)
        finally:
            db.close()

    def discard(self, session_id: str) -> bool:
        cached = super().discard(session_id)
        db = self._session_factory()
        try:
            stored = _delete_record(db, session_id)
        finally:
            db.close()
        return cached or stored

    def session_ids(self) -> List[str]:
        db = self._session_factory()
        try:
            stored = [row.session_id for row in db.query(DrawSessionRecord).all()]
        finally:
            db.close()
        return sorted(set(stored) | set(super().session_ids()))
