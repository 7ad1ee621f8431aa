"""
Broadcast Hub：把完整的 Session 快照推送給房間內所有連線

- 參與者與觀看端（大螢幕、管理後台）用同樣方式訂閱
- 一律送完整快照，不送差異，前端不需要處理合併順序
- 觸發指令的連線若還沒在房間內，額外單播一份，避免它等不到更新
"""
from typing import Any, Dict, Optional, Protocol, Set
import logging

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class BroadcastHub:
    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}

    def register(self, transport_id: str, connection: Connection) -> None:
        self._connections[transport_id] = connection

    def subscribe(self, transport_id: str, session_id: str) -> None:
        members = self._rooms.setdefault(session_id, set())
        if transport_id not in members:
            members.add(transport_id)
            logger.info(f"Transport {transport_id} subscribed to session {session_id}")

    def unsubscribe(self, transport_id: str) -> None:
        """移除連線（所有房間）"""
        self._connections.pop(transport_id, None)
        for session_id in list(self._rooms):
            members = self._rooms[session_id]
            members.discard(transport_id)
            if not members:
                del self._rooms[session_id]

    def subscribers(self, session_id: str) -> Set[str]:
        return set(self._rooms.get(session_id, ()))

    def drop_room(self, session_id: str) -> None:
        self._rooms.pop(session_id, None)

    async def send(self, transport_id: str, message: Dict[str, Any]) -> bool:
        """
        單播訊息

        返回：
            True 表示送出成功；連線不存在或送出失敗時返回 False
            （送出失敗的連線會被移除）
        """
        connection = self._connections.get(transport_id)
        if connection is None:
            return False
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Dropping transport {transport_id} after send failure: {e}")
            self.unsubscribe(transport_id)
            return False

    async def publish(
        self,
        session_id: str,
        message: Dict[str, Any],
        origin: Optional[str] = None,
    ) -> int:
        """
        廣播訊息給房間，並確保觸發者也收到

        參數：
            session_id: 房間（Session）ID
            message: 要送出的 JSON 物件
            origin: 觸發這次變更的連線

        返回：
            成功送達的連線數
        """
        targets = sorted(self.subscribers(session_id))
        if origin is not None and origin not in targets:
            targets.append(origin)

        delivered = 0
        for transport_id in targets:
            if await self.send(transport_id, message):
                delivered += 1
        return delivered
