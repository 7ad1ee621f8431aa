"""
Session Manager：抽獎指令的統一入口

職責：
1. 透過 SessionRepository 取得 / 建立 Session
2. 管理指令先經過 AdminGate
3. 在 Session 鎖內呼叫 roster / draw / round archive 服務變更狀態
4. 儲存並透過 BroadcastHub 廣播完整快照

異常（LuckyDrawException 子類）直接往上拋，由 API 層轉成事件
"""
from typing import List, Optional
import logging

from core.admin_gate import AdminCapability, AdminGate
from core.broadcast_hub import BroadcastHub, Connection
from core.locks import SessionLockRegistry
from core.session_registry import SessionRepository
from core.session_state import DrawSession, Participant, RoundRecord
from schemas import AuthResultEvent, SessionSnapshot, StateSnapshotEvent
from services import roster_service, round_archive_service
from services.draw_service import DrawEngine

logger = logging.getLogger(__name__)


def build_snapshot_message(session: DrawSession) -> dict:
    return StateSnapshotEvent(
        session=SessionSnapshot.model_validate(session)
    ).model_dump(mode="json")


class SessionManager:
    """抽獎 Session 指令處理器"""

    def __init__(
        self,
        repository: SessionRepository,
        hub: BroadcastHub,
        gate: AdminGate,
        engine: DrawEngine,
        *,
        reset_clears_history: bool = False,
        test_account_prefixes: Optional[List[str]] = None,
    ) -> None:
        self.repository = repository
        self.hub = hub
        self.gate = gate
        self.engine = engine
        self.reset_clears_history = reset_clears_history
        self.test_account_prefixes = [p for p in (test_account_prefixes or []) if p] or ["bot-", "test-"]
        self._locks = SessionLockRegistry()

    # ============ 連線 ============

    def connect(self, transport_id: str, connection: Connection) -> None:
        self.hub.register(transport_id, connection)
        logger.info(f"Transport {transport_id} connected")

    def disconnect(self, transport_id: str) -> None:
        """
        連線中斷

        只移除訂閱與管理權限，參與者仍留在名單中（重連時依 external_id 接回）
        """
        self.hub.unsubscribe(transport_id)
        self.gate.revoke(transport_id)
        logger.info(f"Transport {transport_id} disconnected")

    async def authenticate(self, transport_id: str, secret: str) -> Optional[AdminCapability]:
        capability = self.gate.authenticate(transport_id, secret)
        await self.hub.send(
            transport_id,
            AuthResultEvent(
                granted=capability is not None,
                capability=capability.token if capability else None,
            ).model_dump(mode="json"),
        )
        return capability

    # ============ 快照 ============

    async def publish_state(self, session: DrawSession, origin: Optional[str] = None) -> int:
        self.repository.save(session)
        return await self.hub.publish(session.session_id, build_snapshot_message(session), origin=origin)

    async def request_state(self, transport_id: str, session_id: str) -> DrawSession:
        """訂閱房間並取得目前快照（參與者與觀看端都用這個）"""
        self.hub.subscribe(transport_id, session_id)
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            await self.hub.send(transport_id, build_snapshot_message(session))
        return session

    # ============ 參與者 ============

    async def join(
        self,
        transport_id: str,
        session_id: str,
        external_id: Optional[str],
        display_name: Optional[str] = None,
        avatar_ref: Optional[str] = None,
    ) -> Participant:
        """
        加入 Session（或重新連線）

        異常：
            MalformedJoin: 缺少 external_id（名單不變、不廣播）
        """
        self.hub.subscribe(transport_id, session_id)
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            participant = roster_service.join(
                session, external_id, display_name, avatar_ref, transport_id
            )
            await self.publish_state(session, origin=transport_id)
        return participant

    # ============ 抽獎 ============

    async def start_draw(self, transport_id: str, session_id: str) -> Participant:
        """
        開始抽獎

        流程：
        1. 決定得獎者（ROLLING）
        2. 立即廣播 ROLLING 快照
        3. 排程揭曉任務（延遲 reveal_delay 秒）

        異常：
            DrawAlreadyRolling: 抽獎進行中（不會排程第二個揭曉任務）
            NoEligibleParticipants: 沒有可抽的人（狀態不變）
        """
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            winner = self.engine.start(session)
            try:
                await self.publish_state(session, origin=transport_id)
            except Exception:
                # 儲存失敗時不會有揭曉任務，必須退回 IDLE
                logger.error(f"Failed to persist draw start for session {session_id}, cancelling draw")
                session.invalidate_draw()
                raise
            self.engine.schedule_reveal(session_id, session.generation, self._reveal)
        return winner

    async def _reveal(self, session_id: str, generation: int) -> None:
        async with self._locks.lock_for(session_id):
            session = self.repository.get(session_id)
            if session is None:
                logger.warning(f"Reveal skipped, session {session_id} was discarded")
                return
            if self.engine.reveal(session, generation):
                await self.publish_state(session)

    # ============ 管理指令 ============

    async def new_round(
        self, transport_id: str, session_id: str, capability: Optional[str]
    ) -> Optional[RoundRecord]:
        self.gate.guard(transport_id, capability, "NEW_ROUND")
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            record = round_archive_service.new_round(session)
            await self.publish_state(session, origin=transport_id)
        return record

    async def clear_history(self, transport_id: str, session_id: str, capability: Optional[str]) -> None:
        self.gate.guard(transport_id, capability, "CLEAR_HISTORY")
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            round_archive_service.clear_history(session)
            await self.publish_state(session, origin=transport_id)

    async def full_reset(self, transport_id: str, session_id: str, capability: Optional[str]) -> None:
        self.gate.guard(transport_id, capability, "FULL_RESET")
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            round_archive_service.full_reset(session, clear_history=self.reset_clears_history)
            await self.publish_state(session, origin=transport_id)

    async def remove_test_accounts(
        self, transport_id: str, session_id: str, capability: Optional[str]
    ) -> int:
        self.gate.guard(transport_id, capability, "REMOVE_TEST_ACCOUNTS")
        prefixes = self.test_account_prefixes
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            removed = roster_service.remove_test_accounts(
                session, lambda external_id: roster_service.is_test_account(external_id, prefixes)
            )
            await self.publish_state(session, origin=transport_id)
        return removed

    async def add_test_accounts(
        self, transport_id: str, session_id: str, capability: Optional[str], count: int
    ) -> List[Participant]:
        self.gate.guard(transport_id, capability, "ADD_TEST_ACCOUNTS")
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            added = roster_service.add_test_accounts(session, count, self.test_account_prefixes[0])
            await self.publish_state(session, origin=transport_id)
        return added

    async def set_round_archived(
        self,
        transport_id: str,
        session_id: str,
        capability: Optional[str],
        round_id: str,
        archived: bool,
    ) -> RoundRecord:
        self.gate.guard(transport_id, capability, "SET_ROUND_ARCHIVED")
        async with self._locks.lock_for(session_id):
            session = self.repository.get_or_create(session_id)
            record = round_archive_service.set_round_archived(session, round_id, archived)
            await self.publish_state(session, origin=transport_id)
        return record

    # ============ 生命週期 ============

    async def discard_session(self, session_id: str) -> bool:
        """
        丟棄 Session（對應的活動被刪除時）

        進行中的揭曉任務會被取消；已排程但尚未取得鎖的任務會因 generation 前進而放棄
        """
        async with self._locks.lock_for(session_id):
            session = self.repository.get(session_id)
            if session is not None:
                session.invalidate_draw()
            self.engine.cancel(session_id)
            discarded = self.repository.discard(session_id)
        self.hub.drop_room(session_id)
        if discarded:
            logger.info(f"Discarded draw session {session_id}")
        return discarded

    async def shutdown(self) -> None:
        await self.engine.shutdown()
