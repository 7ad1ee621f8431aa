"""
抽獎引擎：決定得獎者並分兩階段揭曉

狀態機：
    IDLE --start--> ROLLING --(固定延遲)--> REVEALED --start--> ROLLING ...
                                            REVEALED --new round--> IDLE

得獎者在「開始」時就決定，延遲只影響揭曉時間：
不論前端動畫何時結束、中途是否重連，所有人看到的都是同一位得獎者

每次開始抽獎都會遞增 generation，揭曉任務記住當時的 generation；
若期間有重置 / 新回合等指令使 generation 前進，揭曉任務就什麼都不做
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Dict, List, Optional

from core.exceptions import DrawAlreadyRolling, NoEligibleParticipants
from core.session_state import DrawSession, DrawStatus, Participant

logger = logging.getLogger(__name__)

RevealCallback = Callable[[str, int], Awaitable[None]]


class DrawEngine:
    """抽獎引擎（每個行程一個，管理所有 Session 的揭曉任務）"""

    def __init__(self, reveal_delay: float, rng: Optional[random.Random] = None) -> None:
        self.reveal_delay = reveal_delay
        self._rng = rng or random.SystemRandom()
        self._tasks: Dict[str, asyncio.Task] = {}

    @staticmethod
    def eligible(session: DrawSession) -> List[Participant]:
        """
        可抽名單：尚未在本回合或任何歷史回合中獎的參與者

        返回：
            依加入順序排列的參與者列表
        """
        won = session.won_external_ids()
        return [p for p in session.participants if p.external_id not in won]

    def start(self, session: DrawSession) -> Participant:
        """
        開始抽獎（只決定得獎者，不揭曉）

        前置條件：
        1. status 不是 ROLLING
        2. 可抽名單不為空

        異常：
            DrawAlreadyRolling: 上一次抽獎尚未揭曉
            NoEligibleParticipants: 沒有可抽的人

        注意：
            呼叫者需要在廣播 ROLLING 快照後呼叫 schedule_reveal
        """
        if session.status == DrawStatus.ROLLING:
            raise DrawAlreadyRolling(session.session_id)

        candidates = self.eligible(session)
        if not candidates:
            raise NoEligibleParticipants(session.session_id)

        winner = self._rng.choice(candidates)
        session.generation += 1
        session.current_winner = winner
        session.status = DrawStatus.ROLLING

        logger.info(
            f"Draw started in session {session.session_id} "
            f"(generation={session.generation}, eligible={len(candidates)}): {winner.external_id}"
        )
        return winner

    def schedule_reveal(self, session_id: str, generation: int, callback: RevealCallback) -> asyncio.Task:
        """排程揭曉任務：延遲 reveal_delay 秒後呼叫 callback(session_id, generation)"""
        task = asyncio.get_running_loop().create_task(
            self._reveal_later(session_id, generation, callback)
        )
        previous = self._tasks.get(session_id)
        if previous is not None and not previous.done():
            previous.cancel()
        self._tasks[session_id] = task
        task.add_done_callback(lambda t: self._forget(session_id, t))
        return task

    async def _reveal_later(self, session_id: str, generation: int, callback: RevealCallback) -> None:
        await asyncio.sleep(self.reveal_delay)
        await callback(session_id, generation)

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Reveal task for session {session_id} failed", exc_info=task.exception()
            )

    def reveal(self, session: DrawSession, generation: int) -> bool:
        """
        揭曉得獎者

        返回：
            True 表示寫入成功；generation 已前進或狀態不是 ROLLING 時返回 False
        """
        if session.generation != generation or session.status != DrawStatus.ROLLING:
            logger.warning(
                f"Stale reveal ignored for session {session.session_id} "
                f"(scheduled generation={generation}, current={session.generation})"
            )
            return False

        winner = session.current_winner
        if winner is None:
            return False

        if all(p.external_id != winner.external_id for p in session.current_round_winners):
            session.current_round_winners.append(winner)
        session.status = DrawStatus.REVEALED

        logger.info(f"Winner revealed in session {session.session_id}: {winner.external_id}")
        return True

    def pending_reveal(self, session_id: str) -> Optional[asyncio.Task]:
        return self._tasks.get(session_id)

    def cancel(self, session_id: str) -> None:
        task = self._tasks.pop(session_id, None)
        if task is not None:
            task.cancel()

    async def wait_idle(self) -> None:
        """等待所有揭曉任務結束（測試與關機用）"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        for session_id in list(self._tasks):
            self.cancel(session_id)
        await asyncio.sleep(0)
