"""
名單服務：管理 Session 內的參與者

規則：
- external_id 由外部登入服務提供，在 Session 內唯一
- 重新連線（同一個 external_id）只更新連線與顯示資訊，不新增一筆
- 連線中斷不會移除參與者，只有完整重置或移除測試帳號才會
- 呼叫者負責在變更後廣播新快照
"""
from typing import Callable, Iterable, List, Optional
import logging

from core.exceptions import MalformedJoin
from core.session_state import DrawSession, DrawStatus, Participant
from services.naming_service import generate_bot_identity, generate_display_name

logger = logging.getLogger(__name__)


def join(
    session: DrawSession,
    external_id: Optional[str],
    display_name: Optional[str],
    avatar_ref: Optional[str],
    transport_id: Optional[str],
) -> Participant:
    """
    加入或重新連線（upsert）

    流程：
    1. 驗證 external_id
    2. 已存在：就地更新 transport_id、display_name、avatar_ref
    3. 不存在：加到名單最後

    相同參數重複呼叫結果相同（冪等）

    異常：
        MalformedJoin: external_id 缺少或空白
    """
    # 1. 驗證
    if external_id is None or not external_id.strip():
        raise MalformedJoin("external_id is required to join")
    external_id = external_id.strip()

    name = (display_name or "").strip()
    avatar = avatar_ref or ""

    # 2. 重新連線
    existing = session.find_participant(external_id)
    if existing is not None:
        existing.transport_id = transport_id
        if name:
            existing.display_name = name
        if avatar:
            existing.avatar_ref = avatar
        logger.info(f"Participant {external_id} reconnected to session {session.session_id}")
        return existing

    # 3. 新參與者
    participant = Participant(
        external_id=external_id,
        transport_id=transport_id,
        display_name=name or generate_display_name(session),
        avatar_ref=avatar,
    )
    session.participants.append(participant)
    logger.info(
        f"Participant {external_id} ({participant.display_name}) joined session {session.session_id}"
    )
    return participant


def is_test_account(external_id: str, prefixes: Iterable[str]) -> bool:
    return any(external_id.startswith(prefix) for prefix in prefixes)


def remove_test_accounts(session: DrawSession, predicate: Callable[[str], bool]) -> int:
    """
    移除符合 predicate 的參與者（測試帳號 / bot）

    若 ROLLING 中的得獎者被移除，該次抽獎會被中斷

    返回：
        移除的人數
    """
    kept = [p for p in session.participants if not predicate(p.external_id)]
    removed = len(session.participants) - len(kept)
    session.participants = kept

    winner = session.current_winner
    if (
        session.status == DrawStatus.ROLLING
        and winner is not None
        and predicate(winner.external_id)
    ):
        logger.warning(
            f"Rolling winner {winner.external_id} removed from session {session.session_id}, "
            f"cancelling draw"
        )
        session.invalidate_draw()

    logger.info(f"Removed {removed} test accounts from session {session.session_id}")
    return removed


def add_test_accounts(session: DrawSession, count: int, prefix: str) -> List[Participant]:
    """新增 count 個測試帳號，方便活動前彩排"""
    added = []
    for _ in range(count):
        external_id, display_name, avatar = generate_bot_identity(session, prefix)
        added.append(join(session, external_id, display_name, avatar, transport_id=None))
    return added


def clear(session: DrawSession) -> None:
    """清空名單（只給完整重置使用）"""
    session.participants = []
