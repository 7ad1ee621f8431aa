"""
命名服務：生成 Event Code、參與者顯示名稱與測試帳號身分

純計算邏輯，不涉及狀態轉換
"""
import random
import string
import uuid
from typing import Tuple

from core.session_state import DrawSession

ANIMALS = ["狐狸", "老鷹", "熊", "虎", "狼", "鹿", "豹", "獅", "兔", "蛇"]
ANIMAL_AVATARS = ["🦊", "🦅", "🐻", "🐯", "🐺", "🦌", "🐆", "🦁", "🐰", "🐍"]


def generate_event_code() -> str:
    """
    生成隨機的 6 位大寫字母活動代碼

    範例：ABCDEF, XYZABC

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 26^6 = 308,915,776 種可能，碰撞機率極低
    """
    return ''.join(random.choices(string.ascii_uppercase, k=6))


def generate_display_name(session: DrawSession) -> str:
    """
    為沒有提供名稱的參與者生成顯示名稱

    格式：「動物 N」
    範例：狐狸 1, 老鷹 1, 熊 1, ..., 狐狸 2, 老鷹 2, ...

    邏輯：
    - 有 10 種動物
    - 依目前名單人數決定動物
    - 如果超過 10 人，數字遞增（狐狸 1, 狐狸 2, ...）

    參數：
        session: 抽獎 Session

    返回：
        顯示名稱字串
    """
    count = len(session.participants)
    animal = ANIMALS[count % len(ANIMALS)]
    number = (count // len(ANIMALS)) + 1

    return f"{animal} {number}"


def generate_bot_identity(session: DrawSession, prefix: str) -> Tuple[str, str, str]:
    """
    生成測試帳號身分

    返回：
        (external_id, display_name, avatar_ref)
        external_id 以 prefix 開頭，REMOVE_TEST_ACCOUNTS 依此辨識
    """
    count = len(session.participants)
    external_id = f"{prefix}{uuid.uuid4().hex[:8]}"
    avatar = ANIMAL_AVATARS[count % len(ANIMAL_AVATARS)]
    return external_id, f"Bot {generate_display_name(session)}", avatar
