"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

每個異常帶有 reason（機器可讀代碼），WebSocket 層會原樣放進
COMMAND_REJECTED 事件，前端可依此顯示訊息
"""


class LuckyDrawException(Exception):
    """所有抽獎異常的基類"""
    reason = "ERROR"


# ============ 參與者相關異常 ============

class MalformedJoin(LuckyDrawException):
    """加入時缺少 external_id"""
    reason = "MALFORMED_JOIN"


# ============ 抽獎相關異常 ============

class DrawAlreadyRolling(LuckyDrawException):
    """抽獎進行中，不能再次開始"""
    reason = "DRAW_IN_PROGRESS"

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Draw already rolling in session {session_id}")


class NoEligibleParticipants(LuckyDrawException):
    """沒有可抽的參與者（全部都已中獎，或名單為空）"""
    reason = "NO_ELIGIBLE_PARTICIPANTS"

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"No eligible participants in session {session_id}")


# ============ 回合相關異常 ============

class RoundNotFound(LuckyDrawException):
    """歷史回合不存在"""
    reason = "ROUND_NOT_FOUND"

    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


# ============ 權限相關異常 ============

class Unauthorized(LuckyDrawException):
    """管理指令缺少有效的 capability"""
    reason = "UNAUTHORIZED"

    def __init__(self, command, transport_id=None):
        self.command = command
        self.transport_id = transport_id
        super().__init__(f"Command {command} requires admin capability")


# ============ Event 相關異常 ============

class EventNotFound(LuckyDrawException):
    """活動不存在"""
    reason = "EVENT_NOT_FOUND"

    def __init__(self, event_id):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")
