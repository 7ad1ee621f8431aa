"""
Admin Gate：管理指令的權限控管

流程：
1. 連線送出 AUTHENTICATE(secret)
2. 與全域共用密碼比對（constant-time）
3. 成功時發給該連線一個 capability token
4. 之後每個管理指令都必須明確帶上這個 token

token 綁定 transport_id，連線中斷即失效；前端可記住密碼，重連後重新驗證

刻意不受管控的指令：JOIN、REQUEST_STATE、START_DRAW
（持有房間連結的人都能加入與開始抽獎）
"""
from dataclasses import dataclass
from typing import Dict, Optional
import hmac
import logging
import secrets

from core.exceptions import Unauthorized

logger = logging.getLogger(__name__)


PRIVILEGED_COMMANDS = frozenset({
    "FULL_RESET",
    "CLEAR_HISTORY",
    "NEW_ROUND",
    "REMOVE_TEST_ACCOUNTS",
    "ADD_TEST_ACCOUNTS",
    "SET_ROUND_ARCHIVED",
})


@dataclass(frozen=True)
class AdminCapability:
    transport_id: str
    token: str


class AdminGate:
    """管理權限閘門"""

    def __init__(self, secret: str) -> None:
        self._secret = secret or ""
        self._capabilities: Dict[str, AdminCapability] = {}
        if not self._secret:
            logger.warning("Admin secret is empty, admin commands are disabled")

    def verify_secret(self, secret: Optional[str]) -> bool:
        """比對密碼（REST 端點也會用到）"""
        if not self._secret or not secret:
            return False
        return hmac.compare_digest(secret.encode("utf-8"), self._secret.encode("utf-8"))

    def authenticate(self, transport_id: str, secret: Optional[str]) -> Optional[AdminCapability]:
        """
        驗證密碼並發放 capability

        參數：
            transport_id: 連線 ID
            secret: 使用者輸入的密碼

        返回：
            AdminCapability，密碼錯誤時返回 None

        注意：
            - 同一連線重複驗證會換發新 token，舊 token 失效
        """
        if not self.verify_secret(secret):
            logger.warning(f"Admin authentication failed for transport {transport_id}")
            self._capabilities.pop(transport_id, None)
            return None

        capability = AdminCapability(transport_id=transport_id, token=secrets.token_urlsafe(24))
        self._capabilities[transport_id] = capability
        logger.info(f"Admin capability granted to transport {transport_id}")
        return capability

    def revoke(self, transport_id: str) -> None:
        if self._capabilities.pop(transport_id, None) is not None:
            logger.info(f"Admin capability revoked for transport {transport_id}")

    @staticmethod
    def is_privileged(command: str) -> bool:
        return command in PRIVILEGED_COMMANDS

    def has_capability(self, transport_id: str, token: Optional[str]) -> bool:
        capability = self._capabilities.get(transport_id)
        if capability is None or not token:
            return False
        return hmac.compare_digest(capability.token, token)

    def guard(self, transport_id: str, token: Optional[str], command: str) -> None:
        """
        檢查指令權限

        異常：
            Unauthorized: 管理指令但 token 無效（或不是發給這條連線的）
        """
        if not self.is_privileged(command):
            return
        if not self.has_capability(transport_id, token):
            logger.warning(f"Denied {command} from transport {transport_id}: missing admin capability")
            raise Unauthorized(command, transport_id)
