"""
並發控制工具

每個抽獎 Session 一把 asyncio.Lock

指令本體（狀態變更 + 廣播）在同一把鎖內完成，確保：
- 同一 Session 的兩個指令不會交錯
- 廣播出去的快照順序與狀態變更順序一致
- 延遲揭曉任務醒來時，也要先拿到同一把鎖才能寫入

不同 Session 之間互不影響，不需要全域鎖
"""
import asyncio
from typing import Dict


class SessionLockRegistry:
    """
    Session 鎖登記表

    範例：
        async with locks.lock_for(session_id):
            session = repository.get_or_create(session_id)
            ...
            await hub.publish(session_id, snapshot)

    注意：
        - 鎖是延遲建立的，必須在 event loop 內使用
        - asyncio.Lock 不可重入，持有鎖時不要再呼叫需要同一把鎖的方法
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock
