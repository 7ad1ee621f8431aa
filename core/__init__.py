"""
核心業務邏輯層

這個 package 包含抽獎 Session 的核心邏輯，包括：
- Session 狀態與 Registry：每個活動一個 Session
- SessionManager：指令入口，序列化同一 Session 的指令
- AdminGate：管理指令權限
- BroadcastHub：完整快照廣播
- Locks：並發控制工具
"""
