"""
服務層

這個 package 包含對 Session 的純狀態操作，不負責鎖與廣播：
- roster_service：參與者名單
- draw_service：抽獎引擎與延遲揭曉
- round_archive_service：回合封存與重置
- naming_service：名稱生成邏輯
"""
