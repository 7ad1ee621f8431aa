"""
API 層

- events：活動品牌資訊 REST endpoints
- websocket：抽獎即時指令與廣播
"""
