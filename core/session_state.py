"""
抽獎 Session 的記憶體狀態

一個 DrawSession 對應一場活動（預設為 "default"），包含：
- participants：依加入順序排列，external_id 唯一
- status：IDLE -> ROLLING -> REVEALED -> (new round) -> IDLE
- current_winner：ROLLING 時已決定但尚未揭曉；REVEALED 時已寫入 current_round_winners
- current_round_winners：本回合已揭曉的得獎者
- past_rounds：已封存的回合
- generation：每次開始抽獎或中斷抽獎都會遞增，揭曉任務以此判斷自己是否過期
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class DrawStatus(str, Enum):
    IDLE = "IDLE"
    ROLLING = "ROLLING"
    REVEALED = "REVEALED"


@dataclass
class Participant:
    external_id: str
    transport_id: Optional[str]
    display_name: str
    avatar_ref: str = ""

    def snapshot_copy(self) -> "Participant":
        return replace(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Participant":
        return cls(
            external_id=data["external_id"],
            transport_id=data.get("transport_id"),
            display_name=data["display_name"],
            avatar_ref=data.get("avatar_ref", ""),
        )


@dataclass
class RoundRecord:
    id: str
    round_number: int
    created_at: datetime
    winners: List[Participant]
    archived: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoundRecord":
        return cls(
            id=data["id"],
            round_number=data["round_number"],
            created_at=datetime.fromisoformat(data["created_at"]),
            winners=[Participant.from_dict(w) for w in data["winners"]],
            archived=data.get("archived", False),
        )


@dataclass
class DrawSession:
    session_id: str
    participants: List[Participant] = field(default_factory=list)
    status: DrawStatus = DrawStatus.IDLE
    current_winner: Optional[Participant] = None
    current_round_winners: List[Participant] = field(default_factory=list)
    past_rounds: List[RoundRecord] = field(default_factory=list)
    round_counter: int = 0
    generation: int = 0

    def find_participant(self, external_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.external_id == external_id:
                return participant
        return None

    def won_external_ids(self) -> Set[str]:
        """本回合與所有歷史回合的得獎者 external_id（含已封存回合）"""
        won = {p.external_id for p in self.current_round_winners}
        for record in self.past_rounds:
            won.update(p.external_id for p in record.winners)
        return won

    def invalidate_draw(self) -> None:
        """
        中斷進行中的抽獎並回到 IDLE

        generation 遞增後，已排程的揭曉任務醒來時會發現 token 不符而放棄寫入
        """
        self.generation += 1
        self.status = DrawStatus.IDLE
        self.current_winner = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        for record in data["past_rounds"]:
            record["created_at"] = record["created_at"].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DrawSession":
        winner = data.get("current_winner")
        return cls(
            session_id=data["session_id"],
            participants=[Participant.from_dict(p) for p in data.get("participants", [])],
            status=DrawStatus(data.get("status", DrawStatus.IDLE.value)),
            current_winner=Participant.from_dict(winner) if winner else None,
            current_round_winners=[
                Participant.from_dict(p) for p in data.get("current_round_winners", [])
            ],
            past_rounds=[RoundRecord.from_dict(r) for r in data.get("past_rounds", [])],
            round_counter=data.get("round_counter", 0),
            generation=data.get("generation", 0),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
