"""
Pydantic schemas

- Inbound：WebSocket 指令（每種指令一個明確的 schema，v=1）
- Outbound：WebSocket 事件（完整快照、通知、拒絕原因）
- REST：活動品牌資訊
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from core.session_state import DrawStatus

SCHEMA_VERSION = 1


# ============ Inbound commands ============

class CommandBase(BaseModel):
    v: Literal[1] = SCHEMA_VERSION
    session_id: str = Field(default="default", min_length=1, max_length=64)


class JoinCommand(CommandBase):
    type: Literal["JOIN"]
    # 缺少 external_id 不在這裡擋，交給 roster 回傳 MALFORMED_JOIN
    external_id: Optional[str] = None
    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_ref: Optional[str] = Field(default=None, max_length=2000)


class RequestStateCommand(CommandBase):
    type: Literal["REQUEST_STATE"]


class StartDrawCommand(CommandBase):
    type: Literal["START_DRAW"]


class AuthenticateCommand(CommandBase):
    type: Literal["AUTHENTICATE"]
    secret: str = ""


class PrivilegedCommand(CommandBase):
    capability: Optional[str] = None


class FullResetCommand(PrivilegedCommand):
    type: Literal["FULL_RESET"]


class ClearHistoryCommand(PrivilegedCommand):
    type: Literal["CLEAR_HISTORY"]


class NewRoundCommand(PrivilegedCommand):
    type: Literal["NEW_ROUND"]


class RemoveTestAccountsCommand(PrivilegedCommand):
    type: Literal["REMOVE_TEST_ACCOUNTS"]


class AddTestAccountsCommand(PrivilegedCommand):
    type: Literal["ADD_TEST_ACCOUNTS"]
    count: int = Field(default=1, ge=1, le=50)


class SetRoundArchivedCommand(PrivilegedCommand):
    type: Literal["SET_ROUND_ARCHIVED"]
    round_id: str
    archived: bool = True


InboundCommand = Annotated[
    Union[
        JoinCommand,
        RequestStateCommand,
        StartDrawCommand,
        AuthenticateCommand,
        FullResetCommand,
        ClearHistoryCommand,
        NewRoundCommand,
        RemoveTestAccountsCommand,
        AddTestAccountsCommand,
        SetRoundArchivedCommand,
    ],
    Field(discriminator="type"),
]

inbound_command_adapter = TypeAdapter(InboundCommand)


# ============ Session snapshot ============

class ParticipantView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    external_id: str
    display_name: str
    avatar_ref: str


class RoundRecordView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    round_number: int
    created_at: datetime
    winners: List[ParticipantView]
    archived: bool


class SessionSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    status: DrawStatus
    participants: List[ParticipantView]
    current_winner: Optional[ParticipantView]
    current_round_winners: List[ParticipantView]
    past_rounds: List[RoundRecordView]
    generation: int


# ============ Outbound events ============

class StateSnapshotEvent(BaseModel):
    type: Literal["STATE_SNAPSHOT"] = "STATE_SNAPSHOT"
    v: int = SCHEMA_VERSION
    session: SessionSnapshot


class NoEligibleParticipantsEvent(BaseModel):
    type: Literal["NO_ELIGIBLE_PARTICIPANTS"] = "NO_ELIGIBLE_PARTICIPANTS"
    v: int = SCHEMA_VERSION
    session_id: str


class CommandRejectedEvent(BaseModel):
    type: Literal["COMMAND_REJECTED"] = "COMMAND_REJECTED"
    v: int = SCHEMA_VERSION
    command: Optional[str]
    reason: str
    detail: str = ""


class AuthResultEvent(BaseModel):
    type: Literal["AUTH_RESULT"] = "AUTH_RESULT"
    v: int = SCHEMA_VERSION
    granted: bool
    capability: Optional[str] = None


class JoinedEvent(BaseModel):
    type: Literal["JOINED"] = "JOINED"
    v: int = SCHEMA_VERSION
    session_id: str
    participant: ParticipantView


class CommandAckEvent(BaseModel):
    type: Literal["COMMAND_ACK"] = "COMMAND_ACK"
    v: int = SCHEMA_VERSION
    command: str
    session_id: str
    result: Dict[str, Any] = Field(default_factory=dict)


# ============ REST ============

class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    background_url: Optional[str] = Field(default=None, max_length=1000)


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    background_url: Optional[str]
    created_at: datetime
