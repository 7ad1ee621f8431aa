"""
WebSocket Endpoint

URL: /ws

每條連線分配一個 transport_id，之後收到的每個 JSON 訊息都是一個指令：
    {"type": "START_DRAW", "v": 1, "session_id": "default"}

錯誤不會中斷連線：
- schema 不符         -> COMMAND_REJECTED (INVALID_COMMAND)
- 沒有可抽的人         -> NO_ELIGIBLE_PARTICIPANTS
- 其他業務異常         -> COMMAND_REJECTED（reason 取自異常）
- 非預期錯誤（例如儲存失敗） -> COMMAND_REJECTED (INTERNAL_ERROR)
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from uuid import uuid4
import json
import logging

from core.exceptions import LuckyDrawException, NoEligibleParticipants
from core.session_manager import SessionManager
from schemas import (
    AddTestAccountsCommand,
    AuthenticateCommand,
    ClearHistoryCommand,
    CommandAckEvent,
    CommandRejectedEvent,
    FullResetCommand,
    JoinCommand,
    JoinedEvent,
    NewRoundCommand,
    NoEligibleParticipantsEvent,
    ParticipantView,
    RemoveTestAccountsCommand,
    RequestStateCommand,
    SetRoundArchivedCommand,
    StartDrawCommand,
    inbound_command_adapter,
)

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


def _command_type(raw: str):
    """盡量從無法驗證的訊息中取出 type，讓拒絕事件帶上指令名稱"""
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("type"), str):
        return data["type"]
    return None


async def dispatch_command(manager: SessionManager, transport_id: str, command) -> None:
    """執行一個已驗證的指令"""
    if isinstance(command, JoinCommand):
        participant = await manager.join(
            transport_id,
            command.session_id,
            command.external_id,
            command.display_name,
            command.avatar_ref,
        )
        await manager.hub.send(
            transport_id,
            JoinedEvent(
                session_id=command.session_id,
                participant=ParticipantView.model_validate(participant),
            ).model_dump(mode="json"),
        )

    elif isinstance(command, RequestStateCommand):
        await manager.request_state(transport_id, command.session_id)

    elif isinstance(command, StartDrawCommand):
        await manager.start_draw(transport_id, command.session_id)

    elif isinstance(command, AuthenticateCommand):
        await manager.authenticate(transport_id, command.secret)

    elif isinstance(command, FullResetCommand):
        await manager.full_reset(transport_id, command.session_id, command.capability)

    elif isinstance(command, ClearHistoryCommand):
        await manager.clear_history(transport_id, command.session_id, command.capability)

    elif isinstance(command, NewRoundCommand):
        record = await manager.new_round(transport_id, command.session_id, command.capability)
        await _ack(manager, transport_id, command, {
            "round_id": record.id if record else None,
            "round_number": record.round_number if record else None,
        })

    elif isinstance(command, RemoveTestAccountsCommand):
        removed = await manager.remove_test_accounts(
            transport_id, command.session_id, command.capability
        )
        await _ack(manager, transport_id, command, {"removed": removed})

    elif isinstance(command, AddTestAccountsCommand):
        added = await manager.add_test_accounts(
            transport_id, command.session_id, command.capability, command.count
        )
        await _ack(manager, transport_id, command, {"added": len(added)})

    elif isinstance(command, SetRoundArchivedCommand):
        await manager.set_round_archived(
            transport_id, command.session_id, command.capability, command.round_id, command.archived
        )


async def _ack(manager: SessionManager, transport_id: str, command, result: dict) -> None:
    await manager.hub.send(
        transport_id,
        CommandAckEvent(
            command=command.type, session_id=command.session_id, result=result
        ).model_dump(mode="json"),
    )


async def handle_message(manager: SessionManager, transport_id: str, raw: str) -> None:
    """
    處理一則原始訊息

    所有業務異常都轉成事件回給發送者，不會往外拋
    """
    try:
        command = inbound_command_adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Invalid command from transport {transport_id}: {e.error_count()} errors")
        await manager.hub.send(
            transport_id,
            CommandRejectedEvent(
                command=_command_type(raw),
                reason="INVALID_COMMAND",
                detail=str(e.errors(include_url=False)[0]["msg"]),
            ).model_dump(mode="json"),
        )
        return

    try:
        await dispatch_command(manager, transport_id, command)

    except NoEligibleParticipants as e:
        logger.info(f"No eligible participants in session {e.session_id}")
        await manager.hub.send(
            transport_id,
            NoEligibleParticipantsEvent(session_id=e.session_id).model_dump(mode="json"),
        )

    except LuckyDrawException as e:
        logger.info(f"{command.type} rejected for transport {transport_id}: {e.reason}")
        await manager.hub.send(
            transport_id,
            CommandRejectedEvent(
                command=command.type, reason=e.reason, detail=str(e)
            ).model_dump(mode="json"),
        )

    except Exception as e:
        logger.error(f"{command.type} failed for transport {transport_id}: {e}", exc_info=True)
        await manager.hub.send(
            transport_id,
            CommandRejectedEvent(
                command=command.type, reason="INTERNAL_ERROR", detail="Internal error"
            ).model_dump(mode="json"),
        )


@router.websocket("/ws")
async def draw_socket(websocket: WebSocket):
    """
    抽獎即時連線

    流程：
    1. 接受連線、分配 transport_id
    2. 逐一處理指令（同一 Session 的指令由 SessionManager 的鎖序列化）
    3. 斷線時移除訂閱與管理權限（名單保留）
    """
    manager: SessionManager = websocket.app.state.session_manager

    await websocket.accept()
    transport_id = uuid4().hex
    manager.connect(transport_id, websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            await handle_message(manager, transport_id, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket loop failed for transport {transport_id}: {e}", exc_info=True)
        raise
    finally:
        manager.disconnect(transport_id)
