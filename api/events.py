"""
Event API Endpoints

職責：
1. 建立活動（管理員）
2. 查詢活動品牌資訊（大螢幕、手機加入頁）
3. 刪除活動（管理員），同時丟棄對應的抽獎 Session
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from schemas import EventCreate, EventResponse
from core.event_manager import EventManager
from core.exceptions import EventNotFound

router = APIRouter(prefix="/api/events", tags=["events"])
logger = logging.getLogger(__name__)


def require_admin(request: Request, x_admin_secret: Optional[str] = Header(default=None)) -> None:
    """管理員密碼檢查（X-Admin-Secret header）"""
    gate = request.app.state.session_manager.gate
    if not gate.verify_secret(x_admin_secret):
        logger.warning(f"Denied admin REST call to {request.url.path}")
        raise HTTPException(status_code=403, detail="Admin secret required")


@router.post("", response_model=EventResponse, status_code=201, dependencies=[Depends(require_admin)])
def create_event(event_data: EventCreate, db: Session = Depends(get_db)):
    """
    建立活動

    返回：
        - id: 6 位活動代碼，同時作為抽獎 Session ID
        - title / background_url / created_at
    """
    try:
        event = EventManager.create_event(db, event_data.title, event_data.background_url)
        return EventResponse.model_validate(event)
    except Exception as e:
        logger.error(f"Failed to create event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: str, db: Session = Depends(get_db)):
    try:
        return EventResponse.model_validate(EventManager.get_event(db, event_id))
    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")


@router.delete("/{event_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_event(event_id: str, request: Request, db: Session = Depends(get_db)):
    """
    刪除活動

    效果：
    - 刪除 Event 資料
    - 丟棄同 ID 的抽獎 Session（取消進行中的揭曉）
    """
    try:
        event = EventManager.get_event(db, event_id)
    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")

    EventManager.delete_event(db, event)
    await request.app.state.session_manager.discard_session(event_id)
