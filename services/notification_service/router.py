from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import Actor, get_current_actor

from .schemas import NotificationResponse, PreferencesResponse, PreferencesUpdate
from .service import NotificationService

router = APIRouter()
public_router = APIRouter()


class ReadFlag(BaseModel):
    is_read: bool = True


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "notification", "status": "running"}


@router.get("/", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await NotificationService.list_notifications(db, actor, unread_only)


@router.post("/read-all")
async def mark_all_read(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    updated = await NotificationService.mark_all_read(db, actor)
    return {"updated": updated}


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    return await NotificationService.get_preferences(db, actor)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    data: PreferencesUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await NotificationService.update_preferences(db, actor, data)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def set_read(
    notification_id: int,
    flag: ReadFlag = ReadFlag(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    try:
        record = await NotificationService.set_read(db, actor, notification_id, flag.is_read)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not record:
        raise HTTPException(status_code=404, detail="Notification not found")
    return record
