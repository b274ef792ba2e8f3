from sqlalchemy.ext.asyncio import AsyncSession

from shared.security import Actor

from .dispatcher import DEFAULT_PREFERENCES
from .models import NotificationPreference
from .repository import NotificationRepository
from .schemas import PreferencesUpdate


class NotificationService:
    @staticmethod
    async def list_notifications(db: AsyncSession, actor: Actor, unread_only: bool = False):
        return await NotificationRepository.list_for_user(db, actor.user_id, unread_only=unread_only)

    @staticmethod
    async def set_read(db: AsyncSession, actor: Actor, notification_id: int, is_read: bool = True):
        """Only the recipient may toggle the read flag; nothing else about a record ever changes."""
        record = await NotificationRepository.get(db, notification_id)
        if not record:
            return None
        if record.user_id != actor.user_id:
            raise PermissionError("Notification belongs to another user")
        return await NotificationRepository.set_read(db, record, is_read)

    @staticmethod
    async def mark_all_read(db: AsyncSession, actor: Actor) -> int:
        return await NotificationRepository.mark_all_read(db, actor.user_id)

    @staticmethod
    async def get_preferences(db: AsyncSession, actor: Actor) -> NotificationPreference:
        existing = await NotificationRepository.get_preferences(db, [actor.user_id])
        preference = existing.get(actor.user_id)
        if preference is None:
            preference = NotificationPreference(user_id=actor.user_id, **DEFAULT_PREFERENCES)
        return preference

    @staticmethod
    async def update_preferences(db: AsyncSession, actor: Actor, data: PreferencesUpdate):
        existing = await NotificationRepository.get_preferences(db, [actor.user_id])
        preference = existing.get(actor.user_id)
        if preference is None:
            preference = NotificationPreference(user_id=actor.user_id, **DEFAULT_PREFERENCES)

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(preference, key, value)
        return await NotificationRepository.save_preferences(db, preference)
