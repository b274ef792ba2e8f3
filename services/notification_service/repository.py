from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import NotificationPreference, NotificationRecord


class NotificationRepository:
    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: str, unread_only: bool = False, limit: int = 50):
        stmt = select(NotificationRecord).where(NotificationRecord.user_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationRecord.is_read.is_(False))
        stmt = stmt.order_by(NotificationRecord.created_at.desc(), NotificationRecord.id.desc()).limit(limit)
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def get(db: AsyncSession, notification_id: int):
        result = await db.execute(select(NotificationRecord).where(NotificationRecord.id == notification_id))
        return result.scalars().first()

    @staticmethod
    async def set_read(db: AsyncSession, record: NotificationRecord, is_read: bool):
        record.is_read = is_read
        await db.commit()
        await db.refresh(record)
        return record

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            update(NotificationRecord)
            .where(NotificationRecord.user_id == user_id, NotificationRecord.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def get_preferences(db: AsyncSession, user_ids):
        if not user_ids:
            return {}
        result = await db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id.in_(list(user_ids)))
        )
        return {p.user_id: p for p in result.scalars().all()}

    @staticmethod
    async def save_preferences(db: AsyncSession, preference: NotificationPreference):
        db.add(preference)
        await db.commit()
        await db.refresh(preference)
        return preference
