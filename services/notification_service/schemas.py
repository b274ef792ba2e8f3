from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    type: str
    title: str
    message: str
    data: Dict[str, Any]
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PreferencesUpdate(BaseModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    email_notifications: Optional[bool] = None
    order_updates: Optional[bool] = None
    product_sold: Optional[bool] = None
    marketing_emails: Optional[bool] = None


class PreferencesResponse(BaseModel):
    user_id: str
    email: Optional[str]
    full_name: Optional[str]
    email_notifications: bool
    order_updates: bool
    product_sold: bool
    marketing_emails: bool

    class Config:
        from_attributes = True
