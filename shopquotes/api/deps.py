"""
FastAPI Dependencies

Provides dependency injection for settings, database sessions and the
outbound service clients. Tests override these through
app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shopquotes.config import Settings, get_settings
from shopquotes.database import get_db
from shopquotes.services.logo_storage import LogoStorageService
from shopquotes.services.notification_webhook import NotificationWebhookService


def get_notifier(settings: Settings = Depends(get_settings)) -> NotificationWebhookService:
    return NotificationWebhookService(settings)


def get_logo_storage(settings: Settings = Depends(get_settings)) -> LogoStorageService:
    return LogoStorageService(settings)


SettingsDep = Annotated[Settings, Depends(get_settings)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Notifier = Annotated[NotificationWebhookService, Depends(get_notifier)]
LogoStorage = Annotated[LogoStorageService, Depends(get_logo_storage)]
