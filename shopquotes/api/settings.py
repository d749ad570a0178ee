"""
Settings API - Business profile shown on every quote, plus logo upload.
"""
from fastapi import APIRouter, File, Form, UploadFile
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from shopquotes.api.deps import DbSession, LogoStorage, SettingsDep
from shopquotes.config import Settings
from shopquotes.database import get_session_maker
from shopquotes.exceptions import DownstreamError, ErrorCode, ValidationError
from shopquotes.models.company_settings import CompanySettings
from shopquotes.schemas.quote import CompanyData
from shopquotes.schemas.settings import (
    CompanySettingsUpdate,
    LogoUploadResponse,
    OkResponse,
    SettingsDiagnostics,
    SettingsResponse,
)
from shopquotes.utils.masks import mask_cnpj, mask_phone

logger = logging.getLogger(__name__)

router = APIRouter()
diag_router = APIRouter()


def to_company(row: CompanySettings) -> CompanyData:
    """Display snapshot of the settings row (masked cnpj/phone)."""
    return CompanyData(
        name=row.name or "",
        cnpj=mask_cnpj(row.cnpj),
        phone=mask_phone(row.display_phone),
        email=row.email or "",
        address=row.address or "",
        logo=row.logo_url or "",
    )


async def get_current_settings_row(
    db: AsyncSession, settings: Settings
) -> Optional[CompanySettings]:
    """The pinned settings row, or the most recently created one."""
    query = select(CompanySettings)
    if settings.SETTINGS_RECORD_ID:
        query = query.where(CompanySettings.id == settings.SETTINGS_RECORD_ID)
    else:
        query = query.order_by(CompanySettings.created_at.desc(), CompanySettings.id.desc())
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


@router.get("", response_model=SettingsResponse)
async def get_company_settings(db: DbSession, settings: SettingsDep):
    """Get the business profile, or {company: null} when none is saved."""
    try:
        row = await get_current_settings_row(db, settings)
    except SQLAlchemyError as e:
        await db.rollback()
        raise DownstreamError(
            f"Falha ao buscar configurações em '{CompanySettings.__tablename__}'.",
            str(getattr(e, "orig", None) or e),
        )
    if row is None:
        return SettingsResponse(company=None)
    return SettingsResponse(company=to_company(row), id=row.id)


@router.put("", response_model=OkResponse)
async def update_company_settings(
    company: CompanySettingsUpdate,
    db: DbSession,
    settings: SettingsDep,
):
    """Update the current business profile, creating it on first save."""
    values = {
        "name": company.name,
        "cnpj": company.cnpj,
        "email": company.email,
        "address": company.address,
        "logo_url": company.logo,
        # WhatsApp is the contact number shown on quotes
        "whatsapp": company.phone,
    }
    try:
        row = await get_current_settings_row(db, settings)
        if row is None:
            row = CompanySettings(**values)
            if settings.SETTINGS_RECORD_ID:
                row.id = settings.SETTINGS_RECORD_ID
            db.add(row)
        else:
            for field, value in values.items():
                setattr(row, field, value)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise DownstreamError(
            f"Falha ao salvar configurações em '{CompanySettings.__tablename__}'.",
            str(getattr(e, "orig", None) or e),
        )
    logger.info("Company settings saved")
    return OkResponse()


@router.post("/logo", response_model=LogoUploadResponse)
async def upload_company_logo(
    db: DbSession,
    settings: SettingsDep,
    storage: LogoStorage,
    file: Optional[UploadFile] = File(None),
    filename: Optional[str] = Form(None),
):
    """Upload a logo image and store its public URL on the profile."""
    if file is None:
        raise ValidationError("Envie o arquivo no campo 'file'", code=ErrorCode.MISSING_FIELD)

    content = await file.read()
    url = await storage.upload_logo(content, filename or "logo", file.content_type)

    try:
        row = await get_current_settings_row(db, settings)
        if row is None:
            row = CompanySettings(logo_url=url)
            if settings.SETTINGS_RECORD_ID:
                row.id = settings.SETTINGS_RECORD_ID
            db.add(row)
        else:
            row.logo_url = url
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise DownstreamError(
            "Upload feito, mas falhou ao salvar logo:",
            str(getattr(e, "orig", None) or e),
            extra={"url": url},
        )

    return LogoUploadResponse(url=url)


@diag_router.get("/settings", response_model=SettingsDiagnostics)
async def diagnose_settings(settings: SettingsDep):
    """Check that the settings table is reachable and report what is configured."""
    config = {
        "table": CompanySettings.__tablename__,
        "recordId": settings.SETTINGS_RECORD_ID,
        "bucket": settings.LOGO_BUCKET,
        "databaseConfigured": settings.database_configured,
        "storageConfigured": settings.storage_configured,
        "webhookConfigured": settings.webhook_configured,
    }
    checks = {"tableOk": False, "rowExists": False}

    if not settings.database_configured:
        return SettingsDiagnostics(
            ok=False, config=config, checks=checks, error="DATABASE_URL não definido"
        )

    error = None
    try:
        async with get_session_maker(settings)() as db:
            row = await get_current_settings_row(db, settings)
        checks["tableOk"] = True
        checks["rowExists"] = row is not None
    except SQLAlchemyError as e:
        error = str(getattr(e, "orig", None) or e)
        logger.warning(f"Settings diagnostics failed: {type(e).__name__}")

    return SettingsDiagnostics(ok=checks["tableOk"], config=config, checks=checks, error=error)
