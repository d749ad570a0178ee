"""
Quotes API - Create, list, render and re-send repair quotes.
"""
from fastapi import APIRouter, Query, status
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from typing import Optional
from datetime import datetime, timezone
import logging
import re

from shopquotes.api.deps import DbSession, Notifier, SettingsDep
from shopquotes.exceptions import (
    ConfigurationError,
    DownstreamError,
    ErrorCode,
    NotFoundError,
    PdfRenderError,
    ShopQuotesException,
    ValidationError,
)
from shopquotes.models.quote import Quote, compute_total, to_cents, totals_match
from shopquotes.schemas.quote import (
    QuoteCreate,
    QuoteResponse,
    QuoteSaveResponse,
    QuoteResendResponse,
    TotalMismatch,
    TotalsAuditResponse,
)
from shopquotes.services.notification_webhook import NOT_CONFIGURED
from shopquotes.services.quote_pdf import render_quote_pdf
from shopquotes.utils.search import filter_quotes

logger = logging.getLogger(__name__)

router = APIRouter()
legacy_router = APIRouter()

QUOTE_NOT_FOUND = "Orçamento não encontrado"
_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")

# Dialect INSERT builders supporting ON CONFLICT (number) DO UPDATE
_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def pdf_filename(number: str) -> str:
    return f"{_UNSAFE_FILENAME.sub('_', number).strip('_') or 'orcamento'}.pdf"


async def _rollback_and_raise(db: AsyncSession, message: str, exc: SQLAlchemyError):
    await db.rollback()
    logger.error(f"{message} {type(exc).__name__}")
    raise DownstreamError(message, str(getattr(exc, "orig", None) or exc))


async def get_quote_by_number(db: AsyncSession, number: str) -> Quote:
    try:
        result = await db.execute(select(Quote).where(Quote.number == number))
    except SQLAlchemyError as e:
        await _rollback_and_raise(db, "Falha ao buscar orçamento.", e)
    quote = result.scalar_one_or_none()
    if not quote:
        raise NotFoundError(QUOTE_NOT_FOUND)
    return quote


async def upsert_quote(db: AsyncSession, data: QuoteCreate) -> Quote:
    """Insert the quote, or overwrite the one with the same number.

    Resend tracking is only written when the payload carries it, so
    re-saving a quote keeps its history.
    """
    values = {
        "date": data.date,
        "company": data.company.model_dump(by_alias=True),
        "client": data.client.model_dump(by_alias=True),
        "items": [item.model_dump(by_alias=True) for item in data.items],
        "total": data.total,
    }
    if data.resend_count is not None:
        values["resend_count"] = data.resend_count
    if data.last_resent_at is not None:
        values["last_resent_at"] = data.last_resent_at

    insert = _DIALECT_INSERTS[db.bind.dialect.name]
    stmt = insert(Quote).values(number=data.number, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Quote.number],
        set_={**values, "updated_at": func.now()},
    )
    try:
        await db.execute(stmt)
        await db.commit()
        result = await db.execute(
            select(Quote)
            .where(Quote.number == data.number)
            .execution_options(populate_existing=True)
        )
    except SQLAlchemyError as e:
        await _rollback_and_raise(db, "Falha ao salvar orçamento.", e)
    return result.scalar_one()


def check_total(data: QuoteCreate, enforce: bool):
    """Warn (or reject when enforcing) if total disagrees with the items."""
    if totals_match(data.total, data.items):
        return
    informed = to_cents(data.total)
    expected = compute_total(data.items)
    if enforce:
        raise ValidationError(
            f"Total informado ({informed}) difere da soma dos itens ({expected:.2f})",
            code=ErrorCode.TOTAL_MISMATCH,
        )
    logger.warning(f"Quote {data.number} total {informed} != items sum {expected:.2f}")


@router.get("", response_model=list[QuoteResponse])
async def list_quotes(
    db: DbSession,
    q: Optional[str] = Query(None, description="Free-text filter"),
):
    """List quotes, newest first."""
    try:
        result = await db.execute(select(Quote).order_by(Quote.date.desc(), Quote.id.desc()))
    except SQLAlchemyError as e:
        await _rollback_and_raise(db, "Falha ao listar orçamentos.", e)
    quotes = [QuoteResponse.model_validate(quote) for quote in result.scalars().all()]
    return filter_quotes(quotes, q)


@router.post("", response_model=QuoteSaveResponse)
async def save_quote(
    quote_data: QuoteCreate,
    db: DbSession,
    settings: SettingsDep,
    notifier: Notifier,
):
    """Create or overwrite a quote (keyed on number) and notify the webhook."""
    check_total(quote_data, settings.ENFORCE_QUOTE_TOTAL)

    quote = await upsert_quote(db, quote_data)
    saved = QuoteResponse.model_validate(quote)

    notification = await notifier.notify_quote_created(saved)
    warning = None
    if not notification.notified:
        warning = f"Orçamento salvo, mas a notificação não foi enviada: {notification.error}"

    return QuoteSaveResponse(id=quote.number, notified=notification.notified, warning=warning)


@router.get("/audit/totals", response_model=TotalsAuditResponse)
async def audit_quote_totals(db: DbSession):
    """Report quotes whose stored total differs from the sum of their items."""
    try:
        result = await db.execute(select(Quote).order_by(Quote.date.desc()))
    except SQLAlchemyError as e:
        await _rollback_and_raise(db, "Falha ao listar orçamentos.", e)
    quotes = result.scalars().all()

    mismatched = [
        TotalMismatch(number=quote.number, total=quote.total, computed_total=quote.computed_total)
        for quote in quotes
        if not quote.total_matches()
    ]
    return TotalsAuditResponse(checked=len(quotes), mismatched=mismatched)


async def _pdf_response(db: AsyncSession, settings, number: str) -> Response:
    number = (number or "").strip()
    if not number:
        raise ValidationError("Número do orçamento não informado", code=ErrorCode.MISSING_FIELD)

    quote = await get_quote_by_number(db, number)

    try:
        record = QuoteResponse.model_validate(quote)
        pdf = await run_in_threadpool(
            render_quote_pdf,
            record,
            settings.QUOTE_VALIDITY_DAYS,
            settings.DISPLAY_TIMEZONE,
        )
    except (PdfRenderError, PydanticValidationError) as e:
        logger.error(f"PDF for {number} failed: {type(e).__name__}")
        raise ShopQuotesException(
            status_code=500,
            code=ErrorCode.PDF_RENDER_ERROR,
            detail="Erro ao gerar PDF",
        )

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={pdf_filename(number)}"},
    )


@router.get("/pdf")
async def get_quote_pdf_by_query(
    db: DbSession,
    settings: SettingsDep,
    number: str = Query(""),
):
    """Render a quote PDF, number given as a query parameter."""
    return await _pdf_response(db, settings, number)


@router.get("/{number}", response_model=QuoteResponse)
async def get_quote(number: str, db: DbSession):
    """Get a single quote by number."""
    return await get_quote_by_number(db, number)


@router.get("/{number}/pdf")
async def get_quote_pdf(number: str, db: DbSession, settings: SettingsDep):
    """Render a quote as a downloadable PDF."""
    return await _pdf_response(db, settings, number)


@router.post("/{number}/send", response_model=QuoteResendResponse)
async def resend_quote(number: str, db: DbSession, notifier: Notifier):
    """Send the quote notification again and record the resend."""
    quote = await get_quote_by_number(db, number)

    if not notifier.is_configured:
        raise ConfigurationError(NOT_CONFIGURED)

    notification = await notifier.notify_quote_resent(QuoteResponse.model_validate(quote))
    if not notification.notified:
        raise DownstreamError(
            "Falha ao reenviar orçamento.", notification.error, code=ErrorCode.WEBHOOK_ERROR
        )

    quote.resend_count = (quote.resend_count or 0) + 1
    quote.last_resent_at = datetime.now(timezone.utc)
    try:
        await db.commit()
        await db.refresh(quote)
    except SQLAlchemyError as e:
        await _rollback_and_raise(db, "Reenviado, mas falhou ao registrar o reenvio.", e)

    return QuoteResendResponse(
        number=quote.number,
        resend_count=quote.resend_count,
        last_resent_at=quote.last_resent_at,
    )


@legacy_router.api_route("/budget", methods=["GET", "POST"], include_in_schema=False)
@legacy_router.api_route("/budgets", methods=["GET", "POST"], include_in_schema=False)
async def legacy_budgets_redirect():
    """Old /budget(s) paths moved to /quotes."""
    return RedirectResponse(url="/quotes", status_code=status.HTTP_308_PERMANENT_REDIRECT)
