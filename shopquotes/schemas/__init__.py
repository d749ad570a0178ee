from shopquotes.schemas.quote import (
    CompanyData,
    ClientData,
    QuoteItem,
    QuoteCreate,
    QuoteResponse,
    QuoteSaveResponse,
    QuoteResendResponse,
    TotalsAuditResponse,
)
from shopquotes.schemas.settings import (
    CompanySettingsUpdate,
    SettingsResponse,
    LogoUploadResponse,
    SettingsDiagnostics,
)

__all__ = [
    "CompanyData",
    "ClientData",
    "QuoteItem",
    "QuoteCreate",
    "QuoteResponse",
    "QuoteSaveResponse",
    "QuoteResendResponse",
    "TotalsAuditResponse",
    "CompanySettingsUpdate",
    "SettingsResponse",
    "LogoUploadResponse",
    "SettingsDiagnostics",
]
