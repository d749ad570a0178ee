from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now_iso() -> str:
    """ISO-8601 timestamp in the same shape the UI sends (millisecond Z)."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting a trailing Z."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CompanyData(BaseModel):
    """Business display data snapshotted into each quote."""
    name: str = ""
    cnpj: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    logo: str = ""


class ClientData(BaseModel):
    """Customer data for a quote."""
    name: str
    phone: str = ""
    vehicle: str = ""
    plate: str = ""

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("client name is required")
        return v


class QuoteItem(BaseModel):
    """Schema for quote line item."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    # List key used by the UI only
    id: int = 0
    description: str = ""
    quantity: int | float = 1
    unit_price: float = Field(0.0, alias="unitPrice")
    # Masked input string kept in sync with unit_price by the UI
    display_price: str = Field("", alias="displayPrice")

    @property
    def line_total(self) -> float:
        return float(self.quantity) * self.unit_price


class QuoteBase(BaseModel):
    """Base quote schema."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    number: str
    date: str = Field(default_factory=utc_now_iso)
    company: CompanyData = Field(default_factory=CompanyData)
    client: ClientData
    items: list[QuoteItem]
    total: float = 0.0

    @field_validator("number")
    @classmethod
    def number_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("quote number is required")
        return v

    @field_validator("date")
    @classmethod
    def date_is_iso(cls, v: str) -> str:
        try:
            parse_iso_datetime(v)
        except ValueError:
            raise ValueError("date must be an ISO-8601 timestamp")
        return v

    @property
    def issued_at(self) -> datetime:
        return parse_iso_datetime(self.date)


class QuoteCreate(QuoteBase):
    """Schema for creating (or overwriting) a quote."""
    resend_count: Optional[int] = Field(None, alias="resendCount", ge=0)
    last_resent_at: Optional[datetime] = Field(None, alias="lastResentAt")

    @model_validator(mode="before")
    @classmethod
    def lift_legacy_meta(cls, data: Any) -> Any:
        """Older clients stashed resend tracking in company._meta."""
        if not isinstance(data, dict):
            return data
        company = data.get("company")
        if not isinstance(company, dict) or "_meta" not in company:
            return data
        data = dict(data)
        company = dict(company)
        meta = company.pop("_meta") or {}
        data["company"] = company
        if isinstance(meta, dict):
            if "resendCount" not in data and "resend_count" not in data:
                data["resendCount"] = meta.get("resendCount")
            if "lastResentAt" not in data and "last_resent_at" not in data:
                data["lastResentAt"] = meta.get("lastResentAt")
        return data


class QuoteResponse(QuoteBase):
    """Schema for quote response."""
    resend_count: int = Field(0, alias="resendCount")
    last_resent_at: Optional[datetime] = Field(None, alias="lastResentAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class QuoteSaveResponse(BaseModel):
    """Result of POST /quotes.

    notified is False when the webhook could not be reached; the quote is
    saved regardless and warning explains why.
    """
    ok: bool = True
    id: str
    notified: bool
    warning: Optional[str] = None


class QuoteResendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    number: str
    resend_count: int = Field(alias="resendCount")
    last_resent_at: datetime = Field(alias="lastResentAt")


class TotalMismatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    number: str
    total: float
    computed_total: float = Field(alias="computedTotal")


class TotalsAuditResponse(BaseModel):
    checked: int
    mismatched: list[TotalMismatch]
