from pydantic import BaseModel, field_validator
from typing import Optional

from shopquotes.schemas.quote import CompanyData


class CompanySettingsUpdate(CompanyData):
    """Schema for PUT /settings; only the business name is mandatory."""

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Campo 'name' é obrigatório")
        return v


class SettingsResponse(BaseModel):
    company: Optional[CompanyData] = None
    id: Optional[int] = None


class OkResponse(BaseModel):
    ok: bool = True


class LogoUploadResponse(BaseModel):
    ok: bool = True
    url: str


class SettingsDiagnostics(BaseModel):
    """Result of GET /diag/settings."""
    ok: bool
    config: dict
    checks: dict
    error: Optional[str] = None
