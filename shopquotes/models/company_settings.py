"""
SQLAlchemy model for the issuing business profile.
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from shopquotes.database import Base


class CompanySettings(Base):
    """Business profile copied into every new quote.

    One row is expected; SETTINGS_RECORD_ID pins a specific one, otherwise
    the most recently created row wins.
    """
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=True)
    cnpj = Column(String(32), nullable=True)
    phone = Column(String(32), nullable=True)
    # Preferred contact number when present
    whatsapp = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    pix = Column(String(255), nullable=True)
    logo_url = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def display_phone(self) -> str:
        return self.whatsapp or self.phone or ""

    def __repr__(self):
        return f"<CompanySettings(id={self.id}, name={self.name})>"
