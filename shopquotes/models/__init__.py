from shopquotes.models.quote import Quote
from shopquotes.models.company_settings import CompanySettings

__all__ = ["Quote", "CompanySettings"]
