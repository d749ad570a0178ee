from fastapi import APIRouter
from shopquotes.api import quotes, settings

api_router = APIRouter()

api_router.include_router(quotes.router, prefix="/quotes", tags=["quotes"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(settings.diag_router, prefix="/diag", tags=["diagnostics"])
api_router.include_router(quotes.legacy_router)
