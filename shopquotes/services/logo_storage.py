"""
Logo Storage Service

Uploads business logos to a public Supabase Storage bucket over its REST API
and returns the public URL.
"""

import logging
import mimetypes
import re
import time
from typing import Optional
from urllib.parse import quote as url_quote

import httpx

from shopquotes.config import Settings
from shopquotes.exceptions import ConfigurationError, DownstreamError, ErrorCode

logger = logging.getLogger(__name__)

STORAGE_NOT_CONFIGURED = (
    "Storage não configurado. Defina SUPABASE_URL e SUPABASE_SERVICE_ROLE_KEY no ambiente (.env)."
)

_HAS_EXTENSION = re.compile(r"\.[a-z0-9]+$", re.IGNORECASE)
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def normalize_filename(filename: Optional[str], content_type: Optional[str]) -> str:
    """Keep a safe name and make sure it has an extension (from the MIME type)."""
    name = _UNSAFE_CHARS.sub("-", (filename or "").strip()).strip("-.") or "logo"
    if not _HAS_EXTENSION.search(name):
        mime = content_type or "application/octet-stream"
        ext = mime.split("/")[1] if "/" in mime else ""
        ext = ext.split(";")[0].split("+")[0].strip() or "bin"
        name = f"{name}.{ext}"
    return name


def build_object_path(record_id: Optional[int], filename: str, now_ms: Optional[int] = None) -> str:
    owner_folder = str(record_id) if record_id else "default"
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    return f"{owner_folder}/{now_ms}-{filename}"


class LogoStorageService:
    """Thin client over the Storage REST endpoints used for logos."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.storage_configured

    @property
    def bucket(self) -> str:
        return self.settings.LOGO_BUCKET

    def _base_url(self) -> str:
        return f"{self.settings.SUPABASE_URL}/storage/v1"

    def _headers(self) -> dict:
        key = self.settings.SUPABASE_SERVICE_ROLE_KEY
        return {"Authorization": f"Bearer {key}", "apikey": key}

    def public_url(self, path: str) -> str:
        return f"{self._base_url()}/object/public/{self.bucket}/{url_quote(path)}"

    async def _ensure_bucket(self, client: httpx.AsyncClient):
        """Create the bucket as public; an existing bucket is fine."""
        try:
            resp = await client.post(
                f"{self._base_url()}/bucket",
                json={"id": self.bucket, "name": self.bucket, "public": True},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.warning("Bucket check failed for %s: %s", self.bucket, type(e).__name__)
            return
        if resp.status_code >= 400:
            logger.debug("Bucket %s not created (status %s)", self.bucket, resp.status_code)

    async def upload_logo(
        self,
        content: bytes,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> str:
        """Upload the file and return its public URL."""
        if not self.is_configured:
            raise ConfigurationError(STORAGE_NOT_CONFIGURED)

        name = normalize_filename(filename, content_type)
        mime = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        path = build_object_path(self.settings.SETTINGS_RECORD_ID, name)

        async with httpx.AsyncClient(transport=self._transport, timeout=30) as client:
            await self._ensure_bucket(client)
            try:
                resp = await client.post(
                    f"{self._base_url()}/object/{self.bucket}/{url_quote(path)}",
                    content=content,
                    headers={
                        **self._headers(),
                        "Content-Type": mime,
                        "x-upsert": "true",
                    },
                )
            except httpx.HTTPError as e:
                raise DownstreamError(
                    "Falha ao subir a logo:", str(e) or type(e).__name__,
                    code=ErrorCode.STORAGE_ERROR,
                )

        if resp.status_code >= 400:
            message = _storage_error_message(resp)
            logger.error("Logo upload failed (%s): %s", resp.status_code, message)
            raise DownstreamError("Falha ao subir a logo:", message, code=ErrorCode.STORAGE_ERROR)

        url = self.public_url(path)
        logger.info("Logo uploaded to %s/%s", self.bucket, path)
        return url


def _storage_error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"status {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
