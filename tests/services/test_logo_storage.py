"""
Tests for LogoStorageService and its filename helpers.
"""
import pytest

from shopquotes.exceptions import ConfigurationError, DownstreamError
from shopquotes.services.logo_storage import (
    LogoStorageService,
    build_object_path,
    normalize_filename,
)
from tests.conftest import FakeStorage, make_settings


class TestFilenameHelpers:

    def test_extension_from_mime(self):
        assert normalize_filename("logo", "image/png") == "logo.png"
        assert normalize_filename("marca", "image/svg+xml") == "marca.svg"

    def test_existing_extension_kept(self):
        assert normalize_filename("marca.JPG", "image/jpeg") == "marca.JPG"

    def test_unknown_mime(self):
        assert normalize_filename(None, None) == "logo.octet-stream"

    def test_unsafe_characters_replaced(self):
        assert normalize_filename("minha logo/final", "image/png") == "minha-logo-final.png"

    def test_object_path_default_folder(self):
        assert build_object_path(None, "logo.png", now_ms=1760000000000) == "default/1760000000000-logo.png"

    def test_object_path_record_folder(self):
        assert build_object_path(7, "logo.png", now_ms=1) == "7/1-logo.png"


class TestLogoStorageService:

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self):
        fake = FakeStorage()
        service = LogoStorageService(make_settings(SETTINGS_RECORD_ID=3), transport=fake.transport)

        url = await service.upload_logo(b"png-bytes", "logo", "image/png")

        assert url.startswith("https://storage.test/storage/v1/object/public/company-logos/3/")
        assert url.endswith("-logo.png")
        bucket_request = fake.requests[0]
        assert bucket_request.url.path == "/storage/v1/bucket"
        upload = fake.uploads[0]
        assert upload.headers["x-upsert"] == "true"
        assert upload.headers["apikey"] == "test-service-key"

    @pytest.mark.asyncio
    async def test_upload_error(self):
        fake = FakeStorage()
        fake.upload_status = 413
        service = LogoStorageService(make_settings(), transport=fake.transport)

        with pytest.raises(DownstreamError) as exc_info:
            await service.upload_logo(b"big", "logo.png", "image/png")

        assert exc_info.value.status_code == 500
        assert "mime type not supported" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_not_configured(self):
        service = LogoStorageService(make_settings(SUPABASE_URL=None))

        with pytest.raises(ConfigurationError):
            await service.upload_logo(b"png", "logo", "image/png")
