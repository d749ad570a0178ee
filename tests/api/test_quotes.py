"""
Tests for the quotes API endpoints (/quotes).
"""
import asyncio
import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from shopquotes.main import app
from shopquotes.database import get_db
from shopquotes.api.quotes import upsert_quote
from shopquotes.models.quote import Quote
from shopquotes.schemas.quote import QuoteCreate
from tests.conftest import TEST_DATABASE_URL
from tests.factories import QuoteItemFactory, QuotePayloadFactory

QUOTES_PREFIX = "/quotes"


class TestSaveQuote:
    """POST /quotes"""

    @pytest.mark.asyncio
    async def test_create_quote(self, client: AsyncClient, test_db: AsyncSession, webhook):
        payload = QuotePayloadFactory(number="ORC-1")

        response = await client.post(QUOTES_PREFIX, json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["id"] == "ORC-1"
        assert data["notified"] is True
        assert data.get("warning") is None

        result = await test_db.execute(select(Quote).where(Quote.number == "ORC-1"))
        stored = result.scalar_one()
        assert stored.client["name"] == payload["client"]["name"]
        assert stored.resend_count == 0

    @pytest.mark.asyncio
    async def test_same_number_overwrites(self, client: AsyncClient, test_db: AsyncSession):
        first = QuotePayloadFactory(number="ORC-7")
        second = QuotePayloadFactory(
            number="ORC-7",
            items=[QuoteItemFactory(description="Embreagem", quantity=1, unitPrice=900.0)],
        )

        await client.post(QUOTES_PREFIX, json=first)
        response = await client.post(QUOTES_PREFIX, json=second)
        assert response.status_code == 200

        result = await test_db.execute(select(Quote).where(Quote.number == "ORC-7"))
        rows = result.scalars().all()
        assert len(rows) == 1
        assert rows[0].items[0]["description"] == "Embreagem"
        assert rows[0].total == 900.0

    @pytest.mark.asyncio
    async def test_round_trip_preserves_fields(self, client: AsyncClient):
        payload = QuotePayloadFactory(number="ORC-RT")

        await client.post(QUOTES_PREFIX, json=payload)
        response = await client.get(f"{QUOTES_PREFIX}/ORC-RT")

        assert response.status_code == 200
        data = response.json()
        for field in ("number", "date", "company", "client", "items", "total"):
            assert data[field] == payload[field], field
        assert data["resendCount"] == 0
        assert data["lastResentAt"] is None

    @pytest.mark.asyncio
    async def test_webhook_receives_quote(self, client: AsyncClient, webhook):
        payload = QuotePayloadFactory(number="ORC-WH")

        await client.post(QUOTES_PREFIX, json=payload)

        assert len(webhook.requests) == 1
        request = webhook.requests[0]
        assert request.headers["Authorization"] == "Bearer test-webhook-token"
        body = json.loads(request.content)
        assert body["event"] == "quote.created"
        assert body["quote"]["number"] == "ORC-WH"
        assert body["quote"]["items"][0]["unitPrice"] == payload["items"][0]["unitPrice"]

    @pytest.mark.asyncio
    async def test_webhook_failure_is_a_warning(self, client: AsyncClient, test_db: AsyncSession, webhook):
        webhook.status_code = 502

        response = await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-W"))

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["notified"] is False
        assert "502" in data["warning"]
        result = await test_db.execute(select(Quote).where(Quote.number == "ORC-W"))
        assert result.scalar_one_or_none() is not None

    @pytest.mark.asyncio
    async def test_unconfigured_webhook_is_a_warning(self, client: AsyncClient, test_settings, webhook):
        test_settings.NOTIFY_WEBHOOK_URL = None

        response = await client.post(QUOTES_PREFIX, json=QuotePayloadFactory())

        assert response.status_code == 200
        assert response.json()["notified"] is False
        assert "NOTIFY_WEBHOOK_URL" in response.json()["warning"]
        assert webhook.requests == []

    @pytest.mark.asyncio
    async def test_missing_required_fields(self, client: AsyncClient):
        payload = QuotePayloadFactory()
        del payload["number"]
        payload["client"]["name"] = ""

        response = await client.post(QUOTES_PREFIX, json=payload)

        assert response.status_code == 400
        data = response.json()
        assert "error" in data
        fields = {e["field"] for e in data["errors"]}
        assert "body.number" in fields
        assert "body.client.name" in fields

    @pytest.mark.asyncio
    async def test_missing_items(self, client: AsyncClient):
        payload = QuotePayloadFactory()
        del payload["items"]

        response = await client.post(QUOTES_PREFIX, json=payload)

        assert response.status_code == 400
        assert "items" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_malformed_json(self, client: AsyncClient):
        response = await client.post(
            QUOTES_PREFIX,
            content=b'{"number": "ORC-1",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "JSON inválido"

    @pytest.mark.asyncio
    async def test_mismatched_total_accepted_by_default(self, client: AsyncClient):
        payload = QuotePayloadFactory(
            items=[QuoteItemFactory(quantity=2, unitPrice=50.0)],
            total=999.0,
        )

        response = await client.post(QUOTES_PREFIX, json=payload)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_mismatched_total_rejected_when_enforced(self, client: AsyncClient, test_settings):
        test_settings.ENFORCE_QUOTE_TOTAL = True
        payload = QuotePayloadFactory(
            items=[QuoteItemFactory(quantity=2, unitPrice=50.0)],
            total=999.0,
        )

        response = await client.post(QUOTES_PREFIX, json=payload)

        assert response.status_code == 400
        assert response.json()["code"] == "VAL_004"

    @pytest.mark.asyncio
    async def test_fractional_quantity_total_accepted_when_enforced(self, client: AsyncClient, test_settings):
        test_settings.ENFORCE_QUOTE_TOTAL = True
        payload = QuotePayloadFactory(
            items=[QuoteItemFactory(quantity=0.5, unitPrice=0.25)],
            total=0.125,
        )

        response = await client.post(QUOTES_PREFIX, json=payload)

        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("literal", [b"NaN", b"Infinity", b"-Infinity"])
    async def test_non_finite_total_rejected(self, client: AsyncClient, test_db: AsyncSession, literal):
        payload = QuotePayloadFactory(number="ORC-NAN")
        payload["total"] = 0
        body = json.dumps(payload).encode().replace(b'"total": 0', b'"total": ' + literal)

        response = await client.post(
            QUOTES_PREFIX,
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "total" in response.json()["error"]
        result = await test_db.execute(select(Quote).where(Quote.number == "ORC-NAN"))
        assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_non_finite_unit_price_rejected(self, client: AsyncClient):
        payload = QuotePayloadFactory(items=[QuoteItemFactory(quantity=1, unitPrice=1.0)])
        body = json.dumps(payload).replace('"unitPrice": 1.0', '"unitPrice": NaN')

        response = await client.post(
            QUOTES_PREFIX,
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "unitPrice" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_legacy_meta_is_lifted(self, client: AsyncClient, test_db: AsyncSession):
        payload = QuotePayloadFactory(number="ORC-META")
        payload["company"]["_meta"] = {"resendCount": 3, "lastResentAt": "2026-10-01T10:00:00.000Z"}

        await client.post(QUOTES_PREFIX, json=payload)

        result = await test_db.execute(select(Quote).where(Quote.number == "ORC-META"))
        stored = result.scalar_one()
        assert stored.resend_count == 3
        assert stored.last_resent_at is not None
        assert "_meta" not in stored.company

    @pytest.mark.asyncio
    async def test_database_not_configured(self, client: AsyncClient, test_settings):
        app.dependency_overrides.pop(get_db)
        test_settings.DATABASE_URL = None

        response = await client.post(QUOTES_PREFIX, json=QuotePayloadFactory())

        assert response.status_code == 500
        assert "DATABASE_URL" in response.json()["error"]
        assert response.json()["code"] == "CFG_001"


class TestListQuotes:
    """GET /quotes"""

    @pytest.mark.asyncio
    async def test_newest_first(self, client: AsyncClient):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-OLD", date="2026-01-01T10:00:00.000Z"))
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-NEW", date="2026-09-01T10:00:00.000Z"))
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-MID", date="2026-05-01T10:00:00.000Z"))

        response = await client.get(QUOTES_PREFIX)

        assert response.status_code == 200
        assert [q["number"] for q in response.json()] == ["ORC-NEW", "ORC-MID", "ORC-OLD"]

    @pytest.mark.asyncio
    async def test_empty_list(self, client: AsyncClient):
        response = await client.get(QUOTES_PREFIX)

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_search_filter(self, client: AsyncClient):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(
            number="ORC-123",
            client={"name": "João da Silva", "phone": "(11) 98765-4321", "vehicle": "Gol", "plate": "ABC-1234"},
        ))
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(
            number="ORC-456",
            client={"name": "Maria Souza", "phone": "(21) 91234-5678", "vehicle": "Onix", "plate": "XYZ-9876"},
            items=[QuoteItemFactory(description="Correia dentada")],
        ))

        by_number = await client.get(QUOTES_PREFIX, params={"q": "orc123"})
        by_name = await client.get(QUOTES_PREFIX, params={"q": "joao-da-silva"})
        by_plate = await client.get(QUOTES_PREFIX, params={"q": "xyz9876"})
        by_item = await client.get(QUOTES_PREFIX, params={"q": "CORREIA"})

        assert [q["number"] for q in by_number.json()] == ["ORC-123"]
        assert [q["number"] for q in by_name.json()] == ["ORC-123"]
        assert [q["number"] for q in by_plate.json()] == ["ORC-456"]
        assert [q["number"] for q in by_item.json()] == ["ORC-456"]


class TestQuotePdf:
    """GET /quotes/{number}/pdf"""

    @pytest.mark.asyncio
    async def test_pdf_download(self, client: AsyncClient):
        payload = QuotePayloadFactory(
            number="ORC-1",
            items=[QuoteItemFactory(quantity=2, unitPrice=50.0)],
            total=100.0,
        )
        await client.post(QUOTES_PREFIX, json=payload)

        response = await client.get(f"{QUOTES_PREFIX}/ORC-1/pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == "attachment; filename=ORC-1.pdf"
        assert response.content.startswith(b"%PDF-")

    @pytest.mark.asyncio
    async def test_pdf_is_deterministic(self, client: AsyncClient):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-DET"))

        first = await client.get(f"{QUOTES_PREFIX}/ORC-DET/pdf")
        second = await client.get(f"{QUOTES_PREFIX}/ORC-DET/pdf")

        assert first.content == second.content

    @pytest.mark.asyncio
    async def test_pdf_not_found(self, client: AsyncClient):
        response = await client.get(f"{QUOTES_PREFIX}/ORC-NOPE/pdf")

        assert response.status_code == 404
        assert response.json()["error"] == "Orçamento não encontrado"

    @pytest.mark.asyncio
    async def test_pdf_by_query_string(self, client: AsyncClient):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-Q"))

        response = await client.get(f"{QUOTES_PREFIX}/pdf", params={"number": "ORC-Q"})

        assert response.status_code == 200
        assert response.content.startswith(b"%PDF-")

    @pytest.mark.asyncio
    async def test_pdf_by_query_string_requires_number(self, client: AsyncClient):
        response = await client.get(f"{QUOTES_PREFIX}/pdf", params={"number": "  "})

        assert response.status_code == 400
        assert response.json()["error"] == "Número do orçamento não informado"


class TestResendQuote:
    """POST /quotes/{number}/send"""

    @pytest.mark.asyncio
    async def test_resend_tracks_count(self, client: AsyncClient, webhook):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-R"))

        first = await client.post(f"{QUOTES_PREFIX}/ORC-R/send")
        second = await client.post(f"{QUOTES_PREFIX}/ORC-R/send")

        assert first.status_code == 200
        assert first.json()["resendCount"] == 1
        assert second.json()["resendCount"] == 2
        assert second.json()["lastResentAt"] is not None

        events = [json.loads(r.content)["event"] for r in webhook.requests]
        assert events == ["quote.created", "quote.resent", "quote.resent"]

        fetched = await client.get(f"{QUOTES_PREFIX}/ORC-R")
        assert fetched.json()["resendCount"] == 2

    @pytest.mark.asyncio
    async def test_resend_unknown_quote(self, client: AsyncClient):
        response = await client.post(f"{QUOTES_PREFIX}/ORC-NOPE/send")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_resend_webhook_failure(self, client: AsyncClient, webhook):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-F"))
        webhook.fail = True

        response = await client.post(f"{QUOTES_PREFIX}/ORC-F/send")

        assert response.status_code == 500
        assert response.json()["error"].startswith("Falha ao reenviar orçamento.")

        fetched = await client.get(f"{QUOTES_PREFIX}/ORC-F")
        assert fetched.json()["resendCount"] == 0

    @pytest.mark.asyncio
    async def test_resend_without_webhook(self, client: AsyncClient, test_settings):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-N"))
        test_settings.NOTIFY_WEBHOOK_URL = None

        response = await client.post(f"{QUOTES_PREFIX}/ORC-N/send")

        assert response.status_code == 500
        assert response.json()["code"] == "CFG_001"


class TestTotalsAudit:
    """GET /quotes/audit/totals"""

    @pytest.mark.asyncio
    async def test_flags_inconsistent_totals(self, client: AsyncClient):
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(number="ORC-OK"))
        await client.post(QUOTES_PREFIX, json=QuotePayloadFactory(
            number="ORC-BAD",
            items=[QuoteItemFactory(quantity=2, unitPrice=50.0)],
            total=90.0,
        ))

        response = await client.get(f"{QUOTES_PREFIX}/audit/totals")

        assert response.status_code == 200
        data = response.json()
        assert data["checked"] == 2
        assert data["mismatched"] == [
            {"number": "ORC-BAD", "total": 90.0, "computedTotal": 100.0}
        ]


class TestLegacyPaths:

    @pytest.mark.asyncio
    async def test_budget_redirects(self, client: AsyncClient):
        response = await client.get("/budget")

        assert response.status_code == 308
        assert response.headers["location"] == "/quotes"


class TestUpsertQuote:
    """upsert_quote against independent sessions"""

    @pytest.mark.asyncio
    async def test_concurrent_first_saves_of_same_number(self, test_db: AsyncSession):
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
        session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        payloads = [
            QuoteCreate.model_validate(QuotePayloadFactory(
                number="ORC-RACE",
                items=[QuoteItemFactory(quantity=1, unitPrice=float(100 + n))],
            ))
            for n in range(5)
        ]

        async def save(data: QuoteCreate) -> Quote:
            async with session_maker() as session:
                return await upsert_quote(session, data)

        try:
            saved = await asyncio.gather(*(save(data) for data in payloads))
        finally:
            await engine.dispose()

        assert {quote.number for quote in saved} == {"ORC-RACE"}
        result = await test_db.execute(select(Quote).where(Quote.number == "ORC-RACE"))
        rows = result.scalars().all()
        assert len(rows) == 1
        assert rows[0].total in {100.0 + n for n in range(5)}

    @pytest.mark.asyncio
    async def test_overwrite_keeps_resend_history(self, test_db: AsyncSession):
        payload = QuotePayloadFactory(number="ORC-HIST")
        await upsert_quote(test_db, QuoteCreate.model_validate({**payload, "resendCount": 2}))

        quote = await upsert_quote(test_db, QuoteCreate.model_validate(payload))

        assert quote.resend_count == 2
