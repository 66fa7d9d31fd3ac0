# ================================
# EXPENSE API TESTS (test_expenses.py)
# ================================

import asyncio
import httpx
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import ExternalServiceError
from app.services import expense_service
from app.services.expense_service import ExpenseService
from app.services.receipt_parser_service import ReceiptParserService, normalize_receipt_data
from conftest import API, png_bytes

PARSED_RECEIPT = {
    "merchant": "Paint Depot",
    "date": "2025-03-02",
    "lineItems": [
        {"description": "Primer 1gal", "quantity": 2, "unitPrice": 24.5, "lineTotal": 49.0},
        {"description": "Roller", "quantity": 1, "unitPrice": 8.99, "lineTotal": 8.99},
    ],
    "subtotal": 57.99,
    "tax": 4.78,
    "total": 62.77,
}


@pytest.fixture
def receipt_parser(monkeypatch):
    parser = MagicMock()
    parser.parse_receipt = AsyncMock(return_value=dict(PARSED_RECEIPT))
    monkeypatch.setattr(expense_service, "get_receipt_parser", lambda: parser)
    return parser


def _expense_form(**overrides):
    form = {
        "vendor": "Paint Depot",
        "description": "Primer and rollers",
        "amount": "62.77",
        "expense_date": "2025-03-02",
        "category": "materials",
    }
    form.update(overrides)
    return form


def _stored_receipts():
    receipts_dir = Path(settings.UPLOAD_DIR) / "receipts"
    return {path for path in receipts_dir.rglob("*") if path.is_file()}


def _receipt_file(expense):
    return Path(settings.UPLOAD_DIR) / expense["receipt_url"][len("/uploads/"):]


def _gemini_returns(monkeypatch, response):
    async def post(self, url, **kwargs):
        return response

    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(httpx.AsyncClient, "post", post)


class TestExpenses:

    def test_create_without_receipt(self, client, auth_headers):
        response = client.post(f"{API}/expenses/", headers=auth_headers, data=_expense_form())
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["amount"] == 62.77
        assert data["has_receipt"] is False
        assert data["parsed_data"] is None

    def test_create_validates_form_fields(self, client, auth_headers):
        response = client.post(f"{API}/expenses/", headers=auth_headers, data=_expense_form(
            amount="-5", category="snacks"
        ))
        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["errors"]}
        assert {"amount", "category"} <= fields

    def test_unknown_invoice(self, client, auth_headers):
        response = client.post(f"{API}/expenses/", headers=auth_headers, data=_expense_form(
            invoice_id="00000000-0000-0000-0000-000000000000"
        ))
        assert response.status_code == 404

    def test_receipt_lines_are_appended_to_invoice(self, client, auth_headers, invoice, receipt_parser):
        response = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(invoice_id=invoice["id"]),
            files={"receipt": ("receipt.png", png_bytes(), "image/png")}
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["has_receipt"] is True
        assert data["receipt_url"].startswith("/uploads/receipts/")
        assert data["parsed_data"]["merchant"] == "Paint Depot"
        assert data["invoice_number"] == invoice["invoice_number"]

        receipt_parser.parse_receipt.assert_awaited_once()

        updated = client.get(f"{API}/invoices/{invoice['id']}", headers=auth_headers).json()
        assert len(updated["line_items"]) == 4
        assert [item["position"] for item in updated["line_items"]] == [0, 1, 2, 3]
        # 200.00 + 49.00 + 8.99 at 8.25%
        assert updated["subtotal"] == 257.99
        assert updated["tax_amount"] == 21.28
        assert updated["grand_total"] == 279.27

    def test_parser_failure_still_saves_expense(self, client, auth_headers, receipt_parser):
        receipt_parser.parse_receipt.side_effect = ExternalServiceError("Gemini API key not configured")

        response = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.pdf", b"%PDF-1.4 fake", "application/pdf")}
        )
        assert response.status_code == 201
        assert response.json()["has_receipt"] is True
        assert response.json()["parsed_data"] is None

    def test_rejects_unsupported_receipt_type(self, client, auth_headers, receipt_parser):
        response = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.gif", b"GIF89a", "image/gif")}
        )
        assert response.status_code == 400
        receipt_parser.parse_receipt.assert_not_awaited()

    def test_update_and_unlink(self, client, auth_headers, invoice):
        created = client.post(f"{API}/expenses/", headers=auth_headers, data=_expense_form(
            invoice_id=invoice["id"]
        )).json()

        response = client.put(f"{API}/expenses/{created['id']}", headers=auth_headers, data={"amount": "70"})
        assert response.status_code == 200
        assert response.json()["amount"] == 70.0
        assert response.json()["invoice_id"] == invoice["id"]

        unlinked = client.put(f"{API}/expenses/{created['id']}", headers=auth_headers, data={"clear_invoice": "true"})
        assert unlinked.status_code == 200
        assert unlinked.json()["invoice_id"] is None

    def test_delete_receipt_then_expense(self, client, auth_headers, receipt_parser):
        created = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.png", png_bytes(), "image/png")}
        ).json()
        stored = Path(settings.UPLOAD_DIR) / created["receipt_url"][len("/uploads/"):]
        assert stored.is_file()

        response = client.delete(f"{API}/expenses/{created['id']}/receipt", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["has_receipt"] is False
        assert not stored.exists()

        again = client.delete(f"{API}/expenses/{created['id']}/receipt", headers=auth_headers)
        assert again.status_code == 400

        assert client.delete(f"{API}/expenses/{created['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"{API}/expenses/{created['id']}", headers=auth_headers).status_code == 404

    def test_non_json_gemini_response_still_saves_expense(self, client, auth_headers, monkeypatch):
        _gemini_returns(monkeypatch, httpx.Response(
            200,
            text="<html><body>Service Unavailable</body></html>",
            headers={"content-type": "text/html"},
            request=httpx.Request("POST", "https://gemini.test/generateContent")
        ))

        response = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.png", png_bytes(), "image/png")}
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["has_receipt"] is True
        assert data["parsed_data"] is None
        assert _receipt_file(data).is_file()

    def test_replacing_receipt_removes_old_file(self, client, auth_headers, receipt_parser):
        created = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.png", png_bytes(), "image/png")}
        ).json()
        old_file = _receipt_file(created)

        response = client.put(
            f"{API}/expenses/{created['id']}",
            headers=auth_headers,
            files={"receipt": ("new.png", png_bytes(4, 4), "image/png")}
        )
        assert response.status_code == 200, response.text
        new_file = _receipt_file(response.json())

        assert new_file != old_file
        assert new_file.is_file()
        assert not old_file.exists()

    def test_failed_create_removes_stored_receipt(self, client, auth_headers, receipt_parser, monkeypatch):
        before = _stored_receipts()
        monkeypatch.setattr(ExpenseService, "_append_parsed_items", MagicMock(side_effect=RuntimeError("boom")))

        response = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.png", png_bytes(), "image/png")}
        )
        assert response.status_code == 500
        assert _stored_receipts() == before
        assert client.get(f"{API}/expenses/", headers=auth_headers).json()["total"] == 0

    def test_failed_commit_keeps_old_receipt(self, client, auth_headers, receipt_parser, monkeypatch):
        created = client.post(
            f"{API}/expenses/",
            headers=auth_headers,
            data=_expense_form(),
            files={"receipt": ("receipt.png", png_bytes(), "image/png")}
        ).json()
        old_file = _receipt_file(created)
        before = _stored_receipts()

        def failing_commit(self):
            raise SQLAlchemyError("database is locked")

        with monkeypatch.context() as patch:
            patch.setattr(Session, "commit", failing_commit)
            response = client.put(
                f"{API}/expenses/{created['id']}",
                headers=auth_headers,
                data={"vendor": "Other Vendor"},
                files={"receipt": ("new.png", png_bytes(4, 4), "image/png")}
            )
        assert response.status_code == 500

        assert old_file.is_file()
        assert _stored_receipts() == before

        current = client.get(f"{API}/expenses/{created['id']}", headers=auth_headers).json()
        assert current["receipt_url"] == created["receipt_url"]
        assert current["vendor"] == "Paint Depot"

    def test_list_filters(self, client, auth_headers):
        client.post(f"{API}/expenses/", headers=auth_headers, data=_expense_form())
        client.post(f"{API}/expenses/", headers=auth_headers, data=_expense_form(
            vendor="Gas Station", category="fuel", expense_date="2025-04-10", amount="40"
        ))

        fuel = client.get(f"{API}/expenses/", headers=auth_headers, params={"category": "fuel"}).json()
        assert [e["vendor"] for e in fuel["items"]] == ["Gas Station"]

        march = client.get(f"{API}/expenses/", headers=auth_headers, params={
            "date_from": "2025-03-01", "date_to": "2025-03-31"
        }).json()
        assert [e["vendor"] for e in march["items"]] == ["Paint Depot"]


class TestReceiptNormalization:

    def test_fills_defaults(self):
        result = normalize_receipt_data({
            "merchant": "Shop",
            "lineItems": [{"description": None, "quantity": "x", "unitPrice": "3.5"}, "junk"],
            "total": "12"
        })
        assert result["lineItems"] == [
            {"description": "Unknown item", "quantity": 1, "unitPrice": 3.5, "lineTotal": 0}
        ]
        assert result["total"] == 0
        assert result["subtotal"] == 0

    def test_missing_line_items(self):
        assert normalize_receipt_data({"lineItems": "n/a"})["lineItems"] == []


class TestReceiptParser:

    def _parse(self):
        parser = ReceiptParserService(api_key="test-key")
        return asyncio.run(parser.parse_receipt(png_bytes(), "image/png"))

    def test_non_json_body_is_a_parser_failure(self, monkeypatch):
        _gemini_returns(monkeypatch, httpx.Response(
            200,
            text="upstream proxy error",
            request=httpx.Request("POST", "https://gemini.test/generateContent")
        ))

        with pytest.raises(ExternalServiceError) as exc_info:
            self._parse()
        assert exc_info.value.error_code == "PARSER_FAILED"
        assert exc_info.value.status_code == 502

    def test_extracts_fenced_json(self, monkeypatch):
        text = "```json\n{\"merchant\": \"Paint Depot\", \"lineItems\": [], \"total\": 12.5}\n```"
        _gemini_returns(monkeypatch, httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": text}]}}]},
            request=httpx.Request("POST", "https://gemini.test/generateContent")
        ))

        result = self._parse()
        assert result["merchant"] == "Paint Depot"
        assert result["total"] == 12.5
        assert result["lineItems"] == []

    def test_rate_limit(self, monkeypatch):
        _gemini_returns(monkeypatch, httpx.Response(
            429,
            json={"error": "quota"},
            request=httpx.Request("POST", "https://gemini.test/generateContent")
        ))

        with pytest.raises(ExternalServiceError) as exc_info:
            self._parse()
        assert exc_info.value.error_code == "PARSER_RATE_LIMITED"
