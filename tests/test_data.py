# ================================
# DATA EXPORT / IMPORT TESTS (test_data.py)
# ================================

import io
import csv
import json
import os
import time
import zipfile

import pytest

from app.services.data_export_service import DataExportService
from conftest import API, invoice_payload

IMPORT_PAYLOAD = {
    "customers": [
        {"name": "Imported Co", "email": "IMPORT@example.com", "phone": "555-0100"},
        {"name": "Walk-in"},
    ],
    "invoices": [
        {
            "invoice_number": "INV-2024-0042",
            "customer": {"name": "Imported Co", "email": "import@example.com"},
            "invoice_date": "2024-11-01",
            "due_date": "2024-12-01",
            "payment_date": "2024-11-20",
            "status": "Paid",
            "tax_rate": 0,
            "grand_total": 9999,
            "line_items": [
                {"description": "Second", "quantity": 1, "unit_price": 5, "position": 1},
                {"description": "First", "quantity": 2, "unit_price": 10, "position": 0},
            ],
        }
    ],
    "expenses": [
        {
            "vendor": "Lumber Yard",
            "description": "Trim boards",
            "amount": 42.5,
            "expense_date": "2024-11-02",
            "category": "not-a-category",
            "invoice_number": "INV-2024-0042",
        }
    ],
    "recurring_templates": [
        {
            "customer": {"name": "Walk-in", "email": None},
            "template_name": "Quarterly check",
            "base_invoice_data": {"line_items": [{"description": "Check", "quantity": 1, "unit_price": 80}]},
            "frequency": "QUARTERLY",
            "start_date": "2024-10-01",
            "next_run_date": "2025-01-01",
            "is_active": True,
        }
    ],
}


def _import(client, auth_headers, content, filename="data.json"):
    return client.post(
        f"{API}/data/import",
        headers=auth_headers,
        files={"file": (filename, content, "application/octet-stream")}
    )


def _archive(client, auth_headers, export):
    response = client.get(f"{API}/data/exports/{export['filename']}", headers=auth_headers)
    assert response.status_code == 200
    return response.content


class TestExport:

    def test_json_export(self, client, auth_headers, invoice):
        response = client.post(f"{API}/data/export", headers=auth_headers)
        assert response.status_code == 200, response.text
        data = response.json()

        assert data["format"] == "json"
        assert data["counts"] == {"customers": 1, "invoices": 1, "expenses": 0, "recurring_templates": 0}
        export = data["export"]
        assert export["filename"].startswith("invoice-export-")
        assert export["download_url"] == f"/api/v1/data/exports/{export['filename']}"

        listed = client.get(f"{API}/data/exports", headers=auth_headers).json()["exports"]
        assert export["filename"] in [item["filename"] for item in listed]

        with zipfile.ZipFile(io.BytesIO(_archive(client, auth_headers, export))) as archive:
            assert {"data.json", "customers.json", "invoices.json", "expenses.json",
                    "recurring-templates.json"} <= set(archive.namelist())
            payload = json.loads(archive.read("data.json"))

        assert payload["metadata"]["format"] == "json"
        exported = payload["invoices"][0]
        assert exported["invoice_number"] == invoice["invoice_number"]
        assert exported["customer"]["email"] == "jane@example.com"
        assert len(exported["line_items"]) == 2

    def test_csv_export(self, client, auth_headers, invoice):
        response = client.post(f"{API}/data/export", headers=auth_headers, json={"format": "csv"})
        assert response.status_code == 200
        export = response.json()["export"]

        with zipfile.ZipFile(io.BytesIO(_archive(client, auth_headers, export))) as archive:
            assert "line-items.csv" in archive.namelist()
            rows = list(csv.DictReader(io.StringIO(archive.read("invoices.csv").decode("utf-8"))))

        assert rows[0]["invoice_number"] == invoice["invoice_number"]
        assert rows[0]["customer_name"] == "Jane Smith"
        assert rows[0]["grand_total"] == "216.5"

    def test_rejects_unknown_format(self, client, auth_headers):
        response = client.post(f"{API}/data/export", headers=auth_headers, json={"format": "xml"})
        assert response.status_code == 400

    def test_download_rejects_bad_names(self, client, auth_headers):
        assert client.get(f"{API}/data/exports/notes.txt", headers=auth_headers).status_code == 400
        assert client.get(f"{API}/data/exports/missing.zip", headers=auth_headers).status_code == 404

    def test_cleanup_removes_old_archives(self, client, auth_headers):
        export = client.post(f"{API}/data/export", headers=auth_headers).json()["export"]
        path = DataExportService.export_dir() / export["filename"]
        old = time.time() - 10 * 86400
        os.utime(path, (old, old))

        response = client.post(f"{API}/data/exports/cleanup", headers=auth_headers, params={"retention_days": 7})
        assert response.status_code == 200
        assert response.json()["deleted"] == 1
        assert not path.exists()


class TestImport:

    def test_json_import(self, client, auth_headers):
        response = _import(client, auth_headers, json.dumps(IMPORT_PAYLOAD).encode())
        assert response.status_code == 200, response.text
        results = response.json()["results"]
        assert results["customers"] == {"created": 2, "skipped": 0}
        assert results["invoices"] == {"created": 1, "skipped": 0}
        assert results["expenses"] == {"created": 1, "skipped": 0}
        assert results["recurring_templates"] == {"created": 1, "skipped": 0}

        customers = client.get(f"{API}/customers/", headers=auth_headers, params={"search": "Imported"}).json()
        assert customers["items"][0]["email"] == "import@example.com"

        invoices = client.get(f"{API}/invoices/", headers=auth_headers).json()["items"]
        imported = client.get(f"{API}/invoices/{invoices[0]['id']}", headers=auth_headers).json()
        # Totals are rebuilt from the lines
        assert imported["grand_total"] == 25.0
        assert [item["description"] for item in imported["line_items"]] == ["First", "Second"]

        expenses = client.get(f"{API}/expenses/", headers=auth_headers).json()["items"]
        assert expenses[0]["category"] == "other"
        assert expenses[0]["invoice_id"] == imported["id"]

    def test_reimport_skips_existing(self, client, auth_headers):
        content = json.dumps(IMPORT_PAYLOAD).encode()
        assert _import(client, auth_headers, content).status_code == 200

        results = _import(client, auth_headers, content).json()["results"]
        assert results["customers"] == {"created": 0, "skipped": 2}
        assert results["invoices"] == {"created": 0, "skipped": 1}
        assert results["expenses"] == {"created": 0, "skipped": 1}
        assert results["recurring_templates"] == {"created": 0, "skipped": 1}

    def test_export_archives_import_back(self, client, auth_headers, customer):
        client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(customer["id"]))

        for export_format in ("json", "csv"):
            export = client.post(
                f"{API}/data/export", headers=auth_headers, json={"format": export_format}
            ).json()["export"]
            response = _import(client, auth_headers, _archive(client, auth_headers, export), "export.zip")
            assert response.status_code == 200, response.text
            results = response.json()["results"]
            assert results["customers"] == {"created": 0, "skipped": 1}
            assert results["invoices"] == {"created": 0, "skipped": 1}

    def test_failed_import_rolls_back(self, client, auth_headers):
        payload = json.loads(json.dumps(IMPORT_PAYLOAD))
        payload["invoices"][0]["status"] = "Lost"

        response = _import(client, auth_headers, json.dumps(payload).encode())
        assert response.status_code == 400
        assert "Invalid status" in response.json()["detail"]

        assert client.get(f"{API}/customers/", headers=auth_headers).json()["total"] == 0

    @pytest.mark.parametrize("tax_rate", ["Infinity", "-Infinity", "NaN", "sNaN"])
    def test_rejects_non_finite_numbers(self, client, auth_headers, tax_rate):
        payload = json.loads(json.dumps(IMPORT_PAYLOAD))
        payload["invoices"][0]["tax_rate"] = tax_rate

        response = _import(client, auth_headers, json.dumps(payload).encode())
        assert response.status_code == 400
        assert "Invalid number for tax_rate" in response.json()["detail"]

        assert client.get(f"{API}/customers/", headers=auth_headers).json()["total"] == 0

    def test_number_overflow_rolls_back(self, client, auth_headers):
        payload = json.loads(json.dumps(IMPORT_PAYLOAD))
        payload["invoices"][0]["line_items"][1]["quantity"] = "1E+999999"

        response = _import(client, auth_headers, json.dumps(payload).encode())
        assert response.status_code == 400
        assert client.get(f"{API}/customers/", headers=auth_headers).json()["total"] == 0

    def test_rejects_other_file_types(self, client, auth_headers):
        response = _import(client, auth_headers, b"name,email", "customers.txt")
        assert response.status_code == 400

    def test_rejects_broken_archive(self, client, auth_headers):
        response = _import(client, auth_headers, b"this is not a zip", "export.zip")
        assert response.status_code == 400

    def test_rejects_invalid_json(self, client, auth_headers):
        response = _import(client, auth_headers, b"{not json")
        assert response.status_code == 400
