# ================================
# INVOICE API TESTS (test_invoices.py)
# ================================

from datetime import date, timedelta
from unittest.mock import AsyncMock

from app.utils.email import email_service
from conftest import API, invoice_payload, png_bytes


def _past_due_payload(customer_id, **overrides):
    return invoice_payload(
        customer_id,
        invoice_date=(date.today() - timedelta(days=60)).isoformat(),
        due_date=(date.today() - timedelta(days=30)).isoformat(),
        **overrides
    )


class TestInvoiceCrud:

    def test_create_computes_number_and_totals(self, client, auth_headers, invoice):
        assert invoice["invoice_number"] == f"INV-{date.today().year}-0001"
        assert invoice["status"] == "Unpaid"
        assert invoice["subtotal"] == 200.00
        assert invoice["tax_amount"] == 16.50
        assert invoice["grand_total"] == 216.50
        assert [item["line_total"] for item in invoice["line_items"]] == [100.00, 100.00]
        assert [item["position"] for item in invoice["line_items"]] == [0, 1]
        assert invoice["customer"]["name"] == "Jane Smith"

    def test_numbers_increase(self, client, auth_headers, customer, invoice):
        second = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(customer["id"]))
        assert second.json()["invoice_number"] == f"INV-{date.today().year}-0002"

    def test_client_totals_are_ignored(self, client, auth_headers, customer):
        payload = invoice_payload(customer["id"])
        payload["grand_total"] = 1
        payload["line_items"][0]["line_total"] = 999
        response = client.post(f"{API}/invoices/", headers=auth_headers, json=payload)
        assert response.status_code == 201
        assert response.json()["grand_total"] == 216.50

    def test_due_date_must_follow_invoice_date(self, client, auth_headers, customer):
        response = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            customer["id"], due_date=date.today().isoformat()
        ))
        assert response.status_code == 400
        assert response.json()["detail"] == "Validation failed"

    def test_requires_line_items(self, client, auth_headers, customer):
        response = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            customer["id"], line_items=[]
        ))
        assert response.status_code == 400

    def test_unknown_customer(self, client, auth_headers):
        response = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            "00000000-0000-0000-0000-000000000000"
        ))
        assert response.status_code == 404

    def test_property_must_belong_to_customer(self, client, auth_headers, property_):
        other = client.post(f"{API}/customers/", headers=auth_headers, json={"name": "Other"}).json()
        response = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            other["id"], property_id=property_["id"]
        ))
        assert response.status_code == 400

    def test_update_replaces_line_items(self, client, auth_headers, invoice):
        response = client.put(f"{API}/invoices/{invoice['id']}", headers=auth_headers, json={
            "tax_rate": "10",
            "line_items": [{"description": "Deck stain", "quantity": "3", "unit_price": "33.33"}]
        })
        assert response.status_code == 200
        data = response.json()
        assert len(data["line_items"]) == 1
        assert data["subtotal"] == 99.99
        assert data["tax_amount"] == 10.00
        assert data["grand_total"] == 109.99

    def test_update_to_paid_sets_payment_date(self, client, auth_headers, invoice):
        response = client.put(f"{API}/invoices/{invoice['id']}", headers=auth_headers, json={"status": "Paid"})
        assert response.status_code == 200
        assert response.json()["payment_date"] == date.today().isoformat()

    def test_list_filters(self, client, auth_headers, customer, invoice):
        client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(customer["id"], status="Draft"))

        drafts = client.get(f"{API}/invoices/", headers=auth_headers, params={"status": "Draft"}).json()
        assert drafts["total"] == 1
        assert drafts["items"][0]["status"] == "Draft"

        by_number = client.get(f"{API}/invoices/", headers=auth_headers, params={"search": "0001"}).json()
        assert [item["id"] for item in by_number["items"]] == [invoice["id"]]

        invalid = client.get(f"{API}/invoices/", headers=auth_headers, params={"status": "Lost"})
        assert invalid.status_code == 400

    def test_delete_unlinks_expenses(self, client, auth_headers, invoice):
        expense = client.post(f"{API}/expenses/", headers=auth_headers, data={
            "vendor": "Hardware Store",
            "description": "Brushes",
            "amount": "25.00",
            "invoice_id": invoice["id"]
        }).json()

        response = client.delete(f"{API}/invoices/{invoice['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert client.get(f"{API}/invoices/{invoice['id']}", headers=auth_headers).status_code == 404

        kept = client.get(f"{API}/expenses/{expense['id']}", headers=auth_headers).json()
        assert kept["invoice_id"] is None


class TestInvoiceStatus:

    def test_mark_paid_records_service_history(self, client, auth_headers, customer, property_):
        invoice = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            customer["id"], property_id=property_["id"]
        )).json()

        response = client.post(
            f"{API}/invoices/{invoice['id']}/mark-paid",
            headers=auth_headers,
            json={"payment_date": "2025-02-01"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Paid"
        assert response.json()["payment_date"] == "2025-02-01"

        history = client.get(f"{API}/properties/{property_['id']}/service-history", headers=auth_headers).json()
        assert len(history) == 1
        assert history[0]["invoice_id"] == invoice["id"]
        assert history[0]["total_cost"] == 216.50
        assert "Interior painting (2x)" in history[0]["description"]

        prop = client.get(f"{API}/properties/{property_['id']}", headers=auth_headers).json()
        assert prop["last_service_date"] == invoice["invoice_date"]

    def test_mark_paid_twice(self, client, auth_headers, invoice):
        assert client.post(f"{API}/invoices/{invoice['id']}/mark-paid", headers=auth_headers).status_code == 200
        again = client.post(f"{API}/invoices/{invoice['id']}/mark-paid", headers=auth_headers)
        assert again.status_code == 400

    def test_overdue_sweep(self, client, auth_headers, customer):
        past_due = client.post(f"{API}/invoices/", headers=auth_headers, json=_past_due_payload(customer["id"])).json()
        draft = client.post(
            f"{API}/invoices/", headers=auth_headers, json=_past_due_payload(customer["id"], status="Draft")
        ).json()
        assert past_due["is_overdue"] is True
        assert past_due["days_overdue"] == 30
        assert draft["is_overdue"] is False

        response = client.post(f"{API}/invoices/update-overdue", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["updated"] == 1

        assert client.get(f"{API}/invoices/{past_due['id']}", headers=auth_headers).json()["status"] == "Overdue"
        assert client.get(f"{API}/invoices/{draft['id']}", headers=auth_headers).json()["status"] == "Draft"

        again = client.post(f"{API}/invoices/update-overdue", headers=auth_headers)
        assert again.json()["data"]["updated"] == 0


class TestInvoiceDocuments:

    def test_pdf_download(self, client, auth_headers, invoice):
        response = client.get(f"{API}/invoices/{invoice['id']}/pdf", headers=auth_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert invoice["invoice_number"] in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_send_email_promotes_draft(self, client, auth_headers, customer, monkeypatch):
        sender = AsyncMock(return_value=True)
        monkeypatch.setattr(email_service, "send_invoice_email", sender)

        draft = client.post(
            f"{API}/invoices/", headers=auth_headers, json=invoice_payload(customer["id"], status="Draft")
        ).json()

        response = client.post(f"{API}/invoices/{draft['id']}/send-email", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "Unpaid"
        assert data["sent_date"] is not None

        kwargs = sender.await_args.kwargs
        assert kwargs["to_email"] == "jane@example.com"
        assert kwargs["invoice_data"]["invoice_number"] == draft["invoice_number"]
        assert kwargs["pdf_content"].startswith(b"%PDF")

    def test_send_email_failure_keeps_invoice_unsent(self, client, auth_headers, invoice, monkeypatch):
        monkeypatch.setattr(email_service, "send_invoice_email", AsyncMock(return_value=False))

        response = client.post(f"{API}/invoices/{invoice['id']}/send-email", headers=auth_headers)
        assert response.status_code == 502

        current = client.get(f"{API}/invoices/{invoice['id']}", headers=auth_headers).json()
        assert current["sent_date"] is None

    def test_send_email_needs_customer_email(self, client, auth_headers):
        customer = client.post(f"{API}/customers/", headers=auth_headers, json={"name": "No Mail"}).json()
        invoice = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(customer["id"])).json()

        response = client.post(f"{API}/invoices/{invoice['id']}/send-email", headers=auth_headers)
        assert response.status_code == 400


class TestInvoicePhotos:

    def test_upload_defaults_to_receipt(self, client, auth_headers, invoice):
        response = client.post(
            f"{API}/invoices/{invoice['id']}/photos",
            headers=auth_headers,
            files={"file": ("receipt.png", png_bytes(), "image/png")}
        )
        assert response.status_code == 201, response.text
        assert response.json()["category"] == "receipt"

        detail = client.get(f"{API}/invoices/{invoice['id']}", headers=auth_headers).json()
        assert len(detail["photos"]) == 1

    def test_rejects_unknown_category(self, client, auth_headers, invoice):
        response = client.post(
            f"{API}/invoices/{invoice['id']}/photos",
            headers=auth_headers,
            data={"category": "selfie"},
            files={"file": ("receipt.png", png_bytes(), "image/png")}
        )
        assert response.status_code == 400
