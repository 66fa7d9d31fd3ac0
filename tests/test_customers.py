# ================================
# CUSTOMER & PROPERTY API TESTS (test_customers.py)
# ================================

from pathlib import Path
from datetime import date

from app.config import settings
from conftest import API, invoice_payload, png_bytes


def _upload_photo(client, auth_headers, owner_path, category):
    response = client.post(
        f"{API}/{owner_path}/photos",
        headers=auth_headers,
        data={"category": category},
        files={"file": ("photo.png", png_bytes(), "image/png")}
    )
    assert response.status_code == 201, response.text
    return Path(settings.UPLOAD_DIR) / response.json()["url"][len("/uploads/"):]


class TestCustomers:

    def test_create_normalizes_email(self, client, auth_headers):
        response = client.post(f"{API}/customers/", headers=auth_headers, json={
            "name": "Bob", "email": "Bob@Example.COM"
        })
        assert response.status_code == 201
        assert response.json()["email"] == "bob@example.com"

    def test_blank_email_is_stored_as_null(self, client, auth_headers):
        response = client.post(f"{API}/customers/", headers=auth_headers, json={"name": "Cash Client", "email": ""})
        assert response.status_code == 201
        assert response.json()["email"] is None

    def test_list_search_and_pagination(self, client, auth_headers):
        for name in ("Alice", "Albert", "Zoe"):
            client.post(f"{API}/customers/", headers=auth_headers, json={"name": name})

        response = client.get(f"{API}/customers/", headers=auth_headers, params={"search": "al"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [c["name"] for c in data["items"]] == ["Albert", "Alice"]

        paged = client.get(f"{API}/customers/", headers=auth_headers, params={"page": 2, "page_size": 2}).json()
        assert paged["pages"] == 2
        assert [c["name"] for c in paged["items"]] == ["Zoe"]

    def test_detail_includes_properties_and_invoices(self, client, auth_headers, customer, property_):
        client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            customer["id"], property_id=property_["id"]
        ))

        response = client.get(f"{API}/customers/{customer['id']}", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["property_count"] == 1
        assert data["invoice_count"] == 1
        assert data["properties"][0]["name"] == "Main House"
        assert data["recent_invoices"][0]["grand_total"] == 216.50

    def test_update(self, client, auth_headers, customer):
        response = client.put(f"{API}/customers/{customer['id']}", headers=auth_headers, json={"phone": "555-0199"})
        assert response.status_code == 200
        assert response.json()["phone"] == "555-0199"
        assert response.json()["name"] == "Jane Smith"

    def test_update_rejects_null_name(self, client, auth_headers, customer):
        response = client.put(f"{API}/customers/{customer['id']}", headers=auth_headers, json={"name": None})
        assert response.status_code == 400

    def test_unknown_customer(self, client, auth_headers):
        response = client.get(f"{API}/customers/00000000-0000-0000-0000-000000000000", headers=auth_headers)
        assert response.status_code == 404

    def test_delete_blocked_by_invoices(self, client, auth_headers, customer, invoice):
        response = client.delete(f"{API}/customers/{customer['id']}", headers=auth_headers)
        assert response.status_code == 400
        assert "invoice" in response.json()["detail"]

        assert client.get(f"{API}/customers/{customer['id']}", headers=auth_headers).status_code == 200

    def test_delete_cascades_properties(self, client, auth_headers, customer, property_):
        response = client.delete(f"{API}/customers/{customer['id']}", headers=auth_headers)
        assert response.status_code == 200

        assert client.get(f"{API}/properties/{property_['id']}", headers=auth_headers).status_code == 404

    def test_delete_removes_photo_files(self, client, auth_headers, customer, property_):
        customer_photo = _upload_photo(client, auth_headers, f"customers/{customer['id']}", "house_exterior")
        property_photo = _upload_photo(client, auth_headers, f"properties/{property_['id']}", "interior_room")
        assert customer_photo.is_file()
        assert property_photo.is_file()

        response = client.delete(f"{API}/customers/{customer['id']}", headers=auth_headers)
        assert response.status_code == 200

        assert not customer_photo.exists()
        assert not property_photo.exists()


class TestCustomerNotes:

    def test_note_lifecycle(self, client, auth_headers, customer):
        base = f"{API}/customers/{customer['id']}/notes"

        created = client.post(base, headers=auth_headers, json={
            "title": "Paint codes", "content": "SW 7005 Pure White", "category": "paint_codes", "priority": "high"
        })
        assert created.status_code == 201
        note_id = created.json()["id"]

        archived = client.put(f"{base}/{note_id}", headers=auth_headers, json={"is_archived": True})
        assert archived.status_code == 200
        assert archived.json()["is_archived"] is True

        assert client.get(base, headers=auth_headers).json() == []
        with_archived = client.get(base, headers=auth_headers, params={"include_archived": True}).json()
        assert len(with_archived) == 1

        assert client.delete(f"{base}/{note_id}", headers=auth_headers).status_code == 200
        assert client.delete(f"{base}/{note_id}", headers=auth_headers).status_code == 404

    def test_invalid_category(self, client, auth_headers, customer):
        response = client.post(f"{API}/customers/{customer['id']}/notes", headers=auth_headers, json={
            "title": "x", "content": "y", "category": "gossip"
        })
        assert response.status_code == 400


class TestCustomerPhotos:

    def test_upload_and_delete(self, client, auth_headers, customer):
        response = client.post(
            f"{API}/customers/{customer['id']}/photos",
            headers=auth_headers,
            data={"category": "house_exterior", "description": "Front"},
            files={"file": ("front.png", png_bytes(8, 6), "image/png")}
        )
        assert response.status_code == 201, response.text
        photo = response.json()
        assert photo["width"] == 8
        assert photo["height"] == 6
        assert photo["url"].startswith("/uploads/customers/")

        stored = Path(settings.UPLOAD_DIR) / photo["url"][len("/uploads/"):]
        assert stored.is_file()

        listed = client.get(f"{API}/customers/{customer['id']}/photos", headers=auth_headers).json()
        assert [p["id"] for p in listed] == [photo["id"]]

        deleted = client.delete(f"{API}/customers/{customer['id']}/photos/{photo['id']}", headers=auth_headers)
        assert deleted.status_code == 200
        assert not stored.exists()

    def test_rejects_non_image(self, client, auth_headers, customer):
        response = client.post(
            f"{API}/customers/{customer['id']}/photos",
            headers=auth_headers,
            files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400

    def test_rejects_corrupt_image(self, client, auth_headers, customer):
        response = client.post(
            f"{API}/customers/{customer['id']}/photos",
            headers=auth_headers,
            files={"file": ("broken.png", b"not really a png", "image/png")}
        )
        assert response.status_code == 400


class TestProperties:

    def test_list_for_customer(self, client, auth_headers, customer, property_):
        response = client.get(f"{API}/customers/{customer['id']}/properties", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_update_and_detail(self, client, auth_headers, property_):
        response = client.put(f"{API}/properties/{property_['id']}", headers=auth_headers, json={
            "gate_code": "#1234", "bedrooms": 3, "bathrooms": 2.5
        })
        assert response.status_code == 200

        detail = client.get(f"{API}/properties/{property_['id']}", headers=auth_headers).json()
        assert detail["gate_code"] == "#1234"
        assert detail["bathrooms"] == 2.5
        assert detail["customer"]["name"] == "Jane Smith"

    def test_invalid_property_type(self, client, auth_headers, customer):
        response = client.post(f"{API}/customers/{customer['id']}/properties", headers=auth_headers, json={
            "name": "Boat", "address": "Dock 4", "property_type": "boat"
        })
        assert response.status_code == 400

    def test_delete_blocked_by_invoices(self, client, auth_headers, customer, property_):
        client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(
            customer["id"], property_id=property_["id"]
        ))
        response = client.delete(f"{API}/properties/{property_['id']}", headers=auth_headers)
        assert response.status_code == 400

    def test_delete_removes_photo_files(self, client, auth_headers, customer, property_):
        property_photo = _upload_photo(client, auth_headers, f"properties/{property_['id']}", "interior_room")
        customer_photo = _upload_photo(client, auth_headers, f"customers/{customer['id']}", "house_exterior")

        response = client.delete(f"{API}/properties/{property_['id']}", headers=auth_headers)
        assert response.status_code == 200

        assert not property_photo.exists()
        assert customer_photo.is_file()

    def test_notes_and_photos(self, client, auth_headers, property_):
        note = client.post(f"{API}/properties/{property_['id']}/notes", headers=auth_headers, json={
            "title": "Dog", "content": "Friendly dog in yard", "category": "safety_concerns", "is_private": True
        })
        assert note.status_code == 201

        photo = client.post(
            f"{API}/properties/{property_['id']}/photos",
            headers=auth_headers,
            data={"category": "interior_room", "room": "Kitchen", "floor": "1"},
            files={"file": ("kitchen.png", png_bytes(), "image/png")}
        )
        assert photo.status_code == 201, photo.text
        assert photo.json()["room"] == "Kitchen"

        detail = client.get(f"{API}/properties/{property_['id']}", headers=auth_headers).json()
        assert detail["note_count"] == 1
        assert detail["photo_count"] == 1
        assert detail["notes"][0]["is_private"] is True

    def test_service_history_moves_last_service_date(self, client, auth_headers, property_):
        base = f"{API}/properties/{property_['id']}/service-history"
        for service_date in ("2025-03-01", "2025-01-15"):
            response = client.post(base, headers=auth_headers, json={
                "service_date": service_date,
                "service_type": "painting",
                "description": "Exterior repaint",
                "rooms_serviced": ["exterior"],
                "total_cost": "1200.00",
                "customer_satisfaction": 5
            })
            assert response.status_code == 201

        history = client.get(base, headers=auth_headers).json()
        assert [entry["service_date"] for entry in history] == ["2025-03-01", "2025-01-15"]

        detail = client.get(f"{API}/properties/{property_['id']}", headers=auth_headers).json()
        assert detail["last_service_date"] == date(2025, 3, 1).isoformat()
