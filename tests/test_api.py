# =============================================================================
# tests/test_api.py - HTTP Endpoint Tests
# =============================================================================
# End-to-end scenarios through the FastAPI app with the in-memory backend
# and Celery in eager mode. Payment provider calls are mocked.
#
# Run with: pytest tests/test_api.py -v
# =============================================================================

import io
import uuid
import zipfile
from datetime import timedelta
from unittest.mock import patch

import pytest

from core.services.payment_service import PaymentIntent, PaymentService
from lib.utils import utcnow


def _intent(intent_id="pi_test_123", status="succeeded", amount=4000) -> PaymentIntent:
    return PaymentIntent(
        id=intent_id,
        client_secret=f"{intent_id}_secret",
        amount=amount,
        currency="eur",
        status=status,
    )


@pytest.fixture
def purchase(client):
    """Checkout through /create-order with a succeeded payment intent."""
    with patch.object(PaymentService, "retrieve_intent", return_value=_intent()):
        response = client.post("/create-order", json={
            "email": "client@example.com",
            "selections": {"templates": ["temp1"], "bots": ["bot1"]},
            "paymentIntentId": "pi_test_123",
        })
    assert response.status_code == 200
    return response.json()


class TestCatalogEndpoints:
    """Tests for GET /categories and GET /products."""

    def test_categories(self, client):
        response = client.get("/categories")

        assert response.status_code == 200
        categories = {c["id"]: c for c in response.json()["categories"]}
        assert categories["templates"]["files"][0] == {
            "id": "temp1",
            "name": "Landing Page Template",
            "size": "10.00 MB",
            "sizeBytes": 10 * 1024 * 1024,
            "price": 1500,
        }

    def test_api_prefix(self, client):
        assert client.get("/api/categories").json() == client.get("/categories").json()

    def test_products_filtered(self, client):
        response = client.get("/products", params={"category": "plugins"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["stats"]["total"] == 1
        assert body["catalog"]["plugins"][0]["id"] == "bot1"

    def test_invalid_category(self, client):
        response = client.get("/products", params={"category": "weapons"})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestCheckout:
    """Tests for payment intent, order creation and confirmation."""

    def test_create_payment_intent(self, client, seeded):
        with patch.object(PaymentService, "create_intent", return_value=_intent(status="requires_payment_method")) as create:
            response = client.post("/create-payment-intent", json={
                "email": "client@example.com",
                "items": ["temp1", "bot1", "temp1"],
            })

        assert response.status_code == 200
        body = response.json()
        assert body["clientSecret"] == "pi_test_123_secret"
        assert body["amount"] == 4000
        assert body["orderNumber"].startswith("ORD-")
        assert create.call_args.kwargs["amount"] == 4000

        status = client.get(f"/pack-status/{body['purchaseId']}").json()
        assert status == {"status": "pending", "packId": None}

    def test_payment_intent_empty_selection(self, client):
        response = client.post("/create-payment-intent", json={"email": "a@b.co", "items": []})
        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_SELECTION"

    def test_payment_intent_unknown_product(self, client):
        response = client.post("/create-payment-intent", json={"email": "a@b.co", "items": ["ghost"]})
        assert response.status_code == 404
        assert response.json()["error"] == "Produit introuvable"

    def test_invalid_email(self, client):
        response = client.post("/create-order", json={"email": "not-an-email", "selections": ["temp1"]})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "email"

    def test_create_order_with_succeeded_payment(self, purchase):
        assert purchase["status"] == "paid"
        uuid.UUID(purchase["purchaseId"])

    def test_create_order_is_idempotent_per_intent(self, client, purchase):
        with patch.object(PaymentService, "retrieve_intent", return_value=_intent()):
            again = client.post("/create-order", json={
                "email": "client@example.com",
                "selections": ["temp1", "bot1"],
                "paymentIntentId": "pi_test_123",
            })
        assert again.json()["purchaseId"] == purchase["purchaseId"]

    def test_underpaid_intent_stays_pending(self, client):
        with patch.object(PaymentService, "retrieve_intent", return_value=_intent(amount=100)):
            response = client.post("/create-order", json={
                "email": "client@example.com",
                "selections": ["temp1", "bot1"],
                "paymentIntentId": "pi_cheap",
            })
        assert response.json()["status"] == "pending"

    def test_confirm_payment(self, client):
        created = client.post("/create-order", json={"email": "a@b.co", "selections": ["temp1"]}).json()
        assert created["status"] == "pending"

        with patch.object(PaymentService, "retrieve_intent", return_value=_intent("pi_9", amount=1500)):
            response = client.post(f"/confirm-payment/{created['purchaseId']}", json={"paymentIntentId": "pi_9"})

        assert response.status_code == 200
        assert response.json()["status"] == "paid"
        assert response.json()["paymentStatus"] == "succeeded"

    def test_confirm_payment_requires_intent(self, client):
        created = client.post("/create-order", json={"email": "a@b.co", "selections": ["temp1"]}).json()
        response = client.post(f"/confirm-payment/{created['purchaseId']}")
        assert response.status_code == 400

    def test_confirm_payment_mismatched_intent(self, client):
        with patch.object(PaymentService, "retrieve_intent", return_value=_intent("pi_a", status="processing")):
            created = client.post("/create-order", json={
                "email": "a@b.co",
                "selections": ["temp1"],
                "paymentIntentId": "pi_a",
            }).json()
        assert created["status"] == "pending"

        with patch.object(PaymentService, "retrieve_intent") as retrieve:
            response = client.post(f"/confirm-payment/{created['purchaseId']}", json={"paymentIntentId": "pi_b"})

        retrieve.assert_not_called()
        assert response.status_code == 400
        assert response.json()["code"] == "PAYMENT_MISMATCH"

    def test_one_payment_pays_one_order(self, client, seeded):
        first = client.post("/create-order", json={"email": "a@b.co", "selections": ["temp1"]}).json()
        second = client.post("/create-order", json={"email": "c@d.co", "selections": ["temp1"]}).json()

        with patch.object(PaymentService, "retrieve_intent", return_value=_intent("pi_9", amount=1500)):
            paid = client.post(f"/confirm-payment/{first['purchaseId']}", json={"paymentIntentId": "pi_9"})
            reused = client.post(f"/confirm-payment/{second['purchaseId']}", json={"paymentIntentId": "pi_9"})

        assert paid.json()["status"] == "paid"
        assert reused.status_code == 409
        assert reused.json()["code"] == "PAYMENT_ALREADY_USED"

        rows = {row["id"]: row for row in seeded.tables["orders"]}
        assert rows[first["purchaseId"]]["payment_reference_id"] == "pi_9"
        assert rows[second["purchaseId"]]["status"] == "pending"
        assert rows[second["purchaseId"]]["payment_reference_id"] is None

    def test_intent_of_another_customer_rejected(self, client, purchase):
        with patch.object(PaymentService, "retrieve_intent", return_value=_intent()) as retrieve:
            response = client.post("/create-order", json={
                "email": "someone-else@example.com",
                "selections": ["temp1", "bot1"],
                "paymentIntentId": "pi_test_123",
            })

        retrieve.assert_not_called()
        assert response.status_code == 409
        assert "purchaseId" not in response.json()

    def test_intent_lookup_ignores_email_case(self, client, purchase):
        with patch.object(PaymentService, "retrieve_intent", return_value=_intent()):
            again = client.post("/create-order", json={
                "email": "Client@Example.com",
                "selections": ["temp1", "bot1"],
                "paymentIntentId": "pi_test_123",
            })
        assert again.json()["purchaseId"] == purchase["purchaseId"]

    def test_provider_details_not_exposed(self, client):
        created = client.post("/create-payment-intent", json={"email": "a@b.co", "items": ["temp1"]})
        assert created.status_code == 500  # no payment key configured
        assert created.json() == {
            "error": "Erreur serveur",
            "message": "Erreur de paiement, veuillez réessayer",
            "code": "PAYMENT_PROVIDER_ERROR",
            "details": {"service": "payment"},
        }


class TestPackFlow:
    """Generation, status polling and download."""

    def test_full_flow(self, client, seeded, purchase):
        purchase_id = purchase["purchaseId"]

        generated = client.post(f"/generate-pack/{purchase_id}")
        assert generated.status_code == 200
        assert generated.json()["status"] == "completed"
        pack_id = generated.json()["packId"]

        status = client.get(f"/pack-status/{purchase_id}").json()
        assert status["status"] == "completed"
        assert status["packId"] == pack_id
        token = status["downloadUrl"].rsplit("/", 1)[-1]

        download = client.get(f"/download/{token}", follow_redirects=False)
        assert download.status_code == 307
        location = download.headers["location"]
        assert location.startswith("https://storage.test/packs/")

        archive_key = location.split("https://storage.test/", 1)[1].split("?", 1)[0]
        with zipfile.ZipFile(io.BytesIO(seeded.storage.bucket.objects[archive_key])) as archive:
            assert sorted(archive.namelist()) == ["bot1.zip", "temp1.zip"]

    def test_download_by_pack_id(self, client, purchase):
        pack_id = client.post(f"/generate-pack/{purchase['purchaseId']}").json()["packId"]
        response = client.get(f"/api/download/{pack_id}", follow_redirects=False)
        assert response.status_code == 307

    def test_generate_twice_single_archive(self, client, seeded, purchase):
        first = client.post(f"/generate-pack/{purchase['purchaseId']}").json()
        second = client.post(f"/generate-pack/{purchase['purchaseId']}").json()

        assert first["packId"] == second["packId"]
        archives = [k for k in seeded.storage.bucket.objects if k.startswith("packs/")]
        assert len(archives) == 1

    def test_missing_file_scenario(self, client, seeded, purchase):
        del seeded.storage.bucket.objects["bots/bot1.zip"]

        generated = client.post(f"/generate-pack/{purchase['purchaseId']}").json()
        assert generated["status"] == "completed"

        pack_row = seeded.tables["packs"][0]
        with zipfile.ZipFile(io.BytesIO(seeded.storage.bucket.objects[pack_row["storage_key"]])) as archive:
            assert archive.namelist() == ["temp1.zip"]

    def test_generate_unpaid(self, client):
        created = client.post("/create-order", json={"email": "a@b.co", "selections": ["temp1"]}).json()
        response = client.post(f"/generate-pack/{created['purchaseId']}")
        assert response.status_code == 409
        assert response.json()["code"] == "ORDER_NOT_PAID"

    def test_generate_unknown_order(self, client):
        response = client.post(f"/generate-pack/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "Commande introuvable"

    def test_generate_malformed_id(self, client):
        response = client.post("/generate-pack/not-a-uuid")
        assert response.status_code == 400

    def test_download_unknown_token(self, client):
        response = client.get("/download/unknown-token", follow_redirects=False)
        assert response.status_code == 404
        assert response.json()["error"] == "Pack introuvable"

    def test_download_after_expiry_then_sweep(self, client, seeded, purchase):
        client.post(f"/generate-pack/{purchase['purchaseId']}")
        pack_row = seeded.tables["packs"][0]
        pack_row["expires_at"] = (utcnow() - timedelta(minutes=5)).isoformat()

        response = client.get(f"/download/{pack_row['download_token']}", follow_redirects=False)
        assert response.status_code == 410
        assert response.json()["error"] == "Le lien a expiré"

        from workers.tasks import cleanup_expired_packs

        stats = cleanup_expired_packs.apply().get()
        assert stats["deleted"] == 1
        assert pack_row["storage_key"] not in seeded.storage.bucket.objects

        still_gone = client.get(f"/download/{pack_row['download_token']}", follow_redirects=False)
        assert still_gone.status_code == 410

    def test_uncompleted_order_pack_not_downloadable(self, client, seeded, purchase):
        from app.exceptions import InvalidOrderTransitionError
        from core.services.order_service import OrderService

        lost = InvalidOrderTransitionError(purchase["purchaseId"], "failed", "completed")
        with patch.object(OrderService, "mark_completed", side_effect=lost):
            generated = client.post(f"/generate-pack/{purchase['purchaseId']}").json()

        assert generated["status"] == "failed"
        pack_row = seeded.tables["packs"][0]
        response = client.get(f"/download/{pack_row['download_token']}", follow_redirects=False)
        assert response.status_code == 410


class TestAdminEndpoints:
    """Shared-secret protected routes."""

    def test_missing_token(self, client):
        response = client.get("/admin/stats")
        assert response.status_code == 401
        assert response.json()["error"] == "Non autorisé"

    def test_wrong_token(self, client):
        response = client.get("/admin/stats", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_stats(self, client, admin_headers, purchase):
        client.post(f"/generate-pack/{purchase['purchaseId']}")

        response = client.get("/admin/stats", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["products_active"] == 2
        assert body["orders_completed"] == 1
        assert body["revenue_minor_units"] == 4000
        assert body["packs_active"] == 1

    def test_upload_and_register(self, client, seeded, admin_headers):
        response = client.post(
            "/admin/upload",
            headers=admin_headers,
            files={"file": ("icons.zip", b"PK-icons", "application/zip")},
            data={"category": "resources", "register": "true", "price": "700"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["file"]["key"] == "resources/icons.zip"
        assert seeded.storage.bucket.objects["resources/icons.zip"] == b"PK-icons"
        assert body["product"]["price_minor_units"] == 700
        assert body["replaced"] is False
        assert body["product"]["name"] == "icons"

    def test_upload_reports_replaced_object(self, client, seeded, admin_headers):
        upload = {
            "files": {"file": ("temp1.zip", b"PK-new", "application/zip")},
            "data": {"category": "templates"},
        }

        response = client.post("/admin/upload", headers=admin_headers, **upload)

        assert response.status_code == 200
        assert response.json()["replaced"] is True
        assert seeded.storage.bucket.objects["templates/temp1.zip"] == b"PK-new"

    def test_upload_too_large(self, client, admin_headers, monkeypatch):
        from app.config import settings

        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 1)
        response = client.post(
            "/admin/upload",
            headers=admin_headers,
            files={"file": ("big.zip", b"x" * (2 * 1024 * 1024), "application/zip")},
            data={"category": "resources"},
        )
        assert response.status_code == 413

    def test_list_files(self, client, admin_headers):
        response = client.get("/admin/files", params={"category": "templates"}, headers=admin_headers)

        assert response.status_code == 200
        files = response.json()["files"]["templates"]
        assert files[0]["key"] == "templates/temp1.zip"
        assert files[0]["size"] == 10 * 1024 * 1024

    def test_product_crud(self, client, admin_headers):
        created = client.post("/admin/products", headers=admin_headers, json={
            "id": "doc2",
            "name": "Setup guide",
            "category": "docs",
            "storage_key": "docs/setup.pdf",
            "price_minor_units": 0,
        })
        assert created.status_code == 201

        patched = client.patch("/admin/products/doc2", headers=admin_headers, json={"price_minor_units": 250})
        assert patched.json()["price_minor_units"] == 250

        deleted = client.delete("/admin/products/doc2", headers=admin_headers)
        assert deleted.json()["is_active"] is False

        listed = client.get("/admin/products", headers=admin_headers).json()
        assert {p["id"] for p in listed} == {"temp1", "bot1", "doc_old", "doc2"}

    def test_catalog_import_rejects_non_csv(self, client, admin_headers):
        response = client.post(
            "/admin/catalog/import",
            headers=admin_headers,
            files={"file": ("products.xlsx", b"...", "application/octet-stream")},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_FILE_TYPE"


class TestAuthEndpoints:
    def test_login_disabled_without_password(self, client):
        response = client.post("/auth/login", json={"username": "admin", "password": "x"})
        assert response.status_code == 401

    def test_login(self, client, monkeypatch, admin_headers):
        from app.config import settings

        monkeypatch.setattr(settings, "ADMIN_PASSWORD", "s3cret")
        response = client.post("/auth/login", json={"username": "admin", "password": "s3cret"})

        assert response.status_code == 200
        token = response.json()["token"]
        verified = client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
        assert verified.json()["valid"] is True


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_ready(self, client):
        body = client.get("/health/ready").json()
        assert body["status"] == "ready"
        assert body["checks"] == {"database": "healthy", "storage": "healthy"}
