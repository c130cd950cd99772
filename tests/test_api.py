"""End-to-end HTTP tests over the ASGI app with minted bearer tokens."""
import uuid
from decimal import Decimal

import pytest

from carhub.core.security import create_access_token

from conftest import auth_headers, make_car, make_paid_booking, make_user


BOOKING_BODY = {
    "start_date": "2027-01-01T10:00:00Z",
    "end_date": "2027-01-04T10:00:00Z",
    "pickup_location": "Airport",
    "dropoff_location": "Downtown",
    "contact_number": "+15550100",
}

APPLICATION = {
    "address": "4 Lake View",
    "city": "Bengaluru",
    "state": "KA",
    "country": "India",
    "zip_code": "560001",
    "national_id": "XYZAB9876C",
    "id_proof": "uploads/id/xyz.pdf",
}


def money(value) -> Decimal:
    return Decimal(str(value))


async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/")
    assert response.status_code == 200
    assert "docs" in response.json()


async def test_missing_token_rejected(client):
    response = await client.post("/api/v1/bookings", json=BOOKING_BODY)
    assert response.status_code in (401, 403)


async def test_unknown_user_token_is_401(client):
    headers = {"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"}
    response = await client.get("/api/v1/bookings", headers=headers)
    assert response.status_code == 401


async def test_inactive_user_is_401(client, db):
    user = await make_user(db, name="Gone", is_active=False)
    response = await client.get("/api/v1/bookings", headers=auth_headers(user))
    assert response.status_code == 401


async def test_cars_are_public(client, db):
    await make_car(db)
    response = await client.get("/api/v1/cars")
    assert response.status_code == 200
    assert response.json()["total"] == 1


async def test_validation_error_body(client, db, renter):
    car = await make_car(db)
    body = dict(BOOKING_BODY, car_id=str(car.id), end_date="2026-12-31T10:00:00Z")
    response = await client.post("/api/v1/bookings", json=body, headers=auth_headers(renter))

    assert response.status_code == 400
    payload = response.json()
    assert payload["type"] == "ValidationError"
    assert payload["field"] == "end_date"
    assert payload["path"] == "/api/v1/bookings"


async def test_non_admin_gets_403(client, renter):
    response = await client.get("/api/v1/admin/redemptions", headers=auth_headers(renter))
    assert response.status_code == 403
    assert response.json()["type"] == "AuthorizationError"


async def test_unknown_booking_is_404(client, renter):
    response = await client.get(f"/api/v1/bookings/{uuid.uuid4()}", headers=auth_headers(renter))
    assert response.status_code == 404
    assert response.json()["type"] == "NotFoundError"


async def test_booking_and_payment_flow(client, db, renter, admin):
    car = await make_car(db, price_per_day=Decimal("50"))
    headers = auth_headers(renter)

    response = await client.post("/api/v1/bookings", json=dict(BOOKING_BODY, car_id=str(car.id)), headers=headers)
    assert response.status_code == 201
    booking = response.json()
    assert booking["total_days"] == 3
    assert money(booking["total_amount"]) == Decimal("150")
    assert (booking["status"], booking["payment_status"]) == ("pending", "pending")

    response = await client.post(
        "/api/v1/payments/create-intent",
        json={"booking_id": booking["id"], "amount": "150.00"},
        headers=headers,
    )
    assert response.status_code == 201
    intent = response.json()

    confirm = {"booking_id": booking["id"], "payment_intent_id": intent["payment_intent_id"]}
    response = await client.post("/api/v1/payments/confirm", json=confirm, headers=headers)
    assert response.status_code == 200
    paid = response.json()["booking"]
    assert (paid["status"], paid["payment_status"]) == ("confirmed", "paid")

    # Second confirm is a no-op success
    response = await client.post("/api/v1/payments/confirm", json=confirm, headers=headers)
    assert response.status_code == 200
    assert response.json()["booking"]["paid_at"] == paid["paid_at"]

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=headers)
    assert response.status_code == 200
    cancelled = response.json()["booking"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["refund_due"] is True

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=headers)
    assert response.status_code == 409
    assert response.json()["type"] == "ConflictError"

    response = await client.put(
        f"/api/v1/bookings/{booking['id']}/payment-status",
        json={"payment_status": "refunded"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["refund_due"] is False

    response = await client.delete(f"/api/v1/bookings/{booking['id']}", headers=headers)
    assert response.status_code == 204


async def test_admin_status_override(client, db, renter, admin):
    car = await make_car(db)
    response = await client.post(
        "/api/v1/bookings", json=dict(BOOKING_BODY, car_id=str(car.id)), headers=auth_headers(renter)
    )
    booking_id = response.json()["id"]

    response = await client.put(
        f"/api/v1/bookings/{booking_id}/status", json={"status": "active"}, headers=auth_headers(renter)
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/bookings/{booking_id}/status", json={"status": "active"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "active"

    response = await client.put(
        f"/api/v1/bookings/{booking_id}/status", json={"status": "parked"}, headers=auth_headers(admin)
    )
    assert response.status_code == 422


async def test_partner_settlement_flow(client, db, renter, admin):
    owner = await make_user(db, name="Asha")
    owner_headers = auth_headers(owner)
    admin_headers = auth_headers(admin)

    # Apply, approve, sync privileges
    response = await client.post("/api/v1/partners/apply", json=APPLICATION, headers=owner_headers)
    assert response.status_code == 201
    partner_id = response.json()["id"]

    response = await client.get("/api/v1/partners/me/balance", headers=owner_headers)
    assert response.status_code == 403

    response = await client.get("/api/v1/admin/partners?status=pending", headers=admin_headers)
    assert response.json()["items"][0]["user_name"] == "Asha"

    response = await client.put(
        f"/api/v1/admin/partners/{partner_id}/status", json={"status": "approved"}, headers=admin_headers
    )
    assert response.status_code == 200

    response = await client.post(f"/api/v1/admin/partners/{partner_id}/sync-privileges", headers=admin_headers)
    assert response.json()["is_partner"] is True

    # List a car and get it rented and paid
    response = await client.post(
        "/api/v1/cars",
        json={"name": "Creta", "brand": "Hyundai", "model": "Creta", "price_per_day": "50.00"},
        headers=owner_headers,
    )
    assert response.status_code == 201
    car_id = response.json()["id"]

    renter_headers = auth_headers(renter)
    response = await client.post("/api/v1/bookings", json=dict(BOOKING_BODY, car_id=car_id), headers=renter_headers)
    booking_id = response.json()["id"]
    response = await client.post("/api/v1/payments/create-intent", json={"booking_id": booking_id}, headers=renter_headers)
    intent_id = response.json()["payment_intent_id"]
    await client.post(
        "/api/v1/payments/confirm",
        json={"booking_id": booking_id, "payment_intent_id": intent_id},
        headers=renter_headers,
    )

    response = await client.get("/api/v1/partners/me/balance", headers=owner_headers)
    balance = response.json()
    assert money(balance["partner_earnings"]) == Decimal("135")
    assert money(balance["platform_earnings"]) == Decimal("15")
    assert money(balance["available_balance"]) == Decimal("135")

    response = await client.get("/api/v1/partners/me/bookings", headers=owner_headers)
    assert response.json()["total"] == 1

    # Over-available request is refused
    response = await client.post(
        "/api/v1/partners/me/redemptions",
        json={"amount": "200", "payment_method": "upi", "payout_details": {"upi_id": "asha@okbank"}},
        headers=owner_headers,
    )
    assert response.status_code == 400
    assert response.json()["field"] == "amount"

    response = await client.post(
        "/api/v1/partners/me/redemptions",
        json={"amount": "100", "payment_method": "upi", "payout_details": {"upi_id": "asha@okbank"}},
        headers=owner_headers,
    )
    assert response.status_code == 201
    request_id = response.json()["id"]

    response = await client.get(f"/api/v1/admin/partners/{partner_id}/balance", headers=admin_headers)
    assert money(response.json()["pending_balance"]) == Decimal("100")
    assert money(response.json()["available_balance"]) == Decimal("35")

    response = await client.put(f"/api/v1/admin/redemptions/{request_id}/processing", headers=admin_headers)
    assert response.json()["status"] == "processing"

    response = await client.put(
        f"/api/v1/admin/redemptions/{request_id}/approve", json={"transaction_id": "UTR998877"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "paid"

    response = await client.put(f"/api/v1/admin/redemptions/{request_id}/reject", json={}, headers=admin_headers)
    assert response.status_code == 409

    response = await client.get("/api/v1/partners/me/balance", headers=owner_headers)
    balance = response.json()
    assert money(balance["total_redeemed"]) == Decimal("100")
    assert money(balance["pending_balance"]) == Decimal("0")
    assert money(balance["available_balance"]) == Decimal("35")

    response = await client.get("/api/v1/partners/me/payment-history", headers=owner_headers)
    assert [r["transaction_id"] for r in response.json()] == ["UTR998877"]

    response = await client.get("/api/v1/admin/redemptions/stats", headers=admin_headers)
    assert response.json()["counts"]["paid"] == 1

    response = await client.get("/api/v1/admin/partner-earnings", headers=admin_headers)
    assert money(response.json()[0]["partner_earnings"]) == Decimal("135")

    response = await client.get(f"/api/v1/admin/partner-earnings/{partner_id}/details", headers=admin_headers)
    line = response.json()["lines"][0]
    assert money(line["partner_share"]) + money(line["platform_share"]) == money(line["total_amount"])


async def test_admin_car_moderation(client, db, admin):
    car = await make_car(db)
    headers = auth_headers(admin)

    response = await client.put(
        f"/api/v1/admin/cars/{car.id}/availability", json={"admin_deactivated": True}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["available"] is False

    response = await client.put(f"/api/v1/admin/cars/{car.id}/reactivate", headers=headers)
    assert response.json()["available"] is True
    assert response.json()["admin_deactivated"] is False

    response = await client.delete(f"/api/v1/cars/{car.id}", headers=headers)
    assert response.status_code == 204


@pytest.mark.parametrize("rate, expected", [("0", "150"), ("25", "112.50")])
async def test_commission_rate_change_via_api(client, db, renter, admin, partner, partner_car, rate, expected):
    await make_paid_booking(db, renter, partner_car)
    response = await client.put(
        f"/api/v1/admin/partners/{partner.id}/commission-rate",
        json={"commission_rate": rate},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200

    response = await client.get(f"/api/v1/admin/partners/{partner.id}/balance", headers=auth_headers(admin))
    assert money(response.json()["partner_earnings"]) == Decimal(expected)
