"""
HTTP surface: envelopes, authentication and the end-to-end booking flow
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from app.models.base import utcnow

API = "/api/v1"


class TestEnvelopes:

    @pytest.mark.asyncio
    async def test_search_returns_trips_with_counts(self, client, trip):
        response = await client.get(f"{API}/trips", params={"from": "lisbon", "to": "PORTO"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "success"
        items = body["data"]["items"]
        assert len(items) == 1
        assert items[0]["id"] == str(trip.id)
        assert items[0]["route"]["departure_city"] == "Lisbon"
        assert items[0]["seat_counts"]["available"] == 4
        assert Decimal(items[0]["price"]) == Decimal("100.00")
        assert body["data"]["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_search_cache_is_invalidated_by_bookings(self, client, trip, user_headers):
        first = await client.get(f"{API}/trips", params={"from": "Lisbon"})
        assert first.json()["data"]["items"][0]["seat_counts"]["available"] == 4

        await client.post(f"{API}/bookings", json={"trip_id": str(trip.id), "seats_count": 1}, headers=user_headers)

        second = await client.get(f"{API}/trips", params={"from": "Lisbon"})
        assert second.json()["data"]["items"][0]["seat_counts"]["available"] == 3

    @pytest.mark.asyncio
    async def test_empty_search_is_a_warning(self, client, trip):
        response = await client.get(f"{API}/trips", params={"from": "Madrid"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "warning"
        assert body["data"]["items"] == []

    @pytest.mark.asyncio
    async def test_unknown_trip_is_not_found(self, client, trip):
        response = await client.get(f"{API}/trips/{uuid4()}")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["status"] == "error"
        assert body["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_seat_map_and_check(self, client, trip):
        response = await client.get(f"{API}/trips/{trip.id}/seats")
        data = response.json()["data"]
        assert [s["seat_number"] for s in data["seats"]] == ["A1", "A2", "A3", "A4"]
        assert data["counts"]["total"] == 4

        response = await client.post(f"{API}/trips/{trip.id}/seats/check", json={"seat_numbers": ["a1", "a2"]})
        assert response.json()["status"] == "success"
        assert response.json()["data"]["all_available"] is True

    @pytest.mark.asyncio
    async def test_request_validation_error(self, client, trip, user_headers):
        response = await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seats_count": 0}, headers=user_headers
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["errors"]

    @pytest.mark.asyncio
    async def test_eleven_seats_rejected(self, client, trip, user_headers):
        numbers = [f"A{i}" for i in range(1, 12)]
        response = await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seat_numbers": numbers}, headers=user_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert "Maximum 10 seats" in response.json()["error"]["message"]

    @pytest.mark.asyncio
    async def test_health(self, client, database):
        live = await client.get(f"{API}/health/live")
        assert live.json()["status"] == "alive"

        ready = await client.get(f"{API}/health/ready")
        assert ready.status_code == 200
        assert ready.json()["checks"]["database"] is True


class TestAuth:

    @pytest.mark.asyncio
    async def test_missing_token(self, client, trip):
        response = await client.get(f"{API}/bookings")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client, trip):
        response = await client.get(f"{API}/bookings", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_routes_need_admin_role(self, client, trip, user_headers):
        response = await client.get(f"{API}/admin/bookings", headers=user_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_other_users_booking_is_forbidden(self, client, trip, user_headers, other_user_headers):
        created = await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seats_count": 1}, headers=user_headers
        )
        booking_id = created.json()["data"]["id"]

        response = await client.get(f"{API}/bookings/{booking_id}", headers=other_user_headers)
        assert response.status_code == 403


class TestBookingFlow:

    @pytest.mark.asyncio
    async def test_lock_book_pay_and_confirm(self, client, trip, user_headers, admin_headers, storage):
        lock = await client.post(
            f"{API}/bookings/lock-seats",
            json={"trip_id": str(trip.id), "seat_numbers": ["A3", "A4"], "lock_duration": 120},
            headers=user_headers
        )
        assert lock.status_code == 201
        assert lock.json()["data"]["seats"] == ["A3", "A4"]

        created = await client.post(
            f"{API}/bookings",
            json={"trip_id": str(trip.id), "seat_numbers": ["A3", "A4"]},
            headers=user_headers
        )
        assert created.status_code == 201
        booking = created.json()["data"]
        assert booking["status"] == "pending"
        assert Decimal(booking["total_price"]) == Decimal("200.00")
        assert sorted(s["seat_number"] for s in booking["seats"]) == ["A3", "A4"]
        assert booking["bill"]["status"] == "unpaid"

        empty = await client.get(f"{API}/bookings/{booking['id']}/payments", headers=user_headers)
        assert empty.json()["status"] == "warning"

        paid = await client.post(
            f"{API}/bookings/{booking['id']}/payments",
            data={"method": "cash"},
            files={"receipt_image": ("receipt.png", b"\x89PNG\r\n\x1a\n0000", "image/png")},
            headers=user_headers
        )
        assert paid.status_code == 201
        payment = paid.json()["data"]
        assert Decimal(payment["amount"]) == Decimal("50.00")
        assert payment["status"] == "pending"
        assert payment["receipt_image"].startswith("/media/receipts/")

        pending = await client.get(f"{API}/admin/payments", params={"status": "pending"}, headers=admin_headers)
        assert [p["id"] for p in pending.json()["data"]["items"]] == [payment["id"]]

        decided = await client.put(f"{API}/admin/payments/{payment['id']}/confirm", headers=admin_headers)
        assert decided.status_code == 200
        decision = decided.json()["data"]
        assert decision["booking_status"] == "confirmed"
        assert decision["bill_status"] == "paid"
        assert Decimal(decision["remainder_payment"]["amount"]) == Decimal("150.00")

        history = await client.get(f"{API}/bookings/{booking['id']}/payments", headers=user_headers)
        summary = history.json()["data"]["summary"]
        assert Decimal(summary["total_paid"]) == Decimal("200.00")
        assert summary["is_fully_paid"] is True

        status = await client.get(f"{API}/bookings/{booking['id']}/status", headers=user_headers)
        assert status.json()["data"]["status"] == "confirmed"
        assert status.json()["data"]["available_actions"] == ["cancel"]

    @pytest.mark.asyncio
    async def test_seat_conflict_is_409(self, client, trip, user_headers, other_user_headers):
        await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seat_numbers": ["A1"]}, headers=user_headers
        )
        response = await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seat_numbers": ["A1"]}, headers=other_user_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SEATS_UNAVAILABLE"
        assert response.json()["error"]["message"] == "The following seats are not available: A1"

    @pytest.mark.asyncio
    async def test_user_cancels_and_lists(self, client, trip, user_headers):
        created = await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seats_count": 2}, headers=user_headers
        )
        booking_id = created.json()["data"]["id"]

        cancelled = await client.put(
            f"{API}/bookings/{booking_id}/status",
            json={"status": "cancelled", "reason": "Plans changed"},
            headers=user_headers
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["status"] == "cancelled"

        again = await client.put(
            f"{API}/bookings/{booking_id}/status", json={"status": "cancelled"}, headers=user_headers
        )
        assert again.status_code == 422
        assert again.json()["error"]["code"] == "BOOKING_FINALIZED"

        listed = await client.get(f"{API}/bookings", params={"status": "cancelled"}, headers=user_headers)
        assert [b["id"] for b in listed.json()["data"]["items"]] == [booking_id]


class TestAdmin:

    @pytest.mark.asyncio
    async def test_create_trip_generates_seats(self, client, route, bus, admin_headers):
        departure = utcnow() + timedelta(days=5)
        response = await client.post(
            f"{API}/admin/trips",
            json={
                "route_id": str(route.id),
                "bus_id": str(bus.id),
                "departure_time": departure.isoformat(),
                "arrival_time": (departure + timedelta(hours=4)).isoformat(),
                "last_booking_time": (departure - timedelta(hours=2)).isoformat(),
                "price": "35.50",
            },
            headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["seat_counts"]["total"] == bus.capacity
        assert data["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_trip_times_must_be_ordered(self, client, route, bus, admin_headers):
        departure = utcnow() + timedelta(days=5)
        response = await client.post(
            f"{API}/admin/trips",
            json={
                "route_id": str(route.id),
                "bus_id": str(bus.id),
                "departure_time": departure.isoformat(),
                "arrival_time": (departure - timedelta(hours=1)).isoformat(),
                "last_booking_time": (departure - timedelta(hours=2)).isoformat(),
                "price": "35.50",
            },
            headers=admin_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_block_seats_and_stats(self, client, trip, admin_headers, user_headers):
        seats = (await client.get(f"{API}/admin/trips/{trip.id}/seats", headers=admin_headers)).json()["data"]["seats"]
        blocked = await client.post(
            f"{API}/admin/trips/{trip.id}/block-seats",
            json={"seat_ids": [seats[0]["id"]]},
            headers=admin_headers
        )
        assert blocked.status_code == 200
        assert blocked.json()["data"]["seats"][0]["status"] == "blocked"

        again = await client.post(
            f"{API}/admin/trips/{trip.id}/block-seats",
            json={"seat_ids": [seats[0]["id"]]},
            headers=admin_headers
        )
        assert again.status_code == 409

        await client.post(f"{API}/bookings", json={"trip_id": str(trip.id), "seats_count": 1}, headers=user_headers)
        stats = await client.get(f"{API}/admin/stats", headers=admin_headers)
        data = stats.json()["data"]
        assert data["total_bookings"] == 1
        assert data["bookings_by_status"]["pending"] == 1
        assert data["top_routes"][0]["bookings"] == 1

    @pytest.mark.asyncio
    async def test_admin_delete_booking(self, client, trip, admin_headers, user_headers):
        created = await client.post(
            f"{API}/bookings", json={"trip_id": str(trip.id), "seats_count": 1}, headers=user_headers
        )
        booking_id = created.json()["data"]["id"]

        deleted = await client.delete(f"{API}/admin/bookings/{booking_id}", headers=admin_headers)
        assert deleted.status_code == 200

        missing = await client.get(f"{API}/admin/bookings/{booking_id}", headers=admin_headers)
        assert missing.status_code == 404
