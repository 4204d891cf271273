"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention  # Many users, few seats: no double holds
  locust -f locustfile.py --tags seatmap     # Seat map reads
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # All tests

Tokens are minted locally with the engine's SECRET_KEY (env var, same default
as the service), since identity is owned by another service.
"""

import os
import random
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from locust import HttpUser, task, between, tag, events

SECRET_KEY = os.environ.get("SECRET_KEY", "super-secret-key-change-in-production")
ALGORITHM = os.environ.get("ALGORITHM", "HS256")

CONTENTION_SHOWTIME_ID = os.environ.get("CONTENTION_SHOWTIME_ID", f"load-{uuid.uuid4().hex[:8]}")
CONTENTION_SEATS = [f"A{n}" for n in range(1, 11)]
BROWSE_SHOWTIME_IDS = [f"browse-{n}" for n in range(1, 6)]


def mint_token(user_id: str, role: str = "user") -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=1)
    return jwt.encode({"sub": user_id, "role": role, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(role: str = "user") -> dict:
    return {"Authorization": f"Bearer {mint_token(f'load-{uuid.uuid4().hex[:12]}', role)}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contention showtime {CONTENTION_SHOWTIME_ID}, {len(CONTENTION_SEATS)} seats")
    print("=" * 60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT seat_id, COUNT(*) FROM booking_seats
      WHERE showtime_id = X GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = auth_headers()

    @tag("contention")
    @task
    def hold_and_book(self):
        """Everyone fights for the same 10 seats; winners book immediately."""
        seat_id = random.choice(CONTENTION_SEATS)
        with self.client.post(
            "/api/v1/seats/hold",
            json={"showtimeId": CONTENTION_SHOWTIME_ID, "seatId": seat_id},
            headers=self.headers,
            name="/api/v1/seats/hold [contended]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 409:
                resp.success()  # Expected: someone else holds it
                return
            if resp.status_code != 200:
                resp.failure(f"Unexpected: {resp.status_code}")
                return
            resp.success()

        with self.client.post(
            "/api/v1/bookings",
            json={"showtimeId": CONTENTION_SHOWTIME_ID, "seatIds": [seat_id]},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class SeatMapUser(HttpUser):
    """
    TEST 2: Seat map reads - held seats from the lock store, booked seats from the DB

    Run: locust -f locustfile.py --tags seatmap -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = auth_headers()

    @tag("seatmap", "read")
    @task(10)
    def held_seats(self):
        showtime_id = random.choice(BROWSE_SHOWTIME_IDS)
        self.client.get(
            f"/api/v1/seats/held/{showtime_id}",
            headers=self.headers,
            name="/api/v1/seats/held/{showtimeId}",
        )

    @tag("seatmap", "read")
    @task(10)
    def booked_seats(self):
        showtime_id = random.choice(BROWSE_SHOWTIME_IDS)
        self.client.get(
            f"/api/v1/bookings/showtimes/{showtime_id}/seats",
            name="/api/v1/bookings/showtimes/{showtimeId}/seats",
        )

    @tag("seatmap")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = auth_headers()

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def book_without_hold(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"showtimeId": "edge", "seatIds": [f"Z{random.randint(1, 999)}"]},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [409])

    @tag("edge")
    @task
    def duplicate_seats(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"showtimeId": "edge", "seatIds": ["A1", "A1"]},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def empty_booking(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"showtimeId": "edge", "seatIds": [], "items": []},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/seats/hold",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/seats/hold",
            json={"showtimeId": "edge", "seatId": "A1"},
            catch_response=True,
        ) as resp:
            self.expect(resp, [401])

    @tag("edge")
    @task
    def forged_callback(self):
        """Unsigned webhook: rejected or acknowledged, never marks anything paid."""
        with self.client.post(
            "/api/v1/payments/momo/callback",
            json={"bookingId": random.randint(100000, 999999), "status": "success"},
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()  # momo is not configured on this deployment
            elif resp.status_code == 200 and resp.json().get("outcome") != "paid":
                resp.success()
            else:
                resp.failure(f"Forged callback accepted: {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly seat map reads
      - Some holds, some abandoned
      - Few bookings
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = auth_headers()
        self.showtime_id = random.choice(BROWSE_SHOWTIME_IDS)
        self.held: list[str] = []

    @task(50)
    def view_seat_map(self):
        self.client.get(
            f"/api/v1/seats/held/{self.showtime_id}",
            headers=self.headers,
            name="/api/v1/seats/held/{showtimeId}",
        )
        self.client.get(
            f"/api/v1/bookings/showtimes/{self.showtime_id}/seats",
            name="/api/v1/bookings/showtimes/{showtimeId}/seats",
        )

    @task(15)
    def hold_seat(self):
        seat_id = f"{random.choice('ABCDEFGH')}{random.randint(1, 20)}"
        resp = self.client.post(
            "/api/v1/seats/hold",
            json={"showtimeId": self.showtime_id, "seatId": seat_id},
            headers=self.headers,
            name="/api/v1/seats/hold",
        )
        if resp.status_code == 200:
            self.held.append(seat_id)

    @task(5)
    def abandon_hold(self):
        if self.held:
            seat_id = self.held.pop()
            self.client.delete(
                f"/api/v1/seats/hold/{self.showtime_id}/{seat_id}",
                headers=self.headers,
                name="/api/v1/seats/hold/{showtimeId}/{seatId}",
            )

    @task(5)
    def book_held(self):
        if self.held:
            seats, self.held = self.held, []
            self.client.post(
                "/api/v1/bookings",
                json={"showtimeId": self.showtime_id, "seatIds": seats},
                headers=self.headers,
            )
