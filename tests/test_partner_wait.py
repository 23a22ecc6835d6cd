import asyncio
from datetime import timedelta

import httpx
import pytest

from app.main import app
from app.models import Order
from app.services.partner_wait import PartnerWaitLoop, WaitOutcome

ORDER_ID = "3f0c1f6e-8d4b-4d57-9a39-2f5d3c1e7a10"
BASE_URL = "http://api.test"


class FakeClock:
    """Monotonic clock that only moves when the loop sleeps"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _status(status="PENDING", partner_id=None):
    return httpx.Response(
        200,
        json={"success": True, "data": {"id": ORDER_ID, "status": status, "partnerId": partner_id}},
    )


def _loop(handler, clock, **kwargs):
    return PartnerWaitLoop(
        ORDER_ID,
        base_url=BASE_URL,
        token="token",
        transport=httpx.MockTransport(handler),
        sleep=clock.sleep,
        clock=clock,
        **kwargs,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.asyncio
async def test_timeout_expires_order_once(clock):
    calls = {"reads": 0, "expires": 0}

    def handler(request):
        if request.method == "POST":
            assert request.url.path == f"/orders/{ORDER_ID}/expire"
            calls["expires"] += 1
            return httpx.Response(200, json={"success": True, "data": {}})
        calls["reads"] += 1
        assert request.headers["Authorization"] == "Bearer token"
        return _status()

    loop = _loop(handler, clock)
    result = await loop.run()

    assert result.outcome == WaitOutcome.TIMED_OUT
    assert not result.succeeded
    assert result.redirect == "/services"
    assert result.elapsed_seconds == 300
    assert calls == {"reads": 61, "expires": 1}
    assert set(clock.sleeps) == {5}
    assert loop.client.is_closed


@pytest.mark.asyncio
async def test_partner_found_within_one_interval(clock):
    expired = []

    def handler(request):
        if request.method == "POST":
            expired.append(request)
        if clock.now >= 10:
            return _status("ACCEPTED", partner_id=7)
        return _status()

    result = await _loop(handler, clock).run()

    assert result.outcome == WaitOutcome.PARTNER_FOUND
    assert result.succeeded
    assert result.partner_id == 7
    assert result.redirect == f"/payment/{ORDER_ID}"
    assert result.elapsed_seconds == 10
    assert expired == []


@pytest.mark.asyncio
async def test_cancelled_order_stops_the_wait(clock):
    def handler(request):
        return _status("CANCELLED") if clock.now >= 15 else _status()

    result = await _loop(handler, clock).run()

    assert result.outcome == WaitOutcome.CANCELLED
    assert result.redirect == "/services"


@pytest.mark.asyncio
async def test_failed_reads_are_retried(clock):
    attempts = []

    def handler(request):
        attempts.append(clock.now)
        if len(attempts) == 1:
            return httpx.Response(500, json={"success": False, "error": "boom"})
        if len(attempts) == 2:
            raise httpx.ConnectError("connection refused", request=request)
        if len(attempts) == 3:
            return httpx.Response(200, text="not json")
        return _status("IN_PROGRESS", partner_id=3)

    result = await _loop(handler, clock).run()

    assert result.outcome == WaitOutcome.PARTNER_FOUND
    assert attempts == [0, 5, 10, 15]


@pytest.mark.asyncio
async def test_expire_race_resolves_to_partner(clock):
    state = {"accepted": False}

    def handler(request):
        if request.method == "POST":
            state["accepted"] = True
            return httpx.Response(400, json={"success": False, "error": "Order is no longer waiting for a partner"})
        if state["accepted"]:
            return _status("ACCEPTED", partner_id=9)
        return _status()

    result = await _loop(handler, clock, timeout=20).run()

    assert result.outcome == WaitOutcome.PARTNER_FOUND
    assert result.partner_id == 9


@pytest.mark.asyncio
async def test_expire_failure_still_times_out(clock):
    def handler(request):
        if request.method == "POST":
            raise httpx.ConnectError("connection reset", request=request)
        return _status()

    result = await _loop(handler, clock, timeout=10).run()

    assert result.outcome == WaitOutcome.TIMED_OUT


@pytest.mark.asyncio
async def test_cancelling_the_task_closes_the_client():
    blocker = asyncio.Event()
    first_read = asyncio.Event()

    async def sleep_forever(seconds):
        await blocker.wait()

    def handler(request):
        first_read.set()
        return _status()

    loop = PartnerWaitLoop(
        ORDER_ID,
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        sleep=sleep_forever,
    )
    task = asyncio.create_task(loop.run())
    await first_read.wait()
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert loop.client.is_closed


@pytest.mark.asyncio
async def test_shared_client_is_left_open(clock):
    client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(lambda request: _status("ACCEPTED", 1))
    )
    loop = PartnerWaitLoop(ORDER_ID, client=client, sleep=clock.sleep, clock=clock)

    await loop.run()

    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_at_most_one_request_in_flight(clock):
    state = {"in_flight": 0, "peak": 0, "reads": 0}

    async def handler(request):
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        await asyncio.sleep(0)
        state["in_flight"] -= 1
        if request.method == "GET":
            state["reads"] += 1
        return _status()

    await _loop(handler, clock, timeout=60).run()

    assert state["peak"] == 1
    assert state["reads"] == 13


@pytest.mark.asyncio
async def test_progress_and_minutes_remaining(clock):
    loop = _loop(lambda request: _status(), clock)

    assert loop.progress == 0
    assert loop.minutes_remaining == 5

    loop.elapsed = 150
    assert loop.progress == 50
    assert loop.minutes_remaining == 3

    loop.elapsed = 400
    assert loop.progress == 100
    assert loop.minutes_remaining == 0
    await loop.client.aclose()


# ============================================================================
# Against the API
# ============================================================================


@pytest.mark.asyncio
async def test_unaccepted_order_is_cancelled_by_the_api(client, login, db, customer, service, make_order):
    order = make_order(customer, service, age=timedelta(seconds=301))
    login(customer)

    result = await PartnerWaitLoop(
        order.public_id,
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=app),
        timeout=0,
        sleep=FakeClock().sleep,
    ).run()

    assert result.outcome == WaitOutcome.TIMED_OUT
    db.expire_all()
    cancelled = db.get(Order, order.id)
    assert cancelled.status == "CANCELLED"
    assert cancelled.cancellation_reason == "no_partner_available"
    assert cancelled.cancelled_at is not None


@pytest.mark.asyncio
async def test_accepted_order_is_reported_by_the_api(
    client, login, customer, service, partner, make_order
):
    order = make_order(customer, service, status="ACCEPTED", partner=partner)
    login(customer)

    result = await PartnerWaitLoop(
        order.public_id,
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=app),
        sleep=FakeClock().sleep,
    ).run()

    assert result.outcome == WaitOutcome.PARTNER_FOUND
    assert result.partner_id == partner.id
