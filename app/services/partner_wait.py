"""
Partner wait loop

After booking, the customer's client polls the order status until a partner
accepts, the order is cancelled, or the wait window runs out. On timeout the
loop asks the API to expire the order and reports failure.

Only the status read is ever retried. Ticks are strictly sequential so at
most one request is in flight.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from ..config import PARTNER_WAIT_INTERVAL_SECONDS, PARTNER_WAIT_TIMEOUT_SECONDS
from ..domain.orders.lifecycle import ASSIGNED_STATUSES, OrderStatus, parse_status

logger = logging.getLogger(__name__)


class WaitOutcome(str, Enum):
    PARTNER_FOUND = "partner_found"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class WaitResult:
    outcome: WaitOutcome
    order_id: str
    elapsed_seconds: float
    redirect: str
    partner_id: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == WaitOutcome.PARTNER_FOUND


class PartnerWaitLoop:
    """
    Poll GET /orders/{order_id}/status every `interval` seconds for up to
    `timeout` seconds.

    Pass an existing httpx.AsyncClient to share a connection pool; otherwise
    the loop builds one from base_url/token and closes it when it stops,
    including when the task running it is cancelled.
    """

    def __init__(
        self,
        order_id: str,
        base_url: str = "",
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        interval: float = PARTNER_WAIT_INTERVAL_SECONDS,
        timeout: float = PARTNER_WAIT_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.order_id = order_id
        self.interval = interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._owns_client = client is None
        if client is None:
            headers = {"Authorization": f"Bearer {token}"} if token else None
            client = httpx.AsyncClient(
                base_url=base_url, headers=headers, timeout=10, transport=transport
            )
        self.client = client
        self.elapsed = 0.0
        self.last_status: Optional[str] = None

    @property
    def progress(self) -> float:
        """Percentage of the wait window used so far"""
        if self.timeout <= 0:
            return 100.0
        return min(100.0, self.elapsed / self.timeout * 100)

    @property
    def minutes_remaining(self) -> int:
        return math.ceil(max(0.0, self.timeout - self.elapsed) / 60)

    def _result(self, outcome: WaitOutcome, partner_id: Optional[int] = None) -> WaitResult:
        redirect = f"/payment/{self.order_id}" if outcome == WaitOutcome.PARTNER_FOUND else "/services"
        return WaitResult(
            outcome=outcome,
            order_id=self.order_id,
            elapsed_seconds=self.elapsed,
            redirect=redirect,
            partner_id=partner_id,
        )

    async def _read_status(self) -> Optional[dict]:
        try:
            response = await self.client.get(f"/orders/{self.order_id}/status")
            response.raise_for_status()
            return response.json()["data"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"⚠️ Status check failed for order {self.order_id}, retrying: {e}")
            return None

    def _resolve(self, data: dict) -> Optional[WaitResult]:
        status = parse_status(data.get("status", ""))
        self.last_status = status.value if status else data.get("status")
        partner_id = data.get("partnerId")

        if status in ASSIGNED_STATUSES and partner_id:
            logger.info(f"✅ Partner {partner_id} accepted order {self.order_id}")
            return self._result(WaitOutcome.PARTNER_FOUND, partner_id)
        if status == OrderStatus.CANCELLED:
            logger.info(f"🚫 Order {self.order_id} was cancelled while waiting")
            return self._result(WaitOutcome.CANCELLED)
        return None

    async def _expire(self) -> WaitResult:
        """Ask the API to cancel the unaccepted order, then report the timeout"""
        logger.info(f"⏱️ No partner for order {self.order_id} after {self.elapsed:.0f}s, expiring")
        try:
            response = await self.client.post(f"/orders/{self.order_id}/expire")
            if response.status_code == 400:
                # Lost a race: the order left PENDING just before the deadline
                data = await self._read_status()
                resolved = self._resolve(data) if data else None
                if resolved and resolved.outcome == WaitOutcome.PARTNER_FOUND:
                    return resolved
            elif response.is_error:
                logger.error(
                    f"❌ Failed to expire order {self.order_id}: HTTP {response.status_code}"
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to expire order {self.order_id}: {e}")
        return self._result(WaitOutcome.TIMED_OUT)

    async def run(self) -> WaitResult:
        started = self._clock()
        try:
            while True:
                data = await self._read_status()
                self.elapsed = self._clock() - started

                if data:
                    resolved = self._resolve(data)
                    if resolved:
                        return resolved

                if self.elapsed >= self.timeout:
                    return await self._expire()

                await self._sleep(self.interval)
        except asyncio.CancelledError:
            logger.info(f"🛑 Stopped waiting for order {self.order_id}")
            raise
        finally:
            if self._owns_client:
                await self.client.aclose()
