"""
Push delivery transports.

A transport attempts one push to one subscriber and classifies the result:
- SUCCESS: the push service accepted the message
- PERMANENT: the subscription no longer exists (HTTP 404 or 410)
- TRANSIENT: anything else (timeouts, 5xx, unexpected responses)

New transports should inherit from DeliveryTransport and register
themselves in ``_TRANSPORT_REGISTRY``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Any, Callable

from pywebpush import WebPushException, webpush

from ..config import DeliveryConfig, VapidConfig
from ..core.types import DeliveryDescriptor, DeliveryOutcome, DeliveryResult

logger = logging.getLogger("hn_watcher.delivery")

PERMANENT_STATUS_CODES = frozenset({404, 410})


def classify_status(status_code: int | None) -> DeliveryOutcome:
    """Map a push service status code to a delivery outcome."""
    if status_code is not None and 200 <= status_code < 300:
        return DeliveryOutcome.SUCCESS
    if status_code in PERMANENT_STATUS_CODES:
        return DeliveryOutcome.PERMANENT
    return DeliveryOutcome.TRANSIENT


class DeliveryTransport(ABC):
    """Interface for pushing one payload to one subscriber."""

    name: str = "base"

    @abstractmethod
    async def deliver(self, descriptor: DeliveryDescriptor, payload: str) -> DeliveryResult:
        """Attempt a single push.

        Implementations never raise for delivery problems; every failure is
        reported through the returned DeliveryResult.
        """
        raise NotImplementedError


class WebPushTransport(DeliveryTransport):
    """Web Push (RFC 8030) with VAPID authentication via ``pywebpush``.

    The credentials are passed in explicitly so tests and multiple senders
    can coexist in one process.
    """

    name = "webpush"

    def __init__(
        self,
        vapid: VapidConfig,
        delivery_cfg: DeliveryConfig,
        send: Callable[..., Any] | None = None,
    ):
        self._private_key = vapid.resolved_private_key()
        self._subject = f"mailto:{vapid.resolved_contact_email()}"
        self._timeout = delivery_cfg.timeout_seconds
        self._ttl = delivery_cfg.ttl_seconds
        self._send = send or webpush

    async def deliver(self, descriptor: DeliveryDescriptor, payload: str) -> DeliveryResult:
        try:
            # pywebpush is blocking (requests); keep the event loop free.
            response = await asyncio.to_thread(
                self._send,
                subscription_info=descriptor.to_subscription_info(),
                data=payload,
                vapid_private_key=self._private_key,
                vapid_claims={"sub": self._subject},
                timeout=self._timeout,
                ttl=self._ttl,
            )
        except WebPushException as exc:
            response = getattr(exc, "response", None)
            status_code = getattr(response, "status_code", None) if response is not None else None
            return DeliveryResult(
                outcome=classify_status(status_code),
                status_code=status_code,
                error=getattr(exc, "message", None) or str(exc),
            )
        except Exception as exc:  # noqa: BLE001
            return DeliveryResult(
                outcome=DeliveryOutcome.TRANSIENT,
                error=f"{type(exc).__name__}: {exc}",
            )

        status_code = getattr(response, "status_code", None)
        if status_code is None:
            return DeliveryResult(outcome=DeliveryOutcome.SUCCESS)
        outcome = classify_status(status_code)
        error = None if outcome is DeliveryOutcome.SUCCESS else f"Unexpected status {status_code}"
        return DeliveryResult(outcome=outcome, status_code=status_code, error=error)


class LogTransport(DeliveryTransport):
    """Dry-run transport: logs each push and reports success."""

    name = "log"

    def __init__(self, vapid: VapidConfig | None = None, delivery_cfg: DeliveryConfig | None = None):
        self.delivered: list[tuple[str, str]] = []

    async def deliver(self, descriptor: DeliveryDescriptor, payload: str) -> DeliveryResult:
        self.delivered.append((descriptor.endpoint, payload))
        logger.info("Would push to %s: %s", descriptor.endpoint, payload)
        return DeliveryResult(outcome=DeliveryOutcome.SUCCESS)


TransportBuilder = type[DeliveryTransport]

_TRANSPORT_REGISTRY: dict[str, TransportBuilder] = {
    "webpush": WebPushTransport,
    "web-push": WebPushTransport,
    "log": LogTransport,
    "dry-run": LogTransport,
}


def available_transports() -> list[str]:
    """Return the set of registered transport names."""
    return sorted(_TRANSPORT_REGISTRY.keys())


def create_transport(delivery_cfg: DeliveryConfig, vapid_cfg: VapidConfig) -> DeliveryTransport:
    """Build a transport instance from runtime config."""
    name = delivery_cfg.transport.lower().strip()
    builder = _TRANSPORT_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_transports())
        raise ValueError(f"Unsupported transport: {delivery_cfg.transport}. Supported: {supported}")
    if builder is WebPushTransport and not vapid_cfg.is_valid():
        logger.warning("VAPID keys are not configured; web push deliveries will fail")
    return builder(vapid_cfg, delivery_cfg)
