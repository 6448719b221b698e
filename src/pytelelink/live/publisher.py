"""Outbound publishing with optional broker transactions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import pika

from pytelelink._constants import (
    DEFAULT_PULSE_EXPIRY_MS,
    DELIVERY_MODE_PERSISTENT,
    DELIVERY_MODE_TRANSIENT,
    JSON_CONTENT_TYPE,
)
from pytelelink._routing import command_response_key, exchange_name, observation_key, pulse_key
from pytelelink.exceptions import ConfigurationError, TransportError
from pytelelink.live.session import BROKER_ERRORS, LiveSession
from pytelelink.models._base import utcnow
from pytelelink.models.commands import Command, CommandResponse
from pytelelink.models.observations import Observation
from pytelelink.models.pulse import DEVICE_PULSE_ID, Pulse
from pytelelink.result import Outcome

_logger = logging.getLogger(__name__)


class Publisher:
    """Publishes observations, command responses and pulses on a session.

    In atomic mode (``use_atomic_transactions``) every publish stands on
    its own and publishing while a transaction is open is an error. Batch
    mode brackets publishes with :meth:`publish_begin` and
    :meth:`publish_commit` / :meth:`publish_rollback`; it cannot be used
    together with automatic callbacks.
    """

    def __init__(self, session: LiveSession) -> None:
        self._session = session

    @property
    def transaction_open(self) -> bool:
        return self._session.transaction_open

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_observation(self, observation_id: int, observation: Observation | bytes) -> Outcome:
        """Publish one observation, or a raw binary payload, for *observation_id*."""
        body = observation if isinstance(observation, bytes) else observation.to_json().encode("utf-8")
        return self._publish(
            observation_key(self._session.mid, observation_id),
            body,
            DELIVERY_MODE_TRANSIENT,
        )

    def publish_command_response(
        self,
        command: Command,
        was_accepted: bool = True,
        timestamp: datetime | None = None,
        result_code: int | None = None,
        comment: str | None = None,
    ) -> Outcome:
        """Reply to *command*; ``timestamp`` defaults to now and is sent as the delivery time."""
        self._check_atomic()
        if not self._session.is_connected():
            return _not_connected()
        response = CommandResponse(
            id=command.id,
            timestamp=command.timestamp,
            delivered_at=timestamp or utcnow(),
            was_accepted=was_accepted,
            result_code=result_code,
            comment=comment,
        )
        return self._publish(
            command_response_key(self._session.mid, command.id, command.timestamp),
            response.to_json().encode("utf-8"),
            DELIVERY_MODE_PERSISTENT,
        )

    def send_pulse(self, timestamp: datetime | None = None, expiry_ms: int = DEFAULT_PULSE_EXPIRY_MS) -> Outcome:
        """Publish a device pulse; the broker drops it after ``expiry_ms`` if positive."""
        self._check_atomic()
        if not self._session.is_connected():
            return _not_connected()
        pulse = Pulse(mid=self._session.mid, pulse_id=DEVICE_PULSE_ID, timestamp=timestamp or utcnow())
        return self._publish(
            pulse_key(self._session.mid, DEVICE_PULSE_ID),
            pulse.to_json().encode("utf-8"),
            DELIVERY_MODE_TRANSIENT,
            expiration=str(expiry_ms) if expiry_ms > 0 else None,
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def publish_begin(self) -> Outcome:
        """Open a broker transaction on the channel."""
        self._check_manual_mode()

        def select(channel: Any) -> None:
            channel.tx_select()
            self._session.transaction_open = True

        return self._transaction_step("begin", select)

    def publish_commit(self) -> Outcome:
        self._check_manual_mode()

        def commit(channel: Any) -> None:
            channel.tx_commit()
            self._session.transaction_open = False

        return self._transaction_step("commit", commit)

    def publish_rollback(self) -> Outcome:
        self._check_manual_mode()

        def rollback(channel: Any) -> None:
            channel.tx_rollback()
            self._session.transaction_open = False

        return self._transaction_step("rollback", rollback)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_atomic(self) -> None:
        if not self._session.config.use_atomic_transactions:
            return
        with self._session.lock:
            in_transaction = self._session.transaction_open
        if in_transaction:
            raise ConfigurationError("Unable to publish atomically while a transaction is open")

    def _check_manual_mode(self) -> None:
        if self._session.config.use_automatic_callbacks:
            raise ConfigurationError("Transactions cannot be used while automatic callbacks are enabled")

    def _transaction_step(self, name: str, step: Callable[[Any], None]) -> Outcome:
        with self._session.lock:
            channel = self._session.channel
            if channel is None:
                return _not_connected()
            try:
                step(channel)
            except BROKER_ERRORS as exc:
                _logger.warning("Transaction %s failed: %s", name, exc)
                return Outcome.failure(TransportError(f"Transaction {name} failed: {exc}"))
        _logger.debug("Transaction %s mid=%s", name, self._session.mid)
        return Outcome.success()

    def _publish(
        self,
        routing_key: str,
        body: bytes,
        delivery_mode: int,
        *,
        expiration: str | None = None,
    ) -> Outcome:
        self._check_atomic()
        properties = pika.BasicProperties(
            content_type=JSON_CONTENT_TYPE,
            delivery_mode=delivery_mode,
            expiration=expiration,
        )
        with self._session.lock:
            if not self._session.is_connected():
                return _not_connected()
            try:
                self._session.channel.basic_publish(
                    exchange=exchange_name(self._session.mid),
                    routing_key=routing_key,
                    body=body,
                    properties=properties,
                    mandatory=True,
                )
            except BROKER_ERRORS as exc:
                _logger.warning("Publish failed routing_key=%s: %s", routing_key, exc)
                return Outcome.failure(TransportError(f"Publish failed: {exc}", endpoint=routing_key))
        _logger.debug("Published routing_key=%s bytes=%d", routing_key, len(body))
        return Outcome.success()


def _not_connected() -> Outcome:
    return Outcome.failure(TransportError("Not connected to broker"))
