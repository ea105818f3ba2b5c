"""Notification dispatcher for Vigil.

NotificationChannel    -- ABC every channel must implement.
ChannelPolicy          -- Per-channel minimum severity.
NotificationDispatcher -- Fans an alert out to every eligible channel
                          concurrently; a failure in one channel never blocks
                          the others and never escapes ``dispatch``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog

from vigil.errors import ChannelDeliveryError, ValidationError
from vigil.models.alerts import Alert, ChannelOutcome, DispatchResult, Severity
from vigil.observability.metrics import notifications_total

_log = structlog.get_logger(component="notifications.manager")

CHANNEL_NAMES: tuple[str, ...] = ("email", "chat", "webhook")
ALL_CHANNELS = "all"

_DEFAULT_TIMEOUT = 10.0


class NotificationChannel(ABC):
    """Abstract base class for all notification channels.

    ``send`` either returns normally (delivered) or raises
    ``ChannelDeliveryError`` with a reason.  The dispatcher also tolerates
    any other exception, but channels should translate transport errors.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Channel identifier used in results, metrics and logs."""

    @abstractmethod
    async def send(self, alert: Alert) -> None:
        """Deliver *alert* via this channel.

        Raises:
            ChannelDeliveryError: the remote endpoint did not accept it.
        """

    async def close(self) -> None:
        """Release resources held by the channel."""


@dataclass(frozen=True)
class ChannelPolicy:
    """Delivery rules for one channel."""

    min_severity: Severity = Severity.INFO

    def accepts(self, alert: Alert) -> bool:
        return alert.severity >= self.min_severity


class NotificationDispatcher:
    """Fan-out dispatcher that sends an alert to every eligible channel.

    * ``dispatch`` never raises for delivery problems; each channel's outcome
      is reported in the returned map.
    * Each send is bounded by ``timeout`` seconds.
    * One attempt per channel per call; retry is the caller's business.
    * ``schedule`` runs ``dispatch`` as a background task for callers that
      must not wait on delivery.

    Args:
        channels: Configured channels; names must be unique.
        policies: channel name -> ChannelPolicy.  Channels without an entry
                  accept every severity.
        timeout:  Per-channel send timeout in seconds.
    """

    def __init__(
        self,
        channels: Iterable[NotificationChannel],
        policies: Mapping[str, ChannelPolicy] | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._channels: dict[str, NotificationChannel] = {}
        for channel in channels:
            if channel.channel_name in self._channels:
                raise ValueError(f"Duplicate notification channel: {channel.channel_name}")
            self._channels[channel.channel_name] = channel
        self._policies: dict[str, ChannelPolicy] = dict(policies or {})
        self._timeout = timeout
        self._pending: set[asyncio.Task[DispatchResult]] = set()

    @property
    def channel_names(self) -> list[str]:
        return list(self._channels)

    def policy_for(self, name: str) -> ChannelPolicy:
        return self._policies.get(name, ChannelPolicy())

    async def dispatch(
        self,
        alert: Alert,
        channels: str | Iterable[str] | None = None,
        *,
        ignore_policy: bool = False,
    ) -> DispatchResult:
        """Deliver *alert* to the requested channels (default: all configured).

        A single channel name may be passed as a bare string.

        Returns:
            channel name -> ChannelOutcome for every requested channel.
            Unconfigured names are reported as failed; channels whose policy
            rejects the alert's severity are reported as skipped.
        """
        if isinstance(channels, str):
            channels = [channels]
        requested = list(self._channels) if channels is None else list(dict.fromkeys(channels))
        result: DispatchResult = {}
        eligible: list[NotificationChannel] = []

        for name in requested:
            channel = self._channels.get(name)
            if channel is None:
                result[name] = ChannelOutcome.failed("channel not configured")
                continue
            policy = self.policy_for(name)
            if not ignore_policy and not policy.accepts(alert):
                result[name] = ChannelOutcome.skipped(f"below minimum severity {policy.min_severity.value}")
                continue
            eligible.append(channel)

        outcomes = await asyncio.gather(*(self._send_one(channel, alert) for channel in eligible))
        for channel, outcome in zip(eligible, outcomes, strict=True):
            result[channel.channel_name] = outcome

        # Preserve the caller's channel order in the result.
        return {name: result[name] for name in requested}

    def schedule(self, alert: Alert) -> asyncio.Task[DispatchResult] | None:
        """Start ``dispatch(alert)`` in the background and return the task.

        Must be called from inside a running event loop.  Returns None when
        no channels are configured.
        """
        if not self._channels:
            return None
        task = asyncio.get_running_loop().create_task(
            self.dispatch(alert),
            name=f"dispatch-alert-{alert.id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def send_test(self, channel: str = ALL_CHANNELS) -> DispatchResult:
        """Send a synthetic info alert to one channel or to all of them.

        Severity policies are ignored so that every targeted channel is
        actually exercised.  The alert is never recorded anywhere.

        Raises:
            ValidationError: *channel* is neither a channel kind nor ``"all"``.
        """
        if channel == ALL_CHANNELS:
            targets: list[str] = list(self._channels)
        elif channel in CHANNEL_NAMES or channel in self._channels:
            targets = [channel]
        else:
            valid = [*CHANNEL_NAMES, ALL_CHANNELS]
            raise ValidationError(f"Unknown channel {channel!r}; expected one of {valid}")

        alert = Alert(
            type="test",
            severity=Severity.INFO,
            message="Test notification from Vigil. No action required.",
            value=0.0,
            threshold=0.0,
            manual=True,
        )
        _log.info("test_notification_requested", channel=channel, targets=targets)
        return await self.dispatch(alert, targets, ignore_policy=True)

    async def drain(self) -> None:
        """Wait for every scheduled dispatch to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        """Drain pending dispatches and close every channel."""
        await self.drain()
        for channel in self._channels.values():
            try:
                await channel.close()
            except Exception as exc:  # noqa: BLE001
                _log.warning("notification_channel_close_error", channel=channel.channel_name, error=str(exc))

    async def _send_one(self, channel: NotificationChannel, alert: Alert) -> ChannelOutcome:
        """Deliver to a single channel, recording metrics regardless of outcome."""
        name = channel.channel_name
        try:
            await asyncio.wait_for(channel.send(alert), timeout=self._timeout)
            outcome = ChannelOutcome.success()
        except TimeoutError:
            outcome = ChannelOutcome.failed(f"timed out after {self._timeout:g}s")
        except ChannelDeliveryError as exc:
            outcome = ChannelOutcome.failed(exc.reason)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "notification_channel_unexpected_error",
                channel=name,
                alert_id=alert.id,
                error=str(exc),
            )
            outcome = ChannelOutcome.failed(f"{type(exc).__name__}: {exc}")

        notifications_total.labels(channel=name, status=outcome.status.value).inc()

        if outcome.ok:
            _log.info(
                "notification_sent",
                channel=name,
                alert_id=alert.id,
                type=alert.type,
                severity=alert.severity.value,
            )
        else:
            _log.warning(
                "notification_failed",
                channel=name,
                alert_id=alert.id,
                reason=outcome.reason,
            )
        return outcome
