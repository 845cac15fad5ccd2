"""Hour action results and the side effects each outcome triggers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from .notification import DEFAULT_APP_NAME, NotificationSink


_LOG = logging.getLogger("hourly_chime.actions")


class ActionOutcome(str, Enum):
    """Possible outcomes of an hour action."""

    PLAYED = "played"
    NO_RESOURCE_CONFIGURED = "no_resource_configured"
    RESOURCE_UNAVAILABLE = "resource_unavailable"


@dataclass(frozen=True)
class ActionResult:
    """Outcome of running the hour action for ``hour``.

    Attributes
    ----------
    outcome:
        Which of the three outcomes occurred.
    hour:
        Hour slot (0-23) the action ran for.
    resource:
        Display name of the configured resource, when one was resolved.
    detail:
        Free-form reason recorded for unavailable resources.
    """

    outcome: ActionOutcome
    hour: int
    resource: str | None = None
    detail: str | None = None

    @classmethod
    def played(cls, hour: int, resource: str) -> "ActionResult":
        return cls(ActionOutcome.PLAYED, hour, resource)

    @classmethod
    def no_resource(cls, hour: int) -> "ActionResult":
        return cls(ActionOutcome.NO_RESOURCE_CONFIGURED, hour)

    @classmethod
    def unavailable(
        cls, hour: int, resource: str | None = None, detail: str | None = None
    ) -> "ActionResult":
        return cls(ActionOutcome.RESOURCE_UNAVAILABLE, hour, resource, detail)

    @property
    def needs_fallback(self) -> bool:
        return self.outcome is not ActionOutcome.PLAYED


HourAction = Callable[[int], ActionResult]


class FallbackSignal(Protocol):
    """Plays the default alert when the configured resource cannot be used."""

    def __call__(self) -> None:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class Notification:
    title: str
    body: str


def _hour_label(hour: int) -> str:
    return f"{hour}:00"


def describe_result(result: ActionResult, app_name: str = DEFAULT_APP_NAME) -> Notification:
    """Return the user-facing notification for ``result``."""

    label = _hour_label(result.hour)
    if result.outcome is ActionOutcome.PLAYED:
        return Notification(app_name, f"Playing audio for {label} - {result.resource}")

    if result.outcome is ActionOutcome.NO_RESOURCE_CONFIGURED:
        return Notification(
            app_name, f"Playing system sound for {label} (no custom audio set)"
        )

    subject = f"'{result.resource}'" if result.resource else "the configured audio"
    return Notification(
        "Audio File Missing",
        f"Could not play {subject} for {label}. File may be missing, moved, "
        "or corrupted. Playing system sound instead.",
    )


def run_hour_action(action: HourAction, hour: int) -> ActionResult:
    """Invoke ``action`` for ``hour``; any exception becomes ``RESOURCE_UNAVAILABLE``."""

    try:
        result = action(hour)
    except Exception as exc:
        _LOG.exception("Hour action failed for hour %02d", hour)
        return ActionResult.unavailable(hour, detail=str(exc) or type(exc).__name__)

    if not isinstance(result, ActionResult):
        _LOG.error(
            "Hour action returned %r instead of an ActionResult", type(result).__name__
        )
        return ActionResult.unavailable(hour, detail="invalid action result")
    return result


class ActionResultHandler:
    """Turns an :class:`ActionResult` into notifications and fallback alerts.

    Both collaborators are fire-and-forget: a failing sink or fallback is
    logged and never propagates into the scheduler.
    """

    def __init__(
        self,
        notifier: NotificationSink,
        fallback: FallbackSignal,
        *,
        app_name: str = DEFAULT_APP_NAME,
    ) -> None:
        self._notifier = notifier
        self._fallback = fallback
        self._app_name = app_name

    def _notify(self, notification: Notification) -> None:
        try:
            self._notifier(notification.title, notification.body)
        except Exception as exc:
            _LOG.warning("Notification delivery failed: %s", exc)

    def _play_fallback(self) -> None:
        try:
            self._fallback()
        except Exception as exc:
            _LOG.warning("Fallback alert failed: %s", exc)

    def handle(self, result: ActionResult) -> Notification:
        notification = describe_result(result, self._app_name)

        if result.outcome is ActionOutcome.PLAYED:
            _LOG.info("Played %s for hour %02d", result.resource, result.hour)
        elif result.outcome is ActionOutcome.NO_RESOURCE_CONFIGURED:
            _LOG.info("No audio configured for hour %02d; playing fallback", result.hour)
        else:
            _LOG.warning(
                "Audio for hour %02d unavailable; playing fallback",
                result.hour,
                extra={"resource": result.resource, "detail": result.detail},
            )

        self._notify(notification)
        if result.needs_fallback:
            self._play_fallback()
        return notification


__all__ = [
    "ActionOutcome",
    "ActionResult",
    "ActionResultHandler",
    "FallbackSignal",
    "HourAction",
    "Notification",
    "describe_result",
    "run_hour_action",
]
