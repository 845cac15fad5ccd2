from __future__ import annotations

import pytest

from hourly_chime.actions import (
    ActionOutcome,
    ActionResult,
    ActionResultHandler,
    Notification,
    describe_result,
    run_hour_action,
)


class _RecordingNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.messages: list[tuple[str, str]] = []
        self._error = error

    def __call__(self, title: str, body: str) -> None:
        self.messages.append((title, body))
        if self._error is not None:
            raise self._error


class _CountingFallback:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self._error = error

    def __call__(self) -> None:
        self.calls += 1
        if self._error is not None:
            raise self._error


def test_describe_played_result() -> None:
    notification = describe_result(ActionResult.played(9, "morning.mp3"), "Chime")

    assert notification == Notification("Chime", "Playing audio for 9:00 - morning.mp3")


def test_describe_no_resource_result() -> None:
    notification = describe_result(ActionResult.no_resource(15), "Chime")

    assert notification.title == "Chime"
    assert notification.body == "Playing system sound for 15:00 (no custom audio set)"


def test_describe_unavailable_result_names_the_file() -> None:
    notification = describe_result(ActionResult.unavailable(7, "gone.wav"))

    assert notification.title == "Audio File Missing"
    assert notification.body.startswith("Could not play 'gone.wav' for 7:00.")
    assert notification.body.endswith("Playing system sound instead.")


def test_describe_unavailable_result_without_resource() -> None:
    notification = describe_result(ActionResult.unavailable(7, detail="boom"))

    assert "the configured audio" in notification.body


@pytest.mark.parametrize(
    ("result", "expected"),
    [
        (ActionResult.played(1, "a.mp3"), False),
        (ActionResult.no_resource(1), True),
        (ActionResult.unavailable(1, "a.mp3"), True),
    ],
)
def test_needs_fallback(result: ActionResult, expected: bool) -> None:
    assert result.needs_fallback is expected


def test_run_hour_action_returns_action_result() -> None:
    result = run_hour_action(lambda hour: ActionResult.played(hour, "x.mp3"), 4)

    assert result == ActionResult.played(4, "x.mp3")


def test_run_hour_action_converts_exceptions() -> None:
    def _explode(hour: int) -> ActionResult:
        raise RuntimeError("device busy")

    result = run_hour_action(_explode, 6)

    assert result.outcome is ActionOutcome.RESOURCE_UNAVAILABLE
    assert result.hour == 6
    assert result.detail == "device busy"


def test_run_hour_action_rejects_invalid_return_values() -> None:
    result = run_hour_action(lambda hour: None, 6)  # type: ignore[arg-type, return-value]

    assert result.outcome is ActionOutcome.RESOURCE_UNAVAILABLE
    assert result.detail == "invalid action result"


def test_handler_played_notifies_without_fallback() -> None:
    notifier = _RecordingNotifier()
    fallback = _CountingFallback()
    handler = ActionResultHandler(notifier, fallback, app_name="Chime")

    notification = handler.handle(ActionResult.played(10, "ten.mp3"))

    assert notifier.messages == [(notification.title, notification.body)]
    assert fallback.calls == 0


def test_handler_no_resource_plays_fallback() -> None:
    notifier = _RecordingNotifier()
    fallback = _CountingFallback()
    handler = ActionResultHandler(notifier, fallback)

    handler.handle(ActionResult.no_resource(10))

    assert len(notifier.messages) == 1
    assert fallback.calls == 1


def test_handler_unavailable_plays_fallback_and_warns_user() -> None:
    notifier = _RecordingNotifier()
    fallback = _CountingFallback()
    handler = ActionResultHandler(notifier, fallback)

    handler.handle(ActionResult.unavailable(10, "ten.mp3"))

    assert notifier.messages[0][0] == "Audio File Missing"
    assert fallback.calls == 1


def test_handler_swallows_notifier_and_fallback_failures() -> None:
    notifier = _RecordingNotifier(RuntimeError("sink down"))
    fallback = _CountingFallback(OSError("no speaker"))
    handler = ActionResultHandler(notifier, fallback)

    notification = handler.handle(ActionResult.no_resource(3))

    assert notification.body == "Playing system sound for 3:00 (no custom audio set)"
    assert fallback.calls == 1
