from __future__ import annotations

import io
import subprocess
import sys
from pathlib import Path

import pytest

from hourly_chime.actions import ActionOutcome
from hourly_chime.library import AudioLibrary
from hourly_chime.playback import (
    SubprocessAudioPlayer,
    SystemSoundFallback,
    build_hour_action,
    default_player_command,
)


class _DummyPlayer:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.played: list[Path] = []

    def play(self, path: Path) -> bool:
        self.played.append(path)
        return self.succeed


class _DummyProcess:
    def __init__(self, args: list[str], exit_code: int | None = None, **kwargs: object) -> None:
        self.args = args
        self.kwargs = kwargs
        self.exit_code = exit_code
        self.terminated = False

    def poll(self) -> int | None:
        return 0 if self.terminated else self.exit_code

    def terminate(self) -> None:
        self.terminated = True

    def wait(self, timeout: float | None = None) -> int:
        if self.terminated:
            return 0
        if self.exit_code is None:
            raise subprocess.TimeoutExpired(self.args, timeout or 0)
        return self.exit_code

    def kill(self) -> None:  # pragma: no cover - not reached
        self.terminated = True


def _library_with(tmp_path: Path, hour: int, name: str = "clip.mp3") -> AudioLibrary:
    source = tmp_path / name
    source.write_bytes(b"data")
    library = AudioLibrary(tmp_path / "library")
    library.assign(source, hour)
    return library


def test_hour_action_without_assignment_reports_no_resource(tmp_path: Path) -> None:
    player = _DummyPlayer()
    action = build_hour_action(AudioLibrary(tmp_path / "library"), player)

    result = action(10)

    assert result.outcome is ActionOutcome.NO_RESOURCE_CONFIGURED
    assert player.played == []


def test_hour_action_plays_assigned_file(tmp_path: Path) -> None:
    library = _library_with(tmp_path, 10)
    player = _DummyPlayer()

    result = build_hour_action(library, player)(10)

    assert result.outcome is ActionOutcome.PLAYED
    assert result.resource == "clip.mp3"
    assert player.played == [library.audio_directory / "clip.mp3"]


def test_hour_action_reports_unplayable_file(tmp_path: Path) -> None:
    library = _library_with(tmp_path, 10)

    result = build_hour_action(library, _DummyPlayer(succeed=False))(10)

    assert result.outcome is ActionOutcome.RESOURCE_UNAVAILABLE
    assert result.resource == "clip.mp3"


def test_subprocess_player_launches_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[_DummyProcess] = []

    def _popen(args: list[str], **kwargs: object) -> _DummyProcess:
        process = _DummyProcess(args, **kwargs)
        launched.append(process)
        return process

    monkeypatch.setattr("hourly_chime.playback.subprocess.Popen", _popen)
    clip = tmp_path / "clip.wav"
    clip.write_bytes(b"data")
    player = SubprocessAudioPlayer(["aplay", "-q"])

    assert player.play(clip) is True
    assert player.play(clip) is True

    assert launched[0].args == ["aplay", "-q", str(clip)]
    assert launched[0].kwargs["stdout"] is subprocess.DEVNULL
    assert launched[0].terminated is True
    assert launched[1].terminated is False


def test_subprocess_player_rejects_missing_file(tmp_path: Path) -> None:
    player = SubprocessAudioPlayer(["aplay"])

    assert player.play(tmp_path / "missing.wav") is False


def test_subprocess_player_reports_launch_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _popen(args: list[str], **kwargs: object) -> _DummyProcess:
        raise FileNotFoundError("aplay")

    monkeypatch.setattr("hourly_chime.playback.subprocess.Popen", _popen)
    clip = tmp_path / "clip.wav"
    clip.write_bytes(b"data")

    assert SubprocessAudioPlayer(["aplay"]).play(clip) is False


def test_subprocess_player_reports_player_that_exits_with_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        "hourly_chime.playback.subprocess.Popen",
        lambda args, **kwargs: _DummyProcess(args, exit_code=1, **kwargs),
    )
    clip = tmp_path / "corrupt.mp3"
    clip.write_bytes(b"not audio")

    assert SubprocessAudioPlayer(["aplay"]).play(clip) is False


def test_subprocess_player_accepts_clip_that_finishes_quickly(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        "hourly_chime.playback.subprocess.Popen",
        lambda args, **kwargs: _DummyProcess(args, exit_code=0, **kwargs),
    )
    clip = tmp_path / "blip.wav"
    clip.write_bytes(b"data")

    assert SubprocessAudioPlayer(["aplay"]).play(clip) is True


def test_subprocess_player_with_failing_command(tmp_path: Path) -> None:
    clip = tmp_path / "corrupt.mp3"
    clip.write_bytes(b"not audio")
    player = SubprocessAudioPlayer(
        [sys.executable, "-c", "import sys; sys.exit(1)"], startup_timeout=10
    )

    assert player.play(clip) is False


def test_hour_action_picks_up_assignment_from_another_process(tmp_path: Path) -> None:
    library_dir = tmp_path / "library"
    player = _DummyPlayer()
    action = build_hour_action(AudioLibrary(library_dir), player)
    source = tmp_path / "12hour.mp3"
    source.write_bytes(b"data")

    AudioLibrary(library_dir).assign(source)
    result = action(12)

    assert result.outcome is ActionOutcome.PLAYED
    assert result.resource == "12hour.mp3"


def test_hour_action_drops_assignment_removed_elsewhere(tmp_path: Path) -> None:
    library = _library_with(tmp_path, 10)
    player = _DummyPlayer(succeed=False)
    action = build_hour_action(library, player)

    AudioLibrary(library.directory).remove(10)
    result = action(10)

    assert result.outcome is ActionOutcome.NO_RESOURCE_CONFIGURED
    assert player.played == []


def test_subprocess_player_requires_command() -> None:
    with pytest.raises(ValueError):
        SubprocessAudioPlayer([])


def test_fallback_rings_terminal_bell() -> None:
    stream = io.StringIO()

    SystemSoundFallback(stream=stream)()

    assert stream.getvalue() == "\a"


def test_fallback_runs_configured_command(monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[list[str]] = []

    def _popen(args: list[str], **kwargs: object) -> _DummyProcess:
        launched.append(args)
        return _DummyProcess(args, **kwargs)

    monkeypatch.setattr("hourly_chime.playback.subprocess.Popen", _popen)

    SystemSoundFallback(["paplay", "/usr/share/sounds/bell.oga"])()

    assert launched == [["paplay", "/usr/share/sounds/bell.oga"]]


def test_default_player_command_uses_first_available(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "hourly_chime.playback.shutil.which",
        lambda name: "/usr/bin/paplay" if name == "paplay" else None,
    )

    assert default_player_command() == ("paplay",)


def test_default_player_command_none_when_nothing_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("hourly_chime.playback.shutil.which", lambda name: None)

    assert default_player_command() is None
