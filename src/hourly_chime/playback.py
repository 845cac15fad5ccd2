"""Audio playback through external player commands."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import threading
from pathlib import Path
from typing import IO, Protocol, Sequence

from .actions import ActionResult, HourAction
from .library import AudioLibrary


_LOG = logging.getLogger("hourly_chime.playback")

DEFAULT_STARTUP_TIMEOUT = 0.5

_PLAYER_CANDIDATES: tuple[tuple[str, ...], ...] = (
    ("afplay",),
    ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"),
    ("paplay",),
    ("aplay", "-q"),
)


class AudioPlayer(Protocol):
    def play(self, path: Path) -> bool:  # pragma: no cover - interface
        ...


def default_player_command() -> tuple[str, ...] | None:
    """Return the first known player command available on ``PATH``."""

    for candidate in _PLAYER_CANDIDATES:
        if shutil.which(candidate[0]):
            return candidate
    return None


class SubprocessAudioPlayer:
    """Plays files by launching ``command + [path]``; one clip at a time."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
    ) -> None:
        if not command:
            raise ValueError("Player command must not be empty")
        self._command = tuple(command)
        self._startup_timeout = startup_timeout
        self._lock = threading.Lock()
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            _LOG.warning("Player did not terminate; killing it")
            process.kill()

    def play(self, path: Path) -> bool:
        """Start playing ``path``; return ``False`` when it cannot be played."""

        if not path.is_file():
            _LOG.warning("Audio file does not exist: %s", path.name)
            return False

        with self._lock:
            self._stop_locked()
            try:
                process = subprocess.Popen(
                    [*self._command, str(path)],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as exc:
                _LOG.error("Error playing audio %s: %s", path.name, exc)
                return False

            # a player that rejects the file exits almost immediately
            try:
                returncode = process.wait(timeout=self._startup_timeout)
            except subprocess.TimeoutExpired:
                returncode = None
            if returncode:
                _LOG.error("Player exited with status %d for %s", returncode, path.name)
                return False
            self._process = process

        _LOG.info("Playing audio: %s", path.name)
        return True


class SystemSoundFallback:
    """Default alert: runs ``command`` when given, otherwise rings the terminal bell."""

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        stream: IO[str] | None = None,
    ) -> None:
        self._command = tuple(command) if command else None
        self._stream = stream

    def __call__(self) -> None:
        if self._command is not None:
            subprocess.Popen(
                list(self._command),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            return

        stream = self._stream or sys.stdout
        stream.write("\a")
        stream.flush()


def build_hour_action(library: AudioLibrary, player: AudioPlayer) -> HourAction:
    """Return the hour action that plays the library entry for the given hour."""

    def _action(hour: int) -> ActionResult:
        library.refresh()
        entry = library.get(hour)
        if entry is None:
            return ActionResult.no_resource(hour)
        if player.play(entry.path):
            return ActionResult.played(hour, entry.name)
        return ActionResult.unavailable(
            hour, entry.name, detail="file missing, moved or unreadable"
        )

    return _action


__all__ = [
    "AudioPlayer",
    "SubprocessAudioPlayer",
    "SystemSoundFallback",
    "build_hour_action",
    "default_player_command",
]
