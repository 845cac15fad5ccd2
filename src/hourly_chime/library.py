"""Per-hour audio assignments stored in a managed directory."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from zoneinfo import ZoneInfo

from .clock import next_hour_boundary


_LOG = logging.getLogger("hourly_chime.library")

DEFAULT_MAX_FILE_SIZE = 2_621_440  # 2.5 MiB
SUPPORTED_FORMATS = ("mp3", "wav", "m4a", "aiff", "aac", "flac", "ogg")
DEFAULT_DISPLAY_NAME = "System Default"
INDEX_FILENAME = "library.json"
AUDIO_SUBDIRECTORY = "audio"

_HOUR_PATTERNS = (
    re.compile(r"([0-9]{1,2})hour", re.IGNORECASE),
    re.compile(r"([0-9]{1,2})\."),
    re.compile(r"hour([0-9]{1,2})", re.IGNORECASE),
)


class LibraryError(RuntimeError):
    """Raised when the library cannot read or write its storage."""


class AudioValidationError(ValueError):
    """Raised when a file is rejected for import."""


@dataclass(frozen=True)
class AudioFile:
    """Audio file assigned to an hour slot."""

    name: str
    path: Path
    hour: int

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["path"] = str(self.path)
        return data


def _validate_hour(hour: int) -> None:
    if not 0 <= hour <= 23:
        raise ValueError("Hour must be within the range 0-23")


def extract_hour_from_filename(filename: str) -> int | None:
    """Infer an hour from names such as ``12hour.mp3``, ``7.wav`` or ``hour03.ogg``."""

    for pattern in _HOUR_PATTERNS:
        match = pattern.search(filename)
        if match is None:
            continue
        hour = int(match.group(1))
        if 0 <= hour <= 23:
            return hour
    return None


def validate_audio_file(path: Path, *, max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> None:
    """Raise :class:`AudioValidationError` unless ``path`` is an importable audio file."""

    try:
        size = path.stat().st_size
    except OSError as exc:
        raise AudioValidationError(f"File access error: {path.name}") from exc

    if size > max_file_size:
        size_mb = size / (1024 * 1024)
        limit_mb = max_file_size / (1024 * 1024)
        raise AudioValidationError(
            f"File too large: {size_mb:.1f} MB (max: {limit_mb:.1f} MB)"
        )

    extension = path.suffix.lower().lstrip(".")
    if extension not in SUPPORTED_FORMATS:
        raise AudioValidationError(f"Unsupported format: .{extension}")


class AudioLibrary:
    """Maps hour slots to audio files copied under ``directory``.

    The index is persisted as JSON next to the copied files. Entries whose
    file disappeared are dropped when the index is loaded.
    """

    def __init__(
        self,
        directory: os.PathLike[str] | str,
        *,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        self._directory = Path(directory).expanduser()
        self._audio_dir = self._directory / AUDIO_SUBDIRECTORY
        self._index_path = self._directory / INDEX_FILENAME
        self._max_file_size = max_file_size
        self._entries: dict[int, AudioFile] = {}
        self._index_signature: tuple[int, int, int] | None = None
        self.load()

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def audio_directory(self) -> Path:
        return self._audio_dir

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AudioFile]:
        return iter(sorted(self._entries.values(), key=lambda entry: entry.hour))

    def get(self, hour: int) -> AudioFile | None:
        _validate_hour(hour)
        return self._entries.get(hour)

    def display_name(self, hour: int) -> str:
        entry = self.get(hour)
        return entry.name if entry else DEFAULT_DISPLAY_NAME

    def assign(self, source: os.PathLike[str] | str, hour: int | None = None) -> AudioFile:
        """Validate ``source``, copy it into the library and assign it to an hour.

        When ``hour`` is omitted it is inferred from the filename.
        """

        source_path = Path(source).expanduser()
        validate_audio_file(source_path, max_file_size=self._max_file_size)

        target_hour = hour if hour is not None else extract_hour_from_filename(source_path.name)
        if target_hour is None:
            raise AudioValidationError(
                f"Cannot infer an hour from '{source_path.name}'; pass it explicitly"
            )
        _validate_hour(target_hour)

        destination = self._audio_dir / source_path.name
        try:
            self._audio_dir.mkdir(parents=True, exist_ok=True)
            if source_path.resolve() != destination.resolve():
                shutil.copyfile(source_path, destination)
        except OSError as exc:
            raise LibraryError(f"Failed to copy {source_path.name}: {exc}") from exc

        previous = self._entries.get(target_hour)
        entry = AudioFile(name=source_path.name, path=destination, hour=target_hour)
        self._entries[target_hour] = entry
        if previous is not None and previous.path != destination:
            self._discard_file(previous)
        self._save()

        _LOG.info("Assigned %s to hour %02d", entry.name, target_hour)
        return entry

    def remove(self, hour: int) -> bool:
        """Remove the assignment for ``hour`` and delete its copied file."""

        _validate_hour(hour)
        entry = self._entries.pop(hour, None)
        if entry is None:
            return False
        self._discard_file(entry)
        self._save()
        _LOG.info("Removed audio for hour %02d", hour)
        return True

    def next_assigned_boundary(
        self, now: datetime, tz: ZoneInfo | None = None
    ) -> datetime | None:
        """Return the next hour boundary whose slot has an assigned file."""

        if not self._entries:
            return None
        reference = now
        for _ in range(24):
            boundary = next_hour_boundary(reference, tz)
            if boundary.hour_slot in self._entries:
                return boundary.target
            reference = boundary.target
        return None

    def _discard_file(self, entry: AudioFile) -> None:
        if any(other.path == entry.path for other in self._entries.values()):
            return
        try:
            entry.path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            _LOG.warning("Could not delete %s: %s", entry.path, exc)

    def _read_signature(self) -> tuple[int, int, int] | None:
        try:
            stat = self._index_path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, stat.st_size)

    def refresh(self) -> bool:
        """Reload the index when another process rewrote it; return ``True`` on reload."""

        if self._read_signature() == self._index_signature:
            return False
        _LOG.debug("Library index changed on disk; reloading")
        self.load()
        return True

    def load(self) -> None:
        """(Re)load the index, pruning entries whose files no longer exist."""

        self._entries.clear()
        self._index_signature = self._read_signature()
        if self._index_signature is None:
            return

        try:
            raw = json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise LibraryError(f"Failed to read library index {self._index_path}: {exc}") from exc

        pruned = False
        for item in raw if isinstance(raw, list) else []:
            try:
                entry = AudioFile(
                    name=str(item["name"]),
                    path=Path(item["path"]),
                    hour=int(item["hour"]),
                )
                _validate_hour(entry.hour)
            except (KeyError, TypeError, ValueError):
                _LOG.warning("Skipping malformed library entry: %r", item)
                pruned = True
                continue
            if not entry.path.exists():
                _LOG.info("Dropping hour %02d: %s no longer exists", entry.hour, entry.path)
                pruned = True
                continue
            self._entries[entry.hour] = entry

        if pruned:
            self._save()

    def _save(self) -> None:
        data = [entry.to_dict() for entry in self]
        content = json.dumps(data, ensure_ascii=False, indent=2)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self._directory), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(content)
                os.replace(tmp_path, self._index_path)
                self._index_signature = self._read_signature()
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except OSError as exc:
            raise LibraryError(f"Failed to write library index {self._index_path}: {exc}") from exc


__all__ = [
    "AudioFile",
    "AudioLibrary",
    "AudioValidationError",
    "DEFAULT_DISPLAY_NAME",
    "DEFAULT_MAX_FILE_SIZE",
    "LibraryError",
    "SUPPORTED_FORMATS",
    "extract_hour_from_filename",
    "validate_audio_file",
]
