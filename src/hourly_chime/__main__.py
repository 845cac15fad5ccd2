"""Module entry point to expose ``python -m hourly_chime``."""

from .cli import main


def _run() -> int:
    return main()


if __name__ == "__main__":  # pragma: no cover - exercised via subprocess
    raise SystemExit(_run())
