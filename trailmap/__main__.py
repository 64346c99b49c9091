"""Module entry point: python -m trailmap ..."""

from __future__ import annotations

from trailmap.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
