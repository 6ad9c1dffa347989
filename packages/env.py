"""Helpers for loading `.env` files across the project."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Union

from dotenv import find_dotenv, load_dotenv

PathLike = Union[str, Path]
_LOADED = False


def load_env(*, override: bool = False, extra_paths: Iterable[PathLike] | None = None) -> bool:
    """Load environment variables from `.env` files if they exist.

    Args:
        override: When ``True`` existing variables may be replaced.
        extra_paths: Optional iterable of additional files to load before the
            default search locations.

    Returns:
        ``True`` if any environment file was successfully loaded.
    """

    global _LOADED

    if _LOADED and not override and extra_paths is None:
        return True

    loaded_any = False
    loaded_paths: set[Path] = set()

    candidates: list[Path] = [Path(raw).expanduser() for raw in extra_paths or ()]
    found = find_dotenv(usecwd=True)
    if found:
        candidates.append(Path(found))
    # repository root, next to pyproject.toml
    candidates.append(Path(__file__).resolve().parent.parent / ".env")

    for path in candidates:
        if not path.exists():
            continue
        resolved = path.resolve()
        if resolved in loaded_paths:
            continue
        loaded_paths.add(resolved)
        loaded_any = load_dotenv(resolved, override=override) or loaded_any

    if not override:
        _LOADED = True

    return loaded_any
