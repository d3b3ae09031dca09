"""Environment file writer.

Upserts KEY=VALUE lines in a dotenv-style file (e.g. .env.local) while
leaving every other line, and the order of lines, untouched. Values are not
parsed or quoted.
"""

from __future__ import annotations

from pathlib import Path

from .shared.logging import get_logger

logger = get_logger(__name__)

NEWLINE = "\n"


def _validate_key(key: str) -> None:
    if not key or "=" in key or NEWLINE in key:
        raise ValueError(f"Invalid environment variable name: {key!r}")


def update_env_lines(lines: list[str], key: str, value: str) -> list[str]:
    """Set KEY=VALUE in a list of lines.

    The first line starting with ``KEY=`` is replaced. Otherwise one line is
    appended; when the last element is empty (content ended with a newline)
    the new line goes before it so the trailing newline survives.

    Args:
        lines: File content split on newlines
        key: Variable name
        value: Variable value

    Returns:
        Updated list of lines (a new list)
    """
    _validate_key(key)
    entry = f"{key}={value}"
    prefix = f"{key}="
    updated = list(lines)

    for index, line in enumerate(updated):
        if line.startswith(prefix):
            updated[index] = entry
            return updated

    if updated and updated[-1] == "":
        updated.insert(len(updated) - 1, entry)
    else:
        updated.append(entry)
    return updated


def upsert_env_var(path: Path, key: str, value: str) -> None:
    """Write KEY=VALUE into an env file, creating it if missing.

    The whole file is rewritten in place.

    Args:
        path: Env file path
        key: Variable name
        value: Variable value
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        content = ""

    lines = content.split(NEWLINE) if content else []
    updated = update_env_lines(lines, key, value)

    path.write_text(NEWLINE.join(updated), encoding="utf-8")
    logger.debug("Env file updated", path=str(path), key=key)


def read_env_var(path: Path, key: str) -> str | None:
    """Read a variable from an env file.

    Returns:
        Value of the first KEY= line, or None if the file or key is missing
    """
    _validate_key(key)
    if not path.exists():
        return None

    prefix = f"{key}="
    for line in path.read_text(encoding="utf-8").split(NEWLINE):
        if line.startswith(prefix):
            return line[len(prefix) :]
    return None


class EnvFileWriter:
    """Env file bound to a path."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def set(self, key: str, value: str) -> None:
        """Upsert KEY=VALUE."""
        upsert_env_var(self.path, key, value)

    def get(self, key: str) -> str | None:
        """Read KEY's value."""
        return read_env_var(self.path, key)
