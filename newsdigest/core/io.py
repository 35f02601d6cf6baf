"""JSON I/O utilities with consistent error handling."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


def load_json(
    path: Union[str, Path],
    default: T = None,
    *,
    encoding: str = "utf-8",
    log_errors: bool = True,
) -> Union[Any, T]:
    """
    Load JSON file with consistent error handling.

    Args:
        path: Path to JSON file
        default: Default value if file doesn't exist or is invalid
        encoding: File encoding (default: utf-8)
        log_errors: Whether to log errors (default: True)

    Returns:
        Parsed JSON data or default value
    """
    path = Path(path)

    if not path.exists():
        return default

    try:
        content = path.read_text(encoding=encoding).strip()
        if not content:
            return default
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        if log_errors:
            logger.warning(f"Failed to load {path}: {e}")
        return default


def save_json(
    data: Any,
    path: Union[str, Path],
    *,
    encoding: str = "utf-8",
    indent: int = 2,
    ensure_ascii: bool = False,
    mkdir: bool = True,
    default: Any = str,
    atomic: bool = False,
    strict: bool = False,
) -> bool:
    """
    Save data to JSON file with consistent formatting.

    Args:
        data: Data to serialize
        path: Output file path
        encoding: File encoding (default: utf-8)
        indent: JSON indentation (default: 2)
        ensure_ascii: Whether to escape non-ASCII (default: False)
        mkdir: Create parent directories if needed (default: True)
        default: Default serializer for non-JSON types (default: str)
        atomic: Write to a temp file and replace the target in one step
        strict: Re-raise failures instead of returning False

    Returns:
        True if successful, False otherwise
    """
    path = Path(path)

    try:
        if mkdir:
            path.parent.mkdir(parents=True, exist_ok=True)

        content = json.dumps(data, ensure_ascii=ensure_ascii, indent=indent, default=default)

        if atomic:
            _write_atomic(path, content, encoding)
        else:
            path.write_text(content, encoding=encoding)
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to save {path}: {e}")
        if strict:
            raise
        return False


def _write_atomic(path: Path, content: str, encoding: str) -> None:
    """Write content next to path, then swap it in with os.replace."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
