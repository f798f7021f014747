"""Atomic file I/O for state snapshots."""

import json
import logging
import os
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str) -> None:
    """
    Atomically replace file_path with content using temp file + rename.

    Readers see either the previous snapshot or the new one, never a
    half-written file. Parent directories are created on demand.

    Raises:
        OSError: If the write or rename fails
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    # PID suffix keeps temp files from colliding across processes
    tmp_file = file_path.with_suffix(f"{file_path.suffix}.tmp.{os.getpid()}")
    try:
        tmp_file.write_text(content)
        tmp_file.replace(file_path)
    except OSError as e:
        logger.error(f"Failed to write {file_path}: {e}")
        raise
    finally:
        if tmp_file.exists():
            try:
                tmp_file.unlink()
            except OSError:
                pass


def atomic_write_models(file_path: Path, models: Iterable[BaseModel], indent: int = 2) -> None:
    """Atomically write a list of Pydantic models as a JSON array."""
    payload = [model.model_dump(mode="json") for model in models]
    atomic_write_text(file_path, json.dumps(payload, indent=indent))
