"""All-or-nothing file replacement"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def write_atomic(path: Path, data: bytes, mode: Optional[int] = None) -> None:
    """
    Replace path with data so readers see either the old or the new content

    The bytes go to a temporary sibling file which is fsynced and renamed
    over the target.

    Args:
        path: Destination file
        data: Full new content
        mode: Permission bits to set before the rename (optional)

    Raises:
        OSError: If any step fails; the destination is left untouched
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        if mode is not None:
            os.chmod(temp_path, mode)

        os.replace(temp_path, path)
        logger.debug(f"Wrote {len(data)} bytes to {path}")

    finally:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to clean up temporary file {temp_path}: {e}")
