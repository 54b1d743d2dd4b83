from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from typing import Optional

from models import ArchiveError
from utils import timestamp_suffix

logger = logging.getLogger(__name__)


def archive_destination(src_path: str, root: str, now: Optional[datetime] = None) -> str:
    """<root>/YYYY/MM/<stem>_YYYYMMDD_HHMMSS<ext>"""
    now = now or datetime.now()
    name = os.path.basename(src_path)
    if not name:
        raise ArchiveError("Invalid source filename")
    stem, ext = os.path.splitext(name)
    dest_dir = os.path.join(root, f"{now.year:04d}", f"{now.month:02d}")
    return os.path.join(dest_dir, f"{stem}_{timestamp_suffix(now)}{ext}")


def archive_file(src_path: str, root: str = "archive", now: Optional[datetime] = None) -> str:
    if not os.path.isfile(src_path):
        raise ArchiveError(f"No such file: {src_path}")
    dest_path = archive_destination(src_path, root, now)
    try:
        os.makedirs(os.path.dirname(dest_path), exist_ok=True)
    except OSError as e:
        raise ArchiveError(f"Create archive directory failed: {e}") from e
    if os.path.exists(dest_path):
        raise ArchiveError(f"Archive target already exists: {dest_path}")
    try:
        # rename when possible, copy + delete across filesystems
        shutil.move(src_path, dest_path)
    except OSError as e:
        raise ArchiveError(f"Archive failed: {e}") from e
    logger.info("Archived %s to %s", src_path, dest_path)
    return dest_path
