"""Move photos not marked keep into a duplicates folder."""

import errno
import os
import shutil
from typing import Callable, Sequence

from loguru import logger

from .models import ScoreEntry


def _free_destination(dest_dir: str, name: str) -> str:
    """dest_dir/name, or dest_dir/stem_1.ext, stem_2.ext, ... if taken."""
    stem, ext = os.path.splitext(name)
    candidate = os.path.join(dest_dir, name)
    n = 1
    while os.path.exists(candidate):
        candidate = os.path.join(dest_dir, f"{stem}_{n}{ext}")
        n += 1
    return candidate


def move_file(src: str, dest_dir: str) -> str:
    dest = _free_destination(dest_dir, os.path.basename(src))
    try:
        os.rename(src, dest)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        # Cross-device: copy then delete
        shutil.copy2(src, dest)
        os.unlink(src)
    return dest


def move_duplicates(
    scored_groups: Sequence[Sequence[ScoreEntry]],
    dest_dir: str,
    progress_callback: Callable[[int, int], None] | None = None,
) -> list[str]:
    """Move every entry with keep=False into dest_dir. Returns the new paths."""
    os.makedirs(dest_dir, exist_ok=True)
    to_move = [e for group in scored_groups for e in group if not e.keep]
    total = len(to_move)
    moved = []
    for i, entry in enumerate(to_move):
        src = os.path.abspath(entry.path)
        try:
            moved.append(move_file(src, dest_dir))
        except OSError as e:
            logger.error("Failed to move {}: {}", src, e)
        if progress_callback and total:
            progress_callback(i + 1, total)
    logger.info("Moved {} of {} duplicates to {}", len(moved), total, dest_dir)
    return moved
