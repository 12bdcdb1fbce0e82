"""Filesystem helpers."""

import os
import tempfile
from pathlib import Path


def replace_file_text(path: Path, content: str) -> None:
    """Replace the file at `path` with `content` in a single rename.

    Missing parent directories are created. The text is written to a sibling
    temp file, synced, and renamed over `path`, so readers see either the old
    contents or the new ones.

    Raises:
        OSError: If the directory or file cannot be written. The temp file is
            removed before the error propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        tmp_path.replace(path)
    except OSError:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise
