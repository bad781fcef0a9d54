from __future__ import annotations

import os
from pathlib import Path
import tempfile


def atomic_write_text(path: Path, text: str) -> None:
    """Write `text` next to `path` and swap it in with one `os.replace`.

    Readers never observe a half-written marker or event file; concurrent
    writers race only on which complete file wins.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="\n",
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(text.replace("\r\n", "\n"))
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(str(temp_path), str(path))
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
