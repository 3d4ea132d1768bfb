"""In-memory zip bundles of delivered photos."""

from __future__ import annotations

import io
import zipfile
from collections.abc import Iterable


def build_bundle(files: Iterable[tuple[str, bytes]]) -> bytes:
    """Zip ``(filename, data)`` pairs into one archive.

    Filenames are expected to be unique already; a repeated name is written
    once, first occurrence wins.
    """
    mem = io.BytesIO()
    seen: set[str] = set()
    with zipfile.ZipFile(mem, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in files:
            if name in seen:
                continue
            seen.add(name)
            zf.writestr(name, content)
    return mem.getvalue()
