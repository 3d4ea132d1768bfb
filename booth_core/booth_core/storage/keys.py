"""Object key construction.

Keys follow ``{prefix}/{kind}/{resource_id}/{filename}``.  Filenames come
from uploads and are reduced to their basename, so a client cannot write
outside its own scope's namespace.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

_RESOURCE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


def safe_filename(filename: str) -> str:
    """Reduce *filename* to a bare basename.

    Raises
    ------
    ValueError
        If nothing usable remains (empty, ``.`` or ``..``).
    """
    name = PurePosixPath(filename.replace("\\", "/")).name
    name = _CONTROL_CHARS_RE.sub("", name).strip()
    if name in ("", ".", ".."):
        raise ValueError(f"Invalid filename: {filename!r}")
    return name


def build_key(prefix: str, kind: str, resource_id: str, filename: str) -> str:
    """Join a scoped object key.

    Parameters
    ----------
    prefix:
        The scope's storage prefix, e.g. ``boothos/tenants/<owner>/<event>``.
    kind:
        Resource family, e.g. ``production``.
    resource_id:
        Identifier of the owning resource.
    filename:
        Client-supplied name; reduced with :func:`safe_filename`.
    """
    for label, value in (("kind", kind), ("resource_id", resource_id)):
        if not _RESOURCE_ID_RE.match(value):
            raise ValueError(f"Invalid {label}: {value!r}")
    parts = [p for p in prefix.strip("/").split("/") if p]
    if any(p in (".", "..") for p in parts):
        raise ValueError(f"Invalid prefix: {prefix!r}")
    return "/".join([*parts, kind, resource_id, safe_filename(filename)])
