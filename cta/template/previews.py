from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)

PREVIEW_SCHEME = "preview:"


def is_preview_ref(value) -> bool:
    return isinstance(value, str) and value.startswith(PREVIEW_SCHEME)


class PreviewHandles:
    """ Transient local previews for image fields.

    Picking a local file before it is uploaded stores a ``preview:<hex>`` reference as the field value.
    The reference maps to the local path until it is released. Every acquired reference must be
    released once nothing uses it any more.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, Path] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, ref: object) -> bool:
        return ref in self._handles

    def acquire(self, path: Path | str) -> str:
        ref = f"{PREVIEW_SCHEME}{uuid.uuid4().hex}"
        self._handles[ref] = Path(path)
        logger.debug("Acquired preview %s for %s", ref, path)
        return ref

    def resolve(self, ref: str) -> Optional[Path]:
        return self._handles.get(ref)

    def release(self, ref: str) -> bool:
        if self._handles.pop(ref, None) is None:
            return False
        logger.debug("Released preview %s", ref)
        return True

    def release_unused(self, live_refs: Iterable[str]) -> int:
        """ Release every handle not in live_refs. Returns how many were released. """
        live = set(live_refs)
        stale = [ref for ref in self._handles if ref not in live]
        for ref in stale:
            self.release(ref)
        return len(stale)

    def release_all(self) -> None:
        for ref in list(self._handles):
            self.release(ref)
