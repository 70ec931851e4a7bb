from __future__ import annotations

NAME_MAX = 50


def clean_name(name: str | None, what: str) -> str:
    """ Trim a display name and check its length (1..50). Raises ValueError. """
    nm = (name or "").strip()
    if not nm:
        raise ValueError(f"{what} name must not be empty")
    if len(nm) > NAME_MAX:
        raise ValueError(f"{what} name must be at most {NAME_MAX} characters")
    return nm
