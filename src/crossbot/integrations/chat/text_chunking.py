from __future__ import annotations


def split_text(text: str, *, max_len: int) -> list[str]:
    """Split text into chunks no longer than `max_len`.

    Each cut is made right after the last newline that fits, or else after
    the last space; a word longer than the limit is hard-split. Joining the
    chunks yields the input.
    """

    if not isinstance(text, str) or not text:
        return []
    if max_len <= 0:
        raise ValueError("max_len must be positive")

    parts: list[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_len:
            parts.append(remaining)
            break
        cut = remaining.rfind("\n", 0, max_len)
        if cut == -1:
            cut = remaining.rfind(" ", 0, max_len)
        cut = cut + 1 if cut >= 0 else max_len
        parts.append(remaining[:cut])
        remaining = remaining[cut:]
    return parts
