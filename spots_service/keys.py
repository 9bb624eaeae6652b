import re

_WHITESPACE = re.compile(r"\s+")


def spot_key(building: str, room_number: str) -> str:
    """
    Derive the storage key of a study spot from its display fields.

    Every whitespace run becomes a single ``-`` and the result is
    lowercased, so ``("Robarts Library", "4033")`` and
    ``("Robarts  Library", "4033")`` both give ``"robarts-library-4033"``.
    Callers must go through this function rather than building keys
    themselves.
    """
    return _WHITESPACE.sub("-", f"{building}-{room_number}").lower()


def author_key(author: str) -> str:
    """
    Derive the per-spot storage slot for an author display name.

    Surrounding whitespace is ignored and inner whitespace runs are
    collapsed, so ``"Jane  Doe"`` and ``" jane doe"`` share one slot.
    """
    return _WHITESPACE.sub("-", author.strip()).lower()
