"""Kubernetes object naming helpers."""

from ..constants import MAX_NAME_LENGTH

_HALF_NAME_LENGTH = MAX_NAME_LENGTH // 2


def build_name(base: str, suffix: str) -> str:
    """
    Join ``base`` and ``suffix`` with a dash, keeping the result a valid
    object name (at most 63 characters).

    When the joined name is too long, the longer part gives way: a short
    suffix truncates the base, a short base truncates the suffix, and when
    both are long each is cut to half the limit. Truncated parts never end
    with a dash.

    Examples:
        >>> build_name("name", "suffix")
        'name-suffix'
    """
    if len(base) + len(suffix) + 1 <= MAX_NAME_LENGTH:
        return f"{base}-{suffix}"

    if len(suffix) <= _HALF_NAME_LENGTH:
        base = base[: MAX_NAME_LENGTH - 1 - len(suffix)].rstrip("-")
    elif len(base) <= _HALF_NAME_LENGTH:
        suffix = suffix[: MAX_NAME_LENGTH - 1 - len(base)].rstrip("-")
    else:
        base = base[:_HALF_NAME_LENGTH].rstrip("-")
        suffix = suffix[:_HALF_NAME_LENGTH].rstrip("-")

    return f"{base}-{suffix}"
