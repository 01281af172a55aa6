import random
import asyncio
from typing import Any, Iterable, Sequence


_MISSING = object()

LookupPath = str | Sequence[str]


async def async_exponential_backoff(base_delay: float, attempt: int, max_delay: float | None = None) -> None:
    """
    Exponential backoff plus random jitter delay for retry attempts.
    Do not use for low latency requirements.
    """
    sleep_time = base_delay * (2 ** (attempt - 1)) + random.uniform(0, base_delay)
    if max_delay is not None:
        sleep_time = min(sleep_time, max_delay)
    await asyncio.sleep(sleep_time)


def dig(payload: Any, path: LookupPath, default: Any = None) -> Any:
    """
    Follow a dotted path ("data.auth.user") or a sequence of keys through
    nested mappings. Returns `default` as soon as a step is missing or the
    current value is not a mapping.
    """
    if isinstance(path, str):
        keys = [k for k in path.split(".") if k]
    else:
        keys = list(path)

    current = payload
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def first_present(payload: Any, paths: Iterable[LookupPath], accept=None) -> Any:
    """
    Probe candidate paths in order and return the first value found.

    The backend is unversioned: the same field can live at the top level,
    under `data`, under `user` or `profile`. Callers list the candidate
    locations once instead of re-implementing the probing per call site.
    `accept` is an optional predicate; values failing it are skipped.
    """
    for path in paths:
        value = dig(payload, path, _MISSING)
        if value is _MISSING or value is None:
            continue
        if accept is not None and not accept(value):
            continue
        return value
    return None


def coerce_positive_int(value: Any) -> int | None:
    """Numeric ids arrive as ints or numeric strings; anything else is not an id."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            number = int(text)
            return number if number > 0 else None
    return None


def non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0
