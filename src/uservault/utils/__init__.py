from uservault.utils.common import (
    async_exponential_backoff,
    coerce_positive_int,
    dig,
    first_present,
    non_empty_str,
)

__all__ = [
    "async_exponential_backoff",
    "coerce_positive_int",
    "dig",
    "first_present",
    "non_empty_str",
]
