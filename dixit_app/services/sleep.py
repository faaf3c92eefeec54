from __future__ import annotations

import asyncio
import re


INVALID_DURATION_MESSAGE = "Sleep duration must be a positive number"

_DIGITS_RE = re.compile(r"[0-9]+")


class SleepDurationError(ValueError):
    """Raised when a requested sleep duration is malformed or out of range."""


def resolve_duration(raw: str | None, *, default_ms: int, max_ms: int) -> int:
    """Turn the ``ms`` query value into a validated duration in milliseconds.

    ``None`` means the parameter was absent and yields ``default_ms``. Anything
    that is not a plain non-negative base-10 integer is rejected, as is any
    value above ``max_ms``.
    """

    if raw is None:
        return default_ms

    value = raw.strip()
    if not _DIGITS_RE.fullmatch(value):
        raise SleepDurationError(INVALID_DURATION_MESSAGE)

    too_long = f"Sleep duration cannot exceed {max_ms}ms"
    # More significant digits than the maximum can never fit; int() also refuses very long strings.
    significant = value.lstrip("0") or "0"
    if len(significant) > len(str(max_ms)):
        raise SleepDurationError(too_long)

    duration = int(significant)
    if duration > max_ms:
        raise SleepDurationError(too_long)
    return duration


async def pause(duration_ms: int) -> None:
    if duration_ms <= 0:
        return
    await asyncio.sleep(duration_ms / 1000.0)
