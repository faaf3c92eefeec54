"""Read-only snapshots of process state for the health and metrics endpoints.

Handlers receive a ``ProcessStats`` through ``Depends(get_process_stats)`` so
tests can swap in a fixed snapshot via ``set_process_stats``.
"""

from __future__ import annotations

import os
import platform
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from time import monotonic


_STATM_PATH = Path("/proc/self/statm")
# Uptime is measured from when the service module is first imported.
_PROCESS_START = monotonic()


@dataclass(frozen=True)
class MemorySnapshot:
    rss: int
    heap_used: int
    heap_total: int
    external: int
    array_buffers: int = 0


@dataclass(frozen=True)
class CpuSnapshot:
    user: int
    system: int


@dataclass(frozen=True)
class PlatformSnapshot:
    arch: str
    platform: str
    python_version: str


def format_uptime(seconds: int) -> str:
    """Render seconds as ``1d 2h 3m 4s``.

    Leading zero components are dropped; once a larger unit is shown every
    smaller one follows, and seconds always appear.
    """

    seconds = max(int(seconds), 0)
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)

    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def to_megabytes(value: int) -> str:
    # Half-up rounding, not Python's round-half-to-even.
    return f"{int(value / 1024 / 1024 + 0.5)} MB"


def _read_statm() -> list[int] | None:
    try:
        fields = _STATM_PATH.read_text(encoding="ascii").split()
    except OSError:
        return None
    return [int(field) for field in fields]


def _peak_rss_bytes() -> int:
    try:
        import resource
    except ImportError:  # Windows
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes.
    return peak if sys.platform == "darwin" else peak * 1024


class ProcessStats:
    """Introspects the current process. All reads are side-effect free."""

    def __init__(self, started_at: float | None = None) -> None:
        self._started_at = _PROCESS_START if started_at is None else started_at

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def timestamp(self) -> str:
        return self.now().isoformat().replace("+00:00", "Z")

    def uptime_seconds(self) -> float:
        return monotonic() - self._started_at

    def memory(self) -> MemorySnapshot:
        statm = _read_statm()
        if statm is None:
            return MemorySnapshot(rss=_peak_rss_bytes(), heap_used=0, heap_total=0, external=0)

        page_size = os.sysconf("SC_PAGE_SIZE")
        # statm: size resident shared text lib data dt (in pages)
        resident, shared, data = statm[1], statm[2], statm[5]
        return MemorySnapshot(
            rss=resident * page_size,
            heap_used=max(resident - shared, 0) * page_size,
            heap_total=data * page_size,
            external=shared * page_size,
        )

    def cpu(self) -> CpuSnapshot:
        times = os.times()
        return CpuSnapshot(user=int(times.user * 1_000_000), system=int(times.system * 1_000_000))

    def platform(self) -> PlatformSnapshot:
        return PlatformSnapshot(
            arch=platform.machine(),
            platform=sys.platform,
            python_version=platform.python_version(),
        )


_PROCESS_STATS: ProcessStats | None = None


def get_process_stats() -> ProcessStats:
    global _PROCESS_STATS
    if _PROCESS_STATS is None:
        _PROCESS_STATS = ProcessStats()
    return _PROCESS_STATS


def set_process_stats(stats: ProcessStats | None) -> None:
    global _PROCESS_STATS
    _PROCESS_STATS = stats
