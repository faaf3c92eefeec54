import pytest

from dixit_app.services.process_stats import ProcessStats, format_uptime, to_megabytes


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0s"),
        (30, "30s"),
        (59, "59s"),
        (60, "1m 0s"),
        (90, "1m 30s"),
        (3600, "1h 0m 0s"),
        (3661, "1h 1m 1s"),
        (86400, "1d 0h 0m 0s"),
        (90000, "1d 1h 0m 0s"),
    ],
)
def test_format_uptime(seconds: int, expected: str) -> None:
    assert format_uptime(seconds) == expected


def test_format_uptime_clamps_negative_values() -> None:
    assert format_uptime(-5) == "0s"


def test_to_megabytes_rounds_half_up() -> None:
    mb = 1024 * 1024
    assert to_megabytes(0) == "0 MB"
    assert to_megabytes(mb + mb // 2) == "2 MB"
    assert to_megabytes(2 * mb + mb // 2) == "3 MB"
    assert to_megabytes(mb + mb // 4) == "1 MB"


def test_process_stats_snapshot_is_well_formed() -> None:
    stats = ProcessStats()

    assert stats.uptime_seconds() >= 0
    assert stats.timestamp().endswith("Z")

    memory = stats.memory()
    assert memory.rss >= 0
    assert memory.heap_used <= memory.rss or memory.heap_used == 0
    assert memory.array_buffers == 0

    cpu = stats.cpu()
    assert cpu.user >= 0
    assert cpu.system >= 0

    platform = stats.platform()
    assert platform.platform
    assert platform.python_version.count(".") == 2


def test_uptime_counts_from_given_start() -> None:
    from time import monotonic

    stats = ProcessStats(started_at=monotonic() - 120)
    assert 120 <= stats.uptime_seconds() < 125
