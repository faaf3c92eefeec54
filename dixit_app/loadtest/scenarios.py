"""Traffic scenarios for the load-test driver.

Each scenario is an ordered list of steps that one virtual user walks through
per iteration. Checks look at the response the way a client would: a body that
is not JSON simply fails the check.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from dixit_app.loadtest.schemas import Thresholds


@dataclass(frozen=True)
class Check:
    name: str
    predicate: Callable[[httpx.Response], bool]


@dataclass(frozen=True)
class Step:
    tag: str
    path: str
    checks: tuple[Check, ...] = ()
    think_time: float = 0.0
    probability: float = 1.0
    expected_statuses: frozenset[int] = frozenset({200})


@dataclass(frozen=True)
class Stage:
    """Ramp linearly to ``target`` virtual users over ``duration_s`` seconds."""

    duration_s: float
    target: int


@dataclass(frozen=True)
class Scenario:
    name: str
    steps: tuple[Step, ...]
    thresholds: Thresholds = field(default_factory=Thresholds)
    # Constant load unless stages are given, in which case they define the run.
    vus: int = 1
    duration_s: float | None = 30.0
    stages: tuple[Stage, ...] = ()


def _json(response: httpx.Response) -> dict[str, Any] | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _status(expected: int) -> Callable[[httpx.Response], bool]:
    return lambda r: r.status_code == expected


def _body(predicate: Callable[[dict[str, Any]], Any]) -> Callable[[httpx.Response], bool]:
    def check(response: httpx.Response) -> bool:
        data = _json(response)
        return data is not None and bool(predicate(data))

    return check


def _has_request_id(data: dict[str, Any]) -> bool:
    request_id = data.get("requestId")
    return isinstance(request_id, str) and len(request_id) > 0


SMOKE = Scenario(
    name="smoke",
    steps=(
        Step(
            tag="main",
            path="/",
            checks=(Check("status was 200", _status(200)),),
            think_time=1.0,
        ),
    ),
    thresholds=Thresholds(p95_ms=500.0, max_failure_rate=0.0),
    vus=50,
    duration_s=30.0,
)

# Sustained traffic with a 600ms pause per iteration for the cluster alerting
# rules to observe; nothing is enforced.
SLOW = Scenario(
    name="slow",
    steps=(Step(tag="main", path="/", think_time=0.6),),
    thresholds=Thresholds(p95_ms=None, max_failure_rate=None),
    vus=20,
    duration_s=180.0,
)

ENHANCED = Scenario(
    name="enhanced",
    steps=(
        Step(
            tag="main",
            path="/",
            checks=(
                Check("main endpoint status is 200", _status(200)),
                Check("main endpoint returns JSON", _body(lambda d: d.get("message") and d.get("app") and d.get("version"))),
                Check("main endpoint has request ID", _body(_has_request_id)),
            ),
            think_time=1.0,
        ),
        Step(
            tag="health",
            path="/health",
            checks=(
                Check("health endpoint status is 200", _status(200)),
                Check("health endpoint returns healthy status", _body(lambda d: d.get("status") == "healthy")),
                Check(
                    "health endpoint has memory info",
                    _body(lambda d: isinstance(d.get("memory"), dict) and d["memory"].get("rss") and d["memory"].get("heapUsed")),
                ),
            ),
            think_time=0.5,
        ),
        Step(
            tag="api_info",
            path="/api/info",
            checks=(
                Check("api info endpoint status is 200", _status(200)),
                Check("api info has features array", _body(lambda d: isinstance(d.get("features"), list) and len(d["features"]) > 0)),
                Check("api info has endpoints object", _body(lambda d: isinstance(d.get("endpoints"), dict))),
            ),
            think_time=0.5,
        ),
        Step(
            tag="api_metrics",
            path="/api/metrics",
            checks=(
                Check("api metrics endpoint status is 200", _status(200)),
                Check(
                    "api metrics has uptime info",
                    _body(lambda d: isinstance(d.get("uptime"), dict) and d["uptime"].get("seconds", -1) >= 0),
                ),
                Check(
                    "api metrics has platform info",
                    _body(lambda d: isinstance(d.get("platform"), dict) and d["platform"].get("pythonVersion")),
                ),
            ),
            think_time=0.5,
        ),
        Step(
            tag="sleep",
            path="/sleep?ms=100",
            checks=(
                Check("sleep endpoint status is 200", _status(200)),
                Check(
                    "sleep endpoint response correct",
                    _body(lambda d: d.get("message") == "Slept 100ms" and d.get("duration") == 100),
                ),
            ),
            probability=0.1,
        ),
        Step(
            tag="404",
            path="/non-existent-endpoint",
            checks=(
                Check("404 endpoint returns 404", _status(404)),
                Check("404 endpoint returns error JSON", _body(lambda d: d.get("error") == "Endpoint not found")),
            ),
            probability=0.05,
            think_time=1.0,
            expected_statuses=frozenset({404}),
        ),
    ),
    thresholds=Thresholds(
        p95_ms=500.0,
        max_failure_rate=0.1,
        tag_p95_ms={"health": 100.0, "main": 500.0, "api_info": 200.0, "api_metrics": 300.0},
    ),
    stages=(
        Stage(duration_s=30.0, target=20),
        Stage(duration_s=60.0, target=50),
        Stage(duration_s=30.0, target=0),
    ),
)

SCENARIOS: dict[str, Scenario] = {s.name: s for s in (SMOKE, ENHANCED, SLOW)}


def get_scenario(name: str) -> Scenario:
    try:
        return SCENARIOS[name]
    except KeyError:
        raise ValueError(f"Unknown scenario {name!r}; choose from {sorted(SCENARIOS)}") from None
