from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from time import monotonic, perf_counter
from typing import Awaitable, Callable

import httpx
import structlog

from dixit_app.loadtest.scenarios import Scenario, Stage
from dixit_app.loadtest.schemas import (
    CheckTally,
    LoadTestReport,
    LoadTestSummary,
    TagStats,
    ThresholdResult,
)


@dataclass
class _Sample:
    tag: str
    elapsed_ms: float
    failed: bool


def percentile(values: list[float], pct: float) -> float:
    """Linear-interpolated percentile; 0.0 for an empty list."""

    if not values:
        return 0.0
    ordered = sorted(values)
    rank = (len(ordered) - 1) * (pct / 100.0)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return ordered[lower]
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (rank - lower)


@dataclass(frozen=True)
class LoadPlan:
    """How many users run, and for how long, once overrides are applied."""

    vus: int
    duration_s: float | None
    iterations: int | None
    stages: tuple[Stage, ...] = ()

    @property
    def peak_vus(self) -> int:
        if self.stages:
            return max(stage.target for stage in self.stages)
        return self.vus


def plan_load(
    scenario: Scenario,
    *,
    vus: int | None = None,
    duration_s: float | None = None,
    iterations: int | None = None,
) -> LoadPlan:
    """Apply caller overrides on top of the scenario's own traffic shape.

    A scenario with stages keeps them unless the caller fixes ``vus``,
    ``duration_s`` or ``iterations``. Any of those switches the run to constant
    load, with the unset values taken from the scenario.
    """

    if scenario.stages and vus is None and duration_s is None and iterations is None:
        total_s = sum(stage.duration_s for stage in scenario.stages)
        return LoadPlan(vus=0, duration_s=total_s, iterations=None, stages=scenario.stages)

    if duration_s is None and iterations is None:
        duration_s = scenario.duration_s
        if duration_s is None and scenario.stages:
            duration_s = sum(stage.duration_s for stage in scenario.stages)
    if duration_s is None and iterations is None:
        raise ValueError("Either duration_s or iterations must be set")

    vus = scenario.vus if vus is None else vus
    if vus < 1:
        raise ValueError("vus must be at least 1")
    return LoadPlan(vus=vus, duration_s=duration_s, iterations=iterations)


def scheduled_vus(stages: tuple[Stage, ...], elapsed_s: float, start_vus: int = 0) -> int:
    """Target user count ``elapsed_s`` seconds into a staged run.

    Each stage ramps linearly from the previous stage's target to its own.
    """

    previous = start_vus
    for stage in stages:
        if elapsed_s < stage.duration_s:
            fraction = elapsed_s / stage.duration_s
            return round(previous + (stage.target - previous) * fraction)
        elapsed_s -= stage.duration_s
        previous = stage.target
    return previous


async def _virtual_user(
    client: httpx.AsyncClient,
    scenario: Scenario,
    *,
    keep_going: Callable[[], bool],
    iterations: int | None,
    think_time_scale: float,
    rng: random.Random,
    samples: list[_Sample],
    tallies: dict[str, CheckTally],
) -> None:
    logger = structlog.get_logger("loadtest")
    done = 0
    while True:
        if iterations is not None and done >= iterations:
            return
        if not keep_going():
            return

        for step in scenario.steps:
            if step.probability >= 1.0 or rng.random() < step.probability:
                start = perf_counter()
                try:
                    response = await client.get(step.path)
                except httpx.HTTPError as exc:
                    elapsed_ms = (perf_counter() - start) * 1000.0
                    logger.warning("request_failed", tag=step.tag, path=step.path, error=str(exc))
                    samples.append(_Sample(step.tag, elapsed_ms, failed=True))
                    for check in step.checks:
                        tallies[check.name].fails += 1
                else:
                    elapsed_ms = (perf_counter() - start) * 1000.0
                    failed = response.status_code not in step.expected_statuses
                    samples.append(_Sample(step.tag, elapsed_ms, failed=failed))
                    for check in step.checks:
                        if check.predicate(response):
                            tallies[check.name].passes += 1
                        else:
                            tallies[check.name].fails += 1

            if step.think_time and think_time_scale:
                await asyncio.sleep(step.think_time * think_time_scale)

        done += 1


async def _run_stages(
    stages: tuple[Stage, ...],
    spawn: Callable[[Callable[[], bool]], Awaitable[None]],
    *,
    tick_s: float,
) -> None:
    """Start and retire users so the live count follows the stage ramps.

    User ``i`` runs while ``i`` is below the current target, finishing its
    iteration before it leaves. The schedule is re-read every ``tick_s``.
    """

    total_s = sum(stage.duration_s for stage in stages)
    started = monotonic()

    def elapsed() -> float:
        return monotonic() - started

    def while_scheduled(index: int) -> Callable[[], bool]:
        def keep_going() -> bool:
            now = elapsed()
            return now < total_s and index < scheduled_vus(stages, now)

        return keep_going

    users: dict[int, asyncio.Task] = {}
    while elapsed() < total_s:
        target = scheduled_vus(stages, elapsed())
        for index in range(target):
            task = users.get(index)
            if task is not None and not task.done():
                continue
            if task is not None:
                task.result()
            users[index] = asyncio.create_task(spawn(while_scheduled(index)))
        await asyncio.sleep(tick_s)

    await asyncio.gather(*users.values())


def _tag_stats(samples: list[_Sample]) -> list[TagStats]:
    by_tag: dict[str, list[_Sample]] = {}
    for sample in samples:
        by_tag.setdefault(sample.tag, []).append(sample)

    stats: list[TagStats] = []
    for tag, rows in by_tag.items():
        elapsed = [r.elapsed_ms for r in rows]
        stats.append(
            TagStats(
                tag=tag,
                requests=len(rows),
                failures=sum(1 for r in rows if r.failed),
                avg_ms=sum(elapsed) / len(elapsed),
                p95_ms=percentile(elapsed, 95),
                max_ms=max(elapsed),
            )
        )
    return stats


def _evaluate_thresholds(
    scenario: Scenario, *, overall_p95: float, failure_rate: float, tags: list[TagStats]
) -> list[ThresholdResult]:
    thresholds = scenario.thresholds
    results: list[ThresholdResult] = []

    if thresholds.p95_ms is not None:
        results.append(
            ThresholdResult(
                name="http_req_duration p(95)",
                limit=thresholds.p95_ms,
                observed=overall_p95,
                passed=overall_p95 < thresholds.p95_ms,
            )
        )
    if thresholds.max_failure_rate is not None:
        results.append(
            ThresholdResult(
                name="http_req_failed rate",
                limit=thresholds.max_failure_rate,
                observed=failure_rate,
                passed=failure_rate <= thresholds.max_failure_rate,
            )
        )

    tag_p95 = {t.tag: t.p95_ms for t in tags}
    for tag, limit in thresholds.tag_p95_ms.items():
        observed = tag_p95.get(tag)
        results.append(
            ThresholdResult(
                name=f"http_req_duration{{endpoint:{tag}}} p(95)",
                limit=limit,
                observed=observed,
                # A tag with no traffic has nothing to violate.
                passed=observed is None or observed < limit,
            )
        )
    return results


async def run_load_test(
    scenario: Scenario,
    base_url: str,
    *,
    vus: int | None = None,
    duration_s: float | None = None,
    iterations: int | None = None,
    think_time_scale: float = 1.0,
    seed: int | None = None,
    timeout_s: float = 60.0,
    stage_tick_s: float = 0.5,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LoadTestReport:
    """Drive virtual users through ``scenario``.

    Without overrides the scenario's own shape is used: its stages if it has
    any, otherwise ``scenario.vus`` users for ``scenario.duration_s``. Under
    constant load each user loops until ``duration_s`` elapses or it has
    completed ``iterations`` passes, whichever comes first.
    """

    plan = plan_load(scenario, vus=vus, duration_s=duration_s, iterations=iterations)

    logger = structlog.get_logger("loadtest")
    logger.info(
        "load_test_started",
        scenario=scenario.name,
        base_url=base_url,
        vus=plan.peak_vus,
        duration_s=plan.duration_s,
        stages=len(plan.stages),
    )

    started_at = datetime.now(timezone.utc)
    samples: list[_Sample] = []
    tallies = {check.name: CheckTally(name=check.name) for step in scenario.steps for check in step.checks}
    master = random.Random(seed)

    async with httpx.AsyncClient(base_url=base_url, timeout=timeout_s, transport=transport) as client:

        def user(keep_going: Callable[[], bool]) -> Awaitable[None]:
            return _virtual_user(
                client,
                scenario,
                keep_going=keep_going,
                iterations=plan.iterations,
                think_time_scale=think_time_scale,
                rng=random.Random(master.random()),
                samples=samples,
                tallies=tallies,
            )

        if plan.stages:
            await _run_stages(plan.stages, user, tick_s=stage_tick_s)
        else:
            deadline = monotonic() + plan.duration_s if plan.duration_s is not None else None

            def before_deadline() -> bool:
                return deadline is None or monotonic() < deadline

            await asyncio.gather(*(user(before_deadline) for _ in range(plan.vus)))

    finished_at = datetime.now(timezone.utc)
    tags = _tag_stats(samples)
    overall_p95 = percentile([s.elapsed_ms for s in samples], 95)
    failure_rate = (sum(1 for s in samples if s.failed) / len(samples)) if samples else 0.0
    thresholds = _evaluate_thresholds(scenario, overall_p95=overall_p95, failure_rate=failure_rate, tags=tags)

    report = LoadTestReport(
        summary=LoadTestSummary(
            scenario=scenario.name,
            base_url=base_url,
            vus=plan.peak_vus,
            started_at=started_at,
            finished_at=finished_at,
            total_requests=len(samples),
            failure_rate=failure_rate,
            p95_ms=overall_p95,
            passed=all(t.passed for t in thresholds),
        ),
        tags=tags,
        checks=list(tallies.values()),
        thresholds=thresholds,
    )

    logger.info(
        "load_test_finished",
        scenario=scenario.name,
        total_requests=report.summary.total_requests,
        failure_rate=round(failure_rate, 4),
        p95_ms=round(report.summary.p95_ms, 2),
        passed=report.summary.passed,
    )
    return report


def write_report(report: LoadTestReport, out_path: str) -> None:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(report.model_dump_json(indent=2), encoding="utf-8")
