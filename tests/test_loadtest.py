from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport

from dixit_app.loadtest import __main__ as cli
from dixit_app.loadtest.runner import percentile, plan_load, run_load_test, scheduled_vus, write_report
from dixit_app.loadtest.scenarios import ENHANCED, SLOW, SMOKE, Scenario, Stage, Step, get_scenario
from dixit_app.loadtest.schemas import LoadTestReport, LoadTestSummary, Thresholds


def test_percentile_interpolates_between_samples() -> None:
    assert percentile([], 95) == 0.0
    assert percentile([5.0], 95) == 5.0
    assert percentile([1.0, 2.0, 3.0, 4.0, 5.0], 50) == 3.0
    assert percentile([0.0, 10.0], 95) == pytest.approx(9.5)


def test_unknown_scenario_is_rejected() -> None:
    assert get_scenario("smoke") is SMOKE
    with pytest.raises(ValueError):
        get_scenario("nope")


async def test_smoke_scenario_passes_against_the_app(app) -> None:
    report = await run_load_test(
        SMOKE,
        "http://test",
        vus=3,
        duration_s=None,
        iterations=2,
        think_time_scale=0.0,
        transport=ASGITransport(app=app),
    )

    assert report.summary.total_requests == 6
    assert report.summary.failure_rate == 0.0
    assert report.summary.passed is True
    assert report.checks[0].name == "status was 200"
    assert report.checks[0].passes == 6
    assert report.checks[0].fails == 0


async def test_enhanced_scenario_checks_every_contract(app) -> None:
    # Sampled steps always fire so the sleep and 404 contracts are exercised too.
    always = Scenario(
        name="enhanced-all",
        steps=tuple(replace(step, probability=1.0) for step in ENHANCED.steps),
        thresholds=Thresholds(p95_ms=None, max_failure_rate=0.0),
    )
    report = await run_load_test(
        always,
        "http://test",
        vus=2,
        duration_s=None,
        iterations=1,
        think_time_scale=0.0,
        transport=ASGITransport(app=app),
    )

    failing = [c.name for c in report.checks if c.fails]
    assert failing == []
    assert {t.tag for t in report.tags} == {"main", "health", "api_info", "api_metrics", "sleep", "404"}
    assert report.summary.failure_rate == 0.0
    assert report.summary.passed is True


async def test_unexpected_statuses_fail_thresholds(app) -> None:
    broken = Scenario(
        name="broken",
        steps=(Step(tag="main", path="/does-not-exist"),),
        thresholds=Thresholds(p95_ms=None, max_failure_rate=0.1),
    )
    report = await run_load_test(
        broken,
        "http://test",
        duration_s=None,
        iterations=3,
        think_time_scale=0.0,
        transport=ASGITransport(app=app),
    )

    assert report.summary.failure_rate == 1.0
    assert report.summary.passed is False
    assert report.thresholds[0].name == "http_req_failed rate"
    assert report.thresholds[0].passed is False


async def test_run_requires_a_stop_condition() -> None:
    endless = Scenario(name="endless", steps=SMOKE.steps, duration_s=None)
    with pytest.raises(ValueError):
        await run_load_test(endless, "http://test")



def test_scenarios_carry_their_own_traffic_shape() -> None:
    assert (SMOKE.vus, SMOKE.duration_s, SMOKE.stages) == (50, 30.0, ())
    assert (SLOW.vus, SLOW.duration_s, SLOW.stages) == (20, 180.0, ())
    assert ENHANCED.stages == (
        Stage(duration_s=30.0, target=20),
        Stage(duration_s=60.0, target=50),
        Stage(duration_s=30.0, target=0),
    )


def test_enhanced_run_follows_its_stage_schedule() -> None:
    plan = plan_load(ENHANCED)

    assert plan.stages == ENHANCED.stages
    assert plan.duration_s == 120.0
    assert plan.peak_vus == 50
    # Ramp 0->20 over 30s, 20->50 over 60s, then 50->0 over 30s.
    timeline = [(0, 0), (15, 10), (30, 20), (60, 35), (90, 50), (105, 25), (120, 0)]
    assert [scheduled_vus(plan.stages, t) for t, _ in timeline] == [vus for _, vus in timeline]


def test_explicit_overrides_switch_to_constant_load() -> None:
    plan = plan_load(ENHANCED, vus=5)
    assert (plan.vus, plan.duration_s, plan.stages) == (5, 120.0, ())

    plan = plan_load(SMOKE, duration_s=2.0)
    assert (plan.vus, plan.duration_s) == (50, 2.0)

    plan = plan_load(SLOW, iterations=1)
    assert (plan.vus, plan.duration_s, plan.iterations) == (20, None, 1)

    with pytest.raises(ValueError):
        plan_load(SMOKE, vus=0)


async def test_staged_run_ramps_users_up_and_down(app) -> None:
    ramp = Scenario(
        name="ramp",
        steps=(Step(tag="health", path="/health", think_time=1.0),),
        thresholds=Thresholds(p95_ms=None, max_failure_rate=0.0),
        stages=(Stage(duration_s=0.3, target=3), Stage(duration_s=0.3, target=0)),
    )
    report = await run_load_test(
        ramp,
        "http://test",
        think_time_scale=0.01,
        stage_tick_s=0.01,
        transport=ASGITransport(app=app),
    )

    assert report.summary.vus == 3
    assert report.summary.total_requests > 0
    assert report.summary.failure_rate == 0.0
    assert report.summary.passed is True

def test_write_report_round_trips(tmp_path: Path) -> None:
    now = datetime.now(timezone.utc)
    report = LoadTestReport(
        summary=LoadTestSummary(
            scenario="smoke",
            base_url="http://test",
            vus=1,
            started_at=now,
            finished_at=now,
            total_requests=0,
            failure_rate=0.0,
            p95_ms=0.0,
            passed=True,
        ),
        tags=[],
        checks=[],
        thresholds=[],
    )
    out = tmp_path / "nested" / "report.json"
    write_report(report, str(out))

    loaded = LoadTestReport.model_validate_json(out.read_text(encoding="utf-8"))
    assert loaded.summary.scenario == "smoke"


def test_cli_exit_status_follows_thresholds(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    now = datetime.now(timezone.utc)
    seen: dict = {}

    async def fake_run(scenario, base_url, **kwargs):
        seen.update(scenario=scenario.name, base_url=base_url, **kwargs)
        return LoadTestReport(
            summary=LoadTestSummary(
                scenario=scenario.name,
                base_url=base_url,
                vus=kwargs["vus"],
                started_at=now,
                finished_at=now,
                total_requests=1,
                failure_rate=1.0,
                p95_ms=1.0,
                passed=False,
            ),
            tags=[],
            checks=[],
            thresholds=[],
        )

    monkeypatch.setattr(cli, "run_load_test", fake_run)
    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    monkeypatch.setenv("APP_URL", "http://cluster.local:3000")

    out = tmp_path / "report.json"
    code = cli.main(["--scenario", "smoke", "--vus", "4", "--duration", "1", "--out", str(out)])

    assert code == 1
    assert seen["base_url"] == "http://cluster.local:3000"
    assert seen["scenario"] == "smoke"
    assert seen["vus"] == 4
    assert json.loads(out.read_text(encoding="utf-8"))["summary"]["passed"] is False


def test_cli_defers_to_the_scenario_shape(monkeypatch: pytest.MonkeyPatch) -> None:
    now = datetime.now(timezone.utc)
    seen: dict = {}

    async def fake_run(scenario, base_url, **kwargs):
        seen.update(scenario=scenario.name, **kwargs)
        return LoadTestReport(
            summary=LoadTestSummary(
                scenario=scenario.name,
                base_url=base_url,
                vus=plan_load(scenario).peak_vus,
                started_at=now,
                finished_at=now,
                total_requests=1,
                failure_rate=0.0,
                p95_ms=1.0,
                passed=True,
            ),
            tags=[],
            checks=[],
            thresholds=[],
        )

    monkeypatch.setattr(cli, "run_load_test", fake_run)
    monkeypatch.setattr(cli, "configure_logging", lambda: None)

    code = cli.main([])

    assert code == 0
    assert seen["scenario"] == "enhanced"
    assert seen["vus"] is None
    assert seen["duration_s"] is None
    assert seen["iterations"] is None
