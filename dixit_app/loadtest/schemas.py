from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Thresholds(BaseModel):
    p95_ms: float | None = 500.0
    max_failure_rate: float | None = 0.1
    tag_p95_ms: dict[str, float] = Field(default_factory=dict)


class TagStats(BaseModel):
    tag: str
    requests: int
    failures: int
    avg_ms: float
    p95_ms: float
    max_ms: float


class CheckTally(BaseModel):
    name: str
    passes: int = 0
    fails: int = 0


class ThresholdResult(BaseModel):
    name: str
    limit: float
    observed: float | None
    passed: bool


class LoadTestSummary(BaseModel):
    scenario: str
    base_url: str
    vus: int
    started_at: datetime
    finished_at: datetime
    total_requests: int
    failure_rate: float
    p95_ms: float
    passed: bool


class LoadTestReport(BaseModel):
    summary: LoadTestSummary
    tags: list[TagStats]
    checks: list[CheckTally]
    thresholds: list[ThresholdResult]
