import math
import operator
import statistics
import threading
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict

from .models import Success, TransactionOutcome, TransactionType


def percentile(data: List[float], pct: float) -> float:
    """선형 보간 백분위수"""
    if not data:
        return 0.0
    sorted_data = sorted(data)
    k = (len(sorted_data) - 1) * (pct / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_data[int(k)]
    return sorted_data[f] * (c - k) + sorted_data[c] * (k - f)


class TrendStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    med: float = 0.0
    p90: float = 0.0
    p95: float = 0.0

    @classmethod
    def of(cls, values: List[float]) -> "TrendStats":
        if not values:
            return cls()
        return cls(
            count=len(values),
            min=min(values),
            max=max(values),
            avg=round(statistics.mean(values), 2),
            med=round(percentile(values, 50), 2),
            p90=round(percentile(values, 90), 2),
            p95=round(percentile(values, 95), 2),
        )


class MetricsSnapshot(BaseModel):
    """실행 종료 시점의 읽기 전용 지표"""
    model_config = ConfigDict(frozen=True)

    deposits: int
    withdrawals: int
    successes: int
    conflicts: int
    validation_errors: int
    other_errors: int
    requests: int
    failed_requests: int
    latency: TrendStats
    balance: TrendStats

    @property
    def completed(self) -> int:
        return self.successes + self.conflicts + self.validation_errors + self.other_errors

    @property
    def conflict_rate(self) -> float:
        # OPTIMISTIC 모드에서만 의미가 있다
        if self.completed == 0:
            return 0.0
        return self.conflicts / self.completed

    @property
    def failure_rate(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.failed_requests / self.requests


class MetricsAggregator:
    """모든 액터가 공유하는 지표 누적기 (갱신 유실 없음)"""

    def __init__(self):
        self._lock = threading.Lock()
        self._attempts: Dict[TransactionType, int] = {t: 0 for t in TransactionType}
        self._outcomes: Dict[str, int] = {
            "success": 0,
            "version_conflict": 0,
            "validation_error": 0,
            "other_error": 0,
        }
        self._failed_requests = 0
        self._latencies: List[float] = []
        self._balances: List[float] = []

    def record_attempt(self, type: TransactionType):
        """입금/출금 시도 횟수 (성공 여부와 무관)"""
        with self._lock:
            self._attempts[type] += 1

    def accept(self, outcome: TransactionOutcome):
        with self._lock:
            self._outcomes[outcome.kind] += 1
            self._latencies.append(outcome.elapsed_ms)
            if outcome.status is None or outcome.status >= 400:
                self._failed_requests += 1
            if isinstance(outcome, Success) and outcome.account.balance is not None:
                self._balances.append(float(outcome.account.balance))

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                deposits=self._attempts[TransactionType.DEPOSIT],
                withdrawals=self._attempts[TransactionType.WITHDRAWAL],
                successes=self._outcomes["success"],
                conflicts=self._outcomes["version_conflict"],
                validation_errors=self._outcomes["validation_error"],
                other_errors=self._outcomes["other_error"],
                requests=len(self._latencies),
                failed_requests=self._failed_requests,
                latency=TrendStats.of(list(self._latencies)),
                balance=TrendStats.of(list(self._balances)),
            )


# 기준값 (pass/fail)
class Threshold(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    metric: str
    limit: float

    def observe(self, snapshot: MetricsSnapshot) -> float:
        return operator.attrgetter(self.metric)(snapshot)

    def check(self, snapshot: MetricsSnapshot) -> bool:
        return self.observe(snapshot) < self.limit


DEFAULT_THRESHOLDS: Tuple[Threshold, ...] = (
    Threshold(name="http_req_duration_p95", metric="latency.p95", limit=2000.0),
    Threshold(name="http_req_failed_rate", metric="failure_rate", limit=0.1),
    Threshold(name="version_conflict_rate", metric="conflict_rate", limit=0.3),
)


class ThresholdResult(BaseModel):
    name: str
    observed: float
    limit: float
    passed: bool


class ThresholdReport(BaseModel):
    results: List[ThresholdResult]

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def breaches(self) -> List[ThresholdResult]:
        return [result for result in self.results if not result.passed]


def evaluate_thresholds(snapshot: MetricsSnapshot, thresholds=DEFAULT_THRESHOLDS) -> ThresholdReport:
    """기준값 평가. 위반은 보고만 하고 예외로 올리지 않는다"""
    return ThresholdReport(
        results=[
            ThresholdResult(
                name=threshold.name,
                observed=threshold.observe(snapshot),
                limit=threshold.limit,
                passed=threshold.check(snapshot),
            )
            for threshold in thresholds
        ]
    )
