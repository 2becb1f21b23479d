import itertools
from concurrent.futures import ThreadPoolExecutor

import pytest

from lockload.metrics import (
    DEFAULT_THRESHOLDS,
    MetricsAggregator,
    MetricsSnapshot,
    TrendStats,
    evaluate_thresholds,
    percentile,
)
from lockload.models import (
    AccountData,
    LockingMode,
    OtherError,
    Success,
    TransactionRequest,
    TransactionType,
    ValidationFailure,
    VersionConflict,
)

REQUEST = TransactionRequest.build(TransactionType.DEPOSIT, 10, LockingMode.OPTIMISTIC)


def _success(balance=100, elapsed_ms=10.0):
    return Success(
        request=REQUEST,
        status=200,
        elapsed_ms=elapsed_ms,
        account=AccountData(id="a1", balance=balance, version=1, currency="USD"),
        transaction_id="t1",
    )


def _snapshot(p95=100.0, failed=0, requests=100, conflicts=0, successes=100) -> MetricsSnapshot:
    return MetricsSnapshot(
        deposits=requests // 2,
        withdrawals=requests - requests // 2,
        successes=successes,
        conflicts=conflicts,
        validation_errors=0,
        other_errors=0,
        requests=requests,
        failed_requests=failed,
        latency=TrendStats(count=requests, p95=p95),
        balance=TrendStats(),
    )


class TestPercentile:
    def test_empty(self) -> None:
        assert percentile([], 95) == 0.0

    def test_interpolates(self) -> None:
        assert percentile([10.0, 20.0, 30.0, 40.0], 50) == pytest.approx(25.0)
        assert percentile([1.0, 2.0, 3.0], 100) == 3.0


class TestMetricsAggregator:
    def test_counts_each_category(self) -> None:
        metrics = MetricsAggregator()
        metrics.record_attempt(TransactionType.DEPOSIT)
        metrics.record_attempt(TransactionType.WITHDRAWAL)
        metrics.record_attempt(TransactionType.WITHDRAWAL)

        metrics.accept(_success(balance=150))
        metrics.accept(VersionConflict(request=REQUEST, status=409, elapsed_ms=5.0))
        metrics.accept(ValidationFailure(request=REQUEST, status=400, detail="insufficient funds"))
        metrics.accept(ValidationFailure(request=REQUEST, status=200, detail="missing required fields"))
        metrics.accept(OtherError(request=REQUEST, status=None, detail="ConnectError"))

        snapshot = metrics.snapshot()
        assert snapshot.deposits == 1
        assert snapshot.withdrawals == 2
        assert snapshot.successes == 1
        assert snapshot.conflicts == 1
        assert snapshot.validation_errors == 2
        assert snapshot.other_errors == 1
        assert snapshot.completed == 5
        assert snapshot.requests == 5
        # 409, 400, 전송 실패 (200 + 필드 누락은 HTTP 실패가 아님)
        assert snapshot.failed_requests == 3
        assert snapshot.conflict_rate == pytest.approx(0.2)
        assert snapshot.failure_rate == pytest.approx(0.6)
        assert snapshot.balance.count == 1
        assert snapshot.balance.max == 150.0

    def test_empty_snapshot_rates_are_zero(self) -> None:
        snapshot = MetricsAggregator().snapshot()

        assert snapshot.completed == 0
        assert snapshot.conflict_rate == 0.0
        assert snapshot.failure_rate == 0.0
        assert snapshot.latency.p95 == 0.0

    def test_no_lost_updates_under_concurrency(self) -> None:
        metrics = MetricsAggregator()
        outcomes = [
            _success(),
            VersionConflict(request=REQUEST, status=409),
            OtherError(request=REQUEST, status=500, detail="boom"),
        ]

        def worker(n):
            for i in range(500):
                metrics.record_attempt(TransactionType.DEPOSIT if i % 2 else TransactionType.WITHDRAWAL)
                metrics.accept(outcomes[(n + i) % 3])

        with ThreadPoolExecutor(max_workers=16) as executor:
            list(executor.map(worker, range(16)))

        snapshot = metrics.snapshot()
        assert snapshot.deposits + snapshot.withdrawals == 8000
        assert snapshot.completed == 8000
        assert snapshot.requests == 8000
        assert snapshot.successes + snapshot.conflicts + snapshot.other_errors == 8000

    def test_counters_never_decrease(self) -> None:
        metrics = MetricsAggregator()
        previous = metrics.snapshot()
        for outcome in [_success(), VersionConflict(request=REQUEST, status=409), _success()]:
            metrics.accept(outcome)
            current = metrics.snapshot()
            assert current.successes >= previous.successes
            assert current.conflicts >= previous.conflicts
            assert current.completed == previous.completed + 1
            previous = current


class TestThresholds:
    def test_healthy_run_passes(self) -> None:
        report = evaluate_thresholds(_snapshot())

        assert report.passed
        assert [r.name for r in report.results] == [
            "http_req_duration_p95",
            "http_req_failed_rate",
            "version_conflict_rate",
        ]

    @pytest.mark.parametrize(
        "snapshot,breached",
        [
            (_snapshot(p95=2000.0), "http_req_duration_p95"),
            (_snapshot(failed=10), "http_req_failed_rate"),
            (_snapshot(conflicts=30, successes=70), "version_conflict_rate"),
        ],
    )
    def test_each_breach_fails_the_run(self, snapshot, breached) -> None:
        report = evaluate_thresholds(snapshot)

        assert not report.passed
        assert [r.name for r in report.breaches] == [breached]

    def test_verdict_independent_of_order(self) -> None:
        snapshots = [
            _snapshot(),
            _snapshot(p95=2500.0),
            _snapshot(failed=50, conflicts=40, successes=60),
        ]
        for snapshot in snapshots:
            verdicts = {
                evaluate_thresholds(snapshot, order).passed
                for order in itertools.permutations(DEFAULT_THRESHOLDS)
            }
            assert len(verdicts) == 1
            assert verdicts.pop() == all(t.check(snapshot) for t in DEFAULT_THRESHOLDS)
