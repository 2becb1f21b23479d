from typing import Optional, Sequence

import structlog
from pydantic import BaseModel, ConfigDict

from .client import AccountClient
from .metrics import (
    DEFAULT_THRESHOLDS,
    MetricsAggregator,
    MetricsSnapshot,
    Threshold,
    ThresholdReport,
    evaluate_thresholds,
)
from .models import AccountDelta, AccountSnapshot, ScenarioOptions, TransactionOutcome
from .scenarios.classifier import ResponseClassifier
from .scenarios.driver import RandomSource, TransactionDriver
from .scenarios.lifecycle import LifecycleCoordinator
from .scenarios.scheduler import ScenarioScheduler, ScheduleResult, ThinkTimePolicy

logger = structlog.get_logger()


class LoadTestReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial: Optional[AccountSnapshot] = None
    delta: Optional[AccountDelta] = None
    schedule: ScheduleResult
    metrics: MetricsSnapshot
    thresholds: ThresholdReport

    @property
    def passed(self) -> bool:
        return self.thresholds.passed


class LoadTestRunner:
    """설정 → 시나리오 → 지표 → 기준값 평가까지 한 번의 부하 테스트"""

    def __init__(
        self,
        client: AccountClient,
        options: ScenarioOptions,
        rng: Optional[RandomSource] = None,
        think_time: Optional[ThinkTimePolicy] = None,
        thresholds: Sequence[Threshold] = DEFAULT_THRESHOLDS,
    ):
        self.client = client
        self.options = options
        self.metrics = MetricsAggregator()
        self.driver = TransactionDriver(client, self.metrics, rng)
        self.classifier = ResponseClassifier(client.config.locking_mode)
        self.lifecycle = LifecycleCoordinator(client)
        self.scheduler = ScenarioScheduler(self.run_iteration, think_time)
        self.thresholds = tuple(thresholds)

    def run_iteration(self, index: int) -> TransactionOutcome:
        request, response = self.driver.execute_iteration()
        outcome = self.classifier.classify(request, response)
        self.metrics.accept(outcome)
        return outcome

    def run(self) -> LoadTestReport:
        initial = self.lifecycle.before_run()
        schedule = self.scheduler.run(
            self.options.iterations,
            self.options.vus,
            self.options.max_duration_seconds,
        )
        delta = self.lifecycle.after_run(initial)

        snapshot = self.metrics.snapshot()
        thresholds = evaluate_thresholds(snapshot, self.thresholds)
        for breach in thresholds.breaches:
            logger.warning("threshold_breached", name=breach.name, observed=breach.observed, limit=breach.limit)

        return LoadTestReport(
            initial=initial,
            delta=delta,
            schedule=schedule,
            metrics=snapshot,
            thresholds=thresholds,
        )
