import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from .driver import RandomSource

logger = structlog.get_logger()


class ThinkTimePolicy:
    """반복 사이 대기 시간 (기본 0.5~2.0초 균등 분포)"""

    def __init__(self, min_seconds: float = 0.5, max_seconds: float = 2.0, rng: Optional[RandomSource] = None):
        if min_seconds < 0 or max_seconds < min_seconds:
            raise ValueError(f"invalid think time range: {min_seconds}..{max_seconds}")
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds
        self.rng = rng if rng is not None else random.Random()

    def next_pause(self) -> float:
        return self.min_seconds + self.rng.random() * (self.max_seconds - self.min_seconds)


NO_THINK_TIME = ThinkTimePolicy(0.0, 0.0)


class IterationPool:
    """모든 액터가 공유하는 유한 반복 풀 (같은 반복을 두 번 주지 않음)"""

    def __init__(self, total: int, stop_event: threading.Event):
        self.total = total
        self._next = 0
        self._completed = 0
        self._refused = False
        self._lock = threading.Lock()
        self._stop_event = stop_event

    def claim(self) -> Optional[int]:
        """다음 반복 번호. 풀이 비었거나 중단되면 None"""
        with self._lock:
            if self._next >= self.total:
                return None
            if self._stop_event.is_set():
                # 남은 반복이 있는데 중단된 경우만 기록
                self._refused = True
                return None
            index = self._next
            self._next += 1
            return index

    def mark_completed(self):
        with self._lock:
            self._completed += 1

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def refused(self) -> bool:
        return self._refused


class ScheduleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested: int
    completed: int
    actors: int
    elapsed_seconds: float
    timed_out: bool

    @property
    def partial(self) -> bool:
        return self.completed < self.requested


class ScenarioScheduler:
    """N개의 가상 액터가 공유 풀에서 반복을 꺼내 실행 (최대 실행 시간 제한)"""

    def __init__(
        self,
        iteration: Callable[[int], None],
        think_time: Optional[ThinkTimePolicy] = None,
    ):
        self.iteration = iteration
        self.think_time = think_time if think_time is not None else ThinkTimePolicy()

    def run(self, total_iterations: int, actor_count: int, max_duration: float) -> ScheduleResult:
        if total_iterations < 0 or actor_count < 1 or max_duration <= 0:
            raise ValueError(
                f"invalid schedule: iterations={total_iterations} actors={actor_count} max_duration={max_duration}"
            )

        stop_event = threading.Event()
        pool = IterationPool(total_iterations, stop_event)

        # 새 반복만 막고, 진행 중인 요청은 끝까지 기다린다
        timer = threading.Timer(max_duration, stop_event.set)
        timer.daemon = True

        logger.info(
            "scenario_started",
            iterations=total_iterations,
            actors=actor_count,
            max_duration_seconds=max_duration,
        )
        start_time = time.monotonic()
        timer.start()
        try:
            with ThreadPoolExecutor(max_workers=actor_count, thread_name_prefix="vu") as executor:
                futures = [
                    executor.submit(self._actor_loop, actor_id, pool, stop_event)
                    for actor_id in range(1, actor_count + 1)
                ]
                for future in futures:
                    try:
                        future.result()
                    except Exception:
                        stop_event.set()
                        raise
        finally:
            timer.cancel()

        result = ScheduleResult(
            requested=total_iterations,
            completed=pool.completed,
            actors=actor_count,
            elapsed_seconds=round(time.monotonic() - start_time, 3),
            timed_out=pool.refused,
        )
        if result.partial:
            logger.warning(
                "scenario_partial",
                completed=result.completed,
                requested=result.requested,
                timed_out=result.timed_out,
            )
        else:
            logger.info("scenario_finished", completed=result.completed, elapsed_seconds=result.elapsed_seconds)
        return result

    def _actor_loop(self, actor_id: int, pool: IterationPool, stop_event: threading.Event):
        """가상 액터 1개: 반복을 순차 실행하고 매 반복 후 think time"""
        structlog.contextvars.bind_contextvars(vu=actor_id)
        while True:
            index = pool.claim()
            if index is None:
                return
            self.iteration(index)
            pool.mark_completed()

            pause = self.think_time.next_pause()
            # 중단 신호가 오면 대기를 끝내고 claim 에서 종료 여부를 판단
            if pause > 0:
                stop_event.wait(pause)
