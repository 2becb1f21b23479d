import random
import threading
from typing import Optional, Protocol, Sequence, Tuple

from ..client import AccountClient
from ..metrics import MetricsAggregator
from ..models import LockingMode, RawResponse, TransactionRequest, TransactionType

MIN_AMOUNT = 1
MAX_AMOUNT = 100


class RandomSource(Protocol):
    def random(self) -> float:
        """[0, 1) 범위의 다음 값"""
        ...


class SequenceRandom:
    """정해진 값을 순서대로 돌려주는 난수원 (끝나면 처음부터 반복)"""

    def __init__(self, values: Sequence[float]):
        if not values:
            raise ValueError("SequenceRandom needs at least one value")
        self._values = list(values)
        self._index = 0
        self._lock = threading.Lock()

    def random(self) -> float:
        with self._lock:
            value = self._values[self._index % len(self._values)]
            self._index += 1
            return value


def choose_action(rng: RandomSource) -> TransactionType:
    """입금/출금을 각각 0.5 확률로 선택"""
    return TransactionType.DEPOSIT if rng.random() < 0.5 else TransactionType.WITHDRAWAL


def choose_amount(rng: RandomSource) -> int:
    """1~100 사이 정수 금액"""
    amount = int(rng.random() * MAX_AMOUNT) + MIN_AMOUNT
    return max(MIN_AMOUNT, min(amount, MAX_AMOUNT))


class TransactionDriver:
    """반복 1회: 행동/금액 선택 → 요청 생성 → 전송"""

    def __init__(
        self,
        client: AccountClient,
        metrics: MetricsAggregator,
        rng: Optional[RandomSource] = None,
    ):
        self.client = client
        self.metrics = metrics
        self.rng = rng if rng is not None else random.Random()

    @property
    def locking_mode(self) -> LockingMode:
        return self.client.config.locking_mode

    def build_request(self) -> TransactionRequest:
        action = choose_action(self.rng)
        amount = choose_amount(self.rng)
        return TransactionRequest.build(action, amount, self.locking_mode)

    def execute_iteration(self) -> Tuple[TransactionRequest, RawResponse]:
        request = self.build_request()
        # 결과와 무관하게 시도 횟수부터 기록
        self.metrics.record_attempt(request.type)
        return request, self.client.submit_transaction(request)
