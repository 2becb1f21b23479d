from typing import Optional

import httpx
import structlog

from ..client import AccountClient
from ..models import AccountDelta, AccountSnapshot

logger = structlog.get_logger()


class LifecycleCoordinator:
    """실행 전후 계좌 상태를 조회해서 변화량을 보고"""

    def __init__(self, client: AccountClient):
        self.client = client

    def capture_snapshot(self) -> Optional[AccountSnapshot]:
        """조회 실패는 치명적이지 않다 (None = 조회 불가)"""
        try:
            return self.client.get_account()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("account_snapshot_unavailable", account_id=self.client.config.account_id, error=str(e))
            return None

    def before_run(self) -> Optional[AccountSnapshot]:
        config = self.client.config
        logger.info(
            "load_test_configured",
            base_url=config.base_url,
            account_id=config.account_id,
            locking_mode=config.locking_mode.value,
        )

        initial = self.capture_snapshot()
        if initial is not None:
            logger.info(
                "initial_account_state",
                balance=str(initial.balance),
                currency=initial.currency,
                version=initial.version,
                owner=initial.owner_name,
            )
        return initial

    def after_run(self, initial: Optional[AccountSnapshot]) -> Optional[AccountDelta]:
        final = self.capture_snapshot()
        if final is None:
            return None

        logger.info(
            "final_account_state",
            balance=str(final.balance),
            currency=final.currency,
            version=final.version,
            owner=final.owner_name,
        )
        if initial is None:
            return None

        delta = AccountDelta(
            balance_delta=final.balance - initial.balance,
            version_delta=final.version - initial.version,
        )
        if delta.version_delta < 0:
            logger.warning("account_version_regressed", version_delta=delta.version_delta)
        logger.info(
            "account_changes",
            balance_delta=str(delta.balance_delta),
            currency=final.currency,
            version_delta=delta.version_delta,
        )
        return delta
