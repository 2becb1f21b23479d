import json
from datetime import datetime, timezone

import structlog

from ..models import (
    DecodeError,
    LockingMode,
    OtherError,
    RawResponse,
    Success,
    TransactionOutcome,
    TransactionRequest,
    ValidationFailure,
    VersionConflict,
    decode_success_body,
)

logger = structlog.get_logger()


def extract_error_detail(text: str) -> str:
    """오류 본문에서 message → error → 원문 순으로 메시지 추출"""
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return text


class ResponseClassifier:
    """응답(status + body)을 정확히 하나의 결과 유형으로 분류"""

    def __init__(self, locking_mode: LockingMode):
        self.locking_mode = locking_mode

    def classify(self, request: TransactionRequest, response: RawResponse) -> TransactionOutcome:
        context = {"request": request, "status": response.status, "elapsed_ms": response.elapsed_ms}

        if not response.completed:
            outcome = OtherError(detail=response.error or "transport failure", **context)
        elif response.status == 200:
            decoded = decode_success_body(response.text)
            if isinstance(decoded, DecodeError):
                if decoded.kind == "missing_fields":
                    outcome = ValidationFailure(detail=decoded.detail, **context)
                else:
                    outcome = OtherError(detail=decoded.detail, **context)
            else:
                outcome = Success(
                    account=decoded.account,
                    transaction_id=decoded.transaction_id,
                    **context,
                )
        elif response.status == 409:
            outcome = VersionConflict(**context)
        elif response.status == 400:
            outcome = ValidationFailure(detail=extract_error_detail(response.text), **context)
        else:
            outcome = OtherError(detail=extract_error_detail(response.text), **context)

        self._log(outcome)
        return outcome

    def _log(self, outcome: TransactionOutcome):
        request = outcome.request
        if isinstance(outcome, Success):
            account = outcome.account
            logger.info(
                "transaction_succeeded",
                timestamp=datetime.now(timezone.utc).isoformat(),
                transaction_id=outcome.transaction_id,
                action=request.type.value,
                amount=request.amount,
                currency=account.currency,
                balance=str(account.balance) if account.balance is not None else None,
                version=account.version,
            )
        elif isinstance(outcome, VersionConflict):
            # 비관적락에서는 충돌 대신 대기가 정상이므로 409는 이상 징후
            if self.locking_mode == LockingMode.PESSIMISTIC:
                logger.warning(
                    "version_conflict",
                    action=request.type.value,
                    amount=request.amount,
                    locking_mode=self.locking_mode.value,
                    expected=False,
                )
            else:
                logger.info(
                    "version_conflict",
                    action=request.type.value,
                    amount=request.amount,
                    locking_mode=self.locking_mode.value,
                    expected=True,
                )
        else:
            logger.error(
                "transaction_failed",
                status=outcome.status,
                action=request.type.value,
                amount=request.amount,
                outcome=outcome.kind,
                detail=outcome.detail,
            )
