import json
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError


class LockingMode(str, Enum):
    OPTIMISTIC = "OPTIMISTIC"
    PESSIMISTIC = "PESSIMISTIC"


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class RunConfig(BaseModel):
    """실행 단위 설정 (시작 시 한 번 검증, 이후 변경 불가)"""
    model_config = ConfigDict(frozen=True)

    base_url: str = "http://localhost:8080"
    account_id: str = Field(min_length=1)
    locking_mode: LockingMode = LockingMode.OPTIMISTIC
    host_header: Optional[str] = None
    timeout_seconds: float = Field(default=30.0, gt=0)


class ScenarioOptions(BaseModel):
    """공유 반복 풀 시나리오 옵션"""
    model_config = ConfigDict(frozen=True)

    vus: int = Field(default=50, gt=0)
    iterations: int = Field(default=100, gt=0)
    max_duration_seconds: float = Field(default=120.0, gt=0)


class AccountSnapshot(BaseModel):
    """외부 계좌 상태의 읽기 전용 뷰"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    balance: Decimal
    version: int
    owner_name: str = Field(alias="ownerName")
    currency: str = Field(min_length=3, max_length=3)


class TransactionRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: TransactionType
    amount: int = Field(ge=1, le=100)
    locking_mode: LockingMode = Field(alias="lockingMode")
    reason: str

    @classmethod
    def build(cls, type: TransactionType, amount: int, locking_mode: LockingMode) -> "TransactionRequest":
        """reason 태그는 "{type}_{lockingMode}" 형태"""
        return cls(
            type=type,
            amount=amount,
            locking_mode=locking_mode,
            reason=f"{type.value}_{locking_mode.value}",
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class RawResponse(BaseModel):
    """전송 계층 결과 (status가 None이면 요청 자체가 실패)"""
    model_config = ConfigDict(frozen=True)

    status: Optional[int] = None
    text: str = ""
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status is not None


# 성공 응답 스키마
# id 계열은 JSON 스칼라면 문자열로 받고, 참고용 필드는 형식이 틀리면 None 으로 둔다
def _scalar_to_str(value):
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _or_none(parse):
    def validator(value):
        if value is None:
            return None
        try:
            return parse(value)
        except (TypeError, ValueError, ArithmeticError):
            return None

    return validator


def _parse_decimal(value) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("bool is not a balance")
    parsed = Decimal(str(value))
    if not parsed.is_finite():
        raise ValueError("balance must be finite")
    return parsed


def _parse_version(value) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise TypeError("version must be an integer")
    return int(value)


def _parse_currency(value) -> str:
    if not isinstance(value, str):
        raise TypeError("currency must be a string")
    return value


ScalarId = Annotated[str, BeforeValidator(_scalar_to_str)]


class AccountData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: ScalarId
    balance: Annotated[Optional[Decimal], BeforeValidator(_or_none(_parse_decimal))] = None
    version: Annotated[Optional[int], BeforeValidator(_or_none(_parse_version))] = None
    currency: Annotated[Optional[str], BeforeValidator(_or_none(_parse_currency))] = None


class SuccessBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    account: AccountData
    transaction_id: ScalarId = Field(alias="transactionId")


class DecodeError(BaseModel):
    kind: Literal["unparseable", "missing_fields"]
    detail: str


def decode_success_body(text: str) -> Union[SuccessBody, DecodeError]:
    """200 응답 본문을 SuccessBody 또는 DecodeError 로 변환"""
    try:
        data = json.loads(text)
    except ValueError as e:
        return DecodeError(kind="unparseable", detail=f"unparseable body: {e}")

    try:
        return SuccessBody.model_validate(data)
    except ValidationError:
        return DecodeError(kind="missing_fields", detail="missing required fields")


# 트랜잭션 결과 (변형 타입)
class _Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    request: TransactionRequest
    status: Optional[int] = None
    elapsed_ms: float = 0.0


class Success(_Outcome):
    kind: Literal["success"] = "success"
    account: AccountData
    transaction_id: str


class VersionConflict(_Outcome):
    kind: Literal["version_conflict"] = "version_conflict"


class ValidationFailure(_Outcome):
    kind: Literal["validation_error"] = "validation_error"
    detail: str


class OtherError(_Outcome):
    kind: Literal["other_error"] = "other_error"
    detail: str


TransactionOutcome = Union[Success, VersionConflict, ValidationFailure, OtherError]


class AccountDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    balance_delta: Decimal
    version_delta: int
