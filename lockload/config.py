import os
from typing import Mapping, Optional

from pydantic import ValidationError

from .models import LockingMode, RunConfig, ScenarioOptions

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_MODE = LockingMode.OPTIMISTIC.value


class StartupConfigError(ValueError):
    """실행 전에 발생하는 설정 오류 (요청을 하나도 보내지 않고 종료)"""


def _pick(overrides: Mapping[str, object], env: Mapping[str, str], key: str, env_key: str, default=None):
    value = overrides.get(key)
    if value is None:
        value = env.get(env_key)
    if value is None or value == "":
        return default
    return value


_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600}


def parse_duration(value) -> float:
    """"90", "30s", "2m", "1h" 형태를 초 단위로 변환"""
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower()
    unit = _DURATION_UNITS.get(text[-1:]) if text else None
    try:
        if unit is not None:
            return float(text[:-1]) * unit
        return float(text)
    except ValueError:
        raise StartupConfigError(f"invalid duration: {value!r}") from None


def resolve_config(env: Optional[Mapping[str, str]] = None, **overrides) -> RunConfig:
    """환경 변수(BASE_URL, ACCOUNT_ID, MODE, HOST_HEADER)와 인자로 RunConfig 생성

    인자로 넘긴 값이 환경 변수보다 우선한다.
    """
    if env is None:
        env = os.environ

    account_id = _pick(overrides, env, "account_id", "ACCOUNT_ID")
    if account_id is None:
        raise StartupConfigError(
            "ACCOUNT_ID is required (set the ACCOUNT_ID environment variable or pass --account-id)"
        )

    mode = _pick(overrides, env, "locking_mode", "MODE", DEFAULT_MODE)
    if isinstance(mode, LockingMode):
        mode = mode.value
    if mode not in LockingMode.__members__:  # 대소문자까지 정확히 일치해야 한다
        raise StartupConfigError(f"MODE must be 'OPTIMISTIC' or 'PESSIMISTIC', got: {mode}")

    base_url = str(_pick(overrides, env, "base_url", "BASE_URL", DEFAULT_BASE_URL))
    if not base_url.startswith(("http://", "https://")):
        raise StartupConfigError(f"BASE_URL must be an http(s) URL, got: {base_url}")

    try:
        return RunConfig(
            base_url=base_url.rstrip("/"),
            account_id=str(account_id),
            locking_mode=LockingMode(mode),
            host_header=_pick(overrides, env, "host_header", "HOST_HEADER"),
        )
    except ValidationError as e:
        raise StartupConfigError(f"invalid run configuration: {e}") from e


def resolve_options(env: Optional[Mapping[str, str]] = None, **overrides) -> ScenarioOptions:
    """환경 변수(VUS, ITERATIONS, MAX_DURATION)와 인자로 ScenarioOptions 생성"""
    if env is None:
        env = os.environ

    defaults = ScenarioOptions()
    try:
        return ScenarioOptions(
            vus=_pick(overrides, env, "vus", "VUS", defaults.vus),
            iterations=_pick(overrides, env, "iterations", "ITERATIONS", defaults.iterations),
            max_duration_seconds=parse_duration(_pick(
                overrides, env, "max_duration_seconds", "MAX_DURATION", defaults.max_duration_seconds
            )),
        )
    except ValidationError as e:
        raise StartupConfigError(f"invalid scenario options: {e}") from e
