"""계좌 트랜잭션 API 부하 테스트 - 낙관적락 / 비관적락 비교

Usage:
    ACCOUNT_ID=<uuid> lockload
    lockload --account-id <uuid> --mode PESSIMISTIC --vus 50 --iterations 100 --max-duration 2m
"""

import argparse
import sys
from typing import List, Optional

from .client import AccountClient
from .config import StartupConfigError, resolve_config, resolve_options
from .logs import setup_logging
from .runner import LoadTestReport, LoadTestRunner

EXIT_PASSED = 0
EXIT_THRESHOLD_BREACHED = 1
EXIT_CONFIG_ERROR = 2

LINE = "━" * 66


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockload",
        description="Concurrent load test for the account transaction API (optimistic vs pessimistic locking)",
    )
    parser.add_argument("--base-url", help="API base URL (env BASE_URL, default http://localhost:8080)")
    parser.add_argument("--account-id", help="target account id (env ACCOUNT_ID, required)")
    parser.add_argument("--mode", help="OPTIMISTIC or PESSIMISTIC (env MODE, default OPTIMISTIC)")
    parser.add_argument("--host-header", help="Host header override (env HOST_HEADER)")
    parser.add_argument("--vus", type=int, help="concurrent virtual users (env VUS, default 50)")
    parser.add_argument("--iterations", type=int, help="shared iteration budget (env ITERATIONS, default 100)")
    parser.add_argument("--max-duration", help="wall-clock cap, e.g. 90, 30s, 2m (env MAX_DURATION, default 120s)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--json-logs", action="store_true", help="emit one JSON object per log line")
    return parser


def _signed(value) -> str:
    return f"+{value}" if value > 0 else f"{value}"


def print_summary(report: LoadTestReport):
    """콘솔 요약 출력"""
    metrics = report.metrics
    schedule = report.schedule

    print(LINE)
    print("📊 결과:")
    print(f"   반복: {schedule.completed}/{schedule.requested} (가상 사용자 {schedule.actors}명, {schedule.elapsed_seconds:.1f}초)")
    if schedule.partial:
        print(f"   ⚠️  부분 실행 (시간 초과: {schedule.timed_out})")
    print(f"   입금 시도: {metrics.deposits} | 출금 시도: {metrics.withdrawals}")
    print(
        f"   성공: {metrics.successes} | 버전 충돌: {metrics.conflicts} | "
        f"검증 오류: {metrics.validation_errors} | 기타 오류: {metrics.other_errors}"
    )
    print(f"   충돌률: {metrics.conflict_rate * 100:.1f}% | 실패율: {metrics.failure_rate * 100:.1f}%")
    print(
        f"   응답 시간: avg={metrics.latency.avg:.1f}ms p90={metrics.latency.p90:.1f}ms "
        f"p95={metrics.latency.p95:.1f}ms max={metrics.latency.max:.1f}ms"
    )

    if report.delta is not None:
        print("\n📈 변화량:")
        currency = report.initial.currency if report.initial else ""
        print(f"   잔액 변화: {_signed(report.delta.balance_delta)} {currency}")
        print(f"   버전 변화: {_signed(report.delta.version_delta)}")

    print("\n🎯 기준값:")
    for result in report.thresholds.results:
        mark = "✅" if result.passed else "❌"
        print(f"   {mark} {result.name}: {result.observed:.3f} < {result.limit}")
    print(LINE)
    if report.passed:
        print("✅ 테스트 통과!")
    else:
        print("❌ 기준값 위반!")


def main(argv: Optional[List[str]] = None) -> int:
    """메인 함수"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, json_output=args.json_logs)

    try:
        config = resolve_config(
            base_url=args.base_url,
            account_id=args.account_id,
            locking_mode=args.mode,
            host_header=args.host_header,
        )
        options = resolve_options(
            vus=args.vus,
            iterations=args.iterations,
            max_duration_seconds=args.max_duration,
        )
    except StartupConfigError as e:
        print(f"❌ 설정 오류: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(LINE)
    print("🚀 계좌 트랜잭션 부하 테스트")
    print(f"▶ Target base URL : {config.base_url}")
    print(f"▶ Account ID      : {config.account_id}")
    print(f"▶ Locking Mode    : {config.locking_mode.value}")
    print(LINE)

    with AccountClient(config) as client:
        report = LoadTestRunner(client, options).run()

    print_summary(report)
    return EXIT_PASSED if report.passed else EXIT_THRESHOLD_BREACHED


if __name__ == "__main__":
    sys.exit(main())
