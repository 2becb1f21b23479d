import time
from typing import Dict, Optional

import httpx

from .models import AccountSnapshot, RawResponse, RunConfig, TransactionRequest


class AccountClient:
    """계좌 API 클라이언트 (모든 액터가 하나의 httpx.Client 를 공유)"""

    def __init__(self, config: RunConfig, http_client: Optional[httpx.Client] = None):
        self.config = config
        self._owns_client = http_client is None
        self.client: Optional[httpx.Client] = http_client

    def init_client(self) -> httpx.Client:
        """httpx 클라이언트 초기화"""
        if self.client is None:
            self.client = httpx.Client(timeout=self.config.timeout_seconds)
            self._owns_client = True
        return self.client

    def close(self):
        """직접 만든 클라이언트만 닫는다"""
        if self.client is not None and self._owns_client:
            self.client.close()
            self.client = None

    def __enter__(self):
        self.init_client()
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.host_header:
            headers["Host"] = self.config.host_header
        return headers

    @property
    def account_url(self) -> str:
        return f"{self.config.base_url}/api/accounts/{self.config.account_id}"

    def get_account(self) -> AccountSnapshot:
        """계좌 조회. 전송 실패는 httpx.HTTPError, 잘못된 응답은 ValueError 로 올라간다"""
        response = self.init_client().get(self.account_url, headers=self.headers)
        response.raise_for_status()
        try:
            data = response.json()["data"]
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"unexpected account payload: {e!r}") from e
        return AccountSnapshot.model_validate(data)

    def submit_transaction(self, request: TransactionRequest) -> RawResponse:
        """트랜잭션 요청 1건. 전송 실패도 RawResponse 로 돌려준다"""
        start_time = time.perf_counter()
        try:
            response = self.init_client().post(
                f"{self.account_url}/transaction",
                json=request.to_payload(),
                headers=self.headers,
            )
        except httpx.HTTPError as e:
            return RawResponse(
                error=f"{type(e).__name__}: {e}",
                elapsed_ms=(time.perf_counter() - start_time) * 1000.0,
            )

        return RawResponse(
            status=response.status_code,
            text=response.text,
            elapsed_ms=(time.perf_counter() - start_time) * 1000.0,
        )
