from __future__ import annotations
from typing import Any

import httpx

from mockharness.utils.retry import RetryPolicy, with_retries

class MockApiClient:
    def __init__(self, base_url: str, timeout_s: float = 2.0):
        self._client = httpx.Client(base_url=base_url, timeout=timeout_s)

    def __enter__(self) -> MockApiClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def health(self) -> dict:
        r = self._client.get("/health")
        r.raise_for_status()
        return r.json()

    def get_config(self) -> dict:
        r = self._client.get("/config")
        r.raise_for_status()
        return r.json()

    def update_config(self, **fields: Any) -> dict:
        """Apply a partial update, e.g. update_config(statusCode=404, delay=250)."""
        r = self.post_config(fields)
        r.raise_for_status()
        return r.json()["config"]

    def post_config(self, payload: Any) -> httpx.Response:
        # no status check: lets callers inspect rejected updates
        return self._client.post("/config", json=payload)

    def reset_config(self) -> dict:
        r = self._client.post("/config/reset")
        r.raise_for_status()
        return r.json()["config"]

    def call_api(
        self,
        method: str = "GET",
        *,
        timeout_s: float | None = None,
        policy: RetryPolicy | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Hit the mock endpoint. Status codes are returned as-is; simulated
        network faults surface as httpx.TransportError subclasses.
        With a policy, transport errors are retried.
        """
        if timeout_s is not None:
            kwargs["timeout"] = timeout_s

        def once() -> httpx.Response:
            return self._client.request(method, "/api", **kwargs)

        if policy is None:
            return once()
        return with_retries(once, policy, retry_on=(httpx.TransportError,))
