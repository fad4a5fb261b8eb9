# app/providers/http.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger("partnerpay.providers.http")

_SECRET_HEADERS = {"authorization", "stripe-account"}


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def flatten_form(data: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """
    Encode nested dicts the way form-encoded APIs expect:
    {"metadata": {"a": "1"}} -> [("metadata[a]", "1")]
    """
    out: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            out.extend(flatten_form(value, name))
        elif isinstance(value, bool):
            out.append((name, "true" if value else "false"))
        else:
            out.append((name, str(value)))
    return out


class HttpClient:
    def __init__(self, timeout_s: float = 20.0, transport: Optional[httpx.BaseTransport] = None):
        self._client = httpx.Client(timeout=timeout_s, transport=transport)

    def post_form(
        self,
        url: str,
        *,
        headers: dict[str, str],
        form: dict[str, Any] | None = None,
        debug: bool = False,
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, data=dict(flatten_form(form or {})))
        if debug:
            self._debug_dump("POST", url, headers, r)
        return self._wrap(r)

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str],
        debug: bool = False,
    ) -> HttpResponse:
        r = self._client.get(url, headers=headers)
        if debug:
            self._debug_dump("GET", url, headers, r)
        return self._wrap(r)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)

    @staticmethod
    def _debug_dump(method: str, url: str, headers: dict[str, str], r: httpx.Response) -> None:
        safe_headers = {k: ("REDACTED" if k.lower() in _SECRET_HEADERS else v) for k, v in (headers or {}).items()}
        logger.debug(
            "http %s %s headers=%s -> status=%s text=%s",
            method,
            url,
            safe_headers,
            r.status_code,
            r.text[:300],
        )


def is_retryable_http(code: int) -> bool:
    return code in (408, 409, 425, 429, 500, 502, 503, 504)
