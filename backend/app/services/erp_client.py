# Overview: HTTP client for the ERP endpoints (PO lookup and Goods-Receipt posting).

"""
ERP Client

Thin synchronous wrapper around httpx. Connection settings are captured once in
an ErpConfig when the app is created and handed to the client, instead of being
read from the environment on every call.

The client does not interpret responses; it returns status, decoded body and
timing. Timeouts are raised as ErpTimeoutError so callers can turn them into a
transport failure. Other network faults propagate as httpx.HTTPError.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
from flask import Flask, current_app

from .erp_response_interpreter import decode_body

EXTENSION_KEY = "erp_client"


class ErpTimeoutError(Exception):
    """Raised when the ERP does not answer within the configured timeout."""

    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"ERP request to {url} timed out after {timeout_seconds:g}s")
        self.url = url
        self.timeout_seconds = timeout_seconds


@dataclass(frozen=True)
class ErpConfig:
    base_url: str
    username: str
    password: str
    client: str
    gr_path: str
    po_path: str
    timeout_seconds: float = 30.0
    verify_tls: bool = False

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "ErpConfig":
        return cls(
            base_url=(config.get("ERP_BASE_URL") or "").rstrip("/"),
            username=config.get("ERP_USERNAME") or "",
            password=config.get("ERP_PASSWORD") or "",
            client=str(config.get("ERP_CLIENT") or ""),
            gr_path=config.get("ERP_GR_PATH") or "",
            po_path=config.get("ERP_PO_PATH") or "",
            timeout_seconds=float(config.get("ERP_TIMEOUT_SECONDS") or 30),
            verify_tls=bool(config.get("ERP_VERIFY_TLS")),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.username)

    @property
    def gr_url(self) -> str:
        url = f"{self.base_url}{self.gr_path}"
        if self.client:
            url = f"{url}?sap-client={self.client}"
        return url

    def po_url(self, po_no: str) -> str:
        return f"{self.base_url}{self.po_path.format(po_no=po_no)}"


@dataclass(frozen=True)
class ErpResponse:
    status_code: int
    body: Any
    text: str
    elapsed_ms: int
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ErpClient:
    """
    Synchronous ERP client.

    Args:
        config: connection settings
        transport: optional httpx transport (tests pass an httpx.MockTransport)
    """

    def __init__(self, config: ErpConfig, transport: httpx.BaseTransport | None = None):
        self.config = config
        self._transport = transport

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.config.client:
            headers["sap-client"] = self.config.client
        return headers

    def _send(self, method: str, url: str, payload: Any = None) -> ErpResponse:
        started = time.monotonic()
        try:
            with httpx.Client(
                auth=(self.config.username, self.config.password),
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
                verify=self.config.verify_tls,
                transport=self._transport,
            ) as client:
                response = client.request(method, url, json=payload)
        except httpx.TimeoutException as e:
            raise ErpTimeoutError(url, self.config.timeout_seconds) from e

        elapsed_ms = int(round((time.monotonic() - started) * 1000))
        return ErpResponse(
            status_code=response.status_code,
            body=decode_body(response.text),
            text=response.text,
            elapsed_ms=elapsed_ms,
            url=url,
        )

    def get_purchase_order(self, po_no: str) -> ErpResponse:
        return self._send("GET", self.config.po_url(po_no))

    def post_goods_receipt(self, payload: dict) -> ErpResponse:
        return self._send("POST", self.config.gr_url, payload)


def init_app(app: Flask) -> None:
    app.extensions[EXTENSION_KEY] = ErpClient(ErpConfig.from_mapping(app.config))


def get_erp_client() -> ErpClient:
    return current_app.extensions[EXTENSION_KEY]
