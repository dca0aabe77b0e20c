"""Cloudflare DNS client (token-authenticated REST).

Every call opens its own httpx client with the zone-scoped API token.
Cloudflare wraps responses in ``{"success": bool, "errors": [...],
"result": ...}``; the first error message is surfaced to callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from sublease.models.dns import DnsRecord, DnsResult
from sublease.models.listing import RecordType, Registrar
from sublease.registrars.base import find_verification, tracked

if TYPE_CHECKING:
    from sublease.models.dns import CloudflareCredentials, RecordChanges

logger = structlog.get_logger()

BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_TTL = 3600
PAGE_SIZE = 100


class CloudflareAPIError(Exception):
    """Cloudflare answered with ``success: false`` or a non-2xx status."""


class CloudflareClient:
    """Token-REST implementation of the registrar contract."""

    registrar = Registrar.CLOUDFLARE.value

    def __init__(self, credentials: CloudflareCredentials, timeout: float = 15.0) -> None:
        self.api_token = credentials.api_token
        self.zone_id = credentials.zone_id
        self.timeout = timeout
        self.base_url = BASE_URL

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger.debug("Cloudflare request", method=method, path=path)
        with httpx.Client(
            base_url=self.base_url, headers=self._headers(), timeout=self.timeout
        ) as client:
            resp = client.request(method, path, params=params, json=json)

        try:
            data: dict[str, Any] = resp.json()
        except ValueError:
            data = {}

        if resp.is_error or not data.get("success", False):
            errors = data.get("errors") or []
            message = errors[0].get("message") if errors and isinstance(errors[0], dict) else None
            raise CloudflareAPIError(
                message or f"Cloudflare API request failed (HTTP {resp.status_code})"
            )
        return data

    @property
    def _records_path(self) -> str:
        return f"/zones/{self.zone_id}/dns_records"

    def create_record(
        self,
        record_type: RecordType,
        name: str,
        content: str,
        ttl: int | None = None,
        priority: int | None = None,
    ) -> DnsResult:
        body: dict[str, Any] = {
            "type": str(record_type),
            "name": name,
            "content": content,
            "ttl": ttl or DEFAULT_TTL,
        }
        if priority is not None:
            body["priority"] = priority

        try:
            data = self._request("POST", self._records_path, json=body)
            result = DnsResult.ok(record_id=data["result"]["id"])
        except (httpx.HTTPError, CloudflareAPIError, KeyError, TypeError) as exc:
            result = DnsResult.fail(str(exc) or "Failed to create DNS record")
        return tracked(self.registrar, "create", result)

    def delete_record(self, record_id: str) -> DnsResult:
        try:
            self._request("DELETE", f"{self._records_path}/{record_id}")
            result = DnsResult.ok(record_id=record_id)
        except (httpx.HTTPError, CloudflareAPIError) as exc:
            result = DnsResult.fail(str(exc) or "Failed to delete DNS record")
        return tracked(self.registrar, "delete", result)

    def update_record(self, record_id: str, changes: RecordChanges) -> DnsResult:
        body = changes.model_dump(mode="json", exclude_none=True)
        if not body:
            return DnsResult.fail("No record fields to update")

        try:
            self._request("PUT", f"{self._records_path}/{record_id}", json=body)
            result = DnsResult.ok(record_id=record_id)
        except (httpx.HTTPError, CloudflareAPIError) as exc:
            result = DnsResult.fail(str(exc) or "Failed to update DNS record")
        return tracked(self.registrar, "update", result)

    def list_records(self, record_type: RecordType | None = None) -> DnsResult:
        records: list[DnsRecord] = []
        page = 1
        try:
            while True:
                params: dict[str, Any] = {"page": page, "per_page": PAGE_SIZE}
                if record_type is not None:
                    params["type"] = str(record_type)
                data = self._request("GET", self._records_path, params=params)
                records.extend(_to_record(raw) for raw in data.get("result") or [])

                total_pages = (data.get("result_info") or {}).get("total_pages") or 1
                if page >= total_pages:
                    break
                page += 1
            result = DnsResult.ok(records=records)
        except (httpx.HTTPError, CloudflareAPIError, KeyError, TypeError, ValueError) as exc:
            result = DnsResult.fail(str(exc) or "Failed to list DNS records")
        return tracked(self.registrar, "list", result)

    def verify_ownership(self, token: str) -> DnsResult:
        listed = self.list_records(RecordType.TXT)
        if not listed.success:
            return listed
        return find_verification(listed.records, token)


def _to_record(raw: dict[str, Any]) -> DnsRecord:
    return DnsRecord(
        id=raw["id"],
        type=raw["type"],
        name=raw["name"],
        content=raw["content"],
        ttl=raw.get("ttl"),
        priority=raw.get("priority"),
    )
