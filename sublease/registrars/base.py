"""Helpers shared by the registrar clients."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sublease.metrics import registrar_calls_total
from sublease.models.dns import DnsResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sublease.models.dns import DnsRecord

logger = structlog.get_logger()

VERIFICATION_HOST = "_domain-verification"

VERIFICATION_MISSING = (
    f'Verification TXT record not found. Please add a TXT record with name "{VERIFICATION_HOST}" '
    "and the provided token as content."
)


def bare_name(name: str) -> str:
    """Lower-case a DNS name and drop the root dot."""
    return name.rstrip(".").lower()


def unquote_txt(value: str) -> str:
    """Strip the surrounding quotes some providers keep on TXT values."""
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def is_verification_name(name: str) -> bool:
    """True when the record's leftmost label is the verification host."""
    return bare_name(name).split(".", 1)[0] == VERIFICATION_HOST


def find_verification(records: Iterable[DnsRecord], token: str) -> DnsResult:
    """Look for a verification TXT record whose value is exactly *token*."""
    for record in records:
        if record.type != "TXT" or not is_verification_name(record.name):
            continue
        if unquote_txt(record.content) == token:
            return DnsResult.ok(record_id=record.id)
    return DnsResult.fail(VERIFICATION_MISSING)


def matches_subdomain(record_name: str, full_domain: str, subdomain: str) -> bool:
    """True when a live record name denotes *subdomain* under the listing domain.

    Accepts the exact fully-qualified name, with or without a root dot and in
    any letter case, or any name starting with ``"{subdomain}."``.
    """
    name = bare_name(record_name)
    return name == bare_name(full_domain) or name.startswith(f"{subdomain.lower()}.")


def tracked(registrar: str, operation: str, result: DnsResult) -> DnsResult:
    """Count the outcome of a registrar call and log failures."""
    outcome = "success" if result.success else "failure"
    registrar_calls_total.labels(registrar=registrar, operation=operation, outcome=outcome).inc()
    if not result.success:
        logger.warning(
            "Registrar call failed",
            registrar=registrar,
            operation=operation,
            error=result.error,
        )
    return result
