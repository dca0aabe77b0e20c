"""AWS Route53 client (SigV4-signed REST via boto3).

Route53 has no record ids: record sets are addressed by (name, type), so
the id handed to callers is the synthetic ``"{name}:{type}"``. Deleting
requires the exact current record set, which is fetched first; updating
is emulated as delete followed by create.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from sublease.models.dns import DnsRecord, DnsResult
from sublease.models.listing import RecordType, Registrar
from sublease.registrars.base import bare_name, find_verification, tracked, unquote_txt

if TYPE_CHECKING:
    from sublease.models.dns import RecordChanges, Route53Credentials

logger = structlog.get_logger()

DEFAULT_TTL = 300
DEFAULT_MX_PRIORITY = 10

_AWS_ERRORS = (BotoCoreError, ClientError)


class RecordSetNotFoundError(Exception):
    """No record set with the requested name and type exists in the zone."""


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Message") or str(exc)
    return str(exc)


def _format_value(record_type: str, content: str, priority: int | None) -> str:
    if record_type == RecordType.TXT:
        return f'"{unquote_txt(content)}"'
    if record_type == RecordType.MX:
        return f"{priority if priority is not None else DEFAULT_MX_PRIORITY} {content}"
    return content


def _parse_value(record_type: str, value: str) -> tuple[str, int | None]:
    """Inverse of _format_value: (content, priority)."""
    if record_type == RecordType.TXT:
        return unquote_txt(value), None
    if record_type == RecordType.MX:
        pref, _, host = value.partition(" ")
        if pref.isdigit() and host:
            return host, int(pref)
    return value, None


class Route53Client:
    """Signed-REST implementation of the registrar contract."""

    registrar = Registrar.ROUTE53.value

    def __init__(
        self,
        credentials: Route53Credentials,
        timeout: float = 15.0,
        client: Any | None = None,
    ) -> None:
        self.credentials = credentials
        self.hosted_zone_id = credentials.hosted_zone_id
        self.timeout = timeout
        self._client = client

    def _route53(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "route53",
                aws_access_key_id=self.credentials.access_key_id,
                aws_secret_access_key=self.credentials.secret_access_key,
                region_name=self.credentials.region,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"mode": "standard", "total_max_attempts": 1},
                ),
            )
        return self._client

    def _change(self, action: str, record_set: dict[str, Any]) -> None:
        self._route53().change_resource_record_sets(
            HostedZoneId=self.hosted_zone_id,
            ChangeBatch={"Changes": [{"Action": action, "ResourceRecordSet": record_set}]},
        )

    def _find_record_set(self, name: str, record_type: str) -> dict[str, Any]:
        resp = self._route53().list_resource_record_sets(
            HostedZoneId=self.hosted_zone_id,
            StartRecordName=name,
            StartRecordType=record_type,
            MaxItems="1",
        )
        sets = resp.get("ResourceRecordSets") or []
        # Listing starts at the given name; the first set may be a neighbour
        if (
            not sets
            or bare_name(sets[0]["Name"]) != bare_name(name)
            or sets[0]["Type"] != record_type
        ):
            raise RecordSetNotFoundError("Record not found")
        return sets[0]

    def create_record(
        self,
        record_type: RecordType,
        name: str,
        content: str,
        ttl: int | None = None,
        priority: int | None = None,
    ) -> DnsResult:
        rtype = str(record_type)
        record_set = {
            "Name": name,
            "Type": rtype,
            "TTL": ttl or DEFAULT_TTL,
            "ResourceRecords": [{"Value": _format_value(rtype, content, priority)}],
        }
        try:
            self._change("CREATE", record_set)
            result = DnsResult.ok(record_id=f"{bare_name(name)}:{rtype}")
        except _AWS_ERRORS as exc:
            result = DnsResult.fail(_error_message(exc))
        return tracked(self.registrar, "create", result)

    def delete_record(self, record_id: str) -> DnsResult:
        name, _, rtype = record_id.rpartition(":")
        if not name or not rtype:
            return tracked(self.registrar, "delete", DnsResult.fail(f"Invalid record id: {record_id}"))

        try:
            record_set = self._find_record_set(name, rtype)
            self._change("DELETE", record_set)
            result = DnsResult.ok(record_id=record_id)
        except RecordSetNotFoundError as exc:
            result = DnsResult.fail(str(exc))
        except _AWS_ERRORS as exc:
            result = DnsResult.fail(_error_message(exc))
        return tracked(self.registrar, "delete", result)

    def update_record(self, record_id: str, changes: RecordChanges) -> DnsResult:
        name, _, rtype = record_id.rpartition(":")
        if not name or not rtype:
            return tracked(self.registrar, "update", DnsResult.fail(f"Invalid record id: {record_id}"))

        try:
            current = self._find_record_set(name, rtype)
            self._change("DELETE", current)
        except RecordSetNotFoundError as exc:
            return tracked(self.registrar, "update", DnsResult.fail(str(exc)))
        except _AWS_ERRORS as exc:
            return tracked(self.registrar, "update", DnsResult.fail(_error_message(exc)))

        values = current.get("ResourceRecords") or [{"Value": ""}]
        old_content, old_priority = _parse_value(rtype, values[0]["Value"])

        created = self.create_record(
            changes.type or rtype,
            changes.name or name,
            changes.content if changes.content is not None else old_content,
            ttl=changes.ttl or current.get("TTL"),
            priority=changes.priority if changes.priority is not None else old_priority,
        )
        if not created.success:
            logger.error(
                "Route53 update left record deleted",
                record_id=record_id,
                error=created.error,
            )
            return DnsResult.fail(f"Record deleted but re-create failed: {created.error}")
        return created

    def list_records(self, record_type: RecordType | None = None) -> DnsResult:
        try:
            paginator = self._route53().get_paginator("list_resource_record_sets")
            sets: list[dict[str, Any]] = []
            for page in paginator.paginate(HostedZoneId=self.hosted_zone_id):
                sets.extend(page.get("ResourceRecordSets") or [])
        except _AWS_ERRORS as exc:
            return tracked(self.registrar, "list", DnsResult.fail(_error_message(exc)))

        if record_type is not None:
            sets = [s for s in sets if s["Type"] == str(record_type)]

        records = [record for s in sets for record in _to_records(s)]
        return tracked(self.registrar, "list", DnsResult.ok(records=records))

    def verify_ownership(self, token: str) -> DnsResult:
        listed = self.list_records(RecordType.TXT)
        if not listed.success:
            return listed
        return find_verification(listed.records, token)


def _to_records(record_set: dict[str, Any]) -> list[DnsRecord]:
    """One snapshot per value; all share the set's synthetic id."""
    name = record_set["Name"]
    rtype = record_set["Type"]
    record_id = f"{bare_name(name)}:{rtype}"
    ttl = record_set.get("TTL")

    alias = record_set.get("AliasTarget")
    if alias:
        return [DnsRecord(id=record_id, type=rtype, name=name, content=alias["DNSName"], ttl=ttl)]

    records = []
    for value in record_set.get("ResourceRecords") or []:
        content, priority = _parse_value(rtype, value["Value"])
        records.append(
            DnsRecord(
                id=record_id,
                type=rtype,
                name=name,
                content=content,
                ttl=ttl,
                priority=priority,
            )
        )
    return records
