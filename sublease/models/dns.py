"""Registrar-facing models: credentials, live record snapshots, call results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sublease.models.listing import RecordType


class _Credentials(BaseModel):
    # Owners paste provider docs' camelCase keys as often as snake_case ones
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        hide_input_in_errors=True,
    )


class CloudflareCredentials(_Credentials):
    api_token: str = Field(min_length=1, repr=False)
    zone_id: str = Field(min_length=1)


class Route53Credentials(_Credentials):
    access_key_id: str = Field(min_length=1)
    secret_access_key: str = Field(min_length=1, repr=False)
    hosted_zone_id: str = Field(min_length=1)
    region: str = "us-east-1"


class NamecheapCredentials(_Credentials):
    api_key: str = Field(min_length=1, repr=False)
    api_user: str = Field(min_length=1)
    username: str = Field(min_length=1)
    client_ip: str = Field(min_length=1)


RegistrarCredentials = CloudflareCredentials | Route53Credentials | NamecheapCredentials


class DnsRecord(BaseModel):
    """Snapshot of one live record as reported by the registrar.

    ``id`` is opaque to callers; it is whatever the owning client accepts
    in ``delete_record`` / ``update_record``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    name: str
    content: str
    ttl: int | None = None
    priority: int | None = None


class DnsResult(BaseModel):
    """Outcome of a registrar call. Provider failures are values, not exceptions."""

    model_config = ConfigDict(frozen=True)

    success: bool
    error: str | None = None
    record_id: str | None = None
    records: list[DnsRecord] = Field(default_factory=list)

    @classmethod
    def ok(cls, record_id: str | None = None, records: list[DnsRecord] | None = None) -> DnsResult:
        return cls(success=True, record_id=record_id, records=records or [])

    @classmethod
    def fail(cls, error: str) -> DnsResult:
        return cls(success=False, error=error)


class RecordChanges(BaseModel):
    """Partial field set for ``update_record``; unset fields stay as they are."""

    model_config = ConfigDict(frozen=True)

    type: RecordType | None = None
    name: str | None = None
    content: str | None = None
    ttl: int | None = None
    priority: int | None = None
