"""Namecheap DNS client (XML query API).

Namecheap addresses hosts by second-level + top-level domain and only
offers a whole-zone ``setHosts`` write. Creating a record is therefore a
read-modify-write of the full host list. Deleting or updating a single
host is not offered for this registrar and returns an explicit failure.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

import httpx
import structlog
from typing_extensions import TypedDict

from sublease.models.dns import DnsRecord, DnsResult
from sublease.models.listing import RecordType, Registrar
from sublease.registrars.base import bare_name, find_verification, tracked

if TYPE_CHECKING:
    from sublease.models.dns import NamecheapCredentials, RecordChanges

logger = structlog.get_logger()

API_URL = "https://api.namecheap.com/xml.response"
DEFAULT_TTL = 1800
DEFAULT_MX_PRIORITY = 10

DOMAIN_REQUIRED = (
    "Namecheap requests need the listing's domain name to address the zone. "
    "Please pass domain information."
)
DELETE_UNSUPPORTED = (
    "Namecheap DNS deletion requires re-setting the full host list without the target; "
    "not supported for this registrar. Remove the record from the Namecheap dashboard."
)
UPDATE_UNSUPPORTED = (
    "Namecheap DNS updates require re-setting the full host list with modifications; "
    "not supported for this registrar. Edit the record from the Namecheap dashboard."
)


class NamecheapAPIError(Exception):
    """Namecheap answered ``Status="ERROR"`` or an unusable document."""


class NamecheapHost(TypedDict, total=False):
    Name: str
    Type: str
    Address: str
    TTL: str
    MXPref: str


def _parse_host(el: ET.Element) -> NamecheapHost:
    """Keep the attributes setHosts accepts back; ids and flags are dropped."""
    attrib = el.attrib
    host = NamecheapHost(
        Name=attrib["Name"],
        Type=attrib["Type"],
        Address=attrib.get("Address", ""),
        TTL=attrib.get("TTL", ""),
    )
    if attrib.get("MXPref"):
        host["MXPref"] = attrib["MXPref"]
    return host


def _namespace(root: ET.Element) -> str:
    # xmlns="http://api.namecheap.com/xml.response"
    if root.tag.startswith("{"):
        return root.tag.split("}")[0] + "}"
    return ""


def parse_response(xml_text: str) -> tuple[ET.Element, str]:
    """Return the ``CommandResponse`` element and the document namespace.

    Raises NamecheapAPIError carrying the first ``<Error>`` text on failure.
    """
    root = ET.fromstring(xml_text)
    ns = _namespace(root)

    if root.attrib.get("Status", "").upper() != "OK":
        error = root.find(f"{ns}Errors/{ns}Error")
        text = (error.text or "").strip() if error is not None else ""
        raise NamecheapAPIError(text or "Namecheap API request failed")

    command = root.find(f"{ns}CommandResponse")
    if command is None:
        raise NamecheapAPIError("Namecheap response has no CommandResponse")
    return command, ns


class NamecheapClient:
    """Query-API implementation of the registrar contract."""

    registrar = Registrar.NAMECHEAP.value

    def __init__(
        self,
        credentials: NamecheapCredentials,
        domain_name: str | None = None,
        timeout: float = 15.0,
        api_url: str = API_URL,
    ) -> None:
        self.credentials = credentials
        self.domain_name = bare_name(domain_name) if domain_name else None
        self.timeout = timeout
        self.api_url = api_url

    def _request(
        self, command: str, *, post: bool = False, **params: str
    ) -> tuple[ET.Element, str]:
        query = {
            "ApiUser": self.credentials.api_user,
            "ApiKey": self.credentials.api_key,
            "UserName": self.credentials.username,
            "ClientIp": self.credentials.client_ip,
            "Command": command,
            **params,
        }
        logger.debug("Namecheap request", command=command)
        with httpx.Client(timeout=self.timeout) as client:
            if post:
                # Form body; a full host list can exceed URL length limits
                resp = client.post(self.api_url, data=query)
            else:
                resp = client.get(self.api_url, params=query)
            resp.raise_for_status()
        return parse_response(resp.text)

    def _zone_parts(self) -> tuple[str, str]:
        """(SLD, TLD) of the listing domain; "example.co.uk" -> ("example", "co.uk")."""
        if not self.domain_name:
            raise NamecheapAPIError(DOMAIN_REQUIRED)
        sld, _, tld = self.domain_name.partition(".")
        if not tld:
            raise NamecheapAPIError(f"Cannot split domain {self.domain_name} into SLD and TLD")
        return sld, tld

    def _split_name(self, name: str) -> tuple[str, str, str]:
        """Decompose a record name into (SLD, TLD, host)."""
        fqdn = bare_name(name)
        if self.domain_name:
            sld, tld = self._zone_parts()
            if fqdn == self.domain_name:
                return sld, tld, "@"
            suffix = f".{self.domain_name}"
            if not fqdn.endswith(suffix):
                raise NamecheapAPIError(f"{name} is not within {self.domain_name}")
            return sld, tld, fqdn[: -len(suffix)]

        parts = fqdn.split(".")
        if len(parts) < 2:
            raise NamecheapAPIError(f"Cannot split {name} into SLD and TLD")
        return parts[-2], parts[-1], ".".join(parts[:-2]) or "@"

    def _get_hosts(self, sld: str, tld: str) -> list[NamecheapHost]:
        command, ns = self._request("namecheap.domains.dns.getHosts", SLD=sld, TLD=tld)
        result = command.find(f"{ns}DomainDNSGetHostsResult")
        if result is None:
            raise NamecheapAPIError("Namecheap getHosts response has no host list")
        return [_parse_host(el) for el in result if el.tag.lower().endswith("host")]

    def create_record(
        self,
        record_type: RecordType,
        name: str,
        content: str,
        ttl: int | None = None,
        priority: int | None = None,
    ) -> DnsResult:
        rtype = str(record_type)
        try:
            sld, tld, host = self._split_name(name)
            hosts = self._get_hosts(sld, tld)

            new_host = NamecheapHost(
                Name=host,
                Type=rtype,
                Address=content,
                TTL=str(ttl or DEFAULT_TTL),
            )
            if rtype == RecordType.MX:
                new_host["MXPref"] = str(priority if priority is not None else DEFAULT_MX_PRIORITY)
            hosts.append(new_host)

            command, ns = self._request(
                "namecheap.domains.dns.setHosts",
                post=True,
                SLD=sld,
                TLD=tld,
                **_host_params(hosts),
            )
            outcome = command.find(f"{ns}DomainDNSSetHostsResult")
            if outcome is None or outcome.attrib.get("IsSuccess", "").lower() != "true":
                raise NamecheapAPIError("Namecheap did not confirm the host list update")
            result = DnsResult.ok(record_id=f"{host}:{rtype}")
        except (httpx.HTTPError, ET.ParseError, NamecheapAPIError, KeyError) as exc:
            result = DnsResult.fail(str(exc) or "Failed to create DNS record")
        return tracked(self.registrar, "create", result)

    def delete_record(self, record_id: str) -> DnsResult:
        return tracked(self.registrar, "delete", DnsResult.fail(DELETE_UNSUPPORTED))

    def update_record(self, record_id: str, changes: RecordChanges) -> DnsResult:
        return tracked(self.registrar, "update", DnsResult.fail(UPDATE_UNSUPPORTED))

    def list_records(self, record_type: RecordType | None = None) -> DnsResult:
        try:
            sld, tld = self._zone_parts()
            hosts = self._get_hosts(sld, tld)
            records = [self._to_record(h) for h in hosts]
        except (httpx.HTTPError, ET.ParseError, NamecheapAPIError, KeyError, ValueError) as exc:
            return tracked(self.registrar, "list", DnsResult.fail(str(exc)))

        if record_type is not None:
            records = [r for r in records if r.type == str(record_type)]
        return tracked(self.registrar, "list", DnsResult.ok(records=records))

    def verify_ownership(self, token: str) -> DnsResult:
        listed = self.list_records(RecordType.TXT)
        if not listed.success:
            return listed
        return find_verification(listed.records, token)

    def _to_record(self, host: NamecheapHost) -> DnsRecord:
        label = host["Name"]
        fqdn = self.domain_name if label == "@" else f"{label}.{self.domain_name}"
        rtype = host["Type"]
        priority = host.get("MXPref") if rtype == RecordType.MX else None
        return DnsRecord(
            id=f"{label}:{rtype}",
            type=rtype,
            name=fqdn,
            content=host.get("Address", ""),
            ttl=int(host["TTL"]) if host.get("TTL") else None,
            priority=int(priority) if priority else None,
        )


def _host_params(hosts: list[NamecheapHost]) -> dict[str, str]:
    """Flatten hosts into setHosts' numbered HostNameN/RecordTypeN/... params."""
    params: dict[str, str] = {}
    for i, host in enumerate(hosts, start=1):
        params[f"HostName{i}"] = host["Name"]
        params[f"RecordType{i}"] = host["Type"]
        params[f"Address{i}"] = host["Address"]
        params[f"TTL{i}"] = str(host.get("TTL") or DEFAULT_TTL)
        if host["Type"] == RecordType.MX:
            params[f"MXPref{i}"] = str(host.get("MXPref") or DEFAULT_MX_PRIORITY)
    if any(h["Type"] == RecordType.MX for h in hosts):
        params["EmailType"] = "MX"
    return params
