"""Tests for the registrar clients.

Cloudflare and Namecheap are exercised through respx at the httpx
transport layer; Route53 through botocore's Stubber. Each client is checked
for request shape, response parsing and failure-as-value behaviour.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from urllib.parse import parse_qsl

import boto3
import httpx
import pytest
import respx
from botocore.stub import Stubber

from sublease.models.dns import (
    CloudflareCredentials,
    DnsRecord,
    NamecheapCredentials,
    RecordChanges,
    Route53Credentials,
)
from sublease.models.listing import RecordType
from sublease.registrars.base import (
    VERIFICATION_MISSING,
    find_verification,
    matches_subdomain,
    unquote_txt,
)
from sublease.registrars.cloudflare import CloudflareClient
from sublease.registrars.namecheap import (
    API_URL,
    DELETE_UNSUPPORTED,
    DOMAIN_REQUIRED,
    UPDATE_UNSUPPORTED,
    NamecheapClient,
)
from sublease.registrars.route53 import Route53Client

TOKEN = "f" * 64


# =====================================================================
# Shared helpers
# =====================================================================


class TestBaseHelpers:
    def test_unquote_txt(self):
        assert unquote_txt('"abc"') == "abc"
        assert unquote_txt("abc") == "abc"
        assert unquote_txt('"') == '"'

    def test_find_verification_matches_exact_token(self):
        records = [
            DnsRecord(id="1", type="TXT", name="_domain-verification.example.com", content=TOKEN),
        ]
        result = find_verification(records, TOKEN)
        assert result.success
        assert result.record_id == "1"

    def test_find_verification_accepts_quoted_value(self):
        records = [
            DnsRecord(
                id="1",
                type="TXT",
                name="_domain-verification.example.com.",
                content=f'"{TOKEN}"',
            ),
        ]
        assert find_verification(records, TOKEN).success

    def test_find_verification_rejects_substring(self):
        records = [
            DnsRecord(
                id="1",
                type="TXT",
                name="_domain-verification.example.com",
                content=f"prefix-{TOKEN}",
            ),
        ]
        result = find_verification(records, TOKEN)
        assert not result.success
        assert result.error == VERIFICATION_MISSING

    def test_find_verification_single_character_change(self):
        altered = TOKEN[:-1] + "0"
        records = [
            DnsRecord(id="1", type="TXT", name="_domain-verification.example.com", content=altered),
        ]
        assert not find_verification(records, TOKEN).success
        assert find_verification(records, altered).success

    def test_find_verification_ignores_other_hosts(self):
        records = [DnsRecord(id="1", type="TXT", name="other.example.com", content=TOKEN)]
        assert not find_verification(records, TOKEN).success

    def test_matches_subdomain(self):
        assert matches_subdomain("blog.example.com", "blog.example.com", "blog")
        assert matches_subdomain("blog.example.com.", "blog.example.com", "blog")
        assert matches_subdomain("blog.other.net", "blog.example.com", "blog")
        assert not matches_subdomain("blogs.example.com", "blog.example.com", "blog")

    def test_matches_subdomain_ignores_case(self):
        assert matches_subdomain("blog.example.com", "Blog.example.com", "Blog")
        assert matches_subdomain("BLOG.Example.COM.", "blog.example.com", "blog")
        assert matches_subdomain("blog.other.net", "Blog.example.com", "Blog")


# =====================================================================
# Cloudflare
# =====================================================================


CF_ZONE = "zone-123"
CF_RECORDS_URL = f"https://api.cloudflare.com/client/v4/zones/{CF_ZONE}/dns_records"


def _cf_client() -> CloudflareClient:
    return CloudflareClient(CloudflareCredentials(api_token="cf-token", zone_id=CF_ZONE))


def _cf_record(record_id: str, rtype: str, name: str, content: str) -> dict[str, object]:
    return {"id": record_id, "type": rtype, "name": name, "content": content, "ttl": 3600}


class TestCloudflareClient:
    @respx.mock
    def test_create_record_sends_body_and_token(self) -> None:
        """Create posts type/name/content/ttl and returns the new id."""
        route = respx.post(CF_RECORDS_URL).mock(
            return_value=httpx.Response(200, json={"success": True, "result": {"id": "rec-1"}})
        )

        result = _cf_client().create_record(RecordType.A, "blog.example.com", "192.0.2.1", ttl=600)

        assert result.success
        assert result.record_id == "rec-1"
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer cf-token"
        assert json.loads(request.read()) == {
            "type": "A",
            "name": "blog.example.com",
            "content": "192.0.2.1",
            "ttl": 600,
        }

    @respx.mock
    def test_create_record_default_ttl_and_priority(self) -> None:
        route = respx.post(CF_RECORDS_URL).mock(
            return_value=httpx.Response(200, json={"success": True, "result": {"id": "rec-2"}})
        )

        _cf_client().create_record(RecordType.MX, "mail.example.com", "mx.example.net", priority=5)

        body = json.loads(route.calls.last.request.read())
        assert body["ttl"] == 3600
        assert body["priority"] == 5

    @respx.mock
    def test_create_record_surfaces_first_error(self) -> None:
        respx.post(CF_RECORDS_URL).mock(
            return_value=httpx.Response(
                400,
                json={
                    "success": False,
                    "errors": [{"code": 81057, "message": "Record already exists."}],
                },
            )
        )

        result = _cf_client().create_record(RecordType.A, "blog.example.com", "192.0.2.1")

        assert not result.success
        assert result.error == "Record already exists."

    @respx.mock
    def test_create_record_transport_error_is_value(self) -> None:
        respx.post(CF_RECORDS_URL).mock(side_effect=httpx.ConnectError("boom"))

        result = _cf_client().create_record(RecordType.A, "blog.example.com", "192.0.2.1")

        assert not result.success
        assert result.error

    @respx.mock
    def test_delete_record(self) -> None:
        route = respx.delete(f"{CF_RECORDS_URL}/rec-1").mock(
            return_value=httpx.Response(200, json={"success": True, "result": {"id": "rec-1"}})
        )

        result = _cf_client().delete_record("rec-1")

        assert result.success
        assert route.called

    @respx.mock
    def test_update_record_puts_only_set_fields(self) -> None:
        route = respx.put(f"{CF_RECORDS_URL}/rec-1").mock(
            return_value=httpx.Response(200, json={"success": True, "result": {"id": "rec-1"}})
        )

        result = _cf_client().update_record("rec-1", RecordChanges(content="192.0.2.9"))

        assert result.success
        assert json.loads(route.calls.last.request.read()) == {
            "content": "192.0.2.9"
        }

    def test_update_record_without_changes_fails(self) -> None:
        result = _cf_client().update_record("rec-1", RecordChanges())
        assert not result.success

    @respx.mock
    def test_list_records_follows_pages(self) -> None:
        route = respx.get(CF_RECORDS_URL).mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "success": True,
                        "result": [_cf_record("r1", "A", "a.example.com", "192.0.2.1")],
                        "result_info": {"page": 1, "total_pages": 2},
                    },
                ),
                httpx.Response(
                    200,
                    json={
                        "success": True,
                        "result": [_cf_record("r2", "A", "b.example.com", "192.0.2.2")],
                        "result_info": {"page": 2, "total_pages": 2},
                    },
                ),
            ]
        )

        result = _cf_client().list_records(RecordType.A)

        assert result.success
        assert [r.id for r in result.records] == ["r1", "r2"]
        assert route.call_count == 2
        assert route.calls[0].request.url.params["type"] == "A"
        assert route.calls[1].request.url.params["page"] == "2"

    @respx.mock
    def test_list_records_unauthorized(self) -> None:
        respx.get(CF_RECORDS_URL).mock(
            return_value=httpx.Response(
                403,
                json={
                    "success": False,
                    "errors": [{"code": 9109, "message": "Invalid access token"}],
                },
            )
        )

        result = _cf_client().list_records()

        assert not result.success
        assert result.error == "Invalid access token"

    @respx.mock
    def test_verify_ownership(self) -> None:
        respx.get(CF_RECORDS_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "success": True,
                    "result": [
                        _cf_record("t1", "TXT", "_domain-verification.example.com", f'"{TOKEN}"')
                    ],
                    "result_info": {"page": 1, "total_pages": 1},
                },
            )
        )

        result = _cf_client().verify_ownership(TOKEN)

        assert result.success
        assert result.record_id == "t1"

    @respx.mock
    def test_verify_ownership_missing(self) -> None:
        respx.get(CF_RECORDS_URL).mock(
            return_value=httpx.Response(
                200,
                json={"success": True, "result": [], "result_info": {"total_pages": 1}},
            )
        )

        result = _cf_client().verify_ownership(TOKEN)

        assert not result.success
        assert result.error == VERIFICATION_MISSING

    @respx.mock
    def test_verify_ownership_single_character_change(self) -> None:
        respx.get(CF_RECORDS_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "success": True,
                    "result": [
                        _cf_record("t1", "TXT", "_domain-verification.example.com", TOKEN)
                    ],
                    "result_info": {"page": 1, "total_pages": 1},
                },
            )
        )

        result = _cf_client().verify_ownership(TOKEN[:-1] + "0")

        assert not result.success
        assert result.error == VERIFICATION_MISSING


# =====================================================================
# Route53
# =====================================================================

ZONE = "Z0123456789ABC"
SUBMITTED = datetime(2026, 1, 1, tzinfo=UTC)


def _change_response() -> dict[str, object]:
    return {"ChangeInfo": {"Id": "/change/C1", "Status": "PENDING", "SubmittedAt": SUBMITTED}}


@pytest.fixture()
def route53():
    boto_client = boto3.client(
        "route53",
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="secret",
        region_name="us-east-1",
    )
    credentials = Route53Credentials(
        access_key_id="AKIDEXAMPLE", secret_access_key="secret", hosted_zone_id=ZONE
    )
    with Stubber(boto_client) as stubber:
        yield Route53Client(credentials, client=boto_client), stubber
        stubber.assert_no_pending_responses()


class TestRoute53Client:
    def test_create_record(self, route53) -> None:
        client, stubber = route53
        stubber.add_response(
            "change_resource_record_sets",
            _change_response(),
            {
                "HostedZoneId": ZONE,
                "ChangeBatch": {
                    "Changes": [
                        {
                            "Action": "CREATE",
                            "ResourceRecordSet": {
                                "Name": "blog.example.com",
                                "Type": "A",
                                "TTL": 3600,
                                "ResourceRecords": [{"Value": "192.0.2.1"}],
                            },
                        }
                    ]
                },
            },
        )

        result = client.create_record(RecordType.A, "blog.example.com", "192.0.2.1", ttl=3600)

        assert result.success
        assert result.record_id == "blog.example.com:A"

    def test_create_txt_and_mx_values_are_formatted(self, route53) -> None:
        client, stubber = route53
        for name, rtype, value in (
            ("txt.example.com", "TXT", '"hello"'),
            ("mail.example.com", "MX", "10 mx.example.net"),
        ):
            stubber.add_response(
                "change_resource_record_sets",
                _change_response(),
                {
                    "HostedZoneId": ZONE,
                    "ChangeBatch": {
                        "Changes": [
                            {
                                "Action": "CREATE",
                                "ResourceRecordSet": {
                                    "Name": name,
                                    "Type": rtype,
                                    "TTL": 300,
                                    "ResourceRecords": [{"Value": value}],
                                },
                            }
                        ]
                    },
                },
            )

        assert client.create_record(RecordType.TXT, "txt.example.com", "hello").success
        assert client.create_record(RecordType.MX, "mail.example.com", "mx.example.net").success

    def test_create_record_client_error_is_value(self, route53) -> None:
        client, stubber = route53
        stubber.add_client_error(
            "change_resource_record_sets",
            service_error_code="InvalidChangeBatch",
            service_message="Tried to create resource record set but it already exists",
            http_status_code=400,
        )

        result = client.create_record(RecordType.A, "blog.example.com", "192.0.2.1")

        assert not result.success
        assert "already exists" in result.error

    def test_delete_record_fetches_current_set(self, route53) -> None:
        client, stubber = route53
        current = {
            "Name": "blog.example.com.",
            "Type": "A",
            "TTL": 3600,
            "ResourceRecords": [{"Value": "192.0.2.1"}],
        }
        stubber.add_response(
            "list_resource_record_sets",
            {"ResourceRecordSets": [current], "IsTruncated": False, "MaxItems": "1"},
            {
                "HostedZoneId": ZONE,
                "StartRecordName": "blog.example.com",
                "StartRecordType": "A",
                "MaxItems": "1",
            },
        )
        stubber.add_response(
            "change_resource_record_sets",
            _change_response(),
            {
                "HostedZoneId": ZONE,
                "ChangeBatch": {"Changes": [{"Action": "DELETE", "ResourceRecordSet": current}]},
            },
        )

        result = client.delete_record("blog.example.com:A")

        assert result.success
        assert result.record_id == "blog.example.com:A"

    def test_delete_record_neighbour_is_not_found(self, route53) -> None:
        client, stubber = route53
        stubber.add_response(
            "list_resource_record_sets",
            {
                "ResourceRecordSets": [
                    {
                        "Name": "cdn.example.com.",
                        "Type": "A",
                        "TTL": 300,
                        "ResourceRecords": [{"Value": "192.0.2.7"}],
                    }
                ],
                "IsTruncated": False,
                "MaxItems": "1",
            },
            {
                "HostedZoneId": ZONE,
                "StartRecordName": "blog.example.com",
                "StartRecordType": "A",
                "MaxItems": "1",
            },
        )

        result = client.delete_record("blog.example.com:A")

        assert not result.success
        assert result.error == "Record not found"

    def test_delete_record_invalid_id(self, route53) -> None:
        client, _ = route53
        assert not client.delete_record("no-separator").success

    def test_update_is_delete_then_create(self, route53) -> None:
        client, stubber = route53
        current = {
            "Name": "blog.example.com.",
            "Type": "A",
            "TTL": 600,
            "ResourceRecords": [{"Value": "192.0.2.1"}],
        }
        stubber.add_response(
            "list_resource_record_sets",
            {"ResourceRecordSets": [current], "IsTruncated": False, "MaxItems": "1"},
            {
                "HostedZoneId": ZONE,
                "StartRecordName": "blog.example.com",
                "StartRecordType": "A",
                "MaxItems": "1",
            },
        )
        stubber.add_response(
            "change_resource_record_sets",
            _change_response(),
            {
                "HostedZoneId": ZONE,
                "ChangeBatch": {"Changes": [{"Action": "DELETE", "ResourceRecordSet": current}]},
            },
        )
        stubber.add_response(
            "change_resource_record_sets",
            _change_response(),
            {
                "HostedZoneId": ZONE,
                "ChangeBatch": {
                    "Changes": [
                        {
                            "Action": "CREATE",
                            "ResourceRecordSet": {
                                "Name": "blog.example.com",
                                "Type": "A",
                                "TTL": 600,
                                "ResourceRecords": [{"Value": "192.0.2.9"}],
                            },
                        }
                    ]
                },
            },
        )

        result = client.update_record("blog.example.com:A", RecordChanges(content="192.0.2.9"))

        assert result.success

    def test_list_records_filters_and_parses(self, route53) -> None:
        client, stubber = route53
        stubber.add_response(
            "list_resource_record_sets",
            {
                "ResourceRecordSets": [
                    {
                        "Name": "example.com.",
                        "Type": "NS",
                        "TTL": 172800,
                        "ResourceRecords": [{"Value": "ns-1.awsdns-00.com."}],
                    },
                    {
                        "Name": "_domain-verification.example.com.",
                        "Type": "TXT",
                        "TTL": 300,
                        "ResourceRecords": [{"Value": f'"{TOKEN}"'}],
                    },
                ],
                "IsTruncated": False,
                "MaxItems": "100",
            },
            {"HostedZoneId": ZONE},
        )

        result = client.list_records(RecordType.TXT)

        assert result.success
        assert len(result.records) == 1
        record = result.records[0]
        assert record.content == TOKEN
        assert record.id == "_domain-verification.example.com:TXT"

    def test_verify_ownership(self, route53) -> None:
        client, stubber = route53
        stubber.add_response(
            "list_resource_record_sets",
            {
                "ResourceRecordSets": [
                    {
                        "Name": "_domain-verification.example.com.",
                        "Type": "TXT",
                        "TTL": 300,
                        "ResourceRecords": [{"Value": f'"{TOKEN}"'}],
                    },
                ],
                "IsTruncated": False,
                "MaxItems": "100",
            },
            {"HostedZoneId": ZONE},
        )

        assert client.verify_ownership(TOKEN).success

    def test_list_records_access_denied(self, route53) -> None:
        client, stubber = route53
        stubber.add_client_error(
            "list_resource_record_sets",
            service_error_code="AccessDenied",
            service_message="User is not authorized",
            http_status_code=403,
        )

        result = client.list_records()

        assert not result.success
        assert result.error == "User is not authorized"


# =====================================================================
# Namecheap
# =====================================================================

NC_NS = "http://api.namecheap.com/xml.response"


def _nc_client(domain_name: str | None = "example.com") -> NamecheapClient:
    return NamecheapClient(
        NamecheapCredentials(
            api_key="nc-key", api_user="nc-user", username="nc-user", client_ip="198.51.100.1"
        ),
        domain_name=domain_name,
    )


def _nc_hosts_xml(*hosts: str) -> str:
    return (
        f'<?xml version="1.0" encoding="utf-8"?>'
        f'<ApiResponse Status="OK" xmlns="{NC_NS}">'
        f"<Errors />"
        f'<CommandResponse Type="namecheap.domains.dns.getHosts">'
        f'<DomainDNSGetHostsResult Domain="example.com" IsUsingOurDNS="true">'
        f"{''.join(hosts)}"
        f"</DomainDNSGetHostsResult>"
        f"</CommandResponse>"
        f"</ApiResponse>"
    )


def _nc_set_hosts_xml(success: str = "true") -> str:
    return (
        f'<?xml version="1.0" encoding="utf-8"?>'
        f'<ApiResponse Status="OK" xmlns="{NC_NS}">'
        f"<Errors />"
        f'<CommandResponse Type="namecheap.domains.dns.setHosts">'
        f'<DomainDNSSetHostsResult Domain="example.com" IsSuccess="{success}" />'
        f"</CommandResponse>"
        f"</ApiResponse>"
    )


def _form(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode()))


def _nc_error_xml(message: str) -> str:
    return (
        f'<?xml version="1.0" encoding="utf-8"?>'
        f'<ApiResponse Status="ERROR" xmlns="{NC_NS}">'
        f'<Errors><Error Number="1011102">{message}</Error></Errors>'
        f"</ApiResponse>"
    )


WWW_HOST = (
    '<host HostId="1" Name="www" Type="CNAME" Address="example.com." MXPref="10" TTL="1800" />'
)
TXT_HOST = (
    f'<host HostId="2" Name="_domain-verification" Type="TXT" Address="{TOKEN}" '
    f'MXPref="10" TTL="1800" />'
)
MX_HOST = '<host HostId="3" Name="@" Type="MX" Address="mx.example.net." MXPref="20" TTL="1800" />'


class TestNamecheapClient:
    @respx.mock
    def test_create_record_rewrites_full_host_list(self) -> None:
        """Create reads the zone, appends the host and posts everything back."""
        get_route = respx.get(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_hosts_xml(WWW_HOST))
        )
        set_route = respx.post(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_set_hosts_xml())
        )

        result = _nc_client().create_record(RecordType.A, "blog.example.com", "192.0.2.1", ttl=600)

        assert result.success
        assert result.record_id == "blog:A"
        get_params = get_route.calls.last.request.url.params
        assert get_params["Command"] == "namecheap.domains.dns.getHosts"
        assert get_params["SLD"] == "example"
        assert get_params["TLD"] == "com"
        set_request = set_route.calls.last.request
        assert "HostName1" not in set_request.url.params
        set_params = _form(set_request)
        assert set_params["Command"] == "namecheap.domains.dns.setHosts"
        assert set_params["ApiKey"] == "nc-key"
        assert set_params["HostName1"] == "www"
        assert set_params["RecordType1"] == "CNAME"
        assert set_params["HostName2"] == "blog"
        assert set_params["Address2"] == "192.0.2.1"
        assert set_params["TTL2"] == "600"
        assert "EmailType" not in set_params

    @respx.mock
    def test_create_record_keeps_mx_preferences(self) -> None:
        respx.get(API_URL).mock(return_value=httpx.Response(200, text=_nc_hosts_xml(MX_HOST)))
        set_route = respx.post(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_set_hosts_xml())
        )

        assert _nc_client().create_record(RecordType.A, "example.com", "192.0.2.1").success

        set_params = _form(set_route.calls.last.request)
        assert set_params["MXPref1"] == "20"
        assert set_params["EmailType"] == "MX"
        assert set_params["HostName2"] == "@"

    @respx.mock
    def test_create_record_unconfirmed(self) -> None:
        respx.get(API_URL).mock(return_value=httpx.Response(200, text=_nc_hosts_xml()))
        respx.post(API_URL).mock(return_value=httpx.Response(200, text=_nc_set_hosts_xml("false")))

        result = _nc_client().create_record(RecordType.A, "blog.example.com", "192.0.2.1")

        assert not result.success

    @respx.mock
    def test_error_status_surfaces_first_error(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_error_xml("API Key is invalid"))
        )

        result = _nc_client().list_records()

        assert not result.success
        assert result.error == "API Key is invalid"

    @respx.mock
    def test_list_records_maps_hosts(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_hosts_xml(WWW_HOST, TXT_HOST, MX_HOST))
        )

        result = _nc_client().list_records()

        assert result.success
        by_id = {r.id: r for r in result.records}
        assert by_id["www:CNAME"].name == "www.example.com"
        assert by_id["www:CNAME"].priority is None
        assert by_id["@:MX"].name == "example.com"
        assert by_id["@:MX"].priority == 20
        assert by_id["_domain-verification:TXT"].ttl == 1800

    @respx.mock
    def test_list_records_filters_by_type(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_hosts_xml(WWW_HOST, TXT_HOST))
        )

        result = _nc_client().list_records(RecordType.TXT)

        assert [r.type for r in result.records] == ["TXT"]

    @respx.mock
    def test_verify_ownership(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(200, text=_nc_hosts_xml(WWW_HOST, TXT_HOST))
        )

        assert _nc_client().verify_ownership(TOKEN).success

    def test_list_requires_domain(self) -> None:
        result = _nc_client(domain_name=None).list_records()
        assert not result.success
        assert result.error == DOMAIN_REQUIRED

    def test_delete_and_update_are_unsupported(self) -> None:
        client = _nc_client()
        delete = client.delete_record("blog:A")
        update = client.update_record("blog:A", RecordChanges(content="192.0.2.2"))
        assert not delete.success
        assert delete.error == DELETE_UNSUPPORTED
        assert not update.success
        assert update.error == UPDATE_UNSUPPORTED

    @respx.mock
    def test_http_error_is_value(self) -> None:
        respx.get(API_URL).mock(return_value=httpx.Response(502, text="Bad Gateway"))

        result = _nc_client().list_records()

        assert not result.success
