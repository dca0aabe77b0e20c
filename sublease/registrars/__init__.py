from sublease.registrars.cloudflare import CloudflareClient
from sublease.registrars.factory import (
    CredentialCheck,
    create_client,
    parse_credentials,
    seal_credentials,
    validate_credentials,
)
from sublease.registrars.namecheap import NamecheapClient
from sublease.registrars.route53 import Route53Client

__all__ = [
    "CloudflareClient",
    "CredentialCheck",
    "NamecheapClient",
    "Route53Client",
    "create_client",
    "parse_credentials",
    "seal_credentials",
    "validate_credentials",
]
