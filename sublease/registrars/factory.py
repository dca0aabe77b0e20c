"""Build registrar clients from sealed credentials and check them."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ValidationError

from sublease.errors import CredentialsFormatError, CredentialTamperError, UnsupportedRegistrarError
from sublease.models.dns import CloudflareCredentials, NamecheapCredentials, Route53Credentials
from sublease.models.listing import Registrar
from sublease.registrars.cloudflare import CloudflareClient
from sublease.registrars.namecheap import NamecheapClient
from sublease.registrars.route53 import Route53Client

if TYPE_CHECKING:
    from sublease.crypto import CredentialCodec
    from sublease.protocols import RegistrarClient

logger = structlog.get_logger()

CREDENTIAL_MODELS: dict[Registrar, type[BaseModel]] = {
    Registrar.CLOUDFLARE: CloudflareCredentials,
    Registrar.ROUTE53: Route53Credentials,
    Registrar.NAMECHEAP: NamecheapCredentials,
}


class CredentialCheck(BaseModel):
    valid: bool
    error: str | None = None


def _registrar(tag: str | Registrar) -> Registrar:
    try:
        return Registrar(tag)
    except ValueError:
        raise UnsupportedRegistrarError(tag) from None


def parse_credentials(registrar: str | Registrar, raw: dict[str, Any]) -> BaseModel:
    """Validate a credential mapping against the registrar's expected shape."""
    kind = _registrar(registrar)
    try:
        return CREDENTIAL_MODELS[kind].model_validate(raw)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise CredentialsFormatError(
            f"Invalid {kind.value} credentials: check {', '.join(fields)}"
        ) from None


def seal_credentials(
    registrar: str | Registrar, credentials: dict[str, Any], codec: CredentialCodec
) -> str:
    """Validate then seal a credential mapping for storage."""
    model = parse_credentials(registrar, credentials)
    return codec.seal(model.model_dump_json())


def create_client(
    registrar: str | Registrar,
    encrypted_credentials: str,
    codec: CredentialCodec,
    *,
    domain_name: str | None = None,
    timeout: float = 15.0,
) -> RegistrarClient:
    """Unseal credentials and return the matching registrar client.

    Raises UnsupportedRegistrarError, CredentialTamperError or
    CredentialsFormatError; never contacts the registrar.
    """
    kind = _registrar(registrar)
    plaintext = codec.unseal(encrypted_credentials)
    try:
        raw = json.loads(plaintext)
    except json.JSONDecodeError:
        raise CredentialsFormatError("Stored credentials are not valid JSON") from None
    if not isinstance(raw, dict):
        raise CredentialsFormatError("Stored credentials must be a JSON object")

    credentials = parse_credentials(kind, raw)

    if kind is Registrar.CLOUDFLARE:
        return CloudflareClient(credentials, timeout=timeout)  # type: ignore[arg-type]
    if kind is Registrar.ROUTE53:
        return Route53Client(credentials, timeout=timeout)  # type: ignore[arg-type]
    return NamecheapClient(credentials, domain_name=domain_name, timeout=timeout)  # type: ignore[arg-type]


def validate_credentials(
    registrar: str | Registrar,
    encrypted_credentials: str,
    codec: CredentialCodec,
    *,
    domain_name: str | None = None,
    timeout: float = 15.0,
) -> CredentialCheck:
    """Check credentials with a read-only listing call."""
    try:
        client = create_client(
            registrar, encrypted_credentials, codec, domain_name=domain_name, timeout=timeout
        )
        result = client.list_records()
    except (ValueError, CredentialTamperError) as exc:
        logger.warning("Credential check failed", registrar=str(registrar), error=str(exc))
        return CredentialCheck(valid=False, error=str(exc))

    if not result.success:
        return CredentialCheck(valid=False, error=result.error or "Credential check failed")
    return CredentialCheck(valid=True)
