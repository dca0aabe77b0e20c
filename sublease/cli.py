"""Click CLI entry point for Sublease operators."""

from __future__ import annotations

import secrets
import sys

import click

from sublease.availability import AvailabilityResolver
from sublease.config import Settings
from sublease.crypto import MIN_KEY_BYTES, CredentialCodec
from sublease.db import Database
from sublease.errors import ConfigurationError, CredentialTamperError, NotFoundError
from sublease.logging import configure_logging
from sublease.models.listing import ListingStatus, RecordType
from sublease.registrars.factory import create_client
from sublease.verification import DomainVerifier


def _get_db(settings: Settings) -> Database:
    settings.ensure_data_dir()
    db = Database(settings.db_path)
    db.init_schema()
    return db


def _get_codec(settings: Settings) -> CredentialCodec:
    try:
        return CredentialCodec(settings.encryption_key)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}. Set ENCRYPTION_KEY (try `sublease generate-key`).", err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Sublease: subdomain rental DNS and lifecycle operations."""
    ctx.ensure_object(dict)
    settings = Settings()
    log_level = "DEBUG" if verbose else settings.log_level
    configure_logging(log_level=log_level, log_format=settings.log_format)
    ctx.obj["settings"] = settings


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database schema."""
    settings = ctx.obj["settings"]
    db = _get_db(settings)
    db.close()
    click.echo(f"Database ready at {settings.db_path}")


@cli.command("generate-key")
def generate_key() -> None:
    """Print a fresh credential encryption key."""
    click.echo(secrets.token_hex(MIN_KEY_BYTES))


@cli.command("listings")
@click.option("--status", type=str, default=None, help="Filter by status")
@click.pass_context
def list_listings(ctx: click.Context, status: str | None) -> None:
    """List domain listings."""
    settings = ctx.obj["settings"]
    db = _get_db(settings)
    try:
        listings = db.list_listings(ListingStatus(status) if status else None)
        if not listings:
            click.echo("No listings found.")
            return
        counts = db.active_rental_counts()
        for listing in listings:
            verified = "verified" if listing.is_verified else "unverified"
            click.echo(
                f"  [{listing.id}] {listing.domain_name:30s} {listing.registrar.value:10s} "
                f"{listing.status.value:9s} {verified:10s} "
                f"{counts[listing.id]}/{listing.max_subdomains} rented"
            )
    finally:
        db.close()


@cli.command()
@click.argument("listing_id", type=int)
@click.pass_context
def verify(ctx: click.Context, listing_id: int) -> None:
    """Check a listing's ownership TXT record."""
    settings = ctx.obj["settings"]
    codec = _get_codec(settings)
    db = _get_db(settings)
    try:
        verifier = DomainVerifier(db, codec, timeout=settings.registrar_timeout_seconds)
        try:
            outcome = verifier.verify(listing_id)
        except (NotFoundError, ValueError, CredentialTamperError) as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

        click.echo(outcome.message)
        if not outcome.success:
            instructions = outcome.instructions
            click.echo(f"  {outcome.error}")
            if instructions is not None:
                click.echo(f"  Record: {instructions.record_type} {instructions.fqdn}")
                click.echo(f"  Value:  {instructions.value}")
                click.echo(f"  {instructions.note}")
            sys.exit(1)
    finally:
        db.close()


@cli.command()
@click.argument("listing_id", type=int)
@click.argument("label")
@click.pass_context
def check(ctx: click.Context, listing_id: int, label: str) -> None:
    """Check whether LABEL can be rented on a listing."""
    settings = ctx.obj["settings"]
    codec = _get_codec(settings)
    db = _get_db(settings)
    try:
        resolver = AvailabilityResolver(db, codec, timeout=settings.registrar_timeout_seconds)
        try:
            result = resolver.check(listing_id, label)
        except NotFoundError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

        if result.available:
            click.echo(
                f"{result.full_domain} is available "
                f"({result.price} {result.pricing_period.value})"
            )
        else:
            click.echo(f"Unavailable: {result.reason}")
    finally:
        db.close()


@cli.command()
@click.argument("listing_id", type=int)
@click.option("--type", "record_type", type=str, default=None, help="Only this record kind")
@click.pass_context
def records(ctx: click.Context, listing_id: int, record_type: str | None) -> None:
    """Show the live DNS records of a listing's zone."""
    settings = ctx.obj["settings"]
    codec = _get_codec(settings)
    db = _get_db(settings)
    try:
        listing = db.get_listing(listing_id)
        if listing is None:
            click.echo(f"Listing {listing_id} not found.", err=True)
            sys.exit(1)

        try:
            client = create_client(
                listing.registrar,
                listing.credentials_encrypted,
                codec,
                domain_name=listing.domain_name,
                timeout=settings.registrar_timeout_seconds,
            )
            kind = RecordType(record_type) if record_type else None
        except (ValueError, CredentialTamperError) as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

        result = client.list_records(kind)
        if not result.success:
            click.echo(f"Registrar error: {result.error}", err=True)
            sys.exit(1)
        if not result.records:
            click.echo("No records found.")
            return
        for record in result.records:
            click.echo(f"  {record.type:6s} {record.name:40s} {record.content}  (id {record.id})")
    finally:
        db.close()


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = ctx.obj["settings"]
    uvicorn.run(
        "sublease.api.app:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
    )
