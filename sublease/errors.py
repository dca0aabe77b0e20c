"""Exception hierarchy shared by services, the API layer and the CLI.

Business rejections (subdomain unavailable, verification not yet visible)
are returned as result values, not raised. The classes here cover malformed
input, missing entities, conflicting state and fatal credential problems.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Process configuration is unusable (e.g. encryption key too short)."""


class CredentialTamperError(Exception):
    """A sealed credential blob failed to parse or authenticate."""


# --- 404 ---


class NotFoundError(LookupError):
    """Requested entity does not exist."""


class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: int) -> None:
        super().__init__(f"Listing {listing_id} not found")
        self.listing_id = listing_id


class RentalNotFoundError(NotFoundError):
    def __init__(self, rental_id: int) -> None:
        super().__init__(f"Rental {rental_id} not found")
        self.rental_id = rental_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


# --- 409 ---


class ConflictError(Exception):
    """Operation conflicts with the current state of an entity."""


class DomainAlreadyListedError(ConflictError):
    def __init__(self, domain_name: str) -> None:
        super().__init__(f"Domain {domain_name} is already listed")
        self.domain_name = domain_name


class SubdomainTakenError(ConflictError):
    """An active rental already holds this (listing, subdomain) pair."""

    def __init__(self, listing_id: int, subdomain: str) -> None:
        super().__init__(f"Subdomain '{subdomain}' is already rented on listing {listing_id}")
        self.listing_id = listing_id
        self.subdomain = subdomain


class ListingHasActiveRentalsError(ConflictError):
    def __init__(self, listing_id: int) -> None:
        super().__init__(f"Cannot delete listing {listing_id} with active rentals")
        self.listing_id = listing_id


class ListingHasRentalHistoryError(ConflictError):
    """Rentals (and their payment records) still reference the listing."""

    def __init__(self, listing_id: int) -> None:
        super().__init__(
            f"Cannot delete listing {listing_id} with rental history; deactivate it instead"
        )
        self.listing_id = listing_id


class ListingNotVerifiedError(ConflictError):
    def __init__(self, listing_id: int) -> None:
        super().__init__(f"Listing {listing_id} has not completed domain verification")
        self.listing_id = listing_id


class RentalUnavailableError(ConflictError):
    """Availability check rejected the requested subdomain."""


class RentalNotActiveError(ConflictError):
    def __init__(self, rental_id: int) -> None:
        super().__init__(f"Rental {rental_id} is not active")
        self.rental_id = rental_id


# --- 400 ---


class UnsupportedRegistrarError(ValueError):
    def __init__(self, registrar: object) -> None:
        super().__init__(f"Unsupported registrar: {registrar}")
        self.registrar = registrar


class CredentialsFormatError(ValueError):
    """Decrypted credentials do not match the registrar's expected shape."""


class InvalidCredentialsError(ValueError):
    """Registrar rejected the credentials during the credential check."""


class WebhookSignatureError(ValueError):
    """Billing event failed signature verification."""


# --- upstream ---


class BillingError(RuntimeError):
    """The payment provider rejected or failed a command."""
