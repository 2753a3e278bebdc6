"""Wallet loading and repository write-access checks.

The wallet is loaded once per process and passed explicitly to the
collaborators that need it (ledger, blob providers, telemetry).
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from .ledger import RepositoryDescriptor

log = logging.getLogger("landgit/wallet")


@dataclass(frozen=True, kw_only=True)
class Wallet:
    """An RSA JSON Web Key and the ledger address derived from it."""

    jwk: dict
    address: str


def address_from_jwk(jwk: dict) -> str:
    """
    Derive the ledger address for a JWK.

    The address is the base64url encoded SHA-256 digest of the
    decoded public modulus (the `n` member of the JWK).

    Raises:
        ValueError: if the JWK has no modulus.
    """
    modulus = jwk.get("n")
    if not modulus:
        raise ValueError("JWK has no public modulus")
    raw = base64.urlsafe_b64decode(modulus + "=" * (-len(modulus) % 4))
    digest = hashlib.sha256(raw).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def load_wallet(keyfile: Path | None) -> Wallet | None:
    """Load the wallet from keyfile, returning None if unavailable."""
    if keyfile is None:
        return None
    try:
        jwk = json.loads(keyfile.read_text())
        return Wallet(jwk=jwk, address=address_from_jwk(jwk))
    except (OSError, ValueError) as exc:
        log.warning("cannot load wallet from %s: %s", keyfile, exc)
        return None


def is_owner_or_contributor(descriptor: RepositoryDescriptor, wallet: Wallet) -> bool:
    """Return whether the wallet may write to the repository."""
    return wallet.address == descriptor.owner or wallet.address in descriptor.contributors


def wallet_setup_hint() -> str:
    """Return the message explaining how to configure a wallet."""
    return (
        "run 'git config --add proland.keyfile YOUR_WALLET_KEYFILE_FULL_PATH' "
        "(use '--global' to have a default keyfile for all repositories)"
    )
