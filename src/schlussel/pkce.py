"""PKCE (Proof Key for Code Exchange) generation per :rfc:`7636`.

:func:`generate_pkce_pair` draws 32 bytes from :mod:`secrets`, encodes them
as unpadded URL-safe base64 (43 characters) to form the verifier, and
derives the S256 challenge from the ASCII bytes of that encoded verifier.
Only the ``S256`` method is offered.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from pydantic import BaseModel, ConfigDict

CODE_CHALLENGE_METHOD = "S256"

_VERIFIER_BYTES = 32


def _b64url_nopad(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class PkcePair(BaseModel):
    """A code verifier and its derived challenge.

    The caller owns the pair; nothing else keeps a reference to it.
    """

    model_config = ConfigDict(frozen=True)

    verifier: str
    challenge: str

    @property
    def method(self) -> str:
        return CODE_CHALLENGE_METHOD


def derive_challenge(verifier: str) -> str:
    """Return ``base64url_nopad(sha256(verifier))`` over the verifier's ASCII bytes."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url_nopad(digest)


def generate_pkce_pair() -> PkcePair:
    """Generate a fresh PKCE verifier/challenge pair (S256).

    Returns:
        A :class:`PkcePair` whose verifier and challenge are both 43
        characters from ``[A-Za-z0-9_-]``.
    """
    verifier = _b64url_nopad(secrets.token_bytes(_VERIFIER_BYTES))
    return PkcePair(verifier=verifier, challenge=derive_challenge(verifier))
