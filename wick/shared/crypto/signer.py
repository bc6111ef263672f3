# Challenge responders for the WAMP authentication methods

from __future__ import annotations
import base64
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Tuple

from autobahn.wamp.auth import compute_wcs
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from wick.shared.crypto.keys import Ed25519Keypair

DEFAULT_ITERATIONS = 1000
DEFAULT_KEYLEN = 32

ChallengeReply = Tuple[str, Dict[str, Any]]


def _challenge_extra(challenge: Any) -> Mapping[str, Any]:
    return getattr(challenge, "extra", None) or {}


class ChallengeSigner(ABC):
    """Answers the router's CHALLENGE for one authentication method"""

    authmethod: str

    @abstractmethod
    def respond(self, challenge: Any) -> ChallengeReply:
        """Return the AUTHENTICATE signature and its extra dict"""
        ...

    def __call__(self, challenge: Any) -> ChallengeReply:
        return self.respond(challenge)


class TicketSigner(ChallengeSigner):
    """Static ticket; the challenge content is ignored."""

    authmethod = "ticket"

    def __init__(self, ticket: str):
        self._ticket = ticket

    def respond(self, challenge: Any) -> ChallengeReply:
        return self._ticket, {}


def derive_key(secret: str, salt: str, iterations: Optional[int] = None, keylen: Optional[int] = None) -> bytes:
    """
    PBKDF2-HMAC-SHA256 key derivation for salted WAMP-CRA.

    Zero or missing iterations/keylen fall back to 1000 and 32.
    Returns the base64 form of the derived key, which is what the router
    stores and what signs the challenge.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=int(keylen or DEFAULT_KEYLEN),
        salt=salt.encode("utf-8"),
        iterations=int(iterations or DEFAULT_ITERATIONS),
    )
    derived = kdf.derive(secret.encode("utf-8"))
    return base64.b64encode(derived)


class CRASigner(ChallengeSigner):
    """
    WAMP-CRA responder.

    The challenge extra carries the challenge string and, for routers that
    store salted secrets, salt/iterations/keylen. Without a salt the raw
    secret is the HMAC key; with a salt the PBKDF2-derived key is.
    """

    authmethod = "wampcra"

    def __init__(self, secret: str):
        self._secret = secret

    def signing_key(self, extra: Mapping[str, Any]) -> bytes:
        salt = extra.get("salt")
        if not salt:
            return self._secret.encode("utf-8")
        return derive_key(self._secret, str(salt), extra.get("iterations"), extra.get("keylen"))

    def respond(self, challenge: Any) -> ChallengeReply:
        extra = _challenge_extra(challenge)
        signature = compute_wcs(self.signing_key(extra), str(extra.get("challenge", "")))
        if isinstance(signature, bytes):
            signature = signature.decode("ascii")
        return signature, {}


class CryptosignSigner(ChallengeSigner):
    """
    WAMP-cryptosign responder.

    Signs the raw bytes of the hex challenge with Ed25519 and answers
    signature_hex + challenge_hex.
    """

    authmethod = "cryptosign"

    def __init__(self, keypair: Ed25519Keypair):
        self.keypair = keypair

    def respond(self, challenge: Any) -> ChallengeReply:
        challenge_hex = str(_challenge_extra(challenge).get("challenge", ""))
        signature = self.keypair.sign(bytes.fromhex(challenge_hex))
        return signature.hex() + challenge_hex, {}
