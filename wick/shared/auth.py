"""
Authentication strategy resolution.

Credentials given on the command line (or read from a profile) are
classified into exactly one strategy, and the strategy produces the
SessionConfig the WAMP session adapter uses to say HELLO and to answer
CHALLENGE messages.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from wick.shared.crypto.keys import Ed25519Keypair
from wick.shared.crypto.signer import CRASigner, CryptosignSigner, TicketSigner
from wick.shared.errors import ConfigurationError

SERIALIZERS = ("json", "msgpack", "cbor")

ChallengeHandler = Callable[[Any], Tuple[str, Dict[str, Any]]]


@dataclass(frozen=True)
class Credentials:
    private_key: str = ""
    ticket: str = ""
    secret: str = ""

    def supplied(self) -> List[str]:
        """Names of the non-empty credentials"""
        names = []
        if self.private_key:
            names.append("private-key")
        if self.ticket:
            names.append("ticket")
        if self.secret:
            names.append("secret")
        return names


@dataclass(frozen=True)
class Anonymous:
    authmethod = "anonymous"

    def handlers(self) -> Dict[str, ChallengeHandler]:
        return {}

    def authextra(self) -> Optional[Dict[str, Any]]:
        return None


@dataclass(frozen=True)
class Ticket:
    ticket: str
    authmethod = "ticket"

    def handlers(self) -> Dict[str, ChallengeHandler]:
        return {self.authmethod: TicketSigner(self.ticket)}

    def authextra(self) -> Optional[Dict[str, Any]]:
        return None

    def __repr__(self) -> str:
        return "Ticket(ticket=***)"


@dataclass(frozen=True)
class ChallengeResponse:
    secret: str
    authmethod = "wampcra"

    def handlers(self) -> Dict[str, ChallengeHandler]:
        return {self.authmethod: CRASigner(self.secret)}

    def authextra(self) -> Optional[Dict[str, Any]]:
        return None

    def __repr__(self) -> str:
        return "ChallengeResponse(secret=***)"


@dataclass(frozen=True)
class SignatureBased:
    keypair: Ed25519Keypair
    authmethod = "cryptosign"

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "SignatureBased":
        return cls(Ed25519Keypair.from_hex(private_key_hex))

    def handlers(self) -> Dict[str, ChallengeHandler]:
        return {self.authmethod: CryptosignSigner(self.keypair)}

    def authextra(self) -> Optional[Dict[str, Any]]:
        return {"pubkey": self.keypair.public_hex()}


Strategy = Union[Anonymous, Ticket, ChallengeResponse, SignatureBased]


def select_authmethod(credentials: Credentials) -> str:
    """
    Pure classification of a credential set into an authmethod name.

    Exactly one non-empty credential selects its method, none selects
    anonymous. Supplying more than one is a configuration error.
    """
    supplied = credentials.supplied()
    if len(supplied) > 1:
        raise ConfigurationError(
            f"conflicting credentials: {', '.join(supplied)} given, use only one"
        )
    if credentials.private_key:
        return SignatureBased.authmethod
    if credentials.ticket:
        return Ticket.authmethod
    if credentials.secret:
        return ChallengeResponse.authmethod
    return Anonymous.authmethod


def resolve_strategy(credentials: Credentials) -> Strategy:
    """Build the strategy for a credential set, decoding keys eagerly"""
    method = select_authmethod(credentials)
    if method == SignatureBased.authmethod:
        return SignatureBased.from_hex(credentials.private_key)
    if method == Ticket.authmethod:
        return Ticket(credentials.ticket)
    if method == ChallengeResponse.authmethod:
        return ChallengeResponse(credentials.secret)
    return Anonymous()


@dataclass
class SessionConfig:
    """Everything the session adapter needs to join a realm"""
    realm: str
    serializer: str = "json"
    authid: Optional[str] = None
    authrole: Optional[str] = None
    authextra: Optional[Dict[str, Any]] = None
    auth_handlers: Dict[str, ChallengeHandler] = field(default_factory=dict)

    @property
    def authmethods(self) -> List[str]:
        return list(self.auth_handlers) or [Anonymous.authmethod]

    @property
    def hello_details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        if self.authid:
            details["authid"] = self.authid
        if self.authrole:
            details["authrole"] = self.authrole
        if self.authextra:
            details["authextra"] = self.authextra
        return details


def build_session_config(
    realm: str,
    credentials: Credentials,
    *,
    serializer: str = "json",
    authid: Optional[str] = None,
    authrole: Optional[str] = None,
) -> SessionConfig:
    """Resolve credentials and assemble the SessionConfig for one invocation"""
    if serializer not in SERIALIZERS:
        raise ConfigurationError(
            f"unknown serializer '{serializer}', expected one of {', '.join(SERIALIZERS)}"
        )
    strategy = resolve_strategy(credentials)
    return SessionConfig(
        realm=realm,
        serializer=serializer,
        authid=authid or None,
        authrole=authrole or None,
        authextra=strategy.authextra(),
        auth_handlers=strategy.handlers(),
    )
