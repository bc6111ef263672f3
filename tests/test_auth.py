import base64
import hashlib
import hmac
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from wick.shared.auth import (
    Anonymous,
    ChallengeResponse,
    Credentials,
    SignatureBased,
    Ticket,
    build_session_config,
    resolve_strategy,
    select_authmethod,
)
from wick.shared.crypto.keys import Ed25519Keypair
from wick.shared.crypto.signer import CRASigner, CryptosignSigner, TicketSigner, derive_key
from wick.shared.errors import ConfigurationError

# RFC 8032 section 7.1, TEST 1
SEED_HEX = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
PUBLIC_HEX = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"


def challenge(**extra):
    return SimpleNamespace(method="test", extra=extra)


def _wcs(key: bytes, message: str) -> str:
    return base64.b64encode(hmac.new(key, message.encode(), hashlib.sha256).digest()).decode()


# ========================================
#           CLASSIFICATION
# ========================================

@pytest.mark.parametrize(
    "credentials, expected",
    [
        (Credentials(private_key="ab" * 32), "cryptosign"),
        (Credentials(ticket="t"), "ticket"),
        (Credentials(secret="s"), "wampcra"),
        (Credentials(), "anonymous"),
    ],
)
def test_select_authmethod(credentials, expected):
    assert select_authmethod(credentials) == expected


@pytest.mark.parametrize(
    "credentials",
    [
        Credentials(private_key="ab" * 32, ticket="t"),
        Credentials(ticket="t", secret="s"),
        Credentials(private_key="ab" * 32, secret="s"),
        Credentials(private_key="ab" * 32, ticket="t", secret="s"),
    ],
)
def test_conflicting_credentials_are_rejected(credentials):
    with pytest.raises(ConfigurationError, match="conflicting credentials"):
        select_authmethod(credentials)


def test_resolve_strategy_variants():
    assert isinstance(resolve_strategy(Credentials()), Anonymous)
    assert resolve_strategy(Credentials(ticket="t")) == Ticket("t")
    assert resolve_strategy(Credentials(secret="s")) == ChallengeResponse("s")
    assert isinstance(resolve_strategy(Credentials(private_key=SEED_HEX)), SignatureBased)


def test_strategy_repr_hides_secrets():
    assert "hunter2" not in repr(Ticket("hunter2"))
    assert "hunter2" not in repr(ChallengeResponse("hunter2"))
    assert SEED_HEX not in repr(Ed25519Keypair.from_hex(SEED_HEX))


# ========================================
#           CRYPTOSIGN
# ========================================

def test_keypair_from_seed_matches_reference_vector():
    keypair = Ed25519Keypair.from_hex(SEED_HEX)
    assert keypair.public_hex() == PUBLIC_HEX


def test_expanded_64_byte_key_uses_first_32_bytes_as_seed():
    expanded = SEED_HEX + PUBLIC_HEX
    assert Ed25519Keypair.from_hex(expanded).public_hex() == PUBLIC_HEX


@pytest.mark.parametrize("bad", ["ab" * 31, "ab" * 33, "", "ab" * 63])
def test_invalid_private_key_length(bad):
    with pytest.raises(ConfigurationError, match="invalid private key length"):
        Ed25519Keypair.from_hex(bad)


def test_private_key_must_be_hex():
    with pytest.raises(ConfigurationError, match="not a hex string"):
        Ed25519Keypair.from_hex("zz" * 32)


def test_cryptosign_response_is_signature_plus_challenge():
    signer = CryptosignSigner(Ed25519Keypair.from_hex(SEED_HEX))
    nonce_hex = "00112233445566778899aabbccddeeff" * 2

    response, extra = signer(challenge(challenge=nonce_hex))

    assert extra == {}
    assert response.endswith(nonce_hex)
    signature = bytes.fromhex(response[: -len(nonce_hex)])
    assert len(signature) == 64
    public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(PUBLIC_HEX))
    public_key.verify(signature, bytes.fromhex(nonce_hex))


# ========================================
#           WAMP-CRA / TICKET
# ========================================

def test_cra_without_salt_signs_with_raw_secret():
    response, extra = CRASigner("s3cret")(challenge(challenge='{"nonce": "abc"}'))
    assert response == _wcs(b"s3cret", '{"nonce": "abc"}')
    assert extra == {}


def test_cra_with_salt_uses_default_iterations_and_keylen():
    response, _ = CRASigner("s3cret")(challenge(challenge="c", salt="pepper"))
    derived = hashlib.pbkdf2_hmac("sha256", b"s3cret", b"pepper", 1000, 32)
    assert response == _wcs(base64.b64encode(derived), "c")


def test_cra_with_zero_iterations_falls_back_to_defaults():
    explicit_zero = CRASigner("s3cret")(challenge(challenge="c", salt="pepper", iterations=0, keylen=0))
    defaults = CRASigner("s3cret")(challenge(challenge="c", salt="pepper"))
    assert explicit_zero == defaults


def test_cra_with_salt_honours_iterations_and_keylen():
    response, _ = CRASigner("s3cret")(challenge(challenge="c", salt="pepper", iterations=100, keylen=16))
    derived = hashlib.pbkdf2_hmac("sha256", b"s3cret", b"pepper", 100, 16)
    assert response == _wcs(base64.b64encode(derived), "c")


def test_derive_key_returns_base64():
    expected = base64.b64encode(hashlib.pbkdf2_hmac("sha256", b"pw", b"salt", 1000, 32))
    assert derive_key("pw", "salt") == expected


def test_ticket_ignores_challenge():
    assert TicketSigner("tkt")(challenge(anything="x")) == ("tkt", {})


# ========================================
#           SESSION CONFIG
# ========================================

def test_anonymous_session_config():
    config = build_session_config("realm1", Credentials(), authid="bob", authrole="")
    assert config.realm == "realm1"
    assert config.authmethods == ["anonymous"]
    assert config.auth_handlers == {}
    assert config.hello_details == {"authid": "bob"}


def test_cryptosign_session_config_carries_pubkey():
    config = build_session_config("realm1", Credentials(private_key=SEED_HEX), authrole="user")
    assert config.authmethods == ["cryptosign"]
    assert config.hello_details == {"authrole": "user", "authextra": {"pubkey": PUBLIC_HEX}}


def test_cra_session_config_handler():
    config = build_session_config("realm1", Credentials(secret="s"))
    assert config.authmethods == ["wampcra"]
    response, _ = config.auth_handlers["wampcra"](challenge(challenge="c"))
    assert response == _wcs(b"s", "c")


def test_bad_key_fails_before_connecting():
    with pytest.raises(ConfigurationError):
        build_session_config("realm1", Credentials(private_key="ab" * 31))


def test_unknown_serializer():
    with pytest.raises(ConfigurationError, match="unknown serializer"):
        build_session_config("realm1", Credentials(), serializer="xml")
