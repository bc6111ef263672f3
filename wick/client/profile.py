from __future__ import annotations
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from wick.shared.errors import ConfigurationError

DEFAULT_URL = "ws://localhost:8080/ws"
DEFAULT_REALM = "realm1"

# authmethod -> profile key holding its credential
_CREDENTIAL_KEYS = {
    "cryptosign": "private-key",
    "ticket": "ticket",
    "wampcra": "secret",
}


@dataclass(frozen=True)
class ConnectionOptions:
    """Connection settings for one invocation, from flags, env or a profile"""
    url: str = DEFAULT_URL
    realm: str = DEFAULT_REALM
    authid: Optional[str] = None
    authrole: Optional[str] = None
    private_key: str = ""
    ticket: str = ""
    secret: str = ""
    serializer: str = "json"


def default_config_path() -> Path:
    """$XDG_CONFIG_HOME/.wick/config.yaml, or ~/.wick/config.yaml"""
    base = os.getenv("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home()) / ".wick" / "config.yaml"


def _load_profiles(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must map profile names to settings")
    return data


def load_profile(name: str, base: ConnectionOptions, path: Optional[Path] = None) -> ConnectionOptions:
    """
    Overlay profile ``name`` onto ``base``.

    Missing url/realm fall back to the defaults; only the credential that
    matches the profile's authmethod is read, so a profile cannot produce
    conflicting credentials.
    """
    path = path or default_config_path()
    section = _load_profiles(path).get(name)
    if not isinstance(section, dict):
        raise ConfigurationError(f"profile '{name}' not found in {path}")

    def value(key: str) -> str:
        raw = section.get(key)
        return "" if raw is None else str(raw)

    options = replace(
        base,
        url=value("url") or DEFAULT_URL,
        realm=value("realm") or DEFAULT_REALM,
        authid=value("authid") or None,
        authrole=value("authrole") or None,
        private_key="",
        ticket="",
        secret="",
        serializer=value("serializer") or base.serializer,
    )

    authmethod = value("authmethod")
    if authmethod and authmethod != "anonymous":
        key = _CREDENTIAL_KEYS.get(authmethod)
        if key is None:
            raise ConfigurationError(f"profile '{name}': unknown authmethod '{authmethod}'")
        options = replace(options, **{key.replace("-", "_"): value(key)})
    return options
