from __future__ import annotations
from typing import Dict, Optional, Sequence

from wick.shared.errors import ConfigurationError

# ========================================
#           ROUTER ADDRESS HELPERS
# ========================================

# RawSocket URLs are written rs:// or rss:// on the command line; the
# session adapter dials them as tcp:// and tcps://
_RAWSOCKET_SCHEMES = {
    "rss": "tcps",
    "rs": "tcp",
}

WEBSOCKET_SCHEMES = ("ws", "wss")
RAWSOCKET_SCHEMES = ("tcp", "tcps")


def normalize_address(url: str) -> str:
    """
    Rewrite a RawSocket scheme to the one the session adapter dials.

    Only the scheme is touched; everything after "://" is kept byte for byte.
    "rs://host:8080" becomes "tcp://host:8080", "rss://..." becomes "tcps://...".
    """
    scheme, sep, rest = url.partition("://")
    if sep and scheme in _RAWSOCKET_SCHEMES:
        return _RAWSOCKET_SCHEMES[scheme] + sep + rest
    return url


# ========================================
#           INPUT VALIDATION HELPERS
# ========================================

def parse_key_values(pairs: Optional[Sequence[str]]) -> Dict[str, str]:
    """
    Turn repeated "key=value" options into a dict.

    Splits on the first '='; the value may itself contain '='.
    Later duplicates win.
    """
    result: Dict[str, str] = {}
    for pair in pairs or ():
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"invalid keyword argument '{pair}', expected key=value")
        result[key] = value
    return result
