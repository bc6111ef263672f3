"""
Error taxonomy for wick.

Every error that should end the process carries the exit code the CLI
boundary hands back to the shell. Errors raised while tearing a session
down are logged by the controller and never reach this hierarchy.

WickError
├── ConfigurationError      (2)  bad key, conflicting credentials, bad profile
├── RouterConnectionError   (3)  router unreachable, handshake/auth rejected
└── ProtocolOperationError  (1)  subscribe/register/publish refused
"""

from __future__ import annotations

SUCCESS = 0
OPERATION_FAILED = 1
CONFIGURATION_ERROR = 2
CONNECTION_ERROR = 3
KEYBOARD_INTERRUPT = 130


class WickError(Exception):
    """Base class for errors that terminate a wick action."""
    exit_code = OPERATION_FAILED


class ConfigurationError(WickError):
    """Raised before any network activity when inputs cannot be used."""
    exit_code = CONFIGURATION_ERROR


class RouterConnectionError(WickError):
    """Raised when no session could be established with the router."""
    exit_code = CONNECTION_ERROR


class ProtocolOperationError(WickError):
    """Raised when the router refuses the action's primary operation."""
    exit_code = OPERATION_FAILED
