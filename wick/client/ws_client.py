from __future__ import annotations
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

from autobahn.asyncio.rawsocket import WampRawSocketClientFactory
from autobahn.asyncio.wamp import ApplicationSession
from autobahn.asyncio.websocket import WampWebSocketClientFactory
from autobahn.wamp import serializer as wamp_serializer
from autobahn.wamp.exception import Error as WampError
from autobahn.wamp.types import (
    CallOptions,
    CallResult as WampCallResult,
    ComponentConfig,
    PublishOptions,
    RegisterOptions,
    SubscribeOptions,
)

from wick.shared.auth import SessionConfig
from wick.shared.errors import ConfigurationError, ProtocolOperationError, RouterConnectionError
from wick.shared.log import get_logger
from wick.shared.utils import RAWSOCKET_SCHEMES, WEBSOCKET_SCHEMES, normalize_address

# Seconds to wait for the router's GOODBYE reply before dropping the transport
CLOSE_GRACE = 2.0

_SERIALIZER_CLASSES = {
    "json": "JsonSerializer",
    "msgpack": "MsgPackSerializer",
    "cbor": "CBORSerializer",
}

# autobahn takes call and publish options from this keyword
RESERVED_KWARGS = ("options",)

# Keyword under which autobahn hands over event/call details. It is not a
# valid identifier, so no CLI or application kwarg is expected to use it.
_DETAILS_KWARG = "\x00wick:details"

_DETAIL_FIELDS = (
    "topic", "publication", "publisher", "publisher_authid", "publisher_authrole", "retained",
    "procedure", "registration", "caller", "caller_authid", "caller_authrole",
)


@dataclass
class Event:
    args: List[Any] = field(default_factory=list)
    kwargs: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Invocation:
    args: List[Any] = field(default_factory=list)
    kwargs: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CallResult:
    args: List[Any] = field(default_factory=list)
    kwargs: Dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[Event], None]
InvocationHandler = Callable[[Invocation], Union[Any, Awaitable[Any]]]


def _details_dict(details: Any) -> Dict[str, Any]:
    """Plain-dict view of autobahn's EventDetails/CallDetails"""
    if details is None:
        return {}
    result = {}
    for name in _DETAIL_FIELDS:
        value = getattr(details, name, None)
        if value is not None and not callable(value):
            result[name] = value
    return result


def check_kwargs(kwargs: Optional[Dict[str, Any]]) -> None:
    """Reject keyword arguments autobahn would read as its own options"""
    for key in RESERVED_KWARGS:
        if kwargs and key in kwargs:
            raise ConfigurationError(f"keyword argument '{key}' is reserved and cannot be sent")


def _make_serializer(name: str):
    class_name = _SERIALIZER_CLASSES.get(name)
    if class_name is None:
        raise ConfigurationError(f"unknown serializer '{name}'")
    serializer_cls = getattr(wamp_serializer, class_name, None)
    if serializer_cls is None:
        raise ConfigurationError(
            f"serializer '{name}' is not available, install autobahn[serialization]"
        )
    return serializer_cls()


class _WickSession(ApplicationSession):
    """
    autobahn session that joins with a SessionConfig.

    ``joined`` resolves once WELCOME arrives (or fails with
    RouterConnectionError on ABORT / early disconnect); ``closed`` resolves
    when the transport goes away for any reason.
    """

    def __init__(self, session_config: SessionConfig, logger: logging.Logger):
        super().__init__(ComponentConfig(realm=session_config.realm))
        self.session_config = session_config
        self.logger = logger
        loop = asyncio.get_running_loop()
        self.joined: asyncio.Future = loop.create_future()
        self.closed: asyncio.Future = loop.create_future()

    def onConnect(self):
        cfg = self.session_config
        self.logger.debug(
            "Transport open, joining with %s", ", ".join(cfg.authmethods),
            extra={"realm": cfg.realm},
        )
        self.join(
            cfg.realm,
            authmethods=cfg.authmethods,
            authid=cfg.authid,
            authrole=cfg.authrole,
            authextra=cfg.authextra,
        )

    def onChallenge(self, challenge):
        handler = self.session_config.auth_handlers.get(challenge.method)
        if handler is None:
            raise RouterConnectionError(
                f"router requested unsupported authmethod '{challenge.method}'"
            )
        self.logger.debug("Answering challenge", extra={"authmethod": challenge.method})
        response, _extra = handler(challenge)
        return response

    def onJoin(self, details):
        if not self.joined.done():
            self.joined.set_result(details)

    def onLeave(self, details):
        if not self.joined.done():
            reason = " ".join(part for part in (details.reason, details.message) if part)
            self.joined.set_exception(RouterConnectionError(f"router refused session: {reason}"))
        else:
            self.logger.info("Router closed the session: %s", details.reason)
        self.disconnect()

    def onDisconnect(self, *_args):
        if not self.joined.done():
            self.joined.set_exception(
                RouterConnectionError("transport closed before the session was established")
            )
        if not self.closed.done():
            self.closed.set_result(None)


class ClientSession:
    """
    Session handle used by the controller.

    Wraps one joined autobahn session and exposes topic/procedure keyed
    operations. Failures of router operations surface as
    ProtocolOperationError.
    """

    def __init__(self, session: _WickSession, transport: asyncio.BaseTransport, logger: logging.Logger) -> None:
        self._session = session
        self._transport = transport
        self.logger = logger
        self._subscriptions: Dict[str, Any] = {}
        self._registrations: Dict[str, Any] = {}
        self._closing = False

    async def subscribe(self, topic: str, handler: EventHandler, options: Optional[Dict[str, Any]] = None) -> None:
        def on_event(*args, **kwargs):
            details = kwargs.pop(_DETAILS_KWARG, None)
            handler(Event(list(args), kwargs, _details_dict(details)))

        try:
            subscription = await self._session.subscribe(
                on_event, topic, options=SubscribeOptions(details_arg=_DETAILS_KWARG, **(options or {}))
            )
        except WampError as e:
            raise ProtocolOperationError(f"subscribe to '{topic}' failed: {e}") from e
        self._subscriptions[topic] = subscription

    async def unsubscribe(self, topic: str) -> None:
        subscription = self._subscriptions.pop(topic, None)
        if subscription is None:
            raise ProtocolOperationError(f"not subscribed to '{topic}'")
        try:
            await subscription.unsubscribe()
        except WampError as e:
            raise ProtocolOperationError(f"unsubscribe from '{topic}' failed: {e}") from e

    async def publish(
        self,
        topic: str,
        options: Optional[Dict[str, Any]] = None,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        check_kwargs(kwargs)
        try:
            ack = self._session.publish(
                topic, *(args or []), options=PublishOptions(**(options or {})), **(kwargs or {})
            )
            if inspect.isawaitable(ack):
                await ack
        except WampError as e:
            raise ProtocolOperationError(f"publish to '{topic}' failed: {e}") from e

    async def register(self, procedure: str, handler: InvocationHandler, options: Optional[Dict[str, Any]] = None) -> None:
        async def on_invocation(*args, **kwargs):
            details = kwargs.pop(_DETAILS_KWARG, None)
            result = handler(Invocation(list(args), kwargs, _details_dict(details)))
            if inspect.isawaitable(result):
                result = await result
            return result

        try:
            registration = await self._session.register(
                on_invocation, procedure, options=RegisterOptions(details_arg=_DETAILS_KWARG, **(options or {}))
            )
        except WampError as e:
            raise ProtocolOperationError(f"register '{procedure}' failed: {e}") from e
        self._registrations[procedure] = registration

    async def unregister(self, procedure: str) -> None:
        registration = self._registrations.pop(procedure, None)
        if registration is None:
            raise ProtocolOperationError(f"'{procedure}' is not registered")
        try:
            await registration.unregister()
        except WampError as e:
            raise ProtocolOperationError(f"unregister '{procedure}' failed: {e}") from e

    async def call(
        self,
        procedure: str,
        options: Optional[Dict[str, Any]] = None,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> CallResult:
        check_kwargs(kwargs)
        call_options = CallOptions(**options) if options else None
        try:
            result = await self._session.call(procedure, *(args or []), options=call_options, **(kwargs or {}))
        except WampError as e:
            raise ProtocolOperationError(f"call to '{procedure}' failed: {e}") from e

        # autobahn unwraps single results and drops empty ones
        if isinstance(result, WampCallResult):
            return CallResult(list(result.results or []), dict(result.kwresults or {}))
        if result is None:
            return CallResult()
        return CallResult([result])

    async def done(self) -> None:
        """Resolves when the router (or the network) ends the session"""
        await asyncio.shield(self._session.closed)

    async def close(self, grace: float = CLOSE_GRACE) -> None:
        """Leave the realm and drop the transport. Safe to call more than once."""
        if self._closing:
            return
        self._closing = True

        closed = self._session.closed
        if closed.done():
            return

        if self._session.is_attached():
            try:
                self._session.leave()
            except WampError as e:
                self.logger.debug("GOODBYE not sent: %s", e)

        try:
            await asyncio.wait_for(asyncio.shield(closed), timeout=grace)
        except asyncio.TimeoutError:
            self.logger.debug("Router did not close the transport in %.1fs, dropping it", grace)
            self._transport.close()


async def connect(address: str, config: SessionConfig, logger: Optional[logging.Logger] = None) -> ClientSession:
    """
    Open a transport to the router and join ``config.realm``.

    WebSocket (ws://, wss://) and RawSocket (rs://, rss://, or their tcp://,
    tcps:// spelling) addresses are supported.
    """
    logger = logger or get_logger(__name__)
    url = normalize_address(address)
    parsed = urlparse(url)

    if parsed.scheme not in WEBSOCKET_SCHEMES + RAWSOCKET_SCHEMES:
        raise ConfigurationError(f"unsupported router address scheme in '{address}'")
    if not parsed.hostname:
        raise ConfigurationError(f"router address '{address}' has no host")
    try:
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"router address '{address}' has an invalid port") from e

    secure = parsed.scheme in ("wss", "tcps")
    serializer = _make_serializer(config.serializer)
    session = _WickSession(config, logger)

    if parsed.scheme in WEBSOCKET_SCHEMES:
        factory = WampWebSocketClientFactory(lambda: session, url=url, serializers=[serializer])
        port = port or (443 if secure else 80)
    else:
        if port is None:
            raise ConfigurationError(f"RawSocket address '{address}' needs an explicit port")
        factory = WampRawSocketClientFactory(lambda: session, serializer=serializer)

    loop = asyncio.get_running_loop()
    logger.debug("Connecting to %s:%s", parsed.hostname, port, extra={"realm": config.realm})
    try:
        transport, _protocol = await loop.create_connection(
            factory, parsed.hostname, port, ssl=True if secure else None
        )
    except OSError as e:
        raise RouterConnectionError(f"cannot reach router at {address}: {e}") from e

    try:
        await session.joined
    except RouterConnectionError:
        transport.close()
        raise

    logger.info("Connected to %s", address, extra={"realm": config.realm})
    return ClientSession(session, transport, logger)
