"""
Session lifecycle for the four wick actions.

Every action walks IDLE -> CONNECTING -> ACTIVE -> DRAINING -> CLOSED on
one session. The long-running actions (subscribe, register) block until
the first of three stop sources fires:

* an interrupt (SIGINT/SIGTERM, or interrupt())
* the router closing the session
* the invocation limit of a registered procedure being reached

Only the interrupt path unsubscribes/unregisters; a closed session cannot
take further operations and a reached limit is a hard stop. The session is
released exactly once whichever way the action ends.
"""

from __future__ import annotations
import asyncio
import logging
import signal
from typing import Awaitable, Callable, List, Mapping, Optional, Sequence

from rich.console import Console

from wick.client.dispatcher import InvocationDispatcher
from wick.client.state import InvocationPolicy, SessionState, StopReason
from wick.client.ws_client import ClientSession, Event, check_kwargs, connect
from wick.shared.auth import SessionConfig
from wick.shared.coercion import encode_args, encode_kwargs, render, to_json
from wick.shared.errors import SUCCESS, WickError
from wick.shared.log import get_logger

Connector = Callable[[str, SessionConfig, logging.Logger], Awaitable[ClientSession]]

# When several stop sources fire in the same loop iteration the session
# state decides: a gone router rules out any further operation
_STOP_PRIORITY = (StopReason.ROUTER_CLOSED, StopReason.LIMIT_REACHED, StopReason.INTERRUPTED)

_INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SessionController:

    def __init__(
        self,
        *,
        connector: Connector = connect,
        console: Optional[Console] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._connector = connector
        self.console = console or Console()
        self.logger = logger or get_logger(__name__)
        self.state = SessionState.IDLE
        self._interrupted = asyncio.Event()
        self._exhausted = asyncio.Event()
        self._signals: List[int] = []

    # ========================================
    #           STOP SOURCES
    # ========================================

    def interrupt(self) -> None:
        """Request a graceful stop, as SIGINT does"""
        self._interrupted.set()

    def limit_reached(self) -> None:
        """
        Called by the dispatcher on the last allowed invocation.

        The stop is deferred by one loop iteration so that the result of the
        current invocation is sent before the session goes away.
        """
        asyncio.get_running_loop().call_soon(self._exhausted.set)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in _INTERRUPT_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.interrupt)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                # e.g. Windows loops; Ctrl-C then surfaces as KeyboardInterrupt
                self.logger.debug("No loop handler for %s: %s", sig, e)
            else:
                self._signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._signals:
            loop.remove_signal_handler(self._signals.pop())

    async def _wait_for_stop(self, session: ClientSession) -> StopReason:
        self._install_signal_handlers()
        waiters = {
            StopReason.INTERRUPTED: asyncio.ensure_future(self._interrupted.wait()),
            StopReason.ROUTER_CLOSED: asyncio.ensure_future(session.done()),
            StopReason.LIMIT_REACHED: asyncio.ensure_future(self._exhausted.wait()),
        }
        try:
            await asyncio.wait(waiters.values(), return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._remove_signal_handlers()
            for waiter in waiters.values():
                if not waiter.done():
                    waiter.cancel()

        for reason in _STOP_PRIORITY:
            if waiters[reason].done() and not waiters[reason].cancelled():
                return reason
        # unreachable: asyncio.wait only returns once a waiter finished
        raise RuntimeError("stop wait returned without a stop reason")

    # ========================================
    #           SESSION LIFECYCLE
    # ========================================

    def _transition(self, state: SessionState) -> None:
        self.logger.debug("Session %s -> %s", self.state.value, state.value)
        self.state = state

    async def _open(self, address: str, config: SessionConfig) -> ClientSession:
        self._transition(SessionState.CONNECTING)
        try:
            session = await self._connector(address, config, self.logger)
        except BaseException:
            self._transition(SessionState.CLOSED)
            raise
        self._transition(SessionState.ACTIVE)
        return session

    async def _release(self, session: ClientSession) -> None:
        if self.state is SessionState.CLOSED:
            return
        self._transition(SessionState.DRAINING)
        try:
            await session.close()
        except Exception as e:
            self.logger.warning("Error while closing session: %s", e)
        finally:
            self._transition(SessionState.CLOSED)

    def _print(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    # ========================================
    #           ACTIONS
    # ========================================

    async def subscribe(
        self,
        address: str,
        config: SessionConfig,
        topic: str,
        *,
        match: str = "exact",
        print_details: bool = False,
    ) -> int:
        """Print events published to ``topic`` until interrupted or the router leaves"""

        def on_event(event: Event) -> None:
            if print_details and event.details:
                self.logger.info("details:\n%s", to_json(event.details), extra={"topic": topic})
            self._print(render(event.args, event.kwargs))

        session = await self._open(address, config)
        try:
            await session.subscribe(topic, on_event, {"match": match})
            self.logger.info("Subscribed to topic '%s'", topic)

            reason = await self._wait_for_stop(session)
            if reason is StopReason.INTERRUPTED:
                self._transition(SessionState.DRAINING)
                try:
                    await session.unsubscribe(topic)
                except Exception as e:
                    self.logger.warning("Failed to unsubscribe: %s", e, extra={"topic": topic})
            else:
                self.logger.warning("Router gone, exiting")
            return SUCCESS
        finally:
            await self._release(session)

    async def publish(
        self,
        address: str,
        config: SessionConfig,
        topic: str,
        args: Optional[Sequence[str]] = None,
        kwargs: Optional[Mapping[str, str]] = None,
    ) -> int:
        """Publish one acknowledged event"""
        payload_args = encode_args(args)
        payload_kwargs = encode_kwargs(kwargs)
        check_kwargs(payload_kwargs)

        session = await self._open(address, config)
        try:
            await session.publish(topic, {"acknowledge": True}, payload_args, payload_kwargs)
            self.logger.info("Published to topic '%s'", topic)
            return SUCCESS
        finally:
            await self._release(session)

    async def register(
        self,
        address: str,
        config: SessionConfig,
        procedure: str,
        policy: InvocationPolicy,
    ) -> int:
        """Answer calls to ``procedure`` with local command output"""
        dispatcher = InvocationDispatcher(
            policy,
            on_exhausted=self.limit_reached,
            console=self.console,
            logger=self.logger,
        )

        session = await self._open(address, config)
        try:
            if policy.delay > 0:
                self.logger.info("procedure will be registered after %s seconds", policy.delay)
                await asyncio.sleep(policy.delay)

            await session.register(procedure, dispatcher)
            self.logger.info("Registered procedure '%s'", procedure)

            reason = await self._wait_for_stop(session)
            if reason is StopReason.INTERRUPTED:
                self._transition(SessionState.DRAINING)
                try:
                    await session.unregister(procedure)
                except Exception as e:
                    self.logger.warning("Failed to unregister procedure: %s", e, extra={"procedure": procedure})
            elif reason is StopReason.ROUTER_CLOSED:
                self.logger.warning("Router gone, exiting")
            else:
                # every expected call was answered, which counts as success
                self.logger.info("Invocation limit reached, exiting")
            return SUCCESS
        finally:
            await self._release(session)

    async def call(
        self,
        address: str,
        config: SessionConfig,
        procedure: str,
        args: Optional[Sequence[str]] = None,
        kwargs: Optional[Mapping[str, str]] = None,
    ) -> int:
        """Call ``procedure`` once and print its first result"""
        payload_args = encode_args(args)
        payload_kwargs = encode_kwargs(kwargs)
        check_kwargs(payload_kwargs)

        session = await self._open(address, config)
        try:
            try:
                result = await session.call(procedure, None, payload_args, payload_kwargs)
            except WickError as e:
                self.logger.error("%s", e, extra={"procedure": procedure})
                return SUCCESS

            if result.args:
                self._print(to_json(result.args[0]))
            else:
                self.logger.info("Procedure returned no result", extra={"procedure": procedure})
            return SUCCESS
        finally:
            await self._release(session)
