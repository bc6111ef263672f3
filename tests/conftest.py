import asyncio
import io
import sys
from pathlib import Path

import pytest
from rich.console import Console

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wick.client.ws_client import CallResult, Event, Invocation
from wick.shared.errors import ProtocolOperationError


class DummySession:
    """Stands in for ClientSession; records every operation"""

    def __init__(self) -> None:
        self.subscriptions = {}
        self.registrations = {}
        self.published = []
        self.calls = []
        self.unsubscribed = []
        self.unregistered = []
        self.close_count = 0
        self.call_result = CallResult()
        self.fail_on = set()
        self._router_closed = asyncio.Event()

    def router_close(self) -> None:
        self._router_closed.set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ProtocolOperationError(f"{operation} refused")

    async def subscribe(self, topic, handler, options=None):
        self._check("subscribe")
        self.subscriptions[topic] = (handler, options)

    async def unsubscribe(self, topic):
        self.unsubscribed.append(topic)
        self._check("unsubscribe")

    async def publish(self, topic, options=None, args=None, kwargs=None):
        self._check("publish")
        self.published.append((topic, options, args, kwargs))

    async def register(self, procedure, handler, options=None):
        self._check("register")
        self.registrations[procedure] = handler

    async def unregister(self, procedure):
        self.unregistered.append(procedure)
        self._check("unregister")

    async def call(self, procedure, options=None, args=None, kwargs=None):
        self.calls.append((procedure, options, args, kwargs))
        self._check("call")
        return self.call_result

    async def done(self):
        await self._router_closed.wait()

    async def close(self):
        self.close_count += 1

    def fire_event(self, topic, *args, **kwargs):
        handler, _ = self.subscriptions[topic]
        handler(Event(list(args), kwargs, {"topic": topic}))

    async def invoke(self, procedure, *args, **kwargs):
        return await self.registrations[procedure](Invocation(list(args), kwargs, {}))


async def wait_for(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return False


@pytest.fixture
def dummy_session():
    return DummySession()


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def console(output):
    return Console(file=output, width=200, force_terminal=False, color_system=None)
