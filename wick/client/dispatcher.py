from __future__ import annotations
import asyncio
import logging
from typing import Callable, List, Optional

from rich.console import Console

from wick.client.state import InvocationCounter, InvocationPolicy
from wick.client.ws_client import Invocation
from wick.shared.coercion import render
from wick.shared.log import get_logger


async def run_command(argv: List[str], logger: logging.Logger) -> str:
    """
    Run a program and return its stdout.

    Non-zero exit status and stderr are logged, never raised: the caller of
    the procedure always gets whatever the command printed.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("Cannot run %s: %s", argv[0], e)
        return ""

    stdout, stderr = await process.communicate()
    errors = stderr.decode("utf-8", errors="replace").rstrip()
    if process.returncode != 0:
        logger.warning("%s exited with status %d", argv[0], process.returncode)
        if errors:
            logger.warning("stderr: %s", errors)
    elif errors:
        logger.info("stderr: %s", errors)

    return stdout.decode("utf-8", errors="replace")


class InvocationDispatcher:
    """
    Invocation handler for ``wick register``.

    Each call is printed, counted against the optional invocation limit and
    answered with the stdout of the configured command. The command line is
    passed to the shell as written: whoever starts wick controls it fully.
    """

    def __init__(
        self,
        policy: InvocationPolicy,
        *,
        on_exhausted: Optional[Callable[[], None]] = None,
        console: Optional[Console] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.policy = policy
        self.counter = InvocationCounter(policy.invoke_count) if policy.invoke_count else None
        self._on_exhausted = on_exhausted
        self.console = console or Console()
        self.logger = logger or get_logger(__name__)

    def argv(self) -> Optional[List[str]]:
        """Program and arguments for one invocation, None when nothing is configured"""
        if self.policy.commands:
            return [self.policy.shell, "-c", self.policy.command_line]
        if self.policy.script:
            # one program path, run without a shell in between
            return [self.policy.script]
        return None

    async def __call__(self, invocation: Invocation) -> str:
        self.console.print(
            render(invocation.args, invocation.kwargs),
            markup=False, highlight=False, soft_wrap=True,
        )

        remaining = None
        if self.counter is not None:
            remaining = self.counter.take()
            if remaining is None:
                self.logger.warning("Invocation limit already reached, command not run")
                return ""
            self.logger.debug("%d invocation(s) left", remaining)

        argv = self.argv()
        output = await run_command(argv, self.logger) if argv else ""

        if remaining == 0:
            self.logger.info("Invocation limit reached, session closing")
            if self._on_exhausted is not None:
                self._on_exhausted()
        return output
