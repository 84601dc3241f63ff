"""
Event loop of the console.

One consumer owns the state. Each iteration renders the state, then waits
for whichever comes first: a line of operator input or an action on the
inbound queue (completions from background operations, periodic health
checks). Input is translated by the input mapper; queued actions are taken
as they are. Every action is applied through the dispatcher, one at a
time, in the order the loop observes it.
"""

import asyncio
import sys
import threading
from abc import abstractmethod
from typing import Callable, Optional, Protocol, TextIO, runtime_checkable

from .actions import Action, Quit
from .audit_logger import AuditLogger
from .dispatcher import ActionDispatcher
from .input_mapper import map_input
from .render import TerminalRenderer
from .state import InventoryState


@runtime_checkable
class InputSource(Protocol):
    """Produces raw input lines; None signals end of input."""

    @abstractmethod
    async def read(self) -> Optional[str]:
        ...


class StdinInputSource:
    """
    Reads lines from a text stream on a daemon thread.

    A blocking readline never holds up interpreter shutdown because the
    reader thread is a daemon.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stdin
        self._lines: Optional[asyncio.Queue] = None
        self._thread: Optional[threading.Thread] = None

    def _start(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue = asyncio.Queue()

        def pump() -> None:
            while True:
                line = self._stream.readline()
                loop.call_soon_threadsafe(lines.put_nowait, line or None)
                if not line:
                    return

        self._thread = threading.Thread(target=pump, name="archon-stdin", daemon=True)
        self._thread.start()
        return lines

    async def read(self) -> Optional[str]:
        if self._lines is None:
            self._lines = self._start()
        return await self._lines.get()


class ConsoleLoop:
    """Multiplexes input and inbound actions into the dispatcher."""

    COMPONENT = "ConsoleLoop"

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        inbox: asyncio.Queue,
        input_source: InputSource,
        renderer: Optional[TerminalRenderer] = None,
        mapper: Callable[[str, InventoryState], Optional[Action]] = map_input,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the loop.

        Args:
            dispatcher: Applies actions to the state
            inbox: Shared inbound queue of background operations
            input_source: Source of raw input lines
            renderer: Draws the state; None disables drawing
            mapper: Translates input lines into actions
            logger: Optional audit logger
        """
        self._dispatcher = dispatcher
        self._inbox = inbox
        self._input = input_source
        self._renderer = renderer
        self._mapper = mapper
        self._logger = logger
        self._applied = 0

    @property
    def state(self) -> InventoryState:
        return self._dispatcher.state

    @property
    def applied_count(self) -> int:
        """Number of actions applied so far."""
        return self._applied

    def process(self, action: Action) -> None:
        """Apply one action."""
        self._dispatcher.update(action)
        self._applied += 1

    async def run(self) -> None:
        """Run until the quit flag is set."""
        input_task: Optional[asyncio.Task] = None
        inbox_task: Optional[asyncio.Task] = None

        try:
            while not self.state.should_quit:
                if self._renderer is not None:
                    self._renderer.draw(self.state)

                # Pending waits survive across iterations so nothing is dropped
                if input_task is None:
                    input_task = asyncio.ensure_future(self._input.read())
                if inbox_task is None:
                    inbox_task = asyncio.ensure_future(self._inbox.get())

                done, _ = await asyncio.wait(
                    {input_task, inbox_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                actions: list[Action] = []
                if input_task in done:
                    line = input_task.result()
                    input_task = None
                    if line is None:
                        self._log_info("Input closed, quitting", {})
                        actions.append(Quit())
                    else:
                        action = self._mapper(line, self.state)
                        if action is not None:
                            actions.append(action)
                if inbox_task in done:
                    actions.append(inbox_task.result())
                    inbox_task = None

                for action in actions:
                    self.process(action)
        finally:
            for task in (input_task, inbox_task):
                if task is not None and not task.done():
                    task.cancel()

        if self._renderer is not None:
            self._renderer.draw(self.state)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)
