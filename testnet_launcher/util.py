"""
The util file.

What, you think a project could exist without one?
"""

import asyncio
from asyncio import Task, FIRST_COMPLETED
from collections.abc import Iterable
import logging
from subprocess import PIPE, STDOUT
from typing import Awaitable, List, Optional, Tuple

LOG = logging.getLogger(__name__)


async def either_or_interrupt(
        awaitable: Awaitable,
        interrupts: Iterable[Awaitable],
) -> Optional[Task]:
    """
    Wait for either the given awaitable or for an interrupt event. If the interrupt happens first,
    return the pending task. All interrupts must be cancellable.

    :param awaitable:
    :param interrupts: a collection of cancellable interrupts
    :return: the pending task if exited early or None if it completed
    """
    main_task = asyncio.ensure_future(awaitable)
    wait_tasks = list(map(asyncio.ensure_future, interrupts))
    wait_tasks.append(main_task)
    try:
        _done, pending = await asyncio.wait(wait_tasks, return_when=FIRST_COMPLETED)
    except asyncio.CancelledError:
        for task in wait_tasks:
            task.cancel()
        raise
    for interrupt_task in pending - {main_task}:
        interrupt_task.cancel()
    return main_task if main_task in pending else None


class ExitMixin(object):
    _exit_event: asyncio.Event

    async def _either_or_exit(self, awaitable: Awaitable) -> Optional[Task]:
        """
        Wait for either the given awaitable or for this to exit. If the exit happens first, return
        the pending task.

        :param awaitable:
        :return: the pending task if exited early or None if it completed
        """
        return await either_or_interrupt(awaitable, interrupts=[self._exit_event.wait()])

    @property
    def _exited(self) -> bool:
        return self._exit_event.is_set()


async def run_command(cmd: List[str]) -> Tuple[int, str]:
    """
    Run a command to completion, capturing stdout and stderr together.

    :param cmd: the command and its arguments
    :return: the exit code and the combined output
    :raise OSError: if the command could not be started
    """
    LOG.debug(f"Running command: {' '.join(cmd)}")
    proc = await asyncio.create_subprocess_exec(*cmd, stdout=PIPE, stderr=STDOUT)
    output, _ = await proc.communicate()
    return proc.returncode, output.decode(errors='replace')
