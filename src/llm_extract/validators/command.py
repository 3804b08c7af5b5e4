"""External process validator.

The candidate is written to the command's stdin as JSON. Exit status 0
accepts it; anything else rejects it with the command's stderr as feedback.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import signal
from typing import TYPE_CHECKING, Any

from llm_extract.constants import DEFAULT_VALIDATOR_SHELL
from llm_extract.core.exceptions import CommandValidationError
from llm_extract.core.types import to_jsonable

if TYPE_CHECKING:
    from llm_extract.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


async def run_command_validator(
    data: Any,
    command: str,
    cancel_token: CancellationToken | None = None,
    *,
    shell: str = DEFAULT_VALIDATOR_SHELL,
) -> None:
    """Run `command` through `shell -c` with `data` as JSON on stdin.

    A command that exits before reading stdin is not an error; only its exit
    status counts. The command runs in its own process group, which is
    killed as a whole if `cancel_token` fires.

    Raises:
        CommandValidationError: If the command exits non-zero.
        AbortError: If `cancel_token` fires first.
    """
    payload = json.dumps(to_jsonable(data)).encode("utf-8")
    process = await asyncio.create_subprocess_exec(
        shell,
        "-c",
        command,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    # communicate() already ignores a broken pipe on stdin.
    exchange = process.communicate(payload)
    try:
        if cancel_token is None:
            _, stderr = await exchange
        else:
            _, stderr = await cancel_token.guard(exchange)
    except BaseException:
        await _kill(process)
        raise

    code = process.returncode if process.returncode is not None else 0
    logger.debug("Validator command exited with %d", code)
    if code == 0:
        return
    message = stderr.decode("utf-8", errors="replace").strip()
    raise CommandValidationError(
        message or f"Command exited with code {code}", command, code
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    # The shell leads its own session; children it started may outlive it.
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signal.SIGKILL)
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()
