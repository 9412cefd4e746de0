# core/process_runner.py
import asyncio
import logging
import os
import shlex
import shutil
import signal
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from config.settings import settings
from core.log_broker import LogBroker, log_broker
from util.errors import LaunchFailure, StageFailure, StageTimeout
from util.timing import timed

logger = logging.getLogger(__name__)

# Toolchains print long single-line JSON now and then.
_STREAM_LIMIT = 4 * 1024 * 1024
# Longer lines reach logs and the channel cut to this many characters.
_LINE_MAX = 8 * 1024

Runner = Callable[[str, Sequence[str], Path, Optional[str]], Awaitable[None]]


def toolchain_env() -> dict:
    env = dict(os.environ)
    env["PATH"] = ":".join(p for p in (env.get("PATH"), settings.toolchain_path()) if p)
    return env


def _tag(program: str) -> str:
    return os.path.basename(program) or program


async def _lines(stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Yield lines from `stream`. A line over the buffer limit arrives in pieces."""
    while True:
        try:
            yield await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if e.partial:
                yield e.partial
            return
        except asyncio.LimitOverrunError as e:
            yield await stream.read(max(e.consumed, 1))


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


async def run_process(
    program: str,
    args: Sequence[str],
    cwd: Path,
    request_id: Optional[str] = None,
    *,
    timeout: Optional[float] = None,
    broker: Optional[LogBroker] = None,
) -> None:
    """
    Run one external program to completion through the shell.
    - stdout/stderr are logged and relayed line by line as "[stdout] ..." / "[stderr] ...".
    - Exit 0 returns; non-zero raises StageFailure(exit_code, stderr).
    - Unknown program or spawn error raises LaunchFailure.
    - Exceeding `timeout` kills the process group and raises StageTimeout.
    No retries.
    """
    broker = broker or log_broker
    timeout = settings.STAGE_TIMEOUT_SECONDS if timeout is None else timeout
    tag = _tag(program)
    env = toolchain_env()

    if shutil.which(program, path=env["PATH"]) is None:
        msg = f"[{tag}] error: command not found"
        logger.error("proc.launch.error job=%s prog=%s err=not_found", request_id, tag)
        broker.relay(request_id, msg)
        raise LaunchFailure(tag, "command not found")

    cmdline = shlex.join([program, *args])
    try:
        proc = await asyncio.create_subprocess_shell(
            cmdline,
            cwd=str(cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
            limit=_STREAM_LIMIT,
        )
    except OSError as e:
        logger.error("proc.launch.error job=%s prog=%s err=%s", request_id, tag, e)
        broker.relay(request_id, f"[{tag}] error: {e}")
        raise LaunchFailure(tag, str(e)) from e

    stderr_lines: List[str] = []

    async def _pump(stream: asyncio.StreamReader, kind: str) -> None:
        async for raw in _lines(stream):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if len(line) > _LINE_MAX:
                line = line[:_LINE_MAX] + " ... [truncated]"
            if not line:
                continue
            if kind == "stderr":
                stderr_lines.append(line)
                logger.warning("proc.stderr job=%s prog=%s %s", request_id, tag, line)
            else:
                logger.info("proc.stdout job=%s prog=%s %s", request_id, tag, line)
            broker.relay(request_id, f"[{kind}] {line}")

    async def _communicate() -> int:
        await asyncio.gather(
            _pump(proc.stdout, "stdout"),  # type: ignore[arg-type]
            _pump(proc.stderr, "stderr"),  # type: ignore[arg-type]
        )
        return await proc.wait()

    with timed(logger, "proc.run", job=request_id, prog=tag) as clock:
        try:
            code = await asyncio.wait_for(_communicate(), timeout=timeout or None)
        except asyncio.TimeoutError:
            _kill_group(proc)
            await proc.wait()
            logger.error("proc.timeout job=%s prog=%s after=%ss", request_id, tag, timeout)
            broker.relay(request_id, f"[{tag}] Timed out after {timeout:g}s")
            raise StageTimeout(tag, timeout)
        except asyncio.CancelledError:
            _kill_group(proc)
            await asyncio.shield(proc.wait())
            logger.warning("proc.cancelled job=%s prog=%s", request_id, tag)
            raise
        except Exception as e:
            _kill_group(proc)
            await proc.wait()
            logger.error("proc.stream.error job=%s prog=%s err=%s", request_id, tag, e)
            broker.relay(request_id, f"[{tag}] Failed: {e}")
            code = proc.returncode if proc.returncode is not None else -1
            raise StageFailure(tag, code, "\n".join(stderr_lines) or str(e)) from e

    if code == 0:
        logger.info("proc.ok job=%s prog=%s ms=%d", request_id, tag, clock.ms)
        broker.relay(request_id, f"[{tag}] Completed successfully")
        return

    logger.error("proc.failed job=%s prog=%s code=%d", request_id, tag, code)
    broker.relay(request_id, f"[{tag}] Failed with code {code}")
    raise StageFailure(tag, code, "\n".join(stderr_lines) + ("\n" if stderr_lines else ""))
