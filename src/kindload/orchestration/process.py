"""Local subprocess execution with streamed stdin, timeout, and cancellation.

Every node transport (``docker exec``, ``ssh``) ends up here.  Standard
input is copied into the child from a feeder thread and standard error is
drained from another, so the calling thread is free to poll for the
caller's deadline or cancel event and kill the child when either trips.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
import time
from typing import BinaryIO

from kindload.errors import CommandCancelledError, CommandTimeoutError, NodeCommandError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
POLL_INTERVAL = 0.1


def _feed_stdin(src: BinaryIO, dst, failures: list[BaseException]) -> None:
    """Copy *src* into the child's stdin, then close it."""
    try:
        while True:
            chunk = src.read(CHUNK_SIZE)
            if not chunk:
                break
            dst.write(chunk)
        dst.flush()
    except BrokenPipeError:
        # The child exited before reading everything; its exit status says why.
        logger.debug("Child closed stdin before the stream was fully written")
    except Exception as e:
        failures.append(e)
    finally:
        try:
            dst.close()
        except OSError:
            pass


def _drain(src, sink: list[bytes]) -> None:
    for chunk in iter(lambda: src.read(65536), b""):
        sink.append(chunk)


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    try:
        proc.wait(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d did not exit after kill", proc.pid)


def run_streaming(
    argv: list[str],
    stdin: BinaryIO | None = None,
    node: str = "local",
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
) -> None:
    """Run *argv* to completion, streaming *stdin* into it.

    Args:
        argv: Command and arguments to execute locally.
        stdin: Readable binary stream fed to the child's standard input,
            or ``None`` to give the child an empty stdin.
        node: Node name used in error messages.
        timeout: Seconds to wait before killing the child.
        cancel_event: When set, the child is killed.

    Raises:
        NodeCommandError: If the command cannot start or exits non-zero.
        CommandTimeoutError: If *timeout* elapsed first.
        CommandCancelledError: If *cancel_event* was set first.
    """
    if cancel_event is not None and cancel_event.is_set():
        raise CommandCancelledError(node, argv, message="cancelled before start")

    if shutil.which(argv[0]) is None:
        raise NodeCommandError(node, argv, message="executable not found: %s" % argv[0])

    logger.debug("[%s] exec: %s", node, " ".join(argv))
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise NodeCommandError(node, argv, message="failed to start: %s" % e) from e

    feed_failures: list[BaseException] = []
    stderr_chunks: list[bytes] = []
    threads = [threading.Thread(target=_drain, args=(proc.stderr, stderr_chunks), daemon=True)]
    if stdin is not None:
        threads.append(threading.Thread(
            target=_feed_stdin, args=(stdin, proc.stdin, feed_failures), daemon=True,
        ))
    for t in threads:
        t.start()

    deadline = time.monotonic() + timeout if timeout is not None else None
    try:
        while True:
            try:
                proc.wait(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancel_event is not None and cancel_event.is_set():
                _kill(proc)
                raise CommandCancelledError(node, argv, proc.returncode, message="cancelled")
            if deadline is not None and time.monotonic() >= deadline:
                _kill(proc)
                raise CommandTimeoutError(
                    node, argv, proc.returncode, message="timed out after %ss" % timeout,
                )
    finally:
        for t in threads:
            t.join(timeout=5)
        proc.stderr.close()

    stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")
    if feed_failures:
        raise NodeCommandError(
            node, argv, proc.returncode,
            message="failed to read stdin stream: %s" % feed_failures[0],
        ) from feed_failures[0]
    if proc.returncode != 0:
        raise NodeCommandError(node, argv, proc.returncode, stderr)
