"""The git remote-helper protocol bridge.

git talks to a remote helper over its standard input and output. We only
advertise the `connect` capability: git then asks us to connect to one of
its transport services (git-upload-pack for fetches, git-receive-pack for
pushes) and we run that service against the cached bare repository,
piping bytes verbatim in both directions.

Standard output is the protocol channel, so every diagnostic goes to
standard error through logging.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Final

from . import vcs
from .sync import UploadOutcome

log = logging.getLogger("landgit/bridge")

RECEIVE_PACK: Final[str] = "git-receive-pack"
UPLOAD_PACK: Final[str] = "git-upload-pack"

# Printed by git-receive-pack once it has stored the pushed objects
OBJECTS_PUSHED: Final[bytes] = b"unpack ok"

_CHUNK_SIZE: Final[int] = 65536


class MarkerScanner:
    """Detect a byte marker in a stream of chunks, even across chunk boundaries."""

    def __init__(self, marker: bytes) -> None:
        self.marker = marker
        self.found = False
        self._tail = b""

    def feed(self, chunk: bytes) -> None:
        if self.found:
            return
        data = self._tail + chunk
        if self.marker in data:
            self.found = True
            self._tail = b""
            return
        keep = len(self.marker) - 1
        self._tail = data[-keep:] if keep > 0 else b""


def _write_all(dst, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = dst.write(view)
        if written is None:
            written = 0
        view = view[written:]
    dst.flush()


def _read_chunk(src) -> bytes:
    # read1 returns whatever is available, including bytes already
    # buffered while reading protocol lines. Raw streams have no read1
    # and their read returns after a single system call.
    if hasattr(src, "read1"):
        return src.read1(_CHUNK_SIZE)
    return src.read(_CHUNK_SIZE)


def _close_quietly(stream) -> None:
    try:
        stream.close()
    except OSError:
        pass


def _pump_input(src, dst) -> None:
    """Forward src to the child's stdin until either side is closed."""
    try:
        while True:
            chunk = _read_chunk(src)
            if not chunk:
                break
            _write_all(dst, chunk)
    except (OSError, ValueError) as exc:
        log.debug("stdin forwarding stopped: %s", exc)
    finally:
        _close_quietly(dst)


def _pump_output(src, dst, observe: Callable[[bytes], None] | None) -> None:
    """Forward the child's src to dst, showing each chunk to observe afterwards."""
    broken = False
    while True:
        chunk = src.read(_CHUNK_SIZE)
        if not chunk:
            break
        if not broken:
            try:
                _write_all(dst, chunk)
            except (OSError, ValueError) as exc:
                # keep draining so the child does not block on a full pipe
                log.debug("output forwarding stopped: %s", exc)
                broken = True
        if observe is not None:
            observe(chunk)


class Bridge:
    """
    Remote-helper protocol state machine.

    Attributes:
        stdin: binary stream git writes commands (and then pack data) to.
            For a real file descriptor pass the unbuffered raw stream
            (`sys.stdin.buffer.raw`): git keeps our stdin open after a
            fetch, and a thread blocked reading a buffered stream holds
            its lock, which aborts the interpreter at exit.
        stdout: binary stream we answer on.
        stderr: binary stream receiving the transport's diagnostics.
        bare_path: the cached bare repository transports run against.
        on_push: called after a successful push that stored objects.
        on_fetch: called after a successful fetch (best effort).
        authorize_push: called once a push connection is acknowledged;
            returning False makes the bridge exit cleanly without running
            the transport.
        spawn: starts the transport subcommand.
    """

    def __init__(
        self,
        stdin: BinaryIO,
        stdout: BinaryIO,
        stderr: BinaryIO,
        *,
        bare_path: Path,
        on_push: Callable[[], UploadOutcome],
        on_fetch: Callable[[], None] | None = None,
        authorize_push: Callable[[], bool] | None = None,
        spawn: Callable[[str, Path], subprocess.Popen] = vcs.spawn_transport,
    ) -> None:
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr
        self.bare_path = bare_path
        self.on_push = on_push
        self.on_fetch = on_fetch
        self.authorize_push = authorize_push
        self.spawn = spawn

    def _reply(self, data: bytes) -> None:
        _write_all(self.stdout, data)

    def run(self) -> int:
        """Process commands until a blank line, EOF or a connect; return the exit code."""
        while True:
            raw = self.stdin.readline()
            if not raw:
                log.debug("end of input")
                return 0
            line = raw.decode(errors="replace").strip()
            if line == "":
                return 0

            command, _, arg = line.partition(" ")
            if command == "capabilities":
                self._reply(b"connect\n\n")
            elif command == "connect":
                return self._connect(arg.strip())
            else:
                log.debug("ignoring unsupported command: %s", line)

    def _connect(self, command: str) -> int:
        self._reply(b"\n")
        if command == RECEIVE_PACK and self.authorize_push is not None:
            if not self.authorize_push():
                return 0

        try:
            proc = self.spawn(command, self.bare_path)
        except OSError as exc:
            log.error("cannot run git command '%s': %s", command, exc)
            return 1

        objects_pushed, code = self._pipe(proc)
        if code != 0:
            log.error("git command '%s' exited with error. Exit code: %s", command, code)
            return code if code > 0 else 1

        if command == RECEIVE_PACK and objects_pushed:
            return self._after_push()
        if command == UPLOAD_PACK and self.on_fetch is not None:
            try:
                self.on_fetch()
            except Exception as exc:
                log.debug("post-fetch hook failed: %s", exc)
        return 0

    def _pipe(self, proc: subprocess.Popen) -> tuple[bool, int]:
        scanner = MarkerScanner(OBJECTS_PUSHED)

        # The input side is a daemon thread: git may keep our stdin open
        # after the transport exits and we must not wait for it.
        feeder = threading.Thread(
            target=_pump_input, args=(self.stdin, proc.stdin), name="stdin-pump", daemon=True
        )
        feeder.start()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="output-pump") as pool:
            out = pool.submit(_pump_output, proc.stdout, self.stdout, scanner.feed)
            err = pool.submit(_pump_output, proc.stderr, self.stderr, None)
            out.result()
            err.result()
        code = proc.wait()
        _close_quietly(proc.stdin)
        return scanner.found, code

    def _after_push(self) -> int:
        log.info("push to the cached remote finished successfully, now syncing with the ledger...")
        try:
            outcome = self.on_push()
        except Exception as exc:
            log.error("syncing with the ledger... failure: %s", exc)
            outcome = None

        if outcome is not None and outcome.success:
            log.info("successfully pushed snapshot %s", outcome.snapshot_id)
            return 0
        if outcome is not None and outcome.cancelled:
            log.info("push cancelled: the remote repository was not changed")
            return 0
        log.error("failed to push to the remote repository")
        log.error("please run `git pull` first to refresh the cache and integrate your changes")
        return 1
