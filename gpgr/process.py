# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  process.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provide a `run` function that feeds an arbitrary amount of bytes to a child
  process's standard input while draining its standard output and standard
  error in the same loop.

  Writing all input before reading any output deadlocks as soon as the child
  fills its output pipe and stops reading its input. `run` multiplexes the
  three pipes with a selector, writes input in bounded chunks starting at a
  write cursor, tolerates partial writes and closes the child's standard input
  once, right after the last input byte was accepted.

"""
import logging
import os
import selectors
import shlex
import subprocess
import time

import gpgr.formats
import gpgr.settings

PIPE = subprocess.PIPE

# Seconds a child that closed its output may take to exit, even past the
# deadline
REAP_GRACE_PERIOD = 2.0

# Inherits from gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger(__name__)


def _remaining(deadline):
    """Return seconds left until deadline, or None if there is no deadline."""
    if deadline is None:
        return None

    return max(0.0, deadline - time.monotonic())


def _reap_timeout(deadline):
    """Return seconds to wait for the exit of a child that closed its output."""
    remaining = _remaining(deadline)
    if remaining is None:
        return None

    return max(remaining, REAP_GRACE_PERIOD)


class _DuplexTransfer:
    """State of one input/output exchange with a child process.

    Owns the selector, the write cursor into the input buffer and the output
    buffers. Instances are used for exactly one `run` call.

    """

    def __init__(self, proc, data, chunk_size):
        self.proc = proc
        self.data = data
        self.chunk_size = chunk_size
        self.cursor = 0
        self.stdin_closed = False
        self.stdout = bytearray()
        self.stderr = bytearray()
        self.selector = selectors.DefaultSelector()

        for stream in (proc.stdin, proc.stdout, proc.stderr):
            os.set_blocking(stream.fileno(), False)

        self.selector.register(proc.stdout, selectors.EVENT_READ, self.stdout)
        self.selector.register(proc.stderr, selectors.EVENT_READ, self.stderr)

        if len(self.data):
            self.selector.register(proc.stdin, selectors.EVENT_WRITE)
        else:
            self._close_stdin()

    def _close_stdin(self):
        if self.stdin_closed:
            return

        if self.proc.stdin in self.selector.get_map():
            self.selector.unregister(self.proc.stdin)

        self.proc.stdin.close()
        self.stdin_closed = True
        LOG.debug(
            "Closed child input after {} of {} bytes".format(
                self.cursor, len(self.data)
            )
        )

    def _write_chunk(self):
        chunk = self.data[self.cursor : self.cursor + self.chunk_size]
        try:
            written = os.write(self.proc.stdin.fileno(), chunk)

        except BlockingIOError:
            written = 0

        except BrokenPipeError:
            # The child closed its end early, keep draining its output
            LOG.debug("Child process closed its input pipe")
            self._close_stdin()
            return

        self.cursor += written
        if self.cursor >= len(self.data):
            self._close_stdin()

    def _read_chunk(self, key):
        chunk = os.read(key.fd, self.chunk_size)
        if chunk:
            key.data.extend(chunk)

        else:
            self.selector.unregister(key.fileobj)
            key.fileobj.close()

    def exchange(self, cmd, timeout, deadline, select_timeout):
        """Run the readiness loop until both output pipes report end-of-stream
        and no input is left to write. Raises subprocess.TimeoutExpired once
        the deadline passes."""
        with self.selector:
            while self.selector.get_map():
                wait = select_timeout
                remaining = _remaining(deadline)
                if remaining is not None:
                    if remaining <= 0:
                        raise subprocess.TimeoutExpired(
                            cmd,
                            timeout,
                            output=bytes(self.stdout),
                            stderr=bytes(self.stderr),
                        )
                    wait = remaining if wait is None else min(wait, remaining)

                ready = self.selector.select(wait)
                if not ready:
                    LOG.debug(
                        "No child pipe ready after {}s, waiting again".format(
                            wait
                        )
                    )
                    continue

                for key, _ in ready:
                    if key.fileobj is self.proc.stdin:
                        self._write_chunk()
                    else:
                        self._read_chunk(key)

        return bytes(self.stdout), bytes(self.stderr)


def _cleanup(proc):
    """Close all pipes and kill and reap the child if it is still running."""
    for stream in (proc.stdin, proc.stdout, proc.stderr):
        if stream is None or stream.closed:
            continue
        try:
            stream.close()
        except BrokenPipeError:
            LOG.debug("Child input pipe already broken on close")

    if proc.poll() is None:
        LOG.debug("Killing child process {}".format(proc.pid))
        proc.kill()
        proc.wait()


def run(
    cmd,
    input=None,  # pylint: disable=redefined-builtin
    check=True,
    timeout=gpgr.settings.SUBPROCESS_TIMEOUT,
    select_timeout=gpgr.settings.SELECT_TIMEOUT,
    chunk_size=gpgr.settings.PIPE_CHUNK_SIZE,
):
    """Execute a command, streaming input to it and collecting its output.

    The child is launched with piped standard streams. A single loop waits on
    the pipes' readiness, writes the next chunk of input whenever the child can
    accept it and reads whatever the child wrote, so that neither side can
    block the other. The child's input is closed exactly once, after the last
    input byte was accepted, which signals end-of-input to the child.

    Arguments:
      cmd: The command and its arguments as list of str. A str is split with
          shlex. No shell is involved.

      input (optional): Bytes passed to the child's standard input. Default is
          empty input.

      check (optional): If True (default) and the child exits with a non-zero
          return value, subprocess.CalledProcessError is raised.

      timeout (optional): Max wall-clock seconds for the whole call, or None
          for no deadline. A child that closed its output by then is given
          REAP_GRACE_PERIOD seconds to exit. See
          gpgr.settings.SUBPROCESS_TIMEOUT.

      select_timeout (optional): Max seconds a single readiness wait blocks.
          See gpgr.settings.SELECT_TIMEOUT.

      chunk_size (optional): Max bytes written or read per pipe operation.
          See gpgr.settings.PIPE_CHUNK_SIZE.

    Raises:
      securesystemslib.exceptions.FormatError: The command or input are
          malformed.

      OSError: The command is not present or not executable.

      subprocess.TimeoutExpired: The deadline passed. The child is killed and
          waited for before the exception is raised.

      subprocess.CalledProcessError: The child exited with a non-zero return
          value and check is True.

    Side Effects:
      Runs the command in a child process, which does not outlive the call.

    Returns:
      A subprocess.CompletedProcess with the exit code and the complete
      standard output and standard error bytes.

    """
    if isinstance(cmd, str):
        cmd = shlex.split(cmd)
    else:
        gpgr.formats.check_str_list(cmd)

    if input is None:
        input = b""
    gpgr.formats.check_bytes(input)
    data = memoryview(input).cast("B")

    if chunk_size < 1:
        raise ValueError("'chunk_size' must be a positive integer")

    deadline = None
    if timeout is not None:
        deadline = time.monotonic() + timeout

    LOG.debug(
        "Running '{}' with {} bytes of input".format(shlex.join(cmd), len(data))
    )

    proc = subprocess.Popen(cmd, stdin=PIPE, stdout=PIPE, stderr=PIPE)
    try:
        transfer = _DuplexTransfer(proc, data, chunk_size)
        stdout, stderr = transfer.exchange(
            cmd, timeout, deadline, select_timeout
        )

        try:
            returncode = proc.wait(timeout=_reap_timeout(deadline))
        except subprocess.TimeoutExpired:
            raise subprocess.TimeoutExpired(
                cmd, timeout, output=stdout, stderr=stderr
            ) from None

    finally:
        _cleanup(proc)

    LOG.debug(
        "'{}' exited with {}, wrote {} bytes to stdout and {} bytes to "
        "stderr".format(cmd[0], returncode, len(stdout), len(stderr))
    )

    if check and returncode:
        raise subprocess.CalledProcessError(
            returncode, cmd, output=stdout, stderr=stderr
        )

    return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)
