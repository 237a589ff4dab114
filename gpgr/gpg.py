# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  gpg.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides the context all gpgr operations run gpg with. A context is created
  once, e.g. at program start, by `create_context`, which also detects the
  installed gpg version, and is then passed explicitly to the functions in
  `gpgr.keys`, `gpgr.encrypt` and `gpgr.decrypt`.

"""
import logging
import re
import subprocess

import attr

import gpgr.process
import gpgr.settings
from gpgr.exceptions import CommandError

# Inherits from gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"gpg \(GnuPG(?:/[^)]+)?\) (\d+\.\d+\.\d+)")

# Minimum version that can list key material without importing it
SHOW_ONLY_MIN_VERSION = "2.1.14"


def parse_version(output):
    """Return 'X.Y.Z' from the first line of `gpg --version` output.

    Raises:
      ValueError: No version string found.

    """
    match = VERSION_PATTERN.search(output)
    if not match:
        raise ValueError(
            "Unable to determine gpg version from '{}'".format(
                output.splitlines()[0] if output else output
            )
        )

    return match.group(1)


def _version_tuple(version):
    return tuple(int(part) for part in version.split("."))


@attr.s(frozen=True)
class GPGContext:
    """Immutable settings for invoking gpg.

    Attributes:
      command: Name or path of the gpg executable.

      homedir: Path to the gpg home directory or None for gpg's default.

      timeout: Max wall-clock seconds per gpg invocation or None.

      select_timeout: Max seconds a single readiness wait on gpg's pipes blocks.

      version: The detected gpg version string, e.g. '2.2.40'.

    """

    command = attr.ib(default=gpgr.settings.GPG_COMMAND)
    homedir = attr.ib(default=None)
    timeout = attr.ib(default=gpgr.settings.SUBPROCESS_TIMEOUT)
    select_timeout = attr.ib(default=gpgr.settings.SELECT_TIMEOUT)
    version = attr.ib(default=None)

    def base_command(self):
        """Return gpg command and the options passed with every invocation."""
        cmd = [self.command, "--batch", "--no-tty"]
        if self.homedir:
            cmd += ["--homedir", self.homedir.replace("\\", "/")]

        return cmd

    def is_version_at_least(self, minimum):
        """Return True if the detected gpg version is at least `minimum`."""
        if not self.version:
            return False

        return _version_tuple(self.version) >= _version_tuple(minimum)

    def run(self, args, input=None, check=True):  # pylint: disable=redefined-builtin
        """Run gpg with the passed arguments.

        Arguments:
          args: List of gpg options and arguments.

          input (optional): Bytes fed to gpg's standard input.

          check (optional): If True (default) a non-zero gpg exit status raises
              CommandError.

        Raises:
          CommandError: gpg cannot be executed, or exits with a non-zero
              status and check is True.

          subprocess.TimeoutExpired: gpg did not finish within the timeout.

        Returns:
          A subprocess.CompletedProcess with gpg's stdout and stderr bytes.

        """
        cmd = self.base_command() + list(args)
        try:
            return gpgr.process.run(
                cmd,
                input=input,
                check=check,
                timeout=self.timeout,
                select_timeout=self.select_timeout,
            )

        except OSError as e:
            raise CommandError(
                "Unable to run '{}': {}".format(self.command, e)
            ) from e

        except subprocess.CalledProcessError as e:
            raise CommandError(
                "'{}' returned non-zero exit status {}: {}".format(
                    " ".join(args),
                    e.returncode,
                    e.stderr.decode("utf-8", "replace").strip(),
                )
            ) from e


def create_context(command=None, homedir=None, timeout=None):
    """Create a GPGContext and detect the gpg version.

    Arguments not passed default to gpgr.settings, which may have been
    overridden by environment variables or rc files (see gpgr.user_settings).

    Arguments:
      command (optional): Name or path of the gpg executable.

      homedir (optional): Path to the gpg home directory.

      timeout (optional): Max wall-clock seconds per gpg invocation.

    Raises:
      CommandError: gpg cannot be executed.

      ValueError: The gpg version cannot be determined.

    Side Effects:
      Runs `gpg --version` once.

    Returns:
      A GPGContext.

    """
    if command is None:
        command = gpgr.settings.GPG_COMMAND

    if homedir is None:
        homedir = gpgr.settings.GPG_HOME

    if timeout is None:
        timeout = gpgr.settings.SUBPROCESS_TIMEOUT

    context = GPGContext(
        command=command,
        homedir=homedir,
        timeout=timeout,
        select_timeout=gpgr.settings.SELECT_TIMEOUT,
    )

    process = context.run(["--version"])
    version = parse_version(process.stdout.decode("utf-8", "replace"))
    LOG.debug("Using '{}' version {}".format(command, version))

    return attr.evolve(context, version=version)
