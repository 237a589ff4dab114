#!/usr/bin/env python

# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  common.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Common code for gpgr unittests, import like so:
  `import tests.common`

  Tests importing this module, should be run from the project root, e.g.:
  `python -m unittest tests.test_keys`
  or using the aggregator script (preferred way):
  `python tests/runtests.py`.

"""
import inspect
import os
import shutil
import subprocess
import sys
import tempfile
import unittest
from unittest.mock import patch

import gpgr.process

# Skip tests that need a real gpg if asked to or if there is none
SKIP_GPG = bool(os.getenv("TEST_SKIP_GPG")) or shutil.which("gpg") is None

# Colon listing of two keys, the first without email address
PGP_GLOBAL_DIR_KEY_AND_EMAIL = [
    "pub:-:2048:1:9710B89BCA57AD7C:2004-12-06:::-:"
    "PGP Global Directory Verification Key::scSC:",
    "pub:u:2048:17:0247FEC05FDA4350:2010-09-13:::u:"
    "John Example <john@example.com>::scESC:",
]

# Colon listing of one key as printed by gpg >= 2.1 in fixed list mode
MARK_KEY_LISTING = [
    "pub:-:255:22:1C6A0AF29B1B6B6E:1662636000:::-:::scESC::::::ed25519::0:",
    "fpr:::::::::4B7C7E0B8C3F0B1D6E7E9D0E1C6A0AF29B1B6B6E:",
    "uid:-::::1662636000::8B4D4C1E0F3A2B1C::Mark Example <mark@example.com>::::::::::0:",
    "sub:-:255:18:6F9A2D3B4C5E6F70:1662636000::::::e::::::cv25519::",
    "fpr:::::::::0A1B2C3D4E5F60718293A4B5C6D7E8F96F9A2D3B4C5E6F70:",
]


def completed(stdout=b"", returncode=0, stderr=b""):
    """Return a CompletedProcess as returned by GPGContext.run."""
    if isinstance(stdout, str):
        stdout = stdout.encode("utf-8")

    return subprocess.CompletedProcess([], returncode, stdout, stderr)


class TmpDirMixin:
    """Mixin with classmethods to create and change into a temporary directory,
    and to change back to the original CWD and remove the temporary directory.

    """

    @classmethod
    def set_up_test_dir(cls):
        """Back up CWD, and create and change into temporary directory."""
        cls.original_cwd = os.getcwd()
        cls.test_dir = os.path.realpath(tempfile.mkdtemp())
        os.chdir(cls.test_dir)

    @classmethod
    def tear_down_test_dir(cls):
        """Change back to original CWD and remove temporary directory."""
        os.chdir(cls.original_cwd)
        shutil.rmtree(cls.test_dir, ignore_errors=True)


class GPGHomeMixin:
    """Mixin with classmethods to create gpg home directories in the CWD,
    optionally with a freshly generated, unprotected key pair.

    """

    gpg_homes = []

    @classmethod
    def set_up_gpg_home(cls, name, user_id=None):
        """Create gpg home 'name' in CWD and return its absolute path. If
        user_id is passed, a key pair for it is generated in that home."""
        homedir = os.path.join(os.getcwd(), name)
        os.mkdir(homedir, 0o700)
        cls.gpg_homes.append(homedir)

        if user_id:
            gpgr.process.run(
                [
                    "gpg",
                    "--homedir",
                    homedir,
                    "--batch",
                    "--no-tty",
                    "--pinentry-mode",
                    "loopback",
                    "--passphrase",
                    "",
                    "--quick-gen-key",
                    user_id,
                    "future-default",
                    "default",
                    "never",
                ],
                timeout=300,
            )

        return homedir

    @staticmethod
    def export_public_key(homedir, address):
        """Return armored public key for address from the keyring at homedir."""
        return gpgr.process.run(
            ["gpg", "--homedir", homedir, "--batch", "--armor", "--export", address]
        ).stdout

    @classmethod
    def tear_down_gpg_homes(cls):
        """Stop gpg agents started for the created gpg homes."""
        if shutil.which("gpgconf") is None:  # pragma: no cover
            return

        for homedir in cls.gpg_homes:
            gpgr.process.run(
                ["gpgconf", "--homedir", homedir, "--kill", "gpg-agent"],
                check=False,
            )

        cls.gpg_homes = []


class CliTestCase(unittest.TestCase):
    """TestCase subclass providing a test helper that patches sys.argv with
    passed arguments and asserts a SystemExit with a return code equal
    to the passed status argument.

    Subclasses of CliTestCase require a class variable that stores the main
    function of the cli tool to test as staticmethod, e.g.:

    ```
    import tests.common
    from gpgr.gpgr_cli import main as gpgr_main

    class TestGpgrTool(tests.common.CliTestCase):
        cli_main_func = staticmethod(gpgr_main)
        ...

    ```
    """

    cli_main_func = None

    def __init__(self, *args, **kwargs):
        """Constructor that checks for the presence of a callable cli_main_func
        class variable. And stores the filename of the module containing that
        function, to be used as first argument when patching sys.argv in
        self.assert_cli_sys_exit.
        """
        if not callable(self.cli_main_func):
            raise Exception(
                "Subclasses of `CliTestCase` need to assign the main"
                " function of the cli tool to test using `staticmethod()`: {}".format(
                    self.__class__.__name__
                )
            )

        file_path = inspect.getmodule(self.cli_main_func).__file__
        self.file_name = os.path.basename(file_path)

        super().__init__(*args, **kwargs)

    def assert_cli_sys_exit(self, cli_args, status):
        """Test helper to mock command line call and assert return value.
        The passed args does not need to contain the command line tool's name.
        This is assessed from  `self.cli_main_func`
        """
        with patch.object(
            sys, "argv", [self.file_name] + cli_args
        ), self.assertRaises(SystemExit) as raise_ctx:
            self.cli_main_func()  # pylint: disable=not-callable

        self.assertEqual(raise_ctx.exception.code, status)
