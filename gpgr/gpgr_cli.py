#!/usr/bin/env python

# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  gpgr_cli.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides a command line interface to encrypt and decrypt data and to import
  and list public keys with the system gpg.

"""
import argparse
import logging
import sys

import gpgr.user_settings
from gpgr import __version__
from gpgr.common_args import (
    EXCLUDE_ARGS,
    EXCLUDE_KWARGS,
    GPG_COMMAND_ARGS,
    GPG_COMMAND_KWARGS,
    GPG_HOME_ARGS,
    GPG_HOME_KWARGS,
    INPUT_ARGS,
    INPUT_KWARGS,
    OUTPUT_ARGS,
    OUTPUT_KWARGS,
    QUIET_ARGS,
    QUIET_KWARGS,
    VERBOSE_ARGS,
    VERBOSE_KWARGS,
    title_case_action_groups,
)
from gpgr.decrypt import decrypt
from gpgr.encrypt import encrypt
from gpgr.exceptions import InvalidKeyError, KeyNotFoundError
from gpgr.gpg import create_context
from gpgr.keys import import_keys_at, list_keys

# Command line interfaces should use gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger("gpgr")


def _read_input(path):
    if path is None:
        return sys.stdin.buffer.read()

    with open(path, "rb") as input_file:
        return input_file.read()


def _write_output(path, data):
    if path is None:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return

    LOG.info("Writing {} bytes to '{}'...".format(len(data), path))
    with open(path, "wb") as output_file:
        output_file.write(data)


def _encrypt(context, args):
    data = _read_input(args.input)
    _write_output(
        args.output, encrypt(context, data, args.recipients, armor=args.armor)
    )


def _decrypt(context, args):
    _write_output(args.output, decrypt(context, _read_input(args.input)))


def _import(context, args):
    for path in args.paths:
        for key in import_keys_at(
            context, path, exclude_patterns=args.exclude_patterns
        ):
            print("{} {}".format(key.keyid, key.email))


def _list(context, args):
    for key in sorted(list_keys(context, *args.addresses), key=lambda k: k.email):
        print(
            "{} {}{}".format(
                key.keyid, key.email, " {}".format(key.name) if key.name else ""
            )
        )


def create_parser():
    """Create and return configured ArgumentParser instance."""
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
gpgr is a light interface to the gpg command line tool, concerned with making
it as easy as possible to encrypt data for one or more public keys, identified
by their email addresses, and to manage the public keys needed for that.

It returns 1 if a recipient key cannot be found or parsed, 2 on any other
failure, and zero otherwise.""",
    )

    parser.epilog = """EXAMPLE USAGE

Import all public keys in a directory.

  {prog} import /path/to/public/keys


Encrypt a file for two recipients.

  {prog} encrypt -r foo@example.com bar@example.com -i report.pdf \\
      -o report.pdf.gpg


Decrypt from standard input with a key from a separate keyring.

  {prog} --gpg-home ~/.gnupg-work decrypt < report.pdf.gpg > report.pdf

""".format(
        prog=parser.prog
    )

    parser.add_argument(*GPG_COMMAND_ARGS, **GPG_COMMAND_KWARGS)
    parser.add_argument(*GPG_HOME_ARGS, **GPG_HOME_KWARGS)

    verbosity_args = parser.add_mutually_exclusive_group(required=False)
    verbosity_args.add_argument(*VERBOSE_ARGS, **VERBOSE_KWARGS)
    verbosity_args.add_argument(*QUIET_ARGS, **QUIET_KWARGS)

    parser.add_argument(
        "--version",
        action="version",
        version="{} {}".format(parser.prog, __version__),
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    encrypt_parser = subparsers.add_parser(
        "encrypt", help="encrypt data for installed public keys"
    )
    encrypt_parser.add_argument(
        "-r",
        "--recipients",
        required=True,
        nargs="+",
        metavar="<email>",
        help="email addresses of the installed public keys to encrypt for.",
    )
    encrypt_parser.add_argument(*INPUT_ARGS, **INPUT_KWARGS)
    encrypt_parser.add_argument(*OUTPUT_ARGS, **OUTPUT_KWARGS)
    encrypt_parser.add_argument(
        "-a", "--armor", action="store_true", help="create ASCII armored output"
    )
    encrypt_parser.set_defaults(func=_encrypt)

    decrypt_parser = subparsers.add_parser(
        "decrypt", help="decrypt data with a secret key from the keyring"
    )
    decrypt_parser.add_argument(*INPUT_ARGS, **INPUT_KWARGS)
    decrypt_parser.add_argument(*OUTPUT_ARGS, **OUTPUT_KWARGS)
    decrypt_parser.set_defaults(func=_decrypt)

    import_parser = subparsers.add_parser(
        "import", help="import public key files or directories of key files"
    )
    import_parser.add_argument(
        "paths", nargs="+", metavar="<path>", help="key files or directories."
    )
    import_parser.add_argument(*EXCLUDE_ARGS, **EXCLUDE_KWARGS)
    import_parser.set_defaults(func=_import)

    list_parser = subparsers.add_parser("list", help="list installed public keys")
    list_parser.add_argument(
        "addresses",
        nargs="*",
        metavar="<email>",
        help="only list keys matching these addresses.",
    )
    list_parser.set_defaults(func=_list)

    title_case_action_groups(parser)

    return parser


def main():
    """Parse arguments, load user settings and run the chosen subcommand."""
    parser = create_parser()
    args = parser.parse_args()

    LOG.setLevelVerboseOrQuiet(args.verbose, args.quiet)

    # Override defaults in settings.py with environment variables and RCfiles
    gpgr.user_settings.set_settings()

    try:
        context = create_context(command=args.gpg_command, homedir=args.gpg_home)
        args.func(context, args)

    except (KeyNotFoundError, InvalidKeyError) as e:
        LOG.error("Key lookup failed: {}".format(e))
        sys.exit(1)

    except Exception as e:  # pylint: disable=broad-except
        LOG.error(
            "The following error occurred while running '{}': {}".format(
                args.command, e
            )
        )
        sys.exit(2)

    sys.exit(0)


if __name__ == "__main__":
    main()
