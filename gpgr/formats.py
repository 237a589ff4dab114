# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  formats.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Helpers to validate API inputs.

"""
from securesystemslib.exceptions import FormatError


def _err(arg, expected):
    return FormatError(f"expected {expected}, got '{arg} ({type(arg)})'")


def check_str(arg):
    if not isinstance(arg, str):
        raise _err(arg, "str")


def check_str_list(arg):
    if not isinstance(arg, list):
        raise _err(arg, "list")
    for e in arg:
        check_str(e)


def check_bytes(arg):
    """Check bytes-like input buffer."""
    if not isinstance(arg, (bytes, bytearray, memoryview)):
        raise _err(arg, "bytes")

