# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  exceptions.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Define exceptions used in gpgr. Following the practice from securesystemslib
  the names chosen for exception classes end in 'Error'.

"""
from securesystemslib.exceptions import Error


class InvalidKeyError(Error):
    """Indicates that a key record or key material could not be parsed into a
    key with an identifier and an email address."""


class KeyNotFoundError(Error):
    """Indicates that no installed key matches a requested address."""

    def __init__(self, address):
        super().__init__()
        self.address = address

    def __str__(self):
        return f"Public key not found: {self.address}"


class KeyImportError(Error):
    """Indicates that imported key material did not show up in the keyring."""


class CommandError(Error):
    """Indicates that the gpg command could not be executed or exited with a
    non-zero return value."""
