# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  encrypt.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Encrypt data for one or more recipients, identified by the email addresses
  of their installed public keys.

  ```
  import gpgr.gpg
  from gpgr.encrypt import Encrypt

  context = gpgr.gpg.create_context()
  ciphertext = Encrypt(context, b"clear text").for_recipients(
      "foo@example.com", "bar@example.com").result()
  ```

"""
import logging

from securesystemslib.exceptions import FormatError

import gpgr.formats
from gpgr.exceptions import InvalidKeyError, KeyNotFoundError
from gpgr.keys import lookup_key
from gpgr.models.key import Malformed, NotFound

# Inherits from gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger(__name__)

ENCRYPT_ARGS = ["--yes", "--encrypt"]


class Encrypt:
    """Collects recipients for data and encrypts it with gpg."""

    def __init__(self, context, data):
        if isinstance(data, str):
            data = data.encode("utf-8")
        gpgr.formats.check_bytes(data)

        self.context = context
        self.data = data
        self.keys = set()

    def for_recipients(self, *addresses):
        """Add the installed keys of the passed email addresses as recipients.

        Arguments may be addresses or lists of addresses.

        Raises:
          KeyNotFoundError: No usable key is installed for an address.

          InvalidKeyError: The key listed for an address cannot be parsed.

        Returns:
          self, to allow chaining.

        """
        flat = []
        for address in addresses:
            if isinstance(address, (list, tuple, set)):
                flat.extend(address)
            else:
                flat.append(address)

        for address in flat:
            result = lookup_key(self.context, address)

            if isinstance(result, NotFound):
                raise KeyNotFoundError(address)

            if isinstance(result, Malformed):
                raise InvalidKeyError(
                    "Unable to parse key for '{}': {}".format(
                        address, result.reason
                    )
                )

            self.keys.add(result.key)

        return self

    def result(self, armor=False):
        """Encrypt the data for all recipients.

        Each recipient key is passed as `--trusted-key` for this invocation
        only, so that keys imported without ownertrust can be used. The
        keyring's trust database is not changed.

        Arguments:
          armor (optional): If True, return ASCII armored output.

        Raises:
          securesystemslib.exceptions.FormatError: No recipients were added.

          CommandError: gpg fails to encrypt.

        Returns:
          The encrypted bytes.

        """
        if not self.keys:
            raise FormatError("at least one recipient is required to encrypt")

        args = []
        for key in sorted(self.keys, key=lambda k: k.email):
            # Older gpg only accept long keyids as trusted keys
            args += ["--recipient", key.keyid, "--trusted-key", key.keyid]

        if armor:
            args.append("--armor")

        LOG.info(
            "Encrypting {} bytes for {}".format(
                len(self.data), ", ".join(sorted(k.email for k in self.keys))
            )
        )

        process = self.context.run(args + ENCRYPT_ARGS, input=self.data)
        return process.stdout


def encrypt(context, data, recipients, armor=False):
    """Encrypt data for a list of recipient email addresses.

    See Encrypt.for_recipients and Encrypt.result for exceptions.

    """
    return Encrypt(context, data).for_recipients(recipients).result(armor=armor)
