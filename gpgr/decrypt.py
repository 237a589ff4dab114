# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  decrypt.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Decrypt data with a secret key from the gpg keyring. Passphrase handling is
  left to gpg and its agent.

"""
import logging

import gpgr.formats

# Inherits from gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger(__name__)

DECRYPT_ARGS = ["--decrypt"]


def decrypt(context, data):
    """Decrypt gpg encrypted data.

    Arguments:
      context: A gpgr.gpg.GPGContext.

      data: Armored or binary encrypted bytes.

    Raises:
      securesystemslib.exceptions.FormatError: data is not bytes.

      CommandError: gpg fails to decrypt, e.g. because no secret key for any
          of the recipients is available.

    Returns:
      The decrypted bytes.

    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    gpgr.formats.check_bytes(data)

    LOG.info("Decrypting {} bytes".format(len(data)))
    process = context.run(DECRYPT_ARGS, input=data)
    return process.stdout
