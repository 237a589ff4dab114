# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  keys.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Public keyring operations: listing installed keys, looking up keys by email
  address and importing key material, from memory or from files on disk.

  All functions take a `gpgr.gpg.GPGContext` as first argument.

"""
import logging
import os

from pathspec import GitIgnoreSpec

import gpgr.formats
import gpgr.settings
from gpgr.exceptions import InvalidKeyError, KeyImportError
from gpgr.gpg import SHOW_ONLY_MIN_VERSION
from gpgr.models.key import (
    Found,
    Malformed,
    NotFound,
    normalize_address,
    parse_key_listing,
)

# Inherits from gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger(__name__)

LIST_KEYS_ARGS = ["--list-public-keys", "--with-colons", "--fixed-list-mode"]
SHOW_KEY_ARGS = [
    "--with-colons",
    "--fixed-list-mode",
    "--import-options",
    "show-only",
    "--import",
]
LEGACY_SHOW_KEY_ARGS = ["--with-colons", "--fixed-list-mode"]
IMPORT_ARGS = ["--import", "--quiet", "--yes", "--no-verbose"]


def _decode(output):
    return output.decode("utf-8", "replace")


def _as_bytes(key_material):
    if isinstance(key_material, str):
        return key_material.encode("utf-8")

    gpgr.formats.check_bytes(key_material)
    return key_material


def _list(context, addresses):
    if not addresses:
        process = context.run(LIST_KEYS_ARGS)
        return parse_key_listing(_decode(process.stdout))

    process = context.run(LIST_KEYS_ARGS + addresses, check=False)
    if process.returncode:
        LOG.debug(
            "Key listing for {} returned {}: {}".format(
                addresses, process.returncode, _decode(process.stderr).strip()
            )
        )
        # gpg exits non-zero both if a name matches no key and if the keyring
        # cannot be read. Only the latter fails a listing without names.
        context.run(LIST_KEYS_ARGS)

    return parse_key_listing(_decode(process.stdout))


def list_keys(context, *addresses):
    """List installed public keys.

    Stanzas without keyid or email address, e.g. keys whose user id is a bare
    name, and revoked, expired or disabled keys are skipped.

    Arguments:
      context: A gpgr.gpg.GPGContext.

      *addresses (optional): Only list keys gpg matches for these names. All
          keys are listed if none are passed.

    Raises:
      securesystemslib.exceptions.FormatError: An address is not a str.

      CommandError: gpg cannot be executed, or the keyring cannot be listed.

    Returns:
      A list of gpgr.models.Key.

    """
    addresses = list(addresses)
    gpgr.formats.check_str_list(addresses)

    keys = []
    for result in _list(context, addresses):
        if isinstance(result, Malformed):
            LOG.debug("Skipping key listing entry: {}".format(result.reason))
            continue

        if not result.key.usable:
            LOG.debug(
                "Skipping unusable key {} (validity '{}')".format(
                    result.key.keyid, result.key.validity
                )
            )
            continue

        keys.append(result.key)

    return keys


def lookup_key(context, address):
    """Look up the installed public key for an email address.

    Addresses are compared with the addresses of all user ids of a key,
    ignoring case and surrounding whitespace.

    Arguments:
      context: A gpgr.gpg.GPGContext.

      address: The email address to look up.

    Raises:
      securesystemslib.exceptions.FormatError: The address is not a str.

      CommandError: gpg cannot be executed, or the keyring cannot be listed.

    Returns:
      Found with the first usable matching key, Malformed if gpg reported a
      key for the address that cannot be parsed, NotFound otherwise.

    """
    gpgr.formats.check_str(address)
    normalized = normalize_address(address)

    malformed = None
    for result in _list(context, [address.strip()]):
        if isinstance(result, Found):
            if result.key.usable and result.key.matches(address):
                return result

        elif malformed is None and normalized in result.record.casefold():
            malformed = result

    if malformed is not None:
        return malformed

    return NotFound(address)


def installed_addresses(context):
    """Return the set of normalized email addresses of all user ids of all
    usable keys."""
    return {
        normalize_address(email)
        for key in list_keys(context)
        for email in key.emails
    }


def is_key_installed(context, address):
    """Return True if a usable key for the address is installed."""
    return isinstance(lookup_key(context, address), Found)


def parse_key_material(context, key_material):
    """Parse public key material without importing it.

    Arguments:
      context: A gpgr.gpg.GPGContext.

      key_material: Armored or binary public key data (bytes or str).

    Raises:
      InvalidKeyError: The material contains no key with keyid and email
          address.

      CommandError: gpg cannot be executed.

    Returns:
      The first gpgr.models.Key contained in the material.

    """
    key_material = _as_bytes(key_material)

    if context.is_version_at_least(SHOW_ONLY_MIN_VERSION):
        args = SHOW_KEY_ARGS
    else:  # pragma: no cover
        args = LEGACY_SHOW_KEY_ARGS

    process = context.run(args, input=key_material, check=False)
    listing = _decode(process.stdout)
    if not listing.strip():
        raise InvalidKeyError("Invalid key")

    reasons = []
    for result in parse_key_listing(listing):
        if isinstance(result, Found):
            return result.key
        reasons.append(result.reason)

    raise InvalidKeyError(
        "Unable to parse key material: {}".format(
            ", ".join(reasons) or "no public key record"
        )
    )


def import_key(context, key_material):
    """Import public key material, unless a key for its address is installed.

    Arguments:
      context: A gpgr.gpg.GPGContext.

      key_material: Armored or binary public key data (bytes or str).

    Raises:
      InvalidKeyError: The material contains no key with keyid and email
          address.

      KeyImportError: The key is not listed after gpg imported it.

      CommandError: gpg cannot be executed or fails to import.

    Side Effects:
      Adds the key to the keyring of the context's gpg home directory.

    Returns:
      The installed gpgr.models.Key, which is the already present key if
      there was one.

    """
    key_material = _as_bytes(key_material)
    key = parse_key_material(context, key_material)

    result = lookup_key(context, key.email)
    if isinstance(result, Found):
        LOG.info(
            "Key for '{}' already installed ({})".format(
                key.email, result.key.keyid
            )
        )
        return result.key

    context.run(IMPORT_ARGS, input=key_material)

    result = lookup_key(context, key.email)
    if not isinstance(result, Found):
        raise KeyImportError("Unable to import key for '{}'".format(key.email))

    LOG.info("Imported key {} for '{}'".format(result.key.keyid, key.email))
    return result.key


def _enumerate_key_files(path, exclude_patterns):
    """Return sorted paths of regular files at or below path, which are not
    matched by exclude_patterns (relative to path)."""
    if os.path.isfile(path):
        return [path]

    if not os.path.isdir(path):
        LOG.warning("Path '{}' does not exist, skipping...".format(path))
        return []

    spec = GitIgnoreSpec.from_lines(exclude_patterns)

    file_paths = []
    for root, dirs, files in os.walk(path):
        rel_root = os.path.relpath(root, path)

        def _rel(name):
            return os.path.normpath(os.path.join(rel_root, name)).replace(
                "\\", "/"
            )

        dirs[:] = sorted(d for d in dirs if not spec.match_file(_rel(d) + "/"))

        for name in files:
            if spec.match_file(_rel(name)):
                LOG.debug("Excluding '{}'".format(os.path.join(root, name)))
                continue

            file_paths.append(os.path.join(root, name))

    return sorted(file_paths)


def import_keys_at(context, path, exclude_patterns=None):
    """Import every public key file at a path.

    Files that do not contain a public key are skipped.

    Arguments:
      context: A gpgr.gpg.GPGContext.

      path: A key file or a directory, which is traversed recursively.

      exclude_patterns (optional): gitignore-style patterns, relative to path,
          of files not to import. Default is
          gpgr.settings.KEY_FILE_EXCLUDE_PATTERNS.

    Raises:
      KeyImportError, CommandError: See import_key.

      OSError: A key file cannot be read.

    Side Effects:
      Reads files from disk and adds keys to the keyring.

    Returns:
      A list of the installed gpgr.models.Key, one per key file.

    """
    if exclude_patterns is None:
        exclude_patterns = gpgr.settings.KEY_FILE_EXCLUDE_PATTERNS

    # Settings from envvars or rcfiles are only lists if they contain colons
    if isinstance(exclude_patterns, str):
        exclude_patterns = [exclude_patterns]
    gpgr.formats.check_str_list(exclude_patterns)

    keys = []
    for file_path in _enumerate_key_files(path, exclude_patterns):
        with open(file_path, "rb") as key_file:
            key_material = key_file.read()

        try:
            keys.append(import_key(context, key_material))

        except InvalidKeyError as e:
            LOG.info("Skipping '{}', not a public key: {}".format(file_path, e))

    return keys
