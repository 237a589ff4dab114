# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  key.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides the Key class, which represents a public key as reported by gpg's
  machine-readable listing (`--with-colons`), and the result types returned
  when parsing or looking up keys.

  A listing is a sequence of colon-delimited records, one per line. Each
  primary key starts a new stanza with a 'pub' record, followed by 'fpr',
  'uid', 'sub' and other records belonging to the same key, e.g.:

  ```
  pub:u:2048:17:0247FEC05FDA4350:2010-09-13:::u:John Example <john@example.com>::scESC:
  pub:-:255:22:1C6A0AF29B1B6B6E:1662636000:::-:::scESC::::::23::0:
  fpr:::::::::4B7C7E0B8C3F0B1D6E7E9D0E1C6A0AF29B1B6B6E:
  uid:-::::1662636000::8B4D...::Mark Example <mark@example.com>::::::::::0:
  ```

"""
import datetime
import re

import attr
import dateutil.tz
import iso8601

from gpgr.exceptions import InvalidKeyError

# Field positions in a colon-delimited record (0-based)
FIELD_TYPE = 0
FIELD_VALIDITY = 1
FIELD_KEYID = 4
FIELD_CREATED = 5
FIELD_EXPIRES = 6
FIELD_USER_ID = 9

RECORD_PUBLIC_KEY = "pub"
RECORD_USER_ID = "uid"
RECORD_FINGERPRINT = "fpr"
RECORD_SUB_KEY = "sub"

# Validity values of keys that can be used as recipients: unknown (o, q, -),
# marginal (m), full (f) and ultimate (u). Revoked, expired, invalid and
# disabled keys are skipped.
USABLE_VALIDITY = frozenset("oqmfu-")
VALIDITY_REVOKED = "r"

USER_ID_PATTERN = re.compile(r"^(?P<name>[^<]*)<(?P<email>[^<>\s]+@[^<>\s]+)>")
BARE_EMAIL_PATTERN = re.compile(r"^[^<>\s]+@[^<>\s]+$")
ESCAPE_PATTERN = re.compile(r"\\x([0-9a-fA-F]{2})")


def normalize_address(address):
    """Return address in the form used for comparisons."""
    return address.strip().casefold()


def _unescape(value):
    """Decode the '\\xNN' escapes gpg uses for colons and control characters
    in colon listings."""
    return ESCAPE_PATTERN.sub(lambda match: chr(int(match.group(1), 16)), value)


def _fields(line):
    fields = line.rstrip("\r\n").split(":")
    # Records may omit trailing fields
    fields += [""] * (FIELD_USER_ID + 1 - len(fields))
    return fields


def parse_user_id(user_id):
    """Return (name, email) of a user id string.

    Handles 'Display Name <address@example.com>' and bare addresses. Either
    element is None if not present.

    """
    user_id = _unescape(user_id).strip()

    match = USER_ID_PATTERN.match(user_id)
    if match:
        return match.group("name").strip() or None, match.group("email")

    if BARE_EMAIL_PATTERN.match(user_id):
        return None, user_id

    return user_id or None, None


def parse_timestamp(value):
    """Parse a creation or expiration date field.

    gpg reports seconds since epoch in `--fixed-list-mode` and ISO 8601 dates
    otherwise.

    Raises:
      ValueError: The value is neither.

    Returns:
      A timezone-aware datetime or None for an empty field.

    """
    if not value:
        return None

    if value.isdigit():
        return datetime.datetime.fromtimestamp(int(value), dateutil.tz.UTC)

    try:
        return iso8601.parse_date(value)

    except iso8601.ParseError as e:
        raise ValueError("invalid date '{}'".format(value)) from e


@attr.s(frozen=True)
class Found:
    """A key was parsed or found."""

    key = attr.ib()


@attr.s(frozen=True)
class NotFound:
    """No key matches the looked up address."""

    address = attr.ib()


@attr.s(frozen=True)
class Malformed:
    """A key stanza could not be parsed into identifier and address."""

    reason = attr.ib()
    record = attr.ib(default=None)


@attr.s(frozen=True)
class Key:
    """A public key from the gpg keyring.

    Two keys are equal if they have the same keyid.

    Attributes:
      keyid: The long (16 hex digit) keyid of the primary key.

      email: The email address of the first user id that has one.

      name: The display name of that user id or None.

      emails: The addresses of all user ids that have one, in listing order,
          starting with `email`. Defaults to `(email,)`.

      fingerprint: The primary key fingerprint or None, if not listed.

      validity: gpg's computed validity flag, e.g. 'u' or '-'.

      creation_time, expiration_time: Timezone-aware datetimes or None.

    """

    keyid = attr.ib()
    email = attr.ib(eq=False)
    name = attr.ib(default=None, eq=False)
    fingerprint = attr.ib(default=None, eq=False)
    validity = attr.ib(default="-", eq=False)
    creation_time = attr.ib(default=None, eq=False)
    expiration_time = attr.ib(default=None, eq=False)
    emails = attr.ib(
        default=attr.Factory(lambda self: (self.email,), takes_self=True),
        converter=tuple,
        eq=False,
    )

    @property
    def usable(self):
        """True if the key is not revoked, expired, invalid or disabled."""
        return self.validity in USABLE_VALIDITY

    def matches(self, address):
        """Return True if any of the key's addresses is the passed address,
        ignoring case."""
        normalized = normalize_address(address)
        return any(normalize_address(email) == normalized for email in self.emails)

    @classmethod
    def from_record(cls, record):
        """Create a Key from the colon listing of exactly one key.

        Raises:
          InvalidKeyError: The record has no keyid or no email address.

        """
        result = parse_key_stanza(record.splitlines())
        if isinstance(result, Malformed):
            raise InvalidKeyError(
                "Unable to parse {!r}: {}".format(record, result.reason)
            )

        return result.key


def parse_key_stanza(lines):
    """Parse the records of one primary key.

    Arguments:
      lines: List of colon-delimited records, starting with a 'pub' record.

    Returns:
      Found with the parsed Key, or Malformed if no keyid or no email address
      can be extracted.

    """
    record = "\n".join(lines)
    pub_fields = None
    fingerprint = None
    user_ids = []

    for line in lines:
        if not line.strip():
            continue

        fields = _fields(line)
        record_type = fields[FIELD_TYPE]

        if record_type == RECORD_PUBLIC_KEY and pub_fields is None:
            pub_fields = fields
            if fields[FIELD_USER_ID]:
                user_ids.append(fields[FIELD_USER_ID])

        elif record_type == RECORD_SUB_KEY:
            # Subsequent 'fpr' records belong to subkeys
            if fingerprint is None:
                fingerprint = ""

        elif record_type == RECORD_FINGERPRINT and fingerprint is None:
            fingerprint = fields[FIELD_USER_ID]

        elif (
            record_type == RECORD_USER_ID
            and fields[FIELD_USER_ID]
            and fields[FIELD_VALIDITY] != VALIDITY_REVOKED
        ):
            user_ids.append(fields[FIELD_USER_ID])

    if pub_fields is None:
        return Malformed("no public key record", record)

    keyid = pub_fields[FIELD_KEYID]
    if not re.fullmatch(r"[0-9A-Fa-f]+", keyid):
        return Malformed("no key identifier", record)

    name = None
    emails = []
    for user_id in user_ids:
        uid_name, email = parse_user_id(user_id)
        if not email:
            continue

        if not emails:
            name = uid_name
        if email not in emails:
            emails.append(email)

    if not emails:
        return Malformed("no email address", record)

    try:
        creation_time = parse_timestamp(pub_fields[FIELD_CREATED])
        expiration_time = parse_timestamp(pub_fields[FIELD_EXPIRES])

    except ValueError as e:
        return Malformed(str(e), record)

    return Found(
        Key(
            keyid=keyid,
            email=emails[0],
            name=name,
            emails=emails,
            fingerprint=fingerprint or None,
            validity=pub_fields[FIELD_VALIDITY] or "-",
            creation_time=creation_time,
            expiration_time=expiration_time,
        )
    )


def parse_key_listing(listing):
    """Parse gpg colon listing output into one result per primary key.

    Records preceding the first 'pub' record (e.g. 'tru') are ignored.

    Arguments:
      listing: The decoded output of e.g.
          `gpg --list-public-keys --with-colons --fixed-list-mode`.

    Returns:
      A list of Found and Malformed results in listing order.

    """
    stanzas = []
    for line in listing.splitlines():
        if line.startswith(RECORD_PUBLIC_KEY + ":"):
            stanzas.append([line])

        elif stanzas:
            stanzas[-1].append(line)

    return [parse_key_stanza(stanza) for stanza in stanzas]
