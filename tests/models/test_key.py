#!/usr/bin/env python

# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  test_key.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Test parsing of gpg colon listings into Key objects.

"""
import datetime
import unittest

import dateutil.tz

from gpgr.exceptions import InvalidKeyError
from gpgr.models.key import (
    Found,
    Key,
    Malformed,
    normalize_address,
    parse_key_listing,
    parse_key_stanza,
    parse_timestamp,
    parse_user_id,
)
from tests.common import MARK_KEY_LISTING, PGP_GLOBAL_DIR_KEY_AND_EMAIL


class TestParseKeyListing(unittest.TestCase):
    def test_key_without_email(self):
        """A key whose user id has no address yields no key."""
        results = parse_key_listing(PGP_GLOBAL_DIR_KEY_AND_EMAIL[0])
        self.assertEqual(len(results), 1)
        self.assertIsInstance(results[0], Malformed)
        self.assertEqual(results[0].reason, "no email address")

    def test_key_with_email(self):
        results = parse_key_listing(PGP_GLOBAL_DIR_KEY_AND_EMAIL[1])
        self.assertEqual(len(results), 1)

        key = results[0].key
        self.assertEqual(key.email, "john@example.com")
        self.assertEqual(key.name, "John Example")
        self.assertEqual(key.keyid, "0247FEC05FDA4350")
        self.assertEqual(key.validity, "u")
        self.assertEqual(
            key.creation_time,
            datetime.datetime(2010, 9, 13, tzinfo=dateutil.tz.UTC),
        )
        self.assertIsNone(key.expiration_time)

    def test_mixed_listing(self):
        """Only well-formed stanzas yield keys, in listing order."""
        listing = "\n".join(
            ["tru::1:1662636000:0:3:1:5"]
            + PGP_GLOBAL_DIR_KEY_AND_EMAIL
            + MARK_KEY_LISTING
        )
        keys = [r.key for r in parse_key_listing(listing) if isinstance(r, Found)]
        self.assertEqual(
            [k.email for k in keys], ["john@example.com", "mark@example.com"]
        )

    def test_uid_and_fpr_records(self):
        """Address comes from the uid record, fingerprint from the primary
        key's fpr record, not the subkey's."""
        result = parse_key_stanza(MARK_KEY_LISTING)
        key = result.key

        self.assertEqual(key.keyid, "1C6A0AF29B1B6B6E")
        self.assertEqual(key.email, "mark@example.com")
        self.assertEqual(key.name, "Mark Example")
        self.assertEqual(key.fingerprint, "4B7C7E0B8C3F0B1D6E7E9D0E1C6A0AF29B1B6B6E")
        self.assertEqual(
            key.creation_time,
            datetime.datetime(2022, 9, 8, 11, 20, tzinfo=dateutil.tz.UTC),
        )

    def test_first_uid_with_address_is_used(self):
        stanza = [
            "pub:-:2048:1:9710B89BCA57AD7C:1662636000:::-:::scSC:",
            "uid:-::::1662636000::AAAA::Nameless Key::",
            "uid:-::::1662636000::BBBB::<second@example.com>::",
            "uid:-::::1662636000::CCCC::third@example.com::",
        ]
        key = parse_key_stanza(stanza).key
        self.assertEqual(key.email, "second@example.com")
        self.assertEqual(key.emails, ("second@example.com", "third@example.com"))
        self.assertIsNone(key.name)

    def test_all_user_id_addresses_are_kept(self):
        """Every address of a key with several user ids matches it, revoked
        user ids are ignored."""
        stanza = [
            "pub:u:255:22:0735DD83D51731CA:1662636000:::u:::scESC::::::ed25519::0:",
            "fpr:::::::::5E2F1A6B3C0D9E8F7A6B5C4D0735DD83D51731CA:",
            "uid:u::::1662636000::AAAA::Alice <alice@a.example>::::::::::0:",
            "uid:u::::1662636001::BBBB::Alice Work <alice@b.example>::::::::::0:",
            "uid:u::::1662636002::CCCC::Alice Again <ALICE@a.example>::::::::::0:",
            "uid:r::::1662636003::DDDD::Alice Old <alice@old.example>::::::::::0:",
        ]
        key = parse_key_stanza(stanza).key

        self.assertEqual(key.email, "alice@a.example")
        self.assertEqual(key.name, "Alice")
        self.assertEqual(
            key.emails, ("alice@a.example", "alice@b.example", "ALICE@a.example")
        )
        self.assertTrue(key.matches("alice@a.example"))
        self.assertTrue(key.matches(" Alice@B.example "))
        self.assertFalse(key.matches("alice@old.example"))
        self.assertFalse(key.matches("alice@c.example"))

    def test_malformed_stanzas(self):
        for stanza, reason in [
            (["uid:-::::::::John <john@example.com>:"], "no public key record"),
            (["pub:u:2048:17::2010-09-13:::u:John <john@example.com>::"],
                "no key identifier"),
            (["pub:u:2048:17:0247FEC05FDA4350:yesterday:::u:"
                "John <john@example.com>::"], "invalid date 'yesterday'"),
        ]:
            result = parse_key_stanza(stanza)
            self.assertIsInstance(result, Malformed)
            self.assertEqual(result.reason, reason)
            self.assertEqual(result.record, "\n".join(stanza))

    def test_empty_listing(self):
        self.assertEqual(parse_key_listing(""), [])


class TestUserIdParsing(unittest.TestCase):
    def test_parse_user_id(self):
        for user_id, expected in [
            ("John Example <john@example.com>", ("John Example", "john@example.com")),
            ("John (work) <john@example.com>", ("John (work)", "john@example.com")),
            ("<john@example.com>", (None, "john@example.com")),
            ("john@example.com", (None, "john@example.com")),
            ("PGP Global Directory Verification Key",
                ("PGP Global Directory Verification Key", None)),
            ("", (None, None)),
        ]:
            self.assertEqual(parse_user_id(user_id), expected)

    def test_escaped_colon(self):
        self.assertEqual(
            parse_user_id("Example\\x3a Ops <ops@example.com>"),
            ("Example: Ops", "ops@example.com"),
        )

    def test_parse_timestamp(self):
        self.assertIsNone(parse_timestamp(""))
        self.assertEqual(
            parse_timestamp("0"),
            datetime.datetime(1970, 1, 1, tzinfo=dateutil.tz.UTC),
        )
        self.assertEqual(
            parse_timestamp("2004-12-06"),
            datetime.datetime(2004, 12, 6, tzinfo=dateutil.tz.UTC),
        )
        with self.assertRaises(ValueError):
            parse_timestamp("not a date")


class TestKey(unittest.TestCase):
    def test_from_record(self):
        key = Key.from_record(PGP_GLOBAL_DIR_KEY_AND_EMAIL[1])
        self.assertEqual(key.keyid, "0247FEC05FDA4350")

        with self.assertRaises(InvalidKeyError):
            Key.from_record(PGP_GLOBAL_DIR_KEY_AND_EMAIL[0])

        with self.assertRaises(InvalidKeyError):
            Key.from_record("")

    def test_equality_by_keyid(self):
        key = Key(keyid="0247FEC05FDA4350", email="john@example.com")
        same = Key(keyid="0247FEC05FDA4350", email="john@example.org", name="J")
        other = Key(keyid="9710B89BCA57AD7C", email="john@example.com")

        self.assertEqual(key, same)
        self.assertNotEqual(key, other)
        self.assertEqual(len({key, same, other}), 2)

    def test_matches_ignores_case(self):
        key = Key(keyid="0247FEC05FDA4350", email="John@Example.com")
        self.assertTrue(key.matches("john@example.com"))
        self.assertTrue(key.matches(" JOHN@EXAMPLE.COM "))
        self.assertFalse(key.matches("bigjohn@example.com"))
        self.assertEqual(normalize_address(" A@B.c"), "a@b.c")

    def test_emails(self):
        key = Key(keyid="0247FEC05FDA4350", email="john@example.com")
        self.assertEqual(key.emails, ("john@example.com",))

        work = Key(keyid="0247FEC05FDA4350", email="john@example.com",
            emails=["john@example.com", "john@work.example"])
        self.assertEqual(work.emails, ("john@example.com", "john@work.example"))
        self.assertTrue(work.matches("JOHN@work.example"))
        self.assertEqual(key, work)

    def test_usable(self):
        for validity, usable in [("u", True), ("-", True), ("f", True),
                ("r", False), ("e", False), ("i", False), ("d", False)]:
            key = Key(keyid="0247FEC05FDA4350", email="john@example.com",
                validity=validity)
            self.assertEqual(key.usable, usable, validity)


if __name__ == "__main__":
    unittest.main()
