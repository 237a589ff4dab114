"""Key records parsed from gpg's machine-readable key listing.

Example usage::

    from gpgr.models import Found, parse_key_listing

    keys = [r.key for r in parse_key_listing(listing) if isinstance(r, Found)]

"""

from gpgr.models.key import (
    Found,
    Key,
    Malformed,
    NotFound,
    normalize_address,
    parse_key_listing,
    parse_key_stanza,
)
