# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  settings.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  A central place to define default settings that can be used throughout the
  package.

  Defaults can be changed,
   - here (hardcoded),
   - programmatically, e.g.
     ```
     import gpgr.settings
     gpgr.settings.GPG_COMMAND = "/usr/local/bin/gpg2"
     ```
  - or, when using gpgr via the command line tool, with environment variables
    or RCfiles, see the `gpgr.user_settings` module

"""
# The debug setting is used to set to the gpgr base logger to logging.DEBUG
DEBUG = False

# Name or path of the gpg executable, looked up on the PATH if not absolute
GPG_COMMAND = "gpg"

# Path to a gpg home directory, if None gpg uses its default keyring
GPG_HOME = None

# Max wall-clock time in seconds for a single gpg invocation, None disables
# the deadline
SUBPROCESS_TIMEOUT = 60

# Max time in seconds a single readiness wait on the child's pipes may block
SELECT_TIMEOUT = 10

# Max number of bytes written to or read from a child pipe at once
PIPE_CHUNK_SIZE = 65535

# Files matching these patterns are ignored when importing keys from a
# directory (see `gpgr.keys.import_keys_at`)
KEY_FILE_EXCLUDE_PATTERNS = [".*", "*~", "*.md", "*.txt"]
