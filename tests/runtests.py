#!/usr/bin/env python

# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  runtests.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Script to search, load and run gpgr tests using the Python `unittest`
  framework.
"""

import sys
from unittest import TextTestRunner, defaultTestLoader

suite = defaultTestLoader.discover(start_dir=".")
result = TextTestRunner(verbosity=2, buffer=True).run(suite)
sys.exit(0 if result.wasSuccessful() else 1)
