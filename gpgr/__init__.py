# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
Configure base logger for gpgr (see gpgr.log for details).

"""
import gpgr.log

# gpgr version
__version__ = "1.0.0"
