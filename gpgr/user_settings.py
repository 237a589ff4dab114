# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  user_settings.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides methods to parse environment variables (`get_env`) and RCfiles
  (`get_rc`) and to override default settings (`set_settings`) defined in the
  `gpgr.settings` module.

  Check out the respective docstrings to learn about the requirements for
  environment variables and RCfiles (includes examples).

"""
import configparser
import logging
import math
import os

import gpgr.settings

# Inherits from gpgr base logger (c.f. gpgr.log)
LOG = logging.getLogger(__name__)


USER_PATH = os.path.expanduser("~")

# Prefix required by environment variables to be considered as gpgr settings
ENV_PREFIX = "GPGR_"

# List of considered rcfile paths in the order they get parsed and overridden,
# i.e. the same setting in `/etc/gpgr/config` and `.gpgrrc` (cwd) uses the
# latter
RC_PATHS = [
    os.path.join("/etc", "gpgr", "config"),
    os.path.join("/etc", "gpgrrc"),
    os.path.join(USER_PATH, ".config", "gpgr", "config"),
    os.path.join(USER_PATH, ".config", "gpgr"),
    os.path.join(USER_PATH, ".gpgr", "config"),
    os.path.join(USER_PATH, ".gpgrrc"),
    ".gpgrrc",
]

# List of settings, for which defaults exist in `settings.py`
GPGR_SETTINGS = [
    "GPG_COMMAND",
    "GPG_HOME",
    "SUBPROCESS_TIMEOUT",
    "SELECT_TIMEOUT",
    "KEY_FILE_EXCLUDE_PATTERNS",
]


# Settings given in seconds, converted to float. "none" disables a timeout.
TIMEOUT_SETTINGS = ["SUBPROCESS_TIMEOUT", "SELECT_TIMEOUT"]


def _as_seconds(value):
    """Return a timeout setting `value` as float, or None for 'none'.

    Raises:
      ValueError: The value is neither a positive number nor 'none'.

    """
    if isinstance(value, list):
        raise ValueError("expected a number, got '{}'".format(":".join(value)))

    if value.strip().lower() == "none":
        return None

    seconds = float(value)
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError("expected a positive number, got '{}'".format(value))

    return seconds


def _colon_split(value):
    """If `value` contains colons, return a list split at colons,
    return value otherwise."""
    value_list = value.split(":")
    if len(value_list) > 1:
        return value_list

    return value


def get_env():
    """Parse environment for variables with prefix `ENV_PREFIX` and return
    a dict of key-value pairs.

    The prefix `ENV_PREFIX` is stripped from the keys in the returned dict.

    Values that contain colons (:) are split at the position of the colons and
    converted into a list.

    Example:

    ```
    # Exporting variables in e.g. bash
    export GPGR_GPG_HOME='/home/user/.gnupg-work'
    export GPGR_KEY_FILE_EXCLUDE_PATTERNS='*.txt:README*'
    export GPGR_SUBPROCESS_TIMEOUT='30'
    ```

    produces

    ```
    {
      "GPG_HOME": "/home/user/.gnupg-work",
      "KEY_FILE_EXCLUDE_PATTERNS": ["*.txt", "README*"],
      "SUBPROCESS_TIMEOUT": "30"
    }
    ```

    Returns:
      A dictionary containing the parsed key-value pairs.

    """
    env_dict = {}

    for name, value in os.environ.items():
        if name.startswith(ENV_PREFIX) and len(name) > len(ENV_PREFIX):
            stripped_name = name[len(ENV_PREFIX) :]

            env_dict[stripped_name] = _colon_split(value)

    return env_dict


def get_rc():
    """Read RCfiles from the paths defined in `RC_PATHS` and return a
    dictionary with all parsed key-value pairs.

    The RCfile format is as expected by Python's builtin `ConfigParser` with
    the addition that values that contain colons (:) are split at the position
    of the colons and converted into a list.

    Section titles in RCfiles are ignored when parsing the key-value pairs.
    However, there has to be at least one section defined.

    The paths in `RC_PATHS` are ordered in reverse precedence, i.e. each file's
    settings override a previous file's settings, e.g. a setting defined in
    `.gpgrrc` (in the current working dir) overrides the same setting defined
    in `~/.gpgrrc` (in the user's home dir) and so on ...

    Example:

    ```
    # E.g. file `.gpgrrc` in current working directory
    [gpgr setting]
    GPG_COMMAND = gpg2
    KEY_FILE_EXCLUDE_PATTERNS = *.txt:README*
    ```

    produces

    ```
    {
      "GPG_COMMAND": "gpg2",
      "KEY_FILE_EXCLUDE_PATTERNS": ["*.txt", "README*"]
    }
    ```

    Side Effects:
      Reads files from disk.

    Returns:
      A dictionary containing the parsed key-value pairs.

    """
    rc_dict = {}

    config = configparser.ConfigParser()
    # Reset `optionxform`'s default case conversion to enable case-sensitivity
    config.optionxform = str
    config.read(RC_PATHS)

    for section in config.sections():
        for name, value in config.items(section):
            rc_dict[name] = _colon_split(value)

    return rc_dict


def set_settings():
    """Call functions that read gpgr related environment variables and RCfiles
    and override variables in `settings.py` with the retrieved values, if they
    are whitelisted in `GPGR_SETTINGS`.

    Settings defined in RCfiles take precedence over settings defined in
    environment variables.

    Values of `TIMEOUT_SETTINGS` are converted to float seconds, or to None
    for "none". Invalid values are logged and the default is kept.

    Side Effects:
      Reads environment variables and files from disk and modifies
      gpgr.settings.

    """
    user_settings = get_env()
    user_settings.update(get_rc())

    # If the user has specified one of the settings whitelisted in
    # GPGR_SETTINGS per envvar or rcfile, override the item in `settings.py`
    for setting in GPGR_SETTINGS:
        user_setting = user_settings.get(setting)
        if not user_setting:
            default_setting = getattr(gpgr.settings, setting)
            LOG.info("Setting (default): {0}={1}".format(setting, default_setting))
            continue

        if setting in TIMEOUT_SETTINGS:
            try:
                user_setting = _as_seconds(user_setting)

            except ValueError as e:
                LOG.warning("Ignoring setting {0}: {1}".format(setting, e))
                continue

        LOG.info("Setting (user): {0}={1}".format(setting, user_setting))
        setattr(gpgr.settings, setting, user_setting)
