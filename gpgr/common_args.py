# Copyright the gpgr contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  common_args.py

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides a collection of constants that can be used as `*args` or `**kwargs`
  to argparse.ArgumentParser.add_argument() for the command line arguments
  shared by all gpgr subcommands.

  Example Usage:

  ```
  from gpgr.common_args import GPG_HOME_ARGS, GPG_HOME_KWARGS
  parser = argparse.ArgumentParser()
  parser.add_argument(*GPG_HOME_ARGS, **GPG_HOME_KWARGS)
  ```

"""

GPG_COMMAND_ARGS = ["--gpg-command"]
GPG_COMMAND_KWARGS = {
    "dest": "gpg_command",
    "type": str,
    "metavar": "<command>",
    "help": (
        "name or path of the gpg executable. Overrides the command defined in"
        " environment variables or config files. Default is 'gpg'."
    ),
}

GPG_HOME_ARGS = ["--gpg-home"]
GPG_HOME_KWARGS = {
    "dest": "gpg_home",
    "type": str,
    "metavar": "<path>",
    "help": (
        "path to a GPG home directory whose keyring is used. If '--gpg-home'"
        " is not passed, the default GPG home directory is used."
    ),
}

INPUT_ARGS = ["-i", "--input"]
INPUT_KWARGS = {
    "dest": "input",
    "type": str,
    "metavar": "<path>",
    "help": "path to read data from. Default is standard input.",
}

OUTPUT_ARGS = ["-o", "--output"]
OUTPUT_KWARGS = {
    "dest": "output",
    "type": str,
    "metavar": "<path>",
    "help": "path to write the result to. Default is standard output.",
}

EXCLUDE_ARGS = ["--exclude"]
EXCLUDE_KWARGS = {
    "dest": "exclude_patterns",
    "required": False,
    "metavar": "<pattern>",
    "nargs": "+",
    "help": (
        "gitignore-style patterns of files that should not be imported when"
        " importing from a directory. Passed patterns override patterns defined"
        " in environment variables or config files."
    ),
}

VERBOSE_ARGS = ["-v", "--verbose"]
VERBOSE_KWARGS = {
    "dest": "verbose",
    "action": "store_true",
    "help": "show more output",
}

QUIET_ARGS = ["-q", "--quiet"]
QUIET_KWARGS = {
    "dest": "quiet",
    "action": "store_true",
    "help": "suppress all output",
}


def title_case_action_groups(parser):
    """Capitalize the first character of all words in the title of each action
    group of the passed parser."""
    for action_group in parser._action_groups:  # pylint: disable=protected-access
        action_group.title = action_group.title.title()
