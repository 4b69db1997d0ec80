# Copyright Red Hat
#
# snapgrub/btrfs.py - Snapgrub btrfs storage integration
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``snapgrub.btrfs`` module contains functions and constants
needed to obtain information from the ``btrfs`` tool about the
subvolumes and snapshots present on the system.
"""
from subprocess import run, CalledProcessError
import logging

from snapgrub import *

# Module logging configuration
_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: The btrfs command
BTRFS = "btrfs"

#: The file system type name reported for btrfs.
BTRFS_FSTYPE = "btrfs"

_CMD_ENV = {
    "LC_ALL": "C",
}


class SnapgrubBtrfsError(SnapgrubError):
    """Snapgrub exception indicating a failure of the btrfs tool."""

    exit_code = EXIT_NOT_SUPPORTED_FS
    hint = "Check that the root file system is a healthy btrfs volume."


def list_subvolumes(path):
    """Return the output lines of ``btrfs subvolume list -sa`` for the
    btrfs file system mounted at ``path``.

    :param path: A path on the btrfs file system to list.
    :returns: A list of output lines.
    :rtype: list
    :raises: MissingToolError if btrfs is not installed, or
             SnapgrubBtrfsError if the listing fails.
    """
    btrfs = find_program(BTRFS)
    if not btrfs:
        raise MissingToolError.missing(BTRFS)
    list_cmd_args = [btrfs, "subvolume", "list", "-sa", path]
    try:
        list_cmd = run(list_cmd_args, env=_CMD_ENV, capture_output=True, check=True)
    except CalledProcessError as err:
        stderr = err.stderr.decode("utf8", errors="replace").strip()
        raise SnapgrubBtrfsError(
            f"Error calling btrfs command: '{' '.join(list_cmd_args)}': {stderr}"
        ) from err
    return list_cmd.stdout.decode("utf8", errors="replace").splitlines()


def subvolume_uuid(path):
    """Return the UUID of the btrfs subvolume containing ``path``, or
    the empty string if it cannot be determined.

    :param path: A path on a btrfs file system.
    :rtype: str
    """
    btrfs = find_program(BTRFS)
    if not btrfs:
        return ""
    show_cmd_args = [btrfs, "subvolume", "show", path]
    try:
        show_cmd = run(show_cmd_args, env=_CMD_ENV, capture_output=True, check=True)
    except CalledProcessError as err:
        _log_debug(
            "Error calling btrfs command: '%s': %s",
            " ".join(show_cmd_args),
            err.stderr.decode("utf8", errors="replace"),
        )
        return ""
    for line in show_cmd.stdout.decode("utf8", errors="replace").splitlines():
        words = line.split()
        if len(words) == 2 and words[0] == "UUID:":
            return words[1]
    return ""


def filesystem_type(path):
    """Return the type of the file system containing ``path`` as
    reported by ``stat -f``.

    :param path: The path to test.
    :rtype: str
    """
    stat_cmd_args = ["stat", "-f", "-c", "%T", path]
    try:
        stat_cmd = run(stat_cmd_args, env=_CMD_ENV, capture_output=True, check=True)
    except FileNotFoundError as err:
        raise MissingToolError.missing("stat") from err
    except CalledProcessError as err:
        _log_debug(
            "Error calling stat command: '%s': %s",
            " ".join(stat_cmd_args),
            err.stderr.decode("utf8", errors="replace"),
        )
        return ""
    return stat_cmd.stdout.decode("utf8").strip()


def check_btrfs_root(path="/"):
    """Raise ``NotSupportedFilesystemError`` unless ``path`` is on a
    btrfs file system.

    :param path: The root file system path.
    :rtype: None
    """
    fstype = filesystem_type(path)
    if fstype != BTRFS_FSTYPE:
        raise NotSupportedFilesystemError(
            f"Root file system '{path}' is not btrfs (found '{fstype or 'unknown'}')"
        )


__all__ = [
    "BTRFS",
    "SnapgrubBtrfsError",
    "list_subvolumes",
    "subvolume_uuid",
    "filesystem_type",
    "check_btrfs_root",
]

# vim: set et ts=4 sw=4 :
