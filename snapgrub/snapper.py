# Copyright Red Hat
#
# snapgrub/snapper.py - Snapgrub snapper integration
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``snapgrub.snapper`` module obtains snapshot type and description
metadata from the ``snapper`` snapshot manager, when it is installed
and configured. Snapper is optional: every failure is reported as
"no metadata".
"""
from subprocess import run, CalledProcessError
import logging

from snapgrub import *
from snapgrub.snapshot import parse_manager_list

# Module logging configuration
_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: The snapper command
SNAPPER = "snapper"

_CMD_ENV = {
    "LC_ALL": "C",
}


def list_snapshot_metadata(config_name=DEFAULT_SNAPPER_CONFIG):
    """Return the snapper metadata records for snapper configuration
    ``config_name``, or ``None`` if snapper is unavailable.

    :param config_name: The snapper configuration to list.
    :returns: A list of ``ManagerRecord`` objects or ``None``.
    """
    snapper = find_program(SNAPPER)
    if not snapper:
        _log_debug("snapper not installed: no snapshot metadata")
        return None
    snapper_cmd_args = [snapper, "--no-dbus", "-t", "0", "-c", config_name, "list"]
    try:
        snapper_cmd = run(
            snapper_cmd_args, env=_CMD_ENV, capture_output=True, check=True
        )
    except CalledProcessError as err:
        _log_debug(
            "Error calling snapper command: '%s': %s",
            " ".join(snapper_cmd_args),
            err.stderr.decode("utf8", errors="replace"),
        )
        return None
    lines = snapper_cmd.stdout.decode("utf8", errors="replace").splitlines()
    return parse_manager_list(lines)


__all__ = [
    "SNAPPER",
    "list_snapshot_metadata",
]

# vim: set et ts=4 sw=4 :
