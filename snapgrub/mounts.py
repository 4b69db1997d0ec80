# Copyright Red Hat
#
# snapgrub/mounts.py - Snapgrub scratch mount support
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``snapgrub.mounts`` module mounts the btrfs top level volume
(``subvolid=5``) read-only at a temporary mount point so that the
boot directories of all snapshots can be inspected.

The mount is acquired with the ``mounted_snapshot_root()`` context
manager: the volume is unmounted and the mount point removed on every
exit path, including exceptions raised while the volume is in use.
"""
from contextlib import contextmanager
from os import rmdir
from os.path import ismount
from subprocess import run, CalledProcessError
from tempfile import mkdtemp
import logging

from snapgrub import *

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_MOUNTS)

_log_debug = _log.debug
_log_debug_mounts = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: The mount command
MOUNT = "mount"

#: The umount command
UMOUNT = "umount"

#: Options used to mount the btrfs top level volume.
TOP_LEVEL_MOUNT_OPTIONS = "ro,subvolid=5"

#: Prefix for temporary mount point names.
MOUNT_POINT_PREFIX = "snapgrub-"

_CMD_ENV = {
    "LC_ALL": "C",
}


class SnapgrubMountError(SnapgrubError):
    """Snapgrub exception indicating a failure to mount or unmount the
    btrfs top level volume.
    """

    exit_code = EXIT_MOUNT
    hint = "Check that the root device can be mounted with 'subvolid=5'."

    @staticmethod
    def invalid_device(device):
        return SnapgrubMountError(f"Invalid mount device: '{device}'")

    @staticmethod
    def mount_failed(device, mount_point, reason):
        return SnapgrubMountError(
            f"Could not mount {device} at {mount_point}: {reason}"
        )


def _mount(device, mount_point):
    mount = find_program(MOUNT)
    if not mount:
        raise MissingToolError.missing(MOUNT)
    mount_cmd_args = [mount, "-o", TOP_LEVEL_MOUNT_OPTIONS, device, mount_point]
    try:
        run(mount_cmd_args, env=_CMD_ENV, capture_output=True, check=True)
    except CalledProcessError as err:
        stderr = err.stderr.decode("utf8", errors="replace").strip()
        raise SnapgrubMountError.mount_failed(device, mount_point, stderr) from err


def _umount(mount_point):
    umount = find_program(UMOUNT)
    if not umount:
        _log_error("Could not unmount %s: %s not found", mount_point, UMOUNT)
        return
    try:
        run(
            [umount, "-l", mount_point],
            env=_CMD_ENV,
            capture_output=True,
            check=True,
        )
    except CalledProcessError as err:
        _log_error("Could not unmount %s: %s", mount_point, err)


@contextmanager
def mounted_snapshot_root(device, tmp_dir=None):
    """Mount the btrfs top level volume of ``device`` read-only at a new
    temporary mount point and yield the mount point path.

    :param device: The btrfs block device to mount.
    :param tmp_dir: The directory in which to create the mount point,
                    or ``None`` for the system default.
    :returns: The path of the mounted top level volume.
    :raises: SnapgrubMountError if the volume cannot be mounted.
    """
    if not device:
        raise SnapgrubMountError.invalid_device(device)

    mount_point = mkdtemp(prefix=MOUNT_POINT_PREFIX, dir=tmp_dir)
    _log_debug_mounts("Created mount point %s", mount_point)
    try:
        _mount(device, mount_point)
        _log_debug_mounts("Mounted %s at %s", device, mount_point)
        yield mount_point
    finally:
        if ismount(mount_point):
            _umount(mount_point)
            _log_debug_mounts("Unmounted %s", mount_point)
        try:
            rmdir(mount_point)
        except OSError as err:
            _log_error("Could not remove mount point %s: %s", mount_point, err)


__all__ = [
    "SnapgrubMountError",
    "mounted_snapshot_root",
]

# vim: set et ts=4 sw=4 :
