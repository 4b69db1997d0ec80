# Copyright Red Hat
#
# snapgrub/probe.py - Snapgrub GRUB device probing
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.probe`` module queries ``grub-probe`` and
``grub-mkrelpath`` for the identity of the root and boot file systems:
device paths, file system UUIDs, the boot file system type and the
platform search hints used in generated ``search`` directives.
"""
from os.path import join as path_join
from subprocess import run, CalledProcessError
import logging

from snapgrub import *
from snapgrub.btrfs import subvolume_uuid

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_PROBE)

_log_debug = _log.debug
_log_debug_probe = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: grub-probe program names, in order of preference.
GRUB_PROBE_NAMES = ("grub-probe", "grub2-probe")

#: grub-mkrelpath program names, in order of preference.
GRUB_MKRELPATH_NAMES = ("grub-mkrelpath", "grub2-mkrelpath")

#: grub-probe targets
TARGET_DEVICE = "device"
TARGET_FS_UUID = "fs_uuid"
TARGET_FS = "fs"
TARGET_HINTS = "hints_string"

#: Directory of stable file system UUID device links.
DISK_BY_UUID = "/dev/disk/by-uuid"

_CMD_ENV = {
    "LC_ALL": "C",
}


class DeviceInfo(object):
    """Identity of the root and boot file systems."""

    root_device = ""
    root_uuid = ""
    root_subvol_uuid = ""
    boot_device = ""
    boot_uuid = ""
    boot_subvol_uuid = ""
    boot_fs = ""
    boot_hints = ""
    boot_relpath = ""

    _attrs = [
        "root_device",
        "root_uuid",
        "root_subvol_uuid",
        "boot_device",
        "boot_uuid",
        "boot_subvol_uuid",
        "boot_fs",
        "boot_hints",
        "boot_relpath",
    ]

    def __init__(self, **kwargs):
        for name, value in kwargs.items():
            if name not in self._attrs:
                raise TypeError("Unknown DeviceInfo attribute: %s" % name)
            setattr(self, name, value or "")

    def __repr__(self):
        args = ", ".join('%s="%s"' % (attr, getattr(self, attr)) for attr in self._attrs)
        return "DeviceInfo(%s)" % args


def _grub_probe(args):
    """Run grub-probe with ``args`` and return its stripped output, or
    the empty string if the probe fails.
    """
    grub_probe = find_program(*GRUB_PROBE_NAMES)
    if not grub_probe:
        raise MissingToolError.missing(GRUB_PROBE_NAMES[0])
    probe_cmd_args = [grub_probe] + args
    try:
        probe_cmd = run(probe_cmd_args, env=_CMD_ENV, capture_output=True, check=True)
    except CalledProcessError as err:
        _log_debug(
            "Error calling grub-probe: '%s': %s",
            " ".join(probe_cmd_args),
            err.stderr.decode("utf8", errors="replace"),
        )
        return ""
    value = probe_cmd.stdout.decode("utf8", errors="replace").strip()
    _log_debug_probe("grub-probe %s: '%s'", " ".join(args), value)
    return value


def _probe_device(device, target):
    return _grub_probe(["--device", device, f"--target={target}"])


def _first_device_of(path):
    """Return the first device reported by grub-probe for ``path``.

    A multi-device btrfs file system is reported as one device per
    line: any member device identifies the file system.
    """
    devices = _grub_probe([f"--target={TARGET_DEVICE}", path]).splitlines()
    return devices[0].strip() if devices else ""


def grub_relative_path(path):
    """Return ``path`` relative to the root of its file system, as seen
    by GRUB.

    :param path: An absolute path.
    :rtype: str
    """
    mkrelpath = find_program(*GRUB_MKRELPATH_NAMES)
    if not mkrelpath:
        raise MissingToolError.missing(GRUB_MKRELPATH_NAMES[0])
    try:
        relpath_cmd = run(
            [mkrelpath, path], env=_CMD_ENV, capture_output=True, check=True
        )
    except CalledProcessError as err:
        _log_debug(
            "Error calling grub-mkrelpath for '%s': %s",
            path,
            err.stderr.decode("utf8", errors="replace"),
        )
        return path
    return relpath_cmd.stdout.decode("utf8", errors="replace").strip()


def probe_devices(config=None, root="/"):
    """Probe the root and boot file systems and return a ``DeviceInfo``.

    :param config: The ``SnapgrubConfig`` supplying the boot directory,
                   or ``None`` for the active configuration.
    :param root: The root file system mount point.
    :rtype: DeviceInfo
    """
    config = config or get_snapgrub_config()
    boot_dirname = config.boot_dirname

    root_device = _first_device_of(root)
    boot_device = _first_device_of(boot_dirname)

    info = DeviceInfo(
        root_device=root_device,
        root_uuid=_probe_device(root_device, TARGET_FS_UUID) if root_device else "",
        root_subvol_uuid=subvolume_uuid(root),
        boot_device=boot_device,
        boot_uuid=_probe_device(boot_device, TARGET_FS_UUID) if boot_device else "",
        boot_subvol_uuid=subvolume_uuid(boot_dirname),
        boot_fs=_probe_device(boot_device, TARGET_FS) if boot_device else "",
        boot_hints=_probe_device(boot_device, TARGET_HINTS) if boot_device else "",
        boot_relpath=grub_relative_path(boot_dirname),
    )
    _log_debug("Probed devices: %s", repr(info))
    return info


def top_level_device(info):
    """Return the device from which the btrfs top level volume of the
    root file system is mounted.

    The stable ``/dev/disk/by-uuid`` link is preferred when the root
    file system UUID is known, since it names the whole file system
    rather than a single member device.

    :param info: A ``DeviceInfo``.
    :rtype: str
    """
    if info.root_uuid:
        return path_join(DISK_BY_UUID, info.root_uuid)
    return info.root_device


def linux_root_device(info, config=None):
    """Return the ``root=`` value for generated kernel command lines.

    The root file system UUID is used unless it is unknown or UUID
    root devices are disabled by ``GRUB_DISABLE_LINUX_UUID``.

    :param info: A ``DeviceInfo``.
    :param config: The ``SnapgrubConfig`` to use.
    :rtype: str
    """
    config = config or get_snapgrub_config()
    if not info.root_uuid or config.disable_linux_uuid:
        return info.root_device
    return f"UUID={info.root_uuid}"


__all__ = [
    "DeviceInfo",
    "grub_relative_path",
    "probe_devices",
    "top_level_device",
    "linux_root_device",
]

# vim: set et ts=4 sw=4 :
