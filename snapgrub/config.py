# Copyright Red Hat
#
# snapgrub/config.py - Snapgrub configuration
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.config`` module reads the snapgrub configuration from a
shell style configuration file and from the process environment.

The configuration file contains ``NAME="value"`` assignments, one per
line, and may contain comments. Values found in the environment
override values read from the file, so that settings exported by
``grub-mkconfig`` (for instance ``GRUB_CMDLINE_LINUX``) are honoured.
"""
from os import environ as os_environ
from os.path import exists as path_exists
import logging
import shlex

from snapgrub import *
from snapgrub.snapshot import parse_sort_key


# Module logging configuration
_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Environment variable naming an alternate configuration file.
SNAPGRUB_CONFIG_ENV = "SNAPGRUB_CONFIG"

#: Distributor name used in the default submenu name.
_GRUB_DISTRIBUTOR = "GRUB_DISTRIBUTOR"
_DEFAULT_DISTRIBUTOR = "Linux"

_BOOL = "bool"
_INT = "int"
_STR = "str"
_LIST = "list"

_TRUES = ["true", "yes", "1", "on"]

#
# Map of configuration variable names to (attribute, type) tuples: to
# add a new option add an entry here and a matching attribute with a
# default value to ``SnapgrubConfig``.
#
_CFG_VARS = {
    "GRUB_BTRFS_DISABLE": ("disable", _BOOL),
    "GRUB_BTRFS_SUBMENUNAME": ("submenu_name", _STR),
    "GRUB_BTRFS_PREFIXENTRY": ("prefix_entry", _STR),
    "GRUB_BTRFS_LIMIT": ("limit", _INT),
    "GRUB_BTRFS_SUBVOLUME_SORT": ("sort", _STR),
    "GRUB_BTRFS_SNAPPER_CONFIG": ("snapper_config", _STR),
    "GRUB_BTRFS_GRUB_DIRNAME": ("grub_dirname", _STR),
    "GRUB_BTRFS_BOOT_DIRNAME": ("boot_dirname", _STR),
    "GRUB_BTRFS_SCRIPT_CHECK": ("script_check", _STR),
    "GRUB_BTRFS_DISABLE_PROTECTION_SUBMENU": ("unrestricted", _BOOL),
    "GRUB_BTRFS_PROTECTION_AUTHORIZED_USERS": ("authorized_users", _STR),
    "GRUB_BTRFS_OVERRIDE_BOOT_PARTITION_DETECTION": (
        "override_boot_partition_detection",
        _BOOL,
    ),
    "GRUB_BTRFS_NKERNEL": ("custom_kernels", _LIST),
    "GRUB_BTRFS_NINIT": ("custom_initramfs", _LIST),
    "GRUB_BTRFS_CUSTOM_MICROCODE": ("custom_microcode", _LIST),
    "GRUB_BTRFS_IGNORE_SPECIFIC_PATH": ("ignore_specific_path", _LIST),
    "GRUB_BTRFS_IGNORE_PREFIX_PATH": ("ignore_prefix_path", _LIST),
    "GRUB_BTRFS_TITLE_FORMAT": ("title_format", _STR),
    "GRUB_BTRFS_DISPLAY_PATH_SNAPSHOT": ("display_path_snapshot", _BOOL),
    "GRUB_BTRFS_SHOW_SNAPSHOTS_FOUND": ("show_snapshots_found", _BOOL),
    "GRUB_BTRFS_SHOW_TOTAL_SNAPSHOTS_FOUND": ("show_total_snapshots_found", _BOOL),
    "GRUB_BTRFS_SNAPSHOT_KERNEL_PARAMETERS": ("kernel_parameters", _STR),
    "GRUB_BTRFS_ROOTFLAGS": ("rootflags", _STR),
    "GRUB_CMDLINE_LINUX": ("cmdline_linux", _STR),
    "GRUB_CMDLINE_LINUX_DEFAULT": ("cmdline_linux_default", _STR),
    "GRUB_DISABLE_LINUX_UUID": ("disable_linux_uuid", _BOOL),
}


def _convert_value(name, value, value_type):
    """Convert the string ``value`` of variable ``name`` to ``value_type``."""
    if value_type == _BOOL:
        return value.strip().lower() in _TRUES
    if value_type == _INT:
        try:
            return int(value.strip())
        except ValueError as err:
            raise SnapgrubConfigError(
                f"Invalid integer value for {name}: '{value}'"
            ) from err
    if value_type == _LIST:
        try:
            return shlex.split(value)
        except ValueError as err:
            raise SnapgrubConfigError(
                f"Invalid list value for {name}: '{value}'"
            ) from err
    return value


def _read_config_file(path):
    """Read ``NAME=value`` assignments from the shell style configuration
    file at ``path`` and return them as a dictionary.
    """
    values = {}
    with open(path, "r") as f:
        for line in f.readlines():
            if blank_or_comment(line):
                continue
            try:
                (name, value) = parse_name_value(line, allow_empty=True)
            except ValueError as err:
                _log_warn("Ignoring malformed line in %s: %s", path, err)
                continue
            values[name] = value or ""
    return values


def _read_snapgrub_config(path=None, environ=None):
    """Read snapgrub configuration values from the file at ``path`` and
    the ``environ`` mapping and return them as a ``SnapgrubConfig``.

    :param path: The configuration file to read, or ``None`` to use the
                 file named by ``SNAPGRUB_CONFIG`` or the default path.
    :param environ: The environment mapping, or ``None`` for
                    ``os.environ``.
    :rtype: SnapgrubConfig
    :raises: SnapgrubConfigError if a value is invalid.
    """
    environ = os_environ if environ is None else environ
    explicit = path or environ.get(SNAPGRUB_CONFIG_ENV)
    path = explicit or DEFAULT_SNAPGRUB_CONFIG_PATH

    values = {}
    if path_exists(path):
        _log_debug("Reading snapgrub configuration from '%s'", path)
        values.update(_read_config_file(path))
    elif explicit:
        raise SnapgrubConfigError(f"Configuration file not found: {path}")
    else:
        _log_debug("No configuration file at '%s': using defaults", path)

    for name in list(_CFG_VARS.keys()) + [_GRUB_DISTRIBUTOR]:
        if name in environ:
            values[name] = environ[name]

    distributor = values.get(_GRUB_DISTRIBUTOR) or _DEFAULT_DISTRIBUTOR
    attrs = {"submenu_name": "%s snapshots" % distributor.strip()}
    for name, (attr, value_type) in _CFG_VARS.items():
        if name not in values:
            continue
        _log_debug("Found %s", name)
        attrs[attr] = _convert_value(name, values[name], value_type)

    sc = SnapgrubConfig(**attrs)

    if sc.title_format not in TITLE_FORMATS:
        raise SnapgrubConfigError(f"Unknown title format: '{sc.title_format}'")
    parse_sort_key(sc.sort)
    if sc.limit < 0:
        raise SnapgrubConfigError(f"Invalid snapshot limit: {sc.limit}")

    _log_debug("Read configuration: %s", repr(sc))
    return sc


def load_snapgrub_config(path=None, environ=None):
    """Load snapgrub configuration values and make them the active
    configuration.

    :param path: The configuration file to read, or ``None`` for the
                 default.
    :param environ: The environment mapping, or ``None`` for
                    ``os.environ``.
    :rtype: SnapgrubConfig
    """
    sc = _read_snapgrub_config(path=path, environ=environ)
    set_snapgrub_config(sc)
    return sc


__all__ = [
    "SNAPGRUB_CONFIG_ENV",
    "load_snapgrub_config",
]

# vim: set et ts=4 sw=4 :
