# Copyright Red Hat
#
# snapgrub/_snapgrub.py - Snapgrub package initialisation
#
# SPDX-License-Identifier: GPL-2.0-only
"""This module provides the declarations, classes, and functions exposed
in the main ``snapgrub`` module. Users of snapgrub should not import this
module directly: it will be imported automatically with the top level
module.
"""
from os.path import join as path_join
from shutil import which
import logging
import shlex
import string

#: The location of the system ``/boot`` directory.
DEFAULT_BOOT_DIRNAME = "/boot"

#: The location of the GRUB configuration directory.
DEFAULT_GRUB_DIRNAME = path_join(DEFAULT_BOOT_DIRNAME, "grub")

#: The default shell-style configuration file.
DEFAULT_SNAPGRUB_CONFIG_PATH = "/etc/default/grub-btrfs/config"

#: Name of the generated snapshot menu file.
SNAPGRUB_CFG_FILE = "grub-btrfs.cfg"

#: Name of the temporary file used while generating the menu.
SNAPGRUB_NEW_FILE = "grub-btrfs.new"

#: Generated file mode
SNAPGRUB_CFG_MODE = 0o600

#: Number of generated menu entries above which GRUB may struggle.
ENTRY_WARNING_THRESHOLD = 250

#: Default number of snapshots to show.
DEFAULT_LIMIT = 50

#: Default entry title prefix.
DEFAULT_PREFIX_ENTRY = "Snapshot:"

#: Default snapshot sort order.
DEFAULT_SORT = "descending"

#: Default snapper configuration name.
DEFAULT_SNAPPER_CONFIG = "root"

#: Default GRUB syntax checker.
DEFAULT_SCRIPT_CHECK = "grub-script-check"

#: Default exact paths to ignore.
DEFAULT_IGNORE_SPECIFIC_PATH = ["@"]

#: Default path prefixes to ignore.
DEFAULT_IGNORE_PREFIX_PATH = ["var/lib/docker", "@var/lib/docker", "@/var/lib/docker"]

#
# Title formats
#

#: Prefix, timestamp and name.
TITLE_FMT_PREFIX_DATE_NAME = "p/d/n"
#: Prefix and timestamp.
TITLE_FMT_PREFIX_DATE = "p/d"
#: Prefix and name.
TITLE_FMT_PREFIX_NAME = "p/n"
#: Timestamp and name.
TITLE_FMT_DATE_NAME = "d/n"
#: Name and timestamp.
TITLE_FMT_NAME_DATE = "n/d"
#: Prefix only.
TITLE_FMT_PREFIX = "p"
#: Timestamp only.
TITLE_FMT_DATE = "d"
#: Name only.
TITLE_FMT_NAME = "n"

#: Map of title format codes to the ordered title parts they select.
TITLE_FORMATS = {
    TITLE_FMT_PREFIX_DATE_NAME: ("prefix", "date", "name"),
    TITLE_FMT_PREFIX_DATE: ("prefix", "date"),
    TITLE_FMT_PREFIX_NAME: ("prefix", "name"),
    TITLE_FMT_DATE_NAME: ("date", "name"),
    TITLE_FMT_NAME_DATE: ("name", "date"),
    TITLE_FMT_PREFIX: ("prefix",),
    TITLE_FMT_DATE: ("date",),
    TITLE_FMT_NAME: ("name",),
}

DEFAULT_TITLE_FORMAT = TITLE_FMT_PREFIX_DATE_NAME

#
# Process exit codes
#

EXIT_SUCCESS = 0
EXIT_CONFIG = 1
EXIT_NOT_SUPPORTED_FS = 2
EXIT_MISSING_TOOL = 3
EXIT_NO_KERNEL = 4
EXIT_NO_INITRAMFS = 5
EXIT_NO_SNAPSHOTS = 6
EXIT_MOUNT = 7
EXIT_SCRIPT_CHECK = 8

#
# Logging
#

SNAPGRUB_LOG_DEBUG = logging.DEBUG
SNAPGRUB_LOG_INFO = logging.INFO
SNAPGRUB_LOG_WARN = logging.WARNING
SNAPGRUB_LOG_ERROR = logging.ERROR

_log_levels = (
    SNAPGRUB_LOG_DEBUG,
    SNAPGRUB_LOG_INFO,
    SNAPGRUB_LOG_WARN,
    SNAPGRUB_LOG_ERROR,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Snapgrub debugging levels
SNAPGRUB_DEBUG_CATALOG = 1
SNAPGRUB_DEBUG_ARTIFACTS = 2
SNAPGRUB_DEBUG_MENU = 4
SNAPGRUB_DEBUG_COMMAND = 8
SNAPGRUB_DEBUG_MOUNTS = 16
SNAPGRUB_DEBUG_PROBE = 32
SNAPGRUB_DEBUG_ALL = (
    SNAPGRUB_DEBUG_CATALOG
    | SNAPGRUB_DEBUG_ARTIFACTS
    | SNAPGRUB_DEBUG_MENU
    | SNAPGRUB_DEBUG_COMMAND
    | SNAPGRUB_DEBUG_MOUNTS
    | SNAPGRUB_DEBUG_PROBE
)

__debug_mask = 0


class SnapgrubError(Exception):
    """Base class of all Snapgrub exceptions.

    Each subclass carries the process exit status used by the command
    line tool and a short remediation hint shown to the user.
    """

    exit_code = EXIT_CONFIG
    hint = ""


class SnapgrubConfigError(SnapgrubError):
    """Invalid snapgrub configuration value."""

    exit_code = EXIT_CONFIG
    hint = "Check the snapgrub configuration file and environment."


class NotSupportedFilesystemError(SnapgrubError):
    """The root file system is not btrfs."""

    exit_code = EXIT_NOT_SUPPORTED_FS
    hint = "Snapshot menu entries require a btrfs root file system."


class MissingToolError(SnapgrubError):
    """A required external program is not installed."""

    exit_code = EXIT_MISSING_TOOL
    hint = "Install the missing program (e.g. btrfs-progs) and retry."

    @staticmethod
    def missing(tool):
        return MissingToolError(f"Required program not found: {tool}")


class NoKernelFoundError(SnapgrubError):
    """No kernel image was found in the boot directory."""

    exit_code = EXIT_NO_KERNEL
    hint = "Check the boot directory or set GRUB_BTRFS_NKERNEL."


class NoInitramfsFoundError(SnapgrubError):
    """No initramfs image was found in the boot directory."""

    exit_code = EXIT_NO_INITRAMFS
    hint = "Check the boot directory or set GRUB_BTRFS_NINIT."


class NoSnapshotsFoundError(SnapgrubError):
    """No snapshot survived filtering and limiting."""

    exit_code = EXIT_NO_SNAPSHOTS
    hint = "Create a snapshot containing a boot directory, or raise GRUB_BTRFS_LIMIT."


class SnapgrubLogger(logging.Logger):
    """SnapgrubLogger()

    Snapgrub logging wrapper class: wrap the Logger.debug() method
    to allow filtering of submodule debug messages by log mask.

    This allows us to selectively control which messages are
    logged in the library without having to tamper with the
    Handler, Filter or Formatter configurations (which belong
    to the client application using the library).
    """

    mask_bits = 0

    def set_debug_mask(self, mask_bits):
        """Set the debug mask for this ``SnapgrubLogger``.

        This should normally be set to the ``SNAPGRUB_DEBUG_*`` value
        corresponding to the ``snapgrub`` sub-module that this instance
        of ``SnapgrubLogger`` belongs to.

        :param mask_bits: The bits to set in this logger's mask.
        :rtype: None
        """
        if mask_bits < 0 or mask_bits > SNAPGRUB_DEBUG_ALL:
            raise ValueError(
                "Invalid SnapgrubLogger mask bits: 0x%x"
                % (mask_bits & ~SNAPGRUB_DEBUG_ALL)
            )

        self.mask_bits = mask_bits

    def debug_masked(self, msg, *args, **kwargs):
        """Log a debug message if it passes the current debug mask.

        :param msg: the message to be logged
        :rtype: None
        """
        if self.mask_bits & get_debug_mask():
            self.debug(msg, *args, **kwargs)


logging.setLoggerClass(SnapgrubLogger)


def get_debug_mask():
    """Return the current debug mask for the ``snapgrub`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    return __debug_mask


def set_debug_mask(mask):
    """Set the debug mask for the ``snapgrub`` package.

    :param mask: the logical OR of the ``SNAPGRUB_DEBUG_*``
                 values to log.
    :rtype: None
    """
    global __debug_mask
    if mask < 0 or mask > SNAPGRUB_DEBUG_ALL:
        raise ValueError("Invalid snapgrub debug mask: %d" % mask)
    __debug_mask = mask


class SnapgrubConfig(object):
    """Class representing the snapgrub run configuration.

    A ``SnapgrubConfig`` is built once at start up and is treated as
    read-only for the remainder of the run.
    """

    # Initialise members from global defaults

    disable = False
    submenu_name = "Linux snapshots"
    prefix_entry = DEFAULT_PREFIX_ENTRY
    limit = DEFAULT_LIMIT
    sort = DEFAULT_SORT
    snapper_config = DEFAULT_SNAPPER_CONFIG

    grub_dirname = DEFAULT_GRUB_DIRNAME
    boot_dirname = DEFAULT_BOOT_DIRNAME
    script_check = DEFAULT_SCRIPT_CHECK

    unrestricted = False
    authorized_users = ""
    override_boot_partition_detection = False

    custom_kernels = []
    custom_initramfs = []
    custom_microcode = []

    ignore_specific_path = DEFAULT_IGNORE_SPECIFIC_PATH
    ignore_prefix_path = DEFAULT_IGNORE_PREFIX_PATH

    title_format = DEFAULT_TITLE_FORMAT
    display_path_snapshot = True

    show_snapshots_found = True
    show_total_snapshots_found = True

    kernel_parameters = ""
    rootflags = ""
    cmdline_linux = ""
    cmdline_linux_default = ""
    disable_linux_uuid = False

    #: Attribute names in ``__str__`` and ``__repr__`` order.
    _attrs = [
        "disable",
        "submenu_name",
        "prefix_entry",
        "limit",
        "sort",
        "snapper_config",
        "grub_dirname",
        "boot_dirname",
        "script_check",
        "unrestricted",
        "authorized_users",
        "override_boot_partition_detection",
        "custom_kernels",
        "custom_initramfs",
        "custom_microcode",
        "ignore_specific_path",
        "ignore_prefix_path",
        "title_format",
        "display_path_snapshot",
        "show_snapshots_found",
        "show_total_snapshots_found",
        "kernel_parameters",
        "rootflags",
        "cmdline_linux",
        "cmdline_linux_default",
        "disable_linux_uuid",
    ]

    def __str__(self):
        """Return a string representation of this ``SnapgrubConfig`` in
        ``name = value`` notation.
        """
        cstr = ""
        for attr in self._attrs:
            value = getattr(self, attr)
            if isinstance(value, list):
                value = " ".join(value)
            cstr += "%s = %s\n" % (attr, value)
        return cstr

    def __repr__(self):
        """Return a string representation of this ``SnapgrubConfig`` in
        SnapgrubConfig initialiser notation.
        """
        args = ", ".join("%s=%r" % (attr, getattr(self, attr)) for attr in self._attrs)
        return "SnapgrubConfig(%s)" % args

    def __init__(self, **kwargs):
        """Initialise a new ``SnapgrubConfig`` object with the supplied
        configuration values, or defaults for any unset arguments.

        Keyword arguments are the attribute names listed in
        ``SnapgrubConfig._attrs``; a value of ``None`` keeps the default.

        :raises: TypeError if an unknown keyword argument is given.
        """
        for name, value in kwargs.items():
            if name not in self._attrs:
                raise TypeError("Unknown SnapgrubConfig attribute: %s" % name)
            if value is not None:
                setattr(self, name, value)

        # Copy mutable defaults so that instances never share lists.
        for attr in self._attrs:
            value = getattr(self, attr)
            if isinstance(value, list):
                setattr(self, attr, list(value))


__config = SnapgrubConfig()


def set_snapgrub_config(config):
    """Set the active configuration to the object ``config`` (which may
    be any class that includes the ``SnapgrubConfig`` attributes).

    :param config: a configuration object
    :returns: None
    :raises: TypeError if ``config`` does not appear to have the
             correct attributes.
    """
    global __config

    def has_value(obj, attr):
        return hasattr(obj, attr) and getattr(obj, attr) is not None

    if not (has_value(config, "boot_dirname") and has_value(config, "grub_dirname")):
        raise TypeError("config does not appear to be a SnapgrubConfig object.")

    __config = config


def get_snapgrub_config():
    """Return the active ``SnapgrubConfig`` object.

    :rtype: SnapgrubConfig
    :returns: the active configuration object
    """
    return __config


#
# Generic routines for parsing name-value pairs.
#


def blank_or_comment(line):
    """Test whether line is empty of contains a comment.

    Test whether the ``line`` argument is either blank, or a
    whole-line comment.

    :param line: the line of text to be checked.
    :returns: ``True`` if the line is blank or a comment,
              and ``False`` otherwise.
    :rtype: bool
    """
    return not line.strip() or line.lstrip().startswith("#")


def parse_name_value(nvp, separator="=", allow_empty=False):
    """Parse a name value pair string.

    Parse a ``name='value'`` style string into its component parts,
    stripping quotes from the value if necessary, and return the
    result as a (name, value) tuple.

    Shell array notation (``NAME=("a" "b")``) is accepted: the
    parentheses are removed and the elements are returned as a single
    value in which each element is shell quoted, so that elements
    containing white space survive a later ``shlex.split()``.

    :param nvp: A name value pair optionally with an in-line
                comment.
    :param separator: The separator character used in this name
                      value pair, or ``None`` to split on white
                      space.
    :returns: A ``(name, value)`` tuple.
    :rtype: (string, string) tuple.
    """
    val_err = ValueError("Malformed name/value pair: %s" % nvp)
    try:
        # Only strip newlines: values may contain embedded
        # whitespace anywhere within the string.
        name, value = nvp.rstrip("\n").split(separator, 1)
    except ValueError:
        if not allow_empty or not nvp:
            raise val_err
        name = nvp.strip(separator)
        value = None

    # Value cannot start with '='
    if value and value.startswith("="):
        raise val_err

    name = name.strip()
    if name.startswith("export "):
        name = name[len("export "):].strip()
    value = value.strip() if value else None

    if value and value[0] in "\"'(":
        close = value.find(value[0] if value[0] != "(" else ")", 1)
        # Discard any comment following the closing quote
        if close > 0:
            value = value[: close + 1]
    elif value and "#" in value:
        value, _comment = value.split("#", 1)
        value = value.rstrip()

    valid_name_chars = string.ascii_letters + string.digits + "_-,.'\""
    bad_chars = [c for c in name if c not in valid_name_chars]
    if any(bad_chars):
        raise ValueError("Invalid characters in name: %s (%s)" % (name, bad_chars))

    if value:
        if value.startswith("(") and value.endswith(")"):
            items = shlex.split(value[1:-1])
            value = " ".join(shlex.quote(item) for item in items)
        elif value.startswith('"') or value.startswith("'"):
            quotes = "\"'"
            value = value.rstrip(quotes)
            value = value.lstrip(quotes)

    return (name, value)


def find_program(*names):
    """Return the path of the first program in ``names`` found on
    ``$PATH``, or ``None`` if none of them is installed.

    :param names: Candidate program names in order of preference.
    :rtype: str
    """
    for name in names:
        path = which(name)
        if path:
            return path
    return None


def strip_non_digits(value):
    """Return ``value`` with every non-digit character removed.

    :param value: The string to filter.
    :returns: The digits of ``value`` in their original order.
    :rtype: str
    """
    return "".join(c for c in value if c.isdigit())


__all__ = [
    # snapgrub module constants
    "DEFAULT_BOOT_DIRNAME",
    "DEFAULT_GRUB_DIRNAME",
    "DEFAULT_SNAPGRUB_CONFIG_PATH",
    "SNAPGRUB_CFG_FILE",
    "SNAPGRUB_NEW_FILE",
    "SNAPGRUB_CFG_MODE",
    "ENTRY_WARNING_THRESHOLD",
    "DEFAULT_LIMIT",
    "DEFAULT_PREFIX_ENTRY",
    "DEFAULT_SORT",
    "DEFAULT_SNAPPER_CONFIG",
    "DEFAULT_SCRIPT_CHECK",
    "DEFAULT_IGNORE_SPECIFIC_PATH",
    "DEFAULT_IGNORE_PREFIX_PATH",
    # Title formats
    "TITLE_FMT_PREFIX_DATE_NAME",
    "TITLE_FMT_PREFIX_DATE",
    "TITLE_FMT_PREFIX_NAME",
    "TITLE_FMT_DATE_NAME",
    "TITLE_FMT_NAME_DATE",
    "TITLE_FMT_PREFIX",
    "TITLE_FMT_DATE",
    "TITLE_FMT_NAME",
    "TITLE_FORMATS",
    "DEFAULT_TITLE_FORMAT",
    # Exit codes
    "EXIT_SUCCESS",
    "EXIT_CONFIG",
    "EXIT_NOT_SUPPORTED_FS",
    "EXIT_MISSING_TOOL",
    "EXIT_NO_KERNEL",
    "EXIT_NO_INITRAMFS",
    "EXIT_NO_SNAPSHOTS",
    "EXIT_MOUNT",
    "EXIT_SCRIPT_CHECK",
    # API Classes
    "SnapgrubConfig",
    # Active configuration
    "set_snapgrub_config",
    "get_snapgrub_config",
    # snapgrub exception classes
    "SnapgrubError",
    "SnapgrubConfigError",
    "NotSupportedFilesystemError",
    "MissingToolError",
    "NoKernelFoundError",
    "NoInitramfsFoundError",
    "NoSnapshotsFoundError",
    # Snapgrub logger class (used by test suite)
    "SnapgrubLogger",
    # Debug logging
    "get_debug_mask",
    "set_debug_mask",
    "SNAPGRUB_DEBUG_CATALOG",
    "SNAPGRUB_DEBUG_ARTIFACTS",
    "SNAPGRUB_DEBUG_MENU",
    "SNAPGRUB_DEBUG_COMMAND",
    "SNAPGRUB_DEBUG_MOUNTS",
    "SNAPGRUB_DEBUG_PROBE",
    "SNAPGRUB_DEBUG_ALL",
    # Utility routines
    "blank_or_comment",
    "parse_name_value",
    "strip_non_digits",
    "find_program",
]

# vim: set et ts=4 sw=4
