# Copyright Red Hat
#
# snapgrub/command.py - Snapgrub command line interface
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.command`` module implements the ``snapgrub`` command
line tool.

The default ``generate`` command writes the snapshot menu file and
prints the registration submenu: this is the mode used when the tool
is run as a ``grub-mkconfig`` hook script. The ``list`` command prints
the bootable snapshots found without generating a menu.

Errors raised by the library are reported on the standard error
stream and mapped to the exit status carried by the exception.
"""
from argparse import ArgumentParser
import logging
import sys

from snapgrub import *
from snapgrub.config import load_snapgrub_config
from snapgrub.generator import SnapshotMenuGenerator
from snapgrub.snapshot import format_snapshot_lines

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_COMMAND)

_log_debug = _log.debug
_log_debug_cmd = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

_default_log_level = logging.INFO
_console_handler = None

#: Map of debug mask names to ``SNAPGRUB_DEBUG_*`` values.
_debug_masks = {
    "catalog": SNAPGRUB_DEBUG_CATALOG,
    "artifacts": SNAPGRUB_DEBUG_ARTIFACTS,
    "menu": SNAPGRUB_DEBUG_MENU,
    "command": SNAPGRUB_DEBUG_COMMAND,
    "mounts": SNAPGRUB_DEBUG_MOUNTS,
    "probe": SNAPGRUB_DEBUG_PROBE,
    "all": SNAPGRUB_DEBUG_ALL,
}

#: Command names
GENERATE_CMD = "generate"
LIST_CMD = "list"


def set_debug(debug_arg):
    """Set debugging mask from ``debug_arg``.

    :param debug_arg: A comma separated list of debug mask names.
    :rtype: None
    :raises: ValueError if an unknown mask name is given.
    """
    if not debug_arg:
        return

    mask = 0
    for name in debug_arg.split(","):
        name = name.strip()
        if name not in _debug_masks:
            raise ValueError("Unknown debug mask: %s" % name)
        mask |= _debug_masks[name]
    set_debug_mask(mask)


def setup_logging(cmd_args):
    """Set up snapgrub logging to the standard error stream.

    :param cmd_args: The parsed command line arguments.
    :rtype: None
    """
    global _console_handler
    level = _default_log_level
    if cmd_args.verbose:
        level = logging.DEBUG

    snapgrub_log = logging.getLogger("snapgrub")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    snapgrub_log.setLevel(level)
    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(level)
    _console_handler.setFormatter(formatter)
    snapgrub_log.addHandler(_console_handler)


def shutdown_logging():
    """Remove the console handler installed by ``setup_logging()``."""
    global _console_handler
    if _console_handler:
        logging.getLogger("snapgrub").removeHandler(_console_handler)
        _console_handler = None


def _generate_cmd(cmd_args, config):
    generator = SnapshotMenuGenerator(config=config, stream=sys.stdout)
    ctx = generator.run()
    if ctx:
        _log_debug_cmd("Generated menu: %s", repr(ctx.counters))
    return EXIT_SUCCESS


def _list_cmd(cmd_args, config):
    generator = SnapshotMenuGenerator(config=config, stream=sys.stdout)
    snapshots = generator.snapshots()
    for line in format_snapshot_lines(snapshots[:config.limit]):
        print(line)
    return EXIT_SUCCESS


_snapgrub_commands = [
    (GENERATE_CMD, _generate_cmd),
    (LIST_CMD, _list_cmd),
]


def _match_command(cmd):
    for (name, fn) in _snapgrub_commands:
        if name == cmd:
            return fn
    return None


def main(args):
    """Main entry point for the ``snapgrub`` command.

    :param args: The command line arguments including the program name.
    :returns: The process exit status.
    :rtype: int
    """
    parser = ArgumentParser(
        prog="snapgrub", description="Generate GRUB menu entries for btrfs snapshots"
    )
    parser.add_argument(
        "command",
        metavar="COMMAND",
        type=str,
        nargs="?",
        default=GENERATE_CMD,
        help="The command to run: %s"
        % ", ".join(name for (name, _fn) in _snapgrub_commands),
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Path to an alternate configuration file",
    )
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable: %s" % ", ".join(_debug_masks),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose output",
    )
    cmd_args = parser.parse_args(args[1:])

    cmd = _match_command(cmd_args.command)
    if not cmd:
        parser.print_usage(sys.stderr)
        print("Unknown command: %s" % cmd_args.command, file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(cmd_args)
    try:
        set_debug(cmd_args.debug)
        config = load_snapgrub_config(path=cmd_args.config)
        _log_debug_cmd("Running command '%s'", cmd_args.command)
        return cmd(cmd_args, config)
    except ValueError as err:
        _log_error("%s", err)
        return EXIT_CONFIG
    except SnapgrubError as err:
        _log_error("%s", err)
        if err.hint:
            _log_error("%s", err.hint)
        return err.exit_code
    finally:
        shutdown_logging()


__all__ = [
    "GENERATE_CMD",
    "LIST_CMD",
    "set_debug",
    "setup_logging",
    "shutdown_logging",
    "main",
]

# vim: set et ts=4 sw=4 :
