# Copyright Red Hat
#
# snapgrub/generator.py - Snapgrub snapshot menu generation
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.generator`` module drives snapshot menu generation
from start to finish.

A run validates its preconditions, probes the root and boot devices,
mounts the btrfs top level volume read-only, lists and filters the
snapshots, detects and matches boot images for each of them and
renders the resulting GRUB script. The script is written to
``grub-btrfs.new`` in the GRUB directory, syntax checked, renamed to
``grub-btrfs.cfg``, and a registration ``submenu`` is written to the
standard output for inclusion in the main GRUB configuration.

All state belonging to a single run is held by a ``RunContext``.
"""
from os import chmod, fdatasync, rename, unlink
from os.path import exists as path_exists, join as path_join
from subprocess import run, CalledProcessError
import logging
import sys

from snapgrub import *
from snapgrub.artifacts import match_artifacts
from snapgrub.btrfs import BTRFS, check_btrfs_root, list_subvolumes
from snapgrub.menu import render_registration, render_snapshot
from snapgrub.mounts import mounted_snapshot_root
from snapgrub.probe import linux_root_device, probe_devices, top_level_device
from snapgrub.snapper import list_snapshot_metadata
from snapgrub.snapshot import format_snapshot_lines, list_snapshots
from snapgrub.topology import resolve_topology

# Module logging configuration
_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Alternative names for the GRUB script checker.
SCRIPT_CHECK_NAMES = ("grub-script-check", "grub2-script-check")


class ScriptCheckError(SnapgrubError):
    """The generated menu file failed the GRUB syntax check."""

    exit_code = EXIT_SCRIPT_CHECK
    hint = "Inspect the generated file and report the problem."


class Counters(object):
    """Running totals for one menu generation run."""

    def __init__(self):
        self.snapshots = 0
        self.entries = 0

    def __repr__(self):
        return "Counters(snapshots=%d, entries=%d)" % (self.snapshots, self.entries)


class RunContext(object):
    """The state of a single menu generation run: the configuration,
    the probed devices, the kernel command line to use for every entry,
    the running counters and the rendered menu text.
    """

    def __init__(self, config, device_info):
        """Initialise a new ``RunContext``.

        :param config: The ``SnapgrubConfig`` for this run.
        :param device_info: The probed ``DeviceInfo`` for this run.
        """
        self.config = config
        self.device_info = device_info
        self.linux_root = linux_root_device(device_info, config)
        self.kernel_parameters = kernel_parameters(config)
        self.counters = Counters()
        self.output = []

    def text(self):
        """Return the menu text rendered so far."""
        return "".join(self.output)


def kernel_parameters(config):
    """Return the kernel command line parameters for snapshot entries.

    :param config: The ``SnapgrubConfig`` to use.
    :rtype: str
    """
    params = [
        config.cmdline_linux,
        config.cmdline_linux_default,
        config.kernel_parameters,
    ]
    return " ".join(p.strip() for p in params if p and p.strip())


def build_menu(ctx, snapshots, topology):
    """Render menu entries for up to ``ctx.config.limit`` snapshots into
    ``ctx.output``.

    Snapshots without a usable kernel and initramfs pair are skipped
    and do not count towards the limit.

    :param ctx: The ``RunContext`` of this run.
    :param snapshots: The ordered list of candidate ``Snapshot`` objects.
    :param topology: The ``Topology`` providing boot images.
    :raises: NoSnapshotsFoundError if the limit is not positive or no
             snapshot could be rendered.
    """
    config = ctx.config
    if config.limit <= 0:
        raise NoSnapshotsFoundError(f"Snapshot limit is {config.limit}")

    for snapshot, found in zip(snapshots, format_snapshot_lines(snapshots)):
        artifacts = topology.artifacts(snapshot)
        if not artifacts:
            continue

        entries = match_artifacts(snapshot, artifacts)
        if not entries:
            _log_debug("Skipping '%s': no matching kernel and initramfs", snapshot.path)
            continue

        ctx.output.append(
            render_snapshot(ctx, snapshot, entries, topology.boot_path(snapshot))
        )
        ctx.counters.snapshots += 1
        ctx.counters.entries += len(entries)

        if config.show_snapshots_found:
            _log_info("Found snapshot: %s", found)
        else:
            _log_debug("Found snapshot: %s", found)

        if ctx.counters.snapshots >= config.limit:
            break

    if not ctx.counters.snapshots:
        raise NoSnapshotsFoundError("No bootable snapshots found")


def write_menu_file(path, text):
    """Write the menu ``text`` to ``path``.

    :param path: The file to write.
    :param text: The rendered menu text.
    :rtype: None
    """
    with open(path, "w") as f:
        f.write(text)
        f.flush()
        fdatasync(f.fileno())
    chmod(path, SNAPGRUB_CFG_MODE)


class SnapshotMenuGenerator(object):
    """Generate the snapshot menu for the running system.

    Access to the system is made through the ``check_preconditions()``,
    ``probe_devices()``, ``mount_root()``, ``list_subvolumes()``,
    ``list_manager_records()`` and ``script_check()`` methods, which
    may be overridden to run the generator against other sources.
    """

    def __init__(self, config=None, stream=None):
        """Initialise a new ``SnapshotMenuGenerator``.

        :param config: The ``SnapgrubConfig`` to use, or ``None`` for the
                       active configuration.
        :param stream: The stream receiving the registration submenu, or
                       ``None`` for ``sys.stdout``.
        """
        self.config = config or get_snapgrub_config()
        self.stream = stream or sys.stdout

    @property
    def new_path(self):
        return path_join(self.config.grub_dirname, SNAPGRUB_NEW_FILE)

    @property
    def cfg_path(self):
        return path_join(self.config.grub_dirname, SNAPGRUB_CFG_FILE)

    def check_preconditions(self):
        if not find_program(BTRFS):
            raise MissingToolError.missing(BTRFS)
        check_btrfs_root("/")

    def probe_devices(self):
        return probe_devices(self.config)

    def mount_root(self, device):
        return mounted_snapshot_root(device)

    def list_subvolumes(self, snapshot_root):
        return list_subvolumes(snapshot_root)

    def list_manager_records(self):
        return list_snapshot_metadata(self.config.snapper_config)

    def script_check(self, path):
        """Check the syntax of the GRUB script at ``path``.

        :raises: ScriptCheckError if the check fails.
        """
        script_check = find_program(self.config.script_check, *SCRIPT_CHECK_NAMES)
        if not script_check:
            _log_warn("No GRUB script checker found: not checking %s", path)
            return
        try:
            run([script_check, path], capture_output=True, check=True)
        except CalledProcessError as err:
            output = (err.stdout + err.stderr).decode("utf8", errors="replace")
            raise ScriptCheckError(
                f"Syntax error in generated file {path}: {output.strip()}"
            ) from err

    def _list_snapshots(self, snapshot_root):
        return list_snapshots(
            self.list_subvolumes(snapshot_root),
            self.list_manager_records(),
            self.config,
            snapshot_root,
        )

    def snapshots(self):
        """Return the bootable snapshots of the running system without
        rendering a menu.

        :returns: A list of ``Snapshot`` objects.
        :rtype: list
        """
        self.check_preconditions()
        device_info = self.probe_devices()
        with self.mount_root(top_level_device(device_info)) as snapshot_root:
            return self._list_snapshots(snapshot_root)

    def generate(self):
        """Render the snapshot menu and return the ``RunContext`` holding
        the menu text and counters.

        :rtype: RunContext
        """
        config = self.config
        self.check_preconditions()
        ctx = RunContext(config, self.probe_devices())

        with self.mount_root(top_level_device(ctx.device_info)) as snapshot_root:
            topology = resolve_topology(config, ctx.device_info, snapshot_root)
            build_menu(ctx, self._list_snapshots(snapshot_root), topology)

        return ctx

    def run(self):
        """Generate, check and install the snapshot menu file, and write
        the registration submenu to the output stream.

        :returns: The ``RunContext`` of the run, or ``None`` if snapshot
                  menu generation is disabled.
        """
        config = self.config
        if config.disable:
            _log_info("Snapshot menu generation is disabled")
            return None

        if path_exists(self.new_path):
            unlink(self.new_path)

        ctx = self.generate()

        if ctx.counters.entries >= ENTRY_WARNING_THRESHOLD:
            _log_warn(
                "Generated %d menu entries: GRUB may be slow to load the menu",
                ctx.counters.entries,
            )
        if config.show_total_snapshots_found:
            _log_info("Found %d snapshot(s)", ctx.counters.snapshots)

        write_menu_file(self.new_path, ctx.text())
        self.script_check(self.new_path)
        rename(self.new_path, self.cfg_path)
        _log_debug("Wrote %s", self.cfg_path)

        self.stream.write(render_registration(config))
        return ctx


def generate_menu(config=None, stream=None):
    """Generate the snapshot menu using the active configuration.

    :param config: The ``SnapgrubConfig`` to use, or ``None`` for the
                   active configuration.
    :param stream: The stream receiving the registration submenu.
    :returns: The ``RunContext`` of the run, or ``None`` if disabled.
    """
    return SnapshotMenuGenerator(config=config, stream=stream).run()


__all__ = [
    "ScriptCheckError",
    "Counters",
    "RunContext",
    "kernel_parameters",
    "build_menu",
    "write_menu_file",
    "SnapshotMenuGenerator",
    "generate_menu",
]

# vim: set et ts=4 sw=4 :
