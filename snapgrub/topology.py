# Copyright Red Hat
#
# snapgrub/topology.py - Snapgrub boot topology resolution
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.topology`` module decides where the boot images for a
snapshot are found.

With a *bound* boot topology ``/boot`` is part of the root subvolume:
every snapshot carries its own kernels and initramfs images, and these
are scanned separately for each snapshot.

With a *separate* boot topology ``/boot`` is a partition (or a
subvolume) of its own that is not captured by root snapshots: the boot
images are scanned once and shared by every snapshot entry.
"""
from os.path import join as path_join
import logging

from snapgrub import *
from snapgrub.artifacts import detect_artifacts

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_ARTIFACTS)

_log_debug = _log.debug
_log_debug_artifacts = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Boot images live inside each snapshot.
TOPOLOGY_BOUND = "bound"

#: Boot images live in one external boot directory.
TOPOLOGY_SEPARATE = "separate"


def is_separate_boot(config, device_info):
    """Return ``True`` if the boot directory is not captured by root
    file system snapshots.

    :param config: The ``SnapgrubConfig`` to use.
    :param device_info: The probed ``DeviceInfo``.
    :rtype: bool
    """
    if config.override_boot_partition_detection:
        return True
    if device_info.root_uuid != device_info.boot_uuid:
        return True
    # An unknown boot subvolume is taken to be the root subvolume.
    if not device_info.root_subvol_uuid or not device_info.boot_subvol_uuid:
        return False
    return device_info.root_subvol_uuid != device_info.boot_subvol_uuid


def _join_grub_path(*parts):
    path = "/".join(p.strip("/") for p in parts if p.strip("/"))
    return "/" + path


class Topology(object):
    """Base class for boot topologies.

    A ``Topology`` answers two questions for each snapshot: which boot
    images to offer (``artifacts()``) and the GRUB path of the
    directory holding them (``boot_path()``).
    """

    name = None

    def __init__(self, config, device_info, snapshot_root):
        self.config = config
        self.device_info = device_info
        self.snapshot_root = snapshot_root

    def __repr__(self):
        return '%s(snapshot_root="%s")' % (self.__class__.__name__, self.snapshot_root)

    def artifacts(self, snapshot):
        raise NotImplementedError

    def boot_path(self, snapshot):
        raise NotImplementedError


class BoundBootTopology(Topology):
    """Boot images are read from each snapshot's own boot directory."""

    name = TOPOLOGY_BOUND

    def artifacts(self, snapshot):
        """Return the ``BootArtifactSet`` for ``snapshot``, or ``None``
        if the snapshot has no kernel or no initramfs image.
        """
        boot_dir = path_join(
            self.snapshot_root, snapshot.path, self.config.boot_dirname.strip("/")
        )
        artifacts = detect_artifacts(boot_dir, self.config)
        if not artifacts.kernels:
            _log_debug("Skipping '%s': no kernel found", snapshot.path)
            return None
        if not artifacts.initramfs:
            _log_debug("Skipping '%s': no initramfs found", snapshot.path)
            return None
        return artifacts

    def boot_path(self, snapshot):
        return _join_grub_path(snapshot.path, self.config.boot_dirname)


class SeparateBootTopology(Topology):
    """Boot images are read once from the configured boot directory and
    shared by all snapshots.
    """

    name = TOPOLOGY_SEPARATE

    def __init__(self, config, device_info, snapshot_root):
        super(SeparateBootTopology, self).__init__(config, device_info, snapshot_root)
        self._artifacts = detect_artifacts(config.boot_dirname, config)
        if not self._artifacts.kernels:
            raise NoKernelFoundError(f"No kernels found in {config.boot_dirname}")
        if not self._artifacts.initramfs:
            raise NoInitramfsFoundError(
                f"No initramfs images found in {config.boot_dirname}"
            )

    def artifacts(self, snapshot):
        return self._artifacts

    def boot_path(self, snapshot):
        return _join_grub_path(self.device_info.boot_relpath)


def resolve_topology(config, device_info, snapshot_root):
    """Select the boot topology for this system.

    :param config: The ``SnapgrubConfig`` to use.
    :param device_info: The probed ``DeviceInfo``.
    :param snapshot_root: The mount point of the btrfs top level.
    :rtype: Topology
    :raises: NoKernelFoundError or NoInitramfsFoundError if a separate
             boot directory contains no usable images.
    """
    if is_separate_boot(config, device_info):
        topology = SeparateBootTopology(config, device_info, snapshot_root)
    else:
        topology = BoundBootTopology(config, device_info, snapshot_root)
    _log_debug_artifacts("Using %s boot topology", topology.name)
    return topology


__all__ = [
    "TOPOLOGY_BOUND",
    "TOPOLOGY_SEPARATE",
    "is_separate_boot",
    "Topology",
    "BoundBootTopology",
    "SeparateBootTopology",
    "resolve_topology",
]

# vim: set et ts=4 sw=4 :
