# Copyright Red Hat
#
# snapgrub/artifacts.py - Snapgrub boot artifact detection
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.artifacts`` module locates kernel, initramfs and CPU
microcode images in a boot directory and pairs kernels with their
initramfs images.

Distributions name their boot images inconsistently, so kernels and
initramfs images are matched by comparing the text following the first
``-`` of each file name: ``vmlinuz-6.1.0-1`` pairs with
``initrd.img-6.1.0-1``, ``initramfs-6.1.0-1.img``,
``initramfs-6.1.0-1-fallback.img`` and ``initrd-6.1.0-1.gz``.
"""
from os.path import basename, isfile, join as path_join
from glob import glob
import logging

from snapgrub import *

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_ARTIFACTS)

_log_debug = _log.debug
_log_debug_artifacts = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: File name patterns for kernel images.
KERNEL_PATTERNS = ["vmlinuz-*", "vmlinux-*", "kernel-*"]

#: File name patterns for initramfs images.
INITRAMFS_PATTERNS = [
    "initrd.img-*",
    "initrd-*.img",
    "initrd-*.gz",
    "initramfs-*.img",
    "initramfs-*.gz",
]

#: Known CPU microcode image names.
MICROCODE_NAMES = [
    "intel-uc.img",
    "intel-ucode.img",
    "amd-uc.img",
    "amd-ucode.img",
    "early_ucode.cpio",
    "microcode.cpio",
]

#: Placeholder used in place of a microcode image when none exists.
NO_MICROCODE = None

#: Initramfs suffixes accepted for a kernel version, in order.
_INITRAMFS_SUFFIXES = ["", ".img", "-fallback.img", ".gz"]


def _detect(boot_dir, patterns, custom):
    """Return the existing files in ``boot_dir`` matching ``patterns``
    followed by the existing ``custom`` file names.
    """
    found = []
    for pattern in patterns:
        for path in sorted(glob(path_join(boot_dir, pattern))):
            if isfile(path) and path not in found:
                found.append(path)
    for name in custom or []:
        path = path_join(boot_dir, name)
        if isfile(path) and path not in found:
            found.append(path)
    return found


def detect_kernels(boot_dir, config=None):
    """Return the kernel images found in ``boot_dir``.

    :param boot_dir: The boot directory to search.
    :param config: The ``SnapgrubConfig`` supplying custom kernel
                   names, or ``None`` for the active configuration.
    :returns: A list of absolute kernel image paths.
    :rtype: list
    """
    config = config or get_snapgrub_config()
    kernels = _detect(boot_dir, KERNEL_PATTERNS, config.custom_kernels)
    _log_debug_artifacts("Found kernels in %s: %s", boot_dir, kernels)
    return kernels


def detect_initramfs(boot_dir, config=None):
    """Return the initramfs images found in ``boot_dir``.

    :param boot_dir: The boot directory to search.
    :param config: The ``SnapgrubConfig`` supplying custom initramfs
                   names, or ``None`` for the active configuration.
    :returns: A list of absolute initramfs image paths.
    :rtype: list
    """
    config = config or get_snapgrub_config()
    initramfs = _detect(boot_dir, INITRAMFS_PATTERNS, config.custom_initramfs)
    _log_debug_artifacts("Found initramfs in %s: %s", boot_dir, initramfs)
    return initramfs


def detect_microcode(boot_dir, config=None):
    """Return the microcode images found in ``boot_dir``.

    If no image is present the list ``[NO_MICROCODE]`` is returned so
    that callers may always iterate over the result.

    :param boot_dir: The boot directory to search.
    :param config: The ``SnapgrubConfig`` supplying custom microcode
                   names, or ``None`` for the active configuration.
    :returns: A list of absolute microcode image paths.
    :rtype: list
    """
    config = config or get_snapgrub_config()
    microcode = _detect(boot_dir, MICROCODE_NAMES, config.custom_microcode)
    _log_debug_artifacts("Found microcode in %s: %s", boot_dir, microcode)
    return microcode or [NO_MICROCODE]


def kernel_version(kernel):
    """Return the version part of a kernel file name: everything after
    the first ``-``.

    :param kernel: A kernel image file name.
    :rtype: str
    """
    if "-" not in kernel:
        return ""
    return kernel.split("-", 1)[1]


def match_kernel_to_initramfs(kernel, initramfs):
    """Test whether ``initramfs`` belongs to ``kernel``.

    :param kernel: A kernel image file name.
    :param initramfs: An initramfs image file name.
    :returns: ``True`` if the names match or ``False`` otherwise.
    :rtype: bool
    """
    version = kernel_version(basename(kernel))
    initramfs = basename(initramfs)
    if not version or "-" not in initramfs:
        return False
    suffix = initramfs.split("-", 1)[1]
    for tail in _INITRAMFS_SUFFIXES:
        if suffix == version + tail:
            return True
    return False


class BootArtifactSet(object):
    """The kernel, initramfs and microcode images found in one boot
    directory. Images are stored as file names relative to
    ``boot_dir``.
    """

    boot_dir = None
    kernels = []
    initramfs = []
    microcode = [NO_MICROCODE]

    def __init__(self, boot_dir, kernels, initramfs, microcode):
        self.boot_dir = boot_dir
        self.kernels = [basename(k) for k in kernels]
        self.initramfs = [basename(i) for i in initramfs]
        self.microcode = [basename(u) if u else NO_MICROCODE for u in microcode]

    def __repr__(self):
        return 'BootArtifactSet(boot_dir="%s", kernels=%s, initramfs=%s, microcode=%s)' % (
            self.boot_dir,
            self.kernels,
            self.initramfs,
            self.microcode,
        )

    @property
    def has_microcode(self):
        return self.microcode != [NO_MICROCODE]


def detect_artifacts(boot_dir, config=None):
    """Scan ``boot_dir`` and return a ``BootArtifactSet``.

    :param boot_dir: The boot directory to search.
    :param config: The ``SnapgrubConfig`` to use.
    :rtype: BootArtifactSet
    """
    return BootArtifactSet(
        boot_dir,
        detect_kernels(boot_dir, config),
        detect_initramfs(boot_dir, config),
        detect_microcode(boot_dir, config),
    )


class MatchedEntry(object):
    """A (kernel, initramfs, microcode) triple for one snapshot: the
    unit rendered as a single GRUB menu entry.
    """

    def __init__(self, snapshot, kernel, initramfs, microcode=NO_MICROCODE):
        self.snapshot = snapshot
        self.kernel = kernel
        self.initramfs = initramfs
        self.microcode = microcode

    def __repr__(self):
        return 'MatchedEntry(snapshot="%s", kernel="%s", initramfs="%s", microcode=%r)' % (
            self.snapshot.path if self.snapshot else None,
            self.kernel,
            self.initramfs,
            self.microcode,
        )

    def __eq__(self, other):
        if not isinstance(other, MatchedEntry):
            return False
        return (self.snapshot, self.kernel, self.initramfs, self.microcode) == (
            other.snapshot,
            other.kernel,
            other.initramfs,
            other.microcode,
        )


def match_artifacts(snapshot, artifacts):
    """Return the ``MatchedEntry`` list for ``snapshot``: one entry for
    each kernel, matching initramfs and microcode combination, in
    kernel, initramfs, microcode order.

    :param snapshot: The ``Snapshot`` the artifacts belong to.
    :param artifacts: A ``BootArtifactSet``.
    :rtype: list
    """
    entries = []
    for kernel in artifacts.kernels:
        for initramfs in artifacts.initramfs:
            if not match_kernel_to_initramfs(kernel, initramfs):
                continue
            for microcode in artifacts.microcode:
                entries.append(MatchedEntry(snapshot, kernel, initramfs, microcode))
    _log_debug_artifacts(
        "Matched %d entries for %s", len(entries), snapshot.path if snapshot else "-"
    )
    return entries


__all__ = [
    "KERNEL_PATTERNS",
    "INITRAMFS_PATTERNS",
    "MICROCODE_NAMES",
    "NO_MICROCODE",
    "detect_kernels",
    "detect_initramfs",
    "detect_microcode",
    "kernel_version",
    "match_kernel_to_initramfs",
    "BootArtifactSet",
    "detect_artifacts",
    "MatchedEntry",
    "match_artifacts",
]

# vim: set et ts=4 sw=4 :
