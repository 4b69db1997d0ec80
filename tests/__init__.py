# Copyright Red Hat
#
# tests/__init__.py - Snapgrub test package initialisation
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
from os.path import join, abspath, dirname
from os import environ, makedirs
import logging
import shutil
import errno

import snapgrub

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)

# Root of the testing directory
TESTS_ROOT = dirname(abspath(__file__))

# Location of the temporary sandbox for test data
SANDBOX_PATH = join(TESTS_ROOT, "sandbox")

# Location of mock binaries
MOCK_BIN_PATH = join(TESTS_ROOT, "bin")

# Location of mock binary state files
MOCK_STATE_PATH = join(SANDBOX_PATH, "mock")

# A btrfs subvolume listing as produced by the mock btrfs binary
SUBVOLUME_LIST = [
    "ID 256 gen 2001 cgen 8 top level 5 otime 2024-01-01 09:00:00 path <FS_TREE>/@",
    "ID 257 gen 2000 cgen 9 top level 256 otime 2024-01-01 09:00:01 path <FS_TREE>/@/.snapshots",
    "ID 260 gen 1500 cgen 1400 top level 257 otime 2024-03-01 10:00:00 path <FS_TREE>/@/.snapshots/1/snapshot",
    "ID 261 gen 1600 cgen 1550 top level 257 otime 2024-03-02 11:30:00 path <FS_TREE>/@/.snapshots/2/snapshot",
    "ID 262 gen 1700 cgen 1650 top level 257 otime 2024-03-03 12:45:00 path <FS_TREE>/@/.snapshots/3/snapshot",
    "ID 270 gen 1800 cgen 1750 top level 256 otime 2024-03-04 08:00:00 path <FS_TREE>/@/var/lib/docker/btrfs/subvolumes/abc",
    "ID 271 gen 1801 cgen 1751 top level 0 otime - path DELETED",
]

# Test sandbox functions

def rm_sandbox():
    """Remove the test sandbox at SANDBOX_PATH.
    """
    try:
        shutil.rmtree(SANDBOX_PATH)
    except OSError as e:
        if e.errno != errno.ENOENT:
            raise


def mk_sandbox():
    """Create a new test sandbox at SANDBOX_PATH.
    """
    makedirs(SANDBOX_PATH)


def reset_sandbox():
    """Reset the test sandbox at SANDBOX_PATH by removing it and
        re-creating the directory.
    """
    rm_sandbox()
    mk_sandbox()


def set_mock_path():
    """Set the PATH environment variable to tests/bin to include mock
        binaries used in the snapgrub test suite.
    """
    os_path = environ['PATH']
    if os_path.startswith(MOCK_BIN_PATH + ":"):
        return
    environ['PATH'] = MOCK_BIN_PATH + ":" + os_path


def set_mock_state(name, value=""):
    """Write a mock binary state file: mock binaries run with a fixed
        environment and read their behaviour switches from files in
        MOCK_STATE_PATH.
    """
    makedirs(MOCK_STATE_PATH, exist_ok=True)
    with open(join(MOCK_STATE_PATH, name), "w") as f:
        f.write(value)


def touch(path, data=""):
    """Create the file ``path`` and any missing parent directories.
    """
    makedirs(dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(data)


def make_boot_dir(boot_dir, kernels=(), initramfs=(), microcode=()):
    """Populate ``boot_dir`` with empty kernel, initramfs and microcode
        image files.
    """
    makedirs(boot_dir, exist_ok=True)
    for name in list(kernels) + list(initramfs) + list(microcode):
        touch(join(boot_dir, name))


def make_config(**kwargs):
    """Return a ``SnapgrubConfig`` using the sandbox GRUB directory.
    """
    kwargs.setdefault("grub_dirname", SANDBOX_PATH)
    return snapgrub.SnapgrubConfig(**kwargs)


# Mock objects

class MockArgs(object):
    """Mock arguments class for testing snapgrub command line
        infrastructure.
    """
    command = "generate"
    config = None
    debug = ""
    verbose = 0


__all__ = [
    'TESTS_ROOT', 'SANDBOX_PATH', 'MOCK_BIN_PATH', 'MOCK_STATE_PATH',
    'SUBVOLUME_LIST',
    'rm_sandbox', 'mk_sandbox', 'reset_sandbox',
    'set_mock_path', 'set_mock_state', 'touch', 'make_boot_dir', 'make_config',
    'MockArgs',
]

# vim: set et ts=4 sw=4 :
