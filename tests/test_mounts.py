# Copyright Red Hat
#
# tests/test_mounts.py - Snapgrub scratch mount tests.
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import patch
import logging
from os import listdir, makedirs
from os.path import basename, exists, isdir, join

log = logging.getLogger()

from snapgrub import *
from snapgrub.mounts import *

from tests import *

MOUNT_TMP = join(SANDBOX_PATH, "tmp")


def _mount_calls():
    with open(join(MOCK_STATE_PATH, "mount-calls"), "r") as f:
        return f.read().splitlines()


def _umount_calls():
    with open(join(MOCK_STATE_PATH, "umount-calls"), "r") as f:
        return f.read().splitlines()


class MountsTests(unittest.TestCase):
    """Tests for the scratch mount context manager, run against the
        mock mount and umount binaries in tests/bin.
    """
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        reset_sandbox()
        set_mock_path()
        makedirs(MOUNT_TMP)

    def tearDown(self):
        log.debug("Tearing down %s", self._testMethodName)
        rm_sandbox()

    def test_mounted_snapshot_root(self):
        with mounted_snapshot_root("/dev/vda2", tmp_dir=MOUNT_TMP) as mount_point:
            self.assertTrue(isdir(mount_point))
            self.assertTrue(basename(mount_point).startswith("snapgrub-"))
            calls = _mount_calls()
            self.assertEqual(calls, ["-o ro,subvolid=5 /dev/vda2 %s" % mount_point])
        self.assertFalse(exists(mount_point))
        self.assertEqual(listdir(MOUNT_TMP), [])

    def test_mounted_snapshot_root_released_on_error(self):
        with self.assertRaises(NoSnapshotsFoundError):
            with mounted_snapshot_root("/dev/vda2", tmp_dir=MOUNT_TMP):
                raise NoSnapshotsFoundError("No bootable snapshots found")
        self.assertEqual(listdir(MOUNT_TMP), [])

    def test_mounted_snapshot_root_unmounted_on_error(self):
        with patch("snapgrub.mounts.ismount", return_value=True):
            with self.assertRaises(NoSnapshotsFoundError):
                with mounted_snapshot_root("/dev/vda2", tmp_dir=MOUNT_TMP) as mount_point:
                    raise NoSnapshotsFoundError("No bootable snapshots found")
        self.assertEqual(_umount_calls(), ["-l %s" % mount_point])
        self.assertEqual(listdir(MOUNT_TMP), [])

    def test_mounted_snapshot_root_not_mounted(self):
        with mounted_snapshot_root("/dev/vda2", tmp_dir=MOUNT_TMP):
            pass
        self.assertFalse(exists(join(MOCK_STATE_PATH, "umount-calls")))

    def test_mounted_snapshot_root_mount_failure(self):
        set_mock_state("mount-fail")
        with self.assertRaises(SnapgrubMountError) as cm:
            with mounted_snapshot_root("/dev/vda2", tmp_dir=MOUNT_TMP):
                self.fail("mount failure not detected")
        self.assertIn("permission denied", str(cm.exception))
        self.assertEqual(cm.exception.exit_code, EXIT_MOUNT)
        self.assertEqual(listdir(MOUNT_TMP), [])

    def test_mounted_snapshot_root_invalid_device(self):
        with self.assertRaises(SnapgrubMountError):
            with mounted_snapshot_root("", tmp_dir=MOUNT_TMP):
                self.fail("invalid device not detected")
        self.assertEqual(listdir(MOUNT_TMP), [])

# vim: set et ts=4 sw=4 :
