# Copyright Red Hat
#
# tests/test_snapgrub.py - Snapgrub module tests.
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
import unittest
import logging

import snapgrub
from snapgrub import *

from tests import *

log = logging.getLogger()


class SnapgrubTests(unittest.TestCase):
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        log.debug("Tearing down %s", self._testMethodName)
        set_debug_mask(0)
        set_snapgrub_config(SnapgrubConfig())

    # Module tests
    def test_import(self):
        import snapgrub

    # Helper routine tests

    def test_parse_name_value_default(self):
        # Test each allowed quoting style
        nvp = "n=v"
        (name, value) = parse_name_value(nvp)
        self.assertEqual(name, "n")
        self.assertEqual(value, "v")
        nvp = "n='v'"
        (name, value) = parse_name_value(nvp)
        self.assertEqual(name, "n")
        self.assertEqual(value, "v")
        nvp = 'n="v"'
        (name, value) = parse_name_value(nvp)
        self.assertEqual(name, "n")
        self.assertEqual(value, "v")
        nvp = 'n = "v"'
        (name, value) = parse_name_value(nvp)
        self.assertEqual(name, "n")
        self.assertEqual(value, "v")

        # Assert that a trailing comment is discarded
        nvp = 'n=v # Qux.'
        (name, value) = parse_name_value(nvp)
        self.assertEqual(value, "v")
        nvp = 'n=v#Qux.'
        (name, value) = parse_name_value(nvp)
        self.assertEqual(value, "v")

        # Assert that a malformed nvp raises ValueError
        with self.assertRaises(ValueError):
            parse_name_value("n v")
        with self.assertRaises(ValueError):
            parse_name_value("n==v")
        with self.assertRaises(ValueError):
            parse_name_value("n+=v")

        # Test that values with embedded assignment are accepted
        (name, value) = parse_name_value('n=v=v1')
        self.assertEqual(value, "v=v1")

    def test_parse_name_value_shell(self):
        (name, value) = parse_name_value('export GRUB_BTRFS_LIMIT="10"')
        self.assertEqual(name, "GRUB_BTRFS_LIMIT")
        self.assertEqual(value, "10")

        (name, value) = parse_name_value('GRUB_BTRFS_NKERNEL=("kernel-a" "kernel-b")')
        self.assertEqual(name, "GRUB_BTRFS_NKERNEL")
        self.assertEqual(value, "kernel-a kernel-b")

        (name, value) = parse_name_value(
            'GRUB_BTRFS_IGNORE_SPECIFIC_PATH=("@/my snaps" \'@home\')'
        )
        self.assertEqual(value, "'@/my snaps' @home")

        (name, value) = parse_name_value('GRUB_BTRFS_PREFIXENTRY="Snap #1" # comment')
        self.assertEqual(value, "Snap #1")

    def test_parse_name_value_empty(self):
        (name, value) = parse_name_value("GRUB_BTRFS_ROOTFLAGS=", allow_empty=True)
        self.assertEqual(name, "GRUB_BTRFS_ROOTFLAGS")
        self.assertEqual(value, None)

    def test_blank_or_comment(self):
        self.assertTrue(blank_or_comment(""))
        self.assertTrue(blank_or_comment("   "))
        self.assertTrue(blank_or_comment("# comment"))
        self.assertTrue(blank_or_comment("  # indented comment"))
        self.assertFalse(blank_or_comment("GRUB_BTRFS_LIMIT=10"))

    def test_strip_non_digits(self):
        self.assertEqual(strip_non_digits(" 42*"), "42")
        self.assertEqual(strip_non_digits("@/.snapshots/12/snapshot"), "12")
        self.assertEqual(strip_non_digits("snapshot"), "")

    def test_find_program(self):
        set_mock_path()
        self.assertTrue(find_program("no-such-program", "btrfs").endswith("btrfs"))
        self.assertEqual(find_program("no-such-program"), None)

    # Error classes

    def test_exit_codes_distinct(self):
        errors = [
            SnapgrubConfigError,
            NotSupportedFilesystemError,
            MissingToolError,
            NoKernelFoundError,
            NoInitramfsFoundError,
            NoSnapshotsFoundError,
        ]
        codes = [err.exit_code for err in errors]
        self.assertEqual(len(codes), len(set(codes)))
        self.assertNotIn(EXIT_SUCCESS, codes)
        for err in errors:
            self.assertTrue(err.hint)

    def test_missing_tool_error(self):
        err = MissingToolError.missing("btrfs")
        self.assertTrue(isinstance(err, SnapgrubError))
        self.assertIn("btrfs", str(err))
        self.assertEqual(err.exit_code, EXIT_MISSING_TOOL)

    # Debug mask

    def test_set_debug_mask(self):
        set_debug_mask(SNAPGRUB_DEBUG_MENU)
        self.assertEqual(get_debug_mask(), SNAPGRUB_DEBUG_MENU)
        set_debug_mask(SNAPGRUB_DEBUG_ALL)
        self.assertEqual(get_debug_mask(), SNAPGRUB_DEBUG_ALL)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            set_debug_mask(SNAPGRUB_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            set_debug_mask(-1)

    def test_logger_set_debug_mask_bad_mask(self):
        _log = logging.getLogger("snapgrub.test")
        with self.assertRaises(ValueError):
            _log.set_debug_mask(SNAPGRUB_DEBUG_ALL + 1)

    # SnapgrubConfig

    def test_config_defaults(self):
        sc = SnapgrubConfig()
        self.assertEqual(sc.limit, DEFAULT_LIMIT)
        self.assertEqual(sc.sort, DEFAULT_SORT)
        self.assertEqual(sc.title_format, DEFAULT_TITLE_FORMAT)
        self.assertEqual(sc.prefix_entry, DEFAULT_PREFIX_ENTRY)
        self.assertEqual(sc.boot_dirname, DEFAULT_BOOT_DIRNAME)
        self.assertEqual(sc.ignore_specific_path, DEFAULT_IGNORE_SPECIFIC_PATH)
        self.assertTrue(sc.display_path_snapshot)
        self.assertFalse(sc.disable)

    def test_config_kwargs(self):
        sc = SnapgrubConfig(limit=5, prefix_entry="Snap:", sort=None)
        self.assertEqual(sc.limit, 5)
        self.assertEqual(sc.prefix_entry, "Snap:")
        self.assertEqual(sc.sort, DEFAULT_SORT)

    def test_config_bad_kwarg(self):
        with self.assertRaises(TypeError):
            SnapgrubConfig(no_such_option=1)

    def test_config_lists_not_shared(self):
        sc1 = SnapgrubConfig()
        sc2 = SnapgrubConfig()
        sc1.ignore_prefix_path.append("srv")
        self.assertNotIn("srv", sc2.ignore_prefix_path)
        self.assertNotIn("srv", DEFAULT_IGNORE_PREFIX_PATH)

    def test_config_str(self):
        sc = SnapgrubConfig(custom_kernels=["kernel-a", "kernel-b"])
        sc_str = str(sc)
        self.assertIn("limit = 50\n", sc_str)
        self.assertIn("custom_kernels = kernel-a kernel-b\n", sc_str)

    def test_config_repr(self):
        sc = SnapgrubConfig(limit=3)
        self.assertTrue(repr(sc).startswith("SnapgrubConfig("))
        self.assertIn("limit=3", repr(sc))

    def test_set_get_config(self):
        sc = SnapgrubConfig(limit=7)
        set_snapgrub_config(sc)
        self.assertEqual(get_snapgrub_config().limit, 7)

    def test_set_config_bad_object(self):
        with self.assertRaises(TypeError):
            set_snapgrub_config(object())

    def test_title_formats(self):
        self.assertEqual(len(TITLE_FORMATS), 8)
        self.assertIn(DEFAULT_TITLE_FORMAT, TITLE_FORMATS)

# vim: set et ts=4 sw=4 :
