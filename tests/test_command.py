# Copyright Red Hat
#
# tests/test_command.py - Snapgrub command line tests.
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
import unittest
import logging
from os.path import exists, join

log = logging.getLogger()

from snapgrub import *
from snapgrub.command import *

# For access to non-exported members
import snapgrub.command

from tests import *

CONFIG_PATH = join(SANDBOX_PATH, "config")

debug_masks = ['catalog', 'artifacts', 'menu', 'command', 'mounts', 'probe', 'all']


class CommandHelperTests(unittest.TestCase):
    """Test internal snapgrub.command helpers: methods in this part of
        the test suite import snapgrub.command directly in order to
        access the non-public helper routines not included in __all__.
    """
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        log.debug("Tearing down %s", self._testMethodName)
        set_debug_mask(0)

    def test_set_debug_no_debug_arg(self):
        """Test set_debug() with an empty debug mask argument.
        """
        set_debug(None)
        self.assertEqual(get_debug_mask(), 0)

    def test_set_debug_args_one(self):
        """Test set_debug() with a single debug mask argument.
        """
        for mask in debug_masks:
            set_debug(mask)
            self.assertEqual(get_debug_mask(), snapgrub.command._debug_masks[mask])

    def test_set_debug_args_all(self):
        """Test set_debug() with a list of debug mask arguments.
        """
        set_debug(",".join(debug_masks[:-1]))
        self.assertEqual(get_debug_mask(), SNAPGRUB_DEBUG_ALL)

    def test_set_debug_bad_debug_arg(self):
        """Test set_debug() with a bad debug mask argument.
        """
        with self.assertRaises(ValueError):
            set_debug("nosuchmask")

    def test_setup_logging(self):
        """Test the setup_logging() and shutdown_logging() command
            helpers.
        """
        args = MockArgs()
        args.verbose = 1
        setup_logging(args)
        snapgrub_log = logging.getLogger("snapgrub")
        self.assertEqual(snapgrub_log.level, logging.DEBUG)
        handler = snapgrub.command._console_handler
        self.assertTrue(handler in snapgrub_log.handlers)
        shutdown_logging()
        self.assertFalse(handler in snapgrub_log.handlers)
        self.assertEqual(snapgrub.command._console_handler, None)

    def test_match_command(self):
        self.assertEqual(
            snapgrub.command._match_command(GENERATE_CMD),
            snapgrub.command._generate_cmd,
        )
        self.assertEqual(
            snapgrub.command._match_command(LIST_CMD),
            snapgrub.command._list_cmd,
        )
        self.assertEqual(snapgrub.command._match_command("frobnicate"), None)


class CommandTests(unittest.TestCase):
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        reset_sandbox()

    def tearDown(self):
        log.debug("Tearing down %s", self._testMethodName)
        rm_sandbox()
        set_snapgrub_config(SnapgrubConfig())
        set_debug_mask(0)

    def test_main_bad_command(self):
        self.assertEqual(main(["snapgrub", "frobnicate"]), EXIT_CONFIG)

    def test_main_bad_debug(self):
        touch(CONFIG_PATH, "")
        args = ["snapgrub", "-c", CONFIG_PATH, "-d", "nosuchmask"]
        self.assertEqual(main(args), EXIT_CONFIG)

    def test_main_missing_config(self):
        args = ["snapgrub", "-c", join(SANDBOX_PATH, "nonexistent")]
        self.assertEqual(main(args), EXIT_CONFIG)

    def test_main_bad_config_value(self):
        touch(CONFIG_PATH, 'GRUB_BTRFS_TITLE_FORMAT="x/y"\n')
        self.assertEqual(main(["snapgrub", "-c", CONFIG_PATH]), EXIT_CONFIG)

    def test_main_generate_disabled(self):
        touch(
            CONFIG_PATH,
            'GRUB_BTRFS_DISABLE="true"\nGRUB_BTRFS_GRUB_DIRNAME="%s"\n' % SANDBOX_PATH,
        )
        args = ["snapgrub", "generate", "-c", CONFIG_PATH, "-v", "-d", "command"]
        self.assertEqual(main(args), EXIT_SUCCESS)
        self.assertEqual(get_snapgrub_config().disable, True)
        self.assertFalse(exists(join(SANDBOX_PATH, SNAPGRUB_CFG_FILE)))

# vim: set et ts=4 sw=4 :
