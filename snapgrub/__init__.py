# Copyright Red Hat
#
# snapgrub/__init__.py - Snapgrub package initialisation
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""This module provides classes and functions for generating GRUB boot
menu entries that boot directly into btrfs snapshots of the root file
system.

The ``snapgrub`` package contains global definitions, the run
configuration object, the exception hierarchy and the logging
infrastructure for the package.

Individual sub-modules provide the components of the snapshot menu
generator: the snapshot catalog, boot artifact matching, boot topology
resolution, GRUB menu rendering and the orchestrating generator, along
with thin integrations for the ``btrfs``, ``snapper`` and
``grub-probe`` tools and the ``snapgrub`` command line interface.

See the sub-module documentation for specific information on the
classes and interfaces provided, and the ``snapgrub`` tool help output
for information on using the command line interface.
"""
from ._snapgrub import *
from ._snapgrub import __all__

__version__ = "1.0.0"
# vim: set et ts=4 sw=4 :
