#!/usr/bin/env python
from setuptools import setup

from snapgrub import __version__ as snapgrub_version

setup(
    name='snapgrub',
    version=snapgrub_version,
    description=("""GRUB menu entries for booting btrfs snapshots."""),
    license="GPLv2",
    test_suite="tests",
    scripts=['bin/snapgrub'],
    packages=['snapgrub'],
)


# vim: set et ts=4 sw=4 :
