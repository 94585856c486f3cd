# Copyright Red Hat
#
# sdboot/__init__.py - sdboot package initialisation
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""This module provides classes and functions for reading, displaying,
and rewriting the on-disk configuration of the systemd-boot EFI boot
loader.

The ``sdboot`` package contains global definitions, the directive
grammar and serializer shared by the two configuration formats,
functions to configure the sdboot environment and the logging
infrastructure for the package.

Individual sub-modules provide interfaces to the various components of
sdboot: the ``loader.conf`` model (``sdboot.loader``), boot entries and
the entry directory scanner (``sdboot.entry``), the atomic file writer
(``sdboot.atomic``), the ``Collection`` facade bound to a loader root
directory (``sdboot.collection``) and the persistent library
configuration (``sdboot.config``).
"""
from ._sdboot import *
from ._sdboot import __all__

__version__ = "0.3.0"
# vim: set et ts=4 sw=4 :
