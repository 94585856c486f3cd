# Copyright Red Hat
#
# tests/__init__.py - sdboot test package initialisation
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
from os.path import abspath, dirname, join
from os import listdir, makedirs
import logging
import shutil
import errno

import sdboot

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
BOOT_ROOT_TEST = abspath(dirname(__file__))

# Location of the test loader root (loader.conf and entries/)
LOADER_ROOT_TEST = join(BOOT_ROOT_TEST, "loader")

# Location of the temporary sandbox for test data
SANDBOX_PATH = join(BOOT_ROOT_TEST, "sandbox")

# The sandbox ESP and loader root
SANDBOX_ESP = join(SANDBOX_PATH, "efi")
SANDBOX_LOADER = join(SANDBOX_ESP, "loader")

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


def mk_loader_sandbox():
    """Reset the sandbox and populate SANDBOX_LOADER with a copy of
        the test loader root.
    """
    reset_sandbox()
    makedirs(SANDBOX_ESP)
    shutil.copytree(LOADER_ROOT_TEST, SANDBOX_LOADER)


def reset_sdboot_paths():
    """Reset configurable sdboot module paths to the default test values.
    """
    sdboot.set_sdboot_config(sdboot.SdbootConfig(esp_path=BOOT_ROOT_TEST,
                                                 loader_path=LOADER_ROOT_TEST))


def tmp_files(path):
    """Return the names of temporary files left in ``path`` by an
        interrupted atomic write.
    """
    return [f for f in listdir(path) if f.endswith(".tmp")]


def write_file(path, text):
    """Write ``text`` to ``path`` directly, bypassing sdboot.
    """
    with open(path, "w") as f:
        f.write(text)


def read_file(path):
    """Return the content of ``path`` as a string.
    """
    with open(path, "r") as f:
        return f.read()


__all__ = [
    'BOOT_ROOT_TEST', 'LOADER_ROOT_TEST', 'SANDBOX_PATH', 'SANDBOX_ESP',
    'SANDBOX_LOADER',
    'rm_sandbox', 'mk_sandbox', 'reset_sandbox', 'mk_loader_sandbox',
    'reset_sdboot_paths', 'tmp_files', 'write_file', 'read_file',
]

# vim: set et ts=4 sw=4 :
