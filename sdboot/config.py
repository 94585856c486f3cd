# Copyright Red Hat
#
# sdboot/config.py - sdboot persistent configuration
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``sdboot.config`` module defines classes, constants and functions
for reading and writing persistent (on-disk) configuration for the
sdboot library and tools.

Users of the module can load and write configuration data, and obtain
the values of configuration keys defined in the sdboot configuration
file.
"""
from configparser import ConfigParser, ParsingError
from io import StringIO
import logging

from sdboot import *
from sdboot.atomic import write_atomic


class SdbootConfigError(SdbootError):
    """Base class for sdboot configuration errors."""

    pass


# Module logging configuration
_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#
# Constants for configuration sections and options: to add a new option,
# create a new _CFG_* constant giving the name of the option and add a
# hook to _read_sdboot_config() to set the value when read.
#
_CFG_SECT_GLOBAL = "global"
_CFG_SECT_WRITE = "write"
_CFG_ESP_ROOT = "esp_root"
_CFG_LOADER_ROOT = "loader_root"
_CFG_WRITE_MODE = "mode"


def _read_sdboot_config(path=None):
    """Read sdboot persistent configuration values from the defined path
    and return them as a ``SdbootConfig`` object.

    :param path: the configuration file to read, or None to read the
                 currently configured config file path.

    :rtype: SdbootConfig
    :raises: SdbootConfigError if the file is missing the ``global``
             section or contains an invalid value.
    """
    path = path or get_sdboot_config_path()
    _log_debug("reading sdboot configuration from '%s'", path)
    cfg = ConfigParser()
    try:
        cfg.read(path)
    except ParsingError as e:
        _log_error("Failed to parse configuration file '%s': %s", path, e)
        raise SdbootConfigError("Failed to parse '%s': %s" % (path, e))

    if not cfg.has_section(_CFG_SECT_GLOBAL):
        raise SdbootConfigError("Missing 'global' section in %s" % path)

    esp_path = None
    loader_path = None
    config_mode = None

    if cfg.has_option(_CFG_SECT_GLOBAL, _CFG_ESP_ROOT):
        _log_debug("Found global.esp_root")
        esp_path = cfg.get(_CFG_SECT_GLOBAL, _CFG_ESP_ROOT)
    if cfg.has_option(_CFG_SECT_GLOBAL, _CFG_LOADER_ROOT):
        _log_debug("Found global.loader_root")
        loader_path = cfg.get(_CFG_SECT_GLOBAL, _CFG_LOADER_ROOT)

    if cfg.has_section(_CFG_SECT_WRITE):
        if cfg.has_option(_CFG_SECT_WRITE, _CFG_WRITE_MODE):
            _log_debug("Found write.mode")
            mode = cfg.get(_CFG_SECT_WRITE, _CFG_WRITE_MODE)
            try:
                config_mode = int(mode, 8)
            except ValueError:
                raise SdbootConfigError("Invalid write mode in %s: %s" % (path, mode))

    sc = SdbootConfig(
        esp_path=esp_path, loader_path=loader_path, config_mode=config_mode
    )
    _log_debug("read configuration: %s", repr(sc))
    return sc


def load_sdboot_config(path=None):
    """Load sdboot persistent configuration values from the defined path
    and make them the active configuration.

    :param path: the configuration file to read, or None to read the
                 currently configured config file path

    :rtype: SdbootConfig
    """
    sc = _read_sdboot_config(path=path)
    set_sdboot_config(sc)
    return sc


def _make_config(sc):
    """Create a new ``ConfigParser`` corresponding to the ``SdbootConfig``
    object ``sc`` and return the result.
    """
    cfg = ConfigParser()
    cfg.add_section(_CFG_SECT_GLOBAL)
    cfg.add_section(_CFG_SECT_WRITE)
    cfg.set(_CFG_SECT_GLOBAL, _CFG_ESP_ROOT, sc.esp_path)
    cfg.set(_CFG_SECT_GLOBAL, _CFG_LOADER_ROOT, sc.loader_path)
    cfg.set(_CFG_SECT_WRITE, _CFG_WRITE_MODE, "%o" % sc.config_mode)
    return cfg


def write_sdboot_config(config=None, path=None):
    """Write sdboot configuration to disk.

    :param config: the configuration values to write, or None to
                   write the current configuration
    :param path: the configuration file to write, or None to write the
                 currently configured config file path

    :rtype: None
    """
    path = path or get_sdboot_config_path()
    config = config or get_sdboot_config()

    with StringIO() as buf:
        _make_config(config).write(buf)
        text = buf.getvalue()

    write_atomic(path, text.encode("utf8"), mode=BOOT_CONFIG_MODE)
    _log_debug("wrote configuration to '%s'", path)


__all__ = [
    "SdbootConfigError",
    # Configuration file handling
    "load_sdboot_config",
    "write_sdboot_config",
]

# vim: set et ts=4 sw=4 :
