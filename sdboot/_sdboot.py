# Copyright Red Hat
#
# sdboot/_sdboot.py - sdboot package initialisation
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""This module provides the declarations, classes, and functions exposed
in the main ``sdboot`` module. Users of sdboot should not import this
module directly: it will be imported automatically with the top level
module.

The module contains the line grammar shared by ``loader.conf`` and the
boot entry files (``parse_line()``), the serializer that renders either
kind of object back into its on-disk form (``to_text()``), the package
logging infrastructure and the active library configuration.
"""
from os.path import exists as path_exists, isabs, isdir, join as path_join
from errno import ENOENT
import logging

#: The default mount point of the EFI system partition.
DEFAULT_ESP_PATH = "/boot/efi"

#: The name of the systemd-boot directory on the ESP.
DEFAULT_LOADER_DIR = "loader"

#: The default loader root: contains loader.conf and entries/.
DEFAULT_LOADER_PATH = path_join(DEFAULT_ESP_PATH, DEFAULT_LOADER_DIR)

#: The name of the loader configuration file within the loader root.
LOADER_CONF = "loader.conf"

#: The name of the boot entries directory within the loader root.
ENTRIES_DIR = "entries"

#: The file name extension of boot entry files.
ENTRY_EXT = ".conf"

#: Configuration file mode
BOOT_CONFIG_MODE = 0o644

#: The default sdboot library configuration file location
SDBOOT_CONFIG_FILE = "sdboot.conf"
DEFAULT_SDBOOT_CONFIG_PATH = path_join("/etc", SDBOOT_CONFIG_FILE)
__sdboot_config_path = DEFAULT_SDBOOT_CONFIG_PATH

#: The comment character for both configuration formats.
COMMENT_CHAR = "#"

#
# Logging
#

SDBOOT_LOG_DEBUG = logging.DEBUG
SDBOOT_LOG_INFO = logging.INFO
SDBOOT_LOG_WARN = logging.WARNING
SDBOOT_LOG_ERROR = logging.ERROR

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# sdboot debugging levels
SDBOOT_DEBUG_ENTRY = 1
SDBOOT_DEBUG_LOADER = 2
SDBOOT_DEBUG_WRITE = 4
SDBOOT_DEBUG_ALL = SDBOOT_DEBUG_ENTRY | SDBOOT_DEBUG_LOADER | SDBOOT_DEBUG_WRITE

__debug_mask = 0


class SdbootError(Exception):
    """Base class of all sdboot exceptions."""

    pass


class SdbootLogger(logging.Logger):
    """SdbootLogger()

    sdboot logging wrapper class: wrap the Logger.debug() method
    to allow filtering of submodule debug messages by log mask.

    This allows us to selectively control which messages are
    logged in the library without having to tamper with the
    Handler, Filter or Formatter configurations (which belong
    to the client application using the library).
    """

    mask_bits = 0

    def set_debug_mask(self, mask_bits):
        """Set the debug mask for this ``SdbootLogger``.

        This should normally be set to the ``SDBOOT_DEBUG_*`` value
        corresponding to the ``sdboot`` sub-module that this instance
        of ``SdbootLogger`` belongs to.

        :param mask_bits: The bits to set in this logger's mask.
        :rtype: None
        """
        if mask_bits < 0 or mask_bits > SDBOOT_DEBUG_ALL:
            raise ValueError(
                "Invalid SdbootLogger mask bits: 0x%x"
                % (mask_bits & ~SDBOOT_DEBUG_ALL)
            )

        self.mask_bits = mask_bits

    def debug_masked(self, msg, *args, **kwargs):
        """Log a debug message if it passes the current debug mask.

        :param msg: the message to be logged
        :rtype: None
        """
        if self.mask_bits & get_debug_mask():
            self.debug(msg, *args, **kwargs)


logging.setLoggerClass(SdbootLogger)


def get_debug_mask():
    """Return the current debug mask for the ``sdboot`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    return __debug_mask


def set_debug_mask(mask):
    """Set the debug mask for the ``sdboot`` package.

    :param mask: the logical OR of the ``SDBOOT_DEBUG_*``
                 values to log.
    :rtype: None
    """
    global __debug_mask
    if mask < 0 or mask > SDBOOT_DEBUG_ALL:
        raise ValueError("Invalid sdboot debug mask: %d" % mask)
    __debug_mask = mask


class SdbootConfig(object):
    """Class representing sdboot persistent configuration values."""

    # Initialise members from global defaults

    esp_path = DEFAULT_ESP_PATH
    loader_path = DEFAULT_LOADER_PATH

    config_mode = BOOT_CONFIG_MODE

    def __str__(self):
        """Return a string representation of this ``SdbootConfig`` in
        sdboot.conf (INI) notation.
        """
        cstr = ""
        cstr += "[global]\n"
        cstr += "esp_root = %s\n" % self.esp_path
        cstr += "loader_root = %s\n\n" % self.loader_path

        cstr += "[write]\n"
        cstr += "mode = %o\n" % self.config_mode

        return cstr

    def __repr__(self):
        """Return a string representation of this ``SdbootConfig`` in
        SdbootConfig initialiser notation.
        """
        return 'SdbootConfig(esp_path="%s", loader_path="%s", config_mode=0o%o)' % (
            self.esp_path,
            self.loader_path,
            self.config_mode,
        )

    def __init__(self, esp_path=None, loader_path=None, config_mode=None):
        """Initialise a new ``SdbootConfig`` object with the supplied
        configuration values, or defaults for any unset arguments.

        If ``esp_path`` is given without ``loader_path`` the loader
        root defaults to the ``loader/`` directory of the new ESP.

        :param esp_path: the path to the EFI system partition mount
        :param loader_path: the path to the systemd-boot loader root
        :param config_mode: the file mode for written configuration
        """
        self.esp_path = esp_path or self.esp_path
        if loader_path:
            self.loader_path = loader_path
        elif esp_path:
            self.loader_path = path_join(esp_path, DEFAULT_LOADER_DIR)
        if config_mode is not None:
            self.config_mode = config_mode


__config = SdbootConfig()


def set_sdboot_config(config):
    """Set the active configuration to the object ``config`` (which may
    be any class that includes the ``SdbootConfig`` attributes).

    :param config: a configuration object
    :returns: None
    :raises: TypeError if ``config`` does not appear to have the
             correct attributes.
    """
    global __config

    def has_value(obj, attr):
        return hasattr(obj, attr) and getattr(obj, attr) is not None

    if not (has_value(config, "esp_path") and has_value(config, "loader_path")):
        raise TypeError("config does not appear to be a SdbootConfig object.")

    __config = config


def get_sdboot_config():
    """Return the active ``SdbootConfig`` object.

    :rtype: SdbootConfig
    """
    return __config


def get_esp_path():
    """Return the currently configured EFI system partition path.

    :rtype: str
    """
    return __config.esp_path


def get_loader_path():
    """Return the currently configured loader root path.

    :returns: the path to the directory holding loader.conf and entries/.
    :rtype: str
    """
    return __config.loader_path


def set_esp_path(esp_path):
    """Set the location of the EFI system partition to ``esp_path``.

    The loader root is re-set to the ``loader/`` directory of the
    new ESP. A different loader root may be configured by calling
    ``set_loader_path()`` after setting the ESP path.

    :param esp_path: the absolute path to the ESP mount point.
    :returns: ``None``
    :raises: ValueError if ``esp_path`` is relative or does not exist.
    """
    if not isabs(esp_path):
        raise ValueError("esp_path must be an absolute path: %s" % esp_path)

    if not path_exists(esp_path):
        raise ValueError("Path '%s' does not exist" % esp_path)

    __config.esp_path = esp_path
    _log_debug("Set ESP path to: %s", esp_path)
    __config.loader_path = path_join(esp_path, DEFAULT_LOADER_DIR)


def set_loader_path(loader_path):
    """Set the location of the systemd-boot loader root.

    A relative ``loader_path`` is taken relative to the configured
    ESP path.

    :param loader_path: the loader root directory.
    :returns: ``None``
    :raises: ValueError if ``loader_path`` does not exist.
    """
    if not isabs(loader_path):
        loader_path = path_join(__config.esp_path, loader_path)

    if not isdir(loader_path):
        raise ValueError("Loader path %s does not exist" % loader_path)

    _log_debug("Set loader path to: %s", loader_path)
    __config.loader_path = loader_path


def get_sdboot_config_path():
    """Return the currently configured sdboot configuration file path.

    :rtype: str
    """
    return __sdboot_config_path


def set_sdboot_config_path(path):
    """Set the sdboot configuration file path.

    If ``path`` is a directory the ``sdboot.conf`` file within it
    is used.

    :raises: OSError if the file does not exist.
    """
    global __sdboot_config_path
    path = path or get_sdboot_config_path()
    if isdir(path):
        path = path_join(path, SDBOOT_CONFIG_FILE)
    if not path_exists(path):
        raise OSError(ENOENT, "File not found: '%s'" % path)
    __sdboot_config_path = path
    _log_debug("set sdboot_config_path to '%s'", path)


#
# Directive grammar shared by loader.conf and boot entry files.
#


def blank_or_comment(line):
    """Test whether line is empty of contains a comment.

    :param line: the line of text to be checked.
    :returns: ``True`` if the line is blank or a comment,
              and ``False`` otherwise.
    :rtype: bool
    """
    return not line.strip() or line.lstrip().startswith(COMMENT_CHAR)


def parse_line(line):
    """Parse one configuration line into a ``(key, value)`` tuple.

    The key is the text up to the first run of white space and the
    value is the remainder of the line. The value is stripped at both
    ends but white space inside it is significant and preserved (for
    e.g. a multi-token ``options`` line). A key with no value gives
    ``(key, "")``.

    :param line: A line of text, optionally newline terminated.
    :returns: A ``(key, value)`` tuple, or ``None`` for a blank
              or comment line.
    :rtype: (str, str) tuple or ``NoneType``
    """
    if blank_or_comment(line):
        return None

    fields = line.strip().split(None, 1)
    key = fields[0]
    value = fields[1].strip() if len(fields) > 1 else ""
    return (key, value)


def split_lines(text):
    """Split configuration ``text`` into a list of lines.

    :param text: The file content as a string.
    :rtype: list of str
    """
    return text.splitlines()


def format_directive(key, value):
    """Format a single ``key value`` directive line.

    A directive with an empty value is written as a bare key. Values
    are written verbatim and may not begin or end with white space.

    :param key: The directive key.
    :param value: The raw directive value.
    :returns: The formatted line without a trailing newline.
    :rtype: str
    :raises: ValueError if the directive cannot be represented in
             the line format.
    """
    if not key or any(c.isspace() for c in key):
        raise ValueError("Invalid directive key: '%s'" % key)
    if key.startswith(COMMENT_CHAR):
        raise ValueError("Directive key cannot start with '%s': %s" % (COMMENT_CHAR, key))
    value = "" if value is None else str(value)
    if "\n" in value or "\r" in value:
        raise ValueError("Directive '%s' value contains a line break" % key)
    if value != value.strip():
        raise ValueError(
            "Directive '%s' value has leading or trailing white space: %r"
            % (key, value)
        )
    return "%s %s" % (key, value) if value else key


def to_text(obj):
    """Render a ``LoaderConfig`` or ``Entry`` in on-disk notation.

    The object's ``directives()`` are formatted one per line in the
    order returned, which is the canonical order for the object type.
    The result always ends with a newline.

    :param obj: The object to serialize.
    :returns: The configuration file text.
    :rtype: str
    """
    lines = [format_directive(key, value) for (key, value) in obj.directives()]
    return "".join(line + "\n" for line in lines)


__all__ = [
    # sdboot module constants
    "DEFAULT_ESP_PATH",
    "DEFAULT_LOADER_DIR",
    "DEFAULT_LOADER_PATH",
    "LOADER_CONF",
    "ENTRIES_DIR",
    "ENTRY_EXT",
    "BOOT_CONFIG_MODE",
    "SDBOOT_CONFIG_FILE",
    "DEFAULT_SDBOOT_CONFIG_PATH",
    # API Classes
    "SdbootConfig",
    # Path configuration
    "get_esp_path",
    "get_loader_path",
    "set_esp_path",
    "set_loader_path",
    "get_sdboot_config_path",
    "set_sdboot_config_path",
    # Persistent configuration
    "set_sdboot_config",
    "get_sdboot_config",
    # sdboot exception base class
    "SdbootError",
    # sdboot logger class (used by test suite)
    "SdbootLogger",
    # Debug logging
    "get_debug_mask",
    "set_debug_mask",
    "SDBOOT_DEBUG_ENTRY",
    "SDBOOT_DEBUG_LOADER",
    "SDBOOT_DEBUG_WRITE",
    "SDBOOT_DEBUG_ALL",
    # Directive grammar and serializer
    "blank_or_comment",
    "parse_line",
    "split_lines",
    "format_directive",
    "to_text",
]

# vim: set et ts=4 sw=4 :
