# Copyright Red Hat
#
# sdboot/loader.py - systemd-boot loader.conf model
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``sdboot.loader`` module defines the ``LoaderConfig`` class,
representing the systemd-boot ``loader.conf`` file.

Only the ``default`` and ``timeout`` directives are modelled as typed
attributes. Every other directive (``console-mode``, ``editor``,
``auto-entries`` and any directive added to systemd-boot in future) is
kept in the ordered ``extra`` list and written back unchanged.

Parsing never fails: a malformed ``timeout`` is kept as an unmodelled
directive so that a single bad line does not prevent the rest of the
boot configuration from being inspected.
"""
import logging

from sdboot import *

#: The ``loader.conf`` default entry key.
LOADER_KEY_DEFAULT = "default"
#: The ``loader.conf`` menu timeout key.
LOADER_KEY_TIMEOUT = "timeout"

#: The ordered list of modelled ``loader.conf`` keys.
LOADER_KEYS = [LOADER_KEY_DEFAULT, LOADER_KEY_TIMEOUT]

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SDBOOT_DEBUG_LOADER)

_log_debug = _log.debug
_log_debug_loader = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _parse_timeout(value):
    """Return ``value`` as a timeout in seconds, or ``None`` if it is
    not a non-negative integer.
    """
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


def _drop_key(extra, key):
    """Return ``extra`` without any directives named ``key``."""
    return [(k, v) for (k, v) in extra if k != key]


class LoaderConfig(object):
    """A class representing the systemd-boot ``loader.conf`` file.

    :ivar default: the identifier of the default entry, or ``None``.
    :ivar timeout: the menu timeout in seconds, or ``None``.
    :ivar extra: a list of ``(key, value)`` tuples for unmodelled
                 directives, in file order.

    The ``default`` value is not checked against the set of installed
    entries: it may name an entry that has not been written yet.
    """

    def __init__(self, default=None, timeout=None, extra=None):
        """Initialise a new ``LoaderConfig``.

        :param default: the default entry identifier.
        :param timeout: the menu timeout in whole seconds.
        :param extra: unmodelled ``(key, value)`` directives.
        :raises: ValueError if ``timeout`` is not a non-negative integer.
        """
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, int) or timeout < 0
        ):
            raise ValueError("Invalid loader timeout: %r" % (timeout,))
        self.default = default or None
        self.timeout = timeout
        self.extra = [(k, v) for (k, v) in extra] if extra else []

    @classmethod
    def parse(cls, lines):
        """Build a ``LoaderConfig`` from the lines of a ``loader.conf``.

        Blank and comment lines are skipped. A ``timeout`` that is not
        a non-negative integer (including the ``menu-*`` keywords) and
        an empty ``default`` are stored in ``extra``.

        As in systemd-boot, the last ``default`` or ``timeout`` line
        wins: each one discards any earlier line with the same key,
        whether it was modelled or kept in ``extra``.

        :param lines: an iterable of configuration lines.
        :rtype: LoaderConfig
        """
        lc = cls()
        for line in lines:
            directive = parse_line(line)
            if not directive:
                continue
            (key, value) = directive
            if key == LOADER_KEY_DEFAULT:
                lc.extra = _drop_key(lc.extra, key)
                lc.default = value or None
                if lc.default:
                    continue
            elif key == LOADER_KEY_TIMEOUT:
                lc.extra = _drop_key(lc.extra, key)
                lc.timeout = _parse_timeout(value)
                if lc.timeout is not None:
                    continue
            if key in LOADER_KEYS:
                _log_info("Keeping malformed '%s' directive: '%s'", key, value)
            _log_debug_loader("Unmodelled loader directive '%s'", key)
            lc.extra.append((key, value))
        return lc

    @classmethod
    def from_file(cls, path):
        """Read a ``LoaderConfig`` from the file at ``path``.

        :param path: the path to ``loader.conf``.
        :rtype: LoaderConfig
        :raises: ``OSError`` if the file cannot be read.
        """
        _log_debug("Loading LoaderConfig from '%s'", path)
        with open(path, "r", encoding="utf8") as f:
            return cls.parse(split_lines(f.read()))

    def directives(self):
        """Return this ``LoaderConfig`` as a list of ``(key, value)``
        directives in canonical order: ``default``, ``timeout``, then
        the unmodelled directives in their original order.

        A ``default`` or ``timeout`` directive held in ``extra`` is
        omitted when the corresponding attribute is set, so that the
        attribute is the value systemd-boot uses.

        :rtype: list of (str, str) tuples
        :raises: ValueError if ``extra`` holds a ``default`` or
                 ``timeout`` directive that would be read back as
                 the modelled value, or more than one of either.
        """
        extra = self.extra
        directives = []
        if self.default:
            directives.append((LOADER_KEY_DEFAULT, self.default))
            extra = _drop_key(extra, LOADER_KEY_DEFAULT)
        if self.timeout is not None:
            directives.append((LOADER_KEY_TIMEOUT, str(self.timeout)))
            extra = _drop_key(extra, LOADER_KEY_TIMEOUT)

        for key in LOADER_KEYS:
            values = [v for (k, v) in extra if k == key]
            if len(values) > 1:
                raise ValueError("Multiple '%s' directives in extra" % key)
            if not values:
                continue
            if key == LOADER_KEY_DEFAULT and values[0]:
                raise ValueError("Default entry '%s' must be set with "
                                 "the default attribute" % values[0])
            if key == LOADER_KEY_TIMEOUT and _parse_timeout(values[0]) is not None:
                raise ValueError("Timeout '%s' must be set with "
                                 "the timeout attribute" % values[0])

        directives.extend(extra)
        return directives

    def to_text(self):
        """Return the ``loader.conf`` text for this object."""
        return to_text(self)

    def __str__(self):
        return self.to_text()

    def __repr__(self):
        return "LoaderConfig(default=%r, timeout=%r, extra=%r)" % (
            self.default,
            self.timeout,
            self.extra,
        )

    def __eq__(self, other):
        if not isinstance(other, LoaderConfig):
            return NotImplemented
        return (
            self.default == other.default
            and self.timeout == other.timeout
            and list(self.extra) == list(other.extra)
        )


def read_loader_config(path):
    """Read ``loader.conf`` at ``path``.

    A missing file is not an error: systemd-boot runs with built-in
    defaults when no ``loader.conf`` exists, and an empty
    ``LoaderConfig`` is returned.

    :param path: the path to ``loader.conf``.
    :rtype: LoaderConfig
    :raises: ``OSError`` for any read failure other than a missing file.
    """
    try:
        return LoaderConfig.from_file(path)
    except FileNotFoundError:
        _log_debug("No loader configuration at '%s'", path)
        return LoaderConfig()


__all__ = [
    "LOADER_KEY_DEFAULT",
    "LOADER_KEY_TIMEOUT",
    "LOADER_KEYS",
    "LoaderConfig",
    "read_loader_config",
]

# vim: set et ts=4 sw=4 :
