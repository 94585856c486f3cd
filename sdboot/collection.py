# Copyright Red Hat
#
# sdboot/collection.py - systemd-boot loader root access
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``sdboot.collection`` module defines the ``Collection`` class: the
entry point for tools that inspect or modify the systemd-boot
configuration stored under a loader root directory.

A ``Collection`` keeps no state other than the loader root path. Every
call reads the files it needs from disk, so changes made by other
processes are always visible, and every write replaces a single file
atomically using ``sdboot.atomic.write_atomic()``.

Objects returned by a ``Collection`` are independent values: modifying
an ``Entry`` or ``LoaderConfig`` has no effect until it is passed back
to ``put_entry()`` or ``save_loader_config()``.

No locking is performed across files: reading ``loader.conf`` and then
the entries directory is not an atomic snapshot. Callers that need a
consistent view must serialise access to the loader root themselves.
"""
from os.path import exists as path_exists, isfile, join as path_join
from os import unlink
import logging

from sdboot import *
from sdboot.atomic import write_atomic
from sdboot.entry import Entry, check_entry_id, scan_entries
from sdboot.loader import (
    LOADER_KEY_DEFAULT,
    LOADER_KEY_TIMEOUT,
    LoaderConfig,
    read_loader_config,
)

#: ``loader.conf`` does not set a default entry.
DEFAULT_NOT_DEFINED = "not-defined"
#: The default entry names an existing entry file.
DEFAULT_EXISTS = "exists"
#: The default entry names an entry that does not exist.
DEFAULT_DOES_NOT_EXIST = "does-not-exist"

# Module logging configuration
_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


class NotFoundError(SdbootError):
    """No boot entry exists with the requested identifier."""

    def __init__(self, entry_id):
        super(NotFoundError, self).__init__(entry_id)
        self.entry_id = entry_id

    def __str__(self):
        return "Boot entry not found: %s" % self.entry_id


class Collection(object):
    """The systemd-boot configuration found under a loader root.

    The loader root contains ``loader.conf`` and the ``entries/``
    directory; it is normally the ``loader/`` directory of the EFI
    system partition.
    """

    def __init__(self, root=None):
        """Initialise a new ``Collection`` for the loader root ``root``.

        :param root: the loader root directory, or ``None`` to use the
                     configured loader path (``get_loader_path()``).
        """
        self._root = root or get_loader_path()
        _log_debug("Using loader root '%s'", self._root)

    @classmethod
    def from_esp(cls, esp_path):
        """Return a ``Collection`` for the ESP mounted at ``esp_path``.

        :param esp_path: the EFI system partition mount point.
        :rtype: Collection
        """
        return cls(path_join(esp_path, DEFAULT_LOADER_DIR))

    def __repr__(self):
        return 'Collection(root="%s")' % self._root

    @property
    def root(self):
        """The loader root directory."""
        return self._root

    @property
    def loader_conf_path(self):
        """The path to ``loader.conf``."""
        return path_join(self._root, LOADER_CONF)

    @property
    def entries_path(self):
        """The path to the boot entries directory."""
        return path_join(self._root, ENTRIES_DIR)

    def _entry_path(self, entry_id):
        check_entry_id(entry_id)
        return path_join(self.entries_path, "%s%s" % (entry_id, ENTRY_EXT))

    # loader.conf

    def load_loader_config(self):
        """Read ``loader.conf``.

        :returns: the current loader configuration, or an empty
                  ``LoaderConfig`` if the file does not exist.
        :rtype: LoaderConfig
        :raises: ``OSError`` if the file cannot be read.
        """
        return read_loader_config(self.loader_conf_path)

    def save_loader_config(self, cfg):
        """Write ``cfg`` to ``loader.conf``, replacing the current file.

        The ``default`` value is written as given: it is not required
        to name an existing entry.

        :param cfg: the ``LoaderConfig`` to write.
        :raises: ``OSError`` if the file cannot be written,
                 ``ValueError`` if ``cfg`` cannot be represented.
        """
        text = cfg.to_text()
        write_atomic(self.loader_conf_path, text.encode("utf8"))
        _log_info("Wrote loader configuration to '%s'", self.loader_conf_path)

    def set_default(self, entry_id):
        """Set the ``default`` directive of ``loader.conf``.

        All other directives are preserved. Unsetting the default also
        removes an empty ``default`` line.

        :param entry_id: the new default entry, or ``None`` to unset.
        """
        cfg = self.load_loader_config()
        cfg.default = entry_id or None
        if not cfg.default:
            cfg.extra = [(k, v) for (k, v) in cfg.extra if k != LOADER_KEY_DEFAULT]
        self.save_loader_config(cfg)

    def set_timeout(self, timeout):
        """Set the ``timeout`` directive of ``loader.conf``.

        All other directives are preserved. Any earlier ``timeout``
        line, including a ``menu-*`` keyword, is replaced.

        :param timeout: the menu timeout in seconds, or ``None`` to unset.
        :raises: ValueError if ``timeout`` is negative.
        """
        cfg = self.load_loader_config()
        # Validate through the initialiser.
        cfg.timeout = LoaderConfig(timeout=timeout).timeout
        if cfg.timeout is None:
            cfg.extra = [(k, v) for (k, v) in cfg.extra if k != LOADER_KEY_TIMEOUT]
        self.save_loader_config(cfg)

    def default_entry_state(self):
        """Check whether the configured default entry exists.

        :returns: ``DEFAULT_NOT_DEFINED``, ``DEFAULT_EXISTS`` or
                  ``DEFAULT_DOES_NOT_EXIST``.
        :rtype: str
        """
        cfg = self.load_loader_config()
        if not cfg.default:
            return DEFAULT_NOT_DEFINED
        try:
            exists = self.entry_exists(cfg.default)
        except ValueError:
            exists = False
        return DEFAULT_EXISTS if exists else DEFAULT_DOES_NOT_EXIST

    # Boot entries

    def list_entries(self):
        """Load all boot entries.

        :returns: a list of ``ScanResult`` tuples in directory order;
                  entries that fail to load are reported with their
                  error rather than aborting the scan.
        :rtype: list
        :raises: ``OSError`` if the entries directory cannot be listed.
        """
        return scan_entries(self.entries_path)

    def entry_exists(self, entry_id):
        """Return ``True`` if an entry file exists for ``entry_id``.

        :param entry_id: the entry identifier.
        :rtype: bool
        """
        return isfile(self._entry_path(entry_id))

    def get_entry(self, entry_id):
        """Read the entry with identifier ``entry_id``.

        :param entry_id: the entry identifier.
        :returns: the ``Entry``, or ``None`` if no such file exists.
        :rtype: Entry
        :raises: ``EntryParseError`` if the file is not a valid entry,
                 ``OSError`` if it cannot be read.
        """
        entry_path = self._entry_path(entry_id)
        try:
            return Entry.from_file(entry_path)
        except FileNotFoundError:
            _log_debug("No entry file for '%s'", entry_id)
            return None

    def put_entry(self, entry):
        """Write ``entry`` to ``<entries>/<id>.conf``.

        The file is created if it does not exist and replaced if it
        does.

        :param entry: the ``Entry`` to write.
        :raises: ``OSError`` if the file cannot be written,
                 ``ValueError`` if ``entry`` cannot be represented.
        """
        entry_path = self._entry_path(entry.id)
        text = entry.to_text()
        write_atomic(entry_path, text.encode("utf8"))
        _log_info("Wrote entry '%s' to '%s'", entry.id, entry_path)

    def remove_entry(self, entry_id):
        """Delete the entry file for ``entry_id``.

        A ``default`` directive naming the entry is not changed.

        :param entry_id: the entry identifier.
        :raises: ``NotFoundError`` if no such entry exists,
                 ``OSError`` if the file cannot be removed.
        """
        entry_path = self._entry_path(entry_id)
        if not path_exists(entry_path):
            raise NotFoundError(entry_id)
        try:
            unlink(entry_path)
        except FileNotFoundError:
            raise NotFoundError(entry_id)
        except OSError as e:
            _log_error("Error removing entry file %s: %s", entry_path, e)
            raise
        _log_info("Removed entry '%s'", entry_id)


__all__ = [
    "DEFAULT_NOT_DEFINED",
    "DEFAULT_EXISTS",
    "DEFAULT_DOES_NOT_EXIST",
    "NotFoundError",
    "Collection",
]

# vim: set et ts=4 sw=4 :
