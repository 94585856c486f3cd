# Copyright Red Hat
#
# sdboot/entry.py - systemd-boot boot entries
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``sdboot.entry`` module defines the ``Entry`` class representing
an individual systemd-boot boot entry file, and the ``scan_entries()``
function that loads every entry found in an entries directory.

An ``Entry`` is identified by its ``id``: the name of its file in the
entries directory without the ``.conf`` extension. This is the value
referenced by the ``default`` directive of ``loader.conf``.

The recognised entry keys are available as the ``ENTRY_KEY_*`` module
members and the ``ENTRY_KEYS`` list, which also gives the canonical
order in which keys are written. A map from on-disk key names to
``Entry`` attribute names is provided in the ``KEY_MAP`` dictionary.

Unrecognised keys are never an error: they are kept in the ``extra``
list of the entry, in file order, and written back after the
recognised keys.
"""
from collections import namedtuple
from os.path import basename, isfile, join as path_join
from os import listdir
import logging

from sdboot import *

#: The ``Entry`` title key.
ENTRY_KEY_TITLE = "title"
#: The ``Entry`` version key.
ENTRY_KEY_VERSION = "version"
#: The ``Entry`` machine-id key.
ENTRY_KEY_MACHINE_ID = "machine-id"
#: The ``Entry`` linux key.
ENTRY_KEY_LINUX = "linux"
#: The ``Entry`` initrd key (may be repeated).
ENTRY_KEY_INITRD = "initrd"
#: The ``Entry`` options key (repeated lines are concatenated).
ENTRY_KEY_OPTIONS = "options"
#: The ``Entry`` architecture key.
ENTRY_KEY_ARCHITECTURE = "architecture"

#: An ordered list of all recognised ``Entry`` keys.
ENTRY_KEYS = [
    ENTRY_KEY_TITLE,
    ENTRY_KEY_VERSION,
    ENTRY_KEY_MACHINE_ID,
    ENTRY_KEY_LINUX,
    ENTRY_KEY_INITRD,
    ENTRY_KEY_OPTIONS,
    ENTRY_KEY_ARCHITECTURE,
]

#: Map on-disk entry keys to ``Entry`` attribute names
KEY_MAP = {
    ENTRY_KEY_TITLE: "title",
    ENTRY_KEY_VERSION: "version",
    ENTRY_KEY_MACHINE_ID: "machine_id",
    ENTRY_KEY_LINUX: "linux",
    ENTRY_KEY_INITRD: "initrd",
    ENTRY_KEY_OPTIONS: "options",
    ENTRY_KEY_ARCHITECTURE: "architecture",
}

#: Keys holding a single optional string value.
SCALAR_KEYS = [
    ENTRY_KEY_TITLE,
    ENTRY_KEY_VERSION,
    ENTRY_KEY_MACHINE_ID,
    ENTRY_KEY_LINUX,
    ENTRY_KEY_ARCHITECTURE,
]

#: The kernel command line of the running system.
KERNEL_CMDLINE_PATH = "/proc/cmdline"

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SDBOOT_DEBUG_ENTRY)

_log_debug = _log.debug
_log_debug_entry = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


class EntryParseError(SdbootError):
    """Boot entry file content is not a valid entry.

    :ivar entry_id: the identifier of the entry being parsed.
    :ivar path: the path of the entry file, if parsed from disk.
    """

    def __init__(self, entry_id, path=None, msg="Malformed boot entry"):
        super(EntryParseError, self).__init__(entry_id, path, msg)
        self.entry_id = entry_id
        self.path = path
        self.msg = msg

    def __str__(self):
        where = self.path or self.entry_id
        return "%s: %s" % (self.msg, where)


class EmptyEntryError(EntryParseError):
    """Boot entry file contains no directives."""

    def __init__(self, entry_id, path=None):
        super(EmptyEntryError, self).__init__(
            entry_id, path=path, msg="Boot entry has no directives"
        )


def check_entry_id(entry_id):
    """Check that ``entry_id`` can be used as an entry file name.

    :param entry_id: The entry identifier to check.
    :raises: ValueError if ``entry_id`` is invalid.
    """
    if not entry_id or not isinstance(entry_id, str):
        raise ValueError("Entry identifier must be a non-empty string.")
    if "/" in entry_id or "\0" in entry_id:
        raise ValueError("Invalid character in entry identifier: %r" % entry_id)


def entry_id_from_filename(filename):
    """Return the entry identifier for the entry file ``filename``.

    :param filename: An entry file name or path.
    :rtype: str
    """
    name = basename(filename)
    if name.endswith(ENTRY_EXT):
        return name[: -len(ENTRY_EXT)]
    return name


def read_kernel_cmdline(path=KERNEL_CMDLINE_PATH):
    """Return the kernel command line of the running system.

    :param path: The file to read the command line from.
    :rtype: str
    """
    with open(path, "r") as f:
        return f.read().strip()


class Entry(object):
    """A class representing a systemd-boot boot entry.

    The ``id`` of an ``Entry`` is fixed when it is created. All other
    attributes may be modified freely: changes have no effect on disk
    until the entry is written back with ``Collection.put_entry()``.

    :ivar title: the menu title, or ``None``.
    :ivar linux: the loader-root-relative kernel image path, or ``None``.
    :ivar initrd: the list of initrd image paths, in load order.
    :ivar options: the list of kernel command line tokens.
    :ivar version: the version string, or ``None``.
    :ivar machine_id: the machine identifier, or ``None``.
    :ivar architecture: the EFI architecture name, or ``None``.
    :ivar extra: a list of ``(key, value)`` tuples for unrecognised
                 directives, in file order.
    """

    def __init__(
        self,
        entry_id,
        title=None,
        linux=None,
        initrd=None,
        options=None,
        version=None,
        machine_id=None,
        architecture=None,
        extra=None,
    ):
        """Initialise a new ``Entry`` with identifier ``entry_id``.

        ``initrd`` may be a single path or a list of paths, and
        ``options`` may be a list of tokens or a command line string
        which is split on white space. Empty strings given for the
        single valued keys are stored as ``None``.

        :param entry_id: the entry identifier (file name without
                         the ``.conf`` extension).
        :raises: ValueError if ``entry_id`` is invalid.
        """
        check_entry_id(entry_id)
        self._id = entry_id
        self.title = title or None
        self.linux = linux or None
        self.version = version or None
        self.machine_id = machine_id or None
        self.architecture = architecture or None

        if isinstance(initrd, str):
            initrd = [initrd]
        self.initrd = list(initrd) if initrd else []

        if isinstance(options, str):
            options = options.split()
        self.options = list(options) if options else []

        self.extra = [(k, v) for (k, v) in extra] if extra else []

    @property
    def id(self):
        """The identifier of this ``Entry``."""
        return self._id

    @property
    def filename(self):
        """The name of the file backing this ``Entry``."""
        return "%s%s" % (self._id, ENTRY_EXT)

    @classmethod
    def parse(cls, entry_id, lines, path=None):
        """Build an ``Entry`` from the lines of an entry file.

        ``initrd`` directives accumulate in order, the tokens of
        repeated ``options`` directives are concatenated, and a
        later single valued key replaces an earlier one. Keys that
        are not recognised are kept in ``extra``.

        :param entry_id: the identifier of the new entry.
        :param lines: an iterable of entry file lines.
        :param path: the file the lines were read from, for errors.
        :rtype: Entry
        :raises: EmptyEntryError if there are no directives.
        """
        be = cls(entry_id)
        have_directive = False
        for line in lines:
            directive = parse_line(line)
            if not directive:
                continue
            have_directive = True
            (key, value) = directive
            if key == ENTRY_KEY_INITRD:
                if value:
                    be.initrd.append(value)
            elif key == ENTRY_KEY_OPTIONS:
                # No quoting: systemd-boot splits options on white space.
                be.options.extend(value.split())
            elif key in SCALAR_KEYS:
                attr = KEY_MAP[key]
                if getattr(be, attr) is not None:
                    _log_debug_entry("Entry '%s' redefines '%s'", entry_id, key)
                setattr(be, attr, value or None)
            else:
                _log_debug_entry("Entry '%s' has unknown key '%s'", entry_id, key)
                be.extra.append((key, value))

        if not have_directive:
            raise EmptyEntryError(entry_id, path=path)
        return be

    @classmethod
    def from_file(cls, entry_file):
        """Read an ``Entry`` from the file ``entry_file``.

        The entry identifier is the file name without the ``.conf``
        extension.

        :param entry_file: the path to the entry file.
        :rtype: Entry
        :raises: ``OSError`` if the file cannot be read,
                 ``EntryParseError`` if it is not a valid UTF-8
                 entry file.
        """
        entry_id = entry_id_from_filename(entry_file)
        _log_debug("Loading Entry from '%s'", basename(entry_file))
        with open(entry_file, "r", encoding="utf8") as ef:
            try:
                text = ef.read()
            except UnicodeDecodeError as e:
                raise EntryParseError(
                    entry_id, path=entry_file, msg="Boot entry is not valid UTF-8"
                ) from e
        return cls.parse(entry_id, split_lines(text), path=entry_file)

    def directives(self):
        """Return this ``Entry`` as a list of ``(key, value)`` directives
        in canonical ``ENTRY_KEYS`` order followed by the unrecognised
        directives in their original order.

        :rtype: list of (str, str) tuples
        :raises: ValueError if the entry cannot be written back and
                 read as the same entry: an option token with white
                 space, an empty initrd path, a recognised key in
                 ``extra``, or no directives at all.
        """
        directives = []
        for key in ENTRY_KEYS:
            value = getattr(self, KEY_MAP[key])
            if not value:
                continue
            if key == ENTRY_KEY_INITRD:
                if not all(value):
                    raise ValueError("Empty initrd path in entry '%s'" % self._id)
                directives.extend((key, path) for path in value)
            elif key == ENTRY_KEY_OPTIONS:
                for opt in value:
                    if not opt or any(c.isspace() for c in opt):
                        raise ValueError(
                            "Option token %r in entry '%s' cannot be represented"
                            % (opt, self._id)
                        )
                directives.append((key, " ".join(value)))
            else:
                directives.append((key, value))

        for (key, value) in self.extra:
            if key in ENTRY_KEYS:
                raise ValueError(
                    "Recognised key '%s' in extra directives of entry '%s'"
                    % (key, self._id)
                )
            directives.append((key, value))

        if not directives:
            raise ValueError("Entry '%s' has no directives to write" % self._id)
        return directives

    def to_text(self):
        """Return the entry file text for this ``Entry``."""
        return to_text(self)

    def copy(self):
        """Return an independent copy of this ``Entry``."""
        return Entry(
            self._id,
            title=self.title,
            linux=self.linux,
            initrd=self.initrd,
            options=self.options,
            version=self.version,
            machine_id=self.machine_id,
            architecture=self.architecture,
            extra=self.extra,
        )

    def is_current(self, cmdline=None):
        """Determine whether this entry booted the running system.

        The kernel command line passed by systemd-boot starts with an
        ``initrd=`` argument for each initrd (using ``\\`` as the path
        separator) followed by the entry's options.

        :param cmdline: the command line to test, or ``None`` to read
                        the running kernel's command line.
        :rtype: bool
        """
        if cmdline is None:
            cmdline = read_kernel_cmdline()
        expected = ["initrd=" + path.replace("/", "\\") for path in self.initrd]
        expected += self.options
        if not expected:
            return False
        return cmdline.split()[: len(expected)] == expected

    def __str__(self):
        return self.to_text()

    def __repr__(self):
        args = ["%r" % self._id]
        for attr in [KEY_MAP[key] for key in ENTRY_KEYS]:
            value = getattr(self, attr)
            if value:
                args.append("%s=%r" % (attr, value))
        if self.extra:
            args.append("extra=%r" % self.extra)
        return "Entry(%s)" % ", ".join(args)

    def __eq__(self, other):
        if not isinstance(other, Entry):
            return NotImplemented
        attrs = [KEY_MAP[key] for key in ENTRY_KEYS]
        if self._id != other._id:
            return False
        if any(getattr(self, a) != getattr(other, a) for a in attrs):
            return False
        return list(self.extra) == list(other.extra)


class ScanResult(namedtuple("ScanResult", ["name", "entry", "error"])):
    """The result of loading one entry file during a directory scan.

    Exactly one of ``entry`` and ``error`` is set. ``name`` is the
    entry identifier derived from the file name.
    """

    __slots__ = ()

    @property
    def ok(self):
        """``True`` if the entry was loaded successfully."""
        return self.error is None


def scan_entries(entries_dir):
    """Load every boot entry in ``entries_dir``.

    Regular files named ``<id>.conf`` are read and parsed one at a
    time. A file that cannot be read or parsed is reported in the
    result list and the scan continues with the remaining files.

    Results are returned in directory listing order: callers that
    need a stable order must sort them (for e.g. by ``name``).

    :param entries_dir: the path to the boot entries directory.
    :returns: a list of ``ScanResult`` tuples.
    :rtype: list
    :raises: ``OSError`` if the directory cannot be listed.
    """
    results = []
    _log_debug("Loading boot entries from '%s'", entries_dir)
    for name in listdir(entries_dir):
        if not name.endswith(ENTRY_EXT):
            continue
        entry_id = entry_id_from_filename(name)
        entry_path = path_join(entries_dir, name)
        if not entry_id or not isfile(entry_path):
            _log_debug_entry("Skipping '%s'", entry_path)
            continue
        try:
            results.append(ScanResult(entry_id, Entry.from_file(entry_path), None))
        except (EntryParseError, OSError, ValueError) as e:
            _log_warn("Could not load Entry '%s': %s", entry_path, e)
            results.append(ScanResult(entry_id, None, e))

    _log_debug(
        "Loaded %d entries (%d failed)",
        len([r for r in results if r.ok]),
        len([r for r in results if not r.ok]),
    )
    return results


__all__ = [
    # Entry keys
    "ENTRY_KEY_TITLE",
    "ENTRY_KEY_VERSION",
    "ENTRY_KEY_MACHINE_ID",
    "ENTRY_KEY_LINUX",
    "ENTRY_KEY_INITRD",
    "ENTRY_KEY_OPTIONS",
    "ENTRY_KEY_ARCHITECTURE",
    "ENTRY_KEYS",
    "KEY_MAP",
    # Error classes
    "EntryParseError",
    "EmptyEntryError",
    # Entry objects
    "Entry",
    "check_entry_id",
    "entry_id_from_filename",
    "read_kernel_cmdline",
    # Directory scanning
    "ScanResult",
    "scan_entries",
]

# vim: set et ts=4 sw=4 :
