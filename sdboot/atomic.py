# Copyright Red Hat
#
# sdboot/atomic.py - Atomic configuration file replacement
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``sdboot.atomic`` module provides ``write_atomic()``, the only
routine used by sdboot to write ``loader.conf`` and boot entry files.

New content is written to a temporary file in the destination
directory, synced to stable storage, and renamed over the destination.
A concurrent reader therefore sees either the complete old file or the
complete new file, and a failure before the rename leaves the old file
in place.
"""
from os.path import basename, dirname
from os import (
    close,
    chmod,
    fdatasync,
    fdopen,
    fsync,
    open as os_open,
    rename,
    unlink,
    O_RDONLY,
)
from tempfile import mkstemp
import logging

from sdboot import *

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SDBOOT_DEBUG_WRITE)

_log_debug = _log.debug
_log_debug_write = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Suffix for temporary files: never matches ``ENTRY_EXT``.
TMP_SUFFIX = ".tmp"


def _sync_dir(path):
    """Flush the directory ``path`` so that a completed rename is durable.

    :param path: The directory to sync.
    """
    dir_fd = os_open(path, O_RDONLY)
    try:
        fsync(dir_fd)
    finally:
        close(dir_fd)


def write_atomic(path, content, mode=None):
    """Atomically replace the file at ``path`` with ``content``.

    The data is written to a temporary sibling of ``path`` created in
    the same directory (so that the final rename never crosses a file
    system), flushed with ``fdatasync()``, given ``mode`` and renamed
    into place. The containing directory is then synced so that the
    rename itself survives a crash.

    If any step before the rename fails or is interrupted (for e.g.
    by ``KeyboardInterrupt``) the original file is left untouched,
    the temporary file is removed and the exception is raised to the
    caller. No retry is attempted.

    Once the rename has completed the new content is in place: a
    failure to sync the directory is logged as a warning and
    ``write_atomic()`` returns normally.

    :param path: The destination file path.
    :param content: The new file content as ``bytes`` (``str`` values
                    are encoded as UTF-8).
    :param mode: The file mode for the new file, or ``None`` to use
                 the configured mode (normally ``BOOT_CONFIG_MODE``).
    :raises: ``OSError`` if the file cannot be written or renamed.
    :rtype: None
    """
    if isinstance(content, str):
        content = content.encode("utf8")
    if mode is None:
        mode = get_sdboot_config().config_mode

    cfg_dir = dirname(path) or "."
    prefix = ".%s." % basename(path)
    (tmp_fd, tmp_path) = mkstemp(prefix=prefix, suffix=TMP_SUFFIX, dir=cfg_dir)
    _log_debug_write("Writing %d bytes to '%s' via '%s'", len(content), path, tmp_path)

    try:
        with fdopen(tmp_fd, "wb") as f_tmp:
            f_tmp.write(content)
            f_tmp.flush()
            fdatasync(f_tmp.fileno())
        chmod(tmp_path, mode)
        rename(tmp_path, path)
    except BaseException as e:
        _log_error("Error writing configuration file %s: %r", path, e)
        try:
            unlink(tmp_path)
        except OSError:
            _log_error("Error unlinking temporary path %s", tmp_path)
        raise

    try:
        _sync_dir(cfg_dir)
    except OSError as e:
        _log_warn("Error syncing directory %s after writing %s: %s", cfg_dir, path, e)
    _log_debug("Wrote '%s'", path)


__all__ = ["write_atomic"]

# vim: set et ts=4 sw=4 :
