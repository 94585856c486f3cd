# Copyright Red Hat
#
# tests/test_collection.py - sdboot Collection tests.
#
# This file is part of the sdboot project.
#
# SPDX-License-Identifier: GPL-2.0-only
import unittest
from unittest.mock import patch
import logging
import errno
from os import listdir, unlink
from os.path import exists, join

from tests import *

import sdboot
from sdboot.collection import *
from sdboot.entry import Entry, EmptyEntryError, EntryParseError
from sdboot.loader import LoaderConfig

log = logging.getLogger()


class CollectionBasicTests(unittest.TestCase):
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        log.debug("Tearing down %s", self._testMethodName)
        reset_sdboot_paths()

    def test_Collection_paths(self):
        c = Collection("/efi/loader")
        self.assertEqual(c.root, "/efi/loader")
        self.assertEqual(c.loader_conf_path, "/efi/loader/loader.conf")
        self.assertEqual(c.entries_path, "/efi/loader/entries")
        self.assertEqual(repr(c), 'Collection(root="/efi/loader")')

    def test_Collection_from_esp(self):
        c = Collection.from_esp("/boot/efi")
        self.assertEqual(c.root, "/boot/efi/loader")

    def test_Collection_default_root(self):
        sdboot.set_sdboot_config(sdboot.SdbootConfig(esp_path="/efi"))
        self.assertEqual(Collection().root, "/efi/loader")

    def test_Collection_bad_id_raises(self):
        c = Collection("/efi/loader")
        with self.assertRaises(ValueError) as cm:
            c.get_entry("../../loader")
        with self.assertRaises(ValueError) as cm:
            c.remove_entry("")


class CollectionTests(unittest.TestCase):
    """Tests for the Collection class using a sandbox loader root.
    """
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        mk_loader_sandbox()
        self.collection = Collection(SANDBOX_LOADER)
        self.entries_path = join(SANDBOX_LOADER, "entries")

    def tearDown(self):
        log.debug("Tearing down %s", self._testMethodName)
        rm_sandbox()

    def _new_entry(self, entry_id="new-2.2.2"):
        return Entry(entry_id, title="New Linux", version="2.2.2",
                     linux="/vmlinuz-2.2.2", initrd="/initramfs-2.2.2.img",
                     options="root=/dev/sda5 ro console=tty0 console=tty0")

    # loader.conf

    def test_load_loader_config(self):
        lc = self.collection.load_loader_config()
        self.assertEqual(lc.default, "fedora-6.8.5")
        self.assertEqual(lc.timeout, 5)
        self.assertEqual(lc.extra, [("console-mode", "max"), ("editor", "no")])

    def test_load_loader_config_missing(self):
        unlink(self.collection.loader_conf_path)
        self.assertEqual(self.collection.load_loader_config(), LoaderConfig())

    def test_save_loader_config(self):
        lc = self.collection.load_loader_config()
        lc.timeout = 10
        self.collection.save_loader_config(lc)
        self.assertEqual(read_file(self.collection.loader_conf_path),
                         "default fedora-6.8.5\ntimeout 10\n"
                         "console-mode max\neditor no\n")
        self.assertEqual(self.collection.load_loader_config(), lc)

    def test_save_loader_config_default_not_enforced(self):
        lc = LoaderConfig(default="does-not-exist", timeout=3)
        self.collection.save_loader_config(lc)
        self.assertEqual(self.collection.load_loader_config().default,
                         "does-not-exist")
        self.assertEqual(self.collection.default_entry_state(),
                         DEFAULT_DOES_NOT_EXIST)

    def test_save_loader_config_failure_preserves_file(self):
        orig = read_file(self.collection.loader_conf_path)
        with patch("sdboot.atomic.rename",
                   side_effect=OSError(errno.EIO, "Injected I/O error")):
            with self.assertRaises(OSError) as cm:
                self.collection.save_loader_config(LoaderConfig(timeout=1))
        self.assertEqual(read_file(self.collection.loader_conf_path), orig)
        self.assertEqual(tmp_files(SANDBOX_LOADER), [])

    def test_set_default(self):
        self.collection.set_default("fedora-6.7.9")
        lc = self.collection.load_loader_config()
        self.assertEqual(lc.default, "fedora-6.7.9")
        self.assertEqual(lc.timeout, 5)
        self.assertEqual(lc.extra, [("console-mode", "max"), ("editor", "no")])

    def test_set_default_none(self):
        self.collection.set_default(None)
        self.assertIsNone(self.collection.load_loader_config().default)
        self.assertEqual(self.collection.default_entry_state(),
                         DEFAULT_NOT_DEFINED)

    def test_set_timeout(self):
        self.collection.set_timeout(0)
        self.assertEqual(self.collection.load_loader_config().timeout, 0)
        self.collection.set_timeout(None)
        self.assertIsNone(self.collection.load_loader_config().timeout)
        with self.assertRaises(ValueError) as cm:
            self.collection.set_timeout(-5)

    def test_set_timeout_replaces_menu_keyword(self):
        write_file(self.collection.loader_conf_path,
                   "default a\ntimeout menu-force\n")
        self.collection.set_timeout(5)
        self.assertEqual(read_file(self.collection.loader_conf_path),
                         "default a\ntimeout 5\n")
        lc = self.collection.load_loader_config()
        self.assertEqual(lc.timeout, 5)
        self.assertEqual(lc.extra, [])

    def test_set_timeout_none_removes_menu_keyword(self):
        write_file(self.collection.loader_conf_path,
                   "timeout menu-hidden\neditor no\n")
        self.collection.set_timeout(None)
        self.assertEqual(read_file(self.collection.loader_conf_path),
                         "editor no\n")

    def test_set_timeout_bool_raises(self):
        with self.assertRaises(ValueError) as cm:
            self.collection.set_timeout(True)

    def test_set_default_replaces_empty_default(self):
        write_file(self.collection.loader_conf_path,
                   "default\ntimeout 2\n")
        self.collection.set_default("fedora-6.7.9")
        self.assertEqual(read_file(self.collection.loader_conf_path),
                         "default fedora-6.7.9\ntimeout 2\n")
        self.collection.set_default(None)
        self.assertEqual(read_file(self.collection.loader_conf_path),
                         "timeout 2\n")

    def test_save_loader_config_drops_replaced_timeout(self):
        write_file(self.collection.loader_conf_path, "timeout menu-force\n")
        lc = self.collection.load_loader_config()
        lc.timeout = 0
        self.collection.save_loader_config(lc)
        self.assertEqual(self.collection.load_loader_config(),
                         LoaderConfig(timeout=0))

    def test_default_entry_state(self):
        self.assertEqual(self.collection.default_entry_state(), DEFAULT_EXISTS)
        unlink(join(self.entries_path, "fedora-6.8.5.conf"))
        self.assertEqual(self.collection.default_entry_state(),
                         DEFAULT_DOES_NOT_EXIST)

    # Boot entries

    def test_list_entries(self):
        results = self.collection.list_entries()
        self.assertEqual(sorted(r.name for r in results),
                         ["fedora-6.7.9", "fedora-6.8.5"])
        self.assertTrue(all(r.ok for r in results))

    def test_list_entries_partial_failure(self):
        write_file(join(self.entries_path, "A.conf"), "title A\n")
        write_file(join(self.entries_path, "B.conf"), "")
        results = sorted(self.collection.list_entries(), key=lambda r: r.name)
        self.assertEqual([r.name for r in results],
                         ["A", "B", "fedora-6.7.9", "fedora-6.8.5"])
        self.assertEqual(results[0].entry.title, "A")
        self.assertFalse(results[1].ok)
        self.assertIsInstance(results[1].error, EmptyEntryError)

    def test_list_entries_rereads_disk(self):
        self.assertEqual(len(self.collection.list_entries()), 2)
        write_file(join(self.entries_path, "external.conf"), "title ext\n")
        self.assertEqual(len(self.collection.list_entries()), 3)

    def test_entry_exists(self):
        self.assertTrue(self.collection.entry_exists("fedora-6.8.5"))
        self.assertFalse(self.collection.entry_exists("nonexistent"))

    def test_get_entry(self):
        be = self.collection.get_entry("fedora-6.7.9")
        self.assertEqual(be.id, "fedora-6.7.9")
        self.assertEqual(be.version, "6.7.9-200.fc40.x86_64")

    def test_get_entry_nonexistent(self):
        self.assertIsNone(self.collection.get_entry("nonexistent"))

    def test_get_entry_malformed_raises(self):
        write_file(join(self.entries_path, "empty.conf"), "# nothing here\n")
        with self.assertRaises(EntryParseError) as cm:
            self.collection.get_entry("empty")
        self.assertEqual(cm.exception.entry_id, "empty")

    def test_get_entry_undecodable_raises(self):
        with open(join(self.entries_path, "binary.conf"), "wb") as f:
            f.write(b"title \xff\xfe\n")
        with self.assertRaises(EntryParseError) as cm:
            self.collection.get_entry("binary")
        self.assertEqual(cm.exception.entry_id, "binary")

    def test_put_entry_recognised_key_in_extra_raises(self):
        be = self._new_entry()
        be.extra.append(("linux", "/other"))
        with self.assertRaises(ValueError) as cm:
            self.collection.put_entry(be)
        self.assertFalse(self.collection.entry_exists("new-2.2.2"))

    def test_get_entry_returns_copy(self):
        be = self.collection.get_entry("fedora-6.7.9")
        be.linux = "/vmlinuz-changed"
        self.assertNotEqual(self.collection.get_entry("fedora-6.7.9").linux,
                            "/vmlinuz-changed")

    def test_put_entry_create(self):
        be = self._new_entry()
        self.collection.put_entry(be)
        entry_path = join(self.entries_path, "new-2.2.2.conf")
        self.assertTrue(exists(entry_path))
        self.assertEqual(self.collection.get_entry("new-2.2.2"), be)
        self.assertEqual(tmp_files(self.entries_path), [])

    def test_put_entry_update(self):
        be = self.collection.get_entry("fedora-6.7.9")
        be.options.append("quiet")
        be.initrd.insert(0, "/ucode.img")
        self.collection.put_entry(be)
        be2 = self.collection.get_entry("fedora-6.7.9")
        self.assertEqual(be2, be)
        self.assertEqual(be2.options[-1], "quiet")
        self.assertEqual(be2.initrd[0], "/ucode.img")

    def test_put_entry_preserves_unknown_keys(self):
        be = self.collection.get_entry("fedora-6.8.5")
        self.collection.put_entry(be)
        self.assertIn("sort-key fedora\n",
                      read_file(join(self.entries_path, "fedora-6.8.5.conf")))

    def test_put_entry_idempotent(self):
        entry_path = join(self.entries_path, "fedora-6.8.5.conf")
        self.collection.put_entry(self.collection.get_entry("fedora-6.8.5"))
        text = read_file(entry_path)
        self.collection.put_entry(self.collection.get_entry("fedora-6.8.5"))
        self.assertEqual(read_file(entry_path), text)

    def test_put_entry_failure_preserves_file(self):
        entry_path = join(self.entries_path, "fedora-6.7.9.conf")
        orig = read_file(entry_path)
        be = self.collection.get_entry("fedora-6.7.9")
        be.linux = "/vmlinuz-broken"
        with patch("sdboot.atomic.rename",
                   side_effect=OSError(errno.EIO, "Injected I/O error")):
            with self.assertRaises(OSError) as cm:
                self.collection.put_entry(be)
        self.assertEqual(read_file(entry_path), orig)
        self.assertEqual(tmp_files(self.entries_path), [])

    def test_put_entry_unrepresentable_raises(self):
        be = self._new_entry()
        be.options.append("has space")
        with self.assertRaises(ValueError) as cm:
            self.collection.put_entry(be)
        self.assertFalse(exists(join(self.entries_path, "new-2.2.2.conf")))

    def test_remove_entry(self):
        self.collection.remove_entry("fedora-6.7.9")
        self.assertFalse(self.collection.entry_exists("fedora-6.7.9"))
        self.assertIsNone(self.collection.get_entry("fedora-6.7.9"))

    def test_remove_entry_nonexistent_raises(self):
        with self.assertRaises(NotFoundError) as cm:
            self.collection.remove_entry("nonexistent")
        self.assertEqual(cm.exception.entry_id, "nonexistent")
        self.assertIsInstance(cm.exception, sdboot.SdbootError)

    def test_remove_default_entry_keeps_default(self):
        self.collection.remove_entry("fedora-6.8.5")
        self.assertEqual(self.collection.load_loader_config().default,
                         "fedora-6.8.5")
        self.assertEqual(self.collection.default_entry_state(),
                         DEFAULT_DOES_NOT_EXIST)

    def test_remove_entry_leaves_other_files(self):
        self.collection.remove_entry("fedora-6.7.9")
        self.assertEqual(sorted(listdir(self.entries_path)),
                         ["README", "fedora-6.8.5.conf"])

# vim: set et ts=4 sw=4 :
