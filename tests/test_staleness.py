import json
import os
import tempfile
import unittest

from conanbridge.errors import ConfigurationError
from conanbridge.settings import BuildSettings
from conanbridge.staleness import (
    CacheEntry,
    CacheStore,
    DependencySpec,
    find_dependency_spec,
    is_stale,
    settings_fingerprints,
)


class StalenessTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.source_dir = os.path.join(self.tmp.name, "src")
        os.makedirs(self.source_dir)
        self.spec_path = os.path.join(self.source_dir, "conanfile.txt")
        with open(self.spec_path, "w") as f:
            f.write("[requires]\nhello/1.0\n")
        self.settings = BuildSettings.from_cmake_variables({"CMAKE_SYSTEM_NAME": "Linux", "CMAKE_BUILD_TYPE": "Release"})

    def _store(self, name="build"):
        return CacheStore(os.path.join(self.tmp.name, name))

    def _record(self, store, spec=None, settings=None):
        spec = spec or DependencySpec.from_file(self.spec_path)
        settings = settings or self.settings
        store.save(CacheEntry(
            spec_fingerprint=spec.fingerprint,
            settings_fingerprints=settings_fingerprints(settings),
            results={bt: {"build_type": bt} for bt in settings.build_types},
        ))

    def _touch(self):
        stat = os.stat(self.spec_path)
        os.utime(self.spec_path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))


class TestDependencySpec(StalenessTestCase):

    def test_find_prefers_conanfile_py(self):
        with open(os.path.join(self.source_dir, "conanfile.py"), "w") as f:
            f.write("from conan import ConanFile\n")
        spec = find_dependency_spec(self.source_dir)
        self.assertEqual(os.path.basename(spec.path), "conanfile.py")
        self.assertEqual(spec.source_dir, os.path.abspath(self.source_dir))

    def test_find_without_conanfile_raises(self):
        with self.assertRaises(ConfigurationError):
            find_dependency_spec(self.tmp.name)

    def test_fingerprint_changes_on_touch(self):
        before = DependencySpec.from_file(self.spec_path).fingerprint
        self._touch()
        self.assertNotEqual(before, DependencySpec.from_file(self.spec_path).fingerprint)

    def test_fingerprint_changes_on_edit(self):
        before = DependencySpec.from_file(self.spec_path)
        stat = os.stat(self.spec_path)
        with open(self.spec_path, "w") as f:
            f.write("[requires]\nhello/2.0\n")
        os.utime(self.spec_path, ns=(stat.st_atime_ns, stat.st_mtime_ns))
        self.assertNotEqual(before.fingerprint, DependencySpec.from_file(self.spec_path).fingerprint)

    def test_missing_file_raises(self):
        with self.assertRaises(ConfigurationError):
            DependencySpec.from_file(os.path.join(self.source_dir, "nope.txt"))


class TestIsStale(StalenessTestCase):

    def test_no_entry_is_stale(self):
        spec = DependencySpec.from_file(self.spec_path)
        self.assertTrue(is_stale(spec, self.settings, self._store()))

    def test_unchanged_inputs_are_fresh(self):
        store = self._store()
        self._record(store)
        spec = DependencySpec.from_file(self.spec_path)
        self.assertFalse(is_stale(spec, self.settings, store))

    def test_touched_spec_is_stale(self):
        store = self._store()
        self._record(store)
        self._touch()
        self.assertTrue(is_stale(DependencySpec.from_file(self.spec_path), self.settings, store))

    def test_changed_settings_are_stale(self):
        store = self._store()
        self._record(store)
        debug = BuildSettings.from_cmake_variables({"CMAKE_SYSTEM_NAME": "Linux", "CMAKE_BUILD_TYPE": "Debug"})
        self.assertTrue(is_stale(DependencySpec.from_file(self.spec_path), debug, store))

    def test_force_is_stale(self):
        store = self._store()
        self._record(store)
        self.assertTrue(is_stale(DependencySpec.from_file(self.spec_path), self.settings, store, force=True))

    def test_changed_install_fingerprints_are_stale(self):
        store = self._store()
        spec = DependencySpec.from_file(self.spec_path)
        store.save(CacheEntry(
            spec_fingerprint=spec.fingerprint,
            settings_fingerprints=settings_fingerprints(self.settings),
            results={"Release": {"build_type": "Release"}},
            install_fingerprints={"Release": "aaa"},
        ))
        self.assertFalse(is_stale(spec, self.settings, store, install_fingerprints={"Release": "aaa"}))
        self.assertTrue(is_stale(spec, self.settings, store, install_fingerprints={"Release": "bbb"}))

    def test_state_without_install_fingerprints_is_stale(self):
        store = self._store()
        self._record(store)
        spec = DependencySpec.from_file(self.spec_path)
        self.assertTrue(is_stale(spec, self.settings, store, install_fingerprints={"Release": "aaa"}))

    def test_missing_result_for_a_build_type_is_stale(self):
        store = self._store()
        spec = DependencySpec.from_file(self.spec_path)
        store.save(CacheEntry(
            spec_fingerprint=spec.fingerprint,
            settings_fingerprints=settings_fingerprints(self.settings),
            results={},
        ))
        self.assertTrue(is_stale(spec, self.settings, store))

    def test_build_directories_are_independent(self):
        first, second = self._store("build-a"), self._store("build-b")
        self._record(first)
        spec = DependencySpec.from_file(self.spec_path)
        self.assertFalse(is_stale(spec, self.settings, first))
        self.assertTrue(is_stale(spec, self.settings, second))

    def test_unreadable_state_is_stale(self):
        store = self._store()
        os.makedirs(store.state_dir)
        with open(store.state_file, "w") as f:
            f.write("{not json")
        self.assertIsNone(store.load())
        self.assertTrue(is_stale(DependencySpec.from_file(self.spec_path), self.settings, store))


class TestCacheStore(StalenessTestCase):

    def test_save_and_load(self):
        store = self._store()
        self._record(store)
        entry = store.load()
        self.assertEqual(entry.results, {"Release": {"build_type": "Release"}})
        with open(store.state_file) as f:
            self.assertEqual(json.load(f)["version"], 1)
        self.assertFalse(os.path.exists(store.state_file + ".tmp"))

    def test_unknown_state_version_is_ignored(self):
        store = self._store()
        os.makedirs(store.state_dir)
        with open(store.state_file, "w") as f:
            json.dump({"version": 99}, f)
        self.assertIsNone(store.load())

    def test_pass_marker(self):
        store = self._store()
        self.assertFalse(store.last_pass_installed())
        store.mark_pass(installed=True)
        self.assertTrue(store.last_pass_installed())
        store.mark_pass(installed=False)
        self.assertFalse(store.last_pass_installed())

    def test_clear(self):
        store = self._store()
        self.assertFalse(store.clear())
        self._record(store)
        self.assertTrue(store.clear())
        self.assertIsNone(store.load())


if __name__ == '__main__':
    unittest.main()
