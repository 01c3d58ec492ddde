import json
import os
import tempfile
import unittest
from unittest.mock import patch

from conanbridge import installer
from conanbridge.context import PassContext
from conanbridge.errors import InstallError
from conanbridge.installer import (
    ANNOUNCEMENT,
    InstallResult,
    PackageInfo,
    build_install_command,
    check_conan_version,
    ensure_installed,
    parse_install_output,
)
from conanbridge.settings import BuildSettings
from conanbridge.staleness import DependencySpec

from fakes import FakeConan, conan_graph


class TestParseInstallOutput(unittest.TestCase):

    def test_parses_packages(self):
        text = conan_graph("/build/conan", [
            {
                "name": "boost",
                "version": "1.84.0",
                "cpp_info": {
                    "root": {"properties": {"cmake_file_name": "Boost", "cmake_target_name": "Boost::boost",
                                            "cmake_find_mode": "both"}},
                    "filesystem": {"properties": {"cmake_target_name": "Boost::filesystem"}},
                    "system": {"properties": None},
                },
            },
            {"name": "zlib", "version": "1.3", "direct": False},
        ])
        result = parse_install_output(text, "Release")
        self.assertEqual(result.build_type, "Release")
        self.assertEqual(result.discovery_paths, (os.path.abspath("/build/conan"),))

        boost = result.get("Boost")
        self.assertEqual(boost.name, "boost")
        self.assertEqual(boost.version, "1.84.0")
        self.assertTrue(boost.direct)
        self.assertTrue(boost.has_module_output)
        self.assertTrue(boost.has_config_output)
        self.assertEqual(boost.components, {"filesystem": "Boost::filesystem", "system": "Boost::system"})
        self.assertEqual(boost.targets, ("Boost::boost", "Boost::filesystem", "Boost::system"))

        zlib = result.get("zlib")
        self.assertFalse(zlib.direct)
        self.assertEqual(zlib.target, "zlib::zlib")
        self.assertEqual(zlib.file_name, "zlib")

    def test_lookup_is_case_insensitive(self):
        result = parse_install_output(conan_graph("/g", [{"name": "openssl", "cpp_info": {
            "root": {"properties": {"cmake_file_name": "OpenSSL"}}}}]), "Release")
        self.assertIs(result.get("openssl"), result.get("OpenSSL"))
        self.assertIsNone(result.get("curl"))

    def test_skips_build_context_and_skipped_binaries(self):
        text = conan_graph("/g", [
            {"name": "cmake", "context": "build"},
            {"name": "skipped", "binary": "Skip"},
            {"name": "missing", "binary": "Missing"},
        ])
        result = parse_install_output(text, "Debug")
        self.assertEqual(sorted(result.packages), ["missing"])
        self.assertFalse(result.get("missing").available)

    def test_unknown_find_mode_falls_back_to_config(self):
        text = conan_graph("/g", [{"name": "fmt", "cpp_info": {"root": {"properties": {"cmake_find_mode": "weird"}}}}])
        self.assertEqual(parse_install_output(text, "Release").get("fmt").find_mode, "config")

    def test_malformed_output_raises(self):
        for text in ("not json", "{}", json.dumps({"graph": {"nodes": {}}})):
            with self.subTest(text=text):
                with self.assertRaises(InstallError):
                    parse_install_output(text, "Release")

    def test_missing_generators_folder_raises(self):
        text = json.dumps({"graph": {"nodes": {"0": {"ref": "conanfile"}}}})
        with self.assertRaises(InstallError):
            parse_install_output(text, "Release")

    def test_result_round_trip_through_state(self):
        result = InstallResult("Release", ("/g",), {"fmt": PackageInfo("fmt", "fmt", "10.2", components={"core": "fmt::core"})})
        self.assertEqual(InstallResult.from_dict(json.loads(json.dumps(result.to_dict()))), result)


class TestConanVersion(unittest.TestCase):

    @patch('conanbridge.installer.run_command')
    def test_recent_version_passes(self, mock_run):
        mock_run.return_value = ('{"version": "2.3.1", "conan_path": "/usr/bin/conan"}', "", 0)
        self.assertEqual(check_conan_version("conan", "2.0.5"), "2.3.1")
        mock_run.assert_called_once_with(["conan", "version", "--format=json"])

    @patch('conanbridge.installer.run_command')
    def test_falls_back_to_version_flag(self, mock_run):
        mock_run.side_effect = [
            ("", "ERROR: Unknown command 'version'", 1),
            ("Conan version 2.0.14\n", "", 0),
        ]
        self.assertEqual(check_conan_version("conan", "2.0.5"), "2.0.14")
        self.assertEqual(mock_run.call_args.args[0], ["conan", "--version"])

    @patch('conanbridge.installer.run_command')
    def test_old_version_raises(self, mock_run):
        mock_run.side_effect = [
            ("", "'version' is not a Conan command", 1),
            ("Conan version 1.62.0\n", "", 0),
        ]
        with self.assertRaises(InstallError) as cm:
            check_conan_version("conan", "2.0.5")
        self.assertIn("2.0.5", str(cm.exception))

    @patch('conanbridge.installer.run_command')
    def test_missing_executable_raises(self, mock_run):
        mock_run.return_value = ("", "No such file or directory: 'conan'", -1)
        with self.assertRaises(InstallError):
            check_conan_version("conan", "2.0.5")

    @patch('conanbridge.installer.run_command')
    def test_unparsable_version_raises(self, mock_run):
        mock_run.return_value = ("something else\n", "", 0)
        with self.assertRaises(InstallError):
            check_conan_version("conan", "2.0.5")


class InstallerTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.source_dir = os.path.join(self.tmp.name, "src")
        os.makedirs(self.source_dir)
        self.spec_path = os.path.join(self.source_dir, "conanfile.txt")
        with open(self.spec_path, "w") as f:
            f.write("[requires]\nhello/1.0\n\n[generators]\nCMakeDeps\n")
        self.build_dir = os.path.join(self.tmp.name, "build")

        self.fake = FakeConan()
        run_patcher = patch('conanbridge.installer.run_command', side_effect=self.fake)
        run_patcher.start()
        self.addCleanup(run_patcher.stop)
        logger_patcher = patch('conanbridge.installer.logger')
        self.mock_logger = logger_patcher.start()
        self.addCleanup(logger_patcher.stop)

    def _context(self, generator="Ninja", build_type="Release", force=False, config=None):
        settings = BuildSettings.from_cmake_variables({
            "CMAKE_SYSTEM_NAME": "Linux",
            "CMAKE_SYSTEM_PROCESSOR": "x86_64",
            "CMAKE_GENERATOR": generator,
            "CMAKE_BUILD_TYPE": build_type,
        })
        return PassContext(
            source_dir=self.source_dir,
            build_dir=self.build_dir,
            settings=settings,
            spec=DependencySpec.from_file(self.spec_path),
            config=config or {},
            force=force,
        )

    def _touch(self):
        stat = os.stat(self.spec_path)
        os.utime(self.spec_path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    def _announcements(self):
        return [c for c in self.mock_logger.status.call_args_list if c.args == (ANNOUNCEMENT,)]


class TestEnsureInstalled(InstallerTestCase):

    def test_first_pass_installs_and_announces_once(self):
        results = ensure_installed(self._context())
        self.assertEqual(self.fake.install_count, 1)
        self.assertEqual(len(self._announcements()), 1)
        self.assertEqual(list(results), ["Release"])
        self.assertIsNotNone(results["Release"].get("hello"))
        self.assertTrue(self._context().store.last_pass_installed())

    def test_second_pass_is_silent_and_does_not_install(self):
        ensure_installed(self._context())
        self.mock_logger.reset_mock()

        results = ensure_installed(self._context())
        self.assertEqual(self.fake.install_count, 1)
        self.assertEqual(self._announcements(), [])
        self.mock_logger.status.assert_not_called()
        self.mock_logger.info.assert_not_called()
        self.mock_logger.success.assert_not_called()
        self.mock_logger.warning.assert_not_called()
        self.assertEqual(results["Release"].get("hello").target, "hello::hello")
        self.assertFalse(self._context().store.last_pass_installed())

    def test_touched_conanfile_installs_again(self):
        ensure_installed(self._context())
        self._touch()
        ensure_installed(self._context())
        self.assertEqual(self.fake.install_count, 2)
        self.assertEqual(len(self._announcements()), 2)

    def test_changed_build_type_installs_again(self):
        ensure_installed(self._context(build_type="Release"))
        ensure_installed(self._context(build_type="Debug"))
        self.assertEqual(self.fake.build_types(), ["Release", "Debug"])

    def test_force_installs_again(self):
        ensure_installed(self._context())
        ensure_installed(self._context(force=True))
        self.assertEqual(self.fake.install_count, 2)

    def test_changed_host_profile_installs_again(self):
        ensure_installed(self._context())
        ensure_installed(self._context(config={"profile": {"host": "android-ndk"}}))
        self.assertEqual(self.fake.install_count, 2)
        self.assertEqual(len(self._announcements()), 2)

    def test_changed_install_options_install_again(self):
        ensure_installed(self._context())
        for config in (
            {"conan": {"build": ["never"]}},
            {"conan": {"build": ["never"], "install_args": ["--update"]}},
            {"conan": {"build": ["never"], "install_args": ["--update"], "generators": ["CMakeToolchain"]}},
        ):
            with self.subTest(config=config):
                before = self.fake.install_count
                ensure_installed(self._context(config=config))
                self.assertEqual(self.fake.install_count, before + 1)
                ensure_installed(self._context(config=config))
                self.assertEqual(self.fake.install_count, before + 1)

    def test_changed_build_profile_installs_again(self):
        ensure_installed(self._context())
        ensure_installed(self._context(config={"profile": {"build_profile": "linux-build"}}))
        self.assertEqual(self.fake.install_count, 2)

    def test_multi_config_installs_each_build_type(self):
        results = ensure_installed(self._context(generator="Ninja Multi-Config"))
        self.assertEqual(self.fake.build_types(), ["Release", "Debug"])
        self.assertEqual(len(self._announcements()), 1)
        self.assertEqual(list(results), ["Release", "Debug"])
        self.assertNotEqual(results["Release"].discovery_paths, results["Debug"].discovery_paths)
        self.assertIn(os.path.join("Release", "generators"), results["Release"].discovery_paths[0])
        self.assertIn(os.path.join("Debug", "generators"), results["Debug"].discovery_paths[0])

    def test_profiles_are_written_per_build_type(self):
        ctx = self._context(generator="Ninja Multi-Config")
        ensure_installed(ctx)
        for build_type in ("Release", "Debug"):
            with open(os.path.join(ctx.state_dir, f"profile-{build_type}")) as f:
                self.assertIn(f"build_type={build_type}\n", f.read())

    def test_failed_install_is_fatal_and_keeps_no_state(self):
        self.fake.returncode = 1
        ctx = self._context()
        with self.assertRaises(InstallError) as cm:
            ensure_installed(ctx)
        self.assertEqual(cm.exception.returncode, 1)
        self.assertIsNone(ctx.store.load())
        self.mock_logger.step_info.assert_any_call("ERROR: Package 'hello/1.0' not resolved", indent=2)

    def test_old_conan_is_fatal(self):
        self.fake.version = "1.64.0"
        with self.assertRaises(InstallError):
            ensure_installed(self._context())
        self.assertEqual(self.fake.install_count, 0)

    def test_profile_warnings_are_reported(self):
        ctx = self._context()
        settings = BuildSettings.from_cmake_variables({"CMAKE_SYSTEM_NAME": "QNX", "CMAKE_BUILD_TYPE": "Release"})
        ctx = PassContext(ctx.source_dir, ctx.build_dir, settings, ctx.spec)
        ensure_installed(ctx)
        self.assertTrue(any("QNX" in c.args[0] for c in self.mock_logger.warning.call_args_list))


class TestBuildInstallCommand(InstallerTestCase):

    def test_default_command(self):
        ctx = self._context()
        command = build_install_command(ctx, "/tmp/profile-Release")
        self.assertEqual(command[:3], ["conan", "install", ctx.spec.path])
        self.assertIn("--profile:host=/tmp/profile-Release", command)
        self.assertIn("--profile:build=default", command)
        self.assertIn(f"--output-folder={ctx.output_dir}", command)
        self.assertIn("--format=json", command)
        self.assertIn("--build=missing", command)
        self.assertNotIn("--generator", command)

    def test_configured_command(self):
        config = {
            "conan": {
                "command": "/opt/conan/bin/conan",
                "build": "never",
                "generators": ["CMakeDeps"],
                "install_args": ["--update"],
            },
            "profile": {"build_profile": "linux-gcc"},
        }
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("CONANBRIDGE_CONAN", None)
            command = build_install_command(self._context(config=config), "p")
        self.assertEqual(command[0], "/opt/conan/bin/conan")
        self.assertIn("--build=never", command)
        self.assertIn("--profile:build=linux-gcc", command)
        self.assertEqual(command[-3:], ["--generator", "CMakeDeps", "--update"])

    def test_environment_overrides_command(self):
        with patch.dict(os.environ, {"CONANBRIDGE_CONAN": "/env/conan"}):
            command = build_install_command(self._context(config={"conan": {"command": "other"}}), "p")
        self.assertEqual(command[0], "/env/conan")


class TestLoadResults(InstallerTestCase):

    def test_load_results_without_state(self):
        self.assertEqual(installer.load_results(self._context().store), {})

    def test_load_results_after_install(self):
        ensure_installed(self._context())
        results = installer.load_results(self._context().store)
        self.assertEqual(results["Release"].get("hello").file_name, "hello")


if __name__ == '__main__':
    unittest.main()
