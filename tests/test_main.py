import unittest
from click.testing import CliRunner
from conanbridge.cli_logger import logger
from conanbridge.main import cli

class TestMain(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()
        self.addCleanup(setattr, logger, "verbose", False)

    def test_help_lists_commands(self):
        """Test that every command is registered on the group."""
        result = self.runner.invoke(cli, ["--help"])
        self.assertEqual(result.exit_code, 0)
        for command in ("install", "find", "profile", "provider", "clean", "config", "log", "version"):
            self.assertIn(command, result.output)

    def test_verbose_flag(self):
        """Test that --verbose switches debug output on for the invocation."""
        result = self.runner.invoke(cli, ["--verbose", "provider", "--stdout"])
        self.assertEqual(result.exit_code, 0)
        self.assertTrue(logger.verbose)

        self.runner.invoke(cli, ["provider", "--stdout"])
        self.assertFalse(logger.verbose)

    def test_unknown_command(self):
        """Test that an unknown command is a usage error."""
        result = self.runner.invoke(cli, ["build"])
        self.assertEqual(result.exit_code, 2)

if __name__ == "__main__":
    unittest.main()
