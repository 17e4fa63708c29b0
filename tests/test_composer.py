"""Tests for argument escaping and environment composition."""

import os
import unittest

from supervised_process import InvalidArgumentError, compose_command, compose_environment, escape_shell_arg
from supervised_process.composer import escape_posix_arg, escape_windows_arg, validate_environment


class TestEscaping(unittest.TestCase):
    """Shell argument escaping."""

    def test_posix_plain(self):
        """Test a plain argument is single quoted."""
        self.assertEqual(escape_posix_arg("abc"), "'abc'")

    def test_posix_quote_and_backslash(self):
        """Test single quotes and backslashes are backslash-escaped."""
        self.assertEqual(escape_posix_arg("it's"), "'it\\'s'")
        self.assertEqual(escape_posix_arg("a\\b"), "'a\\\\b'")

    def test_posix_empty(self):
        """Test the empty argument."""
        self.assertEqual(escape_posix_arg(""), "''")

    def test_windows_plain_unchanged(self):
        """Test arguments without special characters pass through."""
        self.assertEqual(escape_windows_arg("abc"), "abc")
        self.assertEqual(escape_windows_arg("C:\\path\\file"), "C:\\path\\file")

    def test_windows_whitespace(self):
        """Test whitespace forces quoting."""
        self.assertEqual(escape_windows_arg("a b"), '"a b"')

    def test_windows_embedded_quote(self):
        """Test embedded quotes are backslash-escaped."""
        self.assertEqual(escape_windows_arg('a"b'), '"a\\"b"')

    def test_windows_trailing_backslash(self):
        """Test trailing backslashes are doubled before the closing quote."""
        self.assertEqual(escape_windows_arg("a b\\"), '"a b\\\\"')

    def test_windows_backslash_before_quote(self):
        """Test backslashes preceding a quote are doubled."""
        self.assertEqual(escape_windows_arg('a\\"b'), '"a\\\\\\"b"')

    def test_windows_empty(self):
        """Test the empty argument becomes an empty quoted string."""
        self.assertEqual(escape_windows_arg(""), '""')

    def test_escape_shell_arg_dispatch(self):
        """Test the platform switch."""
        self.assertEqual(escape_shell_arg("a b", windows=True), '"a b"')
        self.assertEqual(escape_shell_arg("a b", windows=False), "'a b'")


class TestComposeCommand(unittest.TestCase):
    """Command composition."""

    def test_posix_argv(self):
        """Test POSIX gets the argv list unchanged."""
        self.assertEqual(compose_command("ls", ["-l", "a b"], windows=False), ["ls", "-l", "a b"])

    def test_windows_command_line(self):
        """Test Windows gets one escaped command line."""
        line = compose_command("C:\\Program Files\\app.exe", ["x", "a b"], windows=True)
        self.assertEqual(line, '"C:\\Program Files\\app.exe" x "a b"')

    def test_windows_no_escaping(self):
        """Test arguments are verbatim, the program is still quoted."""
        line = compose_command("C:\\my app.exe", ['/c "dir"'], windows=True, no_escaping=True)
        self.assertEqual(line, '"C:\\my app.exe" /c "dir"')

    def test_empty_program(self):
        """Test an empty program is rejected."""
        with self.assertRaises(InvalidArgumentError):
            compose_command("", [], windows=False)

    def test_null_in_argument(self):
        """Test NUL characters are rejected."""
        with self.assertRaises(InvalidArgumentError):
            compose_command("ls", ["a\0b"], windows=False)
        with self.assertRaises(InvalidArgumentError):
            compose_command("l\0s", [], windows=False)

    def test_non_string_argument(self):
        """Test non-string arguments are rejected."""
        with self.assertRaises(InvalidArgumentError):
            compose_command("ls", [1], windows=False)

    def test_invalid_argument_is_value_error(self):
        """Test InvalidArgumentError can be caught as ValueError."""
        with self.assertRaises(ValueError):
            compose_command("", [], windows=False)


class TestComposeEnvironment(unittest.TestCase):
    """Environment composition."""

    def test_inherit_overlays_pairs(self):
        """Test pairs override the base and later pairs win."""
        env = compose_environment([("A", "1"), ("B", "2"), ("A", "3")], base={"A": "0", "C": "c"}, windows=False)
        self.assertEqual(env, {"A": "3", "B": "2", "C": "c"})

    def test_inherit_defaults_to_os_environ(self):
        """Test the current environment is the default base."""
        env = compose_environment([], windows=False)
        self.assertEqual(env, dict(os.environ))

    def test_no_inherit(self):
        """Test only the pairs are used without inheritance."""
        env = compose_environment([("A", "1")], inherit=False, base={"B": "2"}, windows=False)
        self.assertEqual(env, {"A": "1"})

    def test_windows_keys_case_insensitive(self):
        """Test an override replaces a key differing only in case."""
        env = compose_environment([("Path", "x")], base={"PATH": "y", "Other": "o"}, windows=True)
        self.assertEqual(env, {"Path": "x", "Other": "o"})

    def test_posix_keys_case_sensitive(self):
        """Test keys differing in case are distinct on POSIX."""
        env = compose_environment([("Path", "x")], base={"PATH": "y"}, windows=False)
        self.assertEqual(env, {"PATH": "y", "Path": "x"})

    def test_empty_value_allowed(self):
        """Test an empty value is a valid assignment."""
        env = compose_environment([("A", "")], inherit=False)
        self.assertEqual(env, {"A": ""})

    def test_invalid_keys(self):
        """Test malformed keys and values are rejected."""
        for pairs in ([("", "x")], [("A=B", "x")], [("A\0", "x")], [("A", "x\0")], [("A", 1)]):
            with self.subTest(pairs=pairs), self.assertRaises(InvalidArgumentError):
                validate_environment(pairs)


if __name__ == "__main__":
    unittest.main()
