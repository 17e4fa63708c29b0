"""Tests for line splitting and line callbacks."""

import re
import unittest

from supervised_process import TimeDeltaFormatter
from supervised_process.line_filter import LineSplitter


class TestLineSplitter(unittest.TestCase):
    """LineSplitter behavior across chunk boundaries."""

    def test_lines_split_across_chunks(self):
        """Test a line is delivered only once its newline arrives."""
        seen = []
        splitter = LineSplitter(lambda line: seen.append(line) or True)
        self.assertEqual(splitter.feed(b"hel"), b"")
        self.assertEqual(splitter.pending, b"hel")
        self.assertEqual(splitter.feed(b"lo\nwor"), b"hello\n")
        self.assertEqual(splitter.feed(b"ld\n"), b"world\n")
        self.assertEqual(seen, ["hello", "world"])

    def test_replacement_keeps_line_ending(self):
        """Test a returned string replaces the line and keeps CRLF."""
        splitter = LineSplitter(lambda line: line.upper())
        self.assertEqual(splitter.feed(b"a\r\nb\n"), b"A\r\nB\n")

    def test_drop(self):
        """Test False and None drop lines."""
        splitter = LineSplitter(lambda line: None if line == "x" else False)
        self.assertEqual(splitter.feed(b"x\ny\n"), b"")

    def test_flush_partial_line(self):
        """Test the trailing partial line is handed over on flush."""
        splitter = LineSplitter(lambda line: f"<{line}>")
        self.assertEqual(splitter.feed(b"tail"), b"")
        self.assertEqual(splitter.flush(), b"<tail>")
        self.assertEqual(splitter.flush(), b"")

    def test_invalid_utf8_is_replaced(self):
        """Test undecodable bytes do not raise."""
        seen = []
        splitter = LineSplitter(lambda line: seen.append(line))
        splitter.feed(b"\xff\n")
        self.assertEqual(seen, ["\ufffd"])


class TestTimeDeltaFormatter(unittest.TestCase):
    """TimeDeltaFormatter output format."""

    def test_prefix(self):
        """Test lines get an elapsed-seconds prefix."""
        formatter = TimeDeltaFormatter()
        self.assertEqual(formatter("first"), "[0.00] first")
        self.assertRegex(formatter("second"), re.compile(r"^\[\d+\.\d{2}\] second$"))


if __name__ == "__main__":
    unittest.main()
