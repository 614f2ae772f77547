import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from quietread import main

BODY = " ".join(["word"] * 100)


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.state = self.tmp / "state.json"
        self.book = self.tmp / "book.txt"
        self.book.write_text(f"Chapter 1: Start\n{BODY}\nChapter 2: End\n{BODY}\n", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def run_cli(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main(["--state", str(self.state), *args])
        return code, out.getvalue()

    def test_add_open_and_step(self):
        code, out = self.run_cli("add", str(self.book))
        self.assertEqual(code, 0)
        self.assertIn("Loaded TXT file: book.txt", out)

        doc_id = json.loads(self.state.read_text(encoding="utf-8"))["quietread.files"][0]["id"]
        code, out = self.run_cli("open", doc_id[:8])
        self.assertEqual(code, 0)
        self.assertIn("quietread: Start [0-80/499]", out)

        _, out = self.run_cli("next", "--page")
        self.assertIn("[80-160/499]", out)
        _, out = self.run_cli("show")
        self.assertIn("[80-160/499]", out)

        _, out = self.run_cli("chapter", "2")
        self.assertIn("quietread: End [0-80/499]", out)
        _, out = self.run_cli("chapters")
        self.assertIn("*   2. End", out)

    def test_add_twice_without_replace(self):
        self.run_cli("add", str(self.book))
        _, out = self.run_cli("add", str(self.book))
        self.assertIn("already in the library", out)
        _, out = self.run_cli("list")
        self.assertIn("1 documents", out)

    def test_unsupported_and_unknown_ids(self):
        other = self.tmp / "notes.docx"
        other.write_bytes(b"PK")
        code, out = self.run_cli("add", str(other))
        self.assertEqual(code, 1)
        self.assertIn("ERROR: Failed to load file", out)
        code, out = self.run_cli("open", "nope")
        self.assertEqual(code, 1)
        self.assertIn("no document matches", out)

    def test_clear(self):
        self.run_cli("add", str(self.book))
        self.assertEqual(self.run_cli("clear")[0], 0)
        _, out = self.run_cli("list")
        self.assertIn("Library is empty.", out)

    def test_opacity_is_clamped_and_remembered(self):
        _, out = self.run_cli("opacity", "250")
        self.assertIn("Status text opacity: 100%", out)
        self.run_cli("opacity", "40")
        _, out = self.run_cli("opacity")
        self.assertIn("Status text opacity: 40%", out)


if __name__ == "__main__":
    unittest.main()
