import io
import os
import re
import tempfile
import threading
import unittest

from rich.console import Console

from tdd_guard.core.logger import AUDIT_THEME, AuditLogger, make_console

LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\] \[(INFO|WARN|ERROR)\] .*$")


class TestAuditLogger(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def test_creates_directory_and_formats_lines(self):
        audit = AuditLogger(self.root)
        audit.info("Allowed edit (RED): src/a.ts")
        audit.warn("Blocked edit")
        audit.error("Run tests first")

        self.assertTrue(os.path.isfile(os.path.join(self.root, ".opencode", "tdd", "tdd.log")))
        entries = audit.read_entries()
        self.assertEqual(len(entries), 3)
        for entry in entries:
            self.assertRegex(entry, LINE_RE)
        self.assertTrue(entries[0].endswith("[INFO] Allowed edit (RED): src/a.ts"))
        self.assertIn("[WARN]", entries[1])
        self.assertIn("[ERROR]", entries[2])

    def test_appends_to_existing_content(self):
        os.makedirs(os.path.join(self.root, ".opencode", "tdd"))
        with open(os.path.join(self.root, ".opencode", "tdd", "tdd.log"), "w") as f:
            f.write("previous line\n")
        audit = AuditLogger(self.root)
        audit.info("new")
        entries = audit.read_entries()
        self.assertEqual(entries[0], "previous line")
        self.assertTrue(entries[1].endswith("[INFO] new"))

    def test_multiline_message_stays_one_entry(self):
        audit = AuditLogger(self.root)
        audit.warn("Blocked edit: line one\nline two")
        entries = audit.read_entries()
        self.assertEqual(len(entries), 1)
        self.assertIn("line one\\nline two", entries[0])

    def test_unknown_level_rejected(self):
        with self.assertRaises(ValueError):
            AuditLogger(self.root).log("DEBUG", "x")

    def test_concurrent_writers_do_not_interleave(self):
        audit = AuditLogger(self.root)

        def writer(n):
            for i in range(50):
                audit.info(f"writer {n} entry {i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = audit.read_entries()
        self.assertEqual(len(entries), 200)
        for entry in entries:
            self.assertRegex(entry, LINE_RE)

    def test_console_echo(self):
        buf = io.StringIO()
        console = Console(file=buf, theme=AUDIT_THEME, force_terminal=False, width=200)
        AuditLogger(self.root, console=console).warn("Blocked edit [GREEN]: src/a.ts")
        echoed = buf.getvalue()
        self.assertIn("WARN", echoed)
        self.assertIn("Blocked edit [GREEN]: src/a.ts", echoed)

    def test_stdlib_mirror_stays_below_warning(self):
        audit = AuditLogger(self.root)
        with self.assertNoLogs("tdd_guard.audit", level="INFO"):
            audit.warn("Blocked edit")
        with self.assertLogs("tdd_guard.audit", level="DEBUG") as cm:
            audit.error("Run tests first")
        self.assertEqual(cm.output, ["DEBUG:tdd_guard.audit:[ERROR] Run tests first"])

    def test_make_console_targets_stderr(self):
        console = make_console()
        self.assertTrue(console.stderr)
        self.assertFalse(make_console(stderr=False).stderr)


if __name__ == "__main__":
    unittest.main()
