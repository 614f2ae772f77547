import os
import tempfile
import unittest
from pathlib import Path

from persistence import FILES_KEY, STATE_KEY, ManualScheduler, MemoryStore
from reader import CANCEL, RELOAD, Reader
from surfaces import HIDDEN_TEXT, READY_TEXT

PASTED = "第一章 开端\n" + "甲" * 200 + "\n第二章 继续\n" + "乙" * 100
BOOK_TEXT = (
    "Chapter 1: Start\nThe opening chapter body text.\n"
    "Chapter 2: Middle\nThe middle chapter body text.\n"
    "Chapter 3: End\nThe closing chapter body text.\n"
)


class FakeSurface:
    def __init__(self):
        self.shown = []
        self.colors = []

    @property
    def last_text(self):
        return self.shown[-1] if self.shown else None

    def show(self, text, color=None):
        self.shown.append(text)
        self.colors.append(color)


class FakePanel:
    def __init__(self):
        self.alive = True
        self.messages = []
        self.disposed = False

    @property
    def is_alive(self):
        return self.alive

    def post_message(self, message):
        self.messages.append(message)

    def dispose(self):
        self.disposed = True
        self.alive = False


class FakeHost:
    def __init__(self):
        self.notifications = []
        self.answer = RELOAD
        self.path = None
        self.panel = FakePanel()
        self.confirmations = []

    def prompt_open_file(self):
        return self.path

    def confirm(self, message, options):
        self.confirmations.append((message, options))
        return self.answer

    def notify(self, level, message):
        self.notifications.append((level, message))

    def open_wide_panel(self):
        return self.panel

    def levels(self, level):
        return [message for lvl, message in self.notifications if lvl == level]


class ReaderTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._cwd = os.getcwd()
        self.tmp = Path(self._tmp.name)
        self.store = MemoryStore()
        self.reader = self.make_reader()

    def tearDown(self):
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def make_reader(self):
        self.host = FakeHost()
        self.surface = FakeSurface()
        self.scheduler = ManualScheduler()
        reader = Reader(self.host, self.surface, self.store, self.scheduler)
        reader.start()
        return reader

    def write_book(self, text=BOOK_TEXT, name="book.txt"):
        path = self.tmp / name
        path.write_text(text, encoding="utf-8")
        return path


class TestStartup(ReaderTestCase):
    def test_empty_store_shows_ready(self):
        self.assertEqual(self.surface.last_text, READY_TEXT)
        self.assertEqual(self.host.notifications, [])

    def test_toggle_visibility(self):
        self.reader.load_pasted_text(PASTED)
        self.assertFalse(self.reader.toggle_visibility())
        self.assertEqual(self.surface.last_text, HIDDEN_TEXT)
        self.assertTrue(self.reader.toggle_visibility())
        self.assertTrue(self.surface.last_text.startswith("quietread: 开端 [0-80/200] - 甲"))


class TestPastedText(ReaderTestCase):
    def test_paste_selects_document(self):
        document = self.reader.load_pasted_text(PASTED)
        self.assertIs(self.reader.current_document, document)
        self.assertEqual([c.title for c in document.chapters], ["开端", "继续"])
        self.assertEqual(self.surface.last_text, "quietread: 开端 [0-80/200] - " + "甲" * 80)

    def test_blank_paste_is_ignored(self):
        self.assertIsNone(self.reader.load_pasted_text("   \n "))
        self.assertEqual(len(self.reader.library), 0)

    def test_stepping_saves_after_quiet_period(self):
        self.reader.load_pasted_text(PASTED)
        self.scheduler.advance(1.0)
        self.reader.step_right()
        self.reader.page_right()
        self.assertTrue(self.reader.coordinator.save_pending)
        self.scheduler.advance(0.5)
        records = self.store.get(FILES_KEY)
        self.assertEqual(records[0]["lastScrollOffset"], 90)
        self.assertEqual(self.surface.last_text, "quietread: 开端 [90-170/200] - " + "甲" * 80)

    def test_restart_restores_position(self):
        document = self.reader.load_pasted_text(PASTED)
        self.reader.select_chapter(1)
        for _ in range(3):
            self.reader.step_right()
        self.reader.shutdown()

        reader = self.make_reader()
        self.assertEqual(reader.current_document.id, document.id)
        self.assertEqual((reader.cursor.chapter_index, reader.cursor.offset), (1, 30))
        self.assertEqual(reader.current_document.chapter_offsets[0], 0)


class TestFiles(ReaderTestCase):
    def test_open_adds_without_selecting(self):
        document = self.reader.open_file(self.write_book())
        self.assertEqual(len(self.reader.library), 1)
        self.assertIsNone(self.reader.current_document)
        self.assertEqual(self.host.levels("info"), [f"Loaded TXT file: {document.name}"])

    def test_select_file_uses_prompt(self):
        self.assertIsNone(self.reader.select_file())
        self.host.path = str(self.write_book())
        self.assertIsNotNone(self.reader.select_file())

    def test_unsupported_file(self):
        path = self.tmp / "notes.docx"
        path.write_bytes(b"PK")
        self.assertIsNone(self.reader.open_file(path))
        self.assertEqual(len(self.reader.library), 0)
        self.assertEqual(len(self.host.levels("error")), 1)

    def test_missing_path_is_not_added(self):
        self.assertIsNone(self.reader.open_file(self.tmp / "gone.txt"))
        self.assertEqual(len(self.reader.library), 0)
        self.assertIn("does not exist", self.host.levels("error")[0])

    def test_undecodable_file_is_kept_as_error(self):
        path = self.tmp / "bad.txt"
        path.write_bytes(b"\xff\xfe\x80\x81")
        document = self.reader.open_file(path)
        self.assertFalse(document.is_usable)
        self.assertEqual(len(self.reader.library), 1)
        self.assertFalse(self.reader.select_document(document.id))
        self.assertIn("failed to parse", self.host.levels("warning")[0])

    def test_reload_keeps_identity(self):
        path = self.write_book()
        first = self.reader.open_file(path)
        second = self.reader.open_file(path)
        self.assertEqual(second.id, first.id)
        self.assertEqual(len(self.reader.library), 1)
        self.assertEqual(self.host.confirmations[0][1], [RELOAD, CANCEL])

    def test_reload_cancelled(self):
        path = self.write_book()
        first = self.reader.open_file(path)
        self.host.answer = CANCEL
        self.assertIsNone(self.reader.open_file(path))
        self.assertIs(self.reader.library.get(first.id), first)

    def test_reload_of_active_document_resets_invalid_position(self):
        path = self.write_book()
        document = self.reader.open_file(path)
        self.reader.select_document(document.id)
        self.reader.select_chapter(2)
        path.write_text("Chapter 1: Only\nThe only chapter left now.\n", encoding="utf-8")

        replaced = self.reader.open_file(path)
        self.assertIs(self.reader.current_document, replaced)
        self.assertEqual((self.reader.cursor.chapter_index, self.reader.cursor.offset), (0, 0))
        self.assertTrue(any("reset" in message for message in self.host.levels("info")))

    def test_remove_current_document(self):
        document = self.reader.load_pasted_text(PASTED)
        self.reader.remove_document(document.id)
        self.assertIsNone(self.reader.current_document)
        self.assertEqual(self.surface.last_text, READY_TEXT)

    def test_missing_after_restart(self):
        path = self.write_book()
        document = self.reader.open_file(path)
        self.reader.select_document(document.id)
        self.reader.shutdown()
        path.unlink()

        reader = self.make_reader()
        self.assertIsNone(reader.current_document)
        self.assertEqual(self.surface.last_text, READY_TEXT)
        warnings = self.host.levels("warning")
        self.assertIn("1 failed to load", warnings[0])
        self.assertIn("book.txt", warnings[1])

        self.assertFalse(reader.select_document(document.id))
        self.assertIn("no longer exists", self.host.levels("warning")[-1])

        removed = reader.cleanup_missing()
        self.assertEqual([d.id for d in removed], [document.id])
        self.assertEqual(len(reader.library), 0)

    def test_relative_and_absolute_spellings_are_one_document(self):
        path = self.write_book()
        os.chdir(self.tmp)
        first = self.reader.open_file("book.txt")
        self.assertTrue(Path(first.path).is_absolute())
        second = self.reader.open_file(path)
        self.assertEqual(len(self.host.confirmations), 1)
        self.assertEqual(second.id, first.id)
        self.assertEqual(len(self.reader.library), 1)

    def test_relative_path_restores_from_another_directory(self):
        self.write_book()
        os.chdir(self.tmp)
        document = self.reader.open_file("book.txt")
        self.reader.select_document(document.id)
        self.reader.select_chapter(1)
        self.reader.shutdown()

        elsewhere = tempfile.TemporaryDirectory()
        self.addCleanup(elsewhere.cleanup)
        os.chdir(elsewhere.name)
        reader = self.make_reader()
        restored = reader.library.get(document.id)
        self.assertTrue(restored.is_usable)
        self.assertIs(reader.current_document, restored)
        self.assertEqual(reader.cursor.chapter_index, 1)

    def test_clear_library(self):
        self.reader.load_pasted_text(PASTED)
        self.reader.shutdown()
        self.assertIsNotNone(self.store.get(FILES_KEY))
        self.reader.clear_library()
        self.scheduler.advance(1.0)
        self.assertIsNone(self.store.get(FILES_KEY))
        self.assertIsNone(self.store.get(STATE_KEY))
        self.assertEqual(self.surface.last_text, READY_TEXT)


class TestWideSurface(ReaderTestCase):
    def test_scroll_is_committed_on_close(self):
        self.reader.load_pasted_text(PASTED)
        self.assertTrue(self.reader.toggle_wide_surface())
        self.reader.handle_panel_message({"command": "scroll", "scrollTop": 500, "percentage": 0.25})
        self.assertEqual(self.reader.cursor.offset, 0)
        self.assertFalse(self.reader.toggle_wide_surface())
        self.assertTrue(self.host.panel.disposed)
        self.assertEqual(self.reader.cursor.offset, 50)
        self.assertTrue(self.surface.last_text.startswith("quietread: 开端 [50-130/200]"))

    def test_chapter_switch_force_closes_into_old_chapter(self):
        document = self.reader.load_pasted_text(PASTED)
        self.reader.toggle_wide_surface()
        self.reader.handle_panel_message({"command": "scroll", "scrollTop": 900, "percentage": 0.5})
        self.reader.select_chapter(1)
        self.assertTrue(self.host.panel.disposed)
        self.assertFalse(self.reader.reconciler.is_open)
        self.assertEqual(document.chapter_offsets[0], 100)
        self.assertEqual((self.reader.cursor.chapter_index, self.reader.cursor.offset), (1, 0))

    def test_sync_now_keeps_panel_open(self):
        self.reader.load_pasted_text(PASTED)
        self.reader.toggle_wide_surface()
        self.reader.handle_panel_message({"command": "scroll", "scrollTop": 10, "percentage": 0.1, "charOffset": 42})
        self.assertEqual(self.reader.sync_wide_surface(), 42)
        self.assertTrue(self.reader.reconciler.is_open)
        self.assertEqual(self.reader.cursor.offset, 42)

    def test_document_switch_force_closes_into_old_document(self):
        first = self.reader.load_pasted_text(PASTED)
        second = self.reader.load_pasted_text("第一章 另一本\n" + "丙" * 120)
        self.reader.step_right()
        self.reader.step_right()
        self.reader.select_document(first.id)

        self.reader.toggle_wide_surface()
        self.reader.handle_panel_message({"command": "scroll", "scrollTop": 900, "percentage": 0.5})
        self.reader.select_document(second.id)

        self.assertTrue(self.host.panel.disposed)
        self.assertFalse(self.reader.reconciler.is_open)
        self.assertEqual(first.chapter_offsets[0], 100)
        self.assertEqual(first.last_offset, 100)
        self.assertIs(self.reader.current_document, second)
        self.assertEqual((self.reader.cursor.chapter_index, self.reader.cursor.offset), (0, 20))


class TestOpacity(ReaderTestCase):
    def test_default_is_fully_opaque(self):
        self.assertEqual(self.reader.opacity, 100)
        self.assertEqual(self.surface.colors[-1], "rgba(135, 135, 135, 1.00)")

    def test_values_are_clamped(self):
        self.assertEqual(self.reader.set_opacity(2), 5)
        self.assertEqual(self.surface.colors[-1], "rgba(135, 135, 135, 0.05)")
        self.assertEqual(self.reader.set_opacity(250), 100)

    def test_opacity_survives_restart_and_clear(self):
        self.reader.set_opacity(60)
        self.reader.clear_library()
        reader = self.make_reader()
        self.assertEqual(reader.opacity, 60)
        self.assertEqual(self.surface.colors[-1], "rgba(135, 135, 135, 0.60)")


if __name__ == "__main__":
    unittest.main()
