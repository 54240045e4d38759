import contextlib
import io
import shutil
import subprocess
import tempfile
import unittest
import webbrowser
from unittest import mock

import os, sys
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "src"))
from docs101.config import Settings
from docs101.errors import BrowserLaunchError
from docs101.launcher import ContentUpdater, launch_side_effects, open_browser

ROOT_URL = "http://localhost:8080/"


class RecordingUpdater:
    instances = []

    def __init__(self, content_dir, interval, on_update=None):
        self.content_dir = content_dir
        self.interval = interval
        self.on_update = on_update
        self.started = False
        RecordingUpdater.instances.append(self)

    def start(self):
        self.started = True
        return self


class OpenBrowserTest(unittest.TestCase):
    def test_success(self):
        with mock.patch.object(webbrowser, "open", return_value=True) as opened:
            open_browser(ROOT_URL)
        opened.assert_called_once_with(ROOT_URL)

    def test_no_browser_available(self):
        with mock.patch.object(webbrowser, "open", return_value=False):
            with self.assertRaises(BrowserLaunchError):
                open_browser(ROOT_URL)

    def test_browser_error(self):
        with mock.patch.object(webbrowser, "open", side_effect=webbrowser.Error("boom")):
            with self.assertRaises(BrowserLaunchError):
                open_browser(ROOT_URL)


class LaunchSideEffectsTest(unittest.TestCase):
    def setUp(self):
        RecordingUpdater.instances = []
        self.opened = []

    def opener(self, url):
        self.opened.append(url)

    def launch(self, **kw):
        return launch_side_effects(
            Settings(**kw), ROOT_URL, on_update=None, opener=self.opener, updater_factory=RecordingUpdater
        )

    def test_desktop_defaults_open_browser_and_start_updater(self):
        updater = self.launch(content_dir="docs", update_interval=42.0)
        self.assertEqual(self.opened, [ROOT_URL])
        self.assertIsNotNone(updater)
        self.assertTrue(updater.started)
        self.assertEqual(updater.content_dir, "docs")
        self.assertEqual(updater.interval, 42.0)

    def test_nob_only_skips_browser(self):
        updater = self.launch(no_browser=True)
        self.assertEqual(self.opened, [])
        self.assertTrue(updater.started)

    def test_gen_mode_skips_both(self):
        for nob in (False, True):
            self.assertIsNone(self.launch(gen=True, no_browser=nob))
        self.assertEqual(self.opened, [])
        self.assertEqual(RecordingUpdater.instances, [])

    def test_managed_context_skips_both(self):
        for gen in (False, True):
            for nob in (False, True):
                self.assertIsNone(self.launch(managed=True, gen=gen, no_browser=nob))
        self.assertEqual(self.opened, [])
        self.assertEqual(RecordingUpdater.instances, [])

    def test_browser_failure_is_only_a_warning(self):
        def failing(url):
            raise BrowserLaunchError("no display")

        with contextlib.redirect_stdout(io.StringIO()) as out:
            updater = launch_side_effects(Settings(), ROOT_URL, opener=failing, updater_factory=RecordingUpdater)
        self.assertIn("Warning: no display", out.getvalue())
        self.assertTrue(updater.started)


class ContentUpdaterTest(unittest.TestCase):
    def test_non_git_directory_ends_quietly(self):
        calls = []
        with tempfile.TemporaryDirectory() as tmp:
            with contextlib.redirect_stdout(io.StringIO()) as out:
                updater = ContentUpdater(tmp, interval=0.01, on_update=lambda: calls.append(1)).start()
                updater.stop(timeout=5)
            self.assertFalse(updater.running)
        self.assertEqual(calls, [])
        self.assertIn("content updates disabled", out.getvalue())

    def test_stop_before_start_is_harmless(self):
        ContentUpdater(".", interval=1).stop()

    @unittest.skipUnless(shutil.which("git"), "git is not installed")
    def test_pull_brings_new_commits_and_fires_on_update(self):
        def git(cwd, *args):
            subprocess.run(
                ["git", "-c", "user.name=docs", "-c", "user.email=docs@example.com", *args],
                cwd=cwd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
            )

        with tempfile.TemporaryDirectory() as tmp:
            upstream = os.path.join(tmp, "upstream")
            checkout = os.path.join(tmp, "checkout")
            os.makedirs(upstream)
            git(upstream, "init")
            with open(os.path.join(upstream, "index.html"), "w", encoding="utf-8") as f:
                f.write("<p>v1</p>")
            git(upstream, "add", "index.html")
            git(upstream, "commit", "-m", "v1")
            git(tmp, "clone", upstream, checkout)

            calls = []
            updater = ContentUpdater(checkout, interval=60, on_update=lambda: calls.append(1))
            with contextlib.redirect_stdout(io.StringIO()):
                self.assertTrue(updater.can_update())
                self.assertFalse(updater.update_once())

                with open(os.path.join(upstream, "index.html"), "w", encoding="utf-8") as f:
                    f.write("<p>v2</p>")
                git(upstream, "commit", "-am", "v2")

                self.assertTrue(updater.update_once())
            self.assertEqual(calls, [1])
            with open(os.path.join(checkout, "index.html"), encoding="utf-8") as f:
                self.assertEqual(f.read(), "<p>v2</p>")


if __name__ == "__main__":
    unittest.main()
