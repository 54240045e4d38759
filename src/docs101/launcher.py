import os
import shutil
import subprocess
import threading
import webbrowser
from typing import Callable, Optional

from .config import Settings
from .errors import BrowserLaunchError

GIT_TIMEOUT = 120


def open_browser(url: str):
    """Open ``url`` in the desktop's default browser."""
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        raise BrowserLaunchError(f"could not open browser for {url}: {e}") from e
    if not opened:
        raise BrowserLaunchError(f"could not open browser for {url}: no runnable browser found")


class ContentUpdater:
    """Keeps a git checkout of the documentation up to date in the background.

    Pulls once right away, then every ``interval`` seconds until stop() is
    called. ``on_update`` runs after a pull that moved HEAD, which is how the
    site drops its cached pages. A directory that is not a git checkout (or a
    machine without git) ends the thread after a single log line.
    """

    def __init__(self, content_dir: str, interval: float, on_update: Optional[Callable[[], None]] = None):
        self.content_dir = content_dir
        self.interval = interval
        self.on_update = on_update
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _git(self, *args) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", *args],
            cwd=self.content_dir,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=GIT_TIMEOUT,
        )

    def _head(self) -> str:
        proc = self._git("rev-parse", "HEAD")
        return proc.stdout.strip() if proc.returncode == 0 else ""

    def can_update(self) -> bool:
        if shutil.which("git") is None:
            print("[UPDATE] git not found, content updates disabled")
            return False
        if not os.path.exists(os.path.join(self.content_dir, ".git")):
            print(f"[UPDATE] {os.path.abspath(self.content_dir)} is not a git checkout, content updates disabled")
            return False
        return True

    def update_once(self) -> bool:
        """Run one ``git pull``. Returns True when new content arrived."""
        try:
            before = self._head()
            proc = self._git("pull", "--ff-only")
            after = self._head()
        except (OSError, subprocess.TimeoutExpired) as e:
            print(f"[UPDATE] Warning: git pull failed: {e}")
            return False
        if proc.returncode != 0:
            print(f"[UPDATE] Warning: git pull failed: {proc.stderr.strip()}")
            return False
        changed = after != before
        if changed:
            print("[UPDATE] Content updated")
            if self.on_update:
                self.on_update()
        return changed

    def _loop(self):
        if not self.can_update():
            return
        while not self._stop.is_set():
            self.update_once()
            self._stop.wait(self.interval)

    def start(self) -> "ContentUpdater":
        self._thread = threading.Thread(target=self._loop, name="content-updater", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = 5.0):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def launch_side_effects(
    settings: Settings,
    root_url: str,
    on_update: Optional[Callable[[], None]] = None,
    opener: Callable[[str], None] = open_browser,
    updater_factory=ContentUpdater,
) -> Optional[ContentUpdater]:
    """Open the browser and start the content updater, as the settings allow.

    Both are desktop conveniences: nothing happens on a hosting platform or in
    generation mode. Returns the started updater, if any.
    """
    if settings.managed:
        return None

    if settings.launch_browser:
        try:
            opener(root_url)
        except BrowserLaunchError as e:
            print(f"[SERVER] Warning: {e}")

    if not settings.run_updater:
        return None
    return updater_factory(settings.content_dir, settings.update_interval, on_update).start()
