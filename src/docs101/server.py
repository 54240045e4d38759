import sys
import threading
from http.server import ThreadingHTTPServer
from typing import List, Optional

from .binder import Listener, bind_listener
from .config import Settings, parse_settings
from .errors import ExportError, StartupError
from .export import gen_static_files
from .launcher import ContentUpdater, launch_side_effects, open_browser
from .site import Site

# Fixed on purpose, not exposed as flags
READ_TIMEOUT = 5
WRITE_TIMEOUT = 10

READY_TIMEOUT = 10.0
JOIN_TIMEOUT = 5.0


class DocServer(ThreadingHTTPServer):
    """ThreadingHTTPServer that serves on an already bound Listener."""

    read_timeout = READ_TIMEOUT
    write_timeout = WRITE_TIMEOUT

    def __init__(self, listener: Listener, handler_class):
        self.listener = listener
        super().__init__(listener.sock.getsockname()[:2], handler_class, bind_and_activate=False)
        # Swap the fresh unbound socket for the one the binder already listens on
        self.socket.close()
        self.socket = listener.sock
        self.address_family = listener.sock.family
        self.server_address = listener.sock.getsockname()
        self.server_name = "localhost"
        self.server_port = listener.port


class ServerRunner:
    def __init__(self, listener: Listener, handler_class):
        self.listener = listener
        self.httpd = DocServer(listener, handler_class)
        self.ready = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.listener.port

    def log_urls(self):
        # Caching is decided by the handler from the Host header, see site.py
        print("[SERVER] Server started:")
        print(f"[SERVER]    http://localhost:{self.port} (non-cached version)")
        print(f"[SERVER]    http://127.0.0.1:{self.port} (cached version)")

    def serve(self):
        """Serve until shutdown() is called. Blocks the calling thread."""
        self.log_urls()
        self.ready.set()
        try:
            self.httpd.serve_forever()
        except Exception as e:
            print(f"[SERVER] Error: server stopped: {e}", file=sys.stderr)
            raise

    def start(self) -> threading.Thread:
        self.thread = threading.Thread(target=self.serve, name="docs101-server", daemon=True)
        self.thread.start()
        return self.thread

    def wait_ready(self, timeout: Optional[float] = READY_TIMEOUT) -> bool:
        return self.ready.wait(timeout)

    def shutdown(self):
        # serve_forever() runs right after ready is set, so shutdown() cannot hang
        if self.ready.is_set():
            self.httpd.shutdown()
        self.httpd.server_close()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=JOIN_TIMEOUT)


def dispatch(settings: Settings, runner: ServerRunner, exporter=gen_static_files):
    """Serve forever, or in generation mode serve only while the exporter runs.

    Returns whatever the exporter returned (None in serve-only mode).
    """
    if not settings.gen:
        try:
            runner.serve()
        finally:
            runner.httpd.server_close()
        return None

    runner.start()
    try:
        if not runner.wait_ready():
            raise StartupError("server did not become ready")
        return exporter(runner.listener.root_url, settings.out_dir)
    finally:
        runner.shutdown()


def run(settings: Settings, exporter=gen_static_files, opener=open_browser, updater_factory=ContentUpdater):
    listener = bind_listener(settings.port)
    site = Site(settings.content_dir, settings.theme)
    print(f"[SERVER] Serving docs from: {site.content_dir}")
    print(f"[SERVER] Theme: {settings.theme or 'auto'}")

    runner = ServerRunner(listener, site.handler_class())
    updater = launch_side_effects(
        settings,
        listener.root_url,
        on_update=site.invalidate,
        opener=opener,
        updater_factory=updater_factory,
    )
    try:
        return dispatch(settings, runner, exporter)
    finally:
        if updater:
            updater.stop()


def main(argv: Optional[List[str]] = None) -> int:
    settings = parse_settings(argv)
    try:
        run(settings)
    except (StartupError, ExportError) as e:
        sys.stderr.write(f"[SERVER] Error: {e}\n")
        return 1
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
