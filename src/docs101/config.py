import argparse
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

DEFAULT_PORT = "55555"
DEFAULT_CONTENT_DIR = "."
DEFAULT_OUT_DIR = "static-site"
DEFAULT_UPDATE_INTERVAL = 3 * 60 * 60.0

# Set by hosting platforms (App Engine, Heroku, Cloud Run...) that hand us the port.
PORT_ENV = "PORT"

_TRUE = {"1", "t", "true", "y", "yes", "on"}
_FALSE = {"0", "f", "false", "n", "no", "off"}


def parse_bool(value: str) -> bool:
    v = str(value).strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


@dataclass(frozen=True)
class Settings:
    """Effective configuration, resolved once at startup.

    Attributes:
        port: Requested port string. Equals $PORT verbatim when that is set.
        theme: Forwarded to the documentation handler as is ("" means auto).
        gen: Generation mode: serve just long enough to export a static mirror.
        no_browser: Do not open the desktop browser.
        managed: True when $PORT was set, i.e. we run on a hosting platform.
        content_dir: Directory holding the documentation to serve.
        out_dir: Where generation mode writes the static mirror.
        update_interval: Seconds between background content refreshes.
    """

    port: str = DEFAULT_PORT
    theme: str = ""
    gen: bool = False
    no_browser: bool = False
    managed: bool = False
    content_dir: str = DEFAULT_CONTENT_DIR
    out_dir: str = DEFAULT_OUT_DIR
    update_interval: float = DEFAULT_UPDATE_INTERVAL

    @property
    def launch_browser(self) -> bool:
        return not (self.gen or self.no_browser or self.managed)

    @property
    def run_updater(self) -> bool:
        return not (self.gen or self.managed)


def _add_bool_flag(parser: argparse.ArgumentParser, name: str, help: str):
    # Accepts "-gen", "-gen=true" and "-gen false"
    parser.add_argument(
        f"-{name}", f"--{name}",
        dest=name.replace("-", "_"),
        nargs="?",
        const=True,
        default=False,
        type=parse_bool,
        help=help,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the documentation locally.")
    parser.add_argument("-port", "--port", default=DEFAULT_PORT, help=f"server port (default: {DEFAULT_PORT})")
    _add_bool_flag(parser, "gen", "HTML generation mode: export a static mirror, then exit")
    parser.add_argument("-theme", "--theme", default="", help="theme (auto | dark | light)")
    _add_bool_flag(parser, "nob", "do not open the browser")
    parser.add_argument("-dir", "--dir", dest="content_dir", default=DEFAULT_CONTENT_DIR,
                        help="directory to serve (default: current directory)")
    parser.add_argument("-out", "--out", dest="out_dir", default=DEFAULT_OUT_DIR,
                        help=f"output directory for generation mode (default: {DEFAULT_OUT_DIR})")
    parser.add_argument("-update-interval", "--update-interval", dest="update_interval", type=float,
                        default=DEFAULT_UPDATE_INTERVAL,
                        help="seconds between content updates (default: 3 hours)")
    return parser


def parse_settings(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    args = build_parser().parse_args(argv)
    if environ is None:
        environ = os.environ

    port, managed = args.port, False
    env_port = environ.get(PORT_ENV, "")
    if env_port:
        port, managed = env_port, True

    return Settings(
        port=port,
        theme=args.theme,
        gen=args.gen,
        no_browser=args.nob,
        managed=managed,
        content_dir=args.content_dir,
        out_dir=args.out_dir,
        update_interval=args.update_interval,
    )
