#!/usr/bin/env python3
"""
Entry point for running docs101 from a source checkout:

    python main.py -port 8080 -theme dark

The implementation lives in docs101.server; this shim re-exports the pieces
the tests and scripts use and provides the same console entry point.
"""
# Support running from source without install (src layout)
try:
    from docs101.server import (  # type: ignore F401
        DocServer,
        ServerRunner,
        dispatch,
        main as _main,
        run,
    )
except ModuleNotFoundError:  # pragma: no cover - fallback for local runs
    import os
    import sys as _sys
    here = os.path.dirname(os.path.abspath(__file__))
    src = os.path.join(here, "src")
    if os.path.isdir(src) and src not in _sys.path:
        _sys.path.insert(0, src)
    from docs101.server import (  # type: ignore F401
        DocServer,
        ServerRunner,
        dispatch,
        main as _main,
        run,
    )

__all__ = [
    "DocServer",
    "ServerRunner",
    "dispatch",
    "main",
    "run",
]


def main(argv=None):
    return _main(argv)


if __name__ == "__main__":
    raise SystemExit(main())
