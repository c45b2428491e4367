"""Server factory: wires the FastAPI application and runs it under uvicorn."""

import asyncio
import copy
import logging
import os
import socket
import threading
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from uvicorn.logging import DefaultFormatter

from coverage_server import __version__, routers
from coverage_server.config import Settings, get_settings
from coverage_server.middleware import RequestLocalsMiddleware, SecurityHeadersMiddleware
from coverage_server.validate import validate

logger = logging.getLogger(__name__)

# Threshold above every standard level: nothing gets through
SILENT = logging.CRITICAL + 10

# Accepted ``logger`` levels, including the names used by Node-style loggers
LOG_LEVELS = {
    "trace": 5,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "silent": SILENT,
}


class MultiDirectoryStaticFiles(StaticFiles):
    """StaticFiles serving several directories under one mount, first match wins."""

    def __init__(self, *, directories: list, **kwargs) -> None:
        self._directories = list(directories)
        super().__init__(directory=self._directories[0], **kwargs)
        for directory in self._directories[1:]:
            if not os.path.isdir(directory):
                raise RuntimeError(f"Directory '{directory}' does not exist")

    def get_directories(self, directory=None, packages=None) -> list:
        return list(self._directories)


def resolve_log_level(option) -> int:
    """Translate a validated ``logger`` option into a numeric log level."""
    if option is False:
        return SILENT
    if option is True:
        return logging.INFO
    level = str(option["level"]).lower()
    if level not in LOG_LEVELS:
        raise ValueError(
            f"invalid option. Unrecognized log level. Option: `{option['level']}`."
        )
    return LOG_LEVELS[level]


# Console output for the package loggers; records do not reach the root logger
_console_handler = logging.StreamHandler()
_console_handler.setFormatter(DefaultFormatter("%(levelprefix)s %(message)s"))


def configure_logging(level: int) -> None:
    """Set the package log level and attach the console handler once."""
    pkg_logger = logging.getLogger("coverage_server")
    pkg_logger.setLevel(level)
    if _console_handler not in pkg_logger.handlers:
        pkg_logger.addHandler(_console_handler)
        pkg_logger.propagate = False


def static_mounts(opts: dict) -> list:
    """
    Pair URL prefixes with the directories served under them.

    Without ``static`` the root directory is served at the prefix(es). With
    ``static`` each directory goes under its prefix and the root is served
    at ``/`` as well, since the HTML shell loads its assets by absolute path.
    Directories that share a prefix are grouped into one mount, and longer
    prefixes come first so a ``/`` mount never shadows them.
    """
    static = opts.get("static")
    prefix = opts["prefix"]
    root = opts["root"]
    if not static:
        prefixes = [prefix] if isinstance(prefix, str) else prefix
        pairs = [(p, root) for p in prefixes]
    else:
        directories = [static] if isinstance(static, str) else static
        if isinstance(prefix, str):
            pairs = [(prefix, d) for d in directories]
        else:
            pairs = list(zip(prefix, directories))
        pairs.append(("/", root))

    mounts: dict = {}
    for p, d in pairs:
        if not p.startswith("/"):
            p = "/" + p
        if d not in mounts.setdefault(p, []):
            mounts[p].append(d)
    return sorted(mounts.items(), key=lambda m: len(m[0].rstrip("/")), reverse=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    yield
    # Shutdown: defer clean-up by one event-loop tick
    await asyncio.sleep(0)
    logger.info("HTTP server closed.")


def build_app(opts: dict) -> FastAPI:
    """Create the FastAPI application for a set of resolved options."""
    app = FastAPI(
        title="Coverage Report Server",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=opts["ignore_trailing_slash"],
    )

    # Expose the root directory to route handlers
    app.state.root_dir = opts["root"]

    # Per-request scratch space; added first so it runs after the headers layer
    app.add_middleware(RequestLocalsMiddleware)

    # Basic security headers
    app.add_middleware(
        SecurityHeadersMiddleware,
        content_security_policy=False,
        cross_origin_embedder_policy=False,
        referrer_policy="origin",
        hide_powered_by=True,
    )

    # Routes go before the static mounts so a "/" prefix cannot shadow them
    routers.register(app)

    for i, (prefix, directories) in enumerate(static_mounts(opts)):
        if len(directories) == 1:
            files = StaticFiles(directory=directories[0])
        else:
            files = MultiDirectoryStaticFiles(directories=directories)
        app.mount(prefix, files, name=f"static-{i}")

    return app


def bind_socket(address: str, port: int) -> socket.socket:
    """Bind (but do not listen on) a TCP socket."""
    family = socket.AF_INET6 if ":" in address else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((address, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


class CoverageServer:
    """Handle to a uvicorn server running in a background thread."""

    def __init__(self, app: FastAPI, config: uvicorn.Config, sock: socket.socket, hostname: str):
        self.app = app
        self.hostname = hostname
        self.address, self.port = sock.getsockname()[:2]
        self._sock = sock
        self._server = uvicorn.Server(config)
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        return f"http://{host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._server.started

    def start(self, timeout: float = 10.0) -> bool:
        """Start serving and block until uvicorn is ready, has given up, or ``timeout`` passes."""
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._sock]},
            name=f"coverage-server-{self.port}",
            daemon=True,
        )
        self._thread.start()
        deadline = time.monotonic() + timeout
        while not self._server.started and self._thread.is_alive() and time.monotonic() < deadline:
            time.sleep(0.01)
        return self._server.started

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the server and wait for its shutdown hooks to finish."""
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
        self._sock.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def create_server_factory(
    options: Optional[dict] = None,
    *,
    cwd: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Callable:
    """
    Return a function which creates an HTTP server for serving test code coverage.

    Args:
        options: Server options (``address``, ``hostname``, ``logger``, ``port``,
            ``prefix``, ``root``, ``static``, ``trust_proxy``,
            ``ignore_trailing_slash``), merged over the configured defaults.
        cwd: Directory that relative ``root``/``static`` paths resolve against.
            Defaults to the current working directory, read once here.
        settings: Source of default options. Defaults to ``get_settings()``.

    Raises:
        TypeError: An option has the wrong type, or ``static`` is a string and
            ``prefix`` is not.
        ValueError: The number of prefixes does not match the number of static
            directories, or the log level is unknown.

    Example::

        create_server = create_server_factory({"port": 7331})

        def done(error, server=None):
            if error:
                print(error)
                return
            print(f"Listening on {server.url}")
            server.close()

        create_server(done)
    """
    opts = copy.deepcopy((settings or get_settings()).defaults())
    if options is not None:
        err = validate(opts, options)
        if err:
            raise err
    if opts.get("hostname") is None:
        opts["hostname"] = opts["address"]

    base = os.getcwd() if cwd is None else cwd
    opts["root"] = os.path.abspath(os.path.join(base, opts["root"]))
    static = opts.get("static")
    if static:
        if isinstance(static, str):
            if not isinstance(opts["prefix"], str):
                raise TypeError(
                    "invalid option. Must provide a string `prefix` when `static` is a string. "
                    f"Option: `{opts['prefix']!r}`."
                )
            opts["static"] = os.path.abspath(os.path.join(base, static))
        else:
            if not isinstance(opts["prefix"], str) and len(opts["prefix"]) != len(static):
                raise ValueError(
                    "invalid option. Number of prefixes must equal the number of static directories."
                )
            opts["static"] = [os.path.abspath(os.path.join(base, d)) for d in static]

    log_level = resolve_log_level(opts["logger"])

    def create_server(done: Callable) -> None:
        """
        Create an HTTP server and report the outcome through ``done``.

        ``done(None, server)`` receives a running :class:`CoverageServer`;
        setup and bind failures arrive as ``done(error)``.
        """
        if not callable(done):
            raise TypeError(
                f"invalid argument. First argument must be a function. Value: `{done!r}`."
            )
        configure_logging(log_level)

        try:
            app = build_app(opts)
        except RuntimeError as exc:
            logger.error(str(exc))
            done(exc)
            return

        config = uvicorn.Config(
            app,
            host=opts["address"],
            port=opts["port"],
            log_level=log_level,
            access_log=log_level <= logging.INFO,
            proxy_headers=opts["trust_proxy"],
            forwarded_allow_ips="*" if opts["trust_proxy"] else None,
            server_header=False,
            lifespan="on",
        )

        try:
            sock = bind_socket(opts["address"], opts["port"])
        except OSError as exc:
            logger.error(f"Unable to bind {opts['address']}:{opts['port']}: {exc}")
            done(exc)
            return

        server = CoverageServer(app, config, sock, opts["hostname"])
        if not server.start():
            server.close()
            err = RuntimeError("HTTP server failed to start.")
            logger.error(str(err))
            done(err)
            return

        logger.info(f"HTTP server initialized. Server is listening for requests on {server.url}.")
        done(None, server)

    return create_server
