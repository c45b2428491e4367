"""Shared fixtures: a throwaway site on disk and option helpers."""

import logging

import pytest
from httpx import AsyncClient, ASGITransport

from coverage_server.config import Settings
from coverage_server.main import build_app

INDEX_HTML = "<!DOCTYPE html><html><body><div id=\"root\"></div></body></html>\n"


@pytest.fixture
def site(tmp_path):
    """Directory tree with an HTML shell under public/ and two asset directories."""
    public = tmp_path / "public"
    (public / "js").mkdir(parents=True)
    (public / "index.html").write_text(INDEX_HTML)
    (public / "js" / "bundle.js").write_text("console.log('bundle');\n")

    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "style.css").write_text("body { margin: 0; }\n")

    reports = tmp_path / "reports"
    reports.mkdir()
    (reports / "coverage.json").write_text('{"lines": 98.5}\n')
    return tmp_path


@pytest.fixture
def settings():
    """Defaults that ignore any .env file or environment overrides."""
    return Settings(_env_file=None)


@pytest.fixture
def make_opts(site):
    """Build a fully resolved option mapping as the factory would."""

    def _make(**overrides):
        opts = {
            "address": "127.0.0.1",
            "hostname": "127.0.0.1",
            "logger": False,
            "port": 0,
            "prefix": "/",
            "root": str(site / "public"),
            "trust_proxy": False,
            "ignore_trailing_slash": True,
        }
        opts.update(overrides)
        return opts

    return _make


@pytest.fixture
async def client(make_opts):
    app = build_app(make_opts())
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture(autouse=True)
def package_logger(caplog):
    """Send package records to caplog and restore the package logger afterwards."""
    pkg_logger = logging.getLogger("coverage_server")
    saved = (pkg_logger.level, pkg_logger.propagate, list(pkg_logger.handlers))
    pkg_logger.addHandler(caplog.handler)
    yield pkg_logger
    level, propagate, handlers = saved
    pkg_logger.setLevel(level)
    pkg_logger.propagate = propagate
    pkg_logger.handlers[:] = handlers
