"""HTTP server for browsing test code coverage reports."""

__version__ = "0.1.0"

from coverage_server.main import CoverageServer, create_server_factory  # noqa: E402

__all__ = ["CoverageServer", "create_server_factory", "__version__"]
