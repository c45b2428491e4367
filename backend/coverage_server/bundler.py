"""esbuild configuration for the report viewer front end.

The descriptor below is consumed by the external ``esbuild`` executable; this
module only translates it into command-line arguments and launches the build.
"""

import logging
import subprocess
from typing import Optional

from coverage_server.config import FRONTEND_DIR

logger = logging.getLogger(__name__)

ESBUILD_CONFIG = {
    "entryPoints": [str(FRONTEND_DIR / "src" / "index.jsx")],
    "bundle": True,
    "outfile": str(FRONTEND_DIR / "public" / "js" / "bundle.js"),
    "minify": True,
    "sourcemap": False,
    "target": "es2015",
    "jsxFactory": "h",
    "jsxFragment": "Fragment",
    "jsxImportSource": "preact",
    "alias": {
        "react": "preact/compat",
        "react-dom": "preact/compat",
    },
}

# Descriptor keys -> esbuild flags
_FLAGS = {
    "bundle": "--bundle",
    "outfile": "--outfile",
    "minify": "--minify",
    "sourcemap": "--sourcemap",
    "target": "--target",
    "jsxFactory": "--jsx-factory",
    "jsxFragment": "--jsx-fragment",
    "jsxImportSource": "--jsx-import-source",
}


def esbuild_args(config: dict) -> list:
    """Translate a build descriptor into esbuild command-line arguments."""
    args = list(config.get("entryPoints", []))
    for key, flag in _FLAGS.items():
        value = config.get(key)
        if value is None or value is False:
            continue
        if value is True:
            args.append(flag)
        else:
            args.append(f"{flag}={value}")
    for name, target in config.get("alias", {}).items():
        args.append(f"--alias:{name}={target}")
    return args


def build(config: Optional[dict] = None, esbuild: str = "esbuild") -> subprocess.CompletedProcess:
    """
    Bundle the front end by running esbuild.

    Raises:
        FileNotFoundError: The esbuild executable is not installed.
        subprocess.CalledProcessError: esbuild reported a build failure.
    """
    cmd = [esbuild, *esbuild_args(config or ESBUILD_CONFIG)]
    logger.info(f"Running {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=str(FRONTEND_DIR), check=True)
    logger.info(f"Bundle written to {(config or ESBUILD_CONFIG)['outfile']}")
    return result
