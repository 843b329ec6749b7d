"""SOCKS5 proxy with username/password authentication."""

import pathlib
import sys
from importlib import metadata

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DIST_NAME = "socks5-auth-proxy"


def get_version() -> str:
    """Return the installed distribution version.

    Falls back to the nearest pyproject.toml when running from a source
    checkout that was never installed.
    """
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        pass

    current_dir = pathlib.Path(__file__).parent
    for parent in [current_dir, *current_dir.parents]:
        pyproject_path = parent / "pyproject.toml"
        if pyproject_path.exists():
            with pyproject_path.open("rb") as f:
                project = tomllib.load(f).get("project", {})
            if project.get("name") == DIST_NAME:
                return project["version"]

    return "0.0.0"


__version__ = get_version()
