"""Application version lookup.

Prefers the installed distribution metadata and falls back to reading
pyproject.toml when running from a source checkout.
"""

import tomllib
from importlib import metadata
from pathlib import Path

DISTRIBUTION_NAME = "will-engine"
_PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def get_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        pass
    if not _PYPROJECT.exists():
        return "unknown"
    with open(_PYPROJECT, "rb") as f:
        return tomllib.load(f)["project"]["version"]


__version__: str = get_version()
