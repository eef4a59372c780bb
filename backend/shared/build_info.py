"""Build metadata reported by the health endpoint.

Deployments pin APP_VERSION and GIT_COMMIT in the environment. Without them
the installed package version and the checkout's HEAD are used, and "dev"
stands in for anything that cannot be determined.
"""

import os
import subprocess
from importlib import metadata
from typing import NamedTuple

DIST_NAME = "hoops-tracker"
UNKNOWN = "dev"


class BuildInfo(NamedTuple):
    version: str
    commit: str


def _package_version() -> str:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return UNKNOWN


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return UNKNOWN


def read_build_info() -> BuildInfo:
    """Resolve version and commit once; the server keeps the result on app state."""
    return BuildInfo(
        version=os.environ.get("APP_VERSION") or _package_version(),
        commit=os.environ.get("GIT_COMMIT") or _git_short_sha(),
    )
