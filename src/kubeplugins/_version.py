"""Utilities for retrieving and validating the package version."""

from importlib import metadata
from pathlib import Path
import re

from packaging.version import InvalidVersion, Version


_DISTRIBUTION = "kubeplugins"


def _version_from_sources() -> str:
    """Return the version listed at the top of the repository changelog.

    Used in development checkouts where no distribution metadata exists.
    """

    parents = Path(__file__).resolve().parents
    candidates = [parent / "CHANGELOG.md" for parent in parents[1:3]]

    for changelog in candidates:
        if not changelog.is_file():
            continue
        for line in changelog.read_text(encoding="utf-8").splitlines():
            match = re.match(r"^## v(?P<version>\d+\.\d+\.\d+)\b", line)
            if match:
                return match.group("version")

    raise RuntimeError(
        f"Unable to determine the '{_DISTRIBUTION}' version from package metadata "
        "or repository sources."
    )


def _load_version() -> str:
    try:
        raw_version = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        raw_version = _version_from_sources()

    try:
        parsed = Version(raw_version)
    except InvalidVersion as exc:
        raise RuntimeError(
            f"Invalid version string for '{_DISTRIBUTION}': {raw_version!r}."
        ) from exc

    if len(parsed.release) != 3:
        raise RuntimeError(
            f"The '{_DISTRIBUTION}' version must follow the MAJOR.MINOR.PATCH format. "
            f"Found: {raw_version!r}."
        )

    return raw_version


__version__ = _load_version()

__all__ = ["__version__"]
