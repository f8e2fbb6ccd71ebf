# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the release catalog: published releases, their files and their packaging formats."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from provenator.errors import ReleaseNotFoundError

logger: logging.Logger = logging.getLogger(__name__)

#: The python_version tag of releases built for the legacy Python 2 line.
LEGACY_PYTHON_VERSION = "py2"


class ReleaseKind(Enum):
    """The packaging format of a release file, derived from its file name."""

    UNKNOWN = "unknown"
    # Source Distribution formats (non-exhaustive).
    # See https://docs.python.org/3/distutils/sourcedist.html#creating-a-source-distribution
    SOURCE_ZIP = "source-zip"
    SOURCE_TAR = "source-tar"
    # Wheel platform identifiers.
    # https://packaging.python.org/specifications/platform-compatibility-tags/
    # https://www.python.org/dev/peps/pep-0425/#platform-tag
    WHEEL_ANY = "wheel-any"
    WHEEL_MANYLINUX = "wheel-manylinux"
    WHEEL_MUSLLINUX = "wheel-musllinux"
    WHEEL_MACOS = "wheel-macos"
    WHEEL_WINDOWS = "wheel-windows"


_WHEEL_PLATFORM_PREFIXES = (
    ("manylinux", ReleaseKind.WHEEL_MANYLINUX),
    ("musllinux", ReleaseKind.WHEEL_MUSLLINUX),
    ("macos", ReleaseKind.WHEEL_MACOS),
    ("win", ReleaseKind.WHEEL_WINDOWS),
)


def classify(filename: str) -> ReleaseKind:
    """Return the packaging format of a release file from the structure of its name.

    The platform tag of a wheel is the last ``-``-separated segment of the name before the extension.
    For compressed tag sets (``manylinux1_x86_64.manylinux2010_x86_64``) the first tag decides.

    Parameters
    ----------
    filename : str
        The release file name.

    Returns
    -------
    ReleaseKind
        The packaging format, ``ReleaseKind.UNKNOWN`` if it cannot be recognized.

    Examples
    --------
    >>> classify("pkg-1.0-py3-none-any.whl")
    <ReleaseKind.WHEEL_ANY: 'wheel-any'>
    >>> classify("pkg-1.0.tar.gz")
    <ReleaseKind.SOURCE_TAR: 'source-tar'>
    >>> classify("pkg.unknown")
    <ReleaseKind.UNKNOWN: 'unknown'>
    """
    if filename.endswith(".tar.gz"):
        return ReleaseKind.SOURCE_TAR
    if filename.endswith(".zip"):
        return ReleaseKind.SOURCE_ZIP
    if filename.endswith(".whl"):
        platform = filename.removesuffix(".whl").split("-")[-1].split(".")[0]
        if platform == "any":
            return ReleaseKind.WHEEL_ANY
        for prefix, kind in _WHEEL_PLATFORM_PREFIXES:
            if platform.startswith(prefix):
                return kind
    return ReleaseKind.UNKNOWN


@dataclass(frozen=True)
class ReleaseArtifact:
    """A file published for a release on the package index."""

    filename: str

    #: The package type reported by the index, e.g. ``bdist_wheel`` or ``sdist``.
    package_type: str

    #: The interpreter tag reported by the index, e.g. ``py3`` or ``source``.
    python_version: str

    url: str
    upload_time: datetime

    #: Digest algorithm to hex digest, e.g. ``{"md5": ..., "sha256": ...}``.
    digests: dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> ReleaseKind:
        """Return the packaging format of this file."""
        return classify(self.filename)

    @property
    def sha256(self) -> str:
        """Return the SHA-256 digest published by the index."""
        return self.digests.get("sha256", "")

    @property
    def is_legacy(self) -> bool:
        """Return True if this file was built for the legacy Python 2 line."""
        return self.python_version == LEGACY_PYTHON_VERSION


@dataclass(frozen=True)
class PackageMetadata:
    """The index metadata of a package."""

    name: str
    latest_version: str

    #: Version to the files published for that version.
    releases: dict[str, list[ReleaseArtifact]] = field(default_factory=dict)


def resolve_version(metadata: PackageMetadata, version: str | None = None) -> str:
    """Return the requested version, or the latest version reported by the index when none is requested.

    Raises
    ------
    ReleaseNotFoundError
        If no version is requested and the index does not report a latest version.
    """
    if version:
        return version
    if not metadata.latest_version:
        raise ReleaseNotFoundError(f"No latest version reported for {metadata.name}.")
    return metadata.latest_version


def find_release_artifacts(
    metadata: PackageMetadata, version: str, kinds: Iterable[ReleaseKind]
) -> list[ReleaseArtifact]:
    """Return the non-legacy files of a release whose packaging format was requested.

    Files keep the order of the index listing.

    Raises
    ------
    ReleaseNotFoundError
        If no file of a requested kind exists for the version.
    """
    requested = set(kinds)
    matched = []
    for artifact in metadata.releases.get(version, []):
        if artifact.is_legacy:
            logger.debug("Skipping legacy release file %s.", artifact.filename)
            continue
        if artifact.kind in requested:
            matched.append(artifact)

    if not matched:
        raise ReleaseNotFoundError(
            f"No release to rebuild [pkg={metadata.name}, version={version}, "
            f"types={sorted(kind.value for kind in requested)}]"
        )
    return matched


def release_upload_times(metadata: PackageMetadata, version: str) -> dict[str, datetime]:
    """Return a mapping from release file name to upload time for a version."""
    return {artifact.filename: artifact.upload_time for artifact in metadata.releases.get(version, [])}
