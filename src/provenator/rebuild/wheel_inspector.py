# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module infers the build environment of a published wheel from its contents."""

import io
import logging
import re
import zipfile
from dataclasses import dataclass

from provenator.config.service_config import RebuilderConfig
from provenator.errors import UnsupportedError

logger: logging.Logger = logging.getLogger(__name__)

# Names of the form: "pkg_name-version-py3.10-nspkg.pth"
NSPKG_PTH_PATTERN = re.compile(r"[^-]+-[^-]+-py(\d+\.\d+)-nspkg\.pth")
GENERATOR_VERSION_PATTERN = re.compile(r"^\(?(\d+(?:\.\d+)*)\)?$")


@dataclass(frozen=True)
class BuildEnvironment:
    """The pinned tools and interpreter that reproduce a wheel."""

    #: The version specifier of setuptools, e.g. ``==58.3.0``.
    setuptools: str

    #: The version specifier of wheel, e.g. ``==0.37.0``.
    wheel: str

    #: The interpreter executable, e.g. ``python3.9``.
    python: str


def read_generator_line(wheel_contents: str) -> tuple[str, str]:
    """Parse through the "Generator: {build backend} ({version})" line of .dist-info/WHEEL.

    Returns
    -------
    tuple[str, str]
        The generating build backend and its version, or empty strings if there is no such line.

    Examples
    --------
    >>> read_generator_line("Wheel-Version: 1.0\\nGenerator: bdist_wheel (0.37.0)\\nRoot-Is-Purelib: true")
    ('bdist_wheel', '0.37.0')
    >>> read_generator_line("Generator: bdist_wheel (a.b)")
    ('bdist_wheel', '')
    """
    for line in wheel_contents.splitlines():
        if line.startswith("Generator:"):
            split_line = line.split()
            if len(split_line) > 2:
                match = GENERATOR_VERSION_PATTERN.match(split_line[2])
                return split_line[1], match.group(1) if match else ""
    return "", ""


def inspect_wheel(content: bytes, config: RebuilderConfig) -> BuildEnvironment:
    """Infer the build environment that produced a wheel.

    The ``wheel`` version comes from the generator line of ``.dist-info/WHEEL``. setuptools started
    emitting ``License-File`` entries into ``.dist-info/METADATA`` with a known version, which pins the
    newer or the older release. A namespace package marker ``*-py3.N-nspkg.pth`` names the interpreter.

    Parameters
    ----------
    content : bytes
        The content of the wheel.
    config : RebuilderConfig
        The supported interpreter and the pinned setuptools versions.

    Returns
    -------
    BuildEnvironment
        The inferred environment.

    Raises
    ------
    UnsupportedError
        If the wheel cannot be read, lacks metadata, was not generated by bdist_wheel, or needs an
        unsupported interpreter.
    """
    metadata = b""
    wheel_info = b""
    python = f"python{config.supported_python}"
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as wheel:
            for name in wheel.namelist():
                if name.endswith(".dist-info/METADATA"):
                    metadata = wheel.read(name)
                elif name.endswith(".dist-info/WHEEL"):
                    wheel_info = wheel.read(name)
                elif name.endswith("-nspkg.pth"):
                    match = NSPKG_PTH_PATTERN.search(name)
                    if not match:
                        continue
                    if match.group(1) != config.supported_python:
                        raise UnsupportedError(f"Unsupported python version {match.group(1)} in {name}.")
                    python = f"python{match.group(1)}"
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as error:
        raise UnsupportedError(f"The published wheel cannot be read: {error}") from error

    if not metadata:
        raise UnsupportedError("No METADATA found in the published wheel.")

    backend, version = read_generator_line(wheel_info.decode("utf-8", errors="replace"))
    if backend != "bdist_wheel" or not version:
        raise UnsupportedError("The published wheel was not generated by a known version of bdist_wheel.")

    if b"License-File" in metadata:
        setuptools = config.setuptools_version_emitting_license
    else:
        setuptools = config.setuptools_version_default

    environment = BuildEnvironment(setuptools=f"=={setuptools}", wheel=f"=={version}", python=python)
    logger.debug("Inferred build environment %s.", environment)
    return environment
