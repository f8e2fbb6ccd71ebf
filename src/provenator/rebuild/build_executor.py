# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module defines the build jobs submitted to the external build executor and waits for their completion."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

from provenator.config.service_config import RebuilderConfig
from provenator.errors import BuildCancelledError, BuildExecutionError, BuildTimeoutError, InconsistentRebuildError
from provenator.service.interfaces import BuildExecutor

logger: logging.Logger = logging.getLogger(__name__)

#: The step comparing the rebuilt archive with the published one. Its failure means the outputs differ.
DIFF_STEP = "diff"

#: The isolated environment the wheel is built in, inside the build container.
BUILD_ENV = "/workspace/env"

BUILD_SCRIPT = """
apk add python3 py3-pip git &&
${_PYTHON} -m venv ${_BUILDENV} &&
${_BUILDENV}/bin/pip3 install setuptools${_SETUPTOOLS} wheel${_WHEEL} &&
cd repo/${_PACKAGEROOT} &&
${_BUILDCOMMAND}
"""

DIFF_SCRIPT = """
apk add python3 py3-pip libmagic libarchive unzip &&
env/bin/pip3 install diffoscope &&
env/bin/diffoscope ${_FILENAME} repo/${_PACKAGEROOT}/dist/${_FILENAME}
"""


@dataclass(frozen=True)
class BuildStep:
    """A step of a build job, run in its own container."""

    id: str

    #: The container image reference.
    image: str

    args: list[str] = field(default_factory=list)

    #: Overrides the entry point of the image when set.
    entrypoint: str | None = None


@dataclass(frozen=True)
class BuildJob:
    """An ordered list of steps and the named variables substituted into their arguments."""

    steps: list[BuildStep]
    substitutions: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationStatus:
    """The status of a long-running build operation."""

    done: bool

    #: The error message when the operation failed.
    error: str | None = None

    #: The id of the step that failed, when the executor reports it.
    failed_step: str | None = None


def wheel_build_command(manifest: str, python: str, env: str = BUILD_ENV) -> str:
    """Return the command that builds a wheel into ``dist/`` from the build manifest of the package root.

    A ``setup.py`` is run directly. Any other manifest is built by pip with the pinned tools of ``env``.

    >>> wheel_build_command("setup.py", "python3.9")
    '/workspace/env/bin/python3.9 setup.py build bdist_wheel'
    >>> wheel_build_command("pyproject.toml", "python3.9", "/tmp/env")
    '/tmp/env/bin/pip3 wheel --no-deps --no-build-isolation --wheel-dir dist .'
    """
    if manifest == "setup.py":
        return f"{env}/bin/{python} setup.py build bdist_wheel"
    return f"{env}/bin/pip3 wheel --no-deps --no-build-isolation --wheel-dir dist ."


def make_wheel_rebuild_job(
    filename: str,
    url: str,
    repo: str,
    tag: str,
    package_root: str,
    manifest: str,
    setuptools: str,
    wheel: str,
    python: str,
    config: RebuilderConfig,
) -> BuildJob:
    """Return the job that rebuilds a published wheel from source and compares it with the original.

    The job clones the source at the tag, downloads the published wheel, builds a wheel from ``manifest`` with
    the pinned tools, copies archive metadata from the published wheel onto the rebuilt one, and diffs the two.
    """
    return BuildJob(
        substitutions={
            "_FILENAME": filename,
            "_URL": url,
            "_REPO": repo,
            "_TAG": tag,
            "_SETUPTOOLS": setuptools,
            "_WHEEL": wheel,
            "_PACKAGEROOT": package_root,
            "_PYTHON": python,
            "_BUILDENV": BUILD_ENV,
            "_BUILDCOMMAND": wheel_build_command(manifest, python),
        },
        steps=[
            BuildStep(
                id="clone",
                image=config.git_image,
                args=["clone", "--branch", "${_TAG}", "--single-branch", "https://${_REPO}", "repo"],
            ),
            BuildStep(id="download", image=config.curl_image, args=["--output", "${_FILENAME}", "${_URL}"]),
            BuildStep(id="build", image=config.build_image, entrypoint="/bin/sh", args=["-c", BUILD_SCRIPT]),
            BuildStep(
                id="normalize",
                image=config.normalize_image,
                args=["normalize-archive", "${_FILENAME}", "repo/${_PACKAGEROOT}/dist/${_FILENAME}"],
            ),
            BuildStep(id=DIFF_STEP, image=config.diff_image, entrypoint="/bin/sh", args=["-c", DIFF_SCRIPT]),
        ],
    )


def wait_for_operation(
    executor: BuildExecutor,
    operation_id: str,
    poll_interval: float,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
) -> OperationStatus:
    """Block until a build operation completes.

    Parameters
    ----------
    executor : BuildExecutor
        The build executor the operation was submitted to.
    operation_id : str
        The operation to wait for.
    poll_interval : float
        Seconds between two polls.
    timeout : float | None
        Seconds to wait at most. ``None`` waits until completion.
    cancel_event : threading.Event | None
        Stops the wait when set.

    Returns
    -------
    OperationStatus
        The final status of a successful operation.

    Raises
    ------
    InconsistentRebuildError
        If the comparison step failed.
    BuildExecutionError
        If the operation failed in any other way, or cannot be polled.
    BuildTimeoutError
        If the operation is not done within ``timeout``.
    BuildCancelledError
        If ``cancel_event`` is set while waiting.
    """
    cancel_event = cancel_event or threading.Event()
    deadline = None if timeout is None else time.monotonic() + timeout

    while True:
        if cancel_event.is_set():
            raise BuildCancelledError(f"Stopped waiting for build operation {operation_id}.")
        try:
            status = executor.get_operation(operation_id)
        except BuildExecutionError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            raise BuildExecutionError(f"Cannot poll build operation {operation_id}: {error}") from error

        if status.done:
            break

        wait = poll_interval
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise BuildTimeoutError(f"Build operation {operation_id} did not finish within {timeout} seconds.")
            wait = min(wait, remaining)
        logger.debug("Build operation %s is running. Polling again in %s seconds.", operation_id, wait)
        cancel_event.wait(wait)

    if status.error:
        if status.failed_step == DIFF_STEP:
            raise InconsistentRebuildError(f"The rebuilt artifact differs from the published one: {status.error}")
        raise BuildExecutionError(f"Build operation {operation_id} failed: {status.error}")

    return status
