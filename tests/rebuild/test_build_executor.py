# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the build jobs and for waiting on build operations."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from provenator.config.service_config import RebuilderConfig
from provenator.errors import (
    BuildCancelledError,
    BuildExecutionError,
    BuildTimeoutError,
    InconsistentRebuildError,
)
from provenator.rebuild.build_executor import (
    BUILD_SCRIPT,
    DIFF_STEP,
    OperationStatus,
    make_wheel_rebuild_job,
    wait_for_operation,
)


def _executor(*statuses: OperationStatus) -> MagicMock:
    executor = MagicMock()
    executor.get_operation.side_effect = list(statuses)
    return executor


def test_make_wheel_rebuild_job() -> None:
    """Test the steps and substitutions of a wheel rebuild."""
    job = make_wheel_rebuild_job(
        filename="idna-3.3-py3-none-any.whl",
        url="https://files.pythonhosted.org/packages/idna-3.3-py3-none-any.whl",
        repo="github.com/kjd/idna",
        tag="v3.3",
        package_root=".",
        manifest="setup.py",
        setuptools="==56.2.0",
        wheel="==0.37.0",
        python="python3.9",
        config=RebuilderConfig(),
    )

    assert [step.id for step in job.steps] == ["clone", "download", "build", "normalize", DIFF_STEP]
    assert job.steps[0].image == "gcr.io/cloud-builders/git"
    assert job.steps[0].args[:3] == ["clone", "--branch", "${_TAG}"]
    assert job.substitutions["_TAG"] == "v3.3"
    assert job.substitutions["_REPO"] == "github.com/kjd/idna"
    assert job.substitutions["_SETUPTOOLS"] == "==56.2.0"
    assert job.substitutions["_PYTHON"] == "python3.9"
    assert job.steps[2].entrypoint == "/bin/sh"
    assert job.steps[2].args == ["-c", BUILD_SCRIPT]
    assert job.substitutions["_BUILDENV"] == "/workspace/env"
    assert job.substitutions["_BUILDCOMMAND"] == "/workspace/env/bin/python3.9 setup.py build bdist_wheel"


def test_wait_until_done() -> None:
    """Test polling until the operation is done."""
    executor = _executor(OperationStatus(done=False), OperationStatus(done=False), OperationStatus(done=True))

    assert wait_for_operation(executor, "operations/1", poll_interval=0.001) == OperationStatus(done=True)
    assert executor.get_operation.call_count == 3


def test_wait_diff_failure() -> None:
    """A failure of the comparison step means the rebuilt artifact differs."""
    executor = _executor(OperationStatus(done=True, error="step exited with 1", failed_step=DIFF_STEP))

    with pytest.raises(InconsistentRebuildError):
        wait_for_operation(executor, "operations/1", poll_interval=0.001)


def test_wait_other_failure() -> None:
    """A failure of another step is an execution error."""
    executor = _executor(OperationStatus(done=True, error="step exited with 1", failed_step="build"))

    with pytest.raises(BuildExecutionError) as error:
        wait_for_operation(executor, "operations/1", poll_interval=0.001)
    assert not isinstance(error.value, InconsistentRebuildError)


def test_wait_poll_failure() -> None:
    """Test that failures to poll are execution errors."""
    executor = MagicMock()
    executor.get_operation.side_effect = ConnectionError("unavailable")

    with pytest.raises(BuildExecutionError, match="unavailable"):
        wait_for_operation(executor, "operations/1", poll_interval=0.001)


def test_wait_timeout() -> None:
    """Test giving up on an operation that does not finish in time."""
    executor = MagicMock()
    executor.get_operation.return_value = OperationStatus(done=False)

    with patch("provenator.rebuild.build_executor.time") as mock_time:
        mock_time.monotonic.side_effect = [0.0, 5.0, 11.0]
        with pytest.raises(BuildTimeoutError):
            wait_for_operation(executor, "operations/1", poll_interval=0.001, timeout=10)
    assert executor.get_operation.call_count == 2


def test_wait_cancelled() -> None:
    """Test stopping the wait when the cancellation event is set."""
    cancel_event = threading.Event()
    executor = MagicMock()

    def get_operation(operation_id: str) -> OperationStatus:
        cancel_event.set()
        return OperationStatus(done=False)

    executor.get_operation.side_effect = get_operation

    with pytest.raises(BuildCancelledError):
        wait_for_operation(executor, "operations/1", poll_interval=60, cancel_event=cancel_event)
    assert executor.get_operation.call_count == 1
