# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for rebuilding published releases from source."""

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from provenator.config.service_config import RebuilderConfig
from provenator.errors import (
    APIAccessError,
    InconsistentRebuildError,
    ManifestNotFoundError,
    ReleaseNotFoundError,
    TagNotFoundError,
    UnsupportedError,
)
from provenator.package_registry.release import PackageMetadata, ReleaseKind
from provenator.intoto.encoder_decoder import canonicalize
from provenator.rebuild.build_executor import BUILD_SCRIPT, DIFF_STEP, BuildJob, OperationStatus
from provenator.rebuild.rebuilder import Rebuilder, RebuilderOptions, parse_kinds

# pylint: disable=redefined-outer-name

COMMIT = "a3c6c4ef5e2e1c0c9c0e4a5b6b8f0b6f6d2a1e3c"
WHEEL = "idna-3.3-py3-none-any.whl"


class FakeIndex:
    """An index serving fixed metadata and file contents."""

    def __init__(self, metadata: PackageMetadata, files: dict[str, bytes]) -> None:
        self._metadata = metadata
        self.files = files

    def metadata(self, package: str) -> PackageMetadata:
        return self._metadata

    def download(self, url: str) -> bytes:
        return self.files[url]


class FakeSourceHost:
    """A repository with fixed tags and files."""

    def __init__(self, tags: list[str], files: set[tuple[str, str]]) -> None:
        self.tags = tags
        self.files = files

    def list_tags(self, repo: str) -> list[str]:
        return self.tags

    def commit_digest_for_ref(self, repo: str, ref: str) -> str:
        return COMMIT

    def file_exists(self, repo: str, path: str, ref: str) -> bool:
        return (path, ref) in self.files


class FakeExecutor:
    """A build executor whose operations end with a fixed status."""

    def __init__(self, status: OperationStatus) -> None:
        self.status = status
        self.jobs: list[BuildJob] = []

    def submit(self, job: BuildJob) -> str:
        self.jobs.append(job)
        return f"operations/{len(self.jobs)}"

    def get_operation(self, operation_id: str) -> OperationStatus:
        return self.status


@pytest.fixture()
def fake_index(idna_metadata: PackageMetadata, wheel_factory: Callable[..., bytes]) -> FakeIndex:
    """Return an index serving the idna wheel."""
    wheel_url = next(artifact.url for artifact in idna_metadata.releases["3.3"] if artifact.filename == WHEEL)
    return FakeIndex(idna_metadata, {wheel_url: wheel_factory()})


def _rebuilder(
    index: FakeIndex,
    tags: list[str],
    files: set[tuple[str, str]],
    status: OperationStatus | None = None,
    config: RebuilderConfig | None = None,
) -> tuple[Rebuilder, FakeExecutor]:
    executor = FakeExecutor(status or OperationStatus(done=True))
    config = config or RebuilderConfig(poll_interval=0.001)
    rebuilder = Rebuilder(index, FakeSourceHost(tags, files), executor, config)
    return rebuilder, executor


def test_rebuild(fake_index: FakeIndex, idna_metadata: PackageMetadata) -> None:
    """Test rebuilding the latest wheel of idna from the tag naming its version."""
    rebuilder, executor = _rebuilder(fake_index, ["3.3.1", "v3.3", "3.3", "3.2"], {("setup.py", "v3.3")})

    statements = rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())

    assert len(statements) == 1
    statement = statements[0]
    wheel = idna_metadata.releases["3.3"][0]
    assert statement["subject"] == [{"name": WHEEL, "digest": {"sha256": wheel.sha256}}]

    predicate = statement["predicate"]
    assert predicate is not None
    assert predicate["builder"] == {"id": "https://demo.slsa.dev/rebuilder@v1"}
    assert predicate["recipe"]["entryPoint"] == "./setup.py"
    assert predicate["recipe"]["arguments"][0] == "git clone --branch=v3.3 --single-branch github.com/kjd/idna"
    assert predicate["metadata"]["completeness"] == {"arguments": True, "environment": False, "materials": False}
    assert predicate["metadata"]["reproducible"] is False
    assert predicate["materials"] == [{"uri": "git+https://github.com/kjd/idna@v3.3", "digest": {"sha1": COMMIT}}]

    assert len(executor.jobs) == 1
    substitutions = executor.jobs[0].substitutions
    assert substitutions["_TAG"] == "v3.3"
    assert substitutions["_FILENAME"] == WHEEL
    assert substitutions["_SETUPTOOLS"] == "==56.2.0"
    assert substitutions["_WHEEL"] == "==0.37.0"


def test_rebuild_package_root(fake_index: FakeIndex) -> None:
    """Test finding the build manifest below the package root."""
    rebuilder, executor = _rebuilder(fake_index, ["3.3"], {("src/setup.py", "3.3")})

    statements = rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions(package_root="src", version="3.3"))

    predicate = statements[0]["predicate"]
    assert predicate is not None
    assert predicate["recipe"]["entryPoint"] == "src/setup.py"
    assert executor.jobs[0].substitutions["_PACKAGEROOT"] == "src"


def test_rebuild_without_tag(fake_index: FakeIndex) -> None:
    """Test that a missing tag stops the rebuild before anything is submitted."""
    rebuilder, executor = _rebuilder(fake_index, ["3.3rc1", "3.3.1"], {("setup.py", "3.3rc1")})

    with pytest.raises(TagNotFoundError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())
    assert not executor.jobs


def test_rebuild_without_manifest(fake_index: FakeIndex) -> None:
    """Test that a missing build manifest stops the rebuild."""
    rebuilder, executor = _rebuilder(fake_index, ["v3.3"], {("pyproject.toml", "v3.3")})

    with pytest.raises(ManifestNotFoundError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())
    assert not executor.jobs


def test_rebuild_missing_release(fake_index: FakeIndex) -> None:
    """Test requesting a version or kind without published files."""
    rebuilder, _ = _rebuilder(fake_index, ["v3.3"], {("setup.py", "v3.3")})

    with pytest.raises(ReleaseNotFoundError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions(version="9.9"))
    with pytest.raises(ReleaseNotFoundError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions(kinds=(ReleaseKind.WHEEL_MANYLINUX,)))


def test_rebuild_unsupported_kind(fake_index: FakeIndex) -> None:
    """Test that only pure-python wheels are rebuilt."""
    rebuilder, executor = _rebuilder(fake_index, ["v3.3"], {("setup.py", "v3.3")})

    with pytest.raises(UnsupportedError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions(kinds=(ReleaseKind.SOURCE_TAR,)))
    assert not executor.jobs


def test_rebuild_inconsistent(fake_index: FakeIndex) -> None:
    """Test that a failed comparison is reported as an inconsistent rebuild."""
    rebuilder, executor = _rebuilder(
        fake_index,
        ["v3.3"],
        {("setup.py", "v3.3")},
        OperationStatus(done=True, error="diffoscope found differences", failed_step=DIFF_STEP),
    )

    with pytest.raises(InconsistentRebuildError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())
    assert len(executor.jobs) == 1


def test_rebuild_is_deterministic(fake_index: FakeIndex) -> None:
    """Test that rebuilding the same release twice attests the same subjects and commands."""
    rebuilder, executor = _rebuilder(fake_index, ["v3.3"], {("setup.py", "v3.3")})

    first = rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())[0]
    second = rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())[0]

    assert first["subject"] == second["subject"]
    assert canonicalize({"subject": first["subject"]}) == canonicalize({"subject": second["subject"]})
    assert first["predicate"] is not None
    assert second["predicate"] is not None
    assert first["predicate"]["recipe"] == second["predicate"]["recipe"]
    assert first["predicate"]["materials"] == second["predicate"]["materials"]
    assert executor.jobs[0] == executor.jobs[1]


@pytest.mark.parametrize(
    ("manifest", "build_command"),
    [
        pytest.param("setup.py", "setup.py build bdist_wheel", id="setup.py"),
        pytest.param("pyproject.toml", "pip3 wheel --no-deps --no-build-isolation --wheel-dir dist .", id="pyproject"),
    ],
)
def test_rebuild_records_executed_commands(fake_index: FakeIndex, manifest: str, build_command: str) -> None:
    """Test that the attested commands are the ones the build job runs."""
    config = RebuilderConfig(manifest_files=("setup.cfg", manifest), poll_interval=0.001)
    rebuilder, executor = _rebuilder(fake_index, ["v3.3"], {(manifest, "v3.3")}, config=config)

    predicate = rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())[0]["predicate"]

    assert predicate is not None
    assert predicate["recipe"]["entryPoint"] == f"./{manifest}"
    arguments = predicate["recipe"]["arguments"]
    substitutions = executor.jobs[0].substitutions
    assert arguments[-1] == substitutions["_BUILDCOMMAND"]
    assert arguments[-1].endswith(build_command)
    assert arguments[1] == f"{substitutions['_PYTHON']} -m venv {substitutions['_BUILDENV']}"
    assert "${_BUILDCOMMAND}" in BUILD_SCRIPT
    assert "setup.py" not in BUILD_SCRIPT


def test_rebuild_source_host_unreachable(fake_index: FakeIndex) -> None:
    """Test that a failing source host is not reported as a missing build manifest."""
    executor = FakeExecutor(OperationStatus(done=True))
    source_host = MagicMock()
    source_host.list_tags.return_value = ["v3.3"]
    source_host.file_exists.side_effect = APIAccessError("Cannot check setup.py at v3.3 in kjd/idna.")
    rebuilder = Rebuilder(fake_index, source_host, executor, RebuilderConfig(poll_interval=0.001))

    with pytest.raises(APIAccessError):
        rebuilder.rebuild("idna", "github.com/kjd/idna", RebuilderOptions())
    assert not executor.jobs


def test_parse_kinds() -> None:
    """Test naming release kinds by value."""
    assert parse_kinds(["wheel-any", "source-tar"]) == (ReleaseKind.WHEEL_ANY, ReleaseKind.SOURCE_TAR)
    with pytest.raises(UnsupportedError):
        parse_kinds(["egg"])
