# Copyright (c) 2023 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Fixtures for tests."""

import hashlib
import io
import zipfile
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path

import pytest

from provenator.config.defaults import defaults, load_defaults
from provenator.errors import NotFoundError, StorageConflictError
from provenator.package_registry.release import PackageMetadata, ReleaseArtifact
from provenator.util import JsonType

# We need to pass fixture names as arguments to maintain an order.
# pylint: disable=redefined-outer-name


@pytest.fixture()
def test_dir() -> Path:
    """Set the root test_dir path.

    Returns
    -------
    Path
        The root path to the test directory.
    """
    return Path(__file__).parent


@pytest.fixture(autouse=True)
def setup_test() -> Iterator[None]:
    """Load the values of the packaged defaults.ini for every test."""
    load_defaults("")
    yield
    defaults.clear()


class FakeStore:
    """An in-memory attestation store."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, JsonType]]] = {}
        self.added: dict[str, list[dict[str, JsonType]]] = {}

    def put(self, collection: str, key: str, record: dict[str, JsonType], overwrite: bool) -> None:
        documents = self.collections.setdefault(collection, {})
        if key in documents and not overwrite:
            raise StorageConflictError(f"{collection}/{key} exists.")
        documents[key] = record

    def get(self, collection: str, key: str) -> dict[str, JsonType] | None:
        return self.collections.get(collection, {}).get(key)

    def add(self, collection: str, record: dict[str, JsonType]) -> None:
        self.added.setdefault(collection, []).append(record)


class FakeSigner:
    """A signer returning the SHA-256 digest of the signed bytes."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, bytes]] = []

    def asymmetric_sign(self, key_resource_name: str, data: bytes) -> bytes:
        self.calls.append((key_resource_name, data))
        return hashlib.sha256(data).digest()


class FakePolicySource:
    """A file tree with one set of files per revision."""

    def __init__(self, revisions: dict[str, dict[str, bytes]]) -> None:
        self.revisions = revisions

    def get_file(self, path: str, revision: str) -> bytes:
        try:
            return self.revisions[revision][path]
        except KeyError as error:
            raise NotFoundError(f"No file {path} at {revision}.") from error

    def list_files_recursive(self, root: str, revision: str) -> list[str]:
        return [path for path in self.revisions.get(revision, {}) if root in (".", "") or path.startswith(root + "/")]


@pytest.fixture()
def fake_store() -> FakeStore:
    """Return an empty in-memory attestation store."""
    return FakeStore()


@pytest.fixture()
def fake_signer() -> FakeSigner:
    """Return a deterministic signer."""
    return FakeSigner()


@pytest.fixture()
def policy_source_factory() -> Callable[[dict[str, dict[str, bytes]]], FakePolicySource]:
    """Return a factory of in-memory policy trees."""
    return FakePolicySource


@pytest.fixture()
def zip_factory() -> Callable[..., bytes]:
    """Return a function building a zip archive from a mapping of entry names to contents."""

    def build_zip(
        entries: dict[str, bytes], date_time: tuple[int, int, int, int, int, int] = (2021, 1, 1, 0, 0, 0)
    ) -> bytes:
        output = io.BytesIO()
        with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, content in entries.items():
                info = zipfile.ZipInfo(name, date_time=date_time)
                info.compress_type = zipfile.ZIP_DEFLATED
                archive.writestr(info, content)
        return output.getvalue()

    return build_zip


@pytest.fixture()
def wheel_factory(zip_factory: Callable[..., bytes]) -> Callable[..., bytes]:
    """Return a function building a minimal pure-python wheel of idna 3.3."""

    def build_wheel(
        generator: str = "bdist_wheel (0.37.0)",
        metadata: bytes | None = b"Metadata-Version: 2.1\nName: idna\nVersion: 3.3\n",
        extra: dict[str, bytes] | None = None,
    ) -> bytes:
        entries = {
            "idna/__init__.py": b"",
            "idna-3.3.dist-info/WHEEL": f"Wheel-Version: 1.0\nGenerator: {generator}\nRoot-Is-Purelib: true\n".encode(),
        }
        if metadata is not None:
            entries["idna-3.3.dist-info/METADATA"] = metadata
        entries.update(extra or {})
        return zip_factory(entries)

    return build_wheel


IDNA_WHEEL = "idna-3.3-py3-none-any.whl"
IDNA_SDIST = "idna-3.3.tar.gz"


@pytest.fixture()
def idna_metadata() -> PackageMetadata:
    """Return the index metadata of idna, with the files of versions 3.2 and 3.3."""

    def artifact(filename: str, python_version: str, uploaded: datetime) -> ReleaseArtifact:
        return ReleaseArtifact(
            filename=filename,
            package_type="bdist_wheel" if filename.endswith(".whl") else "sdist",
            python_version=python_version,
            url=f"https://files.pythonhosted.org/packages/{filename}",
            upload_time=uploaded,
            digests={"sha256": hashlib.sha256(filename.encode()).hexdigest()},
        )

    return PackageMetadata(
        name="idna",
        latest_version="3.3",
        releases={
            "3.2": [
                artifact("idna-3.2-py3-none-any.whl", "py3", datetime(2021, 5, 30, 0, 0, 0, tzinfo=timezone.utc)),
            ],
            "3.3": [
                artifact(IDNA_WHEEL, "py3", datetime(2021, 10, 13, 4, 39, 11, tzinfo=timezone.utc)),
                artifact(IDNA_SDIST, "source", datetime(2021, 10, 13, 4, 39, 13, tzinfo=timezone.utc)),
            ],
        },
    )
