# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The external capabilities the pipelines depend on.

Each capability is injected at construction time so that it can be replaced by a fake in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from provenator.ci_service.github_actions import CIArtifact, Job, Workflow, WorkflowRun
    from provenator.package_registry.release import PackageMetadata
    from provenator.rebuild.build_executor import BuildJob, OperationStatus
    from provenator.util import JsonType


class PolicySource(Protocol):
    """A read interface over a versioned file tree."""

    def get_file(self, path: str, revision: str) -> bytes:
        """Return the content of a file at a revision.

        Raises
        ------
        NotFoundError
            If the file does not exist at that revision.
        """

    def list_files_recursive(self, root: str, revision: str) -> list[str]:
        """Return the paths of all files below ``root`` at a revision, relative to the tree root."""


class SourceHost(Protocol):
    """Tag and commit lookups on source repositories named ``<host>/<owner>/<name>``."""

    def list_tags(self, repo: str) -> list[str]:
        """Return the tag names of a repository in the host's listing order."""

    def commit_digest_for_ref(self, repo: str, ref: str) -> str:
        """Return the SHA-1 hex digest of the commit a ref points to."""

    def file_exists(self, repo: str, path: str, ref: str) -> bool:
        """Return True if a file exists at ``path`` at ``ref``."""


class PackageIndex(Protocol):
    """A package index such as PyPI."""

    def metadata(self, package: str) -> PackageMetadata:
        """Return the latest version and the published files of all releases of a package."""

    def download(self, url: str) -> bytes:
        """Return the content of a published file."""


class CIProvider(Protocol):
    """A CI service hosting workflows, their runs and the artifacts those runs upload."""

    def list_workflows(self, repo: str) -> list[Workflow]:
        """Return the workflows defined in a repository."""

    def list_runs(self, repo: str, workflow: Workflow) -> list[WorkflowRun]:
        """Return the runs of a workflow in the provider's listing order."""

    def list_jobs(self, repo: str, run: WorkflowRun) -> list[Job]:
        """Return the jobs of a run."""

    def list_artifacts(self, repo: str, run: WorkflowRun) -> list[CIArtifact]:
        """Return the artifacts uploaded by a run."""

    def download_archive(self, url: str) -> bytes:
        """Return the zip archive of an artifact, authenticating with the provider's bearer token."""


class BuildExecutor(Protocol):
    """An external service executing build jobs as long-running operations."""

    def submit(self, job: BuildJob) -> str:
        """Submit a job and return the identifier of its operation."""

    def get_operation(self, operation_id: str) -> OperationStatus:
        """Return the current status of an operation."""


class AsymmetricSigner(Protocol):
    """An external service signing bytes with a private key it holds."""

    def asymmetric_sign(self, key_resource_name: str, data: bytes) -> bytes:
        """Return the signature of ``data`` made with the named key."""


class AttestationStore(Protocol):
    """A document store keyed by collection and document name."""

    def put(self, collection: str, key: str, record: dict[str, JsonType], overwrite: bool) -> None:
        """Write a record.

        Raises
        ------
        StorageConflictError
            If a record exists under ``key`` and ``overwrite`` is False.
        StorageError
            If the record cannot be written.
        """

    def get(self, collection: str, key: str) -> dict[str, JsonType] | None:
        """Return the record stored under ``key``, or None if there is none."""

    def add(self, collection: str, record: dict[str, JsonType]) -> None:
        """Append a record under a generated key."""
