# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module reads workflows, runs, jobs and artifacts from GitHub Actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from provenator.errors import APIAccessError
from provenator.git_service.api_client import GhAPIClient
from provenator.git_service.github import GitHub
from provenator.util import json_extract

logger: logging.Logger = logging.getLogger(__name__)


def _parse_time(value: object, what: str) -> datetime:
    if not isinstance(value, str):
        raise APIAccessError(f"GitHub Actions returned no {what} time.")
    try:
        result = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as error:
        raise APIAccessError(f"GitHub Actions returned an invalid {what} time: {value}.") from error
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


@dataclass(frozen=True)
class Workflow:
    """A workflow defined in a repository."""

    id: int
    name: str

    #: The path of the workflow file, e.g. ``.github/workflows/release.yml``.
    path: str


@dataclass(frozen=True)
class WorkflowRun:
    """A run of a workflow."""

    id: int
    created_at: datetime
    updated_at: datetime
    head_branch: str = ""
    head_sha: str = ""

    #: The web url of the repository the run was triggered from.
    head_repository_url: str = ""

    def brackets(self, moment: datetime) -> bool:
        """Return True if ``moment`` lies strictly inside the [created, updated] interval of the run."""
        return self.created_at < moment < self.updated_at


@dataclass(frozen=True)
class Step:
    """A step of a job."""

    name: str
    conclusion: str | None = None


@dataclass(frozen=True)
class Job:
    """A job of a workflow run."""

    name: str
    conclusion: str | None = None
    steps: list[Step] = field(default_factory=list)


@dataclass(frozen=True)
class CIArtifact:
    """An artifact uploaded by a workflow run."""

    name: str
    archive_download_url: str
    expired: bool = False


class GitHubActions:
    """This class reads GitHub Actions data of repositories referenced as ``github.com/<owner>/<name>``."""

    def __init__(self, api_client: GhAPIClient, git_service: GitHub) -> None:
        self.api_client = api_client
        self.git_service = git_service

    def list_workflows(self, repo: str) -> list[Workflow]:
        """Return the workflows defined in a repository."""
        workflows = []
        for item in self.api_client.get_repo_workflows(self.git_service.get_full_name(repo)):
            workflow_id = json_extract(item, ["id"], int)
            if workflow_id is None:
                continue
            workflows.append(
                Workflow(
                    id=workflow_id,
                    name=json_extract(item, ["name"], str) or "",
                    path=json_extract(item, ["path"], str) or "",
                )
            )
        return workflows

    def list_runs(self, repo: str, workflow: Workflow) -> list[WorkflowRun]:
        """Return the runs of a workflow, most recent first as listed by GitHub."""
        runs = []
        for item in self.api_client.get_workflow_runs(self.git_service.get_full_name(repo), workflow.id):
            run_id = json_extract(item, ["id"], int)
            if run_id is None:
                continue
            runs.append(
                WorkflowRun(
                    id=run_id,
                    created_at=_parse_time(item.get("created_at"), "run creation"),
                    updated_at=_parse_time(item.get("updated_at"), "run update"),
                    head_branch=json_extract(item, ["head_branch"], str) or "",
                    head_sha=json_extract(item, ["head_sha"], str) or "",
                    head_repository_url=json_extract(item, ["head_repository", "html_url"], str) or "",
                )
            )
        return runs

    def list_jobs(self, repo: str, run: WorkflowRun) -> list[Job]:
        """Return the jobs of a run with their steps."""
        jobs = []
        for item in self.api_client.get_workflow_run_jobs(self.git_service.get_full_name(repo), run.id):
            steps = [
                Step(name=json_extract(step, ["name"], str) or "", conclusion=json_extract(step, ["conclusion"], str))
                for step in item.get("steps") or []
                if isinstance(step, dict)
            ]
            jobs.append(
                Job(
                    name=json_extract(item, ["name"], str) or "",
                    conclusion=json_extract(item, ["conclusion"], str),
                    steps=steps,
                )
            )
        return jobs

    def list_artifacts(self, repo: str, run: WorkflowRun) -> list[CIArtifact]:
        """Return the artifacts uploaded by a run."""
        return [
            CIArtifact(
                name=json_extract(item, ["name"], str) or "",
                archive_download_url=json_extract(item, ["archive_download_url"], str) or "",
                expired=bool(item.get("expired")),
            )
            for item in self.api_client.get_workflow_run_artifacts(self.git_service.get_full_name(repo), run.id)
        ]

    def download_archive(self, url: str) -> bytes:
        """Return the zip archive of an artifact."""
        return self.api_client.download_archive(url)
