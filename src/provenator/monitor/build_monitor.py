# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module correlates CI workflow runs with published releases and emits provenance for them.

No build is executed: a run is taken to have produced a release when the release files were uploaded
while the run was in progress, the run archived files with the same names, and the required job (or step)
succeeded.
"""

from __future__ import annotations

import fnmatch
import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime

from provenator.ci_service.github_actions import CIArtifact, Workflow, WorkflowRun
from provenator.config.service_config import MonitorConfig
from provenator.errors import APIAccessError, UnsupportedError, WorkflowNotFoundError
from provenator.intoto.v01 import InTotoV01Statement, InTotoV01Subject, make_provenance_statement, make_subject
from provenator.package_registry.release import release_upload_times, resolve_version
from provenator.policy.policy import ArtifactSpec, CompletionSpec, GitHubActionsPolicy
from provenator.service.interfaces import CIProvider, PackageIndex
from provenator.util import sha256_hexdigest

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitorOptions:
    """The parameters of one monitor request."""

    github_actions: GitHubActionsPolicy

    #: The version to look for. The latest version when empty.
    version: str = ""


def is_timely(run: WorkflowRun, uploads: dict[str, datetime]) -> bool:
    """Return True if any release file was uploaded strictly while the run was in progress."""
    return any(run.brackets(uploaded) for uploaded in uploads.values())


class BuildMonitor:
    """Finds the CI run that built a release."""

    def __init__(self, index: PackageIndex, ci_provider: CIProvider, config: MonitorConfig) -> None:
        self.index = index
        self.ci_provider = ci_provider
        self.config = config

    def monitor_build(self, package: str, repo: str, options: MonitorOptions) -> InTotoV01Statement | None:
        """Return the provenance of the first run that produced files of the release.

        Runs are examined in the order the CI provider lists them and the first run that satisfies every
        constraint wins.

        Parameters
        ----------
        package : str
            The package name on the index.
        repo : str
            The source repository, e.g. ``github.com/owner/name``.
        options : MonitorOptions
            The workflow to look at and the version to look for.

        Returns
        -------
        InTotoV01Statement | None
            The statement, or None if no run produced the release.

        Raises
        ------
        UnsupportedError
            If the repository is not hosted on the supported host.
        WorkflowNotFoundError
            If the repository has no workflows or none with the configured name.
        """
        if not repo.startswith(f"{self.config.supported_host}/"):
            raise UnsupportedError(f"Repositories outside {self.config.supported_host} are not supported: {repo}.")

        metadata = self.index.metadata(package)
        version = resolve_version(metadata, options.version or None)
        uploads = release_upload_times(metadata, version)

        policy = options.github_actions
        workflow = self._find_workflow(repo, policy.workflow)

        for run in self.ci_provider.list_runs(repo, workflow):
            if not is_timely(run, uploads):
                logger.debug("Skipping run %s: no release file was uploaded while it ran.", run.id)
                continue
            if policy.require_succeeded and not self._succeeded(repo, run, policy.require_succeeded):
                logger.debug("Skipping run %s: %s did not succeed.", run.id, policy.require_succeeded)
                continue

            subjects = self._collect_subjects(repo, run, policy.artifacts, uploads)
            if subjects is None:
                logger.info("Skipping: Expired artifact [run=%s]", run.id)
                continue
            if not subjects:
                logger.info("Skipping: No artifacts to sign [run=%s]", run.id)
                continue

            logger.info("Run %s of %s produced %s release files.", run.id, workflow.path, len(subjects))
            return self._make_statement(workflow, run, subjects)

        logger.info("No run of workflow %s produced %s %s.", workflow.name, package, version)
        return None

    def _find_workflow(self, repo: str, name: str) -> Workflow:
        workflows = self.ci_provider.list_workflows(repo)
        if not workflows:
            raise WorkflowNotFoundError(f"No workflows found in {repo}.")
        for workflow in workflows:
            if workflow.name == name:
                return workflow
        raise WorkflowNotFoundError(f"No workflow named {name} in {repo}.")

    def _succeeded(self, repo: str, run: WorkflowRun, completion: CompletionSpec) -> bool:
        """Return True if the required job, or step of that job, succeeded in the run.

        A job name can repeat in a run, e.g. for re-run or matrix jobs. The last matching job or step decides.
        """
        conclusions: list[str | None] = []
        for job in self.ci_provider.list_jobs(repo, run):
            if job.name != completion.job:
                continue
            if not completion.step:
                conclusions.append(job.conclusion)
            conclusions.extend(step.conclusion for step in job.steps if step.name == completion.step)
        if not conclusions:
            logger.debug("Run %s has no job %s with step '%s'.", run.id, completion.job, completion.step)
            return False
        return conclusions[-1] == "success"

    def _collect_subjects(
        self,
        repo: str,
        run: WorkflowRun,
        specs: tuple[ArtifactSpec, ...],
        uploads: dict[str, datetime],
    ) -> list[InTotoV01Subject] | None:
        """Return the release files archived by a run, or None if one of the declared artifacts expired."""
        subjects: list[InTotoV01Subject] = []
        for artifact in self.ci_provider.list_artifacts(repo, run):
            spec = next((spec for spec in specs if spec.name == artifact.name), None)
            if spec is None:
                continue
            if artifact.expired:
                return None
            subjects.extend(self._archive_subjects(run, artifact, spec, uploads))
        return subjects

    def _archive_subjects(
        self, run: WorkflowRun, artifact: CIArtifact, spec: ArtifactSpec, uploads: dict[str, datetime]
    ) -> list[InTotoV01Subject]:
        archive = self.ci_provider.download_archive(artifact.archive_download_url)
        subjects = []
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as archive_zip:
                for info in archive_zip.infolist():
                    name = info.filename
                    if not any(fnmatch.fnmatchcase(name, pattern) for pattern in spec.patterns):
                        logger.info("Excluding subject file [artifact=%s file=%s]", artifact.name, name)
                        continue
                    uploaded = uploads.get(name)
                    if uploaded is None or not run.brackets(uploaded):
                        logger.info(
                            "Excluding subject file [artifact=%s file=%s ran=[from=%s to=%s] uploaded=%s]",
                            artifact.name,
                            name,
                            run.created_at,
                            run.updated_at,
                            uploaded,
                        )
                        continue
                    subjects.append(make_subject(name, sha256_hexdigest(archive_zip.read(info))))
        except zipfile.BadZipFile as error:
            raise APIAccessError(f"The archive of artifact {artifact.name} is not a zip file.") from error
        return subjects

    def _make_statement(
        self, workflow: Workflow, run: WorkflowRun, subjects: list[InTotoV01Subject]
    ) -> InTotoV01Statement:
        return make_provenance_statement(
            subjects=subjects,
            builder_id=self.config.builder_id,
            recipe={
                "type": self.config.recipe_type,
                "definedInMaterial": 0,
                "entryPoint": workflow.path,
                "arguments": [],
                "environment": [],
            },
            started_on=run.created_at,
            finished_on=run.updated_at,
            completeness={"arguments": False, "environment": False, "materials": False},
            materials=[
                {"uri": f"git+{run.head_repository_url}@{run.head_branch}", "digest": {"sha1": run.head_sha}}
            ],
        )
