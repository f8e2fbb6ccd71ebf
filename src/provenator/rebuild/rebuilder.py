# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module rebuilds published releases from source and emits provenance for the ones that match."""

from __future__ import annotations

import logging
import posixpath
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from provenator.config.service_config import RebuilderConfig
from provenator.errors import BuildExecutionError, ManifestNotFoundError, TagNotFoundError, UnsupportedError
from provenator.intoto.v01 import InTotoV01Statement, make_provenance_statement, make_subject
from provenator.package_registry.release import (
    ReleaseArtifact,
    ReleaseKind,
    find_release_artifacts,
    resolve_version,
)
from provenator.rebuild.build_executor import (
    BUILD_ENV,
    make_wheel_rebuild_job,
    wait_for_operation,
    wheel_build_command,
)
from provenator.rebuild.tag_matcher import find_tag
from provenator.rebuild.wheel_inspector import BuildEnvironment, inspect_wheel
from provenator.service.interfaces import BuildExecutor, PackageIndex, SourceHost

logger: logging.Logger = logging.getLogger(__name__)

SUPPORTED_KINDS = frozenset({ReleaseKind.WHEEL_ANY})


@dataclass(frozen=True)
class RebuilderOptions:
    """The parameters of one rebuild request."""

    kinds: tuple[ReleaseKind, ...] = (ReleaseKind.WHEEL_ANY,)

    #: The directory holding the build manifest. The repository root when empty.
    package_root: str = ""

    #: The version to rebuild. The latest version when empty.
    version: str = ""


@dataclass(frozen=True)
class RebuildTarget:
    """A release file together with the source revision it is rebuilt from."""

    artifact: ReleaseArtifact
    repo: str
    tag: str
    package_root: str
    manifest: str


class Rebuilder:
    """Verifies releases by rebuilding them from source with the external build executor."""

    def __init__(
        self,
        index: PackageIndex,
        source_host: SourceHost,
        executor: BuildExecutor,
        config: RebuilderConfig,
    ) -> None:
        self.index = index
        self.source_host = source_host
        self.executor = executor
        self.config = config

    def prepare(self, package: str, repo: str, options: RebuilderOptions) -> list[RebuildTarget]:
        """Resolve the release files, the source tag and the build manifest of a rebuild.

        Raises
        ------
        ReleaseNotFoundError
            If no release file of a requested kind exists for the version.
        TagNotFoundError
            If no tag of the repository names the version.
        ManifestNotFoundError
            If there is no build manifest at the package root of the tag.
        UnsupportedError
            If a matched release file has a kind that cannot be rebuilt.
        """
        metadata = self.index.metadata(package)
        version = resolve_version(metadata, options.version or None)
        artifacts = find_release_artifacts(metadata, version, options.kinds)

        tag = find_tag(self.source_host.list_tags(repo), version)
        if tag is None:
            raise TagNotFoundError(f"No tag found [pkg={package}, repo={repo}, version={version}]")

        package_root = options.package_root or "."
        manifest = self._find_manifest(repo, tag, package_root)
        if manifest is None:
            raise ManifestNotFoundError(
                f"No build manifest found in package root [pkg={package}, repo={repo}, tag={tag}, path={package_root}]"
            )

        for artifact in artifacts:
            if artifact.kind not in SUPPORTED_KINDS:
                raise UnsupportedError(
                    f"Release type not supported [pkg={package}, version={version}, type={artifact.kind.value}]"
                )

        return [
            RebuildTarget(artifact=artifact, repo=repo, tag=tag, package_root=package_root, manifest=manifest)
            for artifact in artifacts
        ]

    def rebuild(
        self,
        package: str,
        repo: str,
        options: RebuilderOptions,
        cancel_event: threading.Event | None = None,
    ) -> list[InTotoV01Statement]:
        """Rebuild the requested release files of a package and return one statement per file.

        Parameters
        ----------
        package : str
            The package name on the index.
        repo : str
            The source repository, e.g. ``github.com/kjd/idna``.
        options : RebuilderOptions
            The kinds, package root and version to rebuild.
        cancel_event : threading.Event | None
            Stops waiting for the external build when set.

        Raises
        ------
        InconsistentRebuildError
            If a rebuilt file differs from the published one.
        BuildExecutionError
            If a build could not be executed.
        """
        return [self.rebuild_wheel(target, cancel_event) for target in self.prepare(package, repo, options)]

    def rebuild_wheel(self, target: RebuildTarget, cancel_event: threading.Event | None = None) -> InTotoV01Statement:
        """Rebuild one published wheel and return its provenance statement."""
        started_on = datetime.now(timezone.utc)
        wheel = target.artifact
        environment = inspect_wheel(self.index.download(wheel.url), self.config)

        job = make_wheel_rebuild_job(
            filename=wheel.filename,
            url=wheel.url,
            repo=target.repo,
            tag=target.tag,
            package_root=target.package_root,
            manifest=target.manifest,
            setuptools=environment.setuptools,
            wheel=environment.wheel,
            python=environment.python,
            config=self.config,
        )
        try:
            operation_id = self.executor.submit(job)
        except BuildExecutionError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            raise BuildExecutionError(f"Cannot submit the rebuild of {wheel.filename}: {error}") from error

        logger.info("Rebuilding %s from %s@%s in operation %s.", wheel.filename, target.repo, target.tag, operation_id)
        wait_for_operation(
            self.executor,
            operation_id,
            poll_interval=self.config.poll_interval,
            timeout=self.config.timeout,
            cancel_event=cancel_event,
        )
        finished_on = datetime.now(timezone.utc)

        commit = self.source_host.commit_digest_for_ref(target.repo, target.tag)
        return make_provenance_statement(
            subjects=[make_subject(wheel.filename, wheel.sha256)],
            builder_id=self.config.builder_id,
            recipe={
                "type": self.config.recipe_type,
                "entryPoint": f"{target.package_root}/{target.manifest}",
                "arguments": build_arguments(target, environment),
                "environment": [],
            },
            started_on=started_on,
            finished_on=finished_on,
            completeness={"arguments": True, "environment": False, "materials": False},
            materials=[{"uri": f"git+https://{target.repo}@{target.tag}", "digest": {"sha1": commit}}],
        )

    def _find_manifest(self, repo: str, tag: str, package_root: str) -> str | None:
        for manifest in self.config.manifest_files:
            path = posixpath.normpath(posixpath.join(package_root, manifest))
            if self.source_host.file_exists(repo, path, tag):
                return manifest
        return None


def build_arguments(target: RebuildTarget, environment: BuildEnvironment) -> list[str]:
    """Return the shell commands a rebuild executes, in order."""
    python = environment.python
    return [
        f"git clone --branch={target.tag} --single-branch {target.repo}",
        f"{python} -m venv {BUILD_ENV}",
        f"{BUILD_ENV}/bin/pip3 install setuptools{environment.setuptools} wheel{environment.wheel}",
        f"cd {target.package_root}",
        wheel_build_command(target.manifest, python),
    ]


def parse_kinds(values: Iterable[str]) -> tuple[ReleaseKind, ...]:
    """Return the release kinds named by their values, e.g. ``wheel-any``.

    Raises
    ------
    UnsupportedError
        If a value names no release kind.
    """
    kinds = []
    for value in values:
        try:
            kinds.append(ReleaseKind(value))
        except ValueError as error:
            raise UnsupportedError(f"Unknown release type {value}.") from error
    return tuple(kinds)
