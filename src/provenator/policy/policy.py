# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the per-package trust policy and its parser.

A policy lives at ``<scope>/<package>/policy.yaml`` in the policy repository, for example:

.. code-block:: yaml

    repo: github.com/kjd/idna
    rebuilder:
      package_root: .
    build_monitor:
      github_actions:
        workflow: Build and publish
        artifacts:
          - name: dist
            patterns: ["*.whl", "*.tar.gz"]
        require_succeeded:
          job: build
          step: Build wheel
    provenance_upload:
      authorized_builders:
        - builder@example.com
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from yamale.schema import Schema

from provenator import PROVENATOR_PATH
from provenator.errors import ParseError, PolicyParseError
from provenator.parsers.yaml.loader import YamlLoader
from provenator.util import sha256_hexdigest

logger: logging.Logger = logging.getLogger(__name__)

POLICY_SCHEMA_PATH = os.path.join(PROVENATOR_PATH, "resources", "schemas", "policy_schema.yaml")


@dataclass(frozen=True)
class RebuilderPolicy:
    """The parameters of the rebuild architecture."""

    #: The directory holding the build manifest, relative to the repository root.
    package_root: str = ""


@dataclass(frozen=True)
class ArtifactSpec:
    """A CI-produced archive and the files in it that may become subjects."""

    #: The name of the CI artifact.
    name: str

    #: Glob patterns matched against the paths inside the archive.
    patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompletionSpec:
    """A job (and optionally one of its steps) that must have succeeded in the CI run."""

    job: str
    step: str = ""


@dataclass(frozen=True)
class GitHubActionsPolicy:
    """The GitHub Actions workflow that publishes the package."""

    workflow: str
    artifacts: tuple[ArtifactSpec, ...] = ()
    require_succeeded: CompletionSpec | None = None


@dataclass(frozen=True)
class BuildMonitorPolicy:
    """The parameters of the build monitor architecture."""

    github_actions: GitHubActionsPolicy


@dataclass(frozen=True)
class ProvenanceUploadPolicy:
    """The parameters of the provenance upload architecture."""

    #: The identities allowed to upload provenance for the package.
    authorized_builders: tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyDocument:
    """A per-package trust policy."""

    scope: str
    package: str

    #: The source repository of the package, e.g. ``github.com/owner/name``.
    repo: str = ""

    #: The SHA-256 hex digest of the exact bytes the policy was parsed from.
    #: It is derived at fetch time and never read from the document.
    digest: str = ""

    rebuilder: RebuilderPolicy | None = None
    build_monitor: BuildMonitorPolicy | None = None
    provenance_upload: ProvenanceUploadPolicy | None = None

    #: Where the policy was read from.
    path: str = field(default="", compare=False)


_schema: Schema | None = None


def get_policy_schema() -> Schema:
    """Return the yamale schema of policy documents, loading it on first use."""
    global _schema  # pylint: disable=global-statement
    if _schema is None:
        _schema = YamlLoader.load_schema(POLICY_SCHEMA_PATH)
    return _schema


def _parse_github_actions(data: dict) -> GitHubActionsPolicy:
    artifacts = tuple(
        ArtifactSpec(name=spec["name"], patterns=tuple(spec.get("patterns") or ()))
        for spec in data.get("artifacts") or []
    )
    require_succeeded = None
    completion = data.get("require_succeeded")
    if completion:
        require_succeeded = CompletionSpec(job=completion["job"], step=completion.get("step") or "")
    return GitHubActionsPolicy(
        workflow=data["workflow"],
        artifacts=artifacts,
        require_succeeded=require_succeeded,
    )


def parse_policy(content: bytes, scope: str, package: str, path: str = "") -> PolicyDocument:
    """Parse a policy document.

    Parameters
    ----------
    content : bytes
        The raw bytes of the policy file, exactly as fetched.
    scope : str
        The scope of the package.
    package : str
        The package name.
    path : str
        The path of the policy file, for error messages.

    Returns
    -------
    PolicyDocument
        The parsed policy, with ``digest`` computed from ``content``.

    Raises
    ------
    PolicyParseError
        If the content is not valid YAML or violates the policy schema.
    """
    origin = path or f"{scope}/{package}"
    data: object = {}
    if content.strip():
        try:
            data = YamlLoader.load(content, schema=get_policy_schema(), origin=origin)
        except ParseError as error:
            raise PolicyParseError(str(error)) from error

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PolicyParseError(f"The policy {origin} is not a mapping.")

    rebuilder = None
    if "rebuilder" in data:
        rebuilder = RebuilderPolicy(package_root=(data["rebuilder"] or {}).get("package_root") or "")

    build_monitor = None
    if data.get("build_monitor"):
        github_actions = _parse_github_actions(data["build_monitor"]["github_actions"])
        build_monitor = BuildMonitorPolicy(github_actions=github_actions)

    provenance_upload = None
    if "provenance_upload" in data:
        provenance_upload = ProvenanceUploadPolicy(
            authorized_builders=tuple((data["provenance_upload"] or {}).get("authorized_builders") or ())
        )

    return PolicyDocument(
        scope=scope,
        package=package,
        repo=data.get("repo") or "",
        digest=sha256_hexdigest(content),
        rebuilder=rebuilder,
        build_monitor=build_monitor,
        provenance_upload=provenance_upload,
        path=path,
    )
