# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module fetches per-package policies from the policy repository."""

import logging
import posixpath

from provenator.config.service_config import PolicyStoreConfig
from provenator.errors import NotFoundError, PolicyNotFoundError, PolicyParseError
from provenator.policy.policy import PolicyDocument, parse_policy
from provenator.service.interfaces import PolicySource

logger: logging.Logger = logging.getLogger(__name__)


class PolicyStore:
    """Reads policies at ``<repo_dir>/<scope>/<package>/<file_name>`` of a versioned file tree.

    Policies are fetched fresh for every call; nothing is cached.
    """

    def __init__(self, source: PolicySource, config: PolicyStoreConfig) -> None:
        self.source = source
        self.config = config

    def policy_path(self, scope: str, package: str) -> str:
        """Return the path of the policy of a package in the policy tree.

        Examples
        --------
        >>> PolicyStore(None, PolicyStoreConfig()).policy_path("pypi", "idna")  # type: ignore[arg-type]
        'pypi/idna/policy.yaml'
        """
        return posixpath.normpath(posixpath.join(self.config.repo_dir, scope, package, self.config.file_name))

    def fetch_policy(self, scope: str, package: str, ref: str | None = None) -> PolicyDocument:
        """Fetch and parse the policy of a package.

        Parameters
        ----------
        scope : str
            The scope of the package, e.g. ``pypi``.
        package : str
            The package name.
        ref : str | None
            The revision of the policy tree, the configured default when None.

        Returns
        -------
        PolicyDocument
            The policy, whose digest is computed from the exact bytes read.

        Raises
        ------
        PolicyNotFoundError
            If there is no policy file for the package at that revision.
        PolicyParseError
            If the policy violates the schema.
        """
        revision = ref or self.config.default_ref
        path = self.policy_path(scope, package)
        logger.debug("Fetching policy %s at %s.", path, revision)
        try:
            content = self.source.get_file(path, revision)
        except NotFoundError as error:
            raise PolicyNotFoundError(f"No policy found for {scope}/{package} at {revision}.") from error
        return parse_policy(content, scope, package, path=path)

    def fetch_all_policies(self, ref: str | None = None) -> list[PolicyDocument]:
        """Fetch and parse every policy in the tree at a revision.

        The scope and package of each policy come from the two directories above the file.
        Files matching the policy name at a shallower depth are skipped.

        Raises
        ------
        PolicyParseError
            If one of the policies violates the schema.
        """
        revision = ref or self.config.default_ref
        policies = []
        for path in sorted(self.source.list_files_recursive(self.config.repo_dir, revision)):
            if posixpath.basename(path) != self.config.file_name:
                continue
            relative = posixpath.relpath(path, posixpath.normpath(self.config.repo_dir))
            parts = relative.split("/")
            if len(parts) < 3:
                logger.info("Skipping policy file %s outside of a <scope>/<package> directory.", path)
                continue
            scope, package = parts[-3], parts[-2]
            try:
                policies.append(parse_policy(self.source.get_file(path, revision), scope, package, path=path))
            except PolicyParseError:
                logger.error("Cannot parse the policy at %s.", path)
                raise
        return policies
