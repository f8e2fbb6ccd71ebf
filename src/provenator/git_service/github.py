# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the source host implementation for GitHub."""

import logging
import re

from provenator.errors import UnsupportedError
from provenator.git_service.api_client import GhAPIClient

logger: logging.Logger = logging.getLogger(__name__)


class GitHub:
    """Tag and commit lookups on repositories hosted on GitHub.

    Repositories are referenced as ``github.com/<owner>/<name>``.
    """

    def __init__(self, api_client: GhAPIClient, hostname: str = "github.com") -> None:
        self.api_client = api_client
        self.hostname = hostname
        self._repo_pattern = re.compile(rf"^{re.escape(hostname)}/([^/]+)/([^/]+?)(?:\.git)?/?$")

    def get_full_name(self, repo: str) -> str:
        """Return the ``owner/name`` part of a repository reference.

        Raises
        ------
        UnsupportedError
            If the repository is not hosted on this GitHub instance.

        Examples
        --------
        >>> GitHub(None).get_full_name("github.com/kjd/idna")  # type: ignore[arg-type]
        'kjd/idna'
        """
        match = self._repo_pattern.match(repo)
        if not match:
            raise UnsupportedError(f"The repository {repo} is not hosted on {self.hostname}.")
        return f"{match.group(1)}/{match.group(2)}"

    def is_supported(self, repo: str) -> bool:
        """Return True if the repository is hosted on this GitHub instance."""
        return self._repo_pattern.match(repo) is not None

    def list_tags(self, repo: str) -> list[str]:
        """Return the tag names of a repository in GitHub's listing order."""
        tags = self.api_client.get_tags(self.get_full_name(repo))
        return [tag["name"] for tag in tags if isinstance(tag.get("name"), str)]

    def commit_digest_for_ref(self, repo: str, ref: str) -> str:
        """Return the SHA-1 of the commit a ref points to."""
        return self.api_client.get_commit_sha(self.get_full_name(repo), ref)

    def file_exists(self, repo: str, path: str, ref: str) -> bool:
        """Return True if a file exists at ``path`` at ``ref``."""
        return self.api_client.file_exists(self.get_full_name(repo), path, ref)
