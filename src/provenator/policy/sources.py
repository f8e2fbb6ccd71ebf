# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the versioned file trees policies can be read from."""

import logging
import posixpath

from git import GitCommandError
from gitdb.exc import BadName, BadObject
from pydriller.git import Git

from provenator.errors import APIAccessError, NotFoundError
from provenator.git_service.api_client import GhAPIClient

logger: logging.Logger = logging.getLogger(__name__)


def _under(path: str, root: str) -> bool:
    root = posixpath.normpath(root)
    if root in (".", ""):
        return True
    return path == root or path.startswith(root + "/")


class GitHubPolicySource:
    """The file tree of a GitHub repository, read through the REST API."""

    def __init__(self, api_client: GhAPIClient, full_name: str) -> None:
        """Initialize instance.

        Parameters
        ----------
        api_client : GhAPIClient
            The GitHub API client.
        full_name : str
            The policy repository, in the form ``owner/name``.
        """
        self.api_client = api_client
        self.full_name = full_name

    def get_file(self, path: str, revision: str) -> bytes:
        """Return the content of a file at a revision.

        Raises
        ------
        NotFoundError
            If the file does not exist at that revision.
        """
        content = self.api_client.get_file_content(self.full_name, path, revision)
        if content is None:
            raise NotFoundError(f"No file {path} at {revision} in {self.full_name}.")
        return content

    def list_files_recursive(self, root: str, revision: str) -> list[str]:
        """Return the paths of all files below ``root`` at a revision."""
        return [path for path in self.api_client.get_tree_paths(self.full_name, revision) if _under(path, root)]


class LocalGitPolicySource:
    """The file tree of a local git clone, read at any revision without checking it out."""

    def __init__(self, repo_path: str) -> None:
        self.git_obj = Git(repo_path)

    def get_file(self, path: str, revision: str) -> bytes:
        """Return the content of a file at a revision.

        Raises
        ------
        NotFoundError
            If the file or the revision does not exist.
        """
        try:
            blob = self.git_obj.repo.commit(revision).tree / posixpath.normpath(path)
        except (KeyError, ValueError, BadName, BadObject) as error:
            raise NotFoundError(f"No file {path} at {revision} in {self.git_obj.path}.") from error
        if blob.type != "blob":
            raise NotFoundError(f"{path} at {revision} in {self.git_obj.path} is not a file.")
        return blob.data_stream.read()

    def list_files_recursive(self, root: str, revision: str) -> list[str]:
        """Return the paths of all files below ``root`` at a revision.

        Raises
        ------
        APIAccessError
            If the revision cannot be listed.
        """
        try:
            output = self.git_obj.repo.git.ls_tree("-r", "--name-only", revision)
        except GitCommandError as error:
            raise APIAccessError(f"Cannot list the files of {self.git_obj.path} at {revision}.") from error
        return [path for path in output.splitlines() if path and _under(path, root)]
