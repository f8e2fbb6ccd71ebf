# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The module provides an API client for the GitHub REST API."""

from __future__ import annotations

import base64
import binascii
import logging
import urllib.parse
from enum import Enum

import requests

from provenator.config.service_config import GitHubConfig, HTTPConfig
from provenator.errors import APIAccessError
from provenator.util import JsonType, construct_query, send_get_http, send_get_http_raw

logger: logging.Logger = logging.getLogger(__name__)


class _GhAPIEndPoint(Enum):
    """Endpoints of the GitHub REST API."""

    REPO = "repos"


class GhAPIClient:
    """This class acts as a client to use GitHub API.

    See https://docs.github.com/en/rest for the GitHub API documentation.

    Every method takes the ``full_name`` of a repository in the form ``owner/repo``.
    """

    def __init__(self, profile: dict, github: GitHubConfig | None = None, http: HTTPConfig | None = None):
        """Initialize the GitHub API client.

        Parameters
        ----------
        profile : dict
            The json object describes the profile to be included in each request by this client.
        github : GitHubConfig | None
            The location and paging settings of the API.
        http : HTTPConfig | None
            The timeouts and retries of requests.
        """
        self.headers: dict = profile["headers"]
        self.token: str = profile.get("token", "")
        self.github = github or GitHubConfig()
        self.http = http or HTTPConfig()
        self._repo_end_point = f"{self.github.api_url}/{_GhAPIEndPoint.REPO.value}"

    def get(self, url: str) -> JsonType:
        """Send a GET request to an API url and return the decoded JSON body.

        Raises
        ------
        APIAccessError
            If the request fails.
        """
        response_data = send_get_http(
            url, self.headers, timeout=self.http.timeout, error_retries=self.http.error_retries
        )
        if response_data is None:
            raise APIAccessError(f"The GitHub API request to {url} failed.")
        return response_data

    def _get_object(self, url: str) -> dict:
        response_data = self.get(url)
        if not isinstance(response_data, dict):
            raise APIAccessError(f"Expected a JSON object from {url}.")
        return response_data

    def _get_pages(self, url: str, key: str | None = None) -> list[dict]:
        """Collect the items of a paginated list endpoint.

        Parameters
        ----------
        url : str
            The endpoint url without query.
        key : str | None
            The key of the item list in the response object, or None when the response is the list itself.

        Returns
        -------
        list[dict]
            The items in listing order.
        """
        items: list[dict] = []
        per_page = self.github.max_items_num
        for page in range(1, self.github.query_page_threshold + 1):
            query = construct_query({"page": page, "per_page": per_page})
            response_data = self.get(f"{url}?{query}")
            page_items = response_data.get(key) if key and isinstance(response_data, dict) else response_data
            if not isinstance(page_items, list):
                raise APIAccessError(f"Expected a list of items from {url}.")
            items.extend(item for item in page_items if isinstance(item, dict))
            if len(page_items) < per_page:
                return items

        logger.debug("Stopped listing %s after %s pages.", url, self.github.query_page_threshold)
        return items

    def get_repo_workflows(self, full_name: str) -> list[dict]:
        """Query the GitHub REST API for the workflows of a repository.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/actions/workflows``
        """
        logger.debug("Query for workflows in repo %s", full_name)
        return self._get_pages(f"{self._repo_end_point}/{full_name}/actions/workflows", "workflows")

    def get_workflow_runs(self, full_name: str, workflow_id: int | str) -> list[dict]:
        """Query the GitHub REST API for the runs of a workflow.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/actions/workflows/{workflow_id}/runs``

        GitHub lists the most recent runs first.
        """
        logger.debug("Query for runs of workflow %s in repo %s", workflow_id, full_name)
        return self._get_pages(
            f"{self._repo_end_point}/{full_name}/actions/workflows/{workflow_id}/runs", "workflow_runs"
        )

    def get_workflow_run_jobs(self, full_name: str, run_id: int | str) -> list[dict]:
        """Query the GitHub REST API for the jobs of a workflow run.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/actions/runs/{run_id}/jobs``
        """
        logger.debug("Query GitHub to get run jobs for %s with run ID %s", full_name, run_id)
        return self._get_pages(f"{self._repo_end_point}/{full_name}/actions/runs/{run_id}/jobs", "jobs")

    def get_workflow_run_artifacts(self, full_name: str, run_id: int | str) -> list[dict]:
        """Query the GitHub REST API for the artifacts uploaded by a workflow run.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/actions/runs/{run_id}/artifacts``
        """
        logger.debug("Query GitHub to get artifacts for %s with run ID %s", full_name, run_id)
        return self._get_pages(f"{self._repo_end_point}/{full_name}/actions/runs/{run_id}/artifacts", "artifacts")

    def get_tags(self, full_name: str) -> list[dict]:
        """Query the GitHub REST API for the tags of a repository.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/tags``
        """
        logger.debug("Query for tags in repo %s", full_name)
        return self._get_pages(f"{self._repo_end_point}/{full_name}/tags")

    def get_commit_sha(self, full_name: str, ref: str) -> str:
        """Return the SHA-1 of the commit a ref (branch, tag or commit) points to.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/commits/{ref}``

        Raises
        ------
        APIAccessError
            If the ref cannot be resolved.
        """
        quoted_ref = urllib.parse.quote(ref, safe="")
        commit = self._get_object(f"{self._repo_end_point}/{full_name}/commits/{quoted_ref}")
        sha = commit.get("sha")
        if not isinstance(sha, str) or not sha:
            raise APIAccessError(f"Cannot resolve ref {ref} in {full_name}.")
        return sha

    def get_file_content(self, full_name: str, path: str, ref: str) -> bytes | None:
        """Return the content of a file at a ref, or None if the file does not exist.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/contents/{path}?ref={ref}``

        Raises
        ------
        APIAccessError
            If the path names something other than a file, the content cannot be decoded,
            or the request fails for a reason other than the file not existing.
        """
        url = self._contents_url(full_name, path, ref)
        response = send_get_http_raw(
            url, self.headers, timeout=self.http.timeout, error_retries=self.http.error_retries
        )
        if response is None:
            if self._is_not_found(url):
                logger.debug("No file %s at %s in %s.", path, ref, full_name)
                return None
            raise APIAccessError(f"Cannot read {path} at {ref} in {full_name}.")

        try:
            content = response.json()
        except ValueError as error:
            raise APIAccessError(f"Cannot decode the response of {url}.") from error

        if not isinstance(content, dict) or content.get("type") != "file":
            raise APIAccessError(f"{path} at {ref} in {full_name} is not a file.")
        try:
            return base64.b64decode(content.get("content") or "")
        except (binascii.Error, ValueError) as error:
            raise APIAccessError(f"Cannot decode the content of {path} at {ref} in {full_name}.") from error

    def file_exists(self, full_name: str, path: str, ref: str) -> bool:
        """Return True if the contents endpoint reports an entry at ``path`` at ``ref``.

        Raises
        ------
        APIAccessError
            If the request fails for a reason other than the entry not existing.
        """
        url = self._contents_url(full_name, path, ref)
        response = send_get_http_raw(
            url, self.headers, timeout=self.http.timeout, error_retries=self.http.error_retries
        )
        if response is not None:
            return True
        if self._is_not_found(url):
            return False
        raise APIAccessError(f"Cannot check {path} at {ref} in {full_name}.")

    def _is_not_found(self, url: str) -> bool:
        """Return True if the server answers 404 for ``url``."""
        try:
            response = requests.head(url, headers=self.headers, timeout=self.http.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as error:
            logger.debug("Cannot reach %s: %s", url, error)
            return False
        return response.status_code == 404

    def get_tree_paths(self, full_name: str, ref: str) -> list[str]:
        """Return the paths of all files (blobs) in the tree of a ref.

        The url would be in the following form:
        ``https://api.github.com/repos/{full_name}/git/trees/{ref}?recursive=1``
        """
        quoted_ref = urllib.parse.quote(ref, safe="")
        tree = self._get_object(f"{self._repo_end_point}/{full_name}/git/trees/{quoted_ref}?recursive=1")
        if tree.get("truncated"):
            logger.warning("The tree of %s at %s is truncated.", full_name, ref)
        entries = tree.get("tree")
        if not isinstance(entries, list):
            raise APIAccessError(f"Cannot list the tree of {full_name} at {ref}.")
        return [
            entry["path"]
            for entry in entries
            if isinstance(entry, dict) and entry.get("type") == "blob" and isinstance(entry.get("path"), str)
        ]

    def download_archive(self, url: str) -> bytes:
        """Download an artifact archive, authenticating with the bearer token.

        Raises
        ------
        APIAccessError
            If the archive cannot be downloaded.
        """
        logger.debug("Download archive from %s.", url)
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = send_get_http_raw(
            url, headers, timeout=self.http.download_timeout, error_retries=self.http.error_retries
        )
        if response is None:
            raise APIAccessError(f"Could not download the archive at {url}.")
        return response.content

    def _contents_url(self, full_name: str, path: str, ref: str) -> str:
        quoted_path = urllib.parse.quote(path.lstrip("/"))
        return f"{self._repo_end_point}/{full_name}/contents/{quoted_path}?{construct_query({'ref': ref})}"


def get_default_gh_client(
    access_token: str, github: GitHubConfig | None = None, http: HTTPConfig | None = None
) -> GhAPIClient:
    """Return a GhAPIClient instance with default values.

    Parameters
    ----------
    access_token : str
        The GitHub personal access token.
    github : GitHubConfig | None
        The location and paging settings of the API.
    http : HTTPConfig | None
        The timeouts and retries of requests.

    Returns
    -------
    GhAPIClient
    """
    headers = {"Accept": "application/vnd.github+json"}
    if access_token:
        headers["Authorization"] = f"token {access_token}"
    return GhAPIClient({"headers": headers, "token": access_token}, github=github, http=http)
