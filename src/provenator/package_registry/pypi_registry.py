# Copyright (c) 2023 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The module provides a client for the JSON API of the pypi package registry."""

from __future__ import annotations

import logging
import urllib.parse
from datetime import datetime, timezone

import requests

from provenator.config.service_config import HTTPConfig, PyPIConfig
from provenator.errors import InvalidHTTPResponseError, ReleaseNotFoundError
from provenator.package_registry.release import PackageMetadata, ReleaseArtifact
from provenator.util import JsonType, json_extract, send_get_http_raw

logger: logging.Logger = logging.getLogger(__name__)


def parse_upload_time(timestamp: str) -> datetime:
    """Parse an upload time reported by pypi. Times without an offset are in UTC.

    Examples
    --------
    >>> parse_upload_time("2021-10-13T04:39:11.123456Z").isoformat()
    '2021-10-13T04:39:11.123456+00:00'
    >>> parse_upload_time("2021-10-13T04:39:11").isoformat()
    '2021-10-13T04:39:11+00:00'
    """
    if timestamp.endswith("Z"):
        timestamp = timestamp[:-1] + "+00:00"
    result = datetime.fromisoformat(timestamp)
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


def _parse_release_file(entry: JsonType) -> ReleaseArtifact | None:
    if not isinstance(entry, dict):
        return None
    filename = json_extract(entry, ["filename"], str)
    url = json_extract(entry, ["url"], str)
    upload_time = json_extract(entry, ["upload_time_iso_8601"], str) or json_extract(entry, ["upload_time"], str)
    if not filename or not url or not upload_time:
        logger.debug("Skipping a release file with missing fields: %s", entry)
        return None

    try:
        uploaded = parse_upload_time(upload_time)
    except ValueError:
        logger.debug("Skipping %s with an invalid upload time %s.", filename, upload_time)
        return None

    digests = json_extract(entry, ["digests"], dict) or {}
    return ReleaseArtifact(
        filename=filename,
        package_type=json_extract(entry, ["packagetype"], str) or "",
        python_version=json_extract(entry, ["python_version"], str) or "",
        url=url,
        upload_time=uploaded,
        digests={key: value for key, value in digests.items() if isinstance(value, str)},
    )


class PyPIRegistry:
    """This class implements the pypi package registry."""

    def __init__(self, config: PyPIConfig | None = None, http: HTTPConfig | None = None) -> None:
        """Initialize the pypi Registry instance.

        Parameters
        ----------
        config : PyPIConfig | None
            The location of the registry.
        http : HTTPConfig | None
            The timeouts and retries of requests.
        """
        self.config = config or PyPIConfig()
        self.http = http or HTTPConfig()

    def package_json_url(self, package: str) -> str:
        """Return the url of the JSON metadata of a package.

        Examples
        --------
        >>> PyPIRegistry().package_json_url("idna")
        'https://pypi.org/pypi/idna/json'
        """
        return urllib.parse.urljoin(self.config.registry_url + "/", f"pypi/{urllib.parse.quote(package)}/json")

    def download_package_json(self, url: str) -> dict:
        """Download the package JSON metadata from pypi registry.

        Parameters
        ----------
        url: str
            The package JSON url.

        Returns
        -------
        dict
            The JSON response if the request is successful.

        Raises
        ------
        InvalidHTTPResponseError
            If the HTTP request to the registry fails or an unexpected response is returned.
        """
        response = send_get_http_raw(
            url, headers=None, timeout=self.http.timeout, error_retries=self.http.error_retries
        )

        if not response:
            logger.debug("Unable to find package JSON metadata using URL: %s", url)
            raise InvalidHTTPResponseError(f"Unable to find package JSON metadata using URL: {url}.")

        try:
            res_obj = response.json()
        except requests.exceptions.JSONDecodeError as error:
            raise InvalidHTTPResponseError(f"Failed to process response from pypi for {url}.") from error
        if not isinstance(res_obj, dict):
            raise InvalidHTTPResponseError(f"Empty response returned by {url} .")

        return res_obj

    def metadata(self, package: str) -> PackageMetadata:
        """Return the latest version and the published files of all releases of a package.

        Raises
        ------
        ReleaseNotFoundError
            If the registry does not know the package.
        InvalidHTTPResponseError
            If the registry response is malformed.
        """
        url = self.package_json_url(package)
        try:
            data = self.download_package_json(url)
        except InvalidHTTPResponseError as error:
            if self._is_unknown(url):
                raise ReleaseNotFoundError(f"The package {package} does not exist on pypi.") from error
            raise

        releases: dict[str, list[ReleaseArtifact]] = {}
        for version, files in (json_extract(data, ["releases"], dict) or {}).items():
            if not isinstance(files, list):
                continue
            releases[version] = [artifact for artifact in map(_parse_release_file, files) if artifact]

        return PackageMetadata(
            name=json_extract(data, ["info", "name"], str) or package,
            latest_version=json_extract(data, ["info", "version"], str) or "",
            releases=releases,
        )

    def download(self, url: str) -> bytes:
        """Return the content of a published file.

        Raises
        ------
        InvalidHTTPResponseError
            If the file cannot be downloaded.
        """
        response = send_get_http_raw(
            url, headers=None, timeout=self.http.download_timeout, error_retries=self.http.error_retries
        )
        if response is None:
            raise InvalidHTTPResponseError(f"Unable to download {url}.")
        return response.content

    def _is_unknown(self, url: str) -> bool:
        try:
            response = requests.head(url, timeout=self.http.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as error:
            logger.debug(error)
            return False
        return response.status_code == 404
