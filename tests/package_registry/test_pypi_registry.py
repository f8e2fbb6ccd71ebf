# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the PyPI registry."""

import urllib.parse
from datetime import datetime, timezone

import pytest
from pytest_httpserver import HTTPServer

from provenator.config.service_config import HTTPConfig, PyPIConfig
from provenator.errors import InvalidHTTPResponseError, ReleaseNotFoundError
from provenator.package_registry.pypi_registry import PyPIRegistry

# pylint: disable=redefined-outer-name

PACKAGE_JSON = {
    "info": {"name": "idna", "version": "3.3"},
    "releases": {
        "3.3": [
            {
                "filename": "idna-3.3-py3-none-any.whl",
                "packagetype": "bdist_wheel",
                "python_version": "py3",
                "url": "https://files.pythonhosted.org/packages/idna-3.3-py3-none-any.whl",
                "upload_time": "2021-10-13T04:39:11",
                "upload_time_iso_8601": "2021-10-13T04:39:11.864512Z",
                "digests": {"md5": "5d6f4f6f9cd3b4b0a1c5d4f7b2d4b0a1", "sha256": "84d9dd04" + "0" * 56},
            },
            {
                "filename": "idna-3.3.tar.gz",
                "packagetype": "sdist",
                "python_version": "source",
                "url": "https://files.pythonhosted.org/packages/idna-3.3.tar.gz",
                "upload_time": "2021-10-13T04:39:13",
                "digests": {"sha256": "9d643ff0" + "0" * 56},
            },
            {"filename": "broken.whl"},
        ],
        "3.2": "not a list",
    },
}


@pytest.fixture()
def pypi_registry(httpserver: HTTPServer) -> PyPIRegistry:
    """Return a registry client querying the test server."""
    base_url = urllib.parse.urlparse(httpserver.url_for(""))
    return PyPIRegistry(
        PyPIConfig(registry_url_scheme=base_url.scheme, registry_url_netloc=base_url.netloc),
        HTTPConfig(timeout=5, error_retries=0, download_timeout=5),
    )


def test_metadata(httpserver: HTTPServer, pypi_registry: PyPIRegistry) -> None:
    """Test reading the latest version and the files of each release."""
    httpserver.expect_request("/pypi/idna/json").respond_with_json(PACKAGE_JSON)

    metadata = pypi_registry.metadata("idna")

    assert metadata.name == "idna"
    assert metadata.latest_version == "3.3"
    assert set(metadata.releases) == {"3.3"}
    wheel, sdist = metadata.releases["3.3"]
    assert wheel.filename == "idna-3.3-py3-none-any.whl"
    assert wheel.package_type == "bdist_wheel"
    assert wheel.sha256 == "84d9dd04" + "0" * 56
    assert wheel.upload_time == datetime(2021, 10, 13, 4, 39, 11, 864512, tzinfo=timezone.utc)
    assert sdist.upload_time == datetime(2021, 10, 13, 4, 39, 13, tzinfo=timezone.utc)
    assert sdist.python_version == "source"


def test_metadata_unknown_package(httpserver: HTTPServer, pypi_registry: PyPIRegistry) -> None:
    """Test that an unknown package is reported as not found."""
    httpserver.expect_request("/pypi/unknown/json").respond_with_data("Not Found", status=404)

    with pytest.raises(ReleaseNotFoundError):
        pypi_registry.metadata("unknown")


@pytest.mark.parametrize(
    ("status", "body"),
    [
        (500, "Internal Server Error"),
        (200, "not json"),
        (200, "[]"),
    ],
)
def test_metadata_invalid_response(
    httpserver: HTTPServer, pypi_registry: PyPIRegistry, status: int, body: str
) -> None:
    """Test that failures other than an unknown package are internal errors."""
    httpserver.expect_request("/pypi/idna/json").respond_with_data(body, status=status)

    with pytest.raises(InvalidHTTPResponseError):
        pypi_registry.metadata("idna")


def test_download(httpserver: HTTPServer, pypi_registry: PyPIRegistry) -> None:
    """Test downloading a published file."""
    httpserver.expect_request("/packages/idna-3.3-py3-none-any.whl").respond_with_data(b"PK\x03\x04")
    httpserver.expect_request("/packages/missing.whl").respond_with_data("Not Found", status=404)

    assert pypi_registry.download(httpserver.url_for("/packages/idna-3.3-py3-none-any.whl")) == b"PK\x03\x04"
    with pytest.raises(InvalidHTTPResponseError):
        pypi_registry.download(httpserver.url_for("/packages/missing.whl"))


def test_package_json_url() -> None:
    """Test the location of the JSON metadata of a package."""
    registry = PyPIRegistry(PyPIConfig(registry_url_scheme="https", registry_url_netloc="test.pypi.org"))
    assert registry.package_json_url("zope.interface") == "https://test.pypi.org/pypi/zope.interface/json"
