# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the configuration objects passed to each component at construction time."""

from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass, field

from provenator.config.defaults import ConfigParser
from provenator.errors import ConfigurationError

logger: logging.Logger = logging.getLogger(__name__)


def _getint(config: ConfigParser, section: str, item: str, fallback: int) -> int:
    try:
        return config.getint(section, item, fallback=fallback)
    except ValueError as error:
        raise ConfigurationError(
            f'The "{item}" value in section [{section}] of the .ini configuration file is invalid: {error}'
        ) from error


def _getbool(config: ConfigParser, section: str, item: str, fallback: bool) -> bool:
    try:
        return config.getboolean(section, item, fallback=fallback)
    except ValueError as error:
        raise ConfigurationError(
            f'The "{item}" value in section [{section}] of the .ini configuration file is invalid: {error}'
        ) from error


def _get(config: ConfigParser, section: str, item: str, fallback: str) -> str:
    try:
        return config.get(section, item, fallback=fallback)
    except configparser.Error as error:
        raise ConfigurationError(f"Cannot read [{section}] {item}: {error}") from error


@dataclass(frozen=True)
class HTTPConfig:
    """The settings shared by the HTTP clients."""

    #: The timeout of a single API request, in seconds.
    timeout: int = 10

    #: The number of retries on rate limiting.
    error_retries: int = 5

    #: The timeout of a file download, in seconds.
    download_timeout: int = 120

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> HTTPConfig:
        """Create the object from the ``[requests]`` and ``[downloads]`` sections."""
        return cls(
            timeout=_getint(config, "requests", "timeout", 10),
            error_retries=_getint(config, "requests", "error_retries", 5),
            download_timeout=_getint(config, "downloads", "timeout", 120),
        )


@dataclass(frozen=True)
class GitHubConfig:
    """The settings of the GitHub REST API client."""

    api_url: str = "https://api.github.com"

    #: The page size of list queries.
    max_items_num: int = 100

    #: The maximum number of pages read by one list query.
    query_page_threshold: int = 10

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> GitHubConfig:
        """Create the object from the ``[git_service.github]`` section."""
        section = "git_service.github"
        return cls(
            api_url=_get(config, section, "api_url", cls.api_url).rstrip("/"),
            max_items_num=_getint(config, section, "max_items_num", 100),
            query_page_threshold=_getint(config, section, "query_page_threshold", 10),
        )


@dataclass(frozen=True)
class PyPIConfig:
    """The location of the package index."""

    registry_url_scheme: str = "https"
    registry_url_netloc: str = "pypi.org"

    @property
    def registry_url(self) -> str:
        """Return the base URL of the index."""
        return f"{self.registry_url_scheme}://{self.registry_url_netloc}"

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> PyPIConfig:
        """Create the object from the ``[package_registry.pypi]`` section."""
        section = "package_registry.pypi"
        return cls(
            registry_url_scheme=_get(config, section, "registry_url_scheme", cls.registry_url_scheme),
            registry_url_netloc=_get(config, section, "registry_url_netloc", cls.registry_url_netloc),
        )


@dataclass(frozen=True)
class PolicyStoreConfig:
    """The location of the policy tree."""

    #: The owner of the GitHub policy repository.
    repo_owner: str = ""

    #: The name of the GitHub policy repository.
    repo_name: str = ""

    #: The relative path of the policy hierarchy within the policy repository.
    repo_dir: str = "."

    #: The file name of a policy document.
    file_name: str = "policy.yaml"

    #: The revision used when the request does not name one.
    default_ref: str = "main"

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> PolicyStoreConfig:
        """Create the object from the ``[policy]`` section."""
        return cls(
            repo_owner=_get(config, "policy", "repo_owner", ""),
            repo_name=_get(config, "policy", "repo_name", ""),
            repo_dir=_get(config, "policy", "repo_dir", ".") or ".",
            file_name=_get(config, "policy", "file_name", "policy.yaml") or "policy.yaml",
            default_ref=_get(config, "policy", "default_ref", "main") or "main",
        )


@dataclass(frozen=True)
class RebuilderConfig:
    """The settings of the rebuild pipeline."""

    manifest_files: tuple[str, ...] = ("setup.py",)
    supported_python: str = "3.9"
    setuptools_version_emitting_license: str = "58.3.0"
    setuptools_version_default: str = "56.2.0"

    #: Seconds between two polls of the build operation.
    poll_interval: float = 10

    #: Seconds to wait for the build operation. ``None`` waits forever.
    timeout: float | None = 3600

    builder_id: str = "https://demo.slsa.dev/rebuilder@v1"
    recipe_type: str = "https://slsa.github.com/workflow@v1"
    git_image: str = "gcr.io/cloud-builders/git"
    curl_image: str = "gcr.io/cloud-builders/curl"
    build_image: str = "alpine"
    normalize_image: str = "provenator"
    diff_image: str = "alpine"

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> RebuilderConfig:
        """Create the object from the ``[rebuild]`` section."""
        section = "rebuild"
        timeout = _getint(config, section, "timeout", 3600)
        if timeout < 0:
            raise ConfigurationError(f"The timeout in section [{section}] cannot be negative.")
        poll_interval = _getint(config, section, "poll_interval", 10)
        if poll_interval <= 0:
            raise ConfigurationError(f"The poll_interval in section [{section}] must be positive.")
        manifest_files = tuple(config.get_list(section, "manifest_files", fallback=["setup.py"]))
        return cls(
            manifest_files=manifest_files or ("setup.py",),
            supported_python=_get(config, section, "supported_python", "3.9"),
            setuptools_version_emitting_license=_get(config, section, "setuptools_version_emitting_license", "58.3.0"),
            setuptools_version_default=_get(config, section, "setuptools_version_default", "56.2.0"),
            poll_interval=poll_interval,
            timeout=timeout or None,
            builder_id=_get(config, section, "builder_id", cls.builder_id),
            recipe_type=_get(config, section, "recipe_type", cls.recipe_type),
            git_image=_get(config, section, "git_image", cls.git_image),
            curl_image=_get(config, section, "curl_image", cls.curl_image),
            build_image=_get(config, section, "build_image", cls.build_image),
            normalize_image=_get(config, section, "normalize_image", cls.normalize_image),
            diff_image=_get(config, section, "diff_image", cls.diff_image),
        )


@dataclass(frozen=True)
class MonitorConfig:
    """The settings of the build monitor."""

    #: Only repositories hosted here can be monitored.
    supported_host: str = "github.com"
    builder_id: str = "https://attestations.github.com/actions-workflow/unknown-runner@v1"
    recipe_type: str = "https://slsa.dev/workflows/GitHubActionsWorkflow"

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> MonitorConfig:
        """Create the object from the ``[build_monitor]`` section."""
        section = "build_monitor"
        return cls(
            supported_host=_get(config, section, "supported_host", cls.supported_host),
            builder_id=_get(config, section, "builder_id", cls.builder_id),
            recipe_type=_get(config, section, "recipe_type", cls.recipe_type),
        )


@dataclass(frozen=True)
class SigningConfig:
    """The signing key used for all envelopes."""

    #: The resource name of the asymmetric key version.
    kms_key: str = ""

    #: The prefix turning ``kms_key`` into a fully-qualified key identifier.
    key_id_prefix: str = "https://cloudkms.googleapis.com/"

    @property
    def key_id(self) -> str:
        """Return the fully-qualified resource name of the signing key."""
        return self.key_id_prefix + self.kms_key

    @classmethod
    def from_defaults(cls, config: ConfigParser) -> SigningConfig:
        """Create the object from the ``[signing]`` section."""
        return cls(
            kms_key=_get(config, "signing", "kms_key", ""),
            key_id_prefix=_get(config, "signing", "key_id_prefix", cls.key_id_prefix),
        )


@dataclass(frozen=True)
class ServiceConfig:
    """All static configuration, established once at process start and read-only afterwards."""

    http: HTTPConfig = field(default_factory=HTTPConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    pypi: PyPIConfig = field(default_factory=PyPIConfig)
    policy: PolicyStoreConfig = field(default_factory=PolicyStoreConfig)
    rebuild: RebuilderConfig = field(default_factory=RebuilderConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)

    #: The GitHub token. It is never written to logs.
    gh_token: str = field(default="", repr=False)

    #: Whether an uploaded provenance may replace an already signed attestation.
    allow_upload_overwrite: bool = False

    #: The revision of the running service, recorded in the audit records.
    executor_version: str = ""

    @classmethod
    def from_defaults(cls, config: ConfigParser, gh_token: str = "", executor_version: str = "") -> ServiceConfig:
        """Create the whole configuration from a loaded ``defaults.ini``.

        Raises
        ------
        ConfigurationError
            If a value in the configuration file is invalid.
        """
        return cls(
            http=HTTPConfig.from_defaults(config),
            github=GitHubConfig.from_defaults(config),
            pypi=PyPIConfig.from_defaults(config),
            policy=PolicyStoreConfig.from_defaults(config),
            rebuild=RebuilderConfig.from_defaults(config),
            monitor=MonitorConfig.from_defaults(config),
            signing=SigningConfig.from_defaults(config),
            gh_token=gh_token,
            allow_upload_overwrite=_getbool(config, "service", "allow_upload_overwrite", False),
            executor_version=executor_version,
        )
