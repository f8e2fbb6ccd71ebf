# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module wires the pipelines to the concrete GitHub and PyPI clients."""

import logging

from provenator.ci_service.github_actions import GitHubActions
from provenator.config.service_config import ServiceConfig
from provenator.errors import ConfigurationError
from provenator.git_service.api_client import GhAPIClient, get_default_gh_client
from provenator.git_service.github import GitHub
from provenator.intoto.dsse import EnvelopeSigner
from provenator.monitor.build_monitor import BuildMonitor
from provenator.package_registry.pypi_registry import PyPIRegistry
from provenator.policy.policy_store import PolicyStore
from provenator.policy.sources import GitHubPolicySource, LocalGitPolicySource
from provenator.rebuild.rebuilder import Rebuilder
from provenator.service.handlers import Handlers
from provenator.service.interfaces import AsymmetricSigner, AttestationStore, BuildExecutor, PolicySource

logger: logging.Logger = logging.getLogger(__name__)


def create_api_client(config: ServiceConfig) -> GhAPIClient:
    """Return the GitHub API client of the service."""
    return get_default_gh_client(config.gh_token, github=config.github, http=config.http)


def create_policy_store(config: ServiceConfig, local_repo_path: str = "") -> PolicyStore:
    """Return the policy store reading a local clone, or the configured GitHub policy repository.

    Raises
    ------
    ConfigurationError
        If no local clone is given and the policy repository is not configured.
    """
    source: PolicySource
    if local_repo_path:
        source = LocalGitPolicySource(local_repo_path)
    else:
        if not config.policy.repo_owner or not config.policy.repo_name:
            raise ConfigurationError("The policy repository is not configured in section [policy].")
        source = GitHubPolicySource(create_api_client(config), f"{config.policy.repo_owner}/{config.policy.repo_name}")
    return PolicyStore(source, config.policy)


def create_build_monitor(config: ServiceConfig) -> BuildMonitor:
    """Return the build monitor reading PyPI and GitHub Actions."""
    api_client = create_api_client(config)
    ci_provider = GitHubActions(api_client, GitHub(api_client, config.monitor.supported_host))
    return BuildMonitor(PyPIRegistry(config.pypi, config.http), ci_provider, config.monitor)


def create_handlers(
    config: ServiceConfig,
    executor: BuildExecutor,
    signer: AsymmetricSigner,
    store: AttestationStore,
    local_repo_path: str = "",
) -> Handlers:
    """Return the request handlers using the given build executor, signer and attestation store."""
    api_client = create_api_client(config)
    index = PyPIRegistry(config.pypi, config.http)
    return Handlers(
        policy_store=create_policy_store(config, local_repo_path),
        rebuilder=Rebuilder(index, GitHub(api_client), executor, config.rebuild),
        build_monitor=create_build_monitor(config),
        signer=EnvelopeSigner(signer, config.signing),
        store=store,
        config=config,
    )
