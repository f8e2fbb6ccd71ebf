# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module tests the GitHub source host."""

from unittest.mock import MagicMock

import pytest

from provenator.errors import UnsupportedError
from provenator.git_service.github import GitHub


@pytest.mark.parametrize(
    ("repo", "expected"),
    [
        ("github.com/kjd/idna", "kjd/idna"),
        ("github.com/kjd/idna.git", "kjd/idna"),
        ("github.com/kjd/idna/", "kjd/idna"),
    ],
)
def test_get_full_name(repo: str, expected: str) -> None:
    """Test extracting the owner and name of a repository."""
    github = GitHub(MagicMock())
    assert github.is_supported(repo)
    assert github.get_full_name(repo) == expected


@pytest.mark.parametrize(
    "repo",
    ["gitlab.com/kjd/idna", "github.com/kjd", "https://github.com/kjd/idna", "github.com/kjd/idna/tree/main"],
)
def test_unsupported_repository(repo: str) -> None:
    """Test rejecting repositories that are not hosted on GitHub."""
    github = GitHub(MagicMock())
    assert not github.is_supported(repo)
    with pytest.raises(UnsupportedError):
        github.get_full_name(repo)


def test_lookups() -> None:
    """Test that lookups go to the API with the full name of the repository."""
    api_client = MagicMock()
    api_client.get_tags.return_value = [{"name": "v3.3"}, {"commit": {}}, {"name": "v3.2"}]
    api_client.get_commit_sha.return_value = "d" * 40
    api_client.file_exists.return_value = True
    github = GitHub(api_client)

    assert github.list_tags("github.com/kjd/idna") == ["v3.3", "v3.2"]
    assert github.commit_digest_for_ref("github.com/kjd/idna", "v3.3") == "d" * 40
    api_client.get_commit_sha.assert_called_once_with("kjd/idna", "v3.3")
    assert github.file_exists("github.com/kjd/idna", "setup.py", "v3.3") is True
    api_client.file_exists.assert_called_once_with("kjd/idna", "setup.py", "v3.3")
