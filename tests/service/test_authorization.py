# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for checking the identity of provenance uploaders."""

import jwt
import pytest

from provenator.errors import ForbiddenError, UnauthenticatedError
from provenator.policy.policy import ProvenanceUploadPolicy
from provenator.service.authorization import authorize_upload, extract_identity

SIGNING_SECRET = "a-secret-only-the-fronting-platform-knows"
POLICY = ProvenanceUploadPolicy(authorized_builders=("builder@example.com",))


def _token(claims: dict) -> str:
    return jwt.encode(claims, SIGNING_SECRET, algorithm="HS256")


@pytest.mark.parametrize(
    "authorization",
    [
        pytest.param(f"Bearer {_token({'email': 'builder@example.com'})}", id="Bearer prefix"),
        pytest.param(f"bearer   {_token({'email': 'builder@example.com'})}", id="Lowercase prefix"),
        pytest.param(_token({"email": "builder@example.com", "sub": "1234"}), id="Bare token"),
    ],
)
def test_extract_identity(authorization: str) -> None:
    """Test reading the email claim without verifying the signature."""
    assert extract_identity(authorization) == "builder@example.com"


@pytest.mark.parametrize(
    "authorization",
    [
        pytest.param(None, id="No header"),
        pytest.param("", id="Empty header"),
        pytest.param("Bearer ", id="Empty token"),
        pytest.param("Bearer not-a-jwt", id="Undecodable token"),
        pytest.param(f"Bearer {_token({'sub': '1234'})}", id="No email claim"),
        pytest.param(f"Bearer {_token({'email': ''})}", id="Empty email claim"),
    ],
)
def test_extract_identity_unauthenticated(authorization: str | None) -> None:
    """Test requests without a usable credential."""
    with pytest.raises(UnauthenticatedError):
        extract_identity(authorization)


def test_authorize_upload() -> None:
    """Test that only the builders listed in the policy may upload."""
    assert authorize_upload(f"Bearer {_token({'email': 'builder@example.com'})}", POLICY) == "builder@example.com"

    with pytest.raises(ForbiddenError):
        authorize_upload(f"Bearer {_token({'email': 'mallory@example.com'})}", POLICY)
    with pytest.raises(ForbiddenError):
        authorize_upload(f"Bearer {_token({'email': 'builder@example.com'})}", ProvenanceUploadPolicy())
