# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module decides whether a caller may upload provenance for a package.

The signature of the bearer token is NOT verified here. Requests reach this service only through a fronting
platform that authenticates them and rejects invalid tokens, so the claims of a token that arrives here are
already trusted. This module only reads the identity those claims assert and checks it against the policy.
Deployments without such a fronting platform must not expose the upload handler.
"""

import logging

import jwt

from provenator.errors import ForbiddenError, UnauthenticatedError
from provenator.policy.policy import ProvenanceUploadPolicy

logger: logging.Logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def extract_identity(authorization: str | None) -> str:
    """Return the email claim of the bearer token in an ``Authorization`` header value.

    Parameters
    ----------
    authorization : str | None
        The header value, e.g. ``Bearer eyJ...``.

    Returns
    -------
    str
        The identity asserted by the token.

    Raises
    ------
    UnauthenticatedError
        If there is no token or its claims cannot be decoded.
    """
    if not authorization:
        raise UnauthenticatedError("No credential provided.")

    token = authorization.strip()
    if token.lower().startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX) :].strip()
    if not token:
        raise UnauthenticatedError("No credential provided.")

    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.exceptions.InvalidTokenError as error:
        raise UnauthenticatedError("The credential cannot be decoded.") from error

    email = claims.get("email")
    if not isinstance(email, str) or not email:
        raise UnauthenticatedError("The credential does not assert an identity.")
    return email


def authorize_upload(authorization: str | None, policy: ProvenanceUploadPolicy) -> str:
    """Return the caller identity if the policy allows it to upload provenance.

    Raises
    ------
    UnauthenticatedError
        If there is no usable credential.
    ForbiddenError
        If the identity is not one of the authorized builders.
    """
    identity = extract_identity(authorization)
    if identity not in policy.authorized_builders:
        logger.info("Rejecting upload from %s.", identity)
        raise ForbiddenError(f"{identity} is not allowed to upload provenance for this package.")
    return identity
