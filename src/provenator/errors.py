# Copyright (c) 2023 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains error classes for Provenator."""

from enum import Enum


class ErrorKind(Enum):
    """The classes of failure a request can end in.

    The request boundary maps each kind to an HTTP-equivalent status.
    """

    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        """Return the HTTP-equivalent status code of this kind."""
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.UNAUTHENTICATED: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class ProvenatorError(Exception):
    """The base class for Provenator errors."""

    #: The failure class of this error.
    kind: ErrorKind = ErrorKind.INTERNAL

    #: A stable, user-facing code for this error.
    code: str = "internal_error"


class NotFoundError(ProvenatorError):
    """Happens when a required resource does not exist."""

    kind = ErrorKind.NOT_FOUND
    code = "not_found"


class PolicyNotFoundError(NotFoundError):
    """Happens when there is no policy file for the package at the requested revision."""

    code = "policy_not_found"


class ReleaseNotFoundError(NotFoundError):
    """Happens when no release artifact of a requested kind exists for the version."""

    code = "artifact_not_found"


class TagNotFoundError(NotFoundError):
    """Happens when no tag of the source repository matches the release version."""

    code = "tag_not_found"


class ManifestNotFoundError(NotFoundError):
    """Happens when no build manifest exists at the package root of the matched tag."""

    code = "manifest_not_found"


class WorkflowNotFoundError(NotFoundError):
    """Happens when the named CI workflow cannot be found in the repository."""

    code = "workflow_not_found"


class AttestationNotFoundError(NotFoundError):
    """Happens when no attestation was stored for a package version."""

    code = "attestation_not_found"


class ParseError(ProvenatorError):
    """The errors related to parsers."""

    kind = ErrorKind.BAD_REQUEST
    code = "parse_error"


class PolicyParseError(ParseError):
    """Happens when a policy document violates the policy schema."""

    kind = ErrorKind.INTERNAL
    code = "invalid_policy"


class UnsupportedError(ProvenatorError):
    """Happens when the request asks for something that cannot be verified (yet)."""

    kind = ErrorKind.BAD_REQUEST
    code = "unsupported"


class BadRequestError(ProvenatorError):
    """Happens when the request is malformed or the policy does not allow the requested operation."""

    kind = ErrorKind.BAD_REQUEST
    code = "bad_request"


class UnauthenticatedError(ProvenatorError):
    """Happens when the caller identity is missing or cannot be decoded."""

    kind = ErrorKind.UNAUTHENTICATED
    code = "unauthenticated"


class ForbiddenError(ProvenatorError):
    """Happens when the caller identity is not allowed by the policy."""

    kind = ErrorKind.FORBIDDEN
    code = "forbidden"


class InconsistentRebuildError(ProvenatorError):
    """Happens when a rebuild executed but its output differs from the published artifact."""

    kind = ErrorKind.CONFLICT
    code = "rebuild_inconsistent"


class InternalError(ProvenatorError):
    """Happens when an external dependency fails or behaves unexpectedly."""

    kind = ErrorKind.INTERNAL
    code = "internal_error"


class ConfigurationError(InternalError):
    """Happens when there is an error in the configuration (.ini) file."""


class InvalidHTTPResponseError(InternalError):
    """Happens when the HTTP response is invalid or unexpected."""


class APIAccessError(InternalError):
    """Happens when a service API cannot be accessed.

    Reasons can include:
        * misconfiguration issues
        * invalid API request
        * network errors
        * unexpected response returned by the API
    """


class BuildExecutionError(InternalError):
    """Happens when the external build operation fails for a reason other than an output mismatch."""


class BuildTimeoutError(BuildExecutionError):
    """Happens when the external build operation does not finish within the allowed time."""


class BuildCancelledError(BuildExecutionError):
    """Happens when waiting for the external build operation is cancelled by the caller."""


class SigningError(InternalError):
    """Happens when the external signer cannot sign the pre-authentication encoding."""


class StorageError(InternalError):
    """Happens when the attestation store cannot be read or written."""


class StorageConflictError(StorageError):
    """Happens when writing an attestation would overwrite an existing signed record."""

    kind = ErrorKind.CONFLICT
    code = "attestation_exists"
