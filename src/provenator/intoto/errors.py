# Copyright (c) 2023 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Error types related to in-toto attestations."""

from provenator.errors import ErrorKind, ProvenatorError


class InTotoAttestationError(ProvenatorError):
    """The base error type for all in-toto related errors."""

    kind = ErrorKind.BAD_REQUEST
    code = "invalid_attestation"


class ValidateInTotoPayloadError(InTotoAttestationError):
    """Happens when there is an issue validating an in-toto payload, usually against a schema."""


class DecodeIntotoAttestationError(InTotoAttestationError):
    """Happens when there is an issue decoding the payload of an in-toto attestation."""


class EncodeIntotoAttestationError(InTotoAttestationError):
    """Happens when an in-toto statement cannot be serialized to its canonical form."""

    kind = ErrorKind.INTERNAL
    code = "internal_error"
