# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Functions to canonicalize and base64 encode/decode the in-toto attestation payload."""

import base64
import binascii
import json
from collections.abc import Mapping

from provenator.intoto.errors import DecodeIntotoAttestationError, EncodeIntotoAttestationError


def canonicalize(statement: Mapping) -> bytes:
    """Return the deterministic JSON encoding of a statement.

    Keys are sorted, separators carry no whitespace and non-ASCII characters are escaped, so two
    equal statements always produce the same bytes.

    Raises
    ------
    EncodeIntotoAttestationError
        If the statement holds values that cannot be represented in JSON.

    Examples
    --------
    >>> canonicalize({"b": 1, "a": [True, None]})
    b'{"a":[true,null],"b":1}'
    """
    try:
        return json.dumps(statement, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode("ascii")
    except (TypeError, ValueError) as error:
        raise EncodeIntotoAttestationError(f"Cannot serialize the in-toto statement: {error}") from error


def encode_payload(payload: bytes) -> str:
    """Encode (standard base64 encoding) the payload of an in-toto attestation.

    For more details about the payload field, see:
        https://github.com/secure-systems-lab/dsse/blob/master/envelope.md

    Parameters
    ----------
    payload : bytes
        The serialized payload.

    Returns
    -------
    str
        The encoded payload.
    """
    return base64.b64encode(payload).decode("ascii")


def decode_bytes(encoded: str) -> bytes:
    """Decode a standard base64 string.

    Raises
    ------
    DecodeIntotoAttestationError
        If the string is not valid base64.
    """
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as error:
        raise DecodeIntotoAttestationError("Cannot base64-decode the attestation payload.") from error


def decode_payload(encoded_payload: str) -> dict:
    """Decode (base64 decoding) the payload of an in-toto attestation.

    Parameters
    ----------
    encoded_payload : str
        The encoded payload.

    Returns
    -------
    dict
        The decoded payload.

    Raises
    ------
    DecodeIntotoAttestationError
        If there is an error decoding the payload of an in-toto attestation.
    """
    decoded = decode_bytes(encoded_payload)

    try:
        json_payload = json.loads(decoded)
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise DecodeIntotoAttestationError(
            "Cannot deserialize the attestation payload as JSON.",
        ) from error

    if not isinstance(json_payload, dict):
        raise DecodeIntotoAttestationError("The provenance payload is not a JSON object.")

    return json_payload
