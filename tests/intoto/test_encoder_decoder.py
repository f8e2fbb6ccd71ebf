# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for functions to serialize and base64 encode/decode the in-toto attestation payload."""

import json
from string import printable

import pytest
from hypothesis import given
from hypothesis import strategies as st

from provenator.intoto.encoder_decoder import canonicalize, decode_bytes, decode_payload, encode_payload
from provenator.intoto.errors import DecodeIntotoAttestationError, EncodeIntotoAttestationError
from provenator.util import JsonType

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(printable),
    lambda children: st.lists(children) | st.dictionaries(st.text(printable), children),
    max_leaves=5,
)
json_payloads = st.dictionaries(st.text(), json_values)


@given(statement=json_payloads)
def test_canonical_form_is_ascii_and_order_independent(statement: dict[str, JsonType]) -> None:
    """The canonical form is ASCII, has no whitespace between tokens, and ignores key insertion order."""
    canonical = canonicalize(statement)
    assert canonical == canonical.decode("ascii").encode("ascii")
    assert canonicalize(dict(reversed(list(statement.items())))) == canonical
    assert json.loads(canonical) == statement


def test_canonicalize() -> None:
    """Test the canonical serialization of a statement."""
    statement = {"subject": [{"name": "é.whl", "digest": {"sha256": "ab"}}], "_type": "t"}
    assert canonicalize(statement) == b'{"_type":"t","subject":[{"digest":{"sha256":"ab"},"name":"\\u00e9.whl"}]}'


def test_canonicalize_invalid() -> None:
    """Test serializing values that have no JSON representation."""
    with pytest.raises(EncodeIntotoAttestationError):
        canonicalize({"subject": {1, 2}})


def test_decode_payload() -> None:
    """Test decoding a base64 encoded JSON object."""
    assert decode_payload(encode_payload(b'{"a":1}')) == {"a": 1}


@pytest.mark.parametrize(
    "encoded",
    [
        pytest.param("not base64!", id="Invalid base64"),
        pytest.param(encode_payload(b"\xff\xfe"), id="Invalid UTF-8"),
        pytest.param(encode_payload(b"{"), id="Invalid JSON"),
        pytest.param(encode_payload(b"[1, 2]"), id="Not an object"),
    ],
)
def test_decode_invalid_payload(encoded: str) -> None:
    """Test decoding payloads that are not base64 encoded JSON objects."""
    with pytest.raises(DecodeIntotoAttestationError):
        decode_payload(encoded)


def test_decode_bytes_is_strict() -> None:
    """Characters outside the base64 alphabet are rejected rather than skipped."""
    assert decode_bytes("YWJj") == b"abc"
    with pytest.raises(DecodeIntotoAttestationError):
        decode_bytes("YW-J")
