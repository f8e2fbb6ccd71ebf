# Copyright (c) 2023 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for validation of in-toto attestation version 0.1."""

import pytest

from provenator.intoto.errors import ValidateInTotoPayloadError
from provenator.intoto.v01 import validate_intoto_statement, validate_intoto_subject
from provenator.util import JsonType

SUBJECT = {"name": "idna-3.3-py3-none-any.whl", "digest": {"sha256": "84d9dd04"}}


@pytest.mark.parametrize(
    ("payload"),
    [
        pytest.param(
            {
                "_type": "https://in-toto.io/Statement/v0.1",
                "subject": [SUBJECT],
                "predicateType": "https://slsa.dev/provenance/v0.1",
            },
            id="Without predicate",
        ),
        pytest.param(
            {
                "_type": "https://in-toto.io/Statement/v0.1",
                "subject": [SUBJECT],
                "predicateType": "https://slsa.dev/provenance/v0.1",
                "predicate": {
                    "builder": {"id": "https://demo.slsa.dev/rebuilder@v1"},
                    "recipe": {"type": "https://slsa.github.com/workflow@v1"},
                },
            },
            id="With predicate",
        ),
    ],
)
def test_validate_valid_intoto_statement(
    payload: dict[str, JsonType],
) -> None:
    """Test validating valid in-toto statements."""
    assert validate_intoto_statement(payload) is True


@pytest.mark.parametrize(
    ("payload"),
    [
        pytest.param(
            {"subject": [SUBJECT], "predicateType": "https://slsa.dev/provenance/v0.1"},
            id="Missing '_type'",
        ),
        pytest.param(
            {"_type": {}, "subject": [SUBJECT], "predicateType": "https://slsa.dev/provenance/v0.1"},
            id="Invalid '_type'",
        ),
        pytest.param(
            {"_type": "https://in-toto.io/Statement/v1", "subject": [SUBJECT], "predicateType": "p"},
            id="Other statement version",
        ),
        pytest.param(
            {"_type": "https://in-toto.io/Statement/v0.1", "predicateType": "https://slsa.dev/provenance/v0.1"},
            id="Missing 'subject'",
        ),
        pytest.param(
            {"_type": "https://in-toto.io/Statement/v0.1", "subject": [], "predicateType": "p"},
            id="Empty 'subject'",
        ),
        pytest.param(
            {"_type": "https://in-toto.io/Statement/v0.1", "subject": [SUBJECT]},
            id="Missing 'predicateType'",
        ),
        pytest.param(
            {"_type": "https://in-toto.io/Statement/v0.1", "subject": [SUBJECT], "predicateType": "p", "predicate": []},
            id="Invalid 'predicate'",
        ),
    ],
)
def test_validate_invalid_intoto_statement(
    payload: dict[str, JsonType],
) -> None:
    """Test validating invalid in-toto statements."""
    with pytest.raises(ValidateInTotoPayloadError):
        validate_intoto_statement(payload)


@pytest.mark.parametrize(
    ("subject_json"),
    [
        pytest.param("idna", id="Not an object"),
        pytest.param({"digest": {"sha256": "abc"}}, id="Missing 'name'"),
        pytest.param({"name": "", "digest": {"sha256": "abc"}}, id="Empty 'name'"),
        pytest.param({"name": "idna"}, id="Missing 'digest'"),
        pytest.param({"name": "idna", "digest": {"sha256": 1}}, id="Invalid digest value"),
    ],
)
def test_validate_invalid_subject(
    subject_json: JsonType,
) -> None:
    """Test validating invalid in-toto subjects."""
    with pytest.raises(ValidateInTotoPayloadError):
        validate_intoto_subject(subject_json)
