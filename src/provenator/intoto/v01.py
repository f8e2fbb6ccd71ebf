# Copyright (c) 2023 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module handles in-toto version 0.1 statements carrying SLSA v0.1 provenance."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import NotRequired, TypedDict, TypeGuard

from provenator.intoto.errors import ValidateInTotoPayloadError
from provenator.util import JsonType

STATEMENT_TYPE = "https://in-toto.io/Statement/v0.1"
PREDICATE_TYPE = "https://slsa.dev/provenance/v0.1"


class InTotoV01Statement(TypedDict):
    """An in-toto version 0.1 statement.

    This is the type of the payload in an in-toto version 0.1 attestation.
    Specification: https://github.com/in-toto/attestation/tree/main/spec/v0.1.0#statement.
    """

    _type: str
    subject: list[InTotoV01Subject]
    predicateType: str  # noqa: N815
    predicate: dict[str, JsonType] | None


class InTotoV01Subject(TypedDict):
    """An in-toto subject.

    Specification: https://github.com/in-toto/attestation/tree/main/spec/v0.1.0#statement.
    """

    name: str
    digest: dict[str, str]


class SLSAV01Builder(TypedDict):
    """The identity of the entity that executed the build."""

    id: str


class SLSAV01Recipe(TypedDict):
    """The steps that were run to produce the subjects.

    ``definedInMaterial`` is only present when the recipe is read from one of the materials.
    """

    type: str
    definedInMaterial: NotRequired[int]  # noqa: N815
    entryPoint: str  # noqa: N815
    arguments: list[str]
    environment: list[str]


class SLSAV01Completeness(TypedDict):
    """Which parts of the provenance are claimed to be complete."""

    arguments: bool
    environment: bool
    materials: bool


class SLSAV01Metadata(TypedDict):
    """Timing and completeness information about the build."""

    buildStartedOn: str  # noqa: N815
    buildFinishedOn: str  # noqa: N815
    completeness: SLSAV01Completeness
    reproducible: bool


class SLSAV01Material(TypedDict):
    """A source input of the build."""

    uri: str
    digest: dict[str, str]


class SLSAV01Predicate(TypedDict):
    """A SLSA v0.1 provenance predicate.

    Specification: https://slsa.dev/provenance/v0.1.
    """

    builder: SLSAV01Builder
    recipe: SLSAV01Recipe
    metadata: SLSAV01Metadata
    materials: list[SLSAV01Material]


def format_timestamp(moment: datetime) -> str:
    """Format a point in time as an RFC 3339 UTC timestamp.

    Naive datetimes are taken to be in UTC.

    Examples
    --------
    >>> format_timestamp(datetime(2021, 10, 13, 4, 39, 11))
    '2021-10-13T04:39:11Z'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    if moment.microsecond:
        return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def make_subject(name: str, sha256: str) -> InTotoV01Subject:
    """Return a subject identified by its SHA-256 digest."""
    return {"name": name, "digest": {"sha256": sha256}}


def make_provenance_statement(
    subjects: Iterable[InTotoV01Subject],
    builder_id: str,
    recipe: SLSAV01Recipe,
    started_on: datetime,
    finished_on: datetime,
    completeness: SLSAV01Completeness,
    materials: list[SLSAV01Material],
    reproducible: bool = False,
) -> InTotoV01Statement:
    """Assemble an in-toto v0.1 statement carrying a SLSA v0.1 provenance predicate.

    Parameters
    ----------
    subjects : Iterable[InTotoV01Subject]
        The artifacts the provenance is about. They are sorted by name.
    builder_id : str
        The URI identifying the trust architecture that produced the statement.
    recipe : SLSAV01Recipe
        The build recipe.
    started_on : datetime
        When the build started.
    finished_on : datetime
        When the build finished.
    completeness : SLSAV01Completeness
        The completeness claims of the predicate.
    materials : list[SLSAV01Material]
        The source inputs of the build.
    reproducible : bool
        Whether rerunning the recipe is claimed to yield bit-for-bit identical output.

    Returns
    -------
    InTotoV01Statement
        The statement.

    Raises
    ------
    ValidateInTotoPayloadError
        If there is no subject.
    """
    subject_list = sorted(subjects, key=lambda subject: subject["name"])
    if not subject_list:
        raise ValidateInTotoPayloadError("A provenance statement needs at least one subject.")

    predicate: SLSAV01Predicate = {
        "builder": {"id": builder_id},
        "recipe": recipe,
        "metadata": {
            "buildStartedOn": format_timestamp(started_on),
            "buildFinishedOn": format_timestamp(finished_on),
            "completeness": completeness,
            "reproducible": reproducible,
        },
        "materials": materials,
    }
    return {
        "_type": STATEMENT_TYPE,
        "subject": subject_list,
        "predicateType": PREDICATE_TYPE,
        "predicate": predicate,  # type: ignore[typeddict-item]
    }


def validate_intoto_statement(payload: dict[str, JsonType]) -> TypeGuard[InTotoV01Statement]:
    """Validate the statement of an in-toto attestation.

    Specification: https://github.com/in-toto/attestation/tree/main/spec/v0.1.0#statement.

    Parameters
    ----------
    payload : dict[str, JsonType]
        The JSON statement after being base64-decoded.

    Returns
    -------
    TypeGuard[InTotoV01Statement]
        ``True`` if the attestation statement is valid, in which case its type is narrowed to an
        ``InTotoV01Statement``.

    Raises
    ------
    ValidateInTotoPayloadError
        When the payload does not follow the expected schema.
    """
    type_ = payload.get("_type")
    if type_ is None:
        raise ValidateInTotoPayloadError(
            "The attribute '_type' of the in-toto statement is missing.",
        )
    if type_ != STATEMENT_TYPE:
        raise ValidateInTotoPayloadError(
            f"The value of attribute '_type' in the in-toto statement must be: '{STATEMENT_TYPE}'",
        )

    subjects_payload = payload.get("subject")
    if not isinstance(subjects_payload, list) or not subjects_payload:
        raise ValidateInTotoPayloadError(
            "The value of attribute 'subject' in the in-toto statement is invalid: expecting a non-empty list.",
        )

    for subject_json in subjects_payload:
        validate_intoto_subject(subject_json)

    predicate_type = payload.get("predicateType")
    if not isinstance(predicate_type, str):
        raise ValidateInTotoPayloadError(
            "The value of attribute 'predicateType' in the in-toto statement is invalid: expecting a string."
        )

    predicate = payload.get("predicate")
    if predicate is not None and not isinstance(predicate, dict):
        raise ValidateInTotoPayloadError(
            "The value attribute 'predicate' in the in-toto statement is invalid: expecting an object.",
        )

    return True


def validate_intoto_subject(subject: JsonType) -> TypeGuard[InTotoV01Subject]:
    """Validate a single subject in the in-toto statement.

    Raises
    ------
    ValidateInTotoPayloadError
        When the subject does not follow the expected schema.
    """
    if not isinstance(subject, dict):
        raise ValidateInTotoPayloadError(
            "A subject in the in-toto statement is invalid: expecting an object.",
        )

    name = subject.get("name")
    if not isinstance(name, str) or not name:
        raise ValidateInTotoPayloadError("The value of the attribute 'name' is invalid for a subject.")

    digest_set = subject.get("digest")
    if not isinstance(digest_set, dict) or not is_valid_digest_set(digest_set):
        raise ValidateInTotoPayloadError(
            "The value of the attribute 'digest' is invalid for a subject.",
        )

    return True


def is_valid_digest_set(digest: dict[str, JsonType]) -> TypeGuard[dict[str, str]]:
    """Return True if every value of the digest set is a string.

    Specification for the digest set:
    https://github.com/in-toto/attestation/blob/main/spec/v0.1.0/field_types.md#DigestSet.
    """
    return all(isinstance(value, str) for value in digest.values())
