# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the request handlers of the provenance service.

The handlers are independent of any web framework: they take the request parameters, run the matching
pipeline, sign and store the resulting attestation, and return the status and body of the response.
Only this layer turns errors into HTTP-equivalent status codes.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from packaging.utils import InvalidWheelFilename, parse_wheel_filename
from packaging.version import InvalidVersion, Version

from provenator.config.service_config import ServiceConfig
from provenator.errors import (
    AttestationNotFoundError,
    BadRequestError,
    ErrorKind,
    InternalError,
    NotFoundError,
    ProvenatorError,
)
from provenator.intoto.dsse import DSSEEnvelope, EnvelopeSigner
from provenator.intoto.encoder_decoder import canonicalize
from provenator.intoto.errors import InTotoAttestationError
from provenator.intoto.v01 import InTotoV01Statement, format_timestamp, validate_intoto_statement
from provenator.monitor.build_monitor import BuildMonitor, MonitorOptions
from provenator.policy.policy import PolicyDocument
from provenator.policy.policy_store import PolicyStore
from provenator.rebuild.rebuilder import Rebuilder, RebuilderOptions
from provenator.service.authorization import authorize_upload
from provenator.service.interfaces import AttestationStore
from provenator.util import JsonType

logger: logging.Logger = logging.getLogger(__name__)

ATTESTATIONS = "attestations"
REBUILDS = "rebuilds"
MONITORS = "monitors"


class AuditStatus:
    """The outcomes recorded in the audit collections."""

    SUCCESS = "success"

    #: Nothing to attest was found.
    FAILURE = "failure"

    #: The rebuild ran and its output differs from the published artifact.
    FAILED = "failed"

    ERROR = "error"


@dataclass
class AuditRecord:
    """The audit record written for every rebuild or monitor request."""

    package: str
    version: str
    policy_version: str
    executor_version: str
    start_time: datetime
    end_time: datetime | None = None
    status: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, JsonType]:
        """Return the stored representation of the record."""
        record: dict[str, JsonType] = asdict(self)
        record["start_time"] = format_timestamp(self.start_time)
        record["end_time"] = format_timestamp(self.end_time or self.start_time)
        return record


@dataclass(frozen=True)
class HandlerResponse:
    """The status code and body of a handled request."""

    status_code: int
    body: dict[str, JsonType] = field(default_factory=dict)


def attestation_key(package: str, version: str) -> str:
    """Return the key an attestation is stored under.

    Examples
    --------
    >>> attestation_key("idna", "3.3")
    'idna!3.3'
    """
    return f"{package}!{version}"


def error_response(error: ProvenatorError) -> HandlerResponse:
    """Return the response reporting an error."""
    return HandlerResponse(status_code=error.kind.status_code, body={"error": error.code, "message": str(error)})


def audit_status(error: ProvenatorError) -> str:
    """Return the audit status of a request that ended in an error."""
    if error.kind is ErrorKind.NOT_FOUND:
        return AuditStatus.FAILURE
    if error.kind is ErrorKind.CONFLICT:
        return AuditStatus.FAILED
    return AuditStatus.ERROR


def built_version(statement: InTotoV01Statement, requested: str) -> str:
    """Return the version of the first wheel among the subjects of a statement.

    Falls back to the requested version when no subject is a wheel.

    Raises
    ------
    BadRequestError
        If the built version differs from the requested one, or no version can be determined.
    """
    version = ""
    for subject in statement["subject"]:
        filename = subject["name"].rsplit("/", 1)[-1]
        if not filename.endswith(".whl"):
            continue
        try:
            _, parsed, _, _ = parse_wheel_filename(filename)
        except (InvalidWheelFilename, InvalidVersion):
            parts = filename.split("-")
            version = parts[1] if len(parts) > 1 else ""
        else:
            version = str(parsed)
        break

    if not version:
        version = requested
    if not version:
        raise BadRequestError("Cannot determine the version of the attested release.")
    if requested and not _same_version(version, requested):
        raise BadRequestError(f"Requested version {requested} differs from the built version {version}.")
    return requested or version


def _same_version(left: str, right: str) -> bool:
    try:
        return Version(left) == Version(right)
    except InvalidVersion:
        return left == right


class Handlers:
    """The rebuild, monitor, upload and get request handlers."""

    def __init__(
        self,
        policy_store: PolicyStore,
        rebuilder: Rebuilder,
        build_monitor: BuildMonitor,
        signer: EnvelopeSigner,
        store: AttestationStore,
        config: ServiceConfig,
    ) -> None:
        self.policy_store = policy_store
        self.rebuilder = rebuilder
        self.build_monitor = build_monitor
        self.signer = signer
        self.store = store
        self.config = config

    def handle_rebuild(
        self,
        scope: str,
        package: str,
        version: str = "",
        ref: str = "",
        cancel_event: threading.Event | None = None,
    ) -> HandlerResponse:
        """Rebuild a release, then sign and store its provenance."""
        try:
            policy = self._fetch_policy(scope, package, ref)
            if policy.rebuilder is None:
                raise BadRequestError("Policy does not define rebuilder")
        except ProvenatorError as error:
            return error_response(error)

        record = self._start_record(package, version, policy)
        try:
            statements = self.rebuilder.rebuild(
                package,
                policy.repo,
                RebuilderOptions(package_root=policy.rebuilder.package_root, version=version),
                cancel_event=cancel_event,
            )
            if len(statements) != 1:
                raise InternalError(f"Expected one rebuilt release file, got {len(statements)}.")
            response = self._attest(package, version, statements[0], record)
        except ProvenatorError as error:
            response = self._fail(record, error)
        self._write_record(REBUILDS, record)
        return response

    def handle_monitor(self, scope: str, package: str, version: str = "", ref: str = "") -> HandlerResponse:
        """Find the CI run that built a release, then sign and store its provenance."""
        try:
            policy = self._fetch_policy(scope, package, ref)
            if policy.build_monitor is None:
                raise BadRequestError("Policy does not define build_monitor")
        except ProvenatorError as error:
            return error_response(error)

        record = self._start_record(package, version, policy)
        try:
            options = MonitorOptions(github_actions=policy.build_monitor.github_actions, version=version)
            statement = self.build_monitor.monitor_build(package, policy.repo, options)
            if statement is None:
                raise NotFoundError("No build found")
            response = self._attest(package, version, statement, record)
        except ProvenatorError as error:
            response = self._fail(record, error)
        self._write_record(MONITORS, record)
        return response

    def handle_upload(
        self, authorization: str | None, scope: str, package: str, version: str, provenance: str
    ) -> HandlerResponse:
        """Sign and store provenance uploaded by an authorized builder."""
        try:
            policy = self._fetch_policy(scope, package, "")
            if policy.provenance_upload is None:
                raise BadRequestError("Policy does not define provenance_upload")
            identity = authorize_upload(authorization, policy.provenance_upload)
            if not version:
                raise BadRequestError("No version given for the uploaded provenance.")

            try:
                statement = json.loads(provenance)
            except (json.JSONDecodeError, TypeError) as error:
                raise BadRequestError("Malformed provenance") from error
            if not isinstance(statement, dict):
                raise BadRequestError("Malformed provenance")
            validate_intoto_statement(statement)

            self._store_attestation(package, version, statement, overwrite=self.config.allow_upload_overwrite)
        except ProvenatorError as error:
            logger.info("Upload for %s %s rejected: %s", package, version, error)
            return error_response(error)

        logger.info("Stored provenance for %s %s uploaded by %s.", package, version, identity)
        return HandlerResponse(status_code=200, body={"package": package, "version": version})

    def handle_get(self, scope: str, package: str, version: str) -> HandlerResponse:
        """Return the stored attestation of a release.

        The scope is not part of the storage key.
        """
        logger.debug("Get attestation of %s/%s %s.", scope, package, version)
        try:
            document = self.store.get(ATTESTATIONS, attestation_key(package, version))
            if document is None:
                raise AttestationNotFoundError(f"No attestation for {package} {version}.")
            return HandlerResponse(status_code=200, body=self._check_attestation(document))
        except ProvenatorError as error:
            return error_response(error)

    def _fetch_policy(self, scope: str, package: str, ref: str) -> PolicyDocument:
        return self.policy_store.fetch_policy(scope, package, ref or None)

    def _start_record(self, package: str, version: str, policy: PolicyDocument) -> AuditRecord:
        return AuditRecord(
            package=package,
            version=version,
            policy_version=policy.digest,
            executor_version=self.config.executor_version,
            start_time=datetime.now(timezone.utc),
        )

    def _attest(
        self, package: str, requested: str, statement: InTotoV01Statement, record: AuditRecord
    ) -> HandlerResponse:
        version = built_version(statement, requested)
        record.version = version
        self._store_attestation(package, version, statement, overwrite=True)
        record.end_time = datetime.now(timezone.utc)
        record.status = AuditStatus.SUCCESS
        return HandlerResponse(status_code=200, body={"package": package, "version": version})

    def _fail(self, record: AuditRecord, error: ProvenatorError) -> HandlerResponse:
        logger.error("%s %s: %s", record.package, record.version or "<latest>", error)
        record.end_time = datetime.now(timezone.utc)
        record.status = audit_status(error)
        record.message = str(error)
        return error_response(error)

    def _store_attestation(self, package: str, version: str, statement: dict, overwrite: bool) -> None:
        payload = canonicalize(statement)
        envelope = self.signer.sign(payload)
        self.store.put(
            ATTESTATIONS,
            attestation_key(package, version),
            {
                "package": package,
                "version": version,
                "raw": payload.decode("utf-8"),
                "dsse": envelope.to_json(),
            },
            overwrite=overwrite,
        )

    def _write_record(self, collection: str, record: AuditRecord) -> None:
        try:
            self.store.add(collection, record.to_dict())
        except ProvenatorError as error:
            logger.error("Failed to write the %s record of %s: %s", collection, record.package, error)

    @staticmethod
    def _check_attestation(document: dict[str, JsonType]) -> dict[str, JsonType]:
        fields = {key: document.get(key) for key in ("package", "version", "raw", "dsse")}
        if not all(isinstance(value, str) for value in fields.values()):
            raise InternalError("The stored attestation is incomplete.")
        try:
            statement = json.loads(str(fields["raw"]))
            if not isinstance(statement, dict):
                raise InternalError("The stored statement is not a JSON object.")
            validate_intoto_statement(statement)
            if canonicalize(statement) != str(fields["raw"]).encode("utf-8"):
                raise InternalError("The stored statement is not in canonical form.")
            DSSEEnvelope.from_json(str(fields["dsse"]))
        except json.JSONDecodeError as error:
            raise InternalError("The stored statement is not valid JSON.") from error
        except InTotoAttestationError as error:
            raise InternalError(f"The stored attestation is invalid: {error}") from error
        return fields
