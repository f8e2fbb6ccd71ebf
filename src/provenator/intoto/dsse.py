# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module wraps canonical in-toto payloads into signed DSSE envelopes.

For more details, see: https://github.com/secure-systems-lab/dsse/blob/master/protocol.md.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from provenator.config.service_config import SigningConfig
from provenator.errors import SigningError
from provenator.intoto.encoder_decoder import decode_bytes, encode_payload
from provenator.intoto.errors import DecodeIntotoAttestationError
from provenator.service.interfaces import AsymmetricSigner

logger: logging.Logger = logging.getLogger(__name__)

PAYLOAD_TYPE = "application/vnd.in-toto+json"
PAE_PREFIX = "DSSEv1"


def pae(payload_type: str, payload: bytes) -> bytes:
    """Return the pre-authentication encoding of a payload, i.e. the bytes that are signed.

    The payload enters the encoding in its base64 form, as it appears in the envelope.

    Examples
    --------
    >>> pae("application/vnd.in-toto+json", b"abc")
    b'DSSEv1 28 application/vnd.in-toto+json 4 YWJj'
    """
    encoded_payload = encode_payload(payload)
    return (
        f"{PAE_PREFIX} {len(payload_type.encode())} {payload_type} {len(encoded_payload)} {encoded_payload}"
    ).encode()


@dataclass(frozen=True)
class DSSESignature:
    """A signature entry of an envelope."""

    keyid: str

    #: The base64 encoded signature.
    sig: str


@dataclass(frozen=True)
class DSSEEnvelope:
    """A DSSE envelope holding a base64 encoded payload and its signatures."""

    payload_type: str
    payload: str
    signatures: list[DSSESignature] = field(default_factory=list)

    def decoded_payload(self) -> bytes:
        """Return the raw payload."""
        return decode_bytes(self.payload)

    def to_dict(self) -> dict:
        """Return the wire representation of the envelope."""
        return {
            "payloadType": self.payload_type,
            "payload": self.payload,
            "signatures": [{"keyid": signature.keyid, "sig": signature.sig} for signature in self.signatures],
        }

    def to_json(self) -> str:
        """Serialize the envelope to JSON."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, content: str | bytes) -> DSSEEnvelope:
        """Deserialize an envelope.

        Raises
        ------
        DecodeIntotoAttestationError
            If the content is not a well-formed envelope.
        """
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as error:
            raise DecodeIntotoAttestationError("Cannot deserialize the DSSE envelope as JSON.") from error

        if not isinstance(data, dict):
            raise DecodeIntotoAttestationError("The DSSE envelope is not a JSON object.")

        payload_type = data.get("payloadType")
        payload = data.get("payload")
        signatures = data.get("signatures")
        if not isinstance(payload_type, str) or not isinstance(payload, str) or not isinstance(signatures, list):
            raise DecodeIntotoAttestationError("The DSSE envelope misses one of payloadType, payload or signatures.")

        parsed = []
        for signature in signatures:
            if not isinstance(signature, dict) or not isinstance(signature.get("sig"), str):
                raise DecodeIntotoAttestationError("A signature of the DSSE envelope is invalid.")
            parsed.append(DSSESignature(keyid=str(signature.get("keyid", "")), sig=signature["sig"]))

        return cls(payload_type=payload_type, payload=payload, signatures=parsed)


class EnvelopeSigner:
    """Signs canonical payloads with the single configured external key."""

    def __init__(self, signer: AsymmetricSigner, config: SigningConfig) -> None:
        self.signer = signer
        self.config = config

    def sign(self, payload: bytes, payload_type: str = PAYLOAD_TYPE) -> DSSEEnvelope:
        """Sign a canonical payload and wrap it in an envelope.

        Parameters
        ----------
        payload : bytes
            The canonical encoding of the statement.
        payload_type : str
            The media type of the payload.

        Returns
        -------
        DSSEEnvelope
            The envelope holding one signature over the pre-authentication encoding.

        Raises
        ------
        SigningError
            If no key is configured or the external signer fails.
        """
        if not self.config.kms_key:
            raise SigningError("No signing key is configured.")

        try:
            signature = self.signer.asymmetric_sign(self.config.kms_key, pae(payload_type, payload))
        except SigningError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            raise SigningError(f"Cannot sign the payload with {self.config.key_id}: {error}") from error

        logger.debug("Signed %s payload with %s.", payload_type, self.config.key_id)
        return DSSEEnvelope(
            payload_type=payload_type,
            payload=encode_payload(payload),
            signatures=[DSSESignature(keyid=self.config.key_id, sig=encode_payload(signature))],
        )


def verify_envelope(envelope: DSSEEnvelope, verifier: Callable[[str, bytes, bytes], bool]) -> bool:
    """Return True if at least one signature of the envelope is accepted by the verifier.

    Parameters
    ----------
    envelope : DSSEEnvelope
        The envelope to check.
    verifier : Callable[[str, bytes, bytes], bool]
        Called with the key id, the pre-authentication encoding and the raw signature.

    Raises
    ------
    DecodeIntotoAttestationError
        If the payload or a signature is not valid base64.
    """
    message = pae(envelope.payload_type, envelope.decoded_payload())
    for signature in envelope.signatures:
        if verifier(signature.keyid, message, decode_bytes(signature.sig)):
            return True
        logger.debug("Signature of %s was rejected.", signature.keyid)
    return False
