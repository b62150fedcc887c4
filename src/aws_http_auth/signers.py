# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import hmac
from datetime import datetime
from functools import partial
from hashlib import sha256
from typing import Any, Required, TypedDict

from ._http import AWSRequest
from ._v4 import V4SignerBase, resolve_time
from .exceptions import MissingExpectedParameterException
from .interfaces.identity import AWSCredentialsIdentity
from .interfaces.io import ByteStream
from .keys import (
    SIGV4A_ALGORITHM,
    derive_ecdsa_key_pair,
    derive_signing_key,
    ecdsa_sign,
)
from .options import SIGV4_DATE_FORMAT, SignatureType, SignerOptions

__all__ = (
    "SigV4ASigner",
    "SigV4ASigningProperties",
    "SigV4Signer",
    "SigV4SigningProperties",
)


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]
    date: datetime
    payload_hash: bytes | str
    signature_type: SignatureType


class SigV4ASigningProperties(TypedDict, total=False):
    region_set: Required[list[str]]
    service: Required[str]
    date: datetime
    payload_hash: bytes | str
    signature_type: SignatureType


class SigV4Signer(V4SignerBase):
    """Request signer for applying the AWS Signature Version 4 algorithm."""

    algorithm = "AWS4-HMAC-SHA256"

    def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: AWSCredentialsIdentity,
    ) -> AWSRequest:
        """Sign a request with SigV4.

        The request is updated in place and returned.

        :param signing_properties: The configuration to use in signing.
        :param http_request: The request to sign.
        :param identity: The identity to use in signing.
        """
        self._validate_identity(identity=identity)
        region = _required_property(signing_properties, "region")
        service = _required_property(signing_properties, "service")
        timestamp = resolve_time(signing_properties.get("date"))
        date = timestamp.strftime(SIGV4_DATE_FORMAT)

        return self._sign_request(
            http_request=http_request,
            identity=identity,
            timestamp=timestamp,
            scope=self.scope(date=date, region=region, service=service),
            payload_hash=signing_properties.get("payload_hash"),
            signature_type=signing_properties.get(
                "signature_type", SignatureType.HEADER
            ),
            scope_parameters={},
            finalizer=partial(
                self._signature,
                secret_key=identity.secret_access_key,
                date=date,
                region=region,
                service=service,
            ),
        )

    def scope(self, *, date: str, region: str, service: str) -> str:
        """Credential scope of the form ``<date>/<region>/<service>/aws4_request``."""
        return f"{date}/{region}/{service}/aws4_request"

    def _signature(
        self,
        string_to_sign: str,
        *,
        secret_key: str,
        date: str,
        region: str,
        service: str,
    ) -> str:
        """Sign the string to sign.

        In SigV4, a signing key is created that is scoped to a specific region and
        service. The date, region, service and resulting signing key are individually
        hashed, then the composite hash is used to sign the string to sign.
        """
        signing_key = derive_signing_key(secret_key, date, region, service)
        return hmac.new(signing_key, string_to_sign.encode(), sha256).hexdigest()


class SigV4ASigner(V4SignerBase):
    """Request signer for applying the AWS Signature Version 4a algorithm.

    Signatures are ECDSA over P-256, valid in every region of the signed region set.
    """

    algorithm = SIGV4A_ALGORITHM

    def __init__(
        self,
        *,
        options: SignerOptions | None = None,
        random: ByteStream | None = None,
    ) -> None:
        """Initialize the signer.

        :param options: Behavior switches for this signer.
        :param random: Source of the per-signature ECDSA nonce. By default the
            ``cryptography`` backend signs and draws its own nonce.
        """
        super().__init__(options=options)
        self._random = random

    def sign(
        self,
        *,
        signing_properties: SigV4ASigningProperties,
        http_request: AWSRequest,
        identity: AWSCredentialsIdentity,
    ) -> AWSRequest:
        """Sign a request with SigV4A.

        The request is updated in place and returned.

        :param signing_properties: The configuration to use in signing.
        :param http_request: The request to sign.
        :param identity: The identity to use in signing.
        """
        self._validate_identity(identity=identity)
        service = _required_property(signing_properties, "service")
        region_set = _required_property(signing_properties, "region_set")
        if isinstance(region_set, str) or not all(
            isinstance(region, str) and region for region in region_set
        ):
            raise MissingExpectedParameterException(
                f"Region set must be a list of non-empty region names, got {region_set!r}."
            )
        timestamp = resolve_time(signing_properties.get("date"))

        return self._sign_request(
            http_request=http_request,
            identity=identity,
            timestamp=timestamp,
            scope=self.scope(
                date=timestamp.strftime(SIGV4_DATE_FORMAT), service=service
            ),
            payload_hash=signing_properties.get("payload_hash"),
            signature_type=signing_properties.get(
                "signature_type", SignatureType.HEADER
            ),
            scope_parameters={"X-Amz-Region-Set": ",".join(region_set)},
            finalizer=partial(
                self._signature,
                access_key_id=identity.access_key_id,
                secret_access_key=identity.secret_access_key,
            ),
        )

    def scope(self, *, date: str, service: str) -> str:
        """Credential scope of the form ``<date>/<service>/aws4_request``.

        The region is carried by ``X-Amz-Region-Set`` instead.
        """
        return f"{date}/{service}/aws4_request"

    def _signature(
        self, string_to_sign: str, *, access_key_id: str, secret_access_key: str
    ) -> str:
        private_key = derive_ecdsa_key_pair(access_key_id, secret_access_key)
        return ecdsa_sign(private_key, string_to_sign.encode(), self._random).hex()


def _required_property(signing_properties: Any, name: str) -> Any:
    value = signing_properties.get(name)
    if not value:
        raise MissingExpectedParameterException(
            f"Signing properties must contain a non-empty {name!r} value."
        )
    return value
