# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Signing steps shared by every variant of AWS Signature Version 4.

A variant supplies its algorithm name, credential scope, any scope parameters it
transmits alongside the signature, and a finalizer that turns the string to sign
into a signature with its own key material.
"""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from functools import partial
from hashlib import sha256
from typing import ClassVar, TypeAlias
from urllib.parse import parse_qsl, quote, unquote_plus

from ._http import URI, AWSRequest, Field, bracket_host
from .exceptions import (
    AWSSDKWarning,
    MissingExpectedParameterException,
    PayloadRewindException,
    UnseekablePayloadException,
)
from .interfaces.http import Body, FieldPosition
from .interfaces.identity import AWSCredentialsIdentity
from .interfaces.io import ByteStream, SeekableByteStream
from .options import (
    UNSIGNED_PAYLOAD,
    SignatureType,
    SignerOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

_HASH_CHUNK_SIZE = 64 * 1024

# sub-delims, ":" and "@" may appear unencoded in a path segment (RFC 3986)
_PATH_SAFE_CHARS = "/%!$&'()*+,;=:@"
_BARE_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")
_CONSECUTIVE_SLASHES = re.compile(r"/{2,}")

PayloadHash: TypeAlias = bytes | str | None
"""A resolved payload hash: a raw digest, a literal value, or nothing."""


def resolve_time(date: datetime | None) -> datetime:
    """Return the signing time in UTC, defaulting to now.

    Naive datetimes are taken to already be in UTC.
    """
    if date is None:
        return datetime.now(UTC)
    if date.tzinfo is None:
        return date.replace(tzinfo=UTC)
    return date.astimezone(UTC)


class V4SignerBase:
    """Canonicalization, payload hashing and request mutation for v4 signers."""

    algorithm: ClassVar[str]

    def __init__(self, *, options: SignerOptions | None = None) -> None:
        self._options = options if options is not None else SignerOptions()
        self._header_rules = self._options.resolve_header_rules()

    def _sign_request(
        self,
        *,
        http_request: AWSRequest,
        identity: AWSCredentialsIdentity,
        timestamp: datetime,
        scope: str,
        payload_hash: bytes | str | None,
        signature_type: SignatureType,
        scope_parameters: Mapping[str, str],
        finalizer: Callable[[str], str],
    ) -> AWSRequest:
        # Resolve the payload first so a body that can't be hashed leaves the
        # request untouched.
        resolved_hash = format_payload_hash(
            self.resolve_payload_hash(body=http_request.body, payload_hash=payload_hash)
        )
        formatted_time = timestamp.strftime(self._options.canonical_time_format)
        credential = f"{identity.access_key_id}/{scope}"

        self._apply_required_fields(
            request=http_request,
            identity=identity,
            formatted_time=formatted_time,
            payload_hash=resolved_hash,
            signature_type=signature_type,
            scope_parameters=scope_parameters,
        )
        signed_headers = self.signed_headers(http_request=http_request)
        logger.debug(
            "Signing request with %s in %s mode for scope %s, signed headers: %s",
            self.algorithm,
            signature_type.name,
            scope,
            signed_headers,
        )

        if signature_type is SignatureType.QUERY_STRING:
            query_parameters = {
                "X-Amz-Algorithm": self.algorithm,
                "X-Amz-Credential": credential,
                "X-Amz-Date": formatted_time,
                "X-Amz-SignedHeaders": ";".join(signed_headers),
            }
            if identity.session_token:
                query_parameters["X-Amz-Security-Token"] = identity.session_token
            query_parameters.update(scope_parameters)
            self._add_query_parameters(
                request=http_request,
                parameters=query_parameters,
                discard=("X-Amz-Security-Token", "X-Amz-Signature"),
            )

        canonical_request = self.canonical_request(
            http_request=http_request,
            signed_headers=signed_headers,
            payload_hash=resolved_hash,
        )
        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request,
            timestamp=formatted_time,
            scope=scope,
        )
        signature = finalizer(string_to_sign)

        if signature_type is SignatureType.QUERY_STRING:
            self._add_query_parameters(
                request=http_request, parameters={"X-Amz-Signature": signature}
            )
        else:
            http_request.fields.set_field(
                self.generate_authorization_field(
                    credential=credential,
                    signed_headers=signed_headers,
                    signature=signature,
                )
            )
        return http_request

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<credential_scope>
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final signature generated from the canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{self.algorithm} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def _validate_identity(self, *, identity: AWSCredentialsIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, AWSCredentialsIdentity):  # pyright: ignore
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        elif not identity.access_key_id or not identity.secret_access_key:
            raise MissingExpectedParameterException(
                "Signing requires both an access key ID and a secret access key."
            )
        elif identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _apply_required_fields(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        formatted_time: str,
        payload_hash: str,
        signature_type: SignatureType,
        scope_parameters: Mapping[str, str],
    ) -> None:
        fields = request.fields
        # The signed Host must be the one sent, so don't leave it to the client.
        if "Host" not in fields:
            fields.set_field(
                Field(
                    name="Host",
                    values=[self._normalize_host_field(uri=request.destination)],
                )
            )

        if signature_type is SignatureType.HEADER:
            fields.set_field(Field(name="X-Amz-Date", values=[formatted_time]))
            if identity.session_token:
                fields.set_field(
                    Field(name="X-Amz-Security-Token", values=[identity.session_token])
                )
            for name, value in scope_parameters.items():
                fields.set_field(Field(name=name, values=[value]))
        else:
            # These travel in the query string instead.
            for name in ("X-Amz-Date", "X-Amz-Security-Token", *scope_parameters):
                fields.discard(name)

        if payload_hash and self._options.add_payload_hash_header:
            fields.set_field(Field(name="X-Amz-Content-SHA256", values=[payload_hash]))

    def _normalize_host_field(self, *, uri: URI) -> str:
        # userinfo never goes into Host
        host = bracket_host(uri.host)
        if uri.port is None or DEFAULT_PORTS.get(uri.scheme) == uri.port:
            return host
        return f"{host}:{uri.port}"

    def _add_query_parameters(
        self,
        *,
        request: AWSRequest,
        parameters: Mapping[str, str],
        discard: Iterable[str] = (),
    ) -> None:
        """Append parameters to the raw query, keeping existing ones byte-for-byte.

        Existing parameters named in ``parameters`` or ``discard`` are dropped.
        """
        uri = request.destination
        replaced = {*parameters, *discard}
        kept = [
            part
            for part in (uri.query or "").split("&")
            if part and unquote_plus(part.partition("=")[0]) not in replaced
        ]
        added = [
            f"{quote(string=key, safe='')}={quote(string=value, safe='')}"
            for key, value in parameters.items()
        ]
        uri_dict = uri.to_dict()
        uri_dict.update({"query": "&".join(kept + added)})
        request.destination = URI(**uri_dict)

    def signed_headers(self, *, http_request: AWSRequest) -> list[str]:
        """Sorted, lowercased names of the request headers covered by the signature.

        ``host`` and ``x-amz-*`` headers are always included, others only when the
        configured header rules accept them. ``authorization`` never is.
        """
        names = {
            field.name.lower()
            for field in http_request.fields.get_by_type(FieldPosition.HEADER)
        }
        return sorted(name for name in names if self._is_signable_header(name))

    def _is_signable_header(self, field_name: str) -> bool:
        if field_name == "authorization":
            return False
        if field_name == "host" or field_name.startswith("x-amz-"):
            return True
        return self._header_rules.is_signed(field_name)

    def canonical_request(
        self, *, http_request: AWSRequest, signed_headers: list[str], payload_hash: str
    ) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        A SigV4 canonical request is laid out as:
            <HTTPMethod>\n
            <CanonicalURI>\n
            <CanonicalQueryString>\n
            <CanonicalHeaders>\n
            <SignedHeaders>\n
            <HashedPayload>

        :param http_request:
            An AWSRequest to use for generating a SigV4 signature.
        :param signed_headers:
            Lowercase names of the headers to include, as returned by
            :meth:`signed_headers`.
        :param payload_hash:
            The hex encoded payload hash or a literal sentinel value.
        """
        canonical_path = self._format_canonical_path(path=http_request.destination.path)
        canonical_query = self._format_canonical_query(
            query=http_request.destination.query
        )
        canonical_fields = self._format_canonical_fields(
            request=http_request, signed_headers=signed_headers
        )
        return (
            f"{http_request.method.upper()}\n"
            f"{canonical_path}\n"
            f"{canonical_query}\n"
            f"{canonical_fields}\n"
            f"{';'.join(signed_headers)}\n"
            f"{payload_hash}"
        )

    def string_to_sign(
        self, *, canonical_request: str, timestamp: str, scope: str
    ) -> str:
        """The string to sign concatenates the formal identifier of our signing
        algorithm, the signing DateTime, the scope of our credentials, and a hash of
        our previously generated canonical request. This is another checkpoint that
        can be used to ensure we're constructing our signature as intended.

        The string to sign is laid out as:
            Algorithm \n
            RequestDateTime \n
            CredentialScope  \n
            HashedCanonicalRequest

        :param canonical_request:
            String generated from the `canonical_request` method.
        :param timestamp:
            The formatted signing time, as sent in ``X-Amz-Date``.
        :param scope:
            The credential scope of the signing variant.
        """
        return (
            f"{self.algorithm}\n"
            f"{timestamp}\n"
            f"{scope}\n"
            f"{sha256(canonical_request.encode()).hexdigest()}"
        )

    def _format_canonical_path(self, *, path: str | None) -> str:
        if not path:
            return "/"

        escaped_path = _escape_path(path)
        if self._options.disable_double_path_escape:
            return escaped_path

        normalized_path = _remove_dot_segments(escaped_path) or "/"
        return quote(string=normalized_path, safe="/")

    def _format_canonical_query(self, *, query: str | None) -> str:
        if not query:
            return ""

        query_params = parse_qsl(qs=query, keep_blank_values=True)
        query_parts = (
            (quote(string=key, safe=""), quote(string=value, safe=""))
            for key, value in query_params
        )
        # key-value pairs must be in sorted order for their encoded forms.
        return "&".join(f"{key}={value}" for key, value in sorted(query_parts))

    def _format_canonical_fields(
        self, *, request: AWSRequest, signed_headers: list[str]
    ) -> str:
        lines: list[str] = []
        for name in signed_headers:
            values = request.fields[name].values
            value = ",".join(" ".join(val.split()) for val in values)
            lines.append(f"{name}:{value}\n")
        return "".join(lines)

    def resolve_payload_hash(
        self, *, body: Body, payload_hash: bytes | str | None = None
    ) -> PayloadHash:
        """Decide the payload hash for a request body.

        An explicit ``payload_hash`` always wins. Otherwise the body is hashed unless
        implicit hashing is disabled, in which case the ``UNSIGNED-PAYLOAD`` sentinel
        is used.

        :raises TypeError: if the body isn't bytes, a byte stream or an iterable of
            bytes.
        :raises UnseekablePayloadException: if the body would have to be consumed to
            be hashed.
        :raises PayloadRewindException: if a seekable body can't be returned to its
            original offset after hashing.
        """
        if payload_hash:
            return payload_hash

        if self._options.disable_implicit_payload_hashing:
            if self._options.disable_unsigned_payload_sentinel:
                return None
            return UNSIGNED_PAYLOAD

        if body is None:
            return sha256().digest()

        if isinstance(body, str) or not isinstance(body, (ByteStream, Iterable)):
            raise TypeError(
                "Request body must be bytes, a byte stream or an iterable of bytes, "
                f"got {type(body)}."
            )

        if isinstance(body, bytes | bytearray | memoryview):
            return sha256(body).digest()

        if isinstance(body, SeekableByteStream) and _reports_seekable(body):
            return self._hash_seekable_body(body)

        raise UnseekablePayloadException(
            f"Unable to hash a request body of type {type(body)} because it can't be "
            "rewound after reading. Provide an explicit payload hash, a seekable "
            "body, or disable implicit payload hashing."
        )

    def _hash_seekable_body(self, body: SeekableByteStream) -> bytes:
        warnings.warn(
            "Payload signing is enabled. This may result in "
            "decreased performance for large request bodies.",
            AWSSDKWarning,
        )
        position = body.tell()
        checksum = sha256()
        for chunk in iter(partial(body.read, _HASH_CHUNK_SIZE), b""):
            checksum.update(chunk)
        try:
            body.seek(position)
        except (OSError, ValueError) as e:
            raise PayloadRewindException(
                f"Unable to return the request body to offset {position} after "
                "hashing it."
            ) from e
        return checksum.digest()


def format_payload_hash(payload_hash: PayloadHash) -> str:
    """Render a payload hash for the canonical request.

    Raw digests are hex encoded, literal values such as ``UNSIGNED-PAYLOAD`` are
    used verbatim and a missing hash is empty.
    """
    if payload_hash is None:
        return ""
    if isinstance(payload_hash, str):
        return str(payload_hash)
    return payload_hash.hex()


def _reports_seekable(body: SeekableByteStream) -> bool:
    # io objects over pipes and sockets have seek() but report themselves unseekable
    seekable = getattr(body, "seekable", None)
    return bool(seekable()) if callable(seekable) else True


def _escape_path(path: str) -> str:
    """Percent-encode a path into its wire form.

    Existing ``%XX`` escapes are kept, so an encoded ``%2F`` stays distinct from a
    literal ``/``. A ``%`` that doesn't start an escape is encoded.
    """
    path = _BARE_PERCENT.sub("%25", path)
    return quote(string=path, safe=_PATH_SAFE_CHARS)


def _remove_dot_segments(path: str, remove_consecutive_slashes: bool = True) -> str:
    """Removes dot segments from a path per :rfc:`3986#section-5.2.4`.

    Optionally removes consecutive slashes, true by default.
    :param path: The path to modify.
    :param remove_consecutive_slashes: Whether to remove consecutive slashes.
    :returns: The path with dot segments removed.
    """
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    result = "/".join(output)
    if remove_consecutive_slashes:
        result = _CONSECUTIVE_SLASHES.sub("/", result)
    return result
