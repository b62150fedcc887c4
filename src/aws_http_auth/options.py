# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Configuration shared by the SigV4 and SigV4A signers."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Protocol, runtime_checkable

SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
"""Full-width time format used for ``X-Amz-Date`` and the string to sign."""

SIGV4_DATE_FORMAT: str = "%Y%m%d"
"""Short time format used in the credential scope."""

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "accept",
    "accept-encoding",
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
)
"""Headers commonly changed by proxies and HTTP clients after signing."""


class SignatureType(Enum):
    """Where the signature and its supporting parameters are transmitted."""

    HEADER = 0
    """Send the signature in the ``Authorization`` header (default)."""

    QUERY_STRING = 1
    """Send the signature as ``X-Amz-*`` query parameters (presigned URLs).

    See https://docs.aws.amazon.com/AmazonS3/latest/API/sigv4-query-string-auth.html
    """


class PayloadSentinel(StrEnum):
    """Literal payload hash values written to the canonical request as-is."""

    UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"


UNSIGNED_PAYLOAD = PayloadSentinel.UNSIGNED_PAYLOAD


@runtime_checkable
class SignedHeaderRules(Protocol):
    """Decides whether a request header is included in the signature.

    ``is_signed`` is always invoked with a lowercase header name. ``host`` and
    ``x-amz-*`` headers are signed regardless of the rules.
    """

    def is_signed(self, name: str) -> bool: ...


class DefaultHeaderRules:
    """Sign only the headers the protocol requires."""

    def is_signed(self, name: str) -> bool:
        return False


class AllowList:
    """Sign the listed headers in addition to the required ones."""

    def __init__(self, names: Iterable[str]) -> None:
        self._names = frozenset(name.lower() for name in names)

    def is_signed(self, name: str) -> bool:
        return name in self._names


class DenyList:
    """Sign every header except the listed ones."""

    def __init__(self, names: Iterable[str] = HEADERS_EXCLUDED_FROM_SIGNING) -> None:
        self._names = frozenset(name.lower() for name in names)

    def is_signed(self, name: str) -> bool:
        return name not in self._names


class _PredicateRules:
    def __init__(self, predicate: Callable[[str], bool]) -> None:
        self._predicate = predicate

    def is_signed(self, name: str) -> bool:
        return bool(self._predicate(name))


@dataclass(kw_only=True, frozen=True)
class SignerOptions:
    """Behavior switches for a signer instance."""

    header_rules: SignedHeaderRules | Callable[[str], bool] | None = None
    """Rules determining which optional headers are signed.

    By default, the signer only includes the minimum required headers: ``Host`` and
    ``X-Amz-*``.
    """

    disable_implicit_payload_hashing: bool = False
    """Use the ``UNSIGNED-PAYLOAD`` sentinel instead of hashing the body when no
    payload hash is provided."""

    disable_double_path_escape: bool = False
    """Escape the canonical path once instead of twice and keep it unnormalized.

    Amazon S3 is an example of a service that requires this setting.
    """

    add_payload_hash_header: bool = False
    """Add the ``X-Amz-Content-Sha256`` header to signed requests.

    Amazon S3 is an example of a service that requires this setting.
    """

    disable_unsigned_payload_sentinel: bool = False
    """Leave the payload hash empty rather than writing ``UNSIGNED-PAYLOAD`` when
    implicit hashing is disabled and no hash is provided."""

    canonical_time_format: str = SIGV4_TIMESTAMP_FORMAT
    """strftime format of ``X-Amz-Date`` and the timestamp in the string to sign."""

    def resolve_header_rules(self) -> SignedHeaderRules:
        rules = self.header_rules
        if rules is None:
            return DefaultHeaderRules()
        if isinstance(rules, SignedHeaderRules):
            return rules
        return _PredicateRules(rules)
