# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS HTTP Auth provides stand-alone SigV4 and SigV4A request signing for use with
HTTP tools such as AioHTTP, Curl, Requests, urllib3, etc."""

from __future__ import annotations

from ._http import AWSRequest, Field, Fields, URI
from ._identity import AWSCredentialIdentity
from .options import (
    UNSIGNED_PAYLOAD,
    AllowList,
    DenyList,
    PayloadSentinel,
    SignatureType,
    SignedHeaderRules,
    SignerOptions,
)
from .signers import (
    SigV4ASigner,
    SigV4ASigningProperties,
    SigV4Signer,
    SigV4SigningProperties,
)

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "UNSIGNED_PAYLOAD",
    "URI",
    "AWSCredentialIdentity",
    "AWSRequest",
    "AllowList",
    "DenyList",
    "Field",
    "Fields",
    "PayloadSentinel",
    "SigV4ASigner",
    "SigV4ASigningProperties",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SignatureType",
    "SignedHeaderRules",
    "SignerOptions",
)
