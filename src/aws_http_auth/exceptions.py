# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class AWSSDKWarning(UserWarning): ...


class BaseAWSSDKException(Exception):
    """Top-level exception to capture SDK-related errors."""


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """Some APIs require specific signing properties to be present."""


class UnseekablePayloadException(BaseAWSSDKException, ValueError):
    """The request body must be hashed but can't be read without consuming it.

    Provide an explicit payload hash, attach a seekable body, or disable implicit
    payload hashing to sign with the ``UNSIGNED-PAYLOAD`` sentinel.
    """


class PayloadRewindException(BaseAWSSDKException, OSError):
    """The request body was hashed but couldn't be returned to its original offset.

    The body has been consumed and the request can't be sent or retried as-is.
    """


class KeyDerivationExhaustedException(BaseAWSSDKException, RuntimeError):
    """No valid SigV4A private key candidate was found within the counter range."""


class InsufficientEntropyException(BaseAWSSDKException, RuntimeError):
    """The randomness source returned fewer bytes than were requested."""
