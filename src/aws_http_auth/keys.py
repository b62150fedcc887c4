# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Key material for SigV4 and SigV4A.

Nothing in this module caches or logs keys. Callers derive keys per signing call and
drop them afterwards.
"""

import hmac
from hashlib import sha256

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from .exceptions import InsufficientEntropyException, KeyDerivationExhaustedException
from .interfaces.io import ByteStream

SIGV4A_ALGORITHM: str = "AWS4-ECDSA-P256-SHA256"

# Order of the NIST P-256 base point.
P256_ORDER: int = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
_P256_SCALAR_BYTES = 32
_P256_SCALAR_BITS = _P256_SCALAR_BYTES * 8

# The external KDF counter is a single byte starting at 1.
_MAX_KDF_COUNTER = 0xFF
_MAX_NONCE_ATTEMPTS = 64


def _hmac_sha256(key: bytes, msg: bytes) -> bytes:
    return hmac.new(key, msg, sha256).digest()


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """Derive the SigV4 signing key scoped to a day, region and service.

    :param secret_key: The secret access key.
    :param date: The scope date as ``YYYYMMDD``.
    :param region: The signing region.
    :param service: The signing name of the service.
    """
    # DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
    # DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
    # DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
    # SigningKey           = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
    k_date = _hmac_sha256(f"AWS4{secret_key}".encode(), date.encode())
    k_region = _hmac_sha256(k_date, region.encode())
    k_service = _hmac_sha256(k_region, service.encode())
    return _hmac_sha256(k_service, b"aws4_request")


def derive_ecdsa_key_pair(
    access_key_id: str, secret_access_key: str
) -> ec.EllipticCurvePrivateKey:
    """Deterministically derive the SigV4A P-256 key pair for a set of credentials.

    Candidates come from the NIST SP 800-108 counter-mode KDF with HMAC-SHA256,
    keyed by ``"AWS4A" + secret_access_key`` with the algorithm name as label and
    the access key ID plus a one byte external counter as context. The first
    candidate ``c`` below ``n - 1`` yields the private scalar ``c + 1``, so the
    scalar is uniform over ``[1, n - 1]``.

    The public point is available from ``.public_key()`` on the returned key.

    :raises KeyDerivationExhaustedException: if every counter value is rejected.
    """
    input_key = f"AWS4A{secret_access_key}".encode()
    for counter in range(1, _MAX_KDF_COUNTER + 1):
        candidate = int.from_bytes(
            _kdf_candidate(input_key, access_key_id, counter), "big"
        )
        if candidate < P256_ORDER - 1:
            return ec.derive_private_key(candidate + 1, ec.SECP256R1())

    raise KeyDerivationExhaustedException(
        f"Unable to derive a SigV4A private key within {_MAX_KDF_COUNTER} attempts."
    )


def _kdf_candidate(input_key: bytes, access_key_id: str, counter: int) -> bytes:
    # Fixed input: i || label || 0x00 || context || L, with a single iteration
    # since one SHA-256 block covers the 256 requested bits.
    fixed_input = b"".join(
        (
            (1).to_bytes(4, "big"),
            SIGV4A_ALGORITHM.encode(),
            b"\x00",
            access_key_id.encode(),
            counter.to_bytes(1, "big"),
            _P256_SCALAR_BITS.to_bytes(4, "big"),
        )
    )
    return _hmac_sha256(input_key, fixed_input)


def ecdsa_sign(
    private_key: ec.EllipticCurvePrivateKey,
    message: bytes,
    random: ByteStream | None = None,
) -> bytes:
    """Sign ``message`` with ECDSA over P-256 and SHA-256.

    Without ``random`` the signature comes from the ``cryptography`` backend, which
    draws its own nonce. A caller-supplied ``random`` provides the nonce instead, and
    exceptions raised by it propagate unchanged and are never retried. That path does
    the scalar arithmetic in Python and isn't constant-time.

    :returns: The ASN.1 DER encoded ``(r, s)`` signature.
    """
    if random is None:
        return private_key.sign(message, ec.ECDSA(hashes.SHA256()))

    d = private_key.private_numbers().private_value
    z = int.from_bytes(sha256(message).digest(), "big")
    for _ in range(_MAX_NONCE_ATTEMPTS):
        k = _read_nonce(random)
        if k is None:
            continue
        # x coordinate of k*G
        x = ec.derive_private_key(k, ec.SECP256R1()).public_key().public_numbers().x
        r = x % P256_ORDER
        if r == 0:
            continue
        s = pow(k, -1, P256_ORDER) * (z + r * d) % P256_ORDER
        if s == 0:
            continue
        return encode_dss_signature(r, s)

    raise InsufficientEntropyException(
        f"Randomness source did not produce a usable nonce in {_MAX_NONCE_ATTEMPTS} "
        "attempts."
    )


def _read_nonce(random: ByteStream) -> int | None:
    data = random.read(_P256_SCALAR_BYTES)
    if len(data) != _P256_SCALAR_BYTES:
        raise InsufficientEntropyException(
            f"Randomness source returned {len(data)} bytes, expected "
            f"{_P256_SCALAR_BYTES}."
        )
    candidate = int.from_bytes(data, "big")
    if candidate >= P256_ORDER - 1:
        return None
    return candidate + 1
