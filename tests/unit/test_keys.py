# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import hmac
from hashlib import sha256

import pytest
from aws_http_auth import keys
from aws_http_auth.exceptions import (
    InsufficientEntropyException,
    KeyDerivationExhaustedException,
)
from aws_http_auth.keys import (
    P256_ORDER,
    derive_ecdsa_key_pair,
    derive_signing_key,
    ecdsa_sign,
)
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

ACCESS_KEY = "AKISORANDOMAASORANDOM"
SECRET_KEY = "q+jcrXGc+0zWN6uzclKVhvMmUsIfRPa4rlRandom"


class FixedRandom:
    """Returns queued chunks in order, repeating the last one."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = list(chunks)
        self.reads = 0

    def read(self, size: int | None = -1, /) -> bytes:
        self.reads += 1
        if len(self.chunks) > 1:
            return self.chunks.pop(0)
        return self.chunks[0]


class ExplodingRandom:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def read(self, size: int | None = -1, /) -> bytes:
        raise self.error


def test_derive_signing_key() -> None:
    def _hmac(key: bytes, msg: str) -> bytes:
        return hmac.new(key, msg.encode(), sha256).digest()

    expected = _hmac(
        _hmac(_hmac(_hmac(b"AWS4SECRET", "20150830"), "us-east-1"), "iam"),
        "aws4_request",
    )
    assert derive_signing_key("SECRET", "20150830", "us-east-1", "iam") == expected


def test_derive_signing_key_is_scoped() -> None:
    key = derive_signing_key("SECRET", "20150830", "us-east-1", "iam")
    assert key != derive_signing_key("SECRET", "20150831", "us-east-1", "iam")
    assert key != derive_signing_key("SECRET", "20150830", "us-west-2", "iam")
    assert key != derive_signing_key("SECRET", "20150830", "us-east-1", "s3")


def test_derive_ecdsa_key_pair() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    public_numbers = private_key.public_key().public_numbers()

    assert isinstance(private_key.curve, ec.SECP256R1)
    assert private_key.private_numbers().private_value == int(
        "7fd3bd010c0d9c292141c2b77bfbde1042c92e6836fff749d1269ec890fca1bd", 16
    )
    assert public_numbers.x == int(
        "15d242ceebf8d8169fd6a8b5a746c41140414c3b07579038da06af89190fffcb", 16
    )
    assert public_numbers.y == int(
        "0515242cedd82e94799482e4c0514b505afccf2c0c98d6a553bf539f424c5ec0", 16
    )


def test_derive_ecdsa_key_pair_is_deterministic() -> None:
    first = derive_ecdsa_key_pair("AKID", "SECRET").private_numbers().private_value
    second = derive_ecdsa_key_pair("AKID", "SECRET").private_numbers().private_value
    other = derive_ecdsa_key_pair("AKID2", "SECRET").private_numbers().private_value
    assert first == second
    assert first != other


def test_derive_ecdsa_key_pair_exhausted(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[bytes] = []

    def _rejected_candidate(key: bytes, msg: bytes) -> bytes:
        calls.append(msg)
        return (P256_ORDER - 1).to_bytes(32, "big")

    monkeypatch.setattr(keys, "_hmac_sha256", _rejected_candidate)
    with pytest.raises(KeyDerivationExhaustedException):
        derive_ecdsa_key_pair("AKID", "SECRET")
    # one candidate per counter value 1..255
    assert len(calls) == 255
    assert [msg[-5] for msg in calls] == list(range(1, 256))


def test_ecdsa_sign_verifies() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    message = b"AWS4-ECDSA-P256-SHA256\n19700101T000000Z\n"
    signature = ecdsa_sign(private_key, message)

    private_key.public_key().verify(signature, message, ec.ECDSA(hashes.SHA256()))
    with pytest.raises(InvalidSignature):
        private_key.public_key().verify(
            signature, message + b"x", ec.ECDSA(hashes.SHA256())
        )


def test_ecdsa_sign_with_fixed_randomness_is_deterministic() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    nonce = (12345).to_bytes(32, "big")
    first = ecdsa_sign(private_key, b"message", FixedRandom(nonce))
    second = ecdsa_sign(private_key, b"message", FixedRandom(nonce))
    assert first == second

    r, s = decode_dss_signature(first)
    # k is the candidate plus one
    k = 12346
    expected_r = (
        ec.derive_private_key(k, ec.SECP256R1()).public_key().public_numbers().x
        % P256_ORDER
    )
    assert r == expected_r
    assert 0 < s < P256_ORDER


def test_ecdsa_sign_retries_out_of_range_nonce() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    random = FixedRandom(b"\xff" * 32, (7).to_bytes(32, "big"))
    signature = ecdsa_sign(private_key, b"message", random)

    assert random.reads == 2
    private_key.public_key().verify(signature, b"message", ec.ECDSA(hashes.SHA256()))


def test_ecdsa_sign_propagates_random_failure() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    error = OSError("random source boom")
    with pytest.raises(OSError) as exc_info:
        ecdsa_sign(private_key, b"message", ExplodingRandom(error))
    assert exc_info.value is error


def test_ecdsa_sign_short_read() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    with pytest.raises(InsufficientEntropyException):
        ecdsa_sign(private_key, b"message", FixedRandom(b"\x01" * 16))


def test_ecdsa_sign_gives_up_without_usable_nonce() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    with pytest.raises(InsufficientEntropyException):
        ecdsa_sign(private_key, b"message", FixedRandom(b"\xff" * 32))



class RecordingKey:
    """Wraps a private key and records backend signing calls."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        self.private_key = private_key
        self.algorithms: list[ec.EllipticCurveSignatureAlgorithm] = []

    def sign(
        self, data: bytes, signature_algorithm: ec.EllipticCurveSignatureAlgorithm
    ) -> bytes:
        self.algorithms.append(signature_algorithm)
        return self.private_key.sign(data, signature_algorithm)

    def private_numbers(self) -> ec.EllipticCurvePrivateNumbers:
        raise AssertionError("the private scalar should not be read")


def test_ecdsa_sign_defaults_to_backend_signing() -> None:
    private_key = derive_ecdsa_key_pair(ACCESS_KEY, SECRET_KEY)
    recording_key = RecordingKey(private_key)
    signature = ecdsa_sign(recording_key, b"message")  # type: ignore[arg-type]

    assert len(recording_key.algorithms) == 1
    assert isinstance(recording_key.algorithms[0].algorithm, hashes.SHA256)
    private_key.public_key().verify(signature, b"message", ec.ECDSA(hashes.SHA256()))
