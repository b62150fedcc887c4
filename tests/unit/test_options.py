# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from aws_http_auth import UNSIGNED_PAYLOAD, AllowList, DenyList, SignerOptions
from aws_http_auth.options import (
    SIGV4_TIMESTAMP_FORMAT,
    DefaultHeaderRules,
    SignedHeaderRules,
)


def test_default_options() -> None:
    options = SignerOptions()
    assert options.disable_implicit_payload_hashing is False
    assert options.disable_double_path_escape is False
    assert options.add_payload_hash_header is False
    assert options.disable_unsigned_payload_sentinel is False
    assert options.canonical_time_format == SIGV4_TIMESTAMP_FORMAT
    assert isinstance(options.resolve_header_rules(), DefaultHeaderRules)


def test_unsigned_payload_sentinel_value() -> None:
    assert UNSIGNED_PAYLOAD == "UNSIGNED-PAYLOAD"
    assert str(UNSIGNED_PAYLOAD) == "UNSIGNED-PAYLOAD"


@pytest.mark.parametrize("name", ["content-type", "foo", "user-agent"])
def test_default_rules_sign_nothing_optional(name: str) -> None:
    assert DefaultHeaderRules().is_signed(name) is False


def test_allow_list_is_case_insensitive() -> None:
    rules = AllowList(["Content-Type", "X-Custom"])
    assert rules.is_signed("content-type")
    assert rules.is_signed("x-custom")
    assert not rules.is_signed("user-agent")


def test_deny_list_defaults() -> None:
    rules = DenyList()
    assert rules.is_signed("content-type")
    assert not rules.is_signed("user-agent")
    assert not rules.is_signed("x-amzn-trace-id")


def test_rules_objects_pass_through() -> None:
    rules = AllowList(["foo"])
    assert SignerOptions(header_rules=rules).resolve_header_rules() is rules


def test_callable_rules_are_wrapped() -> None:
    resolved = SignerOptions(
        header_rules=lambda name: name.startswith("x-custom-")
    ).resolve_header_rules()
    assert isinstance(resolved, SignedHeaderRules)
    assert resolved.is_signed("x-custom-foo")
    assert not resolved.is_signed("content-type")


def test_options_are_frozen() -> None:
    options = SignerOptions()
    with pytest.raises(AttributeError):
        options.add_payload_hash_header = True  # type: ignore[misc]
