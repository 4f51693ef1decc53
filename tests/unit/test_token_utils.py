"""Tests for token generation."""

import re

from credential_broker.utils.token_utils import generate_token


class TestGenerateToken:
    def test_token_is_sha256_hex(self):
        assert re.fullmatch(r"[0-9a-f]{64}", generate_token("db1", "s1"))

    def test_same_pair_never_repeats(self):
        tokens = {generate_token("db1", "s1") for _ in range(50)}
        assert len(tokens) == 50

    def test_token_does_not_contain_inputs(self):
        assert "db1" not in generate_token("db1", "s1")
