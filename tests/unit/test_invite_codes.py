"""Invite code generation."""

from streakboard.organizations.invite_codes import (
    INVITE_CHARSET,
    INVITE_LENGTH,
    generate_invite_code,
    normalize_invite_code,
)
from streakboard.organizations.service import slugify


class TestInviteCodes:
    def test_length_and_alphabet(self):
        for _ in range(200):
            code = generate_invite_code()
            assert len(code) == INVITE_LENGTH
            assert set(code) <= set(INVITE_CHARSET)

    def test_no_ambiguous_glyphs(self):
        assert not {"0", "O", "1", "I"} & set(INVITE_CHARSET)

    def test_codes_vary(self):
        assert len({generate_invite_code() for _ in range(50)}) > 45

    def test_normalize(self):
        assert normalize_invite_code("  abcd2345 ") == "ABCD2345"


class TestSlugify:
    def test_basic(self):
        assert slugify("Acme Reading Club") == "acme-reading-club"

    def test_punctuation_collapses(self):
        assert slugify("  C++ & Rust!! ") == "c-rust"

    def test_empty(self):
        assert slugify("!!!") == ""
