"""Tests for the pointer file format."""

import io

import pytest

from lfs_client.errors import InvalidPointerError
from lfs_client.hashing import Oid
from lfs_client.pointer import Pointer

HELLO = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"
CANONICAL = (
    "version https://git-lfs.github.com/spec/v1\n"
    f"oid sha256:{HELLO}\n"
    "size 13\n"
)


class TestEncoding:
    """Pointer text must match git-lfs byte for byte."""

    def test_exact_encoding(self):
        p = Pointer.from_content(b"Hello, World!")
        assert p.encode() == CANONICAL
        assert p.encode_bytes() == CANONICAL.encode("ascii")
        assert str(p) == CANONICAL

    def test_empty_content(self):
        p = Pointer.from_content(b"")
        assert p.size == 0
        assert p.encode().endswith("size 0\n")

    def test_from_stream_matches_from_content(self):
        content = b"x" * 200_000
        assert Pointer.from_stream(io.BytesIO(content)) == Pointer.from_content(content)

    @pytest.mark.parametrize("content", [b"", b"a", b"Hello, World!", bytes(range(256)) * 50])
    def test_parse_inverts_encode(self, content):
        p = Pointer.from_content(content)
        assert Pointer.parse(p.encode_bytes()) == p


class TestParse:
    """Test pointer parsing."""

    def test_parse_canonical(self):
        p = Pointer.parse(CANONICAL.encode())
        assert p.oid == Oid.from_hex(HELLO)
        assert p.size == 13

    def test_parse_legacy_version(self):
        text = CANONICAL.replace("git-lfs.github.com", "hawser.github.com")
        assert Pointer.parse(text.encode()).size == 13

    def test_legacy_version_not_emitted(self):
        text = CANONICAL.replace("git-lfs.github.com", "hawser.github.com")
        assert "git-lfs.github.com" in Pointer.parse(text.encode()).encode()

    def test_tolerates_crlf_and_blank_lines(self):
        text = CANONICAL.replace("\n", "\r\n\r\n")
        assert Pointer.parse(text.encode()).size == 13

    def test_unknown_lines_ignored(self):
        text = CANONICAL + "ext-0-foo sha256:" + "0" * 64 + "\n"
        assert Pointer.parse(text.encode()).size == 13

    def test_uppercase_oid_accepted(self):
        text = CANONICAL.replace(HELLO, HELLO.upper())
        assert Pointer.parse(text.encode()).oid.hex == HELLO

    @pytest.mark.parametrize("text,message", [
        (f"oid sha256:{HELLO}\nsize 13\n", "missing version"),
        ("version https://git-lfs.github.com/spec/v1\nsize 13\n", "missing oid"),
        (f"version https://git-lfs.github.com/spec/v1\noid sha256:{HELLO}\n", "missing size"),
        (CANONICAL.replace("spec/v1", "spec/v2"), "unsupported version"),
        (CANONICAL.replace(HELLO, "abc"), "invalid oid"),
        (CANONICAL.replace("size 13", "size -1"), "invalid size"),
        (CANONICAL.replace("size 13", "size 1e3"), "invalid size"),
        (CANONICAL.replace("size 13", "size abc"), "invalid size"),
        (CANONICAL.replace("size 13", "size 1\u2028junk"), "invalid size"),
        (CANONICAL.replace("size 13", "size 1\x0bjunk"), "invalid size"),
    ])
    def test_invalid_pointers(self, text, message):
        with pytest.raises(InvalidPointerError, match=message):
            Pointer.parse(text.encode())

    def test_oversized_rejected(self):
        with pytest.raises(InvalidPointerError, match="too large"):
            Pointer.parse(CANONICAL.encode() + b"x" * 1024)

    def test_invalid_utf8_rejected(self):
        with pytest.raises(InvalidPointerError, match="UTF-8"):
            Pointer.parse(CANONICAL.encode() + b"\xff\xfe")

    def test_size_range_checked_on_construction(self):
        with pytest.raises(InvalidPointerError):
            Pointer(Oid.from_hex(HELLO), -1)
        with pytest.raises(InvalidPointerError):
            Pointer(Oid.from_hex(HELLO), 2**64)

    def test_oid_type_checked_on_construction(self):
        with pytest.raises(TypeError):
            Pointer(HELLO, 13)


class TestIsPointer:
    """Test the cheap structural check."""

    def test_canonical_is_pointer(self):
        assert Pointer.is_pointer(CANONICAL.encode())

    def test_legacy_is_pointer(self):
        assert Pointer.is_pointer(CANONICAL.replace("git-lfs", "hawser").encode())

    def test_truncated_pointer_still_detected(self):
        assert Pointer.is_pointer(b"version https://git-lfs.github.com/spec/v1\n")

    def test_regular_content_is_not_pointer(self):
        assert not Pointer.is_pointer(b"Hello, World!")
        assert not Pointer.is_pointer(b"")

    def test_oversized_is_not_pointer(self):
        assert not Pointer.is_pointer(CANONICAL.encode() + b" " * 1024)


class TestMatches:
    """Test content matching."""

    def test_matches_own_content(self):
        assert Pointer.from_content(b"abc").matches(b"abc")

    def test_different_content_same_length(self):
        assert not Pointer.from_content(b"abc").matches(b"abd")

    def test_different_length(self):
        assert not Pointer.from_content(b"abc").matches(b"abcd")
