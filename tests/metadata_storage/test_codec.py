"""
Memo Record Codec Tests.

============================================================
PURPOSE
============================================================
Tests for the record layout carried in memos and for reading it
back out of memo program logs.

TEST CATEGORIES:
- Encoding
- Decoding (framed, legacy, malformed)
- Log unwrapping
- Record search

============================================================
"""

import pytest

from chain_client.providers.memory import rust_debug_quote
from metadata_storage.codec import (
    decode_record,
    encode_record,
    find_record,
    unescape_debug_string,
    unwrap_memo_log,
)
from metadata_storage.models import RecordFormat


ADDRESS = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"
OTHER = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def memo_log(text: str) -> str:
    return f"Program log: Memo (len {len(text.encode('utf-8'))}): {rust_debug_quote(text)}"


# ============================================================
# ENCODING TESTS
# ============================================================

class TestEncoding:
    """Tests for encode_record."""

    def test_framed(self):
        """Test framed records carry the UTF-8 byte length."""
        assert encode_record(ADDRESS, "héllo") == f"METADATA:v2:{ADDRESS}:6:héllo"

    def test_legacy(self):
        """Test legacy records have no length."""
        assert encode_record(ADDRESS, "a:b", RecordFormat.LEGACY) == f"METADATA:{ADDRESS}:a:b"


# ============================================================
# DECODING TESTS
# ============================================================

class TestDecoding:
    """Tests for decode_record."""

    def test_framed_with_colons(self):
        """Test colons in content survive."""
        record = decode_record(encode_record(ADDRESS, "a:b:c"))

        assert record.account_address == ADDRESS
        assert record.content == "a:b:c"
        assert record.format == RecordFormat.FRAMED

    def test_framed_ignores_trailing_text(self):
        """Test the length bounds the content."""
        record = decode_record(encode_record(ADDRESS, "abc") + '" trailing')

        assert record.content == "abc"

    def test_framed_empty_content(self):
        """Test a zero-length payload decodes to an empty string."""
        assert decode_record(f"METADATA:v2:{ADDRESS}:0:").content == ""

    def test_legacy_keeps_all_content(self):
        """Test legacy content is everything after the address."""
        record = decode_record(f"METADATA:{ADDRESS}:first:second")

        assert record.content == "first:second"
        assert record.format == RecordFormat.LEGACY

    def test_prefix_text_ignored(self):
        """Test text before the marker is skipped."""
        record = decode_record(f"[8] METADATA:{ADDRESS}:x")

        assert record.account_address == ADDRESS
        assert record.content == "x"

    @pytest.mark.parametrize("text", [
        "no marker here",
        "METADATA:",
        f"METADATA:{ADDRESS}",
        f"METADATA:v2:{ADDRESS}:abc:content",
        f"METADATA:v2:{ADDRESS}:10:short",
        "METADATA:v2::3:abc",
        f"METADATA:v2:{ADDRESS}:\u00b2:x",
        f"METADATA:v2:{ADDRESS}:\u0663:x",
    ])
    def test_malformed(self, text):
        """Test malformed records decode to None."""
        assert decode_record(text) is None

    def test_length_splitting_multibyte_char(self):
        """Test a length that cuts a character in half is malformed."""
        assert decode_record(f"METADATA:v2:{ADDRESS}:1:é") is None


# ============================================================
# LOG UNWRAPPING TESTS
# ============================================================

class TestLogUnwrapping:
    """Tests for memo program log lines."""

    def test_unwrap_quoted(self):
        """Test escaped quotes and newlines are restored."""
        text = 'say "hi"\nbye'

        assert unwrap_memo_log(memo_log(text)) == text

    def test_other_lines_unchanged(self):
        """Test non-memo lines pass through."""
        line = "Program log: Signed by abc"

        assert unwrap_memo_log(line) == line

    def test_unicode_escape(self):
        """Test \\u{..} escapes are decoded."""
        assert unescape_debug_string("bell\\u{7}") == "bell\x07"

    def test_dangling_backslash_kept(self):
        """Test a trailing backslash is kept literally."""
        assert unescape_debug_string("end\\") == "end\\"


# ============================================================
# RECORD SEARCH TESTS
# ============================================================

class TestFindRecord:
    """Tests for find_record."""

    def test_finds_memo_record(self):
        """Test the record is found among other log lines."""
        content = '{"name": "a:b", "quote": "\\""}'
        logs = [
            "Program MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr invoke [1]",
            f"Program log: Signed by {ADDRESS}",
            memo_log(encode_record(ADDRESS, content)),
            "Program MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr success",
        ]

        record = find_record(logs, ADDRESS)

        assert record.content == content

    def test_skips_other_accounts(self):
        """Test records for other addresses are skipped."""
        logs = [
            memo_log(encode_record(OTHER, "not mine")),
            memo_log(encode_record(ADDRESS, "mine")),
        ]

        assert find_record(logs, ADDRESS).content == "mine"
        assert find_record(logs).content == "not mine"

    def test_none_when_absent(self):
        """Test None when no line carries a record."""
        assert find_record(["Program log: hello"], ADDRESS) is None
