"""Tests for memo building, parsing and correlation."""

from switchlyswap.memo import MemoCorrelator, build_swap_memo, normalize_hash, parse_memo

FULL_HASH = "ABCD1234567890ABCDEF9F00"


class TestSwapMemo:
    """Tests for SWAP memo construction and parsing."""

    def test_build_swap_memo(self):
        assert build_swap_memo("xlm.xlm", "GDEST") == "SWAP:XLM.XLM:GDEST"

    def test_parse_swap_memo(self):
        parsed = parse_memo("SWAP:XLM.XLM:GDEST")
        assert parsed.action == "SWAP"
        assert parsed.asset == "XLM.XLM"
        assert parsed.address == "GDEST"

    def test_parse_out_memo(self):
        parsed = parse_memo("out:abcd")
        assert parsed.action == "OUT"
        assert parsed.payload == "abcd"

    def test_parse_without_separator(self):
        assert parse_memo("hello") is None
        assert parse_memo("") is None

    def test_normalize_hash(self):
        assert normalize_hash("0xabCD") == "ABCD"
        assert normalize_hash(" abcd ") == "ABCD"


class TestMemoCorrelator:
    """Tests for matching OUT memos against source hashes."""

    def test_truncated_match(self):
        correlator = MemoCorrelator()
        assert correlator.matches("OUT:ABCD1234...9F00", FULL_HASH) is True

    def test_truncated_suffix_mismatch(self):
        correlator = MemoCorrelator()
        assert correlator.matches("OUT:ABCD1234...9F01", FULL_HASH) is False

    def test_exact_match_is_case_and_prefix_insensitive(self):
        correlator = MemoCorrelator()
        assert correlator.matches("OUT:0x" + FULL_HASH.lower(), FULL_HASH)
        assert correlator.matches("OUT:" + FULL_HASH, "0x" + FULL_HASH.lower())

    def test_exact_mismatch(self):
        correlator = MemoCorrelator()
        assert not correlator.matches("OUT:" + FULL_HASH[:-1], FULL_HASH)

    def test_empty_fragments_never_match(self):
        correlator = MemoCorrelator()
        assert not correlator.matches("OUT:...9F00", FULL_HASH)
        assert not correlator.matches("OUT:ABCD1234...", FULL_HASH)
        assert not correlator.matches("OUT:...", FULL_HASH)

    def test_other_tags_ignored(self):
        correlator = MemoCorrelator()
        assert not correlator.matches("REFUND:" + FULL_HASH, FULL_HASH)
        assert not correlator.matches(None, FULL_HASH)
        assert not correlator.matches("OUT:" + FULL_HASH, "")

    def test_refund_tag_when_configured(self):
        correlator = MemoCorrelator(tags=("OUT", "REFUND"))
        assert correlator.matches("REFUND:" + FULL_HASH, FULL_HASH)

    def test_truncate_uses_configured_lengths(self):
        correlator = MemoCorrelator(prefix_length=8, suffix_length=12)
        source = "0x" + "ab" * 32
        display = correlator.truncate(source)

        assert display == "ABABABAB...ABABABABABAB"
        assert correlator.matches(f"OUT:{display}", source)

    def test_truncate_short_hash_unchanged(self):
        correlator = MemoCorrelator(prefix_length=8, suffix_length=12)
        assert correlator.truncate("0xabc") == "ABC"
