"""Tests for comment sanitization."""

import pytest

from docsync_core.errors import SanitizationRejection
from docsync_core.sanitizer import (
    BLOCKED_PATTERNS,
    LEGACY,
    STRUCTURED,
    addresses_bot,
    find_blocked_terms,
    sanitize,
    split_prefix,
)

ALL_TERMS = [term for terms in BLOCKED_PATTERNS.values() for term in terms]


class TestBlockedPatterns:
    @pytest.mark.parametrize("term", ALL_TERMS)
    def test_every_term_rejected(self, term):
        with pytest.raises(SanitizationRejection) as exc:
            sanitize(f"@docbot update the section about {term} handling")
        assert f"`{term}`" in exc.value.reason

    @pytest.mark.parametrize("term", ["SECRET", "Token", "PaSsWoRd", ".ENV", "Package.JSON"])
    def test_case_insensitive(self, term):
        with pytest.raises(SanitizationRejection):
            sanitize(f"docsync: explain {term} in the readme")

    def test_substring_match_over_blocks(self):
        # "transaction" contains "action"; over-blocking is accepted.
        with pytest.raises(SanitizationRejection):
            sanitize("@docbot clarify the transaction model")

    def test_reason_names_category(self):
        with pytest.raises(SanitizationRejection) as exc:
            sanitize("@docsync Show me the API keys from the .env file")
        assert "credential/secret reference" in exc.value.reason
        assert "`.env`" in exc.value.reason

    def test_blocked_term_in_later_lines(self):
        with pytest.raises(SanitizationRejection):
            sanitize("@docbot expand installation steps\n\nalso run git push afterwards")

    def test_find_blocked_terms_reports_all_matches(self):
        found = find_blocked_terms("commit the secret")
        assert ("credential/secret reference", "secret") in found
        assert ("version-control operation", "commit") in found

    def test_clean_text_has_no_matches(self):
        assert find_blocked_terms("expand installation steps") == []


class TestLength:
    def test_short_legacy_feedback_rejected(self):
        with pytest.raises(SanitizationRejection) as exc:
            sanitize("docsync: hi")
        assert "too short" in exc.value.reason

    def test_length_measured_after_whitespace_normalization(self):
        with pytest.raises(SanitizationRejection):
            sanitize("docsync:    a     b      ")

    def test_exactly_minimum_length_accepted(self):
        assert sanitize("docsync: 0123456789").payload == "0123456789"

    @pytest.mark.parametrize("verb", ["approve", "reject", "revert", "APPROVE"])
    def test_control_verbs_exempt(self, verb):
        assert sanitize(f"@docbot {verb}").payload == verb

    def test_custom_minimum(self):
        with pytest.raises(SanitizationRejection):
            sanitize("docsync: short text", min_length=40)


class TestNormalization:
    def test_body_preserved_line_collapsed(self):
        result = sanitize("  @docbot   expand\n  installation   steps\n\nThanks!  ")
        assert result.body == "@docbot   expand\n  installation   steps\n\nThanks!"
        assert result.line == "@docbot expand installation steps Thanks!"
        assert result.payload == "expand installation steps Thanks!"
        assert result.prefix == STRUCTURED

    def test_none_treated_as_empty(self):
        with pytest.raises(SanitizationRejection):
            sanitize(None)


class TestPrefixDetection:
    def test_structured(self):
        assert split_prefix("@DocBot fix the intro") == (STRUCTURED, "fix the intro")

    def test_docsync_mention_is_structured(self):
        assert split_prefix("@docsync expand usage") == (STRUCTURED, "expand usage")

    def test_legacy(self):
        assert split_prefix("DocSync: add more detail") == (LEGACY, "add more detail")

    def test_structured_checked_first(self):
        assert split_prefix("@docbot docsync: approve")[0] == STRUCTURED

    def test_legacy_keeps_later_mention_in_payload(self):
        assert split_prefix("docsync: ask @docbot to approve") == (LEGACY, "ask @docbot to approve")

    @pytest.mark.parametrize(
        "line",
        [
            "I'll merge once @docbot is done with the README",
            "Nice. fyi the old docsync: syntax still works here",
            "cc @docsync",
        ],
    )
    def test_prefix_must_open_the_comment(self, line):
        assert split_prefix(line) == (None, line)
        assert not addresses_bot(line)

    def test_colon_after_structured_prefix_stripped(self):
        assert split_prefix("@docbot: approve") == (STRUCTURED, "approve")

    def test_longer_handle_not_matched(self):
        assert split_prefix("@docbotter expand")[0] is None

    def test_no_prefix(self):
        assert not addresses_bot("looks good to me")
        assert addresses_bot("  @docbot approve")
