"""Tests for pattern_matcher."""

import pytest

from zoiner.pattern_matcher import (
    extract_explicit_name,
    extract_explicit_symbol,
    generate_symbol_from_name,
    is_post_mint_request,
    sanitize_name,
)


class TestPostMintRequest:
    """Test detection of requests to tokenize the post itself."""

    def test_fixed_phrase(self):
        assert is_post_mint_request("mint this post") is True

    def test_fixed_phrase_inside_longer_text(self):
        assert is_post_mint_request("@zoiner please tokenize this cast for me, it's great") is True

    def test_case_insensitive(self):
        assert is_post_mint_request("@zoiner Turn This Into A Token") is True

    def test_short_form_alone(self):
        assert is_post_mint_request("mint this") is True

    def test_short_form_with_mention(self):
        assert is_post_mint_request("@zoiner mint this") is True

    def test_short_form_in_sentence_is_not_a_request(self):
        assert is_post_mint_request("I will mint this later") is False

    def test_short_form_at_token_limit(self):
        assert is_post_mint_request("hey @zoiner mint this") is True
        assert is_post_mint_request("hey there @zoiner mint this") is False

    def test_empty_text(self):
        assert is_post_mint_request("") is False

    def test_image_request_is_not_post_request(self):
        assert is_post_mint_request("@zoiner mint this: Wave Rider, ticker: WAVE") is False


class TestExplicitName:
    """Test name extraction rules."""

    def test_mint_this_content_with_ticker(self):
        text = "mint this content: Sunset Dream, ticker: SUN"
        assert extract_explicit_name(text) == "Sunset Dream"
        assert extract_explicit_symbol(text) == "SUN"

    def test_mint_this_with_ticker(self):
        text = "@zoiner mint this: Wave Rider, ticker: WAVE"
        assert extract_explicit_name(text) == "Wave Rider"
        assert extract_explicit_symbol(text) == "WAVE"

    def test_name_field(self):
        assert extract_explicit_name("@zoiner coin it, name: Ocean Breeze") == "Ocean Breeze"

    def test_quoted_token_called(self):
        assert extract_explicit_name('@zoiner make a token called "Night Owl"') == "Night Owl"

    def test_unquoted_token_called(self):
        assert extract_explicit_name("@zoiner make a coin named Nature") == "Nature"

    def test_create_token_colon(self):
        assert extract_explicit_name("@zoiner create a token: Moss Garden") == "Moss Garden"

    def test_keyword_is_not_a_name(self):
        assert extract_explicit_name("mint this: ticker: SUN") is None

    def test_preserves_case(self):
        assert extract_explicit_name("name: mIxEd CaSe") == "mIxEd CaSe"

    def test_no_name(self):
        assert extract_explicit_name("@zoiner look at this") is None

    def test_unsafe_characters_stripped(self):
        assert extract_explicit_name("name: Star*Dust!") == "StarDust"

    def test_truncated_to_30_characters(self):
        name = extract_explicit_name("name: " + "A" * 40)
        assert name == "A" * 30


class TestExplicitSymbol:
    """Test symbol extraction rules."""

    def test_symbol_field(self):
        assert extract_explicit_symbol("symbol: moon") == "MOON"

    def test_ticker_with_dollar(self):
        assert extract_explicit_symbol("ticker: $glow") == "GLOW"

    def test_leading_dollar_ticker(self):
        assert extract_explicit_symbol("@zoiner coin this $ART please") == "ART"

    def test_ticker_wins_over_dollar(self):
        assert extract_explicit_symbol("$ONE ticker: TWO") == "TWO"

    def test_no_symbol(self):
        assert extract_explicit_symbol("@zoiner hello") is None


class TestGenerateSymbol:
    """Test symbol generation from a name."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Nature", "NATU"),
            ("Ocean Breeze", "OB"),
            ("Sky", "SKY"),
            ("a b c d e f g h i j k l", "ABCDEFGHIJ"),
        ],
    )
    def test_generate(self, name, expected):
        assert generate_symbol_from_name(name) == expected

    def test_empty(self):
        assert generate_symbol_from_name("") == ""


class TestSanitize:
    def test_strips_surrounding_quotes(self):
        assert sanitize_name('"Quoted"') == "Quoted"
