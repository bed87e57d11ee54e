import pytest

from tagkeeper.protection import missing_placeholders, protect, restore
from tagkeeper.structures import ProtectedToken


def test_protect_replaces_tokens_with_placeholders():
    result = protect("[Color:Red]danger[Color:White]")
    assert result.clean_text == "TAG_0dangerTAG_1"
    assert [token.original for token in result.tokens] == ["[Color:Red]", "[Color:White]"]
    assert [token.placeholder for token in result.tokens] == ["TAG_0", "TAG_1"]


def test_restore_after_translation():
    result = protect("[Color:Red]danger[Color:White]")
    assert restore("TAG_0 خطر TAG_1", result.tokens) == "[Color:Red] خطر [Color:White]"


def test_restore_follows_reordered_placeholders():
    result = protect("Press 1[ML] and hold 2[ML] to attack")
    assert result.clean_text == "Press TAG_0 and hold TAG_1 to attack"
    assert restore("Hold TAG_1, then press TAG_0", result.tokens) == "Hold 2[ML], then press 1[ML]"


@pytest.mark.parametrize("text", [
    "[Color:Red]danger[Color:White]",
    "Press 1[ML] and hold 2[ML] to attack",
    "\ue000\ue001 Jump over {target}",
    "<b>Gain</b> 50 EXP (Bonus)",
    "plain sentence",
    "",
])
def test_identity_transform_round_trips(text):
    result = protect(text)
    assert restore(result.clean_text, result.tokens) == text


def test_text_without_tokens_is_untouched():
    result = protect("experience points")
    assert result.clean_text == "experience points"
    assert result.tokens == []


def test_placeholder_followed_by_digit():
    result = protect("{n}5 coins")
    assert result.clean_text == "TAG_05 coins"
    assert restore(result.clean_text, result.tokens) == "{n}5 coins"


def test_double_digit_placeholders():
    text = " ".join(f"{{v{index}}}" for index in range(12))
    result = protect(text)
    assert "TAG_11" in result.clean_text
    assert restore(result.clean_text, result.tokens) == text


def test_restore_is_single_pass():
    result = protect("{TAG_1} and {x}")
    assert result.clean_text == "TAG_0 and TAG_1"
    assert restore(result.clean_text, result.tokens) == "{TAG_1} and {x}"


def test_unknown_placeholder_is_left_literal():
    tokens = [ProtectedToken(0, "[A:B]"), ProtectedToken(1, "{c}")]
    assert restore("TAG_5 and TAG_0", tokens) == "TAG_5 and [A:B]"


def test_missing_placeholders_reports_dropped_tokens():
    result = protect("Press 1[ML] and hold 2[ML]")
    dropped = missing_placeholders("Appuyez TAG_0 et maintenez", result.tokens)
    assert [token.original for token in dropped] == ["2[ML]"]
