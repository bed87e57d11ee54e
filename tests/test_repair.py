import pytest

from tagkeeper.repair import audit_translation, has_required_tokens, preview, repair_locally


def test_missing_tokens_are_inserted_in_order():
    original = "Press 1[ML] and hold 2[ML] to attack"
    translation = "Appuyez et maintenez pour attaquer"
    repaired = repair_locally(original, translation)
    assert repaired == "Appuyez 1[ML] et maintenez 2[ML] pour attaquer"


def test_invented_tag_is_removed_with_its_space():
    original = "Press the button to jump"
    translation = "Appuyez sur [ML:icon icon=btn_a ] pour sauter"
    assert repair_locally(original, translation) == "Appuyez sur pour sauter"


def test_invented_tag_beside_a_kept_tag_of_the_same_family():
    original = "Press 1[ML] to confirm"
    translation = "اضغط 1[ML] [ML:icon icon=btn_a ] للتأكيد"
    assert repair_locally(original, translation) == "اضغط 1[ML] للتأكيد"
    assert audit_translation(original, translation).hallucinated == ("[ML:icon icon=btn_a ]",)


def test_correct_translation_is_returned_unchanged():
    original = "[ML:icon icon=btn_a ] Jump"
    translation = "[ML:icon icon=btn_a ] Sauter"
    assert repair_locally(original, translation) is translation


def test_text_without_tags_is_a_no_op():
    assert repair_locally("Gain 50 EXP", "Gagnez 50 EXP") == "Gagnez 50 EXP"


def test_adjacent_tokens_stay_glued():
    original = "{a}{b} Hello world"
    assert repair_locally(original, "Bonjour le monde") == "{a}{b} Bonjour le monde"


def test_repeated_token_is_counted_per_occurrence():
    original = "{n} and {n}"
    assert not has_required_tokens(original, "{n} et")
    assert repair_locally(original, "{n} et") == "{n} et {n}"


def test_missing_icon_is_restored():
    assert repair_locally("\ue001 Jump", "Saut") == "\ue001 Saut"


def test_present_tokens_are_never_moved():
    original = "[Color:Red]Hot[Color:White]"
    translation = "Chaud [Color:Red]et[Color:White]"
    assert repair_locally(original, translation) == translation


@pytest.mark.parametrize("original,translation", [
    ("Press 1[ML] and hold 2[ML] to attack", "Appuyez et maintenez pour attaquer"),
    ("Press the button to jump", "Appuyez sur [ML:icon icon=btn_a ] pour sauter"),
    ("{a}{b} Hello world", "Bonjour le monde"),
    ("\ue000 Use [ML:Name] now", "[XX] Utilisez maintenant"),
    ("Talk to {npc}", "Parlez [Q] {x} à"),
    ("Press 1[ML] to confirm", "اضغط 1[ML] [ML:icon icon=btn_a ] للتأكيد"),
])
def test_repair_is_idempotent(original, translation):
    once = repair_locally(original, translation)
    assert repair_locally(original, once) == once
    assert has_required_tokens(original, once)
    assert audit_translation(original, once).ok


def test_audit_reports_missing_and_invented():
    audit = audit_translation("Press 1[ML] to attack", "Appuyez [XX] pour attaquer")
    assert audit.missing == ("1[ML]",)
    assert audit.hallucinated == ("[XX]",)
    assert not audit.ok


def test_audit_ignores_protect_only_tokens():
    audit = audit_translation("<b>Gain</b> 50 HP", "Gagnez 50 PV")
    assert audit.ok


def test_preview_describes_the_change():
    result = preview("{n} coins", "pièces")
    assert result.before == "pièces"
    assert result.after == "{n} pièces"
    assert result.has_diff

    unchanged = preview("{n} coins", "{n} pièces")
    assert not unchanged.has_diff
    assert unchanged.after == unchanged.before
