import pytest

from sheetrules.content.hybrid_d20 import build_rulebook, describe


@pytest.fixture(scope="module")
def book():
    return build_rulebook()


@pytest.fixture
def novice():
    return {
        "strength": 16,
        "dexterity": 14,
        "constitution": 12,
        "intelligence": 10,
        "wisdom": 8,
        "charisma": 10,
        "experience": 1000,
    }


@pytest.fixture
def veteran():
    return {
        "strength": 16,
        "strengthAdjust": 2,
        "dexterity": 14,
        "experience": 5000,
        "skills.HTH Combat": 2,
        "skills.Stealth": 1,
        "feats.Dodge": 1,
        "languages.Elven": 1,
        "armor": "Chain Shirt",
        "shield": "Heavy Steel",
    }


def test_rules_are_well_formed(book):
    assert book.ruleset.cyclic_targets() == []
    assert book.ruleset.broken_rules == []
    assert describe(book)["rules"] == len(book.ruleset)


def test_level_and_experience(book, novice):
    result = book.evaluate(novice)
    assert result["level"] == 7
    assert result["experienceNeeded"] == 1143
    assert result["experienceUsed"] == 0


def test_ability_modifiers_and_notes(book, novice):
    result = book.evaluate(novice)
    modifiers = [result[a + "Modifier"] for a in ("strength", "dexterity", "constitution", "intelligence", "wisdom", "charisma")]
    assert modifiers == [3, 2, 1, 0, -1, 0]
    assert result.notes["strength"] == "16 (3)"
    assert result.notes["wisdom"] == "8 (-1)"


def test_combat_values(book, novice):
    result = book.evaluate(novice)
    assert result["armorClass"] == 12
    assert result["initiative"] == 2
    assert result["save.Reflex"] == 2
    assert result["save.Will"] == -1
    assert result["save.Fortitude"] == 1
    assert result["meleeAttack"] == 3
    assert result["rangedAttack"] == 2


def test_hit_points_gain_constitution_bonus_per_level(book, novice):
    assert book.evaluate(novice)["hitPoints"] == 7
    assert book.evaluate({**novice, "hitPoints": 20})["hitPoints"] == 27


def test_default_language(book, novice):
    result = book.evaluate(novice)
    assert result["languages.Common"] == 1
    assert result["validationNotes.languageAllocation"] == 0
    assert result.notes["validationNotes.languageAllocation"] == "1 available vs. 1 allocated"


def test_experience_spent(book, veteran):
    result = book.evaluate(veteran)
    assert result["strength"] == 18
    assert result["strengthModifier"] == 4
    assert result["allocatedAbilityExp.strength"] == 105
    assert result["allocatedExp.Skills"] == 14
    assert result["allocatedExp.Feats"] == 5
    assert result["experienceUsed"] == 124
    assert result["level"] == 18
    assert result["maxAllowedSkillPoints"] == 18


def test_feat_armor_and_shield(book, veteran):
    result = book.evaluate(veteran)
    assert result["features.Dodge"] == 1
    assert result["combatNotes.dodgeFeature"] == 1
    assert result.notes["combatNotes.dodgeFeature"] == "+1 AC"
    assert result["armorClass"] == 19


def test_attacks_and_maneuvers(book, veteran):
    result = book.evaluate(veteran)
    assert result["baseAttack"] == 2
    assert result["meleeAttack"] == 6
    assert result["combatManeuverBonus"] == 6
    assert result["combatManeuverDefense"] == 8


def test_skill_totals(book, veteran):
    result = book.evaluate(veteran)
    assert result["skills.Stealth.1"] == 6
    assert result["skills.HTH Combat.1"] == 9
    assert result.notes["skills.Stealth"] == "(dex) 1 (6)"


def test_extra_language_flagged(book, veteran):
    result = book.evaluate(veteran)
    assert result["validationNotes.languageAllocation"] == 1
    assert result.notes["validationNotes.languageAllocation"] == "1 available vs. 2 allocated"


def test_partial_character_resolves_cleanly(book, veteran):
    result = book.evaluate(veteran)
    assert result.failures == []
    assert result.unresolved == []
    assert "hitPoints" not in result


def test_reevaluating_a_sheet_changes_nothing(book):
    character = {
        "strength": 16,
        "dexterity": 14,
        "experience": 5000,
        "skills.HTH Combat": 2,
        "feats.Dodge": 1,
        "languages.Elven": 1,
        "armor": "Leather",
        "goodies.Ring Of Protection +1": 1,
    }
    first = book.evaluate(character)
    assert first["armorClass"] == 16
    assert first["experienceUsed"] == 14

    second = book.evaluate(first.attributes)
    assert second.attributes == first.attributes
    assert second.notes == first.notes


def test_armor_class_not_counted_twice(book):
    sheet = book.apply_rules({"dexterity": 14, "armor": "Leather"})
    assert sheet["armorClass"] == 14
    assert book.apply_rules(sheet)["armorClass"] == 14


def test_ring_of_protection(book, novice):
    result = book.evaluate({**novice, "goodies.Ring Of Protection +2": 1})
    assert result["combatNotes.goodiesArmorClassAdjustment"] == 2
    assert result["armorClass"] == 14


def test_choices(book):
    assert "Dodge" in book.get_choices("feats")
    assert book.get_choices("skills")[0] == "Acrobatics"
    assert book.get_choices("preset") == ("race", "powers")
    assert "Levels" not in book.ruleset.sheet_elements
