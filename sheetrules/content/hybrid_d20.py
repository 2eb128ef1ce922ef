"""
Hybrid D20 reference content.

Point-buy d20 variant: characters spend experience on ability bumps, skills,
feats and powers instead of gaining class levels. Each *_rules function
declares one area of the rules and can be called on its own to use a subset.
The data tables here are small samples; pass fuller tables as arguments.
"""

import logging
import re
from typing import Dict, Iterable, Mapping, Optional, Sequence

from sheetrules.config import EngineSettings
from sheetrules.rulebook import RuleBook

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

ABILITIES = ("charisma", "constitution", "dexterity", "intelligence", "strength", "wisdom")

ABILITY_ABBREVIATIONS = {
    "cha": "charisma",
    "con": "constitution",
    "dex": "dexterity",
    "int": "intelligence",
    "str": "strength",
    "wis": "wisdom",
}

ARMOR_BONUSES = {
    "None": 0,
    "Padded": 1,
    "Leather": 2,
    "Studded Leather": 3,
    "Chain Shirt": 4,
    "Breastplate": 5,
    "Banded": 6,
    "Full Plate": 8,
}

FEATS = (
    "Bravery", "Dodge", "Improved Initiative", "Iron Will", "Toughness", "Trap Sense",
)

POWERS = ("Animal Form", "Darkvision", "Low-Light Vision", "Rage", "Scent")

POWER_COSTS = {"Animal Form": 20}

LANGUAGES = ("Common", "Draconic", "Dwarven", "Elven", "Gnome", "Halfling", "Orc")

RACES = ("Dwarf", "Elf", "Gnome", "Half-Elf", "Half-Orc", "Halfling", "Human")

SCHOOLS = (
    "Abjuration", "Conjuration", "Divination", "Enchantment",
    "Evocation", "Illusion", "Necromancy", "Transmutation",
)

SKILLS = (
    "Acrobatics:dex", "Fire Combat:dex", "HTH Combat:str", "Perception:wis",
    "Stealth:dex", "Survival:wis",
)

# Order matters when randomizing: later attributes depend on earlier ones
RANDOMIZABLE_ATTRIBUTES = (
    "charisma", "constitution", "dexterity", "intelligence", "strength", "wisdom",
    "name", "race", "gender", "alignment", "deity", "experience", "feats",
    "skills", "languages", "hitPoints", "armor", "shield", "weapons", "spells",
    "goodies",
)

ABILITY_CHOICES = list(range(3, 19))

EDITOR_ELEMENTS = (
    ("name", "Name", "text", [20]),
    ("race", "Race", "select-one", "races"),
    *(
        element
        for ability in ("strength", "intelligence", "wisdom", "dexterity", "constitution", "charisma")
        for element in (
            (ability, f"{ability.title()}/Adjust", "select-one", ABILITY_CHOICES),
            (f"{ability}Adjust", "", "text", [3]),
        )
    ),
    ("experience", "Experience", "text", [7]),
    ("alignment", "Alignment", "select-one", "alignments"),
    ("feats", "Feats", "bag", "feats"),
    ("powers", "Powers", "bag", "powers"),
    ("skills", "Skills", "bag", "skills"),
    ("languages", "Languages", "set", "languages"),
    ("hitPoints", "Hit Points", "text", [4]),
    ("armor", "Armor", "select-one", "armors"),
    ("shield", "Shield", "select-one", "shields"),
    ("goodies", "Goodies", "bag", "goodies"),
    ("notes", "Notes", "textarea", [40, 10]),
)


def ability_rules(book: RuleBook) -> None:
    """Ability modifiers, the experience/level curve and ability bump costs."""

    # Each level needs 1.1x the experience of the one before it:
    #   exp(N) = 1000 * 1.1^N - 1000,  N = log[1.1](exp / 1000 + 1)
    book.define_rule(
        "experienceNeeded", "level", "=", "floor(1000 * pow(1.1, source + 1) - 1000)"
    )
    book.define_rule(
        "experienceUsed",
        "", "=", 0,
        "allocatedExp.Abilities", "+", None,
    )
    # Exp totals recompute from 0 on every evaluation
    book.define_rule("allocatedExp.Abilities", "", "=", 0)
    book.define_rule(
        "level", "experience", "=", "floor(log(source / 1000 + 1) / log(1.1))"
    )

    for ability in ABILITIES:
        book.define_rule(ability, ability + "Adjust", "+", None)
        book.define_rule(ability + "Modifier", ability, "=", "floor((source - 10) / 2)")
        book.define_note(ability + ":%V (%1)")
        book.define_rule(ability + ".1", ability + "Modifier", "=", None)
        # Each bump costs 3 * the new score:
        #   cost = bumps * score * 3 - bumps * (bumps - 1) / 2 * 3
        book.define_rule(
            "allocatedAbilityExp." + ability,
            ability + "Adjust", "=", f"3 * source * {ability} - source * (source - 1) * 1.5",
        )
        book.define_rule(
            "allocatedExp.Abilities", "allocatedAbilityExp." + ability, "+=", None
        )

    book.define_rule(
        "combatNotes.constitutionHitPointsAdjustment",
        "constitutionModifier", "=", 'source * attr("level", 0)',
    )
    book.define_rule(
        "combatNotes.dexterityArmorClassAdjustment", "dexterityModifier", "=", None
    )
    book.define_rule("combatNotes.dexterityAttackAdjustment", "dexterityModifier", "=", None)
    book.define_rule("combatNotes.strengthAttackAdjustment", "strengthModifier", "=", None)
    book.define_rule("combatNotes.strengthDamageAdjustment", "strengthModifier", "=", None)


def combat_rules(book: RuleBook, armor_bonuses: Optional[Mapping[str, int]] = None) -> None:
    """Armor class, attacks, maneuvers, initiative and saves."""
    armor_bonuses = ARMOR_BONUSES if armor_bonuses is None else dict(armor_bonuses)

    def armor_bonus(source, attributes):
        return armor_bonuses.get(source)

    book.define_rule(
        "armorClass",
        "", "=", 10,
        "armor", "+", armor_bonus,
        "shield", "+",
        'None if source == "None" else 4 if source == "Tower" else 2 if match("Heavy", source) else 1',
        "combatNotes.dexterityArmorClassAdjustment", "+", None,
    )
    book.define_rule(
        "hitPoints", "combatNotes.constitutionHitPointsAdjustment", "+", None
    )
    book.define_rule(
        "baseAttack",
        "skills.Fire Combat", "^=", None,
        "skills.HTH Combat", "^=", None,
    )
    book.define_rule(
        "combatManeuverBonus",
        "baseAttack", "=", None,
        "strengthModifier", "+", None,
    )
    book.define_rule(
        "combatManeuverDefense",
        "baseAttack", "=", None,
        "strengthModifier", "+", None,
        "dexterityModifier", "+", None,
    )
    book.define_sheet_element(
        "CombatManeuver", "CombatStats/", "<b>Combat Maneuver Bonus/Defense</b>: %V", "/"
    )
    book.define_sheet_element("Combat Maneuver Bonus", "CombatManeuver/", "%V")
    book.define_sheet_element("Combat Maneuver Defense", "CombatManeuver/", "%V")
    book.define_rule("initiative", "dexterityModifier", "=", None)
    book.define_rule(
        "meleeAttack",
        "skills.HTH Combat", "=", None,
        "combatNotes.strengthAttackAdjustment", "+", None,
    )
    book.define_rule(
        "rangedAttack",
        "skills.Fire Combat", "=", None,
        "combatNotes.dexterityAttackAdjustment", "+", None,
    )
    book.define_rule("save.Fortitude", "constitutionModifier", "=", None)
    book.define_rule("save.Reflex", "dexterityModifier", "=", None)
    book.define_rule("save.Will", "wisdomModifier", "=", None)


def equipment_rules(book: RuleBook, armors: Iterable[str] = ARMOR_BONUSES) -> None:
    book.define_choice("armors", list(armors))
    book.define_choice("shields", ["None", "Buckler", "Light Wooden", "Heavy Steel", "Tower"])
    book.define_rule("armorProficiencyLevel", "", "=", 0)
    book.define_rule("shieldProficiencyLevel", "", "=", 0)
    book.define_rule("weaponProficiencyLevel", "", "=", 1)


def _feat_effects(book: RuleBook, feat: str) -> Optional[Sequence[str]]:
    """Feat-specific rules; returns the feat's notes. Unlisted feats only cost exp."""
    if feat == "Bravery":
        book.define_rule("saveNotes.braveryFeature", "feats.Bravery", "=", None)
        return ["saveNotes.braveryFeature:+%V vs. fear"]
    if feat == "Dodge":
        book.define_rule("combatNotes.dodgeFeature", "feats.Dodge", "=", "floor(source / 4) + 1")
        book.define_rule(
            "combatNotes.dodgeFeature.1",
            "feats.Dodge", "=",
            "\"\" if source < 6 or attr(\"dexterity\", 0) < 15 "
            "else \", 20% conceal for 1 rd after 5' move\"",
        )
        book.define_rule(
            "combatNotes.dodgeFeature.2",
            "feats.Dodge", "=",
            "\"\" if source < 11 or attr(\"dexterity\", 0) < 17 "
            "else \", 50% conceal for 1 rd after 2 move or withdraw\"",
        )
        book.define_rule("armorClass", "combatNotes.dodgeFeature", "+", None)
        return [
            "combatNotes.dodgeFeature:+%V AC%1%2",
            "validationNotes.dodgeFeatAbility:Requires Dexterity >= 13",
        ]
    if feat == "Improved Initiative":
        book.define_rule(
            "combatNotes.improvedInitiativeFeature",
            "feats.Improved Initiative", "=", "floor((source + 1) / 2)",
        )
        book.define_rule("initiative", "combatNotes.improvedInitiativeFeature", "+", None)
        return ["combatNotes.improvedInitiativeFeature:+%V Initiative"]
    if feat == "Trap Sense":
        book.define_rule("combatNotes.trapSenseFeature", "feats.Trap Sense", "=", None)
        book.define_rule("saveNotes.trapSenseFeature", "feats.Trap Sense", "=", None)
        return [
            "combatNotes.trapSenseFeature:+%V AC vs. traps",
            "saveNotes.trapSenseFeature:+%V Reflex vs. traps",
        ]
    return None


def feat_rules(book: RuleBook, feats: Iterable[str] = FEATS) -> None:
    """Feat choices, feature flags, feat exp costs and sample feat effects."""
    book.define_rule("experienceUsed", "allocatedExp.Feats", "+", None)
    book.define_rule("allocatedExp.Feats", "", "=", 0)

    for feat in feats:
        notes = _feat_effects(book, feat)
        book.define_choice("feats", feat)
        book.define_rule("features." + feat, "feats." + feat, "=", None)
        if notes:
            book.define_note(notes)
        book.define_rule(
            "allocatedExp.Feats", "feats." + feat, "+=", "source * (source + 1) + 3"
        )


def power_rules(
    book: RuleBook,
    powers: Iterable[str] = POWERS,
    costs: Optional[Mapping[str, int]] = None,
) -> None:
    costs = POWER_COSTS if costs is None else costs
    book.define_rule("allocatedExp.Powers", "", "=", 0)

    for power in powers:
        book.define_choice("powers", power)
        book.define_rule("features." + power, "powers." + power, "=", None)
        book.define_rule("allocatedExp.Powers", "powers." + power, "+=", costs.get(power, 5))

    if "Animal Form" in powers:
        book.define_note(
            "abilityNotes.animalFormFeature:+4 Str/Dex, 60' climb/fly/swim",
            "combatNotes.animalFormFeature:+4 natural AC",
        )
        book.define_rule("abilityNotes.animalFormFeature", "features.Animal Form", "=", None)
        book.define_rule("combatNotes.animalFormFeature", "features.Animal Form", "=", None)


def race_rules(
    book: RuleBook,
    languages: Iterable[str] = LANGUAGES,
    races: Iterable[str] = RACES,
) -> None:
    """Race choices and the language allocation check."""
    book.define_choice("languages", list(languages))
    book.define_choice("races", list(races))
    book.define_rule("languageCount", "", "=", 1)
    book.define_rule("languages.Common", "", "=", 1)
    book.define_note("validationNotes.languageAllocation:%1 available vs. %2 allocated")
    book.define_rule(
        "validationNotes.languageAllocation.1",
        "languageCount", "=", None,
        "", "=", 0,
    )
    book.define_rule(
        "validationNotes.languageAllocation.2",
        "", "=", 0,
        re.compile(r"^languages\."), "+=", None,
    )
    # Zero when allocated matches available
    book.define_rule(
        "validationNotes.languageAllocation",
        "validationNotes.languageAllocation.1", "=", "-source",
        "validationNotes.languageAllocation.2", "+=", None,
    )


def skill_rules(book: RuleBook, skills: Iterable[str] = SKILLS) -> None:
    """
    Skill choices, skill totals and skill exp costs.

    Skills are given as "Name:abl" where abl is a three-letter ability
    abbreviation, e.g. "Stealth:dex".
    """
    book.define_rule("experienceUsed", "allocatedExp.Skills", "+", None)
    book.define_rule("allocatedExp.Skills", "", "=", 0)
    book.define_rule("maxAllowedSkillPoints", "level", "=", None)

    for entry in skills:
        skill, _, abbreviation = entry.partition(":")
        ability = ABILITY_ABBREVIATIONS.get(abbreviation)
        if ability is None:
            logger.warning(f"Skill '{entry}' has no known ability; skipped")
            continue
        book.define_choice("skills", skill)
        book.define_note(f"skills.{skill}:({abbreviation}) %V (%1)")
        book.define_rule(
            f"skills.{skill}.1",
            f"skills.{skill}", "=", f'source + 3 + attr("{ability}Modifier", 0)',
        )
        book.define_rule(
            "allocatedExp.Skills", f"skills.{skill}", "+=", "source * (source + 1) + 3"
        )


def magic_rules(book: RuleBook, schools: Iterable[str] = SCHOOLS) -> None:
    book.define_choice("schools", list(schools))
    book.define_choice(
        "goodies",
        [f"Ring Of Protection +{bonus}" for bonus in range(1, 5)],
    )
    book.define_rule(
        "combatNotes.goodiesArmorClassAdjustment",
        "", "=", 0,
        *(
            part
            for bonus in range(1, 5)
            for part in (f"goodies.Ring Of Protection +{bonus}", "+=", f"source * {bonus}")
        ),
    )
    book.define_rule("armorClass", "combatNotes.goodiesArmorClassAdjustment", "+", None)


def editor_rules(book: RuleBook, elements: Iterable[Sequence] = EDITOR_ELEMENTS) -> None:
    for name, *args in elements:
        book.define_editor_element(name, *args)


def sheet_rules(book: RuleBook) -> None:
    """Experience in place of levels on the character sheet."""
    book.define_sheet_element("Levels")
    book.define_sheet_element("ExperienceInfo", "Level", None, "")
    book.define_sheet_element("Experience", "ExperienceInfo/", "<b>Experience/Used/Needed</b>: %V")
    book.define_sheet_element("Experience Used", "ExperienceInfo/", "/%V")
    book.define_sheet_element("Experience Needed", "ExperienceInfo/", "/%V")
    book.define_sheet_element("Allocated Exp", "Level", None, "; ")
    book.define_sheet_element("Powers", "Feature Notes")


def build_rulebook(settings: Optional[EngineSettings] = None) -> RuleBook:
    """All Hybrid D20 rules with the sample tables above."""
    book = RuleBook("HybridD20", VERSION, settings)
    editor_rules(book)
    sheet_rules(book)
    ability_rules(book)
    # Base values (armorClass = 10, initiative = dex) before feat and item bonuses
    combat_rules(book)
    equipment_rules(book)
    race_rules(book)
    skill_rules(book)
    feat_rules(book)
    power_rules(book)
    magic_rules(book)
    book.define_choice("preset", "race", "powers")
    book.define_choice("random", RANDOMIZABLE_ATTRIBUTES)
    logger.debug(f"Built {book!r}")
    return book


def describe(book: RuleBook) -> Dict[str, int]:
    ruleset = book.ruleset
    return {
        "rules": len(ruleset),
        "targets": len(ruleset.targets),
        "notes": len(ruleset.notes),
        "choices": len(ruleset.choice_categories),
    }
