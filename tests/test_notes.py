import pytest

from sheetrules.engine import ChoiceRegistry, RuleDefinitionError, format_value, parse_note


def test_value_placeholder():
    note = parse_note("foo:+%V HP")
    assert note.render({"foo": 5}) == "+5 HP"


def test_unresolved_placeholder_renders_empty():
    assert parse_note("foo:+%V HP").render({}) == "+ HP"


def test_numbered_placeholders_read_sub_attributes():
    note = parse_note("skills.Stealth:(%1) %V (%2)")
    attributes = {"skills.Stealth": 2, "skills.Stealth.1": "dex", "skills.Stealth.2": 7}
    assert note.render(attributes) == "(dex) 2 (7)"
    assert note.placeholders() == ("skills.Stealth.1", "skills.Stealth", "skills.Stealth.2")


def test_integral_floats_render_without_fraction():
    assert format_value(3.0) == "3"
    assert format_value(2.5) == "2.5"
    assert format_value(None) == ""


def test_note_splits_on_first_colon():
    note = parse_note("a:b:c")
    assert note.name == "a"
    assert note.template == "b:c"


@pytest.mark.parametrize("definition", ["no colon here", ":template", 42])
def test_malformed_notes_are_rejected(definition):
    with pytest.raises(RuleDefinitionError):
        parse_note(definition)


def test_choices_keep_order_and_drop_duplicates():
    choices = ChoiceRegistry()
    choices.define("languages", "Common", "Elven")
    choices.define("languages", ["Dwarven", "Common"], "Orc")
    assert choices.get("languages") == ("Common", "Elven", "Dwarven", "Orc")
    assert "languages" in choices
    assert choices.get("unknown") == ()


def test_choice_copy_is_independent():
    choices = ChoiceRegistry()
    choices.define("races", "Human")
    clone = choices.copy()
    choices.define("races", "Elf")
    assert clone.get("races") == ("Human",)
    assert choices.to_dict() == {"races": ["Human", "Elf"]}
