from sheetrules import RuleBook


def test_apply_rules_returns_attribute_map():
    book = RuleBook("test")
    book.define_rule("strengthModifier", "strength", "=", "floor((source - 10) / 2)")
    assert book.apply_rules({"strength": 16}) == {"strength": 16, "strengthModifier": 3}


def test_evaluator_reused_until_a_new_declaration():
    book = RuleBook("test")
    book.define_rule("a", "", "=", 1)
    evaluator = book.evaluator
    assert book.evaluator is evaluator

    book.define_rule("b", "a", "=", "source + 1")
    assert book.evaluator is not evaluator
    assert book.apply_rules({})["b"] == 2


def test_render_note_for_any_attribute_map():
    book = RuleBook("test")
    book.define_note("abilityNotes.strength:%V (%1)")
    assert book.render_note("abilityNotes.strength", {"abilityNotes.strength": 3}) == "3 ()"
    assert book.render_note("missing", {}) is None


def test_sheet_elements_can_be_removed():
    book = RuleBook("test")
    book.define_sheet_element("Strength", "Abilities", "<b>Str</b> %V")
    book.define_sheet_element("Luck", "Abilities", "%V")
    book.define_sheet_element("Luck")
    assert book.ruleset.sheet_elements == {"Strength": ("Abilities", "<b>Str</b> %V")}


def test_editor_elements_are_stored_verbatim():
    book = RuleBook("test")
    book.define_editor_element("strength", "Strength", "select-one", ["8", "10"])
    assert book.ruleset.editor_elements["strength"] == ("Strength", "select-one", ["8", "10"])


def test_choices_visible_before_and_after_freeze():
    book = RuleBook("test")
    book.define_choice("feats", "Dodge", "Bravery")
    assert book.get_choices("feats") == ("Dodge", "Bravery")
    assert book.ruleset.get_choices("feats") == ("Dodge", "Bravery")
    assert book.ruleset.choice_categories == ["feats"]
