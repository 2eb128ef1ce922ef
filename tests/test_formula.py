import pytest

from sheetrules.engine.formula import (
    CallableFormula,
    FormulaError,
    as_expression,
    compile_formula,
    extract_path_references,
    validate_formula,
)


def test_modifier_formula():
    formula = compile_formula("floor((source - 10) / 2)")
    assert formula.reads == frozenset()
    assert formula.evaluate(16, {}) == 3
    assert formula.evaluate(8, {}) == -1


def test_dotted_paths_are_references():
    formula = compile_formula("combatNotes.dodgeFeature + level")
    assert formula.reads == {"combatNotes.dodgeFeature", "level"}
    assert formula.evaluate(None, {"combatNotes.dodgeFeature": 2, "level": 3}) == 5


def test_dotted_path_and_underscore_name_stay_distinct():
    formula = compile_formula("a.b + a_b")
    assert formula.reads == {"a.b", "a_b"}
    assert formula.evaluate(None, {"a.b": 1, "a_b": 10}) == 11


def test_attr_lookup_for_names_with_spaces():
    formula = compile_formula('attr("skills.HTH Combat") * 2')
    assert formula.reads == {"skills.HTH Combat"}
    assert formula.evaluate(None, {"skills.HTH Combat": 4}) == 8


def test_attr_default():
    assert compile_formula('attr("missing", 7)').evaluate(None, {}) == 7
    with pytest.raises(FormulaError):
        compile_formula('attr("missing")').evaluate(None, {})


def test_has():
    formula = compile_formula('1 if has("feats.Dodge") else 0')
    assert formula.evaluate(None, {"feats.Dodge": 1}) == 1
    assert formula.evaluate(None, {}) == 0


def test_conditional_and_match():
    formula = compile_formula(
        'None if source == "None" else 4 if source == "Tower" else 2 if match("Heavy", source) else 1'
    )
    assert formula.evaluate("Heavy Steel", {}) == 2
    assert formula.evaluate("Tower", {}) == 4
    assert formula.evaluate("Buckler", {}) == 1
    assert formula.evaluate("None", {}) is None


def test_experience_curve_functions():
    assert compile_formula("floor(1000 * pow(1.1, source + 1) - 1000)").evaluate(7, {}) == 1143
    assert compile_formula("floor(log(source / 1000 + 1) / log(1.1))").evaluate(1000, {}) == 7


def test_string_concatenation():
    assert compile_formula('"Lv " + str(source)').evaluate(3, {}) == "Lv 3"


def test_unknown_name_fails():
    with pytest.raises(FormulaError):
        compile_formula("nothing + 1").evaluate(None, {})


def test_unknown_function_fails():
    with pytest.raises(FormulaError):
        compile_formula("launch(source)").evaluate(1, {})


def test_division_by_zero_fails():
    with pytest.raises(FormulaError):
        compile_formula("source / 0").evaluate(1, {})


def test_syntax_error_gives_broken_formula():
    formula = compile_formula("1 +")
    assert formula.is_broken
    with pytest.raises(FormulaError):
        formula.evaluate(None, {})


def test_no_access_to_python_internals():
    with pytest.raises(FormulaError):
        compile_formula("__import__('os').getcwd()").evaluate(None, {})
    with pytest.raises(FormulaError):
        compile_formula("source.__class__").evaluate(1, {})


def test_validate_formula():
    assert validate_formula("1 +") is not None
    assert validate_formula("a + 1", {"a"}) is None
    assert "b" in validate_formula("a + b", {"a"})


def test_extract_path_references():
    refs = extract_path_references('strengthModifier + combatNotes.dodgeFeature + attr("skills.HTH Combat", 0)')
    assert refs == {"strengthModifier", "combatNotes.dodgeFeature", "skills.HTH Combat"}


def test_as_expression():
    assert as_expression(None) is None
    assert as_expression(5).evaluate(None, {}) == 5
    assert isinstance(as_expression(lambda source, attributes: source), CallableFormula)
    assert as_expression((max, ["level", "skills.HTH Combat"])).reads == {"level", "skills.HTH Combat"}


def test_callable_formula_errors_are_wrapped():
    def explode(source, attributes):
        raise KeyError(source)

    with pytest.raises(FormulaError):
        CallableFormula(func=explode).evaluate("x", {})
