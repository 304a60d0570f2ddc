import pytest

from automaton import AutomatonType, Transition, execute
from errors import RegexSyntaxError
from regular_expression import (
    RegularExpression,
    infix_to_postfix,
    preprocess_regex,
    regex_to_nfa,
    thompson_construction,
)


def test_preprocess_inserts_concatenation():
    assert preprocess_regex("a(b|c)*d") == "a.(b|c)*.d"
    assert preprocess_regex("ab") == "a.b"
    assert preprocess_regex("a b") == "a.b"
    assert preprocess_regex("(a)(b)") == "(a).(b)"
    assert preprocess_regex("a|b") == "a|b"


def test_postfix_respects_precedence():
    assert infix_to_postfix("a.(b|c)*.d") == "abc|*.d."
    assert infix_to_postfix("a.b|c") == "ab.c|"
    assert infix_to_postfix("a|b.c") == "abc.|"
    assert RegularExpression("(a|b)*").postfix == "ab|*"


def test_mismatched_parentheses():
    with pytest.raises(RegexSyntaxError):
        infix_to_postfix("(a")
    with pytest.raises(RegexSyntaxError) as excinfo:
        infix_to_postfix("a)")
    assert excinfo.value.position == 1


def test_unsupported_character():
    with pytest.raises(RegexSyntaxError) as excinfo:
        RegularExpression("a+b").to_NFA()
    assert excinfo.value.position == 1
    assert "position 1" in str(excinfo.value)


def test_missing_operand():
    with pytest.raises(RegexSyntaxError):
        regex_to_nfa("a||b")
    with pytest.raises(RegexSyntaxError):
        regex_to_nfa("*")


def test_empty_regex_is_an_error():
    with pytest.raises(RegexSyntaxError):
        RegularExpression("").to_NFA()
    with pytest.raises(RegexSyntaxError):
        RegularExpression("   ").to_NFA()


def test_single_symbol_fragment():
    nfa = thompson_construction("a")
    assert nfa.type == AutomatonType.NFA
    assert nfa.states == ["q0", "q1"]
    assert nfa.start_state == "q0"
    assert nfa.accepting_states == frozenset({"q1"})
    assert nfa.transitions == [Transition("q0", "a", "q1")]


def test_concatenation_links_with_epsilon():
    nfa = regex_to_nfa("ab")
    assert nfa.start_state == "q0"
    assert nfa.accepting_states == frozenset({"q3"})
    assert Transition("q1", None, "q2") in nfa.transitions


def test_star_fragment():
    nfa = regex_to_nfa("a*")
    assert nfa.start_state == "q2"
    assert nfa.accepting_states == frozenset({"q3"})
    epsilon_moves = {(t.source, t.target) for t in nfa.transitions if t.symbol is None}
    assert epsilon_moves == {("q2", "q0"), ("q2", "q3"), ("q1", "q0"), ("q1", "q3")}


def test_state_numbering_restarts_per_construction():
    assert regex_to_nfa("a").states == regex_to_nfa("a").states == ["q0", "q1"]


def test_language_of_thompson_nfa():
    nfa = regex_to_nfa("(a|b)*abb")
    assert nfa.alphabet == ["a", "b"]
    for word in ["abb", "aabb", "babb", "ababb"]:
        assert execute(nfa, word).accepted, word
    for word in ["", "ab", "abba", "bbb"]:
        assert not execute(nfa, word).accepted, word


def test_epsilon_operand():
    nfa = regex_to_nfa("a|ε")
    assert nfa.alphabet == ["a"]
    assert execute(nfa, "").accepted
    assert execute(nfa, "a").accepted
    assert not execute(nfa, "aa").accepted

    only_empty = regex_to_nfa("ε")
    assert execute(only_empty, "").accepted
    assert not execute(only_empty, "a").accepted


def test_from_file(tmp_path):
    path = tmp_path / "re.txt"
    path.write_text("(0|1)*1\n", encoding="utf-8")
    regex = RegularExpression.from_file(str(path))
    assert regex.pattern == "(0|1)*1"
    assert execute(regex.to_NFA(), "101").accepted
