import pytest

from errors import ConvergenceError, GrammarSyntaxError
from grammar import (
    END_MARKER,
    EPSILON,
    Grammar,
    compute_first_sets,
    compute_follow_sets,
    first_of_sequence,
    parse_grammar,
)
from samples import EXPRESSION_GRAMMAR, expression_grammar


def test_parse_expression_grammar():
    grammar = expression_grammar()
    assert grammar.start_symbol == "E"
    assert grammar.non_terminals == ["E", "E'", "T", "T'", "F"]
    assert grammar.terminals == ["+", "*", "(", ")", "a", END_MARKER]
    assert grammar.productions["E'"] == [("+", "T", "E'"), (EPSILON,)]
    assert len(grammar.rules()) == 8


def test_comments_blank_lines_and_unicode_arrow():
    grammar = parse_grammar("# start\n\nS → a S | b\n\nS -> c\n")
    assert grammar.productions["S"] == [("a", "S"), ("b",), ("c",)]
    assert grammar.terminals == ["a", "b", "c", END_MARKER]


@pytest.mark.parametrize(
    "text, message",
    [
        ("S a", "'->' missing or multiple."),
        ("S -> a -> b", "'->' missing or multiple."),
        ("s -> a", "Non-terminal 's' invalid format."),
        ("S -> a |", "Empty production rule body."),
    ],
)
def test_syntax_errors(text, message):
    with pytest.raises(GrammarSyntaxError) as excinfo:
        parse_grammar(text)
    assert excinfo.value.line_number == 1
    assert str(excinfo.value) == f'Syntax error (Rule 1: "{text}"): {message}'


def test_empty_grammar():
    with pytest.raises(GrammarSyntaxError, match="Grammar input is empty."):
        parse_grammar("  \n# only a comment\n")


def test_error_names_the_offending_rule():
    with pytest.raises(GrammarSyntaxError) as excinfo:
        parse_grammar("S -> A\nA -> ")
    assert excinfo.value.line_number == 2


def test_augmented_grammar():
    augmented = expression_grammar().augmented()
    assert augmented.start_symbol == "E''"
    assert augmented.rules()[0] == ("E''", ("E",))
    assert augmented.rules()[1:] == expression_grammar().rules()

    simple = Grammar.from_string("S -> a")
    assert simple.augmented().start_symbol == "S'"


def test_first_sets():
    first = compute_first_sets(expression_grammar())
    assert first["E"] == {"(", "a"}
    assert first["E'"] == {"+", EPSILON}
    assert first["T"] == {"(", "a"}
    assert first["T'"] == {"*", EPSILON}
    assert first["F"] == {"(", "a"}


def test_follow_sets():
    grammar = expression_grammar()
    follow = compute_follow_sets(grammar)
    assert follow["E"] == {")", "$"}
    assert follow["E'"] == {")", "$"}
    assert follow["T"] == {"+", ")", "$"}
    assert follow["T'"] == {"+", ")", "$"}
    assert follow["F"] == {"*", "+", ")", "$"}
    assert all(EPSILON not in values for values in follow.values())


def test_nullable_prefix():
    grammar = parse_grammar("S -> A B\nA -> a | ε\nB -> b")
    first = compute_first_sets(grammar)
    assert first["S"] == {"a", "b"}
    assert first["A"] == {"a", EPSILON}
    assert compute_follow_sets(grammar, first)["A"] == {"b"}


def test_first_of_sequence():
    grammar = parse_grammar("S -> A B\nA -> a | ε\nB -> b | ε")
    first = compute_first_sets(grammar)
    assert first_of_sequence([], first, grammar) == {EPSILON}
    assert first_of_sequence(["A", "B"], first, grammar) == {"a", "b", EPSILON}
    assert first_of_sequence(["A", "B", "$"], first, grammar) == {"a", "b", "$"}


def test_iteration_ceiling():
    with pytest.raises(ConvergenceError, match="possibly stuck in a loop"):
        compute_first_sets(expression_grammar(), max_iterations=1)


def test_from_file(tmp_path):
    path = tmp_path / "expr.txt"
    path.write_text(EXPRESSION_GRAMMAR, encoding="utf-8")
    assert Grammar.from_file(str(path)).rules() == expression_grammar().rules()
