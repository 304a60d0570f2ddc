"""Classroom examples used by the terminal and the test-suite."""

from automaton import Automaton, AutomatonType
from grammar import Grammar
from io_utils import parse_automaton_json

EIGHT_STATE_DFA_JSON = """{
  "states": [
    {"id": "A", "isStartState": true}, {"id": "B"}, {"id": "C", "isAcceptState": true},
    {"id": "D"}, {"id": "E", "isAcceptState": true}, {"id": "F"},
    {"id": "G", "isAcceptState": true}, {"id": "H"}
  ],
  "alphabet": ["0", "1"],
  "transitions": [
    {"from": "A", "symbol": "0", "to": "B"}, {"from": "A", "symbol": "1", "to": "F"},
    {"from": "B", "symbol": "0", "to": "G"}, {"from": "B", "symbol": "1", "to": "C"},
    {"from": "C", "symbol": "0", "to": "A"}, {"from": "C", "symbol": "1", "to": "C"},
    {"from": "D", "symbol": "0", "to": "C"}, {"from": "D", "symbol": "1", "to": "G"},
    {"from": "E", "symbol": "0", "to": "H"}, {"from": "E", "symbol": "1", "to": "F"},
    {"from": "F", "symbol": "0", "to": "C"}, {"from": "F", "symbol": "1", "to": "G"},
    {"from": "G", "symbol": "0", "to": "G"}, {"from": "G", "symbol": "1", "to": "E"},
    {"from": "H", "symbol": "0", "to": "G"}, {"from": "H", "symbol": "1", "to": "C"}
  ],
  "startStateId": "A",
  "acceptStateIds": ["C", "E", "G"]
}"""

FIVE_STATE_DFA_JSON = """{
  "states": [
    {"id": "A", "isStartState": true}, {"id": "B"}, {"id": "C"}, {"id": "D"},
    {"id": "E", "isAcceptState": true}
  ],
  "alphabet": ["0", "1"],
  "transitions": [
    {"from": "A", "symbol": "0", "to": "B"}, {"from": "A", "symbol": "1", "to": "C"},
    {"from": "B", "symbol": "0", "to": "B"}, {"from": "B", "symbol": "1", "to": "D"},
    {"from": "C", "symbol": "0", "to": "B"}, {"from": "C", "symbol": "1", "to": "C"},
    {"from": "D", "symbol": "0", "to": "B"}, {"from": "D", "symbol": "1", "to": "E"},
    {"from": "E", "symbol": "0", "to": "B"}, {"from": "E", "symbol": "1", "to": "C"}
  ],
  "startStateId": "A",
  "acceptStateIds": ["E"]
}"""

EXPRESSION_GRAMMAR = """\
E -> T E'
E' -> + T E' | ε
T -> F T'
T' -> * F T' | ε
F -> ( E ) | a
"""

CONFLICT_GRAMMAR = """\
S -> A | B
A -> id
B -> id
"""

CC_GRAMMAR = """\
S -> C C
C -> c C | d
"""

ENDS_IN_AB_REGEX = "(a|b)*ab"


def eight_state_dfa() -> Automaton:
    return parse_automaton_json(EIGHT_STATE_DFA_JSON)


def five_state_dfa() -> Automaton:
    return parse_automaton_json(FIVE_STATE_DFA_JSON)


def ends_in_ab_nfa() -> Automaton:
    """q0 loops on a and b, guesses the final `ab` through q1 into q2."""
    return Automaton(
        type=AutomatonType.NFA,
        states=["q0", "q1", "q2"],
        alphabet=["a", "b"],
        transitions=[
            ("q0", "a", "q0"),
            ("q0", "b", "q0"),
            ("q0", "a", "q1"),
            ("q1", "b", "q2"),
        ],
        start_state="q0",
        accepting_states=frozenset({"q2"}),
    )


def expression_grammar() -> Grammar:
    return Grammar.from_string(EXPRESSION_GRAMMAR)


def conflict_grammar() -> Grammar:
    return Grammar.from_string(CONFLICT_GRAMMAR)


def cc_grammar() -> Grammar:
    return Grammar.from_string(CC_GRAMMAR)
