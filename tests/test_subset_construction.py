from itertools import product

from automaton import Automaton, AutomatonType, execute
from regular_expression import regex_to_nfa
from samples import ends_in_ab_nfa, eight_state_dfa
from subset_construction import dfa_state_id, process_dfa_state, subset_construction


def words(alphabet, max_length):
    for length in range(max_length + 1):
        for letters in product(alphabet, repeat=length):
            yield "".join(letters)


def test_dfa_state_id_is_sorted():
    assert dfa_state_id({"q2", "q0", "q10"}) == "{q0,q10,q2}"
    assert dfa_state_id([]) == "{}"


def test_first_steps_of_ends_in_ab():
    result = subset_construction(ends_in_ab_nfa())
    first, second = result.steps[0], result.steps[1]

    assert result.dfa.start_state == "{q0}"
    assert (first.dfa_state, first.symbol, first.target) == ("{q0}", "a", "{q0,q1}")
    assert first.is_new and first.transition_created
    assert (second.symbol, second.target, second.is_new) == ("b", "{q0}", False)


def test_ends_in_ab_dfa():
    dfa = subset_construction(ends_in_ab_nfa()).dfa
    assert dfa.type == AutomatonType.DFA
    assert dfa.states == ["{q0}", "{q0,q1}", "{q0,q2}"]
    assert dfa.accepting_states == frozenset({"{q0,q2}"})
    assert dfa.components["{q0,q1}"] == frozenset({"q0", "q1"})
    assert dfa.delta("{q0,q1}", "b") == "{q0,q2}"
    assert dfa.delta("{q0,q2}", "b") == "{q0}"
    assert len(dfa.transitions) == 6


def test_empty_move_creates_no_transition():
    nfa = regex_to_nfa("a")
    steps = process_dfa_state("{q1}", frozenset({"q1"}), nfa, {})
    assert len(steps) == 1
    assert not steps[0].transition_created
    assert steps[0].target is None
    assert "no transition" in steps[0].describe()


def test_same_target_is_new_only_once():
    nfa = Automaton(
        type=AutomatonType.NFA,
        states=["p", "q"],
        alphabet=["a", "b"],
        transitions=[("p", "a", "q"), ("p", "b", "q")],
        start_state="p",
    )
    steps = process_dfa_state("{p}", frozenset({"p"}), nfa, {"{p}": frozenset({"p"})})
    assert [step.is_new for step in steps] == [True, False]


def test_dfa_accepts_same_language_as_nfa():
    nfa = regex_to_nfa("(a|b)*abb")
    dfa = nfa.to_DFA()
    for word in words("ab", 6):
        assert execute(dfa, word).accepted == execute(nfa, word).accepted, word


def test_every_dfa_state_is_reachable():
    result = subset_construction(regex_to_nfa("a(b|c)*d"))
    dfa = result.dfa
    targets = {t.target for t in dfa.transitions} | {dfa.start_state}
    assert set(dfa.states) == targets
    assert len(result.steps) == len(dfa.states) * len(dfa.alphabet)


def test_dfa_input_is_returned_unchanged():
    dfa = eight_state_dfa()
    assert dfa.to_DFA() is dfa


def test_nfa_without_start_state():
    result = subset_construction(Automaton(type=AutomatonType.NFA, alphabet=["a"]))
    assert result.dfa.states == []
    assert result.dfa.start_state is None
    assert result.steps == []
