from itertools import product

import pytest

from automaton import Automaton, AutomatonType, execute
from errors import AutomatonError, ConvergenceError, MinimizationError
from minimization import (
    construct_minimized_dfa,
    find_reachable_states,
    group_equivalent_states,
    initialize_pair_table,
    minimize,
    pair_key,
    perform_iterative_marking,
)
from regular_expression import regex_to_nfa
from samples import eight_state_dfa, ends_in_ab_nfa, five_state_dfa


def words(alphabet, max_length):
    for length in range(max_length + 1):
        for letters in product(alphabet, repeat=length):
            yield "".join(letters)


def test_pair_key_is_symmetric():
    assert pair_key("B", "A") == pair_key("A", "B") == "A,B"


def test_unreachable_state_is_dropped():
    dfa = eight_state_dfa()
    assert find_reachable_states(dfa) == {"A", "B", "C", "E", "F", "G", "H"}
    assert "D" not in minimize(dfa).reachable


def test_initial_marking():
    dfa = eight_state_dfa()
    marked, pairs, step = initialize_pair_table(["A", "B", "C"], dfa)
    assert pairs == [("A", "B"), ("A", "C"), ("B", "C")]
    assert marked[pair_key("A", "C")] is True
    assert marked[pair_key("A", "B")] is False
    assert step.iteration == 0
    assert step.summary == "Initial marking: (accept, non-accept) pairs."


def test_eight_state_dfa():
    result = minimize(eight_state_dfa())
    assert result.steps[0].marked[pair_key("A", "C")] is True
    assert len(result.dfa.states) == 6
    assert frozenset({"B", "H"}) in result.groups
    assert result.dfa.states == ["M0", "M1", "M2", "M3", "M4", "M5"]
    assert result.dfa.start_state == "M0"
    assert result.dfa.components["M1"] == frozenset({"B", "H"})
    assert result.dfa.describe_state("M1") == "M1 = {B,H}"
    assert result.dfa.accepting_states == frozenset({"M2", "M3", "M5"})


def test_marking_reasons_name_the_witness_pair():
    result = minimize(eight_state_dfa())
    reasons = [m.reason for step in result.steps[1:] for m in step.newly_marked]
    assert reasons
    assert all(reason.startswith("Marked (") for reason in reasons)


def test_five_state_dfa():
    result = minimize(five_state_dfa())
    assert len(result.dfa.states) == 4
    assert frozenset({"A", "C"}) in result.groups


def test_minimize_is_idempotent():
    once = minimize(eight_state_dfa()).dfa
    twice = minimize(once)
    assert len(twice.dfa.states) == len(once.states)
    assert twice.already_minimal


@pytest.mark.parametrize("factory", [eight_state_dfa, five_state_dfa])
def test_minimize_preserves_language(factory):
    dfa = factory()
    minimized = dfa.minimize()
    for word in words("01", 7):
        assert execute(dfa, word).accepted == execute(minimized, word).accepted, word


def test_minimize_subset_construction_output():
    dfa = regex_to_nfa("(a|b)*abb").to_DFA()
    minimized = dfa.minimize()
    assert len(minimized.states) == 4
    for word in words("ab", 6):
        assert execute(dfa, word).accepted == execute(minimized, word).accepted, word


def test_missing_transition_distinguishes_states():
    dfa = Automaton(
        states=["p", "q"],
        alphabet=["a"],
        transitions=[("p", "a", "q")],
        start_state="p",
    )
    result = minimize(dfa)
    assert len(result.dfa.states) == 2
    reason = result.steps[1].newly_marked[0].reason
    assert "one has a transition" in reason


def test_single_reachable_state():
    dfa = Automaton(
        states=["p", "q"],
        alphabet=["a"],
        transitions=[("p", "a", "p"), ("q", "a", "p")],
        start_state="p",
        accepting_states=frozenset({"p"}),
    )
    result = minimize(dfa)
    assert result.dfa.states == ["p"]
    assert result.dfa.transitions == [("p", "a", "p")]
    assert result.groups == [frozenset({"p"})]


def test_no_start_state():
    result = minimize(Automaton(states=["p"], alphabet=["a"]))
    assert result.dfa.states == []
    assert result.groups == []


def test_nfa_input_is_refused():
    with pytest.raises(AutomatonError):
        minimize(ends_in_ab_nfa())


def test_iteration_ceiling():
    dfa = eight_state_dfa()
    states = ["A", "B", "C", "E", "F", "G", "H"]
    marked, pairs, _ = initialize_pair_table(states, dfa)
    with pytest.raises(ConvergenceError):
        perform_iterative_marking(dfa, marked, pairs, max_iterations=1)


def test_grouping_uses_unmarked_pairs():
    marked = {"A,B": False, "A,C": True, "B,C": True}
    assert group_equivalent_states(["A", "B", "C"], marked) == [
        frozenset({"A", "B"}),
        frozenset({"C"}),
    ]


def test_group_members_must_agree():
    dfa = Automaton(
        states=["p", "q", "r", "s"],
        alphabet=["a"],
        transitions=[("p", "a", "r"), ("q", "a", "s")],
        start_state="p",
        accepting_states=frozenset({"r"}),
    )
    groups = [frozenset({"p", "q"}), frozenset({"r"}), frozenset({"s"})]
    with pytest.raises(MinimizationError, match="disagree on symbol 'a'"):
        construct_minimized_dfa(groups, dfa)
