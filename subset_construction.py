"""Subset (powerset) construction: NFA → DFA with a per-symbol derivation trace."""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing_extensions import *

from automaton import (
    Automaton,
    AutomatonType,
    Transition,
    epsilon_closure,
    format_state_set,
    move,
)

logger = logging.getLogger(__name__)


def dfa_state_id(nfa_states: Iterable[str]) -> str:
    """Canonical id of a DFA state: its sorted NFA members, e.g. `{q0,q1}`."""
    return format_state_set(nfa_states)


@dataclass
class SubsetStep:
    """How one (DFA state, symbol) entry of the table was derived."""

    dfa_state: str
    symbol: str
    move_input: FrozenSet[str]
    move_output: FrozenSet[str]
    closure_output: FrozenSet[str]
    target: Optional[str]
    is_new: bool
    transition_created: bool

    def describe(self) -> str:
        if not self.transition_created:
            return (
                f"{self.dfa_state} on '{self.symbol}': move = ∅, "
                f"no transition"
            )
        status = "new state" if self.is_new else "existing state"
        return (
            f"{self.dfa_state} on '{self.symbol}': "
            f"move = {format_state_set(self.move_output)}, "
            f"ε-closure = {format_state_set(self.closure_output)} → "
            f"{self.target} ({status})"
        )


@dataclass
class SubsetConstructionResult:
    dfa: Automaton
    steps: List[SubsetStep] = field(default_factory=list)


def process_dfa_state(
    state_id: str,
    nfa_states: FrozenSet[str],
    nfa: Automaton,
    known: Dict[str, FrozenSet[str]],
) -> List[SubsetStep]:
    """
    Expand one DFA state over the whole alphabet.

    `known` maps every DFA id discovered so far (processed or still queued)
    to its NFA-state set; a step is flagged new when its target is absent
    from it. The caller is responsible for registering new states.
    """
    steps: List[SubsetStep] = []
    discovered: Set[str] = set()

    for symbol in nfa.alphabet:
        moved = move(nfa_states, symbol, nfa)
        closure = epsilon_closure(moved, nfa)

        if not closure:
            steps.append(
                SubsetStep(state_id, symbol, nfa_states, moved, closure,
                           None, False, False)
            )
            continue

        target = dfa_state_id(closure)
        is_new = target not in known and target not in discovered
        discovered.add(target)
        steps.append(
            SubsetStep(state_id, symbol, nfa_states, moved, closure,
                       target, is_new, True)
        )

    return steps


def subset_construction(nfa: Automaton) -> SubsetConstructionResult:
    """Convert an NFA into an equivalent DFA (worklist algorithm)."""
    if nfa.start_state is None:
        return SubsetConstructionResult(
            Automaton(type=AutomatonType.DFA, alphabet=list(nfa.alphabet))
        )

    start_set = epsilon_closure({nfa.start_state}, nfa)
    start_id = dfa_state_id(start_set)

    known: Dict[str, FrozenSet[str]] = {start_id: start_set}
    order: List[str] = [start_id]
    queue = deque([start_id])
    transitions: List[Transition] = []
    steps: List[SubsetStep] = []

    while queue:
        current = queue.popleft()
        for step in process_dfa_state(current, known[current], nfa, known):
            steps.append(step)
            if not step.transition_created:
                continue
            if step.is_new:
                known[step.target] = step.closure_output
                order.append(step.target)
                queue.append(step.target)
            transitions.append(Transition(current, step.symbol, step.target))

    accepting = frozenset(
        state for state in order if known[state] & nfa.accepting_states
    )

    logger.debug(
        "Subset construction: %d NFA states -> %d DFA states",
        len(nfa.states),
        len(order),
    )
    dfa = Automaton(
        type=AutomatonType.DFA,
        states=order,
        alphabet=list(nfa.alphabet),
        transitions=transitions,
        start_state=start_id,
        accepting_states=accepting,
        components=dict(known),
    )
    return SubsetConstructionResult(dfa, steps)
