"""
DFA minimization by table filling (Myhill–Nerode).

The pipeline is split into the textbook stages so that every intermediate
table can be shown to a learner:

    find_reachable_states -> initialize_pair_table -> perform_iterative_marking
    -> group_equivalent_states -> construct_minimized_dfa
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing_extensions import *

from automaton import Automaton, AutomatonType, Transition, format_state_set
from errors import ConvergenceError, MinimizationError

logger = logging.getLogger(__name__)

MarkedPairs = Dict[str, bool]


class MarkedPair(NamedTuple):
    p: str
    q: str
    reason: str


@dataclass
class MinimizationStep:
    iteration: int
    marked: MarkedPairs
    newly_marked: List[MarkedPair]
    summary: str


@dataclass
class MinimizationResult:
    dfa: Automaton
    groups: List[FrozenSet[str]] = field(default_factory=list)
    reachable: List[str] = field(default_factory=list)
    marked: MarkedPairs = field(default_factory=dict)
    steps: List[MinimizationStep] = field(default_factory=list)

    @property
    def already_minimal(self) -> bool:
        return len(self.groups) == len(self.reachable)


def pair_key(p: str, q: str) -> str:
    return f"{p},{q}" if p < q else f"{q},{p}"


def find_reachable_states(dfa: Automaton) -> Set[str]:
    if dfa.start_state is None or dfa.start_state not in dfa.states:
        return set()

    reachable = {dfa.start_state}
    queue = deque([dfa.start_state])
    while queue:
        current = queue.popleft()
        for src, _, tgt in dfa.transitions:
            if src == current and tgt not in reachable:
                reachable.add(tgt)
                queue.append(tgt)
    return reachable


def initialize_pair_table(
    states: Sequence[str], dfa: Automaton
) -> Tuple[MarkedPairs, List[Tuple[str, str]], MinimizationStep]:
    """Mark every (accept, non-accept) pair as distinguishable."""
    marked: MarkedPairs = {}
    pairs: List[Tuple[str, str]] = []
    newly_marked: List[MarkedPair] = []

    for i, p in enumerate(states):
        for q in states[i + 1:]:
            pairs.append((p, q))
            distinguishable = dfa.is_accepting(p) != dfa.is_accepting(q)
            marked[pair_key(p, q)] = distinguishable
            if distinguishable:
                newly_marked.append(
                    MarkedPair(p, q, f"({p},{q}): one accept state and one non-accept state")
                )

    step = MinimizationStep(
        0, dict(marked), newly_marked, "Initial marking: (accept, non-accept) pairs."
    )
    return marked, pairs, step


def perform_iterative_marking(
    dfa: Automaton,
    initial_marked: MarkedPairs,
    pairs: Sequence[Tuple[str, str]],
    max_iterations: Optional[int] = None,
) -> Tuple[MarkedPairs, List[MinimizationStep]]:
    """Propagate marks through the transition function until a fixpoint."""
    marked = dict(initial_marked)
    steps: List[MinimizationStep] = []
    delta = {(src, sym): tgt for (src, sym, tgt) in dfa.transitions}

    # Each productive pass marks at least one pair.
    if max_iterations is None:
        max_iterations = len(pairs) + 1

    iteration = 0
    changed = True
    while changed:
        if iteration >= max_iterations:
            raise ConvergenceError(
                f"Table filling did not converge within {max_iterations} iterations"
            )
        changed = False
        iteration += 1
        newly_marked: List[MarkedPair] = []

        for p, q in pairs:
            key = pair_key(p, q)
            if marked[key]:
                continue

            for symbol in dfa.alphabet:
                p_next = delta.get((p, symbol))
                q_next = delta.get((q, symbol))

                if p_next is None and q_next is None:
                    continue
                if p_next is None or q_next is None:
                    reason = (
                        f"Marked ({p},{q}) on '{symbol}': one has a transition "
                        f"and the other does not."
                    )
                elif p_next != q_next and marked.get(pair_key(p_next, q_next)):
                    reason = (
                        f"Marked ({p},{q}) on '{symbol}' because "
                        f"({p_next},{q_next}) was marked."
                    )
                else:
                    continue

                marked[key] = True
                changed = True
                newly_marked.append(MarkedPair(p, q, reason))
                break

        if changed:
            steps.append(
                MinimizationStep(iteration, dict(marked), newly_marked,
                                 f"Iteration {iteration}: {len(newly_marked)} pair(s) marked.")
            )
        elif not steps:
            steps.append(
                MinimizationStep(iteration, dict(marked), [],
                                 "No new pairs marked in first transition-based iteration.")
            )

    logger.debug("Table filling converged after %d iteration(s)", iteration)
    return marked, steps


def group_equivalent_states(
    states: Sequence[str], marked: MarkedPairs
) -> List[FrozenSet[str]]:
    groups: List[FrozenSet[str]] = []
    assigned: Set[str] = set()

    for state in states:
        if state in assigned:
            continue
        group = [state]
        assigned.add(state)
        for other in states:
            if other in assigned:
                continue
            if marked.get(pair_key(state, other)) is False:
                group.append(other)
                assigned.add(other)
        groups.append(frozenset(group))

    return groups


def construct_minimized_dfa(
    groups: Sequence[FrozenSet[str]], dfa: Automaton
) -> Automaton:
    """Build one state per group, named M0, M1, ... in group order."""
    group_of: Dict[str, str] = {}
    names: List[str] = []
    for index, group in enumerate(groups):
        name = f"M{index}"
        names.append(name)
        for state in group:
            group_of[state] = name

    delta = {(src, sym): tgt for (src, sym, tgt) in dfa.transitions}
    transitions: List[Transition] = []

    for name, group in zip(names, groups):
        members = sorted(group)
        for symbol in dfa.alphabet:
            targets = {
                member: group_of.get(delta[(member, symbol)])
                if (member, symbol) in delta
                else None
                for member in members
            }
            if len(set(targets.values())) > 1:
                detail = ", ".join(f"{m}→{t}" for m, t in targets.items())
                raise MinimizationError(
                    f"States in group {format_state_set(group)} disagree on "
                    f"symbol '{symbol}' ({detail})"
                )
            target = targets[members[0]]
            if target is not None:
                transitions.append(Transition(name, symbol, target))

    start = group_of.get(dfa.start_state) if dfa.start_state is not None else None
    accepting = frozenset(
        name
        for name, group in zip(names, groups)
        if group & dfa.accepting_states
    )

    return Automaton(
        type=AutomatonType.DFA,
        states=names,
        alphabet=list(dfa.alphabet),
        transitions=transitions,
        start_state=start,
        accepting_states=accepting,
        components=dict(zip(names, groups)),
    )


def _restrict(dfa: Automaton, states: Sequence[str]) -> Automaton:
    keep = set(states)
    return Automaton(
        type=AutomatonType.DFA,
        states=list(states),
        alphabet=list(dfa.alphabet),
        transitions=[t for t in dfa.transitions if t.source in keep and t.target in keep],
        start_state=dfa.start_state,
        accepting_states=dfa.accepting_states & keep,
        components={s: m for s, m in dfa.components.items() if s in keep},
    )


def minimize(dfa: Automaton) -> MinimizationResult:
    """Run the whole table-filling pipeline on a DFA."""
    dfa.check_deterministic()

    if dfa.start_state is None:
        return MinimizationResult(
            Automaton(type=AutomatonType.DFA, alphabet=list(dfa.alphabet))
        )

    reachable_set = find_reachable_states(dfa)
    reachable = [s for s in dfa.states if s in reachable_set]

    if len(reachable) <= 1:
        return MinimizationResult(
            _restrict(dfa, reachable),
            groups=[frozenset(reachable)],
            reachable=reachable,
        )

    marked, pairs, initial_step = initialize_pair_table(reachable, dfa)
    marked, steps = perform_iterative_marking(dfa, marked, pairs)
    groups = group_equivalent_states(reachable, marked)
    minimized = construct_minimized_dfa(groups, dfa)

    logger.debug(
        "Minimized DFA: %d reachable states -> %d states",
        len(reachable),
        len(groups),
    )
    return MinimizationResult(
        minimized,
        groups=groups,
        reachable=reachable,
        marked=marked,
        steps=[initial_step] + steps,
    )
