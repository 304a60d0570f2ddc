import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import *

from graphviz import Digraph

from errors import AutomatonError

logger = logging.getLogger(__name__)

EPSILON = "ε"


class AutomatonType(Enum):
    DFA = 1
    NFA = 3  # NFA with ε-transitions


class Verdict(Enum):
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class Transition(NamedTuple):
    source: str
    symbol: Optional[str]  # None is ε
    target: str


def format_state_set(states: Iterable[str]) -> str:
    """Canonical `{a,b,c}` rendering of a set of state ids."""
    return "{" + ",".join(sorted(states)) + "}"


@dataclass
class Automaton:
    """
    Finite automaton shared by every engine.

    type:
        DFA = at most one transition per (state, symbol), no ε-moves
        NFA = any number of transitions per (state, symbol), ε allowed

    `components` records what each state was built from (NFA states for a
    subset-construction state, original states for a minimized state). It
    is informational only; the state id is the identity.
    """

    type: AutomatonType = AutomatonType.DFA
    states: List[str] = field(default_factory=list)
    alphabet: List[str] = field(default_factory=list)
    transitions: List[Transition] = field(default_factory=list)
    start_state: Optional[str] = None
    accepting_states: FrozenSet[str] = field(default_factory=frozenset)
    components: Dict[str, FrozenSet[str]] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Construction / validation
    # -------------------------------------------------------------------------

    def __post_init__(self):
        self.states = list(dict.fromkeys(self.states))
        self.alphabet = [
            a for a in dict.fromkeys(self.alphabet) if a is not None and a != EPSILON
        ]
        self.transitions = [
            Transition(src, None if sym == EPSILON else sym, tgt)
            for (src, sym, tgt) in self.transitions
        ]
        self.accepting_states = frozenset(self.accepting_states)
        self._validate()

    def _validate(self):
        known = set(self.states)
        alphabet = set(self.alphabet)

        if self.start_state is not None and self.start_state not in known:
            raise AutomatonError(
                f"Start state '{self.start_state}' is not a declared state"
            )

        for state in sorted(self.accepting_states):
            if state not in known:
                raise AutomatonError(f"Accept state '{state}' is not a declared state")

        for src, sym, tgt in self.transitions:
            if src not in known:
                raise AutomatonError(f"Transition source '{src}' is not a declared state")
            if tgt not in known:
                raise AutomatonError(f"Transition target '{tgt}' is not a declared state")
            if sym is None:
                if self.type == AutomatonType.DFA:
                    raise AutomatonError(
                        f"DFA may not have ε-transitions (from state '{src}')"
                    )
            elif sym not in alphabet:
                raise AutomatonError(f"Transition symbol '{sym}' is not in the alphabet")

    def check_deterministic(self):
        """Raise unless every (state, symbol) has at most one transition."""
        if self.type != AutomatonType.DFA:
            raise AutomatonError("Expected a DFA, got an NFA")

        seen: Dict[Tuple[str, Optional[str]], str] = {}
        for src, sym, tgt in self.transitions:
            if sym is None:
                raise AutomatonError(f"DFA has an ε-transition from state '{src}'")
            previous = seen.setdefault((src, sym), tgt)
            if previous != tgt:
                raise AutomatonError(
                    f"DFA is not deterministic: state '{src}' has transitions to "
                    f"'{previous}' and '{tgt}' on symbol '{sym}'"
                )

    # -------------------------------------------------------------------------
    # Transition helpers
    # -------------------------------------------------------------------------

    def transition_map(self) -> Dict[Tuple[str, Optional[str]], FrozenSet[str]]:
        result = defaultdict(set)
        for src, sym, tgt in self.transitions:
            result[(src, sym)].add(tgt)
        return {k: frozenset(v) for k, v in result.items()}

    def delta(self, state: str, symbol: str) -> Optional[str]:
        """The unique DFA successor, or None when the transition is missing."""
        for src, sym, tgt in self.transitions:
            if src == state and sym == symbol:
                return tgt
        return None

    def is_accepting(self, state: str) -> bool:
        return state in self.accepting_states

    def describe_state(self, state: str) -> str:
        members = self.components.get(state)
        if members is None or format_state_set(members) == state:
            return state
        return f"{state} = {format_state_set(members)}"

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def to_DFA(self) -> "Automaton":
        """Convert an NFA to a DFA using subset construction."""
        if self.type == AutomatonType.DFA:
            return self

        # Local import to avoid circular dependency at module import time
        from subset_construction import subset_construction

        return subset_construction(self).dfa

    def minimize(self) -> "Automaton":
        """Minimize a DFA with the table-filling algorithm."""
        from minimization import minimize

        return minimize(self).dfa

    # -------------------------------------------------------------------------
    # Visualization
    # -------------------------------------------------------------------------

    def _get_state_id(self, state, state_to_id: dict) -> str:
        """Get or create a clean Graphviz node id for a state."""
        if state not in state_to_id:
            state_to_id[state] = f"n{len(state_to_id)}"
        return state_to_id[state]

    def to_graphviz(
        self, filename: Optional[str] = None, view: bool = False
    ) -> Digraph:
        """
        Build a Graphviz diagram of this automaton.

        The DOT source is always available through the returned Digraph;
        an image is rendered only when a filename is given.
        """
        name = self.type.name

        dot = Digraph(
            name=name,
            format="png",
            graph_attr={
                "rankdir": "LR",
                "label": name,
                "labelloc": "t",
                "fontname": "Arial",
            },
            node_attr={
                "shape": "circle",
                "fontname": "Arial",
                "style": "filled",
                "fillcolor": "lightblue",
            },
            edge_attr={"fontname": "Arial", "arrowsize": "0.8"},
        )

        state_to_id: Dict[str, str] = {}

        dot.node("__start__", shape="point", width="0.01", style="invis")

        for state in self.states:
            node_id = self._get_state_id(state, state_to_id)
            if state in self.accepting_states:
                dot.node(
                    node_id,
                    label=state,
                    shape="doublecircle",
                    fillcolor="lightgreen",
                )
            else:
                dot.node(node_id, label=state)

        if self.start_state is not None:
            start_id = self._get_state_id(self.start_state, state_to_id)
            dot.edge("__start__", start_id, penwidth="2")

        labels = defaultdict(list)
        for src, sym, tgt in self.transitions:
            labels[(src, tgt)].append(EPSILON if sym is None else str(sym))

        for (src, tgt), symbols in labels.items():
            src_id = self._get_state_id(src, state_to_id)
            tgt_id = self._get_state_id(tgt, state_to_id)
            label = ", ".join(sorted(symbols))
            if src == tgt:
                dot.edge(src_id, tgt_id, label=label, headport="n", tailport="n")
            else:
                dot.edge(src_id, tgt_id, label=label)

        if filename:
            dot.render(filename, view=view, cleanup=True)
        return dot


# -----------------------------------------------------------------------------
# ε-closure and move
# -----------------------------------------------------------------------------


def epsilon_closure(states: Iterable[str], automaton: Automaton) -> FrozenSet[str]:
    """Smallest superset of `states` closed under ε-transitions."""
    trans_dict = automaton.transition_map()
    closure = set(states)
    stack = list(closure)
    while stack:
        s = stack.pop()
        for next_state in trans_dict.get((s, None), frozenset()):
            if next_state not in closure:
                closure.add(next_state)
                stack.append(next_state)
    return frozenset(closure)


def move(states: Iterable[str], symbol: str, automaton: Automaton) -> FrozenSet[str]:
    """States reachable from `states` on exactly `symbol` (never ε)."""
    if symbol is None:
        return frozenset()
    trans_dict = automaton.transition_map()
    result = set()
    for s in states:
        result.update(trans_dict.get((s, symbol), frozenset()))
    return frozenset(result)


# -----------------------------------------------------------------------------
# Execution
# -----------------------------------------------------------------------------


@dataclass
class ExecutionStep:
    step: int
    states: FrozenSet[str]
    symbol: Optional[str]
    next_states: FrozenSet[str]
    remaining: Tuple[str, ...]
    message: str
    after_move: Optional[FrozenSet[str]] = None  # NFA only

    @property
    def remaining_input(self) -> str:
        return "".join(self.remaining)


@dataclass
class ExecutionResult:
    verdict: Verdict
    steps: List[ExecutionStep]

    @property
    def accepted(self) -> bool:
        return self.verdict == Verdict.ACCEPTED


def execute(automaton: Automaton, word: Union[str, Sequence[str]]) -> ExecutionResult:
    """Run `word` through the automaton and record every step."""
    if automaton.type == AutomatonType.DFA:
        return execute_dfa(automaton, word)
    return execute_nfa(automaton, word)


def execute_dfa(dfa: Automaton, word: Union[str, Sequence[str]]) -> ExecutionResult:
    dfa.check_deterministic()
    symbols = tuple(word)
    steps: List[ExecutionStep] = []

    if dfa.start_state is None:
        steps.append(
            ExecutionStep(0, frozenset(), None, frozenset(), symbols,
                          "DFA not constructed or no start state.")
        )
        steps.append(
            ExecutionStep(1, frozenset(), None, frozenset(), symbols,
                          "No start state. Rejected.")
        )
        return ExecutionResult(Verdict.REJECTED, steps)

    current = dfa.start_state
    steps.append(
        ExecutionStep(0, frozenset({current}), None, frozenset({current}), symbols,
                      f"Start at state {current}.")
    )

    for i, symbol in enumerate(symbols):
        remaining = symbols[i + 1:]
        target = dfa.delta(current, symbol)
        if target is None:
            steps.append(
                ExecutionStep(
                    i + 1, frozenset({current}), symbol, frozenset(), remaining,
                    f"No transition from {current} on symbol '{symbol}'.",
                )
            )
            steps.append(
                ExecutionStep(
                    i + 2, frozenset({current}), None, frozenset(), remaining,
                    f"Error: No transition from {current} on '{symbol}'. Rejected.",
                )
            )
            logger.debug("DFA run stopped at %s on %r", current, symbol)
            return ExecutionResult(Verdict.REJECTED, steps)

        steps.append(
            ExecutionStep(
                i + 1, frozenset({current}), symbol, frozenset({target}), remaining,
                f"State {current}, input '{symbol}' → transition to {target}",
            )
        )
        current = target

    accepted = dfa.is_accepting(current)
    if accepted:
        message = f"End of input. Final state {current} is an accept state. Accepted."
    else:
        message = f"End of input. Final state {current} is not an accept state. Rejected."
    steps.append(
        ExecutionStep(len(symbols) + 1, frozenset({current}), None,
                      frozenset({current}), (), message)
    )
    return ExecutionResult(Verdict.ACCEPTED if accepted else Verdict.REJECTED, steps)


def execute_nfa(nfa: Automaton, word: Union[str, Sequence[str]]) -> ExecutionResult:
    symbols = tuple(word)
    steps: List[ExecutionStep] = []

    if nfa.start_state is None:
        steps.append(
            ExecutionStep(0, frozenset(), None, frozenset(), symbols,
                          "NFA has no start state.")
        )
        steps.append(
            ExecutionStep(1, frozenset(), None, frozenset(), symbols,
                          "No start state. Rejected.")
        )
        return ExecutionResult(Verdict.REJECTED, steps)

    active = epsilon_closure({nfa.start_state}, nfa)
    steps.append(
        ExecutionStep(
            0, frozenset({nfa.start_state}), None, active, symbols,
            f"Initial state (ε-closure of {nfa.start_state}): {format_state_set(active)}",
        )
    )

    consumed = 0
    for i, symbol in enumerate(symbols):
        after_move = move(active, symbol, nfa)
        after_closure = epsilon_closure(after_move, nfa)
        steps.append(
            ExecutionStep(
                i + 1, active, symbol, after_closure, symbols[i + 1:],
                f"After symbol '{symbol}': move to {format_state_set(after_move)}, "
                f"then ε-closure to {format_state_set(after_closure)}",
                after_move=after_move,
            )
        )
        active = after_closure
        consumed = i + 1
        if not active:
            break

    accepted = bool(active & nfa.accepting_states)
    if not active and consumed < len(symbols):
        reason = f"No active states left after {consumed} symbol(s)."
    else:
        reason = f"End of input. Final active states: {format_state_set(active)}."
    verdict = "String Accepted." if accepted else "String Rejected."
    steps.append(
        ExecutionStep(len(steps), active, None, active, symbols[consumed:],
                      f"{reason} {verdict}")
    )
    return ExecutionResult(Verdict.ACCEPTED if accepted else Verdict.REJECTED, steps)
