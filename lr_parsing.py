"""
Canonical LR(1) and LALR(1) parsing.

Items carry a single lookahead terminal. The canonical collection is built
breadth-first from closure({[S' -> . S, $]}); LALR(1) tables come from
merging canonical states that share the same core.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import *

from errors import AutomataLabError, LRConflictError
from grammar import (
    END_MARKER,
    Body,
    Grammar,
    SymbolSets,
    body_symbols,
    compute_first_sets,
    first_of_sequence,
    format_production,
)
from ll_parsing import (
    ParseOutcome,
    ParseResult,
    ParseStep,
    default_max_steps,
    prepare_tokens,
)

logger = logging.getLogger(__name__)


_ITEM_PATTERN = re.compile(r"^\[(\S+) -> (.*), (\S+)\]$")


@dataclass(frozen=True)
class LR1Item:
    lhs: str
    body: Body  # ε bodies are ()
    dot: int
    lookahead: str

    def __str__(self):
        rhs = " ".join(self.body[: self.dot] + (".",) + self.body[self.dot:])
        return f"[{self.lhs} -> {rhs}, {self.lookahead}]"

    @classmethod
    def parse(cls, text: str) -> "LR1Item":
        """Inverse of `str(item)`, e.g. `[S -> C . C, $]`."""
        match = _ITEM_PATTERN.match(text.strip())
        if not match:
            raise AutomataLabError(f"Malformed LR(1) item: {text!r}")
        lhs, rhs, lookahead = match.groups()
        symbols = rhs.split()
        if symbols.count(".") != 1:
            raise AutomataLabError(f"LR(1) item needs exactly one dot: {text!r}")
        dot = symbols.index(".")
        return cls(lhs, tuple(s for s in symbols if s != "."), dot, lookahead)

    @property
    def next_symbol(self) -> Optional[str]:
        return self.body[self.dot] if self.dot < len(self.body) else None

    @property
    def is_complete(self) -> bool:
        return self.dot >= len(self.body)

    @property
    def core(self) -> Tuple[str, Body, int]:
        return self.lhs, self.body, self.dot

    def advance(self) -> "LR1Item":
        return LR1Item(self.lhs, self.body, self.dot + 1, self.lookahead)


ItemSet = FrozenSet[LR1Item]


def lr1_closure(
    items: Iterable[LR1Item], grammar: Grammar, first_sets: SymbolSets
) -> ItemSet:
    closure = set(items)
    worklist = list(closure)

    while worklist:
        item = worklist.pop()
        symbol = item.next_symbol
        if symbol is None or not grammar.is_non_terminal(symbol):
            continue

        rest = item.body[item.dot + 1:] + (item.lookahead,)
        lookaheads = first_of_sequence(rest, first_sets, grammar)
        for gamma in grammar.productions[symbol]:
            for lookahead in lookaheads:
                new_item = LR1Item(symbol, body_symbols(gamma), 0, lookahead)
                if new_item not in closure:
                    closure.add(new_item)
                    worklist.append(new_item)

    return frozenset(closure)


def lr1_goto(
    items: Iterable[LR1Item], symbol: str, grammar: Grammar, first_sets: SymbolSets
) -> ItemSet:
    kernel = [item.advance() for item in items if item.next_symbol == symbol]
    if not kernel:
        return frozenset()
    return lr1_closure(kernel, grammar, first_sets)


def format_item_set(items: Iterable[LR1Item]) -> List[str]:
    return sorted(str(item) for item in items)


@dataclass
class CanonicalCollection:
    grammar: Grammar  # augmented
    states: List[ItemSet] = field(default_factory=list)
    transitions: Dict[Tuple[int, str], int] = field(default_factory=dict)


def build_canonical_collection(grammar: Grammar) -> CanonicalCollection:
    augmented = grammar.augmented()
    first_sets = compute_first_sets(augmented)

    start_item = LR1Item(augmented.start_symbol, (grammar.start_symbol,), 0, END_MARKER)
    start = lr1_closure([start_item], augmented, first_sets)

    symbols = [nt for nt in augmented.non_terminals if nt != augmented.start_symbol]
    symbols += [t for t in augmented.terminals if t != END_MARKER]

    collection = CanonicalCollection(augmented, [start])
    ids: Dict[ItemSet, int] = {start: 0}
    index = 0

    while index < len(collection.states):
        current = collection.states[index]
        for symbol in symbols:
            target = lr1_goto(current, symbol, augmented, first_sets)
            if not target:
                continue
            if target not in ids:
                ids[target] = len(collection.states)
                collection.states.append(target)
            collection.transitions[(index, symbol)] = ids[target]
        index += 1

    logger.debug("Canonical LR(1) collection: %d states", len(collection.states))
    return collection


def merge_lalr(collection: CanonicalCollection) -> CanonicalCollection:
    """Merge states with identical cores, numbering merged states by first occurrence."""
    by_core: Dict[FrozenSet[Tuple[str, Body, int]], int] = {}
    merged: List[Set[LR1Item]] = []
    remap: Dict[int, int] = {}

    for state_id, items in enumerate(collection.states):
        core = frozenset(item.core for item in items)
        if core not in by_core:
            by_core[core] = len(merged)
            merged.append(set())
        merged[by_core[core]] |= items
        remap[state_id] = by_core[core]

    transitions = {
        (remap[source], symbol): remap[target]
        for (source, symbol), target in collection.transitions.items()
    }

    logger.debug(
        "LALR(1) merge: %d LR(1) states -> %d states",
        len(collection.states),
        len(merged),
    )
    return CanonicalCollection(
        collection.grammar, [frozenset(items) for items in merged], transitions
    )


# ---------------------------------------------------------------------- #
# ACTION / GOTO tables
# ---------------------------------------------------------------------- #


class ActionKind(Enum):
    SHIFT = "s"
    REDUCE = "r"
    ACCEPT = "acc"


class LRAction(NamedTuple):
    kind: ActionKind
    target: Optional[int] = None  # state for shift, rule number for reduce

    def __str__(self):
        if self.kind == ActionKind.ACCEPT:
            return "acc"
        return f"{self.kind.value}{self.target}"


class LRConflict(NamedTuple):
    state: int
    symbol: str
    existing: LRAction
    incoming: LRAction

    @property
    def kind(self) -> str:
        if ActionKind.SHIFT in (self.existing.kind, self.incoming.kind):
            return "shift/reduce"
        return "reduce/reduce"

    def __str__(self):
        return (
            f"{self.kind} conflict in state {self.state} on '{self.symbol}': "
            f"{self.existing} vs {self.incoming}"
        )


@dataclass
class LRTable:
    action: Dict[int, Dict[str, LRAction]]
    goto: Dict[int, Dict[str, int]]
    rules: List[Tuple[str, Body]]
    collection: CanonicalCollection

    @property
    def grammar(self) -> Grammar:
        return self.collection.grammar

    @property
    def num_states(self) -> int:
        return len(self.collection.states)

    def rule(self, number: int) -> Tuple[str, Body]:
        """Production by its 1-based rule number."""
        return self.rules[number - 1]


def build_lr_table(collection: CanonicalCollection) -> LRTable:
    grammar = collection.grammar
    rules = grammar.rules()
    rule_numbers = {
        (lhs, body_symbols(body)): number
        for number, (lhs, body) in enumerate(rules, start=1)
    }

    action: Dict[int, Dict[str, LRAction]] = {i: {} for i in range(len(collection.states))}
    goto: Dict[int, Dict[str, int]] = {i: {} for i in range(len(collection.states))}

    def set_action(state: int, symbol: str, new: LRAction):
        existing = action[state].get(symbol)
        if existing is not None and existing != new:
            raise LRConflictError(LRConflict(state, symbol, existing, new))
        action[state][symbol] = new

    for (state, symbol), target in collection.transitions.items():
        if grammar.is_non_terminal(symbol):
            goto[state][symbol] = target
        else:
            set_action(state, symbol, LRAction(ActionKind.SHIFT, target))

    for state, items in enumerate(collection.states):
        for item in sorted(items, key=str):
            if not item.is_complete:
                continue
            if item.lhs == grammar.start_symbol:
                set_action(state, item.lookahead, LRAction(ActionKind.ACCEPT))
            else:
                number = rule_numbers[(item.lhs, item.body)]
                set_action(state, item.lookahead, LRAction(ActionKind.REDUCE, number))

    return LRTable(action, goto, rules, collection)


def build_lr1_table(grammar: Grammar, method: str = "lr1") -> LRTable:
    """ACTION/GOTO table for `method` "lr1" (canonical) or "lalr1"."""
    if method not in ("lr1", "lalr1"):
        raise AutomataLabError(f"Unknown LR method '{method}' (expected 'lr1' or 'lalr1')")

    collection = build_canonical_collection(grammar)
    if method == "lalr1":
        collection = merge_lalr(collection)
    return build_lr_table(collection)


def parse_lr(
    tokens_or_text: Union[str, Sequence[str]],
    table: LRTable,
    max_steps: Optional[int] = None,
) -> ParseResult:
    """Shift-reduce simulation; the stack alternates states and symbols."""
    tokens = prepare_tokens(tokens_or_text, table.grammar.terminals)
    if max_steps is None:
        max_steps = default_max_steps(tokens)

    stack: List[Union[int, str]] = [0]
    steps: List[ParseStep] = []
    position = 0

    def record(action: str):
        steps.append(
            ParseStep(" ".join(str(s) for s in stack), " ".join(tokens[position:]), action)
        )

    def fail(message: str) -> ParseResult:
        record(message)
        return ParseResult(ParseOutcome.ERROR, steps, message)

    if END_MARKER in tokens[:-1]:
        return fail("Error: Unexpected end marker")

    log = "Initialize"
    for _ in range(max_steps):
        record(log)
        state = stack[-1]
        current = tokens[position]
        act = table.action.get(state, {}).get(current)

        if act is None:
            return fail(f"Error: No action for state {state} and input {current}")

        if act.kind == ActionKind.ACCEPT:
            record("Accept")
            return ParseResult(ParseOutcome.ACCEPT, steps)

        if act.kind == ActionKind.SHIFT:
            stack += [current, act.target]
            position += 1
            log = f"Shift {current}, Goto state {act.target}"
            continue

        lhs, body = table.rule(act.target)
        size = len(body_symbols(body))
        if size:
            del stack[-2 * size:]
        previous = stack[-1]
        stack.append(lhs)
        target = table.goto.get(previous, {}).get(lhs)
        if target is None:
            return fail(f"Error: No GOTO for state {previous} and non-terminal {lhs}")
        stack.append(target)
        log = (
            f"Reduce by {format_production(lhs, body)} (Rule {act.target}), "
            f"Goto state {target}"
        )

    return fail("Error: Max parsing steps reached.")
