"""LL(1) predictive parsing: table construction and stack simulation."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import *

from grammar import (
    END_MARKER,
    EPSILON,
    Body,
    Grammar,
    SymbolSets,
    compute_first_sets,
    compute_follow_sets,
    first_of_sequence,
    format_production,
)

logger = logging.getLogger(__name__)

MIN_PARSE_STEPS = 200


class ParseOutcome(Enum):
    ACCEPT = "Accept"
    ERROR = "Error"


class ParseStep(NamedTuple):
    stack: str
    input: str
    action: str


@dataclass
class ParseResult:
    outcome: ParseOutcome
    steps: List[ParseStep] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.outcome == ParseOutcome.ACCEPT


class LL1Conflict(NamedTuple):
    non_terminal: str
    terminal: str
    existing: Body
    incoming: Body

    def __str__(self):
        return (
            f"Conflict at M[{self.non_terminal}, {self.terminal}]: "
            f"{format_production(self.non_terminal, self.existing)} vs "
            f"{format_production(self.non_terminal, self.incoming)}"
        )


@dataclass
class LL1Table:
    entries: Dict[str, Dict[str, Body]] = field(default_factory=dict)
    conflicts: List[LL1Conflict] = field(default_factory=list)

    @property
    def is_ll1(self) -> bool:
        return not self.conflicts

    def get(self, non_terminal: str, terminal: str) -> Optional[Body]:
        return self.entries.get(non_terminal, {}).get(terminal)

    def add(self, non_terminal: str, terminal: str, body: Body):
        """Fill a cell; a different production in an occupied cell is a conflict."""
        row = self.entries.setdefault(non_terminal, {})
        existing = row.get(terminal)
        if existing is None:
            row[terminal] = body
        elif existing != body:
            self.conflicts.append(LL1Conflict(non_terminal, terminal, existing, body))


def build_ll1_table(
    grammar: Grammar,
    first_sets: Optional[SymbolSets] = None,
    follow_sets: Optional[SymbolSets] = None,
) -> LL1Table:
    if first_sets is None:
        first_sets = compute_first_sets(grammar)
    if follow_sets is None:
        follow_sets = compute_follow_sets(grammar, first_sets)

    table = LL1Table({nt: {} for nt in grammar.non_terminals})
    terminals = grammar.terminals

    for lhs, body in grammar.rules():
        first = first_of_sequence(body, first_sets, grammar)
        lookaheads = first - {EPSILON}
        if EPSILON in first:
            lookaheads |= follow_sets[lhs]
        for terminal in terminals:
            if terminal in lookaheads:
                table.add(lhs, terminal, body)

    if table.conflicts:
        logger.debug("LL(1) table has %d conflict(s)", len(table.conflicts))
    return table


def tokenize(text: str, terminals: Iterable[str]) -> List[str]:
    """
    Split parser input into terminals and append the end marker.

    Input containing whitespace is split on it. Otherwise the longest
    matching terminal is taken at each position; an unknown character
    becomes a token of its own.
    """
    text = text.strip()
    if any(ch.isspace() for ch in text):
        tokens = text.split()
    else:
        candidates = sorted(set(terminals), key=len, reverse=True)
        tokens = []
        i = 0
        while i < len(text):
            for terminal in candidates:
                if terminal and text.startswith(terminal, i):
                    tokens.append(terminal)
                    i += len(terminal)
                    break
            else:
                tokens.append(text[i])
                i += 1

    if not tokens or tokens[-1] != END_MARKER:
        tokens.append(END_MARKER)
    return tokens


def prepare_tokens(
    tokens_or_text: Union[str, Sequence[str]], terminals: Iterable[str]
) -> List[str]:
    """Tokenize text input, or copy a token sequence, ending in exactly one `$`."""
    if isinstance(tokens_or_text, str):
        return tokenize(tokens_or_text, terminals)
    tokens = list(tokens_or_text)
    if not tokens or tokens[-1] != END_MARKER:
        tokens.append(END_MARKER)
    return tokens


def default_max_steps(tokens: Sequence[str]) -> int:
    return max(MIN_PARSE_STEPS, 5 * len(tokens))


def parse_ll1(
    tokens_or_text: Union[str, Sequence[str]],
    table: LL1Table,
    grammar: Grammar,
    max_steps: Optional[int] = None,
) -> ParseResult:
    """
    Simulate the predictive parser.

    Each record shows the stack (top on the left) and remaining input
    together with the action that produced them.
    """
    tokens = prepare_tokens(tokens_or_text, grammar.terminals)
    if max_steps is None:
        max_steps = default_max_steps(tokens)

    stack = [END_MARKER, grammar.start_symbol]
    steps: List[ParseStep] = []
    position = 0

    def record(action: str):
        steps.append(
            ParseStep(" ".join(reversed(stack)), " ".join(tokens[position:]), action)
        )

    def fail(message: str) -> ParseResult:
        record(message)
        return ParseResult(ParseOutcome.ERROR, steps, message)

    if END_MARKER in tokens[:-1]:
        return fail("Error: Unexpected end marker")

    action = "Initialize"
    for _ in range(max_steps):
        record(action)
        top = stack[-1]
        current = tokens[position] if position < len(tokens) else None

        if top == END_MARKER and current == END_MARKER:
            steps.append(ParseStep(END_MARKER, END_MARKER, "Accept"))
            return ParseResult(ParseOutcome.ACCEPT, steps)

        if top == END_MARKER or current is None:
            return fail("Error: Unexpected end of stack or input")

        if grammar.is_non_terminal(top):
            body = table.get(top, current)
            if body is None:
                return fail(f"Error: No rule in table M[{top}, {current}]")
            stack.pop()
            stack.extend(s for s in reversed(body) if s != EPSILON)
            action = format_production(top, body)
        elif top == current:
            stack.pop()
            position += 1
            action = f"Match {current}"
        else:
            return fail(f"Error: Mismatch (Stack: {top}, Input: {current})")

    return fail("Error: Max parsing steps reached. Possible loop or complex parse.")
