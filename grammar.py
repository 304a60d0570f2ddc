import logging
import re
from typing_extensions import *

from errors import AutomataLabError, ConvergenceError, GrammarSyntaxError

logger = logging.getLogger(__name__)

EPSILON = "ε"
END_MARKER = "$"
NON_TERMINAL_PATTERN = re.compile(r"^[A-Z]'*$")

Body = Tuple[str, ...]
SymbolSets = Dict[str, Set[str]]


def format_production(lhs: str, body: Sequence[str]) -> str:
    return f"{lhs} -> {' '.join(body)}"


def body_symbols(body: Sequence[str]) -> Body:
    """The symbols a body actually derives; `(ε,)` becomes `()`."""
    return tuple(s for s in body if s != EPSILON)


class Grammar:
    """
    Context-free grammar with productions kept in declaration order.

    Every symbol that is not the left-hand side of some rule is a terminal;
    the end marker `$` is always a terminal and ε never is.
    """

    def __init__(self, start_symbol: str = ""):
        self.productions: Dict[str, List[Body]] = {}
        self.start_symbol: str = start_symbol

    # ------------------------------------------------------------------ #
    # Production management
    # ------------------------------------------------------------------ #

    def add_production(self, lhs: str, body: Sequence[str]):
        symbols = tuple(s for s in body if s != EPSILON) or (EPSILON,)
        self.productions.setdefault(lhs, []).append(symbols)
        if not self.start_symbol:
            self.start_symbol = lhs

    @property
    def non_terminals(self) -> List[str]:
        return list(self.productions)

    @property
    def terminals(self) -> List[str]:
        seen: Dict[str, None] = {}
        for _, body in self.rules():
            for symbol in body:
                if symbol != EPSILON and symbol not in self.productions:
                    seen.setdefault(symbol)
        seen.setdefault(END_MARKER)
        return list(seen)

    def is_non_terminal(self, symbol: str) -> bool:
        return symbol in self.productions

    def rules(self) -> List[Tuple[str, Body]]:
        return [(lhs, body) for lhs, bodies in self.productions.items() for body in bodies]

    def augmented(self) -> "Grammar":
        """Copy of this grammar with a fresh start rule `S' -> S` in front."""
        new_start = self.start_symbol + "'"
        while new_start in self.productions:
            new_start += "'"

        result = Grammar(new_start)
        result.add_production(new_start, (self.start_symbol,))
        for lhs, body in self.rules():
            result.add_production(lhs, body)
        return result

    # ------------------------------------------------------------------ #
    # Introspection / pretty-printing
    # ------------------------------------------------------------------ #

    def __str__(self):
        result = f"  Non-terminals: {{{', '.join(self.non_terminals)}}}\n"
        result += f"  Terminals: {{{', '.join(self.terminals)}}}\n"
        result += f"  Start symbol: {self.start_symbol}\n"
        result += "  Productions:\n"
        for lhs, bodies in self.productions.items():
            alternatives = " | ".join(" ".join(body) for body in bodies)
            result += f"    {lhs} -> {alternatives}\n"
        return result

    # ------------------------------------------------------------------ #
    # Constructors
    # ------------------------------------------------------------------ #

    @classmethod
    def from_string(cls, text: str) -> "Grammar":
        return parse_grammar(text)

    @classmethod
    def from_file(cls, filename: str) -> "Grammar":
        return cls.from_string(read_source(filename))


def read_source(filename: str) -> str:
    """Read a UTF-8 input file; undecodable bytes raise `AutomataLabError`."""
    try:
        with open(filename, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise AutomataLabError(
            f"Cannot read '{filename}': not valid UTF-8 (byte {e.start})"
        ) from e


def parse_grammar(text: str) -> Grammar:
    """
    Parse one rule per line, e.g. `E' -> + T E' | ε`.

    Blank lines and lines starting with `#` are skipped. `→` is accepted as
    an arrow. Rule numbers in error messages count only the rule lines.
    """
    lines = [
        line.strip()
        for line in text.replace("→", "->").splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    if not lines:
        raise GrammarSyntaxError("Grammar input is empty.")

    grammar = Grammar()
    for number, line in enumerate(lines, start=1):
        parts = line.split("->")
        if len(parts) != 2:
            raise GrammarSyntaxError("'->' missing or multiple.", number, line)

        lhs = parts[0].strip()
        if not NON_TERMINAL_PATTERN.match(lhs):
            raise GrammarSyntaxError(f"Non-terminal '{lhs}' invalid format.", number, line)

        for alternative in parts[1].split("|"):
            symbols = alternative.split()
            if not symbols:
                raise GrammarSyntaxError("Empty production rule body.", number, line)
            grammar.add_production(lhs, symbols)

    logger.debug(
        "Parsed grammar: %d non-terminals, %d rules",
        len(grammar.non_terminals),
        len(grammar.rules()),
    )
    return grammar


# ---------------------------------------------------------------------- #
# FIRST / FOLLOW
# ---------------------------------------------------------------------- #


def _iteration_ceiling(grammar: Grammar) -> int:
    return len(grammar.non_terminals) * len(grammar.rules()) + len(grammar.terminals) + 10


def first_of_sequence(
    symbols: Sequence[str], first_sets: SymbolSets, grammar: Grammar
) -> Set[str]:
    """FIRST of a symbol string; contains ε iff every symbol can vanish."""
    result: Set[str] = set()
    for symbol in symbols:
        if symbol == EPSILON:
            continue
        if not grammar.is_non_terminal(symbol):
            result.add(symbol)
            return result
        first = first_sets[symbol]
        result |= first - {EPSILON}
        if EPSILON not in first:
            return result
    result.add(EPSILON)
    return result


def compute_first_sets(
    grammar: Grammar, max_iterations: Optional[int] = None
) -> SymbolSets:
    first_sets: SymbolSets = {nt: set() for nt in grammar.non_terminals}
    if max_iterations is None:
        max_iterations = _iteration_ceiling(grammar)

    iteration = 0
    changed = True
    while changed:
        if iteration >= max_iterations:
            raise ConvergenceError("FIRST set calculation possibly stuck in a loop.")
        changed = False
        iteration += 1
        for lhs, body in grammar.rules():
            addition = first_of_sequence(body, first_sets, grammar)
            if not addition <= first_sets[lhs]:
                first_sets[lhs] |= addition
                changed = True

    logger.debug("FIRST sets converged after %d iteration(s)", iteration)
    return first_sets


def compute_follow_sets(
    grammar: Grammar,
    first_sets: Optional[SymbolSets] = None,
    max_iterations: Optional[int] = None,
) -> SymbolSets:
    if first_sets is None:
        first_sets = compute_first_sets(grammar)
    if max_iterations is None:
        max_iterations = _iteration_ceiling(grammar)

    follow_sets: SymbolSets = {nt: set() for nt in grammar.non_terminals}
    if grammar.start_symbol in follow_sets:
        follow_sets[grammar.start_symbol].add(END_MARKER)

    iteration = 0
    changed = True
    while changed:
        if iteration >= max_iterations:
            raise ConvergenceError("FOLLOW set calculation possibly stuck in a loop.")
        changed = False
        iteration += 1
        for lhs, body in grammar.rules():
            for i, symbol in enumerate(body):
                if not grammar.is_non_terminal(symbol):
                    continue
                first_beta = first_of_sequence(body[i + 1:], first_sets, grammar)
                addition = first_beta - {EPSILON}
                if EPSILON in first_beta:
                    addition |= follow_sets[lhs]
                if not addition <= follow_sets[symbol]:
                    follow_sets[symbol] |= addition
                    changed = True

    logger.debug("FOLLOW sets converged after %d iteration(s)", iteration)
    return follow_sets
