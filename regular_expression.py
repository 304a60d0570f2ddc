import logging
from typing_extensions import *

from automaton import EPSILON, Automaton, AutomatonType, Transition
from errors import RegexSyntaxError

logger = logging.getLogger(__name__)

CONCAT = "."
UNION = "|"
STAR = "*"

PRECEDENCE = {UNION: 1, CONCAT: 2, STAR: 3}


def is_operand(char: str) -> bool:
    return char == EPSILON or (len(char) == 1 and char.isalnum())


def preprocess_regex(pattern: str) -> str:
    """Make concatenation explicit: `a(b|c)*d` becomes `a.(b|c)*.d`."""
    pattern = "".join(pattern.split())
    result: List[str] = []

    for i, char in enumerate(pattern):
        result.append(char)

        if i < len(pattern) - 1:
            next_char = pattern[i + 1]
            if (is_operand(char) or char in ")*") and (
                is_operand(next_char) or next_char == "("
            ):
                result.append(CONCAT)

    return "".join(result)


def infix_to_postfix(pattern: str) -> str:
    """Shunting-yard conversion of an explicit-concatenation regex."""
    output: List[str] = []
    stack: List[Tuple[str, int]] = []

    for position, char in enumerate(pattern):
        if is_operand(char):
            output.append(char)
        elif char == "(":
            stack.append((char, position))
        elif char == ")":
            while stack and stack[-1][0] != "(":
                output.append(stack.pop()[0])
            if not stack:
                raise RegexSyntaxError("Mismatched parentheses in regex", position)
            stack.pop()  # Remove "("
        elif char in PRECEDENCE:
            while (
                stack
                and stack[-1][0] != "("
                and PRECEDENCE[stack[-1][0]] >= PRECEDENCE[char]
            ):
                output.append(stack.pop()[0])
            stack.append((char, position))
        else:
            raise RegexSyntaxError(f"Unsupported character '{char}' in regex", position)

    while stack:
        op, position = stack.pop()
        if op == "(":
            raise RegexSyntaxError("Mismatched parentheses in regex", position)
        output.append(op)

    return "".join(output)


class _Fragment(NamedTuple):
    start: str
    accept: str
    states: List[str]
    transitions: List[Transition]


def thompson_construction(postfix: str, state_prefix: str = "q") -> Automaton:
    """
    Thompson's construction over a postfix regex.

    State ids are drawn from a counter owned by this call, so every
    construction numbers its states q0, q1, ... independently.
    """
    stack: List[_Fragment] = []
    alphabet: Set[str] = set()
    state_counter = [0]  # Use list to allow modification in nested function

    def new_state() -> str:
        state = f"{state_prefix}{state_counter[0]}"
        state_counter[0] += 1
        return state

    def pop(op: str, count: int) -> List[_Fragment]:
        if len(stack) < count:
            raise RegexSyntaxError(f"Not enough operands for '{op}'")
        popped = stack[-count:]
        del stack[-count:]
        return popped

    for token in postfix:
        if token == UNION:
            nfa1, nfa2 = pop(token, 2)
            start = new_state()
            accept = new_state()
            stack.append(
                _Fragment(
                    start,
                    accept,
                    [start, accept] + nfa1.states + nfa2.states,
                    nfa1.transitions
                    + nfa2.transitions
                    + [
                        Transition(start, None, nfa1.start),
                        Transition(start, None, nfa2.start),
                        Transition(nfa1.accept, None, accept),
                        Transition(nfa2.accept, None, accept),
                    ],
                )
            )

        elif token == CONCAT:
            nfa1, nfa2 = pop(token, 2)
            stack.append(
                _Fragment(
                    nfa1.start,
                    nfa2.accept,
                    nfa1.states + nfa2.states,
                    nfa1.transitions
                    + nfa2.transitions
                    + [Transition(nfa1.accept, None, nfa2.start)],
                )
            )

        elif token == STAR:
            (nfa1,) = pop(token, 1)
            start = new_state()
            accept = new_state()
            stack.append(
                _Fragment(
                    start,
                    accept,
                    [start, accept] + nfa1.states,
                    nfa1.transitions
                    + [
                        Transition(start, None, nfa1.start),  # enter
                        Transition(start, None, accept),  # zero occurrences
                        Transition(nfa1.accept, None, nfa1.start),  # repeat
                        Transition(nfa1.accept, None, accept),  # exit
                    ],
                )
            )

        elif is_operand(token):
            start = new_state()
            accept = new_state()
            symbol = None if token == EPSILON else token
            if symbol is not None:
                alphabet.add(symbol)
            stack.append(
                _Fragment(start, accept, [start, accept], [Transition(start, symbol, accept)])
            )

        else:
            raise RegexSyntaxError(f"Unexpected token '{token}' in postfix expression")

    if len(stack) != 1:
        raise RegexSyntaxError(
            f"Malformed regex: expected one NFA fragment, found {len(stack)}"
        )

    fragment = stack[0]
    logger.debug(
        "Thompson construction: %d states, %d transitions",
        len(fragment.states),
        len(fragment.transitions),
    )
    return Automaton(
        type=AutomatonType.NFA,
        states=fragment.states,
        alphabet=sorted(alphabet),
        transitions=fragment.transitions,
        start_state=fragment.start,
        accepting_states=frozenset({fragment.accept}),
    )


def regex_to_nfa(pattern: str) -> Automaton:
    return RegularExpression(pattern).to_NFA()


class RegularExpression:
    """
    Regular expression over alphanumeric symbols.

    Supports operations:
    - Concatenation: ab (or a.b)
    - Union: a|b
    - Kleene star: a*
    - Parentheses: (a|b)*
    - Empty string: ε
    """

    def __init__(self, pattern: str = ""):
        self.pattern = pattern

    def __str__(self):
        return f"RegEx: {self.pattern}"

    @property
    def postfix(self) -> str:
        return infix_to_postfix(preprocess_regex(self.pattern))

    def to_NFA(self) -> Automaton:
        """Convert to an NFA using Thompson's construction."""
        if not self.pattern.strip():
            raise RegexSyntaxError("Empty regex; use ε for the empty string")
        return thompson_construction(self.postfix)

    # Constructors ----------------------------------------------------------

    @classmethod
    def from_string(cls, pattern: str) -> "RegularExpression":
        return cls(pattern)

    @classmethod
    def from_file(cls, filename: str) -> "RegularExpression":
        with open(filename, "r", encoding="utf-8") as f:
            content = f.read().strip()
        return cls(content)
