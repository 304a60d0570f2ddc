import json
import logging
import os
import re
from typing_extensions import *

from automaton import EPSILON, Automaton, AutomatonType, Transition
from errors import AutomataLabError, AutomatonFormatError
from grammar import NON_TERMINAL_PATTERN, Grammar, read_source
from regular_expression import RegularExpression

logger = logging.getLogger(__name__)

REQUIRED_JSON_FIELDS = ("states", "alphabet", "transitions", "startStateId", "acceptStateIds")
LIST_JSON_FIELDS = ("states", "alphabet", "transitions", "acceptStateIds")
EPSILON_ALIASES = {"eps", "epsilon", EPSILON, ""}
TYPE_NAMES = {
    "dfa": AutomatonType.DFA,
    "dea": AutomatonType.DFA,
    "1": AutomatonType.DFA,
    "nfa": AutomatonType.NFA,
    "nea": AutomatonType.NFA,
    "enfa": AutomatonType.NFA,
    "nfa-e": AutomatonType.NFA,
    "epsilon": AutomatonType.NFA,
    "2": AutomatonType.NFA,
    "3": AutomatonType.NFA,
}

_SECTION_PATTERN = re.compile(r"^([A-Za-z]\w*):\s*$", re.MULTILINE)
_AUTOMATON_KEYWORDS = ("type:", "states:", "alphabet:", "start:", "accept:")


# ---------------------------------------------------------------------- #
# JSON
# ---------------------------------------------------------------------- #


def _state_id(entry: Any) -> str:
    if isinstance(entry, dict):
        return str(entry.get("id"))
    return str(entry)


def parse_automaton_json(
    text: str, automaton_type: Optional[AutomatonType] = None
) -> Automaton:
    """
    Read an automaton from JSON.

    States may be plain ids or objects with an `id` key. A transition with
    `"symbol": null` (or `"ε"`) is an ε-move and only valid for an NFA.
    The type comes from `automaton_type`, else from a `type` field, else DFA.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        kind = (automaton_type or AutomatonType.DFA).name
        raise AutomatonFormatError(f"Error parsing {kind} JSON: {e}") from e

    if automaton_type is None:
        type_name = str(data.get("type", "DFA")) if isinstance(data, dict) else "DFA"
        automaton_type = TYPE_NAMES.get(type_name.lower(), AutomatonType.DFA)
    kind = automaton_type.name

    if not isinstance(data, dict) or any(key not in data for key in REQUIRED_JSON_FIELDS):
        raise AutomatonFormatError(
            f"Invalid {kind} structure. Missing required fields "
            f"({', '.join(REQUIRED_JSON_FIELDS)})."
        )

    for key in LIST_JSON_FIELDS:
        if not isinstance(data[key], list):
            raise AutomatonFormatError(f"Invalid {kind} structure. Field '{key}' must be a list.")

    states = [_state_id(s) for s in data["states"]]
    alphabet = [str(a) for a in data["alphabet"]]
    start = data["startStateId"]
    start = None if start is None else str(start)
    accepting = [str(a) for a in data["acceptStateIds"]]
    known = set(states)

    if not states and start is not None:
        raise AutomatonFormatError(
            f"{kind} must have at least one state if startStateId is defined."
        )
    if start is not None and start not in known:
        raise AutomatonFormatError("Start state ID not found in states list.")
    for state in accepting:
        if state not in known:
            raise AutomatonFormatError(f"Accept state ID '{state}' not found in states list.")

    transitions: List[Transition] = []
    for index, entry in enumerate(data["transitions"], start=1):
        if not isinstance(entry, dict):
            raise AutomatonFormatError(f"Transition error: entry {index} is not an object.")
        src, sym, tgt = str(entry.get("from")), entry.get("symbol"), str(entry.get("to"))
        if src not in known:
            raise AutomatonFormatError(f"Transition error: from state '{src}' not found.")
        if tgt not in known:
            raise AutomatonFormatError(f"Transition error: to state '{tgt}' not found.")
        if sym is None or sym == EPSILON:
            if automaton_type == AutomatonType.DFA:
                raise AutomatonFormatError(
                    f"Transition error: symbol '{EPSILON}' not in alphabet."
                )
            sym = None
        elif str(sym) not in alphabet:
            raise AutomatonFormatError(f"Transition error: symbol '{sym}' not in alphabet.")
        else:
            sym = str(sym)
        transitions.append(Transition(src, sym, tgt))

    return Automaton(
        type=automaton_type,
        states=states,
        alphabet=alphabet,
        transitions=transitions,
        start_state=start,
        accepting_states=frozenset(accepting),
    )


def automaton_to_json(automaton: Automaton) -> str:
    data = {
        "type": automaton.type.name,
        "states": [
            {
                "id": state,
                "isStartState": state == automaton.start_state,
                "isAcceptState": state in automaton.accepting_states,
            }
            for state in automaton.states
        ],
        "alphabet": list(automaton.alphabet),
        "transitions": [
            {"from": src, "symbol": sym, "to": tgt}
            for (src, sym, tgt) in automaton.transitions
        ],
        "startStateId": automaton.start_state,
        "acceptStateIds": [s for s in automaton.states if s in automaton.accepting_states],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------- #
# Plain-text automaton blocks
# ---------------------------------------------------------------------- #


def parse_automaton_text(block: str) -> Automaton:
    """
    Parse a block such as:

        type: nfa
        states: q0 q1 q2
        alphabet: a b
        start: q0
        accept: q2
        q0 -> a -> q1
        q1 b q2
    """
    automaton_type = AutomatonType.DFA
    states: List[str] = []
    alphabet: List[str] = []
    start_state = None
    accepting: List[str] = []
    transitions: List[Tuple[str, Optional[str], str]] = []

    for line in block.strip().split("\n"):
        line = line.strip()

        if not line or line.startswith("#"):
            continue
        elif line.startswith("type:"):
            name = line[5:].strip().lower()
            if name not in TYPE_NAMES:
                raise AutomatonFormatError(f"Unsupported automaton type '{name}'")
            automaton_type = TYPE_NAMES[name]
        elif line.startswith("states:"):
            states.extend(line[7:].split())
        elif line.startswith("alphabet:"):
            alphabet.extend(line[9:].split())
        elif line.startswith("start:"):
            start_state = line[6:].strip() or None
        elif line.startswith("accept:"):
            accepting.extend(line[7:].split())
        else:
            # q0 -> a -> q1  or  q0 a q1
            if "->" in line:
                parts = [p.strip() for p in line.split("->")]
            else:
                parts = line.split()
            if len(parts) != 3:
                raise AutomatonFormatError(f"Malformed transition line: {line!r}")
            src, symbol, tgt = parts
            transitions.append(
                (src, None if symbol.lower() in EPSILON_ALIASES else symbol, tgt)
            )

    return Automaton(
        type=automaton_type,
        states=states,
        alphabet=alphabet,
        transitions=transitions,
        start_state=start_state,
        accepting_states=frozenset(accepting),
    )


def parse_automata(content: str) -> List[Automaton]:
    """One automaton for JSON content, else one per `---`-separated text block."""
    if content.strip().startswith("{"):
        return [parse_automaton_json(content)]
    return [
        parse_automaton_text(block)
        for block in content.split("---")
        if block.strip()
    ]


# ---------------------------------------------------------------------- #
# Content detection
# ---------------------------------------------------------------------- #


def _content_lines(content: str) -> List[str]:
    return [
        line.strip()
        for line in content.strip().split("\n")
        if line.strip() and not line.strip().startswith("#")
    ]


def _strip_regex_prefix(pattern: str) -> str:
    pattern = pattern.strip()
    for prefix in ("regex:", "pattern:"):
        if pattern.lower().startswith(prefix):
            return pattern[len(prefix):].strip()
    return pattern


def detect_regex(content: str) -> bool:
    lines = _content_lines(content)

    # If it starts with regex: or pattern:, it's definitely a regex
    if lines and lines[0].lower().startswith(("regex:", "pattern:")):
        return True

    if len(lines) != 1:
        return False

    line = "".join(lines[0].split())
    if any(kw in line for kw in _AUTOMATON_KEYWORDS + ("->", "→", "{")):
        return False
    return bool(line) and all(ch.isalnum() or ch in "()|*.ε" for ch in line)


def detect_grammar(content: str) -> bool:
    lines = _content_lines(content)
    if not lines:
        return False
    for line in lines:
        parts = re.split(r"->|→", line)
        if len(parts) != 2 or not NON_TERMINAL_PATTERN.match(parts[0].strip()):
            return False
    return True


def detect_automaton(content: str) -> bool:
    if content.strip().startswith("{"):
        return True

    lines = _content_lines(content)
    if any(line.lower().startswith(_AUTOMATON_KEYWORDS) for line in lines):
        return True

    if detect_grammar(content):
        return False

    arrow_lines = [line for line in lines if "->" in line or "→" in line]
    automaton_pattern_count = sum(
        1 for line in arrow_lines if len(re.split(r"\s*->\s*|\s*→\s*", line)) == 3
    )
    return automaton_pattern_count > len(arrow_lines) - automaton_pattern_count


# ---------------------------------------------------------------------- #
# File loading
# ---------------------------------------------------------------------- #

Loaded = Tuple[Dict[str, Automaton], Dict[str, Grammar], Dict[str, RegularExpression]]


def _load_item(name: str, definition: str, loaded: Loaded, multiple: bool = False):
    automata, grammars, regexes = loaded

    if detect_regex(definition):
        kind = "regex"
    elif detect_automaton(definition):
        kind = "automaton"
    else:
        kind = "grammar"

    try:
        if kind == "regex":
            regex = RegularExpression(_strip_regex_prefix(definition))
            regex.to_NFA()
            regexes[name] = regex
        elif kind == "automaton":
            for idx, automaton in enumerate(parse_automata(definition)):
                if idx > 0 and not multiple:
                    break
                automata[f"{name}{idx if idx > 0 else ''}"] = automaton
        else:
            grammars[name] = Grammar.from_string(definition)
    except AutomataLabError as e:
        logger.warning("Failed to load %s '%s': %s", kind, name, e)


def load_from_file(filename: str) -> Loaded:
    """
    Load every automaton, grammar and regex in a file.

    A file is either split into named sections (a `NAME:` line starts each)
    or holds a single unnamed item named after the file. Sections that
    fail to load are skipped with a warning.
    """
    loaded: Loaded = ({}, {}, {})

    content = read_source(filename)

    if _SECTION_PATTERN.search(content):
        sections = _SECTION_PATTERN.split(content)
        for i in range(1, len(sections) - 1, 2):
            name = sections[i].strip()
            definition = sections[i + 1].strip()
            if definition:
                _load_item(name, definition, loaded)
    else:
        base_name = os.path.basename(filename).rsplit(".", 1)[0]
        _load_item(base_name, content, loaded, multiple=True)

    automata, grammars, regexes = loaded
    logger.info(
        "Loaded %d automata, %d grammars, %d regexes from %s",
        len(automata),
        len(grammars),
        len(regexes),
        filename,
    )
    return loaded
