import argparse
import logging
from dataclasses import dataclass, field
from typing_extensions import *

from graphviz import ExecutableNotFound

import samples
from automaton import EPSILON, Automaton, execute, format_state_set
from errors import AutomataLabError
from grammar import Grammar, compute_first_sets, compute_follow_sets, format_production
from io_utils import load_from_file
from ll_parsing import ParseResult, build_ll1_table, parse_ll1
from lr_parsing import LRTable, build_lr1_table, format_item_set, parse_lr
from minimization import minimize
from regular_expression import RegularExpression
from subset_construction import subset_construction

logger = logging.getLogger(__name__)

HELP = """
Commands:
  LOADING:
    load <file>                  - Load automata/grammars/regexes from file
    samples                      - Load the bundled classroom examples
    list                         - List all loaded items
    show <name>                  - Show an automaton, grammar or regex

  AUTOMATA:
    graph <name> [file]          - Render automaton to <file>.png
    dot <name>                   - Print Graphviz DOT source
    regex <name|pattern> [res]   - Build an NFA with Thompson's construction
    test <name> <word>           - Test if word is accepted (ε = empty word)
    trace <name> <word>          - Step-by-step execution trace
    to_dfa <name> [result]       - Subset construction
    subset_trace <name>          - Show how each DFA transition was derived
    minimize <name> [result]     - Table-filling minimization
    minimize_trace <name>        - Show the marking table iterations

  GRAMMARS:
    first_follow <name>          - FIRST and FOLLOW sets
    ll1_table <name>             - LL(1) table and conflicts
    ll1_parse <name> <input>     - LL(1) parse trace
    lr1_table <name>             - Canonical LR(1) states and table
    lr1_parse <name> <input>     - LR(1) parse trace
    lalr_table <name>            - LALR(1) states and table
    lalr_parse <name> <input>    - LALR(1) parse trace

  GENERAL:
    delete <name>                - Delete item
    clear                        - Clear all
    exit                         - Exit
"""


@dataclass
class Session:
    automata: Dict[str, Automaton] = field(default_factory=dict)
    grammars: Dict[str, Grammar] = field(default_factory=dict)
    regexes: Dict[str, RegularExpression] = field(default_factory=dict)

    def load(self, filename: str) -> str:
        automata, grammars, regexes = load_from_file(filename)
        self.automata.update(automata)
        self.grammars.update(grammars)
        self.regexes.update(regexes)

        msg = []
        if automata:
            msg.append(f"{len(automata)} automata: {', '.join(automata)}")
        if grammars:
            msg.append(f"{len(grammars)} grammars: {', '.join(grammars)}")
        if regexes:
            msg.append(f"{len(regexes)} regexes: {', '.join(regexes)}")
        return f"Loaded {' and '.join(msg)}" if msg else "No items loaded"

    def load_samples(self):
        self.automata["dfa8"] = samples.eight_state_dfa()
        self.automata["dfa5"] = samples.five_state_dfa()
        self.automata["ends_ab"] = samples.ends_in_ab_nfa()
        self.grammars["expr"] = samples.expression_grammar()
        self.grammars["conflict"] = samples.conflict_grammar()
        self.grammars["cc"] = samples.cc_grammar()
        self.regexes["ends_ab_re"] = RegularExpression(samples.ENDS_IN_AB_REGEX)


# ---------------------------------------------------------------------- #
# Formatting
# ---------------------------------------------------------------------- #


def format_automaton(name: str, aut: Automaton) -> str:
    lines = [
        f"\n{name}: {aut.type.name}",
        f"  States: {', '.join(aut.describe_state(s) for s in aut.states)}",
        f"  Alphabet: {{{', '.join(aut.alphabet)}}}",
        f"  Start: {aut.start_state}",
        f"  Accepting: {format_state_set(aut.accepting_states)}",
        "  Transitions:",
    ]
    for src, sym, tgt in aut.transitions:
        lines.append(f"    {src} -{EPSILON if sym is None else sym}-> {tgt}")
    return "\n".join(lines) + "\n"


def format_sets(title: str, sets: Dict[str, Set[str]]) -> str:
    lines = [f"{title}:"]
    for symbol, values in sets.items():
        lines.append(f"  {symbol}: {{{', '.join(sorted(values))}}}")
    return "\n".join(lines)


def format_parse(result: ParseResult) -> str:
    width = max([len(step.stack) for step in result.steps] + [5])
    input_width = max([len(step.input) for step in result.steps] + [5])
    lines = [f"{'Stack':<{width}}  {'Input':>{input_width}}  Action"]
    for step in result.steps:
        lines.append(f"{step.stack:<{width}}  {step.input:>{input_width}}  {step.action}")
    lines.append("ACCEPTED" if result.accepted else "REJECTED")
    return "\n".join(lines)


def format_lr_table(table: LRTable) -> str:
    grammar = table.grammar
    terminals = grammar.terminals
    non_terminals = [nt for nt in grammar.non_terminals if nt != grammar.start_symbol]

    lines = ["Rules:"]
    for number, (lhs, body) in enumerate(table.rules, start=1):
        lines.append(f"  {number}: {format_production(lhs, body)}")

    lines.append("States:")
    for state, items in enumerate(table.collection.states):
        lines.append(f"  I{state}: " + "  ".join(format_item_set(items)))

    header = ["State"] + terminals + non_terminals
    lines.append("\t".join(header))
    for state in range(table.num_states):
        row = [str(state)]
        row += [str(table.action[state].get(t, "")) for t in terminals]
        row += [str(table.goto[state].get(nt, "")) for nt in non_terminals]
        lines.append("\t".join(row))
    return "\n".join(lines)


# ---------------------------------------------------------------------- #
# Command dispatch
# ---------------------------------------------------------------------- #


def _word(arg: str) -> str:
    return "" if arg == EPSILON else arg


def execute_command(session: Session, command: str) -> bool:
    """Run one terminal command; returns False when the session should end."""
    parts = command.split()
    if not parts:
        return True
    cmd = parts[0].lower()
    automata, grammars, regexes = session.automata, session.grammars, session.regexes

    # Exit
    if cmd in ["exit", "quit"]:
        return False

    elif cmd == "help":
        print(HELP)

    elif cmd == "load":
        if len(parts) < 2:
            print("Usage: load <filename>")
        else:
            print(session.load(parts[1]))

    elif cmd == "samples":
        session.load_samples()
        print("Loaded samples: dfa8, dfa5, ends_ab, expr, conflict, cc, ends_ab_re")

    elif cmd == "list":
        if not (automata or grammars or regexes):
            print("Nothing loaded")
        if automata:
            print("Automata:")
            for name, aut in sorted(automata.items()):
                print(f"  {name}: {aut.type.name}, {len(aut.states)} states")
        if grammars:
            print("Grammars:")
            for name, gram in sorted(grammars.items()):
                print(
                    f"  {name}: {len(gram.non_terminals)} non-terminals, "
                    f"{len(gram.rules())} productions"
                )
        if regexes:
            print("Regular Expressions:")
            for name, regex in sorted(regexes.items()):
                print(f"  {name}: {regex.pattern}")

    elif cmd == "show":
        if len(parts) < 2:
            print("Usage: show <name>")
        elif parts[1] in automata:
            print(format_automaton(parts[1], automata[parts[1]]))
        elif parts[1] in grammars:
            print(f"\n{parts[1]}:\n{grammars[parts[1]]}")
        elif parts[1] in regexes:
            regex = regexes[parts[1]]
            print(f"\n{parts[1]}: {regex.pattern}\n  Postfix: {regex.postfix}\n")
        else:
            print(f"Not found: {parts[1]}")

    elif cmd in ["graph", "dot"]:
        if len(parts) < 2:
            print(f"Usage: {cmd} <name>")
        elif parts[1] not in automata:
            print(f"Automaton not found: {parts[1]}")
        elif cmd == "dot":
            print(automata[parts[1]].to_graphviz().source)
        else:
            filename = parts[2] if len(parts) > 2 else parts[1]
            automata[parts[1]].to_graphviz(filename=filename, view=False)
            print(f"Created: {filename}.png")

    elif cmd == "regex":
        if len(parts) < 2:
            print("Usage: regex <name|pattern> [result]")
        else:
            if parts[1] in regexes:
                regex = regexes[parts[1]]
                default_name = f"{parts[1]}_nfa"
            else:
                regex = RegularExpression(parts[1])
                default_name = "regex_nfa"
            result_name = parts[2] if len(parts) > 2 else default_name
            automata[result_name] = regex.to_NFA()
            print(f"Postfix: {regex.postfix}")
            print(f"Created automaton: {result_name}")

    elif cmd in ["test", "trace"]:
        if len(parts) < 3:
            print(f"Usage: {cmd} <name> <word>")
        elif parts[1] not in automata:
            print(f"Automaton not found: {parts[1]}")
        else:
            result = execute(automata[parts[1]], _word(parts[2]))
            if cmd == "trace":
                for step in result.steps:
                    print(f"  {step.step}: {step.message}")
            print("ACCEPTED" if result.accepted else "REJECTED")

    elif cmd == "to_dfa":
        if len(parts) < 2:
            print("Usage: to_dfa <name> [result]")
        elif parts[1] not in automata:
            print(f"Automaton not found: {parts[1]}")
        else:
            result_name = parts[2] if len(parts) > 2 else f"{parts[1]}_dfa"
            automata[result_name] = automata[parts[1]].to_DFA()
            print(f"Created: {result_name}")

    elif cmd == "subset_trace":
        if len(parts) < 2:
            print("Usage: subset_trace <name>")
        elif parts[1] not in automata:
            print(f"Automaton not found: {parts[1]}")
        else:
            for step in subset_construction(automata[parts[1]]).steps:
                print(f"  {step.describe()}")

    elif cmd == "minimize":
        if len(parts) < 2:
            print("Usage: minimize <name> [result]")
        elif parts[1] not in automata:
            print(f"Automaton not found: {parts[1]}")
        else:
            result = minimize(automata[parts[1]])
            result_name = parts[2] if len(parts) > 2 else f"{parts[1]}_min"
            automata[result_name] = result.dfa
            if result.already_minimal:
                print("DFA is already minimal.")
            print(f"Created: {result_name} ({len(result.dfa.states)} states)")

    elif cmd == "minimize_trace":
        if len(parts) < 2:
            print("Usage: minimize_trace <name>")
        elif parts[1] not in automata:
            print(f"Automaton not found: {parts[1]}")
        else:
            result = minimize(automata[parts[1]])
            print(f"Reachable: {format_state_set(result.reachable)}")
            for step in result.steps:
                print(f"  {step.summary}")
                for marked in step.newly_marked:
                    print(f"    {marked.reason}")
            for name in result.dfa.states:
                print(f"  {result.dfa.describe_state(name)}")

    elif cmd == "first_follow":
        if len(parts) < 2:
            print("Usage: first_follow <name>")
        elif parts[1] not in grammars:
            print(f"Grammar not found: {parts[1]}")
        else:
            first_sets = compute_first_sets(grammars[parts[1]])
            print(format_sets("FIRST", first_sets))
            print(format_sets("FOLLOW", compute_follow_sets(grammars[parts[1]], first_sets)))

    elif cmd in ["ll1_table", "ll1_parse"]:
        if len(parts) < (2 if cmd == "ll1_table" else 3):
            print(f"Usage: {cmd} <name>" + (" <input>" if cmd == "ll1_parse" else ""))
        elif parts[1] not in grammars:
            print(f"Grammar not found: {parts[1]}")
        else:
            grammar = grammars[parts[1]]
            table = build_ll1_table(grammar)
            if cmd == "ll1_table":
                for nt, row in table.entries.items():
                    for terminal, body in row.items():
                        print(f"  M[{nt}, {terminal}] = {format_production(nt, body)}")
                for conflict in table.conflicts:
                    print(f"  {conflict}")
                print("Grammar is LL(1)" if table.is_ll1 else "Grammar is not LL(1)")
            else:
                print(format_parse(parse_ll1(" ".join(parts[2:]), table, grammar)))

    elif cmd in ["lr1_table", "lr1_parse", "lalr_table", "lalr_parse"]:
        is_parse = cmd.endswith("_parse")
        if len(parts) < (3 if is_parse else 2):
            print(f"Usage: {cmd} <name>" + (" <input>" if is_parse else ""))
        elif parts[1] not in grammars:
            print(f"Grammar not found: {parts[1]}")
        else:
            method = "lalr1" if cmd.startswith("lalr") else "lr1"
            table = build_lr1_table(grammars[parts[1]], method=method)
            if is_parse:
                print(format_parse(parse_lr(" ".join(parts[2:]), table)))
            else:
                print(format_lr_table(table))

    elif cmd == "delete":
        if len(parts) < 2:
            print("Usage: delete <name>")
        else:
            deleted = False
            for items in (automata, grammars, regexes):
                if parts[1] in items:
                    del items[parts[1]]
                    deleted = True
            print(f"Deleted: {parts[1]}" if deleted else f"Not found: {parts[1]}")

    elif cmd == "clear":
        automata.clear()
        grammars.clear()
        regexes.clear()
        print("Cleared all")

    else:
        print(f"Unknown command: {cmd}")

    return True


def run_command(session: Session, command: str) -> bool:
    """`execute_command`, reporting input and algorithm errors instead of raising."""
    try:
        return execute_command(session, command)
    except (AutomataLabError, OSError, ExecutableNotFound) as e:
        logger.debug("Command failed: %s", command, exc_info=True)
        print(f"Error: {e}")
        return True


def main(argv: Optional[Sequence[str]] = None):
    """Simple interactive terminal for automata, regexes and grammars."""
    parser = argparse.ArgumentParser(
        description="Interactive terminal for automata, regular expressions and parsing."
    )
    parser.add_argument("files", nargs="*", help="Files to load at startup")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: WARNING)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s: %(message)s",
    )

    session = Session()
    for filename in args.files:
        try:
            print(session.load(filename))
        except (AutomataLabError, OSError) as e:
            print(f"Error: {e}")

    print("Automata & Parsing Terminal - Type 'help' for commands\n")

    while True:
        try:
            if not run_command(session, input("> ").strip()):
                break
        except KeyboardInterrupt:
            print("\nUse 'exit' to quit")
        except EOFError:
            break

    print("Goodbye!")


if __name__ == "__main__":
    main()
