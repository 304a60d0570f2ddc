import logging

import pytest

from cli import Session, main, run_command


@pytest.fixture
def session():
    session = Session()
    session.load_samples()
    return session


def run(session, capsys, command):
    assert run_command(session, command)
    return capsys.readouterr().out


def test_test_and_trace(session, capsys):
    assert run(session, capsys, "test ends_ab ab").strip() == "ACCEPTED"
    assert run(session, capsys, "test ends_ab ε").strip() == "REJECTED"
    out = run(session, capsys, "trace dfa8 01")
    assert "Start at state A." in out
    assert out.strip().endswith("ACCEPTED")


def test_regex_to_dfa_and_minimize(session, capsys):
    run(session, capsys, "regex (a|b)*abb abb")
    run(session, capsys, "to_dfa abb")
    out = run(session, capsys, "minimize abb_dfa")
    assert "Created: abb_dfa_min (4 states)" in out
    assert run(session, capsys, "test abb_dfa_min babb").strip() == "ACCEPTED"


def test_minimize_trace(session, capsys):
    out = run(session, capsys, "minimize_trace dfa8")
    assert "Initial marking: (accept, non-accept) pairs." in out
    assert "M1 = {B,H}" in out


def test_grammar_commands(session, capsys):
    assert "Conflict at M[S, id]" in run(session, capsys, "ll1_table conflict")
    assert run(session, capsys, "ll1_parse expr a+a*a").strip().endswith("ACCEPTED")
    assert run(session, capsys, "lr1_parse cc c d d").strip().endswith("ACCEPTED")
    assert run(session, capsys, "lalr_parse cc cd").strip().endswith("REJECTED")
    assert "acc" in run(session, capsys, "lalr_table cc")
    assert "FOLLOW" in run(session, capsys, "first_follow expr")


def test_errors_are_reported(session, capsys):
    assert run(session, capsys, "regex (a").startswith("Error:")
    assert run(session, capsys, "lr1_table conflict").startswith("Error:")
    assert run(session, capsys, "load /nonexistent/file.txt").startswith("Error:")
    assert "Unknown command" in run(session, capsys, "bogus")
    assert "Automaton not found" in run(session, capsys, "test nothing a")


def test_dot_and_delete(session, capsys):
    assert "digraph" in run(session, capsys, "dot dfa8")
    assert run(session, capsys, "delete dfa8").strip() == "Deleted: dfa8"
    assert run(session, capsys, "delete dfa8").strip() == "Not found: dfa8"
    run(session, capsys, "clear")
    assert run(session, capsys, "list").strip() == "Nothing loaded"


def test_exit(session):
    assert not run_command(session, "exit")


def test_main_preloads_files(tmp_path, monkeypatch, capsys):
    path = tmp_path / "g.txt"
    path.write_text("S -> a S | b\n", encoding="utf-8")

    def end_of_input(prompt):
        raise EOFError

    monkeypatch.setattr("builtins.input", end_of_input)
    main([str(path), "--log-level", "ERROR"])
    out = capsys.readouterr().out
    assert "Loaded 1 grammars: g" in out
    assert out.strip().endswith("Goodbye!")


def test_bad_load_keeps_session(session, tmp_path, capsys, caplog):
    wrong_shape = tmp_path / "shape.json"
    wrong_shape.write_text('{"states": 5, "alphabet": [], "transitions": [], '
                           '"startStateId": null, "acceptStateIds": []}', encoding="utf-8")
    binary = tmp_path / "binary.txt"
    binary.write_bytes(b"\xff\xfe")

    with caplog.at_level(logging.WARNING):
        assert run(session, capsys, f"load {wrong_shape}").strip() == "No items loaded"
    assert "Field 'states' must be a list" in caplog.text
    assert run(session, capsys, f"load {binary}").startswith("Error:")
    assert run(session, capsys, "test ends_ab ab").strip() == "ACCEPTED"
