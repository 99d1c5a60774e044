from __future__ import annotations

import json
from pathlib import Path

import pytest

from linelang import (
    EXIT_ARITHMETIC_FAULT,
    EXIT_LOAD_ERROR,
    EXIT_OK,
    EXIT_READ_ERROR,
    EXIT_RUNTIME_ERROR,
    run_cli,
)


def _write(tmp_path: Path, src: str) -> str:
    path = tmp_path / "prog.ll"
    path.write_text(src, encoding="utf-8")
    return str(path)


def test_cli_runs_file(tmp_path, capsys):
    path = _write(tmp_path, "1 int a\n2 set a 7\n3 begin\n4 print a a hi\n5 end\n")
    assert run_cli([path]) == EXIT_OK
    captured = capsys.readouterr()
    assert captured.out == "7 7 hi\n"
    assert captured.err == ""


def test_cli_literal_source(capsys):
    assert run_cli(["--source", "1 int a\n2 set a 3\n3 begin\n4 print a a x\n5 end"]) == EXIT_OK
    assert capsys.readouterr().out == "3 3 x\n"


def test_cli_bundled_example(repo_root, capsys):
    assert run_cli([str(repo_root / "examples" / "countdown.ll")]) == EXIT_OK
    assert capsys.readouterr().out.splitlines() == [
        "5 0 tick",
        "4 2 tick",
        "3 4 tick",
        "2 6 tick",
        "1 8 tick",
        "10 10 done",
    ]


def test_cli_missing_file(tmp_path, capsys):
    assert run_cli([str(tmp_path / "missing.ll")]) == EXIT_READ_ERROR
    assert "Error opening file" in capsys.readouterr().err


def test_cli_parse_error(tmp_path, capsys):
    path = _write(tmp_path, "1 int a\n2 int a\n3 begin\n4 end\n")
    assert run_cli([path]) == EXIT_LOAD_ERROR
    err = capsys.readouterr().err
    assert "Error at line 2: Variable a is already defined" in err
    assert "Could not build runtime" in err


def test_cli_missing_end(tmp_path, capsys):
    path = _write(tmp_path, "1 int a\n2 begin\n")
    assert run_cli([path]) == EXIT_LOAD_ERROR
    assert "No end command" in capsys.readouterr().err


def test_cli_runtime_error(tmp_path, capsys):
    path = _write(tmp_path, "1 int a\n2 begin\n3 add a 1\n4 end\n")
    assert run_cli([path, "--traceback-json"]) == EXIT_RUNTIME_ERROR
    err = capsys.readouterr().err
    assert err.startswith("Traceback (most recent call last):")
    assert "Error at line 3: Variable a is not set" in err
    payload = err[err.index("{"):]
    assert json.loads(payload)["error"]["pc"] == 3


def test_cli_division_by_zero(tmp_path, capsys):
    path = _write(tmp_path, "1 int a\n2 set a 1\n3 begin\n4 print a a x\n5 div a 0\n6 end\n")
    assert run_cli([path]) == EXIT_ARITHMETIC_FAULT
    captured = capsys.readouterr()
    assert captured.out == "1 1 x\n"
    assert "Floating point exception at line 5" in captured.err


def test_cli_screen_mode(capsys):
    src = "1 int r\n2 int c\n3 set r 1\n4 set c 2\n5 begin\n6 print r c hi\n7 end"
    assert run_cli(["--source", src, "--screen", "--rows", "3", "--cols", "10"]) == EXIT_OK
    assert capsys.readouterr().out == "\n  hi\n"


def test_cli_list(tmp_path, capsys):
    path = _write(tmp_path, "1 int a\n2 set a 7\n3 begin\n4 print a a hi\n5 end\n")
    assert run_cli([path, "--list"]) == EXIT_OK
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Index\tLine\tCommand")
    assert out[-1] == "4\t5\tend"
    assert "7 7 hi" not in out


def test_cli_trace_extension(repo_root, capsys):
    ext = str(repo_root / "ext" / "trace.py")
    assert run_cli(["--source", "1 begin\n2 end", "--ext", ext]) == EXIT_OK
    assert capsys.readouterr().err.splitlines() == ["trace: 0 pc=1 1 begin", "trace: halted after 1 steps"]


def test_cli_bad_extension(tmp_path, capsys):
    assert run_cli(["--source", "1 begin\n2 end", "--ext", str(tmp_path / "none.py")]) == EXIT_LOAD_ERROR
    assert "ExtensionError" in capsys.readouterr().err


def test_cli_step_limit(capsys):
    assert run_cli(["--source", "1 begin\n2 goto 1\n3 end", "--max-steps", "10"]) == EXIT_RUNTIME_ERROR
    assert "Step limit of 10 exceeded" in capsys.readouterr().err


def test_cli_requires_program():
    with pytest.raises(SystemExit) as exc:
        run_cli([])
    assert exc.value.code == 2
