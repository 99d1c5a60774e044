from __future__ import annotations

import pytest

from lexer import LLLoadError, LLParseError
from parser import BEGIN, DECLARE, END, PRINT, load_program


HELLO = "1 int a\n2 set a 7\n3 begin\n4 print a a hi\n5 end\n"


def test_load_hello():
    program = load_program(HELLO)
    assert len(program) == 5
    assert program.begin_line == 3
    assert program.end_line == 5
    assert program.has_begin and program.has_end
    assert [i.kind for i in program.instructions] == [DECLARE, "set", BEGIN, PRINT, END]
    assert program.instructions[3].operands == ("a", "a", "hi")
    assert program.symbols.names() == ["a"]
    assert program.symbols.lookup_set("a") is None


def test_blank_lines_do_not_take_slots():
    program = load_program("1 int a\n\n2 begin\n   \n\n3 end")
    assert len(program) == 3
    assert program.instructions[2].location.source_line == 6


def test_storage_order_is_source_order():
    program = load_program("1 begin\n7 int b\n3 int a\n9 end\n")
    assert [i.line for i in program.instructions] == [1, 7, 3, 9]
    assert program.index_of(3) == 2
    assert program.instructions[program.index_of(7)].operands == ("b",)
    assert program.index_of(4) is None


def test_instruction_text_and_location():
    program = load_program(HELLO, "hello.ll")
    instruction = program.instructions[program.index_of(4)]
    assert str(instruction) == "4 print a a hi"
    assert instruction.location.file == "hello.ll"
    assert instruction.location.statement == "4 print a a hi"
    assert instruction.location.source_line == 4


def test_if_operands_need_not_be_declared():
    program = load_program("1 begin\n2 if x lt -3\n3 end")
    assert program.instructions[1].operands == ("x", "lt", "-3")


def test_listing():
    listing = load_program(HELLO).listing().splitlines()
    assert listing[0] == "Index\tLine\tCommand\tArg1\tArg2\tArg3"
    assert listing[4] == "3\t4\tprint\ta\ta\thi"
    assert listing[3] == "2\t3\tbegin"


@pytest.mark.parametrize(
    "src,message",
    [
        ("x int a", "x is not an integer"),
        ("-1 begin", "-1 is not a positive integer"),
        ("0 begin", "0 is not a positive integer"),
        ("1", "Missing command"),
        ("1 foo", "Invalid command foo"),
        ("1 INT a", "Invalid command INT"),
        ("1 int a\n2 int a", "Variable a is already defined"),
        ("1 set a 5\n2 int a", "Variable a is not defined"),
        ("1 int a\n2 add b 1", "Variable b is not defined"),
        ("1 int abcdefghijk", "Variable name abcdefghijk is too long"),
        ("1 int 42", "42 is not a valid variable name"),
        ("1 int a\n2 set a five", "five is not an integer"),
        ("1 int a\n2 mult a 1.5", "1.5 is not an integer"),
        ("1 int a\n2 add a", "Incorrect number of arguments for command 'add'"),
        ("1 begin x", "Incorrect number of arguments for command 'begin'"),
        ("1 int a b", "Incorrect number of arguments for command 'int'"),
        ("1 int a\n2 print a a", "Incorrect number of arguments for command 'print'"),
        ("1 int a\n2 print a b hi", "Variable b is not defined"),
        ("1 begin\n2 begin", "begin already declared at line 1"),
        ("1 end\n2 end", "end already declared at line 1"),
        ("1 goto 0", "0 is not a positive integer"),
        ("1 goto -3", "-3 is not a positive integer"),
        ("1 goto x", "x is not an integer"),
        ("1 if a like b", "Invalid operator like"),
        ("1 if abcdefghijkl eq 1", "too long"),
        ("1 begin\n1 end", "Line number 1 is already used"),
    ],
)
def test_line_validation_failures(src, message):
    with pytest.raises(LLParseError) as exc:
        load_program(src)
    assert message in str(exc.value)
    assert not isinstance(exc.value, LLLoadError)


def test_ten_character_name_is_allowed():
    program = load_program("1 int abcdefghij\n2 begin\n3 end")
    assert program.symbols.names() == ["abcdefghij"]


def test_error_reports_declared_and_source_line():
    with pytest.raises(LLParseError) as exc:
        load_program("1 int a\n\n7 int a\n")
    assert exc.value.line == 7
    assert exc.value.source_line == 3
    assert str(exc.value) == "Error at line 7: Variable a is already defined"


def test_bad_line_number_reports_source_line():
    with pytest.raises(LLParseError) as exc:
        load_program("1 begin\n\nten end")
    assert exc.value.line is None
    assert exc.value.source_line == 3


def test_first_failure_aborts_load():
    with pytest.raises(LLParseError, match="Invalid command bogus"):
        load_program("1 bogus\n2 int a\n3 int a")


@pytest.mark.parametrize(
    "src,message",
    [
        ("1 int a\n2 end", "No begin command"),
        ("1 begin\n2 int a", "No end command"),
        ("", "No begin command"),
    ],
)
def test_missing_markers(src, message):
    with pytest.raises(LLLoadError, match=message):
        load_program(src)
