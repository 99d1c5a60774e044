from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from lexer import LLLoadError, LLParseError, Lexer, Token
from symbols import MAX_NAME_LENGTH, LLSymbolError, SymbolTable


DECLARE = "int"
ASSIGN = "set"
BEGIN = "begin"
END = "end"
ADD = "add"
SUB = "sub"
MULT = "mult"
DIV = "div"
PRINT = "print"
GOTO = "goto"
IF = "if"

# keyword -> (operand count, usage shown on arity errors)
KEYWORDS: Dict[str, Tuple[int, str]] = {
    DECLARE: (1, "int <var>"),
    ASSIGN: (2, "set <var> #"),
    BEGIN: (0, "begin"),
    END: (0, "end"),
    ADD: (2, "add <var> #"),
    SUB: (2, "sub <var> #"),
    MULT: (2, "mult <var> #"),
    DIV: (2, "div <var> #"),
    PRINT: (3, "print <var1> <var2> string"),
    GOTO: (1, "goto <lineNumber>"),
    IF: (3, "if <var> <op> <var>"),
}

ARITHMETIC_KINDS = (ADD, SUB, MULT, DIV)

COMPARISON_OPERATORS = ("eq", "ne", "gt", "gte", "lt", "lte")


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    source_line: int
    column: int
    statement: str


@dataclass(frozen=True)
class Instruction:
    line: int
    kind: str
    operands: Tuple[str, ...]
    location: SourceLocation

    def __str__(self) -> str:
        return " ".join((str(self.line), self.kind) + self.operands)


@dataclass
class Program:
    filename: str
    instructions: List[Instruction] = field(default_factory=list)
    symbols: SymbolTable = field(default_factory=SymbolTable)
    begin_line: int = 0
    end_line: int = 0
    has_begin: bool = False
    has_end: bool = False
    line_index: Dict[int, int] = field(default_factory=dict, repr=False)

    def append(self, instruction: Instruction) -> None:
        self.line_index[instruction.line] = len(self.instructions)
        self.instructions.append(instruction)

    def index_of(self, line: int) -> Optional[int]:
        return self.line_index.get(line)

    def __len__(self) -> int:
        return len(self.instructions)

    def listing(self) -> str:
        rows = ["Index\tLine\tCommand\tArg1\tArg2\tArg3"]
        for index, instruction in enumerate(self.instructions):
            cells = [str(index), str(instruction.line), instruction.kind, *instruction.operands]
            rows.append("\t".join(cells))
        return "\n".join(rows)


class Parser:
    def __init__(self, tokens: List[Token], filename: str, source_lines: List[str]):
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines
        self.index = 0
        self.program = Program(filename=filename)
        self._handlers: Dict[str, Callable[[List[Token], int], Tuple[str, ...]]] = {
            DECLARE: self._parse_declare,
            ASSIGN: self._parse_mutation,
            BEGIN: self._parse_begin,
            END: self._parse_end,
            ADD: self._parse_mutation,
            SUB: self._parse_mutation,
            MULT: self._parse_mutation,
            DIV: self._parse_mutation,
            PRINT: self._parse_print,
            GOTO: self._parse_goto,
            IF: self._parse_if,
        }

    def parse(self) -> Program:
        while self._peek().type != "EOF":
            if self._match("NEWLINE"):
                continue
            self.program.append(self._parse_instruction(self._consume_line()))
        program = self.program
        if not program.has_begin:
            raise LLLoadError("No begin command")
        if not program.has_end:
            raise LLLoadError("No end command")
        return program

    def _parse_instruction(self, words: List[Token]) -> Instruction:
        head = words[0]
        if head.type != "NUMBER":
            raise LLParseError(f"{head.value} is not an integer", source_line=head.line)
        line_number = int(head.value)
        if line_number <= 0:
            raise LLParseError(f"{head.value} is not a positive integer", source_line=head.line)
        if self.program.index_of(line_number) is not None:
            raise LLParseError(f"Line number {line_number} is already used", line=line_number, source_line=head.line)
        if len(words) < 2:
            raise LLParseError("Missing command", line=line_number, source_line=head.line)

        kind = words[1].value
        if kind not in KEYWORDS:
            raise LLParseError(f"Invalid command {kind}", line=line_number, source_line=head.line)
        arity, usage = KEYWORDS[kind]
        args = words[2:]
        if len(args) != arity:
            raise LLParseError(
                f"Incorrect number of arguments for command '{kind}'\n\t{usage}",
                line=line_number,
                source_line=head.line,
            )
        operands = self._handlers[kind](args, line_number)
        return Instruction(
            line=line_number,
            kind=kind,
            operands=operands,
            location=self._location_from_token(head, line_number),
        )

    def _parse_declare(self, args: List[Token], line: int) -> Tuple[str, ...]:
        name = args[0]
        self._check_name(name, line)
        if name.type == "NUMBER":
            raise LLParseError(f"{name.value} is not a valid variable name", line=line, source_line=name.line)
        try:
            self.program.symbols.declare(name.value)
        except LLSymbolError as exc:
            raise LLParseError(str(exc), line=line, source_line=name.line) from None
        return (name.value,)

    def _parse_mutation(self, args: List[Token], line: int) -> Tuple[str, ...]:
        target, literal = args
        self._expect_declared(target, line)
        self._expect_integer(literal, line)
        return (target.value, literal.value)

    def _parse_begin(self, args: List[Token], line: int) -> Tuple[str, ...]:
        program = self.program
        if program.has_begin:
            raise LLParseError(f"begin already declared at line {program.begin_line}", line=line)
        program.begin_line = line
        program.has_begin = True
        return ()

    def _parse_end(self, args: List[Token], line: int) -> Tuple[str, ...]:
        program = self.program
        if program.has_end:
            raise LLParseError(f"end already declared at line {program.end_line}", line=line)
        program.end_line = line
        program.has_end = True
        return ()

    def _parse_print(self, args: List[Token], line: int) -> Tuple[str, ...]:
        row, col, text = args
        self._expect_declared(row, line)
        self._expect_declared(col, line)
        return (row.value, col.value, text.value)

    def _parse_goto(self, args: List[Token], line: int) -> Tuple[str, ...]:
        target = args[0]
        self._expect_integer(target, line)
        if int(target.value) <= 0:
            raise LLParseError(f"{target.value} is not a positive integer", line=line, source_line=target.line)
        return (target.value,)

    def _parse_if(self, args: List[Token], line: int) -> Tuple[str, ...]:
        left, op, right = args
        for side in (left, right):
            if side.type != "NUMBER":
                self._check_name(side, line)
        if op.value not in COMPARISON_OPERATORS:
            raise LLParseError(f"Invalid operator {op.value}", line=line, source_line=op.line)
        return (left.value, op.value, right.value)

    def _check_name(self, token: Token, line: int) -> None:
        if len(token.value) > MAX_NAME_LENGTH:
            raise LLParseError(f"Variable name {token.value} is too long", line=line, source_line=token.line)

    def _expect_declared(self, token: Token, line: int) -> None:
        self._check_name(token, line)
        if self.program.symbols.lookup_declared(token.value) is None:
            raise LLParseError(f"Variable {token.value} is not defined", line=line, source_line=token.line)

    def _expect_integer(self, token: Token, line: int) -> None:
        if token.type != "NUMBER":
            raise LLParseError(f"{token.value} is not an integer", line=line, source_line=token.line)

    def _consume_line(self) -> List[Token]:
        words: List[Token] = []
        while self._peek().type not in ("NEWLINE", "EOF"):
            words.append(self._peek())
            self.index += 1
        return words

    def _match(self, token_type: str) -> bool:
        if self._peek().type == token_type:
            self.index += 1
            return True
        return False

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _location_from_token(self, token: Token, line: int) -> SourceLocation:
        line_index = token.line - 1
        statement = ""
        if 0 <= line_index < len(self.source_lines):
            statement = self.source_lines[line_index].strip()
        return SourceLocation(
            file=self.filename,
            line=line,
            source_line=token.line,
            column=token.column,
            statement=statement,
        )


def load_program(text: str, filename: str = "<string>") -> Program:
    lexer = Lexer(text)
    tokens = lexer.tokenize()
    parser = Parser(tokens, filename, text.split("\n"))
    return parser.parse()
