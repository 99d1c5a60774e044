from __future__ import annotations
import json
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from lexer import LLError
from extensions import HookRegistry, RuntimeServices, StepContext, build_default_services
from parser import (
    ARITHMETIC_KINDS,
    ADD,
    ASSIGN,
    BEGIN,
    DECLARE,
    DIV,
    END,
    GOTO,
    IF,
    MULT,
    PRINT,
    SUB,
    Instruction,
    Program,
    SourceLocation,
    load_program,
)
from sinks import StreamSink
from symbols import LLSymbolError, SymbolTable, resolve_operand


def truncating_div(a: int, b: int) -> int:
    # Rounds toward zero like C; b == 0 raises ZeroDivisionError.
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


ARITHMETIC: Dict[str, Callable[[int, int], int]] = {
    ADD: operator.add,
    SUB: operator.sub,
    MULT: operator.mul,
    DIV: truncating_div,
}

COMPARISONS: Dict[str, Callable[[int, int], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


def evaluate_comparison(op: str, left: int, right: int) -> bool:
    return COMPARISONS[op](left, right)


class LLRuntimeError(LLError):
    """Raised for runtime faults."""

    def __init__(
        self,
        message: str,
        *,
        pc: Optional[int] = None,
        location: Optional[SourceLocation] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(f"Error at line {pc}: {message}" if pc is not None else message)
        self.message = message
        self.pc = pc
        self.location = location
        self.rule = rule
        self.step_index: Optional[int] = None


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    pc: Optional[int]
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    env_snapshot: Optional[Dict[str, str]]
    rewrite_record: Optional[Dict[str, Any]]


class StateLogger:
    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose
        self.entries: List[StateEntry] = []
        self.next_state_index = 0
        self.last_state_id = "seed"

    def record(
        self,
        *,
        pc: Optional[int],
        location: Optional[SourceLocation],
        statement: Optional[str],
        rewrite_record: Optional[Dict[str, Any]] = None,
        env_snapshot: Optional[Dict[str, str]] = None,
    ) -> StateEntry:
        rewrite = {} if rewrite_record is None else rewrite_record
        if "from_state_id" not in rewrite:
            rewrite["from_state_id"] = self.last_state_id
        step_index = self.next_state_index
        state_id = f"s_{step_index:06d}"
        rewrite["to_state_id"] = state_id
        entry = StateEntry(
            step_index=step_index,
            state_id=state_id,
            pc=pc,
            source_location=location,
            statement=statement,
            env_snapshot=env_snapshot,
            rewrite_record=rewrite,
        )
        self.entries.append(entry)
        self.last_state_id = state_id
        self.next_state_index += 1
        return entry

    @property
    def last(self) -> Optional[StateEntry]:
        return self.entries[-1] if self.entries else None


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str,
        verbose: bool = False,
        services: Optional[RuntimeServices] = None,
        output_sink: Optional[Callable[[int, int, str], None]] = None,
        max_steps: Optional[int] = None,
    ) -> None:
        self.source = source
        self.filename = filename
        self.verbose = verbose
        self.services = services or build_default_services()
        self.hook_registry: HookRegistry = self.services.hook_registry
        self.output_sink = output_sink or StreamSink().emit
        self.max_steps = max_steps
        self.program: Optional[Program] = None
        self.steps = 0
        self.logger = StateLogger(verbose=verbose)
        self.logger.record(pc=None, location=None, statement="<seed>", rewrite_record={"rule": "SEED"})
        self.io_log: List[Dict[str, Any]] = []

    def parse(self) -> Program:
        return load_program(self.source, self.filename)

    def run(self) -> None:
        self.execute(self.parse())

    def execute(self, program: Program) -> None:
        self.program = program
        self._emit_event("program_start", self, program)
        try:
            self._execute_program(program)
        except LLRuntimeError as error:
            self._emit_event("on_error", self, error)
            if self.logger.entries:
                error.step_index = self.logger.entries[-1].step_index
            raise
        except ZeroDivisionError as exc:
            # Division by zero is fatal to the host process and is never wrapped.
            self._emit_event("on_error", self, exc)
            raise
        except Exception as exc:
            self._emit_event("on_error", self, exc)
            last = self.logger.last
            wrapped = LLRuntimeError(
                f"Internal interpreter error: {exc}",
                pc=last.pc if last else None,
                location=last.source_location if last else None,
                rule="internal",
            )
            if last:
                wrapped.step_index = last.step_index
            raise wrapped
        else:
            self._emit_event("program_end", self, self.steps)

    def _execute_program(self, program: Program) -> None:
        instructions = program.instructions
        step = self._step

        self._run_declarations(program)
        pc = program.begin_line
        while pc < program.end_line:
            index = program.index_of(pc)
            if index is None:
                raise LLRuntimeError(f"Command at line {pc} not found", pc=pc, rule="FETCH")
            instruction = instructions[index]
            next_index = step(program, instruction, index)
            if next_index >= len(instructions):
                # A false test skipping the trailing END halts the run.
                skipped = instructions[next_index - 1] if next_index - 1 < len(instructions) else None
                if skipped is not None and skipped.kind == END:
                    break
                raise LLRuntimeError(
                    f"No instruction follows line {pc}",
                    pc=pc,
                    location=instruction.location,
                    rule=instruction.kind,
                )
            pc = instructions[next_index].line

    def _run_declarations(self, program: Program) -> None:
        """Run the declaration section stored ahead of ``begin``.

        Only ``int`` and ``set`` take effect there; anything else stored
        before ``begin`` is unreachable and never executes.
        """
        begin_index = program.index_of(program.begin_line) or 0
        for index, instruction in enumerate(program.instructions[:begin_index]):
            if instruction.kind in (DECLARE, ASSIGN):
                self._step(program, instruction, index)

    def _step(self, program: Program, instruction: Instruction, index: int) -> int:
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise LLRuntimeError(
                f"Step limit of {self.max_steps} exceeded",
                pc=instruction.line,
                location=instruction.location,
                rule="LIMIT",
            )
        self._emit_event("before_instruction", self, instruction)
        self._log_step(instruction, program.symbols)
        next_index = self._execute_instruction(program, instruction, index)
        self.steps += 1
        next_pc = program.instructions[next_index].line if next_index < len(program) else None
        self._emit_event("after_instruction", self, instruction, next_pc)
        return next_index

    def _execute_instruction(self, program: Program, instruction: Instruction, index: int) -> int:
        kind = instruction.kind
        operands = instruction.operands
        symbols = program.symbols
        next_index = index + 1

        if kind in (DECLARE, BEGIN, END):
            return next_index
        try:
            if kind == ASSIGN:
                _, value = resolve_operand(operands[1], symbols)
                symbols.assign(operands[0], value)
                return next_index
            if kind in ARITHMETIC_KINDS:
                _, literal = resolve_operand(operands[1], symbols)
                symbols.mutate(operands[0], ARITHMETIC[kind], literal)
                return next_index
            if kind == PRINT:
                self._execute_print(instruction, symbols)
                return next_index
            if kind == GOTO:
                return self._resolve_goto(program, instruction)
            if kind == IF:
                _, left = resolve_operand(operands[0], symbols)
                _, right = resolve_operand(operands[2], symbols)
                if not evaluate_comparison(operands[1], left, right):
                    next_index += 1
                return next_index
        except LLSymbolError as exc:
            raise LLRuntimeError(str(exc), pc=instruction.line, location=instruction.location, rule=kind) from None
        raise LLRuntimeError(f"Invalid command {kind}", pc=instruction.line, location=instruction.location, rule=kind)

    def _execute_print(self, instruction: Instruction, symbols: SymbolTable) -> None:
        values: List[int] = []
        for name in instruction.operands[:2]:
            index = symbols.lookup_set(name)
            if index is None:
                raise LLSymbolError(f"Variable {name} is not set")
            values.append(symbols.symbols[index].value)
        row, col = values
        text = instruction.operands[2]
        self.output_sink(row, col, text)
        self.io_log.append({"event": "PRINT", "row": row, "col": col, "text": text})

    def _resolve_goto(self, program: Program, instruction: Instruction) -> int:
        target = int(instruction.operands[0])
        if target < program.begin_line or target > program.end_line:
            raise LLRuntimeError(
                f"Invalid line number {target}",
                pc=instruction.line,
                location=instruction.location,
                rule=GOTO,
            )
        index = program.index_of(target)
        if index is None:
            raise LLRuntimeError(
                f"Command at line {target} not found",
                pc=instruction.line,
                location=instruction.location,
                rule=GOTO,
            )
        return index

    def _emit_event(self, event: str, *args: Any) -> None:
        try:
            self.hook_registry.emit(event, *args)
        except LLRuntimeError:
            raise
        except Exception as exc:
            last = self.logger.last
            raise LLRuntimeError(
                f"Extension hook '{event}' failed: {exc}",
                pc=last.pc if last else None,
                location=last.source_location if last else None,
                rule="EXT",
            )

    def _log_step(self, instruction: Instruction, symbols: SymbolTable) -> None:
        env_snapshot = symbols.snapshot() if self.verbose else None
        entry = self.logger.record(
            pc=instruction.line,
            location=instruction.location,
            statement=instruction.location.statement or str(instruction),
            env_snapshot=env_snapshot,
            rewrite_record={"rule": instruction.kind, "pc": instruction.line},
        )
        try:
            self.hook_registry.after_step(
                self,
                StepContext(step_index=entry.step_index, rule=instruction.kind, pc=instruction.line, location=instruction.location),
            )
        except LLRuntimeError:
            raise
        except Exception as exc:
            raise LLRuntimeError(
                f"Extension step rule failed: {exc}",
                pc=instruction.line,
                location=instruction.location,
                rule="EXT",
            )


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def _entry_for(self, error: LLRuntimeError) -> Optional[StateEntry]:
        entries = self.interpreter.logger.entries
        if error.step_index is not None and 0 <= error.step_index < len(entries):
            return entries[error.step_index]
        return None

    def format_text(self, error: LLRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        location = error.location
        entry = self._entry_for(error)
        if location is not None:
            lines.append(f"  File \"{location.file}\", line {location.line} (source line {location.source_line})")
            if location.statement:
                lines.append(f"    {location.statement}")
        else:
            lines.append(f"  <unknown location> at pc {error.pc}")
        if entry is not None:
            lines.append(f"    State log index: {entry.step_index}  State id: {entry.state_id}")
            if verbose and entry.env_snapshot is not None:
                snapshot = ", ".join(f"{k}={v}" for k, v in entry.env_snapshot.items())
                lines.append(f"    Env snapshot: {snapshot}")
        rule = error.rule or "runtime"
        lines.append(f"{error.__class__.__name__}: {error} (rule: {rule})")
        return "\n".join(lines)

    def to_json(self, error: LLRuntimeError) -> str:
        frame: Dict[str, Any] = {"name": "<program>", "pc": error.pc}
        if error.location is not None:
            frame["source_location"] = {
                "file": error.location.file,
                "line": error.location.line,
                "source_line": error.location.source_line,
                "statement": error.location.statement,
            }
        entry = self._entry_for(error)
        if entry is not None:
            frame["state_id"] = entry.state_id
            frame["step_index"] = entry.step_index
            if entry.env_snapshot is not None:
                frame["env_snapshot"] = entry.env_snapshot
            if entry.rewrite_record is not None:
                frame["rewrite_record"] = entry.rewrite_record
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "pc": error.pc,
                "failing_step_index": error.step_index,
            },
            "traceback": [frame],
        }
        return json.dumps(data, indent=2)
