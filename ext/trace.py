"""linelang extension: instruction tracer.

Behavior:
- Writes one ``trace: <step> pc=<line> <instruction>`` line to stderr before
  every executed instruction.
- After a ``goto`` or ``if``, writes where control went next.
- Reports the final step count when the program halts cleanly.
"""

from __future__ import annotations

import sys
from typing import Any, Optional

from extensions import ExtensionAPI


LINELANG_EXTENSION_NAME = "trace"
LINELANG_EXTENSION_API_VERSION = 1

_BRANCHES = ("goto", "if")


def linelang_register(ext: ExtensionAPI) -> None:
    @ext.on("before_instruction")
    def _before(interpreter: Any, instruction: Any) -> None:
        print(f"trace: {interpreter.steps} pc={instruction.line} {instruction}", file=sys.stderr)

    @ext.on("after_instruction")
    def _after(interpreter: Any, instruction: Any, next_pc: Optional[int]) -> None:
        if instruction.kind in _BRANCHES:
            target = "halt" if next_pc is None else next_pc
            print(f"trace: {instruction.line} -> {target}", file=sys.stderr)

    @ext.on("program_end")
    def _end(interpreter: Any, steps: int) -> None:
        print(f"trace: halted after {steps} steps", file=sys.stderr)
