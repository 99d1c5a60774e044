from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from lexer import LLError, is_integer_literal


MAX_NAME_LENGTH = 10


class LLSymbolError(LLError):
    """Raised for symbol table faults; callers attach the line."""


@dataclass
class Symbol:
    name: str
    value: int = 0
    is_set: bool = False


@dataclass
class SymbolTable:
    symbols: List[Symbol] = field(default_factory=list)
    _slots: Dict[str, int] = field(default_factory=dict, repr=False)

    def declare(self, name: str) -> int:
        if name in self._slots:
            raise LLSymbolError(f"Variable {name} is already defined")
        self._slots[name] = len(self.symbols)
        self.symbols.append(Symbol(name=name))
        return self._slots[name]

    def lookup_declared(self, name: str) -> Optional[int]:
        return self._slots.get(name)

    def lookup_set(self, name: str) -> Optional[int]:
        index = self._slots.get(name)
        if index is None or not self.symbols[index].is_set:
            return None
        return index

    def get(self, name: str) -> Symbol:
        index = self.lookup_declared(name)
        if index is None:
            raise LLSymbolError(f"Variable {name} is not defined")
        return self.symbols[index]

    def assign(self, name: str, value: int) -> None:
        symbol = self.get(name)
        symbol.value = value
        symbol.is_set = True

    def mutate(self, name: str, op: Callable[[int, int], int], literal: int) -> int:
        symbol = self.get(name)
        if not symbol.is_set:
            raise LLSymbolError(f"Variable {name} is not set")
        symbol.value = op(symbol.value, literal)
        return symbol.value

    def names(self) -> List[str]:
        return [symbol.name for symbol in self.symbols]

    def snapshot(self) -> Dict[str, str]:
        return {s.name: (str(s.value) if s.is_set else "<unset>") for s in self.symbols}

    def __len__(self) -> int:
        return len(self.symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self.symbols)


def resolve_operand(token: str, symbols: SymbolTable) -> Tuple[bool, int]:
    """Resolve an operand token to ``(is_variable, value)``.

    A declared and set variable wins over the literal reading of the token;
    anything else must be an integer literal with an optional leading ``-``.
    """
    index = symbols.lookup_set(token)
    if index is not None:
        return True, symbols.symbols[index].value
    if is_integer_literal(token):
        return False, int(token)
    raise LLSymbolError(f"{token} is not defined")
