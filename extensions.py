"""Runtime hooks and ``--ext`` extension loading.

An extension is a single Python file defining ``linelang_register(ext)``.
Handlers receive the interpreter first, then the event payload:

    program_start(interpreter, program)
    before_instruction(interpreter, instruction)
    after_instruction(interpreter, instruction, next_pc)   # next_pc None on halt
    program_end(interpreter, steps)
    on_error(interpreter, error)
"""

from __future__ import annotations

import bisect
import importlib.util
import itertools
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence


EXTENSION_API_VERSION = 1

EVENTS = (
    "program_start",
    "before_instruction",
    "after_instruction",
    "program_end",
    "on_error",
)


class LLExtensionError(Exception):
    pass


@dataclass(frozen=True)
class StepContext:
    step_index: int
    rule: str
    pc: int
    location: Any  # SourceLocation | None


StepHandler = Callable[[Any, StepContext], None]


@dataclass(frozen=True)
class StepWatcher:
    every_n: int
    handler: StepHandler


@dataclass
class HookRegistry:
    # event -> [((-priority, seq), handler)], kept sorted so higher priority runs first
    _hooks: Dict[str, List[tuple]] = field(default_factory=dict)
    _watchers: List[StepWatcher] = field(default_factory=list)
    _seq: Any = field(default_factory=itertools.count)

    def on_event(self, event: str, handler: Callable[..., None], *, priority: int = 0) -> None:
        if event not in EVENTS:
            raise LLExtensionError(f"Unknown event '{event}'")
        entry = ((-priority, next(self._seq)), handler)
        bisect.insort(self._hooks.setdefault(event, []), entry, key=lambda item: item[0])

    def handlers(self, event: str) -> List[Callable[..., None]]:
        return [handler for _key, handler in self._hooks.get(event, ())]

    def emit(self, event: str, *args: Any) -> None:
        for handler in self.handlers(event):
            handler(*args)

    def watch_steps(self, every_n: int, handler: StepHandler) -> None:
        if every_n <= 0:
            raise LLExtensionError("every_n_steps must be >= 1")
        self._watchers.append(StepWatcher(every_n, handler))

    def after_step(self, interpreter: Any, ctx: StepContext) -> None:
        for watcher in self._watchers:
            if ctx.step_index % watcher.every_n == 0:
                watcher.handler(interpreter, ctx)


@dataclass
class RuntimeServices:
    hook_registry: HookRegistry = field(default_factory=HookRegistry)
    # names of loaded extensions, in load order
    extensions: List[str] = field(default_factory=list)


class ExtensionAPI:
    """Handle passed to ``linelang_register``.

    ``on`` and ``every_n_steps`` register directly when given a handler and
    act as decorators otherwise.
    """

    def __init__(self, registry: HookRegistry, name: str) -> None:
        self.registry = registry
        self.name = name

    def on(self, event: str, handler: Optional[Callable[..., None]] = None, *, priority: int = 0):
        def register(fn: Callable[..., None]) -> Callable[..., None]:
            self.registry.on_event(event, fn, priority=priority)
            return fn

        return register if handler is None else register(handler)

    def every_n_steps(self, every_n: int, handler: Optional[StepHandler] = None):
        def register(fn: StepHandler) -> StepHandler:
            self.registry.watch_steps(every_n, fn)
            return fn

        return register if handler is None else register(handler)


_module_ids = itertools.count()


def load_extension_module(path: str) -> Any:
    if not os.path.isfile(path):
        raise LLExtensionError(f"Extension not found: {path}")
    stem = os.path.splitext(os.path.basename(path))[0]
    spec = importlib.util.spec_from_file_location(f"_linelang_ext{next(_module_ids)}_{stem}", path)
    if spec is None or spec.loader is None:
        raise LLExtensionError(f"Failed to load extension module: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise LLExtensionError(f"Extension {path} failed to import: {exc}") from exc
    return module


def build_default_services() -> RuntimeServices:
    return RuntimeServices()


def register_extension(services: RuntimeServices, module: Any, path: str) -> str:
    """Check one loaded module against the host API and run its register hook."""
    api_version = getattr(module, "LINELANG_EXTENSION_API_VERSION", EXTENSION_API_VERSION)
    if api_version != EXTENSION_API_VERSION:
        raise LLExtensionError(
            f"Extension {path} requires API {api_version}, host supports {EXTENSION_API_VERSION}"
        )
    register = getattr(module, "linelang_register", None)
    if not callable(register):
        raise LLExtensionError(f"Extension {path} must define callable linelang_register(ext)")
    name = str(getattr(module, "LINELANG_EXTENSION_NAME", os.path.splitext(os.path.basename(path))[0]))
    if name in services.extensions:
        raise LLExtensionError(f"Extension {name} is already loaded")
    try:
        register(ExtensionAPI(services.hook_registry, name))
    except LLExtensionError:
        raise
    except Exception as exc:
        raise LLExtensionError(f"Extension {name} failed to register: {exc}") from exc
    services.extensions.append(name)
    return name


def load_runtime_services(paths: Sequence[str]) -> RuntimeServices:
    services = build_default_services()
    for path in paths:
        register_extension(services, load_extension_module(os.path.abspath(path)), path)
    return services
