from __future__ import annotations

from pathlib import Path
from typing import Callable, Tuple

import pytest

from interpreter import Interpreter
from sinks import RecordingSink


REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def run_source() -> Callable[..., Tuple[Interpreter, RecordingSink]]:
    def _run(src: str, **kwargs) -> Tuple[Interpreter, RecordingSink]:
        sink = RecordingSink()
        interpreter = Interpreter(source=src, filename="<string>", output_sink=sink.emit, **kwargs)
        interpreter.run()
        return interpreter, sink

    return _run


@pytest.fixture
def repo_root() -> Path:
    return REPO_ROOT
