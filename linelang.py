"""linelang entry point."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from extensions import LLExtensionError, load_runtime_services
from interpreter import Interpreter, LLRuntimeError, TracebackFormatter
from lexer import LLParseError
from sinks import DEFAULT_COLS, DEFAULT_ROWS, ScreenSink, StreamSink


EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_LOAD_ERROR = 2
EXIT_READ_ERROR = 3
# Shell status of a process killed by SIGFPE.
EXIT_ARITHMETIC_FAULT = 128 + 8


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linelang", description="Line-numbered program interpreter")
    parser.add_argument("program", help="Source file path or literal source with --source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("--screen", action="store_true", help="Draw PRINT output on a character screen instead of a line stream")
    parser.add_argument("--rows", type=int, default=DEFAULT_ROWS, help="Screen height for --screen")
    parser.add_argument("--cols", type=int, default=DEFAULT_COLS, help="Screen width for --screen")
    parser.add_argument("--list", dest="list_only", action="store_true", help="Print the loaded program table and exit")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit variable snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--ext", action="append", default=[], metavar="PATH", help="Load an extension module (repeatable)")
    parser.add_argument("--max-steps", type=int, default=None, help="Abort after this many executed instructions")
    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Error opening file {filename}: {exc}", file=sys.stderr)
            return EXIT_READ_ERROR

    try:
        services = load_runtime_services(args.ext)
    except LLExtensionError as exc:
        print(f"ExtensionError: {exc}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    screen = ScreenSink(args.rows, args.cols) if args.screen else None
    sink = screen.emit if screen is not None else StreamSink().emit
    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        verbose=args.verbose,
        services=services,
        output_sink=sink,
        max_steps=args.max_steps,
    )

    try:
        program = interpreter.parse()
    except LLParseError as error:
        print(error, file=sys.stderr)
        print("Error: Could not build runtime", file=sys.stderr)
        return EXIT_LOAD_ERROR

    if args.list_only:
        print(program.listing())
        return EXIT_OK

    status = EXIT_OK
    try:
        interpreter.execute(program)
    except LLRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        status = EXIT_RUNTIME_ERROR
    except ZeroDivisionError:
        last = interpreter.logger.last
        where = f" at line {last.pc}" if last is not None and last.pc is not None else ""
        print(f"Floating point exception{where}", file=sys.stderr)
        return EXIT_ARITHMETIC_FAULT

    if screen is not None:
        print(screen.render())
    return status


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
