"""MCT Practice command-line interface.

Argparse-based CLI for inspecting, validating, and running practice scripts
headlessly. Initializes structured logging early. Exposed via
``python -m mctpractice`` and the ``mctpractice`` console script.

Exit codes:
  0 success
  1 error (missing file, bad JSON, unknown script)
  2 invalid script
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional

from .content import DEFAULT_METAPHOR, DM_DURATIONS, METAPHORS, SCRIPT_KEYS, available_scripts, get_script
from .logging_utils import LogMode, get_default_log_path, setup_logging
from .platform_paths import get_results_path
from .session.clock import format_clock, resolve
from .session.controller import PlaybackController
from .session.events import SessionEvent, SessionEventType
from .session.result import ResultJournal, SessionResult
from .session.script import Script, ScriptInvalid, load_script_file
from .session.ticker import AsyncioTickSource, MIN_TICK_MS, resolve_tick_interval_ms

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_SCRIPT = 2
DEFAULT_SCRIPT = "standard"


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-mode",
        choices=[mode.value for mode in LogMode],
        default=None,
        help="Logging preset: quiet suppresses console info, perf forces DEBUG and tick tracing",
    )
    parser.add_argument(
        "--log-file",
        default=str(get_default_log_path()),
        help="Path to log file (default: per-user MCTPractice directory)",
    )
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default="plain",
        help="Log format (plain or json)",
    )


def _build_logging_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    _add_logging_args(parent)
    return parent


def _add_script_args(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--script", choices=list(SCRIPT_KEYS), default=None, help="Built-in script (default: standard)")
    source.add_argument("--load", default=None, help="Path to a script JSON file")
    parser.add_argument("--dm-duration", type=int, choices=list(DM_DURATIONS), default=DM_DURATIONS[0],
                        help="Detached Mindfulness length in seconds (with --script dm)")
    parser.add_argument("--metaphor", choices=sorted(METAPHORS), default=DEFAULT_METAPHOR,
                        help="Detached Mindfulness observer metaphor (with --script dm)")
    parser.add_argument("--json", action="store_true", help="Emit JSON output")


def build_parser() -> argparse.ArgumentParser:
    logging_parent = _build_logging_parent()
    parser = argparse.ArgumentParser(
        prog="mctpractice",
        description="MCT Practice CLI",
        parents=[logging_parent],
    )
    sub = parser.add_subparsers(dest="command", required=False)

    def add_subparser(name: str, **kwargs: object) -> argparse.ArgumentParser:
        parents = list(kwargs.pop("parents", []))
        parents.insert(0, logging_parent)
        return sub.add_parser(name, parents=parents, **kwargs)

    p_list = add_subparser("list", help="List built-in scripts (default)")
    p_list.add_argument("--json", action="store_true", help="Emit JSON output")

    p_show = add_subparser("show", help="Print a script outline")
    _add_script_args(p_show)
    p_show.add_argument("--instructions", action="store_true", help="Include every instruction")

    p_validate = add_subparser("validate", help="Validate a script JSON file")
    p_validate.add_argument("--load", required=True, help="Path to a script JSON file")
    p_validate.add_argument("--json", action="store_true", help="Emit JSON output")

    p_resolve = add_subparser("resolve", help="Show the position at an elapsed time")
    _add_script_args(p_resolve)
    p_resolve.add_argument("--at", type=float, required=True, help="Session elapsed seconds")

    p_run = add_subparser("run", help="Play a script headlessly, printing instructions")
    _add_script_args(p_run)
    p_run.add_argument("--speed", type=float, default=1.0, help="Time scale factor (e.g. 60 = one minute per second)")
    p_run.add_argument("--tick-ms", type=float, default=None, help="Tick interval in session milliseconds (default: 1000 or MCTPRACTICE_TICK_MS)")
    p_run.add_argument("--stop-after", type=float, default=None, help="Stop early after N session seconds")
    p_run.add_argument("--results-file", default=None, help=f"Append the result to a JSON-lines journal (e.g. {get_results_path()})")

    return parser


def _load_script(args) -> Script:
    if getattr(args, "load", None):
        return load_script_file(Path(args.load))
    return get_script(args.script or DEFAULT_SCRIPT, dm_duration=args.dm_duration, metaphor=args.metaphor)


def cmd_list(args) -> int:
    rows = []
    for key in available_scripts():
        script = get_script(key)
        rows.append({
            "key": key,
            "name": script.name,
            "total_duration_seconds": script.total_duration_seconds,
            "phases": len(script.phases),
            "instructions": script.instruction_count(),
        })
    if args.json:
        print(json.dumps(rows, ensure_ascii=False))
        return EXIT_OK
    for row in rows:
        extra = f"  (durations: {', '.join(str(d) for d in DM_DURATIONS)}s)" if row["key"] == "dm" else ""
        print(f"{row['key']:<10} {row['name']:<40} {format_clock(row['total_duration_seconds']):>6}  "
              f"{row['phases']} phases{extra}")
    return EXIT_OK


def cmd_show(args) -> int:
    script = _load_script(args)
    if args.json:
        print(json.dumps(script.to_dict(), ensure_ascii=False, indent=2))
        return EXIT_OK
    print(f"{script.name} [{script.key or '-'}] {format_clock(script.total_duration_seconds)}")
    for index, (start, phase) in enumerate(zip(script.phase_starts(), script.phases)):
        print(f"  {index}. {format_clock(start):>5}  {phase.name} ({phase.duration_seconds}s, "
              f"{len(phase.instructions)} instruction(s))")
        if args.instructions:
            for instruction in phase.instructions:
                print(f"       +{instruction.offset_seconds:>3}s  {instruction.text}")
    return EXIT_OK


def cmd_validate(args) -> int:
    path = Path(args.load)
    summary = {"valid": True, "file": str(path), "script": None, "violation": None, "error": None}
    try:
        script = load_script_file(path)
        summary["script"] = {"name": script.name, "phases": len(script.phases),
                             "total_duration_seconds": script.total_duration_seconds}
        code = EXIT_OK
    except ScriptInvalid as exc:
        summary.update(valid=False, violation=exc.violation.value, error=str(exc))
        code = EXIT_INVALID_SCRIPT
    except (OSError, json.JSONDecodeError) as exc:
        summary.update(valid=False, error=str(exc))
        code = EXIT_ERROR

    if args.json:
        print(json.dumps(summary, ensure_ascii=False))
    else:
        print(f"Validation: {'PASSED' if summary['valid'] else 'FAILED'}")
        if summary["error"]:
            print(f"  - {summary['error']}")
    return code


def cmd_resolve(args) -> int:
    script = _load_script(args)
    position = resolve(script, args.at)
    phase = script.phases[position.phase_index]
    instruction = phase.instructions[position.instruction_index]
    payload = dict(asdict(position), phase_name=phase.name, instruction_text=instruction.text)
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        state = "complete" if position.is_complete else f"{phase.name} +{position.phase_elapsed_seconds:g}s"
        print(f"t={args.at:g}s -> phase {position.phase_index} ({state}), instruction {position.instruction_index}")
        print(f"  {instruction.text}")
    return EXIT_OK


def _scaled_clock(speed: float) -> Callable[[], float]:
    base = time.monotonic()
    return lambda: base + (time.monotonic() - base) * speed


async def _run_session(
    controller: PlaybackController,
    *,
    speed: float,
    stop_after: Optional[float],
) -> SessionResult:
    loop = asyncio.get_running_loop()
    finished: asyncio.Future = loop.create_future()

    def _on_end(event: SessionEvent) -> None:
        if not finished.done():
            finished.set_result(event.data["result"])

    controller.event_emitter.subscribe(SessionEventType.SESSION_END, _on_end)

    controller.start()
    if stop_after is not None:
        loop.call_later(max(0.0, stop_after) / speed, controller.stop)
    return await finished


def cmd_run(args) -> int:
    log = logging.getLogger(__name__)
    if args.speed <= 0:
        print("Error: --speed must be positive")
        return EXIT_ERROR

    script = _load_script(args)
    tick_ms = max(MIN_TICK_MS, resolve_tick_interval_ms(args.tick_ms) / args.speed)
    controller = PlaybackController(
        script,
        tick_source=AsyncioTickSource(tick_ms),
        clock=_scaled_clock(args.speed),
    )

    if not args.json:
        def _print_phase(event: SessionEvent) -> None:
            print(f"== {event.data['phase_name']} ({event.data['duration']}s)")

        def _print_instruction(event: SessionEvent) -> None:
            print(f"[{format_clock(controller.elapsed_seconds)}] {event.data['text']}", flush=True)

        controller.event_emitter.subscribe(SessionEventType.PHASE_START, _print_phase)
        controller.event_emitter.subscribe(SessionEventType.INSTRUCTION_DISPATCHED, _print_instruction)

    log.info("CLI run script=%s speed=%.2f tick_ms=%.1f", script.name, args.speed, tick_ms)
    try:
        result = asyncio.run(_run_session(controller, speed=args.speed, stop_after=args.stop_after))
    except KeyboardInterrupt:
        result = controller.stop()
        if result is None:
            return EXIT_ERROR

    if args.results_file:
        ResultJournal(args.results_file).append(result)

    if args.json:
        print(json.dumps({"result": result.to_dict(), "record": result.to_record()}, ensure_ascii=False))
    else:
        status = "Completed" if result.completed else "Stopped early"
        print(f"{status} after {format_clock(result.elapsed_seconds)} "
              f"({result.phases_completed}/{result.total_phases} phases)")
    return EXIT_OK


_COMMANDS = {
    "list": cmd_list,
    "show": cmd_show,
    "validate": cmd_validate,
    "resolve": cmd_resolve,
    "run": cmd_run,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging before doing any work
    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=(args.log_format == "json"),
        log_mode=args.log_mode,
        add_console=True,
    )

    cmd = args.command or "list"
    if cmd == "list" and not hasattr(args, "json"):
        args.json = False

    log = logging.getLogger(__name__)
    try:
        return _COMMANDS[cmd](args)
    except ScriptInvalid as exc:
        log.error("Invalid script: %s", exc)
        print(f"Error: invalid script: {exc}")
        return EXIT_INVALID_SCRIPT
    except (KeyError, ValueError, OSError) as exc:
        log.error("Command %s failed: %s", cmd, exc)
        print(f"Error: {exc}")
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
