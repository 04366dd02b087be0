"""Command-line driver for the coaching engine.

Two modes:

``replay SCRIPT``
    Feed a JSONL script of timed events through the engine on a virtual
    clock and print every engine notification. One JSON object per line::

        {"at": 0, "event": "enable"}
        {"at": 3, "event": "candidate", "name": "suggest_follow_up",
         "arguments": {"text": "Ask why", "confidence": "0.9"}}
        {"at": 4, "event": "speech"}
        {"at": 12, "event": "accept"}

    Supported events: enable, disable, speech, candidate, accept, dismiss,
    snooze, pull, mode, preset, cultural, end. Response events without an
    ``id`` target the prompt currently displayed.

``interactive``
    Read commands from stdin against the real clock.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Iterable
from pathlib import Path

from dotenv import load_dotenv

from coaching.engine.delivery import AutoDismissPreset, DeliveryMode
from coaching.engine.events import Event
from coaching.engine.service import CoachingService, EngineState
from coaching.prompts.parser import RawCandidate, candidate_from_dict
from coaching.scheduler.timers import ManualTimers
from coaching.thresholds.cultural import CulturalPreset

logger = logging.getLogger(__name__)


def attach_printer(service: CoachingService) -> None:
    def _print(event: Event) -> None:
        prompt = event.payload.get("prompt")
        response = event.payload.get("response")
        parts = [f"[{service.timers.now():8.1f}s] {event.name}"]
        if prompt is not None:
            parts.append(f"{prompt.type.value} ({prompt.confidence:.2f}): {prompt.text}")
        if response is not None:
            parts.append(f"→ {response.value}")
        print(" ".join(parts))

    service.on_prompt_shown(_print)
    service.on_prompt_dismissed(_print)
    service.on_prompt_auto_dismissed(_print)
    service.on_coaching_enabled(_print)
    service.on_coaching_disabled(_print)


def apply_event(service: CoachingService, event: dict) -> None:
    """Apply one decoded script event to *service*."""
    kind = str(event.get("event", "")).lower()
    current = service.current_prompt
    prompt_id = str(event.get("id") or (current.id if current else ""))

    if kind == "enable":
        service.enable()
    elif kind == "disable":
        service.disable()
    elif kind == "speech":
        service.notify_speech_detected(event.get("timestamp"))
    elif kind == "candidate":
        service.process_candidate(candidate_from_dict(event))
    elif kind == "accept":
        service.accept(prompt_id)
    elif kind == "dismiss":
        service.dismiss(prompt_id)
    elif kind == "snooze":
        service.snooze(prompt_id)
    elif kind == "pull":
        service.pull_next()
    elif kind == "mode":
        service.delivery_mode = DeliveryMode(str(event.get("value", "")).lower())
    elif kind == "preset":
        value = str(event.get("value", "")).lower()
        service.auto_dismiss_preset = AutoDismissPreset(value) if value else None
    elif kind == "cultural":
        service.select_cultural_preset(CulturalPreset(str(event.get("value", "")).lower()))
    elif kind == "end":
        service.end_session()
    else:
        raise ValueError(f"Unknown event: {kind!r}")


def replay(lines: Iterable[str], service: CoachingService, timers: ManualTimers) -> None:
    service.start_session()
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            event = json.loads(line)
            timers.advance_to(float(event.get("at", timers.now())))
            if isinstance(event.get("session_time"), (int, float)):
                service.update_timestamp(float(event["session_time"]))
            apply_event(service, event)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping line %d: %s", lineno, exc)

    if service.state is not EngineState.ENDED:
        service.end_session()
    _print_summary(service)


def _print_summary(service: CoachingService) -> None:
    stats = service.tracker.session_stats
    print(
        f"shown={stats.prompts_shown} accepted={stats.prompts_accepted} "
        f"dismissed={stats.prompts_dismissed} snoozed={stats.prompts_snoozed} "
        f"timed_out={stats.prompts_timed_out} pull_queue={len(service.pull_queue)} "
        f"preview_log={len(service.preview_log)}"
    )


async def run_interactive(service: CoachingService) -> None:
    service.start_session()
    print("Coaching engine CLI. Commands: enable, disable, speech, suggest <name> <text>, "
          "accept, dismiss, snooze, pull, mode <name>, status, exit")

    loop = asyncio.get_running_loop()
    while True:
        raw = (await loop.run_in_executor(None, input, "> ")).strip()
        if raw.lower() in {"exit", "quit", "q"}:
            break
        if not raw:
            continue

        command, _, rest = raw.partition(" ")
        command = command.lower()
        try:
            if command == "suggest":
                name, _, text = rest.partition(" ")
                service.process_candidate(
                    RawCandidate(name=name, arguments={"text": text}, timestamp=service.timers.now())
                )
            elif command == "status":
                current = service.current_prompt
                print(
                    f"state={service.state.value} shown={service.prompt_count} "
                    f"pending={len(service.pending_prompts)} cooldown={service.cooldown_remaining:.0f}s "
                    f"current={current.text if current else '-'}"
                )
            elif command == "mode":
                apply_event(service, {"event": "mode", "value": rest})
            else:
                apply_event(service, {"event": command})
        except ValueError as exc:
            print(f"error: {exc}")

    service.end_session()
    _print_summary(service)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    from config import LOG_LEVEL
    from interfaces.engine_factory import build_service

    parser = argparse.ArgumentParser(description="Coaching prompt delivery engine")
    sub = parser.add_subparsers(dest="command", required=True)
    replay_parser = sub.add_parser("replay", help="replay a JSONL event script on a virtual clock")
    replay_parser.add_argument("script", type=Path)
    sub.add_parser("interactive", help="drive the engine from stdin in real time")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))

    if args.command == "replay":
        try:
            lines = args.script.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.error("Cannot read script %s: %s", args.script, exc)
            raise SystemExit(1) from exc
        timers = ManualTimers()
        service = build_service(timers)
        attach_printer(service)
        replay(lines, service, timers)
        return

    async def _interactive() -> None:
        service = build_service()
        attach_printer(service)
        try:
            await run_interactive(service)
        finally:
            await service.timers.stop()

    asyncio.run(_interactive())


if __name__ == "__main__":
    main()
