"""Interactive console driver for the studio assistant.

Lines typed on stdin are questions for the assistant. Lines starting with
``!`` are activity events in the form ``!domain tool action [detail]``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional, TextIO

from studio_assistant.assistant import AIAssistant
from studio_assistant.collector import event_from_dict
from studio_assistant.config import AssistantConfig
from studio_assistant.nlp import KeywordIntentModel
from studio_assistant.persistence import SQLiteLearningStore
from studio_assistant.ui import ConsoleRenderer

logger = logging.getLogger(__name__)


def parse_activity(line: str) -> Optional[dict]:
    parts = line[1:].split(maxsplit=3)
    if len(parts) < 3:
        return None
    domain, tool, action = parts[:3]
    detail = parts[3] if len(parts) > 3 else ""
    return {"domain": domain, "tool": tool, "action": action, "detail": detail, "is_error": action == "error"}


def build_config(args: argparse.Namespace) -> AssistantConfig:
    config = AssistantConfig.from_env()
    overrides = {}
    if args.threshold is not None:
        overrides["confidence_threshold"] = args.threshold
    if args.floor is not None:
        overrides["relevance_floor"] = args.floor
    return replace(config, **overrides) if overrides else config


def console_loop(assistant: AIAssistant, stream: TextIO, *, max_ticks: int) -> None:
    print("Ask a question, '!domain tool action' to log activity, 'report' or 'quit'.")
    for raw in stream:
        line = raw.strip()
        if not line:
            continue
        if line in {"quit", "exit"}:
            break
        if line == "report":
            print(assistant.daily_report_text())
            continue
        if line.startswith("!"):
            activity = parse_activity(line)
            if activity is None:
                print("[info] expected '!domain tool action [detail]'")
                continue
            activity["ts"] = assistant.snapshots.now()
            assistant.ingest_event(event_from_dict(activity))
        else:
            assistant.submit_query(line)
        statuses = assistant.run_until_idle(max_ticks=max_ticks)
        logger.debug("Ticks: %s", ", ".join(status.value for status in statuses))


def main() -> None:
    parser = argparse.ArgumentParser(description="Studio assistant console")
    parser.add_argument("--threshold", type=float, default=None, help="Intent confidence threshold")
    parser.add_argument("--floor", type=float, default=None, help="Relevance floor for suggestions")
    parser.add_argument("--state-db", default=None, help="SQLite file holding learning progress")
    parser.add_argument("--max-ticks", type=int, default=20, help="Tick budget per input line")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING), format="%(levelname)s %(name)s: %(message)s")

    store = SQLiteLearningStore(args.state_db) if args.state_db else None
    with KeywordIntentModel() as model:
        assistant = AIAssistant(
            config=build_config(args),
            model=model,
            renderer=ConsoleRenderer(),
            store=store,
        )
        if store is not None:
            assistant.load_state()
        try:
            console_loop(assistant, sys.stdin, max_ticks=max(1, args.max_ticks))
        except KeyboardInterrupt:
            print("\nStopped.")
        finally:
            if store is not None:
                assistant.save_state()
                store.close()
            assistant.close()


if __name__ == "__main__":
    main()
