"""ThinkDrop CLI for exercising the client control plane."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from . import __version__
from .automation import AutomationSessionController, OutputEvent, OutputKind
from .bridge import BridgeConnectionManager, BridgeEvent, FrameKind
from .capture import (
    CaptureRegion,
    ClipboardMonitor,
    HighlightClassifier,
    HighlightPolicy,
    RecentPrompts,
    SystemClipboard,
    SystemOCR,
    process_screen_text,
)
from .config import settings
from .errors import ThinkDropError
from .rpc import RpcClient

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _load_engine_factory(path: str):
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError("engine must be given as module:factory")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


async def _health() -> int:
    async with RpcClient.from_settings(settings.get_settings()) as client:
        _print_json({"healthy": await client.healthy_services()})
    return 0


async def _call(service: str, action: str, payload: dict[str, Any]) -> int:
    async with RpcClient.from_settings(settings.get_settings()) as client:
        result = await client.call(service, action, payload)
    _print_json(
        {
            "service": result.service,
            "action": result.action,
            "requestId": result.request_id,
            "success": result.success,
            "data": result.data,
        }
    )
    return 0


def _screen_text(args: argparse.Namespace) -> int:
    if args.capture:
        raw = SystemOCR().capture_text(CaptureRegion.parse(args.region))
    elif args.file:
        raw = Path(args.file).read_text(encoding="utf-8")
    else:
        raw = args.text if args.text is not None else sys.stdin.read()
    artifact = process_screen_text(raw)
    _print_json(
        {
            "files": artifact.files,
            "snippets": artifact.snippets,
            "text": artifact.text,
            "highlight": artifact.as_highlight(),
        }
    )
    return 0


async def _watch_clipboard(max_events: int | None) -> int:
    config = settings.get_settings()
    classifier = HighlightClassifier(
        RecentPrompts(config.self_submission_ttl),
        set(),
        HighlightPolicy(config.short_text_max_chars),
    )
    limit = max_events if max_events and max_events > 0 else None
    seen = 0
    finished = asyncio.Event()

    def on_highlight(text: str) -> None:
        nonlocal seen
        seen += 1
        _print_json({"highlight": text})
        if limit is not None and seen >= limit:
            finished.set()

    monitor = ClipboardMonitor(
        SystemClipboard(),
        classifier,
        on_highlight,
        interval=config.clipboard_poll_interval,
    )
    await monitor.start()
    try:
        await finished.wait()
    finally:
        await monitor.stop()
    return 0


async def _ask(prompt: str, selected_text: str, timeout: float) -> int:
    connected = asyncio.Event()
    finished = asyncio.Event()
    failures: list[str] = []

    def on_event(event: BridgeEvent) -> None:
        if event.type == "connected":
            connected.set()
        elif event.kind is FrameKind.CHUNK and event.text:
            print(event.text, end="", flush=True)
        elif event.kind is FrameKind.END:
            print()
            finished.set()
        elif event.kind is FrameKind.ERROR:
            failures.append(event.text or "bridge error")
            finished.set()

    bridge = BridgeConnectionManager.from_settings(settings.get_settings(), on_event=on_event)
    bridge.connect()
    try:
        await asyncio.wait_for(connected.wait(), timeout=timeout)
        failures.clear()
        if await bridge.send(prompt, selected_text) is None:
            return 1
        await asyncio.wait_for(finished.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("no bridge reply within %.1fs", timeout)
        return 1
    finally:
        await bridge.close()
    if failures:
        print(f"error: {failures[0]}", file=sys.stderr)
        return 1
    return 0


class _PrintSink:
    def emit(self, event: OutputEvent) -> None:
        if event.kind is OutputKind.CHUNK:
            print(event.text, end="", flush=True)
        elif event.kind is OutputKind.PROGRESS:
            payload = event.payload
            if hasattr(payload, "model_dump"):
                payload = payload.model_dump(by_alias=True)
            print(f"[progress] {json.dumps(payload, default=str)}")
        elif event.kind is OutputKind.QUESTION:
            print(event.text)
        elif event.kind is OutputKind.COMPLETE:
            if event.text:
                print(event.text)
        elif event.kind is OutputKind.ERROR:
            print(f"error: {event.text}", file=sys.stderr)
        else:
            print()


async def _run(engine_path: str) -> int:
    config = settings.get_settings()
    rpc_client = RpcClient.from_settings(config)
    bridge = BridgeConnectionManager.from_settings(config)
    factory = _load_engine_factory(engine_path)
    engine = factory(rpc_client=rpc_client, bridge=bridge)
    controller = AutomationSessionController.from_settings(
        config, engine, rpc_client=rpc_client, bridge=bridge
    )
    sink = _PrintSink()
    bridge.connect()
    try:
        while True:
            try:
                prompt = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not prompt.strip():
                continue
            await controller.process_prompt(prompt, sink=sink)
    except KeyboardInterrupt:
        logger.info("prompt loop interrupted")
    finally:
        await controller.aclose()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(prog="thinkdrop")
    parser.add_argument(
        "--version",
        action="version",
        version=f"thinkdrop {__version__}",
        help="Show version",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=False)

    subparsers.add_parser("health", help="List healthy services")

    call_parser = subparsers.add_parser("call", help="Invoke one service action")
    call_parser.add_argument("service")
    call_parser.add_argument("action")
    call_parser.add_argument("--payload", default="{}", help="JSON payload")

    screen_parser = subparsers.add_parser("screen-text", help="Extract artifacts from screen text")
    source = screen_parser.add_mutually_exclusive_group()
    source.add_argument("--text", help="Raw recognized text")
    source.add_argument("--file", help="File holding recognized text")
    source.add_argument("--capture", action="store_true", help="Capture and recognize the screen")
    screen_parser.add_argument("--region", help="Capture region (x,y,width,height)")

    watch_parser = subparsers.add_parser("watch-clipboard", help="Print accepted clipboard highlights")
    watch_parser.add_argument("--max-events", type=int, help="Stop after N highlights")

    ask_parser = subparsers.add_parser("ask", help="Send one prompt over the reasoning bridge")
    ask_parser.add_argument("prompt")
    ask_parser.add_argument("--selected-text", default="")
    ask_parser.add_argument("--timeout", type=float, default=60.0)

    run_parser = subparsers.add_parser("run", help="Interactive prompt loop through the engine")
    run_parser.add_argument("--engine", required=True, help="Engine factory as module:factory")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1
    _configure_logging(args.log_level)

    try:
        if args.command == "health":
            return asyncio.run(_health())
        if args.command == "call":
            return asyncio.run(_call(args.service, args.action, json.loads(args.payload)))
        if args.command == "screen-text":
            return _screen_text(args)
        if args.command == "watch-clipboard":
            return asyncio.run(_watch_clipboard(args.max_events))
        if args.command == "ask":
            return asyncio.run(_ask(args.prompt, args.selected_text, args.timeout))
        if args.command == "run":
            return asyncio.run(_run(args.engine))
    except (ThinkDropError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
