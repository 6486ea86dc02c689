"""Command-line interface for livecommentary.

Provides the main entry point for running commentary in the terminal,
serving it to a host page over HTTP, testing screen capture, and
editing the persisted commentary settings.
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="livecommentary",
        description="Synthetic live chat commentary on your screen",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/livecommentary.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "run", help="Comment on the screen in this terminal (type lines to chat)",
    )

    serve_parser = subparsers.add_parser("serve", help="Serve the commentary API to a host page")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    test_parser = subparsers.add_parser("capture-test", help="Capture one screen frame to a file")
    test_parser.add_argument(
        "-o", "--output", type=Path, default=Path("capture_test.jpg"),
        help="Output file (default: capture_test.jpg)",
    )

    settings_parser = subparsers.add_parser("settings", help="Show or edit persisted settings")
    settings_parser.add_argument(
        "--set", dest="assignments", action="append", default=[], metavar="KEY=VALUE",
        help="Set a setting, e.g. --set remoteUrl=http://host/v1/chat/completions",
    )

    return parser.parse_args(argv)


def _build_store(settings):
    from livecommentary.commentary.store import SettingsStore

    return SettingsStore(settings.storage.path.expanduser(), key=settings.storage.key)


def _build_orchestrator(settings, external_source=None):
    """Wire the frame source, provider and store from app settings."""
    from livecommentary.capture import create_frame_source
    from livecommentary.commentary.orchestrator import CommentaryOrchestrator
    from livecommentary.provider.remote import RemoteAIProvider

    source = create_frame_source(
        settings.capture.mode,
        external_source=external_source,
        monitor=settings.capture.monitor,
        max_dimension=settings.capture.max_dimension,
        jpeg_quality=settings.capture.jpeg_quality,
    )
    provider = RemoteAIProvider(
        timeout=settings.provider.request_timeout,
        max_tokens=settings.provider.max_tokens,
        history_window=settings.provider.history_window,
    )
    commentary = settings.commentary
    return CommentaryOrchestrator(
        source=source,
        provider=provider,
        store=_build_store(settings),
        config=commentary.defaults,
        prompts=commentary.prompts,
        context_data=commentary.context_data,
        usernames=commentary.usernames,
        display_interval=commentary.display_interval,
    )


def _print_message(msg) -> None:
    marker = " [frame]" if msg.attachment else ""
    print(f"{msg.username}: {msg.text}{marker}", flush=True)


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
    """Feed stdin lines into an asyncio queue from a daemon thread."""

    def _reader() -> None:
        for line in sys.stdin:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(lines.put_nowait, line)

    threading.Thread(target=_reader, name="livecommentary-stdin", daemon=True).start()


async def _run_commentary(settings) -> None:
    """Comment on the screen, echoing chat to stdout and reading stdin."""
    orchestrator = _build_orchestrator(settings)
    orchestrator.add_message_listener(_print_message)
    orchestrator.welcome()

    lines: asyncio.Queue[str] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)
    try:
        if not await orchestrator.toggle_capture():
            return
        while orchestrator.is_capturing:
            try:
                line = await asyncio.wait_for(lines.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            text = line.strip()
            if text:
                await orchestrator.send_user_message(text)
    finally:
        await orchestrator.aclose()


def _serve(settings, host: str | None, port: int | None) -> None:
    import uvicorn

    from livecommentary.capture.external import FrameSlot
    from livecommentary.endpoint.server import create_app

    frame_slot = FrameSlot() if settings.capture.mode == "external" else None
    orchestrator = _build_orchestrator(settings, external_source=frame_slot)
    app = create_app(orchestrator, frame_slot=frame_slot)
    uvicorn.run(
        app,
        host=host or settings.server.host,
        port=port or settings.server.port,
    )


async def _capture_test(settings, output: Path) -> None:
    """Capture a single screen frame and save it."""
    from livecommentary.capture.base import CaptureError
    from livecommentary.capture.screen import ScreenCapture

    capture = ScreenCapture(
        monitor=settings.capture.monitor,
        max_dimension=settings.capture.max_dimension,
        jpeg_quality=settings.capture.jpeg_quality,
    )
    try:
        await capture.start()
    except CaptureError as e:
        await capture.close()
        print(f"Screen capture failed: {e}")
        return
    try:
        frame = None
        for _ in range(3):
            frame = await capture.capture_frame()
            if frame:
                break
    finally:
        await capture.close()

    if not frame:
        print("No frame captured.")
        return
    output.write_bytes(base64.b64decode(frame))
    print(f"Saved frame to {output}")


def _edit_settings(settings, assignments: list[str]) -> None:
    store = _build_store(settings)
    current = store.load(settings.commentary.defaults)
    if assignments:
        from pydantic import ValidationError

        from livecommentary.commentary.store import merge_settings

        changes = {}
        for item in assignments:
            key, sep, value = item.partition("=")
            if not sep:
                raise SystemExit(f"Invalid assignment (expected KEY=VALUE): {item}")
            changes[key.strip()] = value.strip()
        try:
            current = merge_settings(current, changes)
        except ValidationError as e:
            raise SystemExit(f"Invalid settings: {e}") from e
        store.save(current)
        print(f"Saved settings to {store.path}")

    record = current.to_record()
    if record.get("apiKey"):
        record["apiKey"] = "***"
    print(json.dumps(record, indent=2))


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the livecommentary CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from livecommentary.config.settings import load_settings
    from livecommentary.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "run":
        if settings.capture.mode != "screen-capture":
            raise SystemExit("'run' needs capture.mode=screen-capture; use 'serve' for external frames")
        logger.info("Starting terminal commentary")
        try:
            asyncio.run(_run_commentary(settings))
        except KeyboardInterrupt:
            pass

    elif args.command == "serve":
        logger.info("Starting commentary endpoint")
        _serve(settings, args.host, args.port)

    elif args.command == "capture-test":
        logger.info("Running capture test")
        asyncio.run(_capture_test(settings, args.output))

    elif args.command == "settings":
        _edit_settings(settings, args.assignments)


if __name__ == "__main__":
    main()
