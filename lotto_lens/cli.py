"""
Command line entry points.

    lotto-lens serve [--host H] [--port P]
    lotto-lens scan [--camera 0] [--token T] [--lookup] [--timeout 30]

`scan` runs the positioning analyzer on a local camera, auto-captures the
ticket, sends it to the API and prints the result.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import List, Optional

from loguru import logger

from lotto_lens.api_client import LottoApiClient
from lotto_lens.camera import CameraStream, encode_jpeg
from lotto_lens.config import get_settings
from lotto_lens.date_utils import format_date_for_display
from lotto_lens.errors import CaptureCapabilityError
from lotto_lens.frame_analyzer import ScanFeedback, ScanSession
from lotto_lens.logging_config import configure_logging
from lotto_lens.ticket_verifier import verify_ticket
from lotto_lens.workflow import ScanWorkflow


def _print_feedback(feedback: ScanFeedback) -> None:
    marker = "*" if feedback.is_positioned else " "
    print(f"\r[{marker}] {feedback.confidence:5.1f}%  {feedback.message.value:<45}", end="", flush=True)


async def capture_ticket_frame(session: ScanSession, camera: CameraStream, timeout: float):
    """Run the session until it captures a frame (auto, or manual on timeout)."""
    captured: asyncio.Queue = asyncio.Queue()
    session.on_capture = captured.put_nowait
    session.start(camera)
    runner = asyncio.create_task(session.run())
    try:
        try:
            return await asyncio.wait_for(captured.get(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.info("No auto-capture before timeout, capturing current frame")
            return session.capture()
    finally:
        session.stop()
        await runner


async def run_scan(args: argparse.Namespace) -> int:
    token = args.token or os.getenv("LOTTO_ID_TOKEN")
    client = LottoApiClient(token_provider=lambda: token, base_url=args.api_url)
    workflow = ScanWorkflow(extract=client.extract_ticket, lookup=client.winning_numbers)
    session = ScanSession(on_capture=lambda frame: None, on_feedback=_print_feedback,
                          auto_capture=not args.no_auto)

    try:
        frame = await capture_ticket_frame(session, CameraStream(args.camera), args.timeout)
    except CaptureCapabilityError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    print()
    if frame is None:
        print("Error: no frame captured", file=sys.stderr)
        return 1

    ticket = await workflow.handle_capture(encode_jpeg(frame), "image/jpeg")
    if ticket is None:
        print(f"Error: {workflow.error}", file=sys.stderr)
        return 1

    print(f"Draw date: {format_date_for_display(ticket.date)}")
    for row in ticket.winning_rows:
        print(f"  {row}")
    print(f"Sance: {ticket.bonus_number}")

    if args.lookup:
        result = await workflow.fetch_winning_numbers()
        if result is None:
            print(f"Error: {workflow.lookup_error}", file=sys.stderr)
            return 1
        print(json.dumps(verify_ticket(ticket, result).to_response(), indent=2, ensure_ascii=False))
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("lotto_lens.api:app", host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="lotto-lens", description="Lottery ticket reader")
    parser.add_argument("--log-level", default=settings.log_level)
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    scan = sub.add_parser("scan", help="Scan a ticket with a local camera")
    scan.add_argument("--camera", type=int, default=0, help="OpenCV device index")
    scan.add_argument("--api-url", default=settings.api_base_url)
    scan.add_argument("--token", help="ID token (defaults to $LOTTO_ID_TOKEN)")
    scan.add_argument("--lookup", action="store_true", help="Check against official results")
    scan.add_argument("--no-auto", action="store_true", help="Disable auto-capture")
    scan.add_argument("--timeout", type=float, default=30.0,
                      help="Seconds before capturing the current frame manually")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if args.command == "serve":
        return run_serve(args)
    return asyncio.run(run_scan(args))


if __name__ == "__main__":
    sys.exit(main())
