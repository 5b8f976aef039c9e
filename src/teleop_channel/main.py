"""
Operator Console Entry Point
============================

Headless console that connects to a robot relay, watches telemetry and
sends operator commands.

Usage:
    teleop-console --url ws://relay:8765 --robot r2d2 --token abc
    teleop-console --op ask_for_manual --op go_home_safely --duration 30
    teleop-console --config config.yaml --report-interval 5
"""

import argparse
import asyncio
import logging
import signal
import sys
import time
from typing import List, Optional

from teleop_channel.config import Settings, load_config, setup_logging
from teleop_channel.session import OperatorSession
from teleop_channel.stream.receiver import RgbStreamReceiver
from teleop_channel.transport.connection import Connector


logger = logging.getLogger(__name__)


def _notify_operator(error: BaseException) -> None:
    logger.warning(f"RGB stream problem: {error}")


def _report(session: OperatorSession, elapsed: float) -> None:
    metrics = session.metrics()
    telemetry = metrics["telemetry"]
    commands = metrics["commands"]

    logger.info("-" * 40)
    logger.info(f"Status (elapsed: {elapsed:.0f}s)")
    logger.info(f"  Frames connection: {session.receiver.frames_connection.state.value}")
    logger.info(f"  State connection: {session.receiver.state_connection.state.value}")
    logger.info(f"  Commands connection: {session.commands.connection.state.value}")
    logger.info(f"  Frames decoded: {telemetry['decode']['frames_decoded']}")
    logger.info(f"  Frames dropped: "
                f"{telemetry['decode']['unrecognized_frames'] + telemetry['decode']['malformed_frames']}")
    logger.info(f"  Decode failures: {telemetry['decode']['decode_failures']}")
    logger.info(f"  Reconnects: "
                f"{telemetry['frames']['reconnect_count'] + telemetry['state']['reconnect_count']}"
                f" telemetry, {commands['connection']['reconnect_count']} commands")
    logger.info(f"  Commands queued/sent/lost: "
                f"{commands['queue']['size']}/{commands['queue']['sent']}/{commands['queue']['lost']}")
    if session.joints:
        logger.info(f"  Joints (rad): {[round(j, 3) for j in session.joints]}")


async def run_console(
    settings: Settings,
    duration: Optional[float],
    operations: List[str],
    report_interval: float,
    watch_rgb: bool = False,
    connector: Optional[Connector] = None,
) -> dict:
    """
    Run a session until ``duration`` elapses or a stop signal arrives.

    Args:
        settings: Loaded settings
        duration: Seconds to run; None = until interrupted
        operations: Named actions to enqueue right after start
        report_interval: Seconds between status reports
        watch_rgb: Also watch the plain JPEG exchange
        connector: Replacement for websockets.connect (tests)

    Returns:
        Final session metrics
    """
    session = OperatorSession.from_settings(settings, connector=connector)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    logger.info("=" * 60)
    logger.info(f"Relay: {settings.connection.url}")
    logger.info(f"Robot: {settings.robot.name}")
    logger.info("=" * 60)

    rgb: Optional[RgbStreamReceiver] = None
    if watch_rgb:
        rgb = RgbStreamReceiver(
            settings.connection.url,
            settings.robot.name,
            settings.robot.access_token,
            exchange=settings.exchanges.rgb,
            error_hook=_notify_operator,
            reconnect_delay=settings.connection.reconnect_delay_seconds,
            connector=connector,
            **settings.connection.connect_options(),
        )
        rgb.start()

    session.start()
    for op in operations:
        session.send_op(op)

    start_time = time.time()
    try:
        while not stop_event.is_set():
            elapsed = time.time() - start_time
            if duration is not None and elapsed >= duration:
                logger.info(f"Duration ({duration}s) reached")
                break

            timeout = report_interval
            if duration is not None:
                timeout = min(timeout, duration - elapsed)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                _report(session, time.time() - start_time)
    finally:
        await session.shutdown()
        if rgb is not None:
            await rgb.shutdown()
            logger.info(f"RGB frames received: {rgb.images.published_count}")

    metrics = session.metrics()
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info(f"Runtime: {time.time() - start_time:.1f} seconds")
    logger.info(f"Frames decoded: {metrics['telemetry']['decode']['frames_decoded']}")
    logger.info(f"Commands sent: {metrics['commands']['queue']['sent']}")
    logger.info("=" * 60)
    return metrics


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Operator console for a remote robot relay"
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--url", type=str, default=None, help="Relay WebSocket URL")
    parser.add_argument("--robot", type=str, default=None, help="Robot name")
    parser.add_argument("--token", type=str, default=None, help="Access token")
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to run (default: until interrupted)",
    )
    parser.add_argument(
        "--op",
        action="append",
        default=[],
        help="Named operation to send after connecting (repeatable)",
    )
    parser.add_argument(
        "--rgb",
        action="store_true",
        help="Also watch the plain JPEG exchange",
    )
    parser.add_argument(
        "--report-interval",
        type=float,
        default=10.0,
        help="Seconds between status reports (default: 10)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_config(args.config)
    if args.url:
        settings.connection.url = args.url
    if args.robot:
        settings.robot.name = args.robot
    if args.token:
        settings.robot.access_token = args.token

    setup_logging(settings)

    asyncio.run(run_console(
        settings,
        duration=args.duration,
        operations=args.op,
        report_interval=args.report_interval,
        watch_rgb=args.rgb,
    ))
    return 0


if __name__ == "__main__":
    sys.exit(main())
