"""mapsync command line.

    mapsync watch            Join the channel headlessly and log traffic
    mapsync stats FILE       Print stats for every feature in a bulkAdd file
    mapsync send FILE        Publish one envelope read from a JSON file
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

from loguru import logger

from mapsync.comms.envelope import MESSAGE_TYPES
from mapsync.comms.loader import bulk_features
from mapsync.config import Settings
from mapsync.layers import validator
from mapsync.layers.stats import project
from mapsync.session import ClientSession
from mapsync.sync.renderer import MemoryRenderer


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.host:
        overrides["broker_host"] = args.host
    if args.port:
        overrides["broker_port"] = args.port
    return Settings(**overrides)


def cmd_watch(args: argparse.Namespace) -> int:
    config = _settings(args)
    session = ClientSession(MemoryRenderer(), config=config)
    session.start(bulk_load=not args.no_bulk)
    deadline = time.monotonic() + args.duration if args.duration else None
    last_report = time.monotonic()
    try:
        while deadline is None or time.monotonic() < deadline:
            session.pump()
            if time.monotonic() - last_report >= args.report_every:
                last_report = time.monotonic()
                logger.info(f"{len(session.store)} feature(s); channel {session.channel.stats}")
            time.sleep(0.1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        session.stop()
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    packet = json.loads(Path(args.file).read_text(encoding="utf-8"))
    features = bulk_features(packet)
    if features is None:
        logger.error(f"{args.file} is not a bulkAdd packet")
        return 1
    for raw in features:
        feature = validator.clean(raw)
        stats = project(feature)
        print(f"{feature.id} {feature.name!r}")
        for line in stats.format_lines():
            print(f"  {line}")
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    payload = json.loads(Path(args.file).read_text(encoding="utf-8"))
    msg_type = payload.get("type")
    if msg_type not in MESSAGE_TYPES:
        logger.error(f"Invalid message type: {msg_type}")
        return 1

    session = ClientSession(MemoryRenderer(), config=_settings(args))
    session.start(bulk_load=False)
    deadline = time.monotonic() + args.timeout
    try:
        while not session.channel.connected and time.monotonic() < deadline:
            session.pump()
            time.sleep(0.05)
        if not session.channel.connected:
            logger.error(f"Not connected after {args.timeout:g}s; message not sent")
            return 1
        sent = session.channel.send(msg_type, payload.get("data"), payload.get("id"))
    finally:
        session.stop()
    return 0 if sent else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mapsync", description="Collaborative map feature sync client")
    parser.add_argument("--log-level", default=None, help="loguru level (default: MAPSYNC_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="join the channel and log traffic")
    watch.add_argument("--host", default=None)
    watch.add_argument("--port", type=int, default=None)
    watch.add_argument("--no-bulk", action="store_true", help="skip the initial bulk load")
    watch.add_argument("--duration", type=float, default=0, help="seconds to run (0 = until Ctrl-C)")
    watch.add_argument("--report-every", type=float, default=10.0)
    watch.set_defaults(func=cmd_watch)

    stats = sub.add_parser("stats", help="print stats for a bulkAdd JSON file")
    stats.add_argument("file")
    stats.set_defaults(func=cmd_stats)

    send = sub.add_parser("send", help="publish one envelope from a JSON file")
    send.add_argument("file")
    send.add_argument("--host", default=None)
    send.add_argument("--port", type=int, default=None)
    send.add_argument("--timeout", type=float, default=10.0)
    send.set_defaults(func=cmd_send)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or Settings().log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
