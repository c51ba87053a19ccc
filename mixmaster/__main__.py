#!/usr/bin/env python3
# mixmaster/__main__.py
"""
Command-line entry point.

    python -m mixmaster run --config config
    python -m mixmaster outstation --config config --port 1502
"""

import argparse
import asyncio
import logging
import signal
import sys

from mixmaster import __version__
from mixmaster.config.config_loader import ConfigLoader
from mixmaster.config.configuration import Configuration
from mixmaster.errors import ConfigParseError
from mixmaster.logging_system import configure_logging
from mixmaster.protocols.modbus.outstation import OutstationServer, SimulatedOutstation
from mixmaster.runtime import MasterStation, seed_outstation

logger = logging.getLogger("mixmaster")


def create_parser():
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="mixmaster",
        description="Modbus TCP master station with mixing vessel automation",
        epilog="""
Examples:
  # Run the master against the in-process outstation (executor.kind: loopback)
  python -m mixmaster run --config config

  # Serve a simulated outstation, then point a tcp master at it
  python -m mixmaster outstation --config config --port 1502
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    run_parser = subparsers.add_parser("run", help="Run the master station")
    run_parser.add_argument(
        "--config", default="config", help="Directory containing master.yml"
    )

    outstation_parser = subparsers.add_parser(
        "outstation", help="Serve a simulated Modbus TCP outstation"
    )
    outstation_parser.add_argument(
        "--config", default="config", help="Directory containing master.yml"
    )
    outstation_parser.add_argument("--host", default=None, help="Listen address")
    outstation_parser.add_argument("--port", type=int, default=None, help="Listen port")

    return parser


async def run_master(args) -> int:
    station = MasterStation(config_dir=args.config)
    try:
        await station.run()
    except RuntimeError as e:
        logger.error(str(e))
        return 1
    return 0


async def run_outstation(args) -> int:
    settings = ConfigLoader(config_dir=args.config).load_all()
    configure_logging(
        log_dir=settings["logging"]["log_dir"], level=settings["logging"]["level"]
    )

    executor_settings = settings["executor"]
    configuration = Configuration.from_file(
        settings["points_path"],
        unit_address=settings["master"]["unit_address"],
        tcp_port=executor_settings["port"],
    )

    outstation = SimulatedOutstation(unit_id=configuration.unit_address)
    seed_outstation(outstation, configuration)

    server = OutstationServer(
        outstation,
        host=args.host or executor_settings["host"],
        port=args.port if args.port is not None else configuration.tcp_port,
    )

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, shutdown.set)

    await server.start()
    logger.info("Outstation running. Press Ctrl+C to stop.")
    try:
        await shutdown.wait()
    finally:
        await server.stop()
    return 0


async def main_async(argv=None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "run":
        return await run_master(args)
    if args.command == "outstation":
        try:
            return await run_outstation(args)
        except ConfigParseError as e:
            logger.error(str(e))
            return 1

    parser.print_help()
    return 1


def main(argv=None) -> int:
    """Main entry point."""
    try:
        return asyncio.run(main_async(argv))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
