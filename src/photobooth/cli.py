"""CLI entry point for the photo booth.

Provides the ``photobooth`` console script with subcommands:

- ``serve``: Run the kiosk web app (default if no subcommand)
- ``probe``: Check camera and printer reachability once and exit

Usage::

    # Simulated camera and printer on http://127.0.0.1:8000
    photobooth serve

    # Real camera and a CUPS printer
    photobooth serve --hardware --camera-ip 192.168.1.2 --printer-queue EPSON_PM_520

    # Is everything reachable?
    photobooth probe --hardware --camera-ip 192.168.1.2 --printer-queue EPSON_PM_520
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

from photobooth.drivers.config import DriverConfig, DriverFactory, DriverMode
from photobooth.drivers.printers import PaperSize
from photobooth.errors import BoothError
from photobooth.observability import configure_logging, get_logger
from photobooth.settings import DEFAULT_CAMERA_IP, BoothSettings, SettingsStore

logger = get_logger(__name__)

PROG = "photobooth"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _add_device_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--camera-ip",
        default=DEFAULT_CAMERA_IP,
        help=f"Camera address on the booth network (default: {DEFAULT_CAMERA_IP})",
    )
    parser.add_argument(
        "--hardware",
        action="store_true",
        help="Use the real camera and printer instead of digital twins",
    )
    parser.add_argument(
        "--printer-queue",
        default=None,
        help="CUPS printer queue (required with --hardware)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Photo booth kiosk: WiFi camera capture and printing",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve = subparsers.add_parser("serve", help="Run the kiosk web app (default)")
    _add_device_arguments(serve)
    serve.add_argument("--host", default=DEFAULT_HOST, help="Bind address")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help="Bind port")
    serve.add_argument(
        "--countdown", type=int, default=3, help="Countdown seconds (default: 3)"
    )
    serve.add_argument(
        "--copies", type=int, default=1, help="Prints per session (default: 1)"
    )
    serve.add_argument(
        "--paper-size",
        default=PaperSize.FOUR_BY_SIX.value,
        choices=[size.value for size in PaperSize],
        help="Paper loaded in the printer (default: 4x6)",
    )
    serve.add_argument(
        "--overlay-dir", default=None, help="Directory of PNG frame overlays"
    )
    serve.add_argument(
        "--overlay", default=None, help="Overlay name to apply when printing"
    )
    serve.add_argument(
        "--auto-print",
        action="store_true",
        help="Print as soon as the photo is reviewed",
    )

    probe = subparsers.add_parser("probe", help="Check device reachability and exit")
    _add_device_arguments(probe)

    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse ``argv``; with no subcommand, ``serve`` is assumed."""
    args_list = list(sys.argv[1:] if argv is None else argv)
    if not args_list or args_list[0] not in {"serve", "probe", "-h", "--help"}:
        args_list.insert(0, "serve")
    return build_parser().parse_args(args_list)


def driver_config_from_args(args: argparse.Namespace) -> DriverConfig:
    """Driver configuration for the parsed device flags."""
    return DriverConfig(
        mode=DriverMode.HARDWARE if args.hardware else DriverMode.DIGITAL_TWIN,
        printer_queue=args.printer_queue,
    )


def settings_from_args(args: argparse.Namespace) -> BoothSettings:
    """Initial operator settings for ``serve``.

    Raises:
        ValueError: Countdown or copies below 1.
    """
    return BoothSettings(
        camera_ip=args.camera_ip,
        countdown_seconds=args.countdown,
        copies=args.copies,
        paper_size=PaperSize(args.paper_size),
        overlay_enabled=args.overlay is not None,
        overlay_name=args.overlay,
        auto_print=args.auto_print,
    )


def run_serve(args: argparse.Namespace) -> int:
    """Build the booth and serve the kiosk app until interrupted."""
    import uvicorn

    from photobooth.booth import Booth
    from photobooth.web.app import create_app

    settings = SettingsStore(settings_from_args(args))
    booth = Booth.from_config(
        driver_config_from_args(args),
        settings,
        overlay_dir=args.overlay_dir,
    )
    logger.info(
        "Starting kiosk",
        host=args.host,
        port=args.port,
        mode="hardware" if args.hardware else "digital_twin",
        camera_ip=args.camera_ip,
    )
    uvicorn.run(
        create_app(booth),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )
    return 0


async def _probe(args: argparse.Namespace) -> dict[str, Any]:
    from photobooth.devices import Camera, ConnectionMonitor

    factory = DriverFactory(driver_config_from_args(args))
    camera = Camera(factory.create_camera_driver(args.camera_ip))
    monitor = ConnectionMonitor(camera, factory.create_printer_driver())
    try:
        status = await monitor.probe_once()
        report: dict[str, Any] = status.to_dict()
        if status.camera_reachable:
            try:
                report["device_info"] = (await camera.device_info()).to_dict()
            except BoothError as e:
                report["device_info_error"] = str(e)
        return report
    finally:
        await camera.close()


def run_probe(args: argparse.Namespace) -> int:
    """Print a reachability report as JSON.

    Returns:
        0 when both devices are reachable, 1 otherwise.
    """
    report = asyncio.run(_probe(args))
    print(json.dumps(report, indent=2))
    return 0 if report["camera_reachable"] and report["printer_reachable"] else 1


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Process exit code.

    Example:
        >>> # photobooth serve --hardware --camera-ip 192.168.1.2 --printer-queue PM520
        >>> # photobooth probe
    """
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_format=args.json_logs, force=True)

    try:
        if args.command == "probe":
            return run_probe(args)
        return run_serve(args)
    except ValueError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
