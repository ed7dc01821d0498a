# main.py
# CLI entrypoint: argument handling, scan, reporting

from __future__ import annotations
import argparse
import logging
import signal
import sys
from typing import List, Optional

from config import DEFAULT_CONCURRENCY, DEFAULT_END, DEFAULT_START, DEFAULT_TIMEOUT, VERSION, InputError, build_config
from logs import setup_logging
from models import ProbeResult
from reporter import Reporter
from scanner import Scanner
from ui import ProgressUI

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SAVE_FAILED = 1
EXIT_BAD_INPUT = 2
EXIT_CANCELLED = 130

EPILOG = """\
examples:
  portsweep 127.0.0.1
  portsweep 127.0.0.1 1 10000 500
  portsweep ::1 20 25 --timeout 1.5 --json scan.json
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portsweep",
        description="Concurrent TCP connect port scanner",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Positional
    parser.add_argument("target", help="IPv4 or IPv6 address to scan")
    parser.add_argument("start", nargs="?", default=None, help=f"First port (default: {DEFAULT_START})")
    parser.add_argument("end", nargs="?", default=None, help=f"Last port, inclusive (default: {DEFAULT_END})")
    parser.add_argument(
        "concurrency", nargs="?", default=None,
        help=f"Maximum probes in flight (default: {DEFAULT_CONCURRENCY})",
    )

    # Flags
    parser.add_argument("--timeout", type=float, default=None, help=f"Connect timeout in seconds (default: {DEFAULT_TIMEOUT})")
    parser.add_argument("--show-closed", action="store_true", help="Also list closed/filtered ports after the scan")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--no-color", action="store_true", help="Disable colorized output")
    parser.add_argument("--json", dest="json_path", default=None, help="Save the report as JSON to this path")
    parser.add_argument("--csv", dest="csv_path", default=None, help="Save the report as CSV to this path")
    parser.add_argument("--text", dest="text_path", default=None, help="Save a text report to this path")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More diagnostics on stderr (-vv for debug)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_parser()

    if not argv:
        parser.print_help()
        return EXIT_OK

    args = parser.parse_args(argv)
    setup_logging(args.verbose, colorize=not args.no_color)

    try:
        cfg = build_config(
            args.target,
            args.start,
            args.end,
            args.concurrency,
            args.timeout,
            show_closed=args.show_closed,
            colorize=not args.no_color,
            progress=not args.no_progress,
            save_json_path=args.json_path,
            save_csv_path=args.csv_path,
            save_text_path=args.text_path,
        )
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    reporter = Reporter(colorize=cfg.colorize)

    # Progress bar only makes sense on a terminal
    ui = None
    if cfg.progress and reporter.console.is_terminal:
        ui = ProgressUI(total_ports=len(cfg.port_range), console=reporter.console)

    def on_result(r: ProbeResult):
        reporter.emit(r)
        if ui:
            ui.advance(r)

    scanner = Scanner(
        cfg.target,
        cfg.port_range,
        concurrency=cfg.concurrency,
        timeout=cfg.connect_timeout,
        on_result=on_result,
    )

    def _on_sigint(signum, frame):
        scanner.cancel()
        # A second Ctrl-C aborts immediately
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous_handler = None
    try:
        previous_handler = signal.signal(signal.SIGINT, _on_sigint)
    except ValueError:
        # Not on the main thread; cancellation stays available via scanner.cancel()
        logger.debug("SIGINT handler not installed outside the main thread")

    reporter.header(cfg.target, cfg.port_range, cfg.concurrency)
    if ui:
        ui.start()
    try:
        report = scanner.run()
    finally:
        if ui:
            ui.stop()
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if cfg.show_closed:
        reporter.closed(report)
    reporter.summary(report)

    saved = []
    try:
        if cfg.save_json_path:
            reporter.save_json(report, cfg.save_json_path)
            saved.append(cfg.save_json_path)
        if cfg.save_csv_path:
            reporter.save_csv(report, cfg.save_csv_path)
            saved.append(cfg.save_csv_path)
        if cfg.save_text_path:
            reporter.save_text(report, cfg.save_text_path)
            saved.append(cfg.save_text_path)
    except OSError as e:
        print(f"Could not save report: {e}", file=sys.stderr)
        return EXIT_SAVE_FAILED
    if saved:
        print("Reports saved as " + " and ".join(saved))

    return EXIT_CANCELLED if report.cancelled else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
