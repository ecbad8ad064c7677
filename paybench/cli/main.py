"""
Command line interface for the payments load test harness.
"""

import sys
import logging
import argparse

# Required: Use uvloop for better performance
import uvloop

from paybench.configuration import BASE_URL, CONNECTION_LIMIT, PRESETS, READ_LIMIT
from paybench.common.scenario import build_scenario, parse_accept_option, parse_duration
from paybench.errors import HarnessError
from paybench.reporting.table import render

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class LoadTestCLI:
    """CLI interface for staged load tests."""

    def __init__(self, stdout=None):
        self.stdout = stdout or sys.stdout
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            prog="paybench",
            description="Staged concurrent load tests for the payments service",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Concurrent save and read stages
  paybench run --preset full

  # Two sequential write stages, the second starting after 5 seconds
  paybench run --stage name=warm,op=write,workers=10,iterations=5,max_duration=5s \\
               --stage name=hot,op=write,workers=50,iterations=20,max_duration=10s,start=5s

  # Stages from a JSON scenario file against another host
  paybench run --scenario-file scenario.json --base-url http://staging:8080/api

  # Treat any 2xx and 500 as handled for writes
  paybench run --preset write --accept write=2xx,500
            """
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        run_parser = subparsers.add_parser("run", help="Run a load test and print the report")
        source = run_parser.add_argument_group("stage source (exactly one)")
        source.add_argument("--preset", choices=sorted(PRESETS),
                            help="Built-in stage preset")
        source.add_argument("--scenario-file", type=str,
                            help="JSON scenario file")
        source.add_argument("--stage", action="append", dest="stages", metavar="KEY=VALUE,...",
                            help="Stage definition (repeatable)")

        run_parser.add_argument("--base-url", type=str,
                                help=f"Target base URL (default: {BASE_URL})")
        run_parser.add_argument("--timeout", type=str,
                                help="Default per-call timeout, e.g. 2s or 500ms")
        run_parser.add_argument("--read-limit", type=int,
                                help=f"Result size for reads, 0 reads all (default: {READ_LIMIT})")
        run_parser.add_argument("--accept", action="append", default=[], metavar="OP=CODES",
                                help="Accepted status codes per operation, e.g. write=2xx,500 (repeatable)")
        run_parser.add_argument("--run-timeout", type=str,
                                help="Cancel stages still running after this long")
        run_parser.add_argument("--connection-limit", type=int, default=CONNECTION_LIMIT,
                                help=f"Maximum open connections, 0 = unlimited (default: {CONNECTION_LIMIT})")
        run_parser.add_argument("--no-connection-reuse", action="store_true",
                                help="Close the connection after every call")
        run_parser.add_argument("--log-level", default="INFO",
                                choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                                help="Logging level (default: INFO)")

        subparsers.add_parser("presets", help="List built-in presets")

        return parser

    def _configure_logging(self, level: str) -> None:
        # Set up logging (only if not already configured)
        if not logging.root.handlers:
            logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT)

    def build_runner(self, args):
        """Turn parsed arguments into a ready LoadTestRunner."""
        from paybench.cli.runner import LoadTestRunner

        scenario = build_scenario(args.preset, args.scenario_file, args.stages)

        if args.base_url:
            scenario.base_url = args.base_url
        if args.timeout:
            scenario.timeout = parse_duration(args.timeout)
        if args.read_limit is not None:
            scenario.read_limit = args.read_limit
        if args.no_connection_reuse:
            scenario.connection_reuse = False
        for option in args.accept:
            operation, codes = parse_accept_option(option)
            scenario.accepted_status_codes[operation] = codes

        run_timeout = parse_duration(args.run_timeout) if args.run_timeout else None

        return LoadTestRunner(
            scenario,
            run_timeout=run_timeout,
            connection_limit=args.connection_limit,
        )

    def run_load_test(self, args) -> int:
        """Run the load test phase."""
        self._configure_logging(args.log_level)

        try:
            runner = self.build_runner(args)
            logger.info("=== Load Test ===")
            report = uvloop.run(runner.run())
        except HarnessError as e:
            logger.error(f"Load test aborted: {e}")
            return 1

        # Request failures are part of the report, not a harness error
        self.stdout.write(render(report))
        self.stdout.flush()
        return 0

    def list_presets(self) -> int:
        for name in sorted(PRESETS):
            preset = PRESETS[name]
            self.stdout.write(f"{name}: {preset['description']}\n")
            for stage in preset["stages"]:
                self.stdout.write(
                    f"  - {stage['name']}: {stage['operation']} "
                    f"{stage['workers']} workers x {stage['iterations']} iterations, "
                    f"max {stage['max_duration']}s, start +{stage.get('start_offset', 0)}s\n"
                )
        return 0

    def run(self, args=None) -> int:
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            if parsed_args.command == "run":
                return self.run_load_test(parsed_args)
            elif parsed_args.command == "presets":
                return self.list_presets()
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1


def main():
    """Main entry point."""
    cli = LoadTestCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
