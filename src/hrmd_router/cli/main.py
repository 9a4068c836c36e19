"""
CLI Interface Module

Command-line entry point for the HRMD receiver determination service. Routes a
single IDoc file or a directory of IDoc files and writes the resulting
ReceiverDetermination messages, and validates the router configuration.
"""

import argparse
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from tqdm import tqdm

from hrmd_router import __version__
from hrmd_router.lookup.soap_channel import HttpChannelLocator
from hrmd_router.models.data_structures import (
    MappingParameters,
    MessageContext,
    RoutingOutcome,
)
from hrmd_router.orchestration.receiver_orchestrator import (
    ReceiverDeterminationService,
)
from hrmd_router.utils.config_loader import DEFAULT_CONFIG_PATH, Config, RouterConfig
from hrmd_router.utils.error_handlers import ConfigurationError


logger = logging.getLogger(__name__)

# Constants
DEFAULT_WORKER_COUNT = 4
MAX_WORKERS = 32
MIN_WORKERS = 1
SEPARATOR_WIDTH = 60
IDOC_FILE_PATTERN = "*.xml"


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging for the CLI application.

    Sets up console logging with timestamp, logger name, level, and message
    format. Routing decisions go to stdout, logs go to stderr.

    Args:
        log_level: Logging level as string (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def apply_config_logging(config: RouterConfig, args: argparse.Namespace) -> None:
    """Apply logging.level from the config unless a level was given explicitly."""
    level = config.logging.get("level")
    if args.log_level or not level:
        return
    logging.getLogger().setLevel(getattr(logging, str(level).upper(), logging.INFO))


def load_parameters(
    pairs: Optional[List[str]], params_file: Optional[str]
) -> MappingParameters:
    """Build mapping parameters from a YAML file and NAME=VALUE pairs.

    Pairs given on the command line override values from the file.

    Raises:
        FileNotFoundError: If the parameters file does not exist.
        ValueError: If the file is not a mapping or a pair is malformed.
    """
    values = {}
    if params_file:
        path = Path(params_file)
        if not path.exists():
            raise FileNotFoundError(f"Parameters file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Parameters file must contain a YAML dictionary")
        values.update({str(k): str(v) for k, v in loaded.items() if v is not None})

    if pairs:
        values.update(MappingParameters.from_pairs(pairs).to_dict())

    return MappingParameters(values)


def build_context(args: argparse.Namespace) -> MessageContext:
    """Build the message context of the routed scenario from CLI arguments.

    Args:
        args: Parsed arguments with sender, interface, namespace and
            parameter options.

    Returns:
        MessageContext carrying the mapping parameters.
    """
    return MessageContext(
        sender_service=args.sender,
        interface_name=args.interface,
        interface_namespace=args.namespace,
        parameters=load_parameters(args.param, args.params_file),
    )


def handle_error(context: str, error: Exception) -> int:
    """Centralized error handling for commands.

    Returns:
        Exit code 1.
    """
    if isinstance(error, FileNotFoundError):
        logger.error(f"{context}: File not found - {error}")
    elif isinstance(error, PermissionError):
        logger.error(f"{context}: Permission denied - {error}")
    elif isinstance(error, ValueError):
        logger.error(f"{context}: Invalid value - {error}")
    elif isinstance(error, ConfigurationError):
        logger.error(f"{context}: {error}")
    else:
        logger.error(f"{context}: {error}", exc_info=True)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Execute the main CLI entry point.

    Returns:
        Exit code: 0 for success, non-zero for errors.

    Example:
        $ hrmd-router route idoc.xml --sender HR_ERP --interface HRMD_A.HRMD_A09 \\
              --namespace urn:sap-com:document:sap:idoc:messages --param R1000=SYS_A
        $ hrmd-router batch ./inbound --output-dir ./decisions --workers 8
    """
    load_dotenv()

    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    if getattr(args, "version", False):
        print(f"HRMD Receiver Determination v{__version__}")
        return 0

    setup_logging(args.log_level or "INFO")

    if getattr(args, "command", None) is None:
        parser.print_help()
        return 1

    try:
        command_map = {
            "route": command_route,
            "batch": command_batch,
            "validate-config": command_validate_config,
        }
        return command_map[args.command](args)

    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130
    except Exception as e:
        return handle_error("Command execution failed", e)


def command_route(args: argparse.Namespace) -> int:
    """Route a single IDoc file and write the decision.

    Returns:
        Exit code: 0 if the document was processed, 1 if it was aborted.
    """
    input_path = Path(args.input)
    if not input_path.is_file():
        return handle_error("Invalid input path", FileNotFoundError(str(input_path)))

    try:
        config = Config.load(args.config)
        apply_config_logging(config, args)
        context = build_context(args)
    except Exception as e:
        return handle_error("Initialization failed", e)

    locator = HttpChannelLocator.from_config(config)
    try:
        service = ReceiverDeterminationService(config, locator)
        with open(input_path, "rb") as source:
            outcome = service.determine_receivers(source, context)
    finally:
        locator.close()

    if not outcome.succeeded:
        print_outcome_summary(outcome, str(input_path))
        return 1

    if args.output:
        Path(args.output).write_bytes(outcome.payload)
        print_outcome_summary(outcome, str(input_path))
    else:
        sys.stdout.write(outcome.payload.decode("utf-8") + "\n")
    return 0


def _route_file(
    service: ReceiverDeterminationService,
    input_path: Path,
    output_dir: Path,
    context: MessageContext,
) -> Tuple[Path, RoutingOutcome]:
    """Route one file and write its decision under the same name.

    Raises:
        OSError: If the input cannot be opened or the decision not written.
    """
    with open(input_path, "rb") as source:
        outcome = service.determine_receivers(source, context)
    if outcome.succeeded:
        (output_dir / input_path.name).write_bytes(outcome.payload)
    return input_path, outcome


def command_batch(args: argparse.Namespace) -> int:
    """Route every IDoc file of a directory with parallel workers.

    Each file is an independent invocation; failures of one file do not affect
    the others.

    Returns:
        Exit code: 0 if every document was processed, 1 otherwise.
    """
    input_dir = Path(args.input_dir)
    if not input_dir.is_dir():
        return handle_error(
            "Invalid input directory", FileNotFoundError(str(input_dir))
        )

    workers = max(MIN_WORKERS, min(args.workers, MAX_WORKERS))
    files = sorted(input_dir.glob(IDOC_FILE_PATTERN))
    if not files:
        logger.warning(f"No {IDOC_FILE_PATTERN} files found in {input_dir}")
        return 0

    try:
        config = Config.load(args.config)
        apply_config_logging(config, args)
        context = build_context(args)
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
    except Exception as e:
        return handle_error("Initialization failed", e)

    locator = HttpChannelLocator.from_config(config)
    service = ReceiverDeterminationService(config, locator)
    aborted: List[Path] = []
    empty: List[Path] = []

    try:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(_route_file, service, path, output_dir, context): path
                for path in files
            }
            for future in tqdm(
                as_completed(futures), total=len(futures), desc="Routing IDocs"
            ):
                try:
                    path, outcome = future.result()
                except OSError as e:
                    logger.error(f"Failed to route {futures[future].name}: {e}")
                    aborted.append(futures[future])
                    continue
                if not outcome.succeeded:
                    aborted.append(path)
                elif not outcome.receivers:
                    empty.append(path)
    finally:
        locator.close()

    print("\n" + "=" * SEPARATOR_WIDTH)
    print("BATCH ROUTING SUMMARY")
    print("=" * SEPARATOR_WIDTH)
    print(f"Total Documents: {len(files)}")
    print(f"Processed: {len(files) - len(aborted)}")
    print(f"Aborted: {len(aborted)}")
    print(f"Without Receivers: {len(empty)}")
    for path in aborted:
        print(f"  - aborted: {path.name}")
    print("=" * SEPARATOR_WIDTH)

    return 1 if aborted else 0


def command_validate_config(args: argparse.Namespace) -> int:
    """Validate the router configuration file.

    Returns:
        Exit code: 0 if valid, 1 otherwise.
    """
    try:
        config = Config.load(args.config)
        apply_config_logging(config, args)
    except Exception as e:
        return handle_error("Configuration invalid", e)

    errors = Config.validate(config)
    if errors:
        print("✗ Configuration has errors:")
        for error in errors:
            print(f"  - {error}")
        return 1

    print("✓ Configuration is valid")
    print(f"  Lookup service: {config.lookup_service}")
    print(f"  Lookup channel: {config.lookup_channel}")
    print(f"  Management infotypes: {', '.join(config.management_infotypes)}")
    return 0


def _add_scenario_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--sender", required=True, help="Sender communication component"
    )
    parser.add_argument("--interface", required=True, help="Sender interface name")
    parser.add_argument(
        "--namespace", required=True, help="Sender interface namespace"
    )
    parser.add_argument(
        "--param",
        action="append",
        metavar="NAME=VALUE",
        help="Routing parameter, e.g. R1000=SYS_A (repeatable)",
    )
    parser.add_argument(
        "--params-file",
        help="YAML file with routing parameters (NAME: VALUE)",
    )


def setup_argument_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="hrmd-router",
        description="Determine receiver systems for HRMD IDocs.",
    )
    parser.add_argument(
        "--version", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--config",
        default=os.environ.get("HRMD_ROUTER_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to router configuration (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("HRMD_ROUTER_LOG_LEVEL"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: logging.level from config, else INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    route_parser = subparsers.add_parser(
        "route",
        help="Route a single IDoc",
        description="Determine the receivers of one IDoc XML file.",
    )
    route_parser.add_argument("input", help="Path to the IDoc XML file")
    route_parser.add_argument(
        "--output", help="Write the decision here instead of stdout"
    )
    _add_scenario_arguments(route_parser)

    batch_parser = subparsers.add_parser(
        "batch",
        help="Route a directory of IDocs",
        description="Determine the receivers of every *.xml file in a directory.",
    )
    batch_parser.add_argument("input_dir", help="Directory with IDoc XML files")
    batch_parser.add_argument(
        "--output-dir", required=True, help="Directory for decision files"
    )
    batch_parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKER_COUNT,
        help="Number of parallel workers (default: %(default)s)",
    )
    _add_scenario_arguments(batch_parser)

    subparsers.add_parser(
        "validate-config",
        help="Validate router configuration",
        description="Validate the router configuration file.",
    )

    return parser


def print_outcome_summary(outcome: RoutingOutcome, source: str) -> None:
    """Print a formatted summary of one routing run."""
    print("\n" + "=" * SEPARATOR_WIDTH)
    print("ROUTING RESULT SUMMARY")
    print("=" * SEPARATOR_WIDTH)
    print(f"Source File: {source}")
    print(f"Document ID: {outcome.document_id or 'unknown'}")
    print(f"Status: {outcome.stage.value}")
    print(f"Broadcast: {outcome.broadcast}")
    print(f"Directory Lookup: {outcome.lookup_performed}")
    print(f"Receivers ({len(outcome.receivers)}): {', '.join(sorted(outcome.receivers))}")

    if outcome.warnings:
        print(f"\nWarnings ({len(outcome.warnings)}):")
        for warning in outcome.warnings:
            print(f"  - {warning}")

    if outcome.error_report:
        print(f"\nError: {outcome.error_report.get('message')}")

    print("=" * SEPARATOR_WIDTH + "\n")


if __name__ == "__main__":
    sys.exit(main())
