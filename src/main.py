import argparse
import sys
import traceback
from collections.abc import Sequence
from pathlib import Path

from base_connector.logger import setup_logger
from pim_activator import Connector, ConnectorSettings


def duration_hours(value: str) -> int:
    hours = int(value)
    if not 1 <= hours <= 24:
        raise argparse.ArgumentTypeError("duration must be between 1 and 24 hours")
    return hours


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pim-activator",
        description="Activate eligible Azure PIM directory and resource roles.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "list"],
        default="run",
        help="run: activate the configured roles (default), "
        "list: show what would be activated without activating anything",
    )
    parser.add_argument(
        "--directory-hours",
        type=duration_hours,
        help="Default activation duration of directory roles",
    )
    parser.add_argument(
        "--resource-hours",
        type=duration_hours,
        help="Default activation duration of resource roles",
    )
    parser.add_argument("--justification", help="Justification of the activations")
    parser.add_argument("--state-file", type=Path, help="Path of the state file")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass even when the connector is scheduled",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point of the script

    Configuration errors are raised, any error during a pass is logged and reported
    through the exit status.
    :param argv: Command line arguments, `sys.argv` when None
    :return: The exit status
    """
    args = build_parser().parse_args(argv)

    config = ConnectorSettings()
    logger = setup_logger(
        name=config.connector.name,
        level=config.connector.log_level,
        json_logging=config.connector.json_logging,
        log_file=config.connector.log_file,
    )
    logger.debug("Configuration loaded", config.model_dump_safe())
    role_config = config.pim.to_role_config(
        {
            "directory_duration_hours": args.directory_hours,
            "resource_duration_hours": args.resource_hours,
            "justification": args.justification,
        }
    )

    connector = Connector(
        config=config,
        logger=logger,
        role_config=role_config,
        state_file=args.state_file,
    )

    list_only = args.command == "list"
    run_and_terminate = True if list_only or args.once else None
    return connector.run(run_and_terminate=run_and_terminate, list_only=list_only)


def cli() -> None:
    """
    - traceback.print_exc(): This function prints the traceback of the exception to the standard error (stderr).
    - exit(1): signals to the calling process that the program did not complete successfully.
    """
    try:
        sys.exit(main())
    except Exception:
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    cli()
