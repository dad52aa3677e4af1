"""
PowerVS Restore - Command Line Interface

Usage:
    pvs-restore run [--config FILE] [--primary NAME] [--secondary-name NAME]
                    [--storage-tier TIER] [--format FORMAT] ...

Every setting can also come from the environment (see core.config);
flags win over environment, which wins over the config file.

Exit codes: 0 success, 1 failed run or bad configuration, 130 interrupted.
"""

import argparse
import json
import sys
import traceback
from typing import Any, Dict

import yaml

from pvs_restore.core.config import VERSION, load_config
from pvs_restore.core.exceptions import PVSRestoreError
from pvs_restore.main import run_restore_job


class OutputFormatter:
    """
    Handle output formatting of the run summary.

    Supports: json, yaml, table
    """

    @staticmethod
    def format_output(data: Dict[str, Any], format_type: str = 'table'):
        """Format output based on format type."""
        if format_type == 'json':
            return json.dumps(data, indent=2)
        elif format_type == 'yaml':
            return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        elif format_type == 'table':
            return OutputFormatter._format_table(data)
        else:
            return str(data)

    @staticmethod
    def _format_value(value: Any) -> str:
        if isinstance(value, (list, tuple)):
            return ', '.join(str(v) for v in value) or '-'
        if value is None:
            return '-'
        return str(value)

    @staticmethod
    def _format_table(data: Dict[str, Any]) -> str:
        """Format as a two-column table."""
        rows = [(str(key), OutputFormatter._format_value(value)) for key, value in data.items()]
        key_width = max([len(k) for k, _ in rows] + [20])
        value_width = max([len(v) for _, v in rows] + [27])

        lines = ["┌─" + "─" * key_width + "─┬─" + "─" * value_width + "─┐"]
        for key, value in rows:
            lines.append(f"│ {key:{key_width}} │ {value:{value_width}} │")
        lines.append("└─" + "─" * key_width + "─┴─" + "─" * value_width + "─┘")
        return "\n".join(lines)


def create_parser() -> argparse.ArgumentParser:
    """
    Create argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='pvs-restore',
        description='IBM Power Virtual Server snapshot restore job',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES
    Run with settings from the environment:
        $ export IBMCLOUD_API_KEY=... PVS_CRN=... PVS_SUBNET_ID=...
        $ pvs-restore run --primary prod-lpar --secondary-name restore-lpar

    Run from a config file, JSON summary:
        $ pvs-restore run --config job.yaml --format json

    Trigger the cleanup job after a successful run:
        $ pvs-restore run --config job.yaml --chain-cleanup
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'pvs-restore v{VERSION}'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Available commands'
    )

    run_parser = subparsers.add_parser(
        'run',
        help='Provision, snapshot, clone, attach and boot',
        description='Create the secondary instance, restore it from a fresh snapshot of the '
                    'primary instance and boot it. Rolls back on failure; snapshots are kept.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_run_args(run_parser)

    return parser


def _add_run_args(parser: argparse.ArgumentParser):
    """Add arguments for the run command."""

    config_group = parser.add_argument_group('CONFIGURATION FLAGS')
    config_group.add_argument(
        '--config',
        metavar='FILE',
        help='YAML file with settings (field names as keys).'
    )
    config_group.add_argument(
        '--primary',
        metavar='INSTANCE',
        help='Primary instance to snapshot. Overrides PVS_PRIMARY_INSTANCE.'
    )
    config_group.add_argument(
        '--secondary-name',
        metavar='NAME',
        help='Name of the instance to create. Overrides PVS_SECONDARY_NAME.'
    )
    config_group.add_argument(
        '--storage-tier',
        metavar='TIER',
        help='Storage tier for the cloned volumes. Must match the snapshot tier. Default: tier3'
    )

    output = parser.add_argument_group('OUTPUT FLAGS')
    output.add_argument(
        '--format',
        metavar='FORMAT',
        choices=['json', 'yaml', 'table', 'disable'],
        default='table',
        help='Summary format. One of: json, yaml, table, disable. Default: table'
    )
    output.add_argument(
        '--verbosity',
        metavar='VERBOSITY',
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        default=None,
        help='Logging verbosity. One of: debug, info, warning, error, critical. Default: info'
    )
    output.add_argument(
        '--log-file',
        metavar='LOG_FILE',
        help='Write logs to this file.'
    )
    output.add_argument(
        '--no-progress',
        action='store_true',
        help='Do not show the progress bar.'
    )

    other = parser.add_argument_group('OTHER FLAGS')
    other.add_argument(
        '--skip-validation',
        action='store_true',
        help='Skip pre-flight checks. Not recommended.'
    )
    other.add_argument(
        '--chain-cleanup',
        action='store_true',
        help='Submit the Code Engine cleanup job after a successful run.'
    )


def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Convert arguments to config overrides (unset flags are omitted)."""
    overrides = {
        'primary_instance': args.primary,
        'secondary_name': args.secondary_name,
        'storage_tier': args.storage_tier,
        'log_file': args.log_file,
    }
    if args.verbosity:
        overrides['log_level'] = args.verbosity.upper()
    if args.no_progress:
        overrides['show_progress'] = False
    if args.skip_validation:
        overrides['skip_validation'] = True
    if args.chain_cleanup:
        overrides['run_cleanup_job'] = True
    return {key: value for key, value in overrides.items() if value is not None}


def handle_run(args: argparse.Namespace) -> int:
    """Handle run command."""
    try:
        config = load_config(config_file=args.config, overrides=args_to_overrides(args))
    except PVSRestoreError as e:
        print(f"ERROR: (pvs-restore) {e}", file=sys.stderr)
        return 1

    debug = args.verbosity == 'debug'
    outcome = run_restore_job(config, debug=debug)

    if args.format != 'disable':
        print(OutputFormatter.format_output(outcome.to_summary(), args.format))

    return 0 if outcome.success else 1


def main(argv=None):
    """Main CLI entry point."""
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command == 'run':
            return handle_run(args)

        print(f"ERROR: (pvs-restore) Unknown command: {args.command}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.", file=sys.stderr)
        return 130  # Standard exit code for SIGINT
    except PVSRestoreError as e:
        print(f"ERROR: (pvs-restore) {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: (pvs-restore) Unexpected error: {e}", file=sys.stderr)
        raw_args = sys.argv[1:] if argv is None else list(argv)
        if '--verbosity=debug' in raw_args or ('--verbosity' in raw_args and 'debug' in raw_args):
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
