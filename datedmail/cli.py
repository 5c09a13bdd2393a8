"""DatedMail command line interface"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from datedmail.config import Settings, load_settings
from datedmail.errors import AliasExportError, ConfigurationError, DatedMailError
from datedmail.lifecycle import create_alias, refresh_aliases, run_refresh_loop
from datedmail.schemas import ExpirySpec
from datedmail.store import initialize_registry, load_registry
from datedmail.utils import parse_duration, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def registry_path_for(args, settings: Settings) -> Path:
    if args.registry:
        return Path(args.registry).expanduser()
    return settings.REGISTRY_PATH


def cmd_init(args, settings: Settings) -> int:
    """Create a new registry"""
    path = registry_path_for(args, settings)
    initialize_registry(
        path,
        mail_prefix=args.prefix,
        forwarding_email_address=args.forward,
        sieve_filter_path=args.sieve_path,
        mail_domain=args.domain,
        overwrite=args.force,
    )
    print(f"Registry created at {path}")
    return 0


def expiry_from_args(args, settings: Settings) -> ExpirySpec:
    valid_until = parse_timestamp(args.until) if args.until else None
    valid_for = parse_duration(args.duration) if args.duration else None
    valid_days = args.days

    if valid_days is None and valid_until is None and valid_for is None:
        if settings.DEFAULT_VALID_DAYS is None:
            raise ConfigurationError(
                "No expiry given. Use --days, --until or --for, or set aliases.default_valid_days"
            )
        valid_days = settings.DEFAULT_VALID_DAYS

    return ExpirySpec.from_options(valid_days=valid_days, valid_until=valid_until, valid_for=valid_for)


def cmd_create(args, settings: Settings) -> int:
    """Create a new alias"""
    path = registry_path_for(args, settings)
    expiry = expiry_from_args(args, settings)

    try:
        alias = create_alias(path, expiry, export_path=args.export)
    except AliasExportError as e:
        # The alias exists and is already authorized
        print(e.alias.address)
        logger.error(f"Alias created but export failed: {e}")
        return 1

    if args.print_address:
        print(alias.address)
    return 0


def cmd_refresh(args, settings: Settings) -> int:
    """Remove expired aliases and regenerate the filter"""
    path = registry_path_for(args, settings)
    result = refresh_aliases(path, force=args.force)
    if result.changed:
        print(f"Removed {result.expired_count} expired alias(es)")
    return 0


def cmd_list(args, settings: Settings) -> int:
    """Show aliases and their status"""
    registry = load_registry(registry_path_for(args, settings))
    now = utc_now()

    if not registry.addresses:
        print("No aliases")
        return 0

    for alias in registry.addresses:
        status = "expired" if alias.is_expired(now) else "active"
        print(f"{alias.address}\t{alias.expires_at.isoformat(timespec='seconds')}\t{status}")
    return 0


def cmd_watch(args, settings: Settings) -> int:
    """Refresh periodically until interrupted"""
    path = registry_path_for(args, settings)
    minutes = args.interval if args.interval is not None else settings.REFRESH_INTERVAL_MINUTES
    if minutes <= 0:
        raise ConfigurationError("--interval must be positive")
    run_refresh_loop(path, interval_seconds=minutes * 60)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        prog='datedmail',
        description='DatedMail - time-limited email aliases backed by a Sieve filter',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  datedmail init --prefix me+ --domain example.org --forward me@example.org --sieve-path ~/sieve/datedmail.sieve
  datedmail create --days 7 --print         # New alias valid for a week
  datedmail create --for 36h --export alias.txt
  datedmail refresh                         # Drop expired aliases (run from cron)
  datedmail list                            # Show aliases and their status
        """
    )
    parser.add_argument('--registry', help='Registry file (default: from settings)')
    parser.add_argument('--settings', help='Settings YAML file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    init_parser = subparsers.add_parser('init', help='Create a new registry')
    init_parser.add_argument('--prefix', required=True, help="Alias prefix, ending with '+'")
    init_parser.add_argument('--domain', default=None, help='Domain appended to aliases')
    init_parser.add_argument('--forward', required=True, help='Forwarding email address')
    init_parser.add_argument('--sieve-path', required=True, help='Where the Sieve filter is written')
    init_parser.add_argument('--force', action='store_true', help='Replace an existing registry')

    new_parser = subparsers.add_parser('create', help='Create a new alias')
    expiry_group = new_parser.add_mutually_exclusive_group()
    expiry_group.add_argument('--days', type=int, default=None, help='Valid for this many days')
    expiry_group.add_argument('--until', default=None, help='Valid until this ISO-8601 timestamp')
    expiry_group.add_argument('--for', dest='duration', default=None, help='Valid for a duration (e.g. 36h, 1w2d)')
    new_parser.add_argument('--export', default=None, help='Write the new address to this file')
    new_parser.add_argument('--print', dest='print_address', action='store_true', help='Print the new address')

    refresh_parser = subparsers.add_parser('refresh', help='Remove expired aliases and regenerate the filter')
    refresh_parser.add_argument('--force', action='store_true', help='Regenerate the filter even if nothing expired')

    subparsers.add_parser('list', help='Show aliases and their status')

    watch_parser = subparsers.add_parser('watch', help='Refresh periodically')
    watch_parser.add_argument('--interval', type=float, default=None, help='Minutes between refreshes')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Command mapping
    commands = {
        'init': cmd_init,
        'create': cmd_create,
        'refresh': cmd_refresh,
        'list': cmd_list,
        'watch': cmd_watch,
    }

    try:
        settings = load_settings(args.settings)
    except DatedMailError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings, args.verbose)

    try:
        return commands[args.command](args, settings)
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130
    except DatedMailError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
