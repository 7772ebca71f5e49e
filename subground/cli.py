"""Command-line interface for subground."""

import sys
import json
import logging
import argparse
import asyncio
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

from subground import __version__
from subground.config.loader import load_config, get_encryption_key, ConfigError
from subground.config.validator import validate_config, ValidationError
from subground.api.client import get_api_client
from subground.api.envelope import encrypt_object, decrypt_object
from subground.api.error_handler import SubgroundError
from subground.api.obfuscator import derive_key_bytes
from subground.auth.service import AuthService
from subground.events.service import EventsService


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog='subground',
        description='Subculture Ground API client',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Encrypt a payload the way the backend expects it
  subground encrypt '{"email": "a@b.com"}'

  # Decrypt an envelope payload
  subground decrypt 'eyJlbWFpbCI6...'

  # Log in and print the session cookie
  subground login --email a@b.com --password secret

  # List performances
  subground events
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=Path,
        metavar='PATH',
        help='Path to config.yaml (default: ./config.yaml when present)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    derive = subparsers.add_parser('derive-key', help='Print the derived key bytes as hex')
    derive.add_argument('secret', help='Secret to derive the key from')

    encrypt = subparsers.add_parser('encrypt', help='Encrypt a JSON value into an envelope')
    encrypt.add_argument('value', nargs='?', help='JSON text (default: read stdin)')

    decrypt = subparsers.add_parser('decrypt', help='Decrypt envelope ciphertext to JSON')
    decrypt.add_argument('ciphertext', help='Base64 ciphertext or a full envelope JSON')

    login = subparsers.add_parser('login', help='Log in and print the user record')
    login.add_argument('--email', required=True)
    login.add_argument('--password', required=True)

    events = subparsers.add_parser('events', help='List performances')
    events.add_argument('--mine', action='store_true', help='Only my performances (needs --token)')
    events.add_argument('--token', help='Bearer token from a previous login')

    return parser


def _setup_logging(config: dict) -> None:
    """
    Setup logging configuration from config.

    Args:
        config: Configuration dictionary
    """
    logging_config = config.get('logging', {})

    level_str = str(logging_config.get('level', 'INFO')).upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers = []

    if logging_config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        handlers.append(console_handler)

    log_file = logging_config.get('file')
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            print(f"Error: Could not create log file '{log_file}': {e}", file=sys.stderr)
            sys.exit(1)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # httpx logs full URLs and headers at DEBUG level
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def _read_value(args: argparse.Namespace) -> str:
    if args.value is not None:
        return args.value
    return sys.stdin.read()


def _ciphertext_from_arg(text: str) -> str:
    """Accept either raw ciphertext or a whole envelope document."""
    stripped = text.strip()
    if stripped.startswith('{'):
        envelope = json.loads(stripped)
        return envelope['encrypted']
    return stripped


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for subground CLI.

    Args:
        argv: Command-line arguments (default: sys.argv)

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        validate_config(config)
    except (ConfigError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    _setup_logging(config)
    secret = get_encryption_key(config)

    try:
        if args.command == 'derive-key':
            print(derive_key_bytes(args.secret).hex())
            return 0

        if args.command == 'encrypt':
            value = json.loads(_read_value(args))
            print(json.dumps(encrypt_object(value, secret)))
            return 0

        if args.command == 'decrypt':
            value = decrypt_object(_ciphertext_from_arg(args.ciphertext), secret)
            print(json.dumps(value, ensure_ascii=False, indent=2))
            return 0

        return asyncio.run(run_command(config, args))
    except (json.JSONDecodeError, KeyError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 1
    except SubgroundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        return 130


async def run_command(config: dict, args: argparse.Namespace) -> int:
    """
    Run a command that talks to the API (async).

    Args:
        config: Loaded configuration
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    client = get_api_client(config)
    try:
        if args.command == 'login':
            auth = AuthService(client)
            user = await auth.login({'email': args.email, 'password': args.password})
            print(json.dumps(user, ensure_ascii=False, indent=2))
            print(f"Set-Cookie: {client.session.to_set_cookie()}")
            return 0

        if args.command == 'events':
            if args.token:
                client.session.set(args.token, None)
            events = EventsService(client)
            if args.mine:
                if not client.session.token:
                    print("Error: --mine needs --token", file=sys.stderr)
                    return 1
                performances = await events.my_events()
            else:
                performances = await events.list_events()
            for perf in performances:
                print(f"{perf.id:>5}  {perf.date} {perf.time}  {perf.name} - {perf.artist} "
                      f"@ {perf.venue} [{perf.status_text}]")
            return 0

        logger.error(f"Unknown command: {args.command}")
        return 1
    finally:
        # The pool belongs to this event loop; the shared client reopens it on next use
        await client.aclose()
