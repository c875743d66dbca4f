"""Command line entry point for DataCite Export."""

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from datacite_export.__version__ import __version__
from datacite_export.api.datacite_client import DataCiteClient, RegistryMode
from datacite_export.db.resource_repository import DatabaseError, MySQLResourceRepository
from datacite_export.models.resource import Actor, UserRole
from datacite_export.services.export_service import ExportService
from datacite_export.services.registration_service import RegistrationService
from datacite_export.services.results import ServiceFailure
from datacite_export.utils.credential_manager import CredentialManager, CredentialManagerError
from datacite_export.utils.settings import Settings, SettingsError, load_settings


def setup_logging(verbose: bool = False):
    """Configure logging for the application."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('datacite_export.log', encoding='utf-8'),
            logging.StreamHandler()
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datacite-export",
        description="Export resources as DataCite 4.6 metadata and register their DOIs.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--env-file", help="Path of a .env file with the configuration")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Export a resource as DataCite JSON or XML")
    export_parser.add_argument("resource_id", type=int)
    export_parser.add_argument("--format", choices=["json", "xml"], default="json")
    export_parser.add_argument("--output-dir", default=".", help="Directory for the exported file")

    register_parser = subparsers.add_parser("register", help="Register or update a resource's DOI")
    register_parser.add_argument("resource_id", type=int)
    register_parser.add_argument("--mode", choices=[mode.value for mode in RegistryMode])
    register_parser.add_argument("--prefix", help="DOI prefix for new registrations")
    register_parser.add_argument(
        "--role", choices=[role.value for role in UserRole], default=UserRole.CURATOR.value,
        help="Curation role the registration runs with",
    )

    password_parser = subparsers.add_parser("store-password", help="Store a DataCite password in the keyring")
    password_parser.add_argument("username")
    password_parser.add_argument("--mode", choices=[mode.value for mode in RegistryMode], required=True)

    return parser


def _print_failure(failure: ServiceFailure) -> int:
    print(json.dumps(failure.to_dict(), indent=2, ensure_ascii=False), file=sys.stderr)
    return 1


def _repository(settings: Settings) -> MySQLResourceRepository:
    if settings.database is None:
        raise SettingsError("No database configured (set DB_HOST, DB_NAME, DB_USER)")
    db = settings.database
    return MySQLResourceRepository(
        db.host, db.database, db.username, db.password,
        port=db.port, landing_page_base_url=db.landing_page_base_url,
    )


def run_export(args, settings: Settings) -> int:
    service = ExportService(_repository(settings))
    actor = Actor(user_id=0, role=UserRole.CURATOR)
    result = service.export(args.resource_id, args.format, actor)
    if isinstance(result, ServiceFailure):
        return _print_failure(result)

    output = Path(args.output_dir) / result.filename
    output.write_bytes(result.payload)
    for warning in result.warnings:
        print(f"Warning: {warning.message}", file=sys.stderr)
    print(output)
    return 0


def run_register(args, settings: Settings) -> int:
    client = DataCiteClient(
        settings.endpoints.values(),
        timeout=settings.timeout,
        backoff_base=settings.retry_backoff,
    )
    service = RegistrationService(_repository(settings), client, default_mode=settings.default_mode)
    actor = Actor(user_id=0, role=UserRole(args.role))
    mode = RegistryMode(args.mode) if args.mode else None

    result = service.register(args.resource_id, actor, requested_mode=mode, prefix=args.prefix)
    if isinstance(result, ServiceFailure):
        return _print_failure(result)

    action = "Updated" if result.updated else "Registered"
    print(f"{action} DOI {result.doi} ({result.mode})")
    return 0


def run_store_password(args) -> int:
    password = getpass.getpass(f"DataCite password for {args.username} ({args.mode}): ")
    CredentialManager().save_registry_password(args.username, password, args.mode)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting DataCite Export {__version__} ({args.command})")

    try:
        if args.command == "store-password":
            return run_store_password(args)

        settings = load_settings(args.env_file, credentials=CredentialManager())
        if args.command == "export":
            return run_export(args, settings)
        return run_register(args, settings)

    except (SettingsError, DatabaseError, CredentialManagerError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
