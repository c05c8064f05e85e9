"""Command-line entrypoint for bulk uploads and administrator exports."""
from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

from tax_qualifications.application.dto import NewUserRequest, UploadRequest
from tax_qualifications.application.services import ServiceRegistry, build_services
from tax_qualifications.config import SETTINGS
from tax_qualifications.domain.errors import QualificationError
from tax_qualifications.domain.models import UserProfile
from tax_qualifications.infrastructure.parsing.utils import ensure_bytes
from tax_qualifications.infrastructure.storage.document_store import DocumentStore
from tax_qualifications.infrastructure.storage.mongo_store import MongoDocumentStore
from tax_qualifications.presentation.backup_export import backup_filename, render_backup_json
from tax_qualifications.presentation.error_report import generate_template_csv, render_errors_csv

LOGGER = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bulk upload of broker tax qualifications")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a CSV/XLSX/XLS file of qualifications")
    upload.add_argument("file", type=Path, help="Path to the upload file")
    upload.add_argument("--email", required=True, help="Broker account email")
    upload.add_argument("--password", help="Account password (prompted when omitted)")
    upload.add_argument("--errors-csv", type=Path, help="Write row errors to this CSV file")

    template = subparsers.add_parser("template", help="Write the upload template CSV")
    template.add_argument("--output", type=Path, default=Path("plantilla_calificaciones.csv"))

    backup = subparsers.add_parser("export-backup", help="Export users and audit logs as JSON")
    backup.add_argument("--email", required=True, help="Administrator account email")
    backup.add_argument("--password", help="Account password (prompted when omitted)")
    backup.add_argument("--output", type=Path, help="Output path (defaults to nuam-backup-<date>.json)")

    bootstrap = subparsers.add_parser("bootstrap-admin", help="Create the first administrator account")
    bootstrap.add_argument("--email", required=True)
    bootstrap.add_argument("--password", help="Account password (prompted when omitted)")
    bootstrap.add_argument("--first-name", required=True)
    bootstrap.add_argument("--last-name", required=True)
    bootstrap.add_argument("--rut", required=True, help="National id")
    return parser.parse_args(argv)


def _password(args: argparse.Namespace) -> str:
    return args.password if args.password else getpass.getpass("Contraseña: ")


def _sign_in(services: ServiceRegistry, args: argparse.Namespace) -> UserProfile:
    return services.users.sign_in(args.email, _password(args))


def _print_progress(processed: int, total: int, phase: str) -> None:
    print(f"[{processed}/{total}] {phase}")


def run_upload(services: ServiceRegistry, args: argparse.Namespace) -> int:
    actor = _sign_in(services, args)
    request = UploadRequest(actor=actor, filename=args.file.name, content=ensure_bytes(args.file))
    result = services.bulk_upload.execute(request, on_progress=_print_progress)

    print("Upload Summary")
    print("==============")
    print(f"Total records: {result.total_records}")
    print(f"Added: {result.added}")
    print(f"Updated: {result.updated}")
    print(f"Errors: {result.errors}")
    print(f"Processing time: {result.processing_time_ms} ms")

    if result.has_errors():
        print("\nRow errors:")
        for error in result.iter_all_errors():
            print(f"- Fila {error.row}, {error.field}: {error.message}")
        if args.errors_csv:
            args.errors_csv.write_bytes(render_errors_csv(result))
            print(f"\nError report written to {args.errors_csv}")
        return 1

    print("\nAll rows processed successfully.")
    return 0


def run_template(args: argparse.Namespace) -> int:
    args.output.write_text(generate_template_csv(), encoding="utf-8")
    print(f"Template written to {args.output}")
    return 0


def run_export_backup(services: ServiceRegistry, args: argparse.Namespace) -> int:
    actor = _sign_in(services, args)
    backup = services.backup.export_backup(actor)
    output = args.output or Path(backup_filename(backup))
    output.write_bytes(render_backup_json(backup))
    metadata = backup["metadata"]
    print(f"Backup written to {output}: {metadata['totalUsers']} users, {metadata['totalLogs']} audit logs")
    return 0


def run_bootstrap_admin(services: ServiceRegistry, args: argparse.Namespace) -> int:
    request = NewUserRequest(
        first_name=args.first_name,
        last_name=args.last_name,
        national_id=args.rut,
        email=args.email,
        password=_password(args),
        role="",
    )
    profile = services.users.bootstrap_admin(request)
    print(f"Administrator {profile.email} created with uid {profile.uid}")
    return 0


def main(argv: list[str] | None = None, store: DocumentStore | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "template":
        return run_template(args)

    if store is None:
        store = MongoDocumentStore(SETTINGS.mongo_uri, SETTINGS.db_name)
    services = build_services(store)
    handlers = {
        "upload": run_upload,
        "export-backup": run_export_backup,
        "bootstrap-admin": run_bootstrap_admin,
    }
    try:
        return handlers[args.command](services, args)
    except QualificationError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
