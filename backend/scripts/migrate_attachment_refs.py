#!/usr/bin/env python
"""Rewrite legacy attachment slots to the tagged AttachmentRef format.

Reads each legacy file from its recorded path (relative to the legacy root),
stores it through the configured attachment store and rewrites the slot.
Unresolvable slots are reported and left untouched. Run once after deploying.

Usage:
    # Report what would be migrated
    python backend/scripts/migrate_attachment_refs.py dry-run

    # Migrate
    python backend/scripts/migrate_attachment_refs.py migrate --legacy-root /srv/legacy-app

Environment Variables:
    DATABASE_URL: Database connection string
    STORAGE_BACKEND, LOCAL_STORAGE_ROOT, S3_*: Attachment store settings
    LEGACY_UPLOAD_ROOT: Default for --legacy-root
"""

import argparse
import asyncio
import json
import sys

from kycdesk.config import get_settings
from kycdesk.database import SessionLocal
from kycdesk.domain.attachments.errors import StorageError
from kycdesk.infrastructure.storage import initialize_store, load_storage_config
from kycdesk.observability.logging_config import configure_logging
from kycdesk.submissions.legacy_migration import migrate_legacy_attachments


async def run(dry_run: bool, legacy_root: str) -> int:
    settings = get_settings()
    store = await initialize_store(load_storage_config(settings))

    session = SessionLocal()
    try:
        report = await migrate_legacy_attachments(
            session, store, legacy_root=legacy_root, dry_run=dry_run
        )
    finally:
        session.close()

    print(json.dumps(report.to_dict(), indent=2))
    return 1 if report.unresolved else 0


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Migrate legacy attachment references")
    parser.add_argument("command", choices=["dry-run", "migrate"])
    parser.add_argument(
        "--legacy-root",
        default=settings.LEGACY_UPLOAD_ROOT,
        help="Directory legacy paths are relative to (default: LEGACY_UPLOAD_ROOT)",
    )
    args = parser.parse_args()

    configure_logging(level=settings.LOG_LEVEL, json_format=False)

    try:
        exit_code = asyncio.run(run(args.command == "dry-run", args.legacy_root))
    except (StorageError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(2)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
