"""One-off migration of legacy attachment slots to the tagged AttachmentRef.

Older records reference files in one of two shapes:

- a bare path string, e.g. ``"uploads/aadhar/1699999999-123.jpg"``
- an upload-middleware object with ``path``/``filename``/``originalName``/
  ``originalname``/``mimetype``/``size``

For each untagged slot the migration reads the bytes from the recorded path,
interpreted relative to ``legacy_root`` (the directory the legacy server ran
in), stores them through the attachment store and rewrites the slot to the
canonical form. Paths are never guessed: an object without ``path``, a path
outside ``legacy_root`` or a missing file is reported as unresolved and the
slot is left untouched. Legacy files are not deleted.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.attachments.attachment_ref import (
    AttachmentRef,
    AttachmentSlot,
    describe_shape,
    is_canonical,
)
from ..domain.attachments.errors import StorageError
from ..domain.attachments.ports.attachment_store_port import AttachmentStorePort
from ..models.submission import Submission

logger = logging.getLogger(__name__)


@dataclass
class UnresolvedSlot:
    submission_id: str
    slot: str
    shape: str
    reason: str


@dataclass
class MigrationReport:
    """Outcome of one migration run."""
    dry_run: bool
    scanned: int = 0
    canonical: int = 0
    migrated: int = 0
    unresolved: list[UnresolvedSlot] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "scanned": self.scanned,
            "canonical": self.canonical,
            "migrated": self.migrated,
            "unresolved": [vars(item) for item in self.unresolved],
        }


@dataclass
class LegacyFile:
    """A legacy slot resolved to a concrete file."""
    path: Path
    filename: str
    media_type: str


def resolve_legacy_slot(value: Any, legacy_root: Path) -> LegacyFile:
    """Resolve a legacy slot value to a file under legacy_root.

    Raises:
        ValueError: With the reason when the slot cannot be resolved
    """
    if isinstance(value, str):
        recorded_path = value
        original_name = None
        media_type = None
    elif isinstance(value, dict):
        recorded_path = value.get("path")
        original_name = value.get("originalName") or value.get("originalname")
        media_type = value.get("mimetype")
        if not recorded_path:
            raise ValueError("object has no recorded path")
    else:
        raise ValueError(f"unsupported value type {type(value).__name__}")

    root = legacy_root.resolve()
    candidate = Path(recorded_path.replace("\\", "/"))
    if not candidate.is_absolute():
        candidate = root / candidate
    candidate = candidate.resolve()

    if candidate != root and root not in candidate.parents:
        raise ValueError(f"recorded path is outside the legacy root: {recorded_path}")
    if not candidate.is_file():
        raise ValueError(f"file not found: {recorded_path}")

    if not media_type:
        media_type, _ = mimetypes.guess_type(candidate.name)
    if not media_type:
        raise ValueError(f"cannot determine media type of {recorded_path}")

    return LegacyFile(
        path=candidate,
        filename=original_name or os.path.basename(candidate),
        media_type=media_type,
    )


async def migrate_legacy_attachments(
    db: Session,
    store: AttachmentStorePort,
    legacy_root: str,
    dry_run: bool = False,
) -> MigrationReport:
    """Rewrite every untagged attachment slot to the canonical shape.

    Each submission is committed separately; if a commit fails, the blobs
    stored for it are deleted again and the slots are reported unresolved.

    Args:
        db: Database session
        store: Initialized attachment store
        legacy_root: Directory legacy paths are relative to
        dry_run: Resolve and report only; write nothing

    Returns:
        MigrationReport
    """
    root = Path(legacy_root)
    report = MigrationReport(dry_run=dry_run)

    for submission in db.query(Submission).order_by(Submission.created_at).all():
        report.scanned += 1
        stored: dict[AttachmentSlot, AttachmentRef] = {}

        for slot in AttachmentSlot:
            value = getattr(submission, slot.value)
            if is_canonical(value):
                report.canonical += 1
                continue

            shape = describe_shape(value)
            try:
                legacy_file = resolve_legacy_slot(value, root)
            except ValueError as e:
                report.unresolved.append(
                    UnresolvedSlot(str(submission.id), slot.value, shape, str(e))
                )
                logger.warning(
                    f"Unresolved legacy slot: id={submission.id}, slot={slot.value}, reason={e}"
                )
                continue

            if dry_run:
                report.migrated += 1
                continue

            try:
                with open(legacy_file.path, "rb") as source:
                    stored[slot] = await store.put(
                        source,
                        legacy_file.media_type,
                        legacy_file.filename,
                        declared_size=legacy_file.path.stat().st_size,
                    )
            except (OSError, StorageError) as e:
                report.unresolved.append(
                    UnresolvedSlot(str(submission.id), slot.value, shape, f"store failed: {e}")
                )
                logger.warning(
                    f"Could not store legacy file: id={submission.id}, slot={slot.value}, error={e}"
                )

        if dry_run or not stored:
            continue

        for slot, ref in stored.items():
            submission.set_attachment_ref(slot, ref)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            for slot, ref in stored.items():
                report.unresolved.append(
                    UnresolvedSlot(str(submission.id), slot.value, "legacy", f"commit failed: {e}")
                )
                try:
                    await store.delete(ref.id)
                except StorageError as cleanup_error:
                    logger.warning(f"Cleanup after failed commit failed: id={ref.id}, error={cleanup_error}")
            continue

        report.migrated += len(stored)
        logger.info(
            f"Migrated legacy attachments: id={submission.id}, slots={[s.value for s in stored]}",
            extra={"submission_id": submission.id},
        )

    logger.info(
        f"Legacy attachment migration finished: scanned={report.scanned}, "
        f"migrated={report.migrated}, unresolved={len(report.unresolved)}, dry_run={dry_run}"
    )
    return report
