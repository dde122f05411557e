"""Integration tests for the legacy attachment migration"""

import uuid
from datetime import date, timedelta

import pytest

from conftest import FIXED_NOW
from fixtures.submissions import PDF_BYTES, PNG_BYTES, identity, stored_blobs
from kycdesk.domain.attachments.attachment_ref import AttachmentSlot, is_canonical
from kycdesk.domain.submissions.kinds import SubmissionKind
from kycdesk.domain.submissions.status import SubmissionStatus
from kycdesk.models.submission import Submission
from kycdesk.submissions.legacy_migration import (
    migrate_legacy_attachments,
    resolve_legacy_slot,
)


@pytest.fixture
def legacy_root(tmp_path):
    """Directory the legacy server ran in, with two uploaded files."""
    root = tmp_path / "legacy-app"
    (root / "uploads" / "aadhar").mkdir(parents=True)
    (root / "uploads" / "signatures").mkdir(parents=True)
    (root / "uploads" / "aadhar" / "1699999999-123.pdf").write_bytes(PDF_BYTES)
    (root / "uploads" / "signatures" / "1699999999-456").write_bytes(PNG_BYTES)
    return root


def insert_legacy(db, n, primary, second, days_ago=0):
    """Insert a pre-migration record with raw slot values."""
    submission = Submission(
        id=uuid.uuid4(),
        kind=SubmissionKind.REGISTRATION,
        first_name="Legacy",
        last_name=f"Applicant{n}",
        date_of_birth=date(1995, 5, 5),
        address="7 Park Street",
        city="Kolkata",
        state="West Bengal",
        postal_code="700016",
        course_name="Options 101",
        primary_id_document=primary,
        signature_or_second_document=second,
        terms_accepted=True,
        marketing_opt_in=False,
        status=SubmissionStatus.PENDING_REVIEW,
        created_at=FIXED_NOW - timedelta(days=days_ago),
        updated_at=FIXED_NOW - timedelta(days=days_ago),
        **identity(n),
    )
    db.add(submission)
    db.commit()
    return submission.id


UPLOAD_OBJECT = {
    "fieldname": "signatureFile",
    "originalname": "my signature.png",
    "mimetype": "image/png",
    "path": "uploads/signatures/1699999999-456",
    "size": len(PNG_BYTES),
}


class TestResolveLegacySlot:

    def test_path_string(self, legacy_root):
        resolved = resolve_legacy_slot("uploads/aadhar/1699999999-123.pdf", legacy_root)

        assert resolved.path == (legacy_root / "uploads/aadhar/1699999999-123.pdf").resolve()
        assert resolved.filename == "1699999999-123.pdf"
        assert resolved.media_type == "application/pdf"

    def test_windows_separators(self, legacy_root):
        resolved = resolve_legacy_slot("uploads\\aadhar\\1699999999-123.pdf", legacy_root)

        assert resolved.filename == "1699999999-123.pdf"

    def test_upload_object_keeps_original_name(self, legacy_root):
        resolved = resolve_legacy_slot(UPLOAD_OBJECT, legacy_root)

        assert resolved.filename == "my signature.png"
        assert resolved.media_type == "image/png"

    def test_object_without_path(self, legacy_root):
        with pytest.raises(ValueError, match="no recorded path"):
            resolve_legacy_slot({"originalName": "aadhar.pdf", "size": 10}, legacy_root)

    def test_path_outside_root(self, legacy_root):
        with pytest.raises(ValueError, match="outside the legacy root"):
            resolve_legacy_slot("../../etc/passwd", legacy_root)

    def test_missing_file(self, legacy_root):
        with pytest.raises(ValueError, match="file not found"):
            resolve_legacy_slot("uploads/aadhar/gone.jpg", legacy_root)

    def test_unknown_media_type(self, legacy_root):
        with pytest.raises(ValueError, match="media type"):
            resolve_legacy_slot("uploads/signatures/1699999999-456", legacy_root)


class TestMigrateLegacyAttachments:

    @pytest.mark.asyncio
    async def test_migrates_both_shapes(self, db_session, attachment_store, legacy_root):
        submission_id = insert_legacy(
            db_session, 1, "uploads/aadhar/1699999999-123.pdf", UPLOAD_OBJECT
        )

        report = await migrate_legacy_attachments(db_session, attachment_store, str(legacy_root))

        assert report.scanned == 1
        assert report.migrated == 2
        assert report.unresolved == []

        db_session.expire_all()
        submission = db_session.get(Submission, submission_id)
        refs = submission.attachment_refs()
        assert refs[AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT].original_filename == "my signature.png"
        assert refs[AttachmentSlot.PRIMARY_ID_DOCUMENT].byte_size == len(PDF_BYTES)
        stream = await attachment_store.get(refs[AttachmentSlot.PRIMARY_ID_DOCUMENT].id)
        try:
            assert stream.read() == PDF_BYTES
        finally:
            stream.close()
        # legacy files are kept
        assert (legacy_root / "uploads/aadhar/1699999999-123.pdf").exists()

    @pytest.mark.asyncio
    async def test_unresolved_slots_left_untouched(self, db_session, attachment_store, legacy_root):
        submission_id = insert_legacy(
            db_session, 1, "uploads/aadhar/missing.pdf", {"originalName": "sign.png"}
        )

        report = await migrate_legacy_attachments(db_session, attachment_store, str(legacy_root))

        assert report.migrated == 0
        assert {(item.slot, item.shape) for item in report.unresolved} == {
            ("primary_id_document", "path-string"),
            ("signature_or_second_document", "upload-object"),
        }
        db_session.expire_all()
        submission = db_session.get(Submission, submission_id)
        assert submission.primary_id_document == "uploads/aadhar/missing.pdf"
        assert stored_blobs(attachment_store) == []

    @pytest.mark.asyncio
    async def test_partial_record_keeps_resolved_slot(self, db_session, attachment_store, legacy_root):
        submission_id = insert_legacy(
            db_session, 1, "uploads/aadhar/1699999999-123.pdf", "../outside.png"
        )

        report = await migrate_legacy_attachments(db_session, attachment_store, str(legacy_root))

        assert report.migrated == 1
        assert len(report.unresolved) == 1
        db_session.expire_all()
        submission = db_session.get(Submission, submission_id)
        assert is_canonical(submission.primary_id_document)
        assert submission.signature_or_second_document == "../outside.png"

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, db_session, attachment_store, legacy_root):
        submission_id = insert_legacy(
            db_session, 1, "uploads/aadhar/1699999999-123.pdf", UPLOAD_OBJECT
        )

        report = await migrate_legacy_attachments(
            db_session, attachment_store, str(legacy_root), dry_run=True
        )

        assert report.dry_run is True
        assert report.migrated == 2
        assert stored_blobs(attachment_store) == []
        db_session.expire_all()
        submission = db_session.get(Submission, submission_id)
        assert submission.primary_id_document == "uploads/aadhar/1699999999-123.pdf"

    @pytest.mark.asyncio
    async def test_second_run_skips_canonical_slots(self, db_session, attachment_store, legacy_root):
        insert_legacy(db_session, 1, "uploads/aadhar/1699999999-123.pdf", UPLOAD_OBJECT)
        await migrate_legacy_attachments(db_session, attachment_store, str(legacy_root))

        report = await migrate_legacy_attachments(db_session, attachment_store, str(legacy_root))

        assert report.canonical == 2
        assert report.migrated == 0
        assert len(stored_blobs(attachment_store)) == 2
        assert report.to_dict()["unresolved"] == []
