"""Builders for submission test data.

Usage:
    from fixtures.submissions import registration_fields, upload_set

    submission = await submit_submission(
        registry, "registration", registration_fields(), upload_set()
    )
"""

import io
from typing import Any, Dict, Optional

from kycdesk.domain.attachments.attachment_ref import AttachmentSlot, AttachmentUpload
from kycdesk.domain.attachments.errors import StorageError
from kycdesk.domain.submissions.models import AttachmentDescriptor
from kycdesk.infrastructure.storage.local_storage_adapter import INCOMING_DIR, LocalAttachmentStore

# Minimal file signatures; content checks never look past the header
PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 32


def identity(n: int) -> Dict[str, str]:
    """Unique email/phone/national_id for the n-th applicant."""
    return {
        "email": f"applicant{n}@gmail.com",
        "phone": f"98765{n:05d}",
        "national_id": f"4321{n:08d}",
    }


def registration_fields(**overrides: Any) -> Dict[str, Any]:
    """Valid canonical registration fields; None removes a field."""
    fields = {
        "first_name": "Asha",
        "last_name": "Verma",
        "email": "asha.verma@gmail.com",
        "phone": "9876543210",
        "national_id": "123456789012",
        "date_of_birth": "2000-03-01",
        "address": "12 MG Road",
        "city": "Pune",
        "state": "Maharashtra",
        "postal_code": "411001",
        "course_name": "Options 101",
        "terms_accepted": "true",
    }
    fields.update(overrides)
    return {name: value for name, value in fields.items() if value is not None}


def trading_fields(**overrides: Any) -> Dict[str, Any]:
    """Valid canonical trading-application fields; None removes a field."""
    fields = registration_fields(
        course_name=None,
        first_name="Rohan",
        last_name="Iyer",
        email="rohan.iyer@gmail.com",
        phone="9123456780",
        national_id="987654321098",
        date_of_birth="1990-11-20",
        address="221B Residency Road",
        city="Bengaluru",
        state="Karnataka",
        postal_code="560025",
        investment_amount="250000",
        investment_goals="Long-term wealth building with moderate risk",
    )
    fields.update(overrides)
    return {name: value for name, value in fields.items() if value is not None}


def pdf_upload(filename: str = "aadhar.pdf", content: bytes = PDF_BYTES) -> AttachmentUpload:
    return AttachmentUpload(
        stream=io.BytesIO(content),
        filename=filename,
        media_type="application/pdf",
        declared_size=len(content),
    )


def png_upload(filename: str = "signature.png", content: bytes = PNG_BYTES) -> AttachmentUpload:
    return AttachmentUpload(
        stream=io.BytesIO(content),
        filename=filename,
        media_type="image/png",
        declared_size=len(content),
    )


def upload_set(
    primary: Optional[AttachmentUpload] = None,
    second: Optional[AttachmentUpload] = None,
) -> Dict[str, AttachmentUpload]:
    """Files keyed by canonical form field name."""
    return {
        AttachmentSlot.PRIMARY_ID_DOCUMENT.value: primary or pdf_upload(),
        AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT.value: second or png_upload(),
    }


def slot_uploads() -> Dict[AttachmentSlot, AttachmentUpload]:
    """Uploads keyed by slot, as the registry takes them."""
    return {
        AttachmentSlot.PRIMARY_ID_DOCUMENT: pdf_upload(),
        AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT: png_upload(),
    }


def descriptors(**sizes: int) -> list:
    """Descriptors for both slots (PDF + PNG)."""
    return [
        AttachmentDescriptor(
            slot=AttachmentSlot.PRIMARY_ID_DOCUMENT.value,
            filename="aadhar.pdf",
            media_type="application/pdf",
            byte_size=sizes.get("primary", len(PDF_BYTES)),
        ),
        AttachmentDescriptor(
            slot=AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT.value,
            filename="signature.png",
            media_type="image/png",
            byte_size=sizes.get("second", len(PNG_BYTES)),
        ),
    ]


def stored_blobs(store) -> list:
    """Attachment files currently held by a LocalAttachmentStore."""
    return sorted(
        path for path in store.root.rglob("*")
        if path.is_file() and INCOMING_DIR not in path.parts
    )


def multipart_files(primary_name: str = "primary_id_document", second_name: str = "signature_or_second_document"):
    """Files argument for TestClient multipart requests."""
    return [
        (primary_name, ("aadhar.pdf", io.BytesIO(PDF_BYTES), "application/pdf")),
        (second_name, ("signature.png", io.BytesIO(PNG_BYTES), "image/png")),
    ]


class FlakyAttachmentStore(LocalAttachmentStore):
    """Local store that fails on demand.

    Args:
        fail_on_put: 1-based number of the put() call that raises StorageError
        fail_delete: Every delete() raises StorageError
    """

    def __init__(self, root: str, fail_on_put: Optional[int] = None, fail_delete: bool = False):
        super().__init__(root=root)
        self.incoming.mkdir(parents=True, exist_ok=True)
        self.fail_on_put = fail_on_put
        self.fail_delete = fail_delete
        self.puts = 0

    async def put(self, *args, **kwargs):
        self.puts += 1
        if self.puts == self.fail_on_put:
            raise StorageError("disk full")
        return await super().put(*args, **kwargs)

    async def delete(self, attachment_id: str) -> None:
        if self.fail_delete:
            raise StorageError("permission denied")
        await super().delete(attachment_id)
