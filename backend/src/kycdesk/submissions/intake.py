"""Submission intake: normalize, validate, store attachments, register.

Validation runs before a single attachment byte is stored. Attachments are
stored before the record is written, and the registry removes them again if
the record cannot be created.
"""

import logging
from typing import Any, Mapping, Optional

from ..domain.attachments.attachment_ref import AttachmentSlot, AttachmentUpload
from ..domain.submissions.errors import ValidationFailed
from ..domain.submissions.ingress import normalize_fields, resolve_slot
from ..domain.submissions.models import ActorContext, AttachmentDescriptor
from ..domain.submissions.validator import validate_submission
from ..models.submission import Submission
from ..observability.metrics import submissions_rejected_total
from .registry import SubmissionRegistry

logger = logging.getLogger(__name__)


def describe_uploads(
    files: Mapping[str, Any],
) -> tuple[list[AttachmentDescriptor], dict[AttachmentSlot, AttachmentUpload]]:
    """Map received file fields to slots.

    Every received file becomes a descriptor (so the validator can report
    unknown or duplicate fields); the first upload per slot is kept.

    Args:
        files: Field name -> AttachmentUpload or list of AttachmentUpload

    Returns:
        Tuple of (descriptors, uploads by slot)
    """
    descriptors: list[AttachmentDescriptor] = []
    uploads: dict[AttachmentSlot, AttachmentUpload] = {}

    for name, value in files.items():
        items = value if isinstance(value, (list, tuple)) else [value]
        slot = resolve_slot(name)
        for upload in items:
            if upload is None:
                continue
            descriptors.append(AttachmentDescriptor(
                slot=slot.value if slot else name,
                filename=upload.filename,
                media_type=upload.media_type,
                byte_size=upload.declared_size,
            ))
            if slot is not None and slot not in uploads:
                uploads[slot] = upload

    return descriptors, uploads


async def submit_submission(
    registry: SubmissionRegistry,
    kind: Any,
    raw_fields: Mapping[str, Any],
    files: Mapping[str, Any],
    actor: Optional[ActorContext] = None,
) -> Submission:
    """Run the full intake pipeline for one submission.

    Args:
        registry: Registry bound to the request's session and the store
        kind: Submission kind (raw path value accepted)
        raw_fields: Decoded form fields, any accepted alias names
        files: Received files keyed by form field name

    Returns:
        Submission: Committed record in status pending_review

    Raises:
        ValidationFailed: Every field error found (nothing stored)
        UnsupportedMediaType, SizeLimitExceeded, EmptyAttachment: Upload rejected
        DuplicateField: Unique field already registered (attachments removed)
        PersistenceFailure: Storage or database failure (attachments removed)
    """
    fields = normalize_fields(raw_fields)
    descriptors, uploads = describe_uploads(files)

    result = validate_submission(
        kind,
        fields,
        descriptors,
        today=registry.clock().date(),
        max_attachment_bytes=registry.store.max_size_bytes,
    )
    if not result.ok:
        submissions_rejected_total.labels(reason="validation").inc()
        logger.info(
            f"Submission rejected by validation: "
            f"fields={sorted(result.fields_in_error())}"
        )
        raise ValidationFailed(result.errors)

    refs = await registry.store_uploads(uploads)
    return await registry.create(result.submission, refs, actor=actor)
