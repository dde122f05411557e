"""Submission API response schemas"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AttachmentResponse(BaseModel):
    """Metadata of one stored attachment (never the bytes)

    Unmigrated slots carry only ``legacy`` (the historical shape).
    """
    id: Optional[str] = Field(None, description="Attachment id assigned by the store")
    original_filename: Optional[str] = Field(None, description="Client filename, display only")
    media_type: Optional[str] = None
    byte_size: Optional[int] = None
    stored_at: Optional[str] = None
    legacy: Optional[str] = Field(None, description="Shape of an unmigrated slot, e.g. path-string")


class AttachmentInfoResponse(AttachmentResponse):
    """Attachment metadata plus whether the bytes are present in the store"""
    slot: str
    exists: bool


class SubmissionResponse(BaseModel):
    """Full submission record"""
    id: str
    kind: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    national_id: str
    date_of_birth: str
    age: int
    address: str
    city: str
    state: str
    postal_code: str
    course_name: Optional[str] = None
    investment_amount: Optional[str] = Field(None, description="Decimal amount as string")
    investment_goals: Optional[str] = None
    terms_accepted: bool
    marketing_opt_in: bool
    attachments: Dict[str, AttachmentResponse]
    status: str
    admin_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    created_at: str
    updated_at: str


class SubmissionListResponse(BaseModel):
    """Paginated submission list"""
    items: List[SubmissionResponse]
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool


class StatisticsResponse(BaseModel):
    """Dashboard aggregates over all submissions"""
    total: int
    by_status: Dict[str, int]
    by_kind: Dict[str, int]
    investment_by_status: Dict[str, Dict[str, Any]]
    recent_window_days: int
    recent_count: int
    created_this_month: int
    approval_rate: float = Field(..., description="Approved / total, percent")
    top_groups: Dict[str, List[Dict[str, Any]]]
    age_distribution: List[Dict[str, Any]]
    generated_at: str


class ErrorResponse(BaseModel):
    """Error body returned for every rejected operation"""
    error: str = Field(..., description="Stable error code, e.g. DUPLICATE_FIELD")
    message: str
    details: Optional[Any] = None
