from .attachment_store_port import AttachmentStorePort

__all__ = ["AttachmentStorePort"]
