"""KYC Desk - identity-verification intake and review backend."""

__version__ = "0.1.0"
