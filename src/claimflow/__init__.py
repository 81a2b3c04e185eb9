"""ClaimFlow: insurance claim lifecycle and status-change notifications."""

__version__ = "0.1.0"
