"""TCP echo servers and clients, and a framed, checksummed file upload service."""

__version__ = "0.1.0"