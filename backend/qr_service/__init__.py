"""QR code generation and scan-tracking service."""
