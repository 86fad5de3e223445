"""
Message transformation services used by the delivery pipeline.

This package contains the header classifier, address resolver, content
extractor and DKIM key loader, plus the S3 byte source for keys.
"""

__all__ = ['addresses', 'dkim', 'email', 'headers', 's3']
