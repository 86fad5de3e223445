"""
Domain layer for message delivery business logic.

This layer contains:
- Data models (the provider's request schema)
- Error kinds (one exception class per failure)
- The delivery pipeline (transform then send)
"""
