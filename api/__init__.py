"""
HTTP surface of the CodeCritic gateway.

This package contains:
- Review endpoints (single-shot JSON and Server-Sent Events streaming)
- Admin reporting endpoints over stored interactions
- CLI interface for local usage
"""
