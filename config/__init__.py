"""
Configuration management for the CodeCritic gateway.

This package handles:
- Environment variable loading
- `.env` file support
- Settings validation using Pydantic
"""
