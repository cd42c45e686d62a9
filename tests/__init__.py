"""
Test suite for the CodeCritic gateway.

This package contains:
- Unit tests for individual components
- Property-based tests using Hypothesis
- API tests for the review and admin endpoints
"""
