"""Test suite for claimflow.

This package contains tests for:
- Lifecycle tables (transitions, editable and required fields, reasons)
- Field diff and request validation
- Error classification and labelled display errors
- Transition orchestration against a mocked claims API
- Upload pipeline states, aggregates, retry and cancellation
- Claim edit and creation sessions
"""
