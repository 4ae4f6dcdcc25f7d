"""
Test suite for MultiMount.

This package contains:
- Unit tests for the classifier, technique chains and helpers
- Integration tests for complete command-line workflows
- Mock fixtures for testing without root, tools or loop devices
"""
