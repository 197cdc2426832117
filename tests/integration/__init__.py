"""
Integration tests

Orchestrator runs against the in-memory mail services in mock_services.py.
"""
