"""Test fixtures package for gdapexport.

- graph: Microsoft Graph payload builders and an in-memory Graph client manager

Usage:
    from tests.fixtures.graph import FakeGraphClientManager, relationship_payload
"""
