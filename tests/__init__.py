"""Unit tests for the Tambola caller.

This package contains test modules for all components of the caller.
Tests use pytest with asyncio support, a scripted fake speech engine, and mock audio and
speech libraries via monkeypatch.
"""
