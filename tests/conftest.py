"""
Shared fixtures for CUEBOARD tests.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import core_registry as reg


@pytest.fixture(autouse=True)
def clean_registry():
    """Repositories under test must not emit through an app from another test."""
    saved = (reg.socketio, reg.audit_log)
    reg.socketio = None
    reg.audit_log = None
    yield
    reg.socketio, reg.audit_log = saved
