#!/usr/bin/env python3
"""
Tests for the server entry point banner.
"""

import os
import sys

import pytest

# Add the repository root and the infrastructure directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'infrastructure'))

from faceliveness.config import EnrollmentConfig, LivenessConfig
from main import print_banner


def test_banner_reports_effective_settings(monkeypatch, capsys):
    monkeypatch.delenv('REDIS_URL', raising=False)
    config = LivenessConfig(enrollment=EnrollmentConfig(match_threshold=0.4, verification_mode='remote'))

    print_banner("127.0.0.1", 9000, config)
    output = capsys.readouterr().out

    assert "http://127.0.0.1:9000" in output
    assert "memory" in output
    assert "0.4" in output
    assert "verification remote" in output
    assert "ssd" in output


def test_banner_reports_redis_store(monkeypatch, capsys):
    monkeypatch.setenv('REDIS_URL', 'redis://localhost:6379/0')

    print_banner("0.0.0.0", 8000, LivenessConfig())

    output = capsys.readouterr().out
    assert "redis" in output
    assert "memory" not in output


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
