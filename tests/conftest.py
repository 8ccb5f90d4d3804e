"""
Shared pytest configuration.
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_log(tmp_path, monkeypatch):
    """Keep CLI log files out of the user's home directory."""
    log_path = tmp_path / "logs" / "merging-rebase.log"
    monkeypatch.setenv("MERGING_REBASE_LOG", str(log_path))
    return log_path
