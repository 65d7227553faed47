from pathlib import Path

import pytest

from smb_advisor.config import build_app_config


@pytest.fixture
def app_config(tmp_path: Path, monkeypatch):
    """AppConfig with every path under tmp_path and no OpenAI key."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return build_app_config({}, tmp_path)
