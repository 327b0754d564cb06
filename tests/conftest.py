from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from slack_directory import DirectoryEntry


ADA = {
    "id": "U001",
    "name": "ada",
    "real_name": "Ada Lovelace",
    "profile": {"email": "ada@x.io"},
}

GRACE = {
    "id": "U002",
    "name": "grace",
    "real_name": "Grace Hopper",
    "profile": {"phone": "555-1234", "image_512": "http://x/g.png"},
}


def _make_response(payload, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def members():
    return [dict(ADA), dict(GRACE)]


@pytest.fixture
def entries():
    return [
        DirectoryEntry(name="Ada Lovelace", handle="ada", email="ada@x.io"),
        DirectoryEntry(
            name="Grace Hopper",
            handle="grace",
            phone_number="555-1234",
            picture_url="http://x/g.png",
        ),
    ]


@pytest.fixture(autouse=True)
def _no_api_key(monkeypatch):
    monkeypatch.delenv("SLACK_API_KEY", raising=False)
