from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

import slackline


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    # main() loads ./.env; keep it from picking up a developer's file.
    monkeypatch.chdir(tmp_path)


def test_parser_defaults():
    args = slackline.build_parser().parse_args([])

    assert args.key is None
    assert args.channel is None
    assert args.output == "table"
    assert args.verbose is False


def test_parser_short_flags():
    args = slackline.build_parser().parse_args(["-k", "xoxb-1", "-c", "C1", "-o", "md"])

    assert (args.key, args.channel, args.output) == ("xoxb-1", "C1", "md")


def test_main_prints_table(members, capsys, make_response):
    with patch(
        "slack_directory.requests.get",
        return_value=make_response({"ok": True, "members": members}),
    ):
        assert slackline.main(["--key", "xoxb-1"]) == 0

    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0].startswith("Name")
    assert "Ada Lovelace" in lines[1]
    assert "Grace Hopper" in lines[2]


def test_main_uses_environment_key(members, capsys, monkeypatch, make_response):
    monkeypatch.setenv("SLACK_API_KEY", "xoxb-env")
    with patch(
        "slack_directory.requests.get",
        return_value=make_response({"ok": True, "members": members}),
    ) as get:
        assert slackline.main(["-o", "json"]) == 0

    assert get.call_args[1]["headers"] == {"Authorization": "Bearer xoxb-env"}
    assert len(json.loads(capsys.readouterr().out)) == 2


def test_main_without_credential_makes_no_request(capsys):
    with patch("slack_directory.requests.get") as get:
        with pytest.raises(SystemExit) as exc_info:
            slackline.main([])

    assert get.call_count == 0
    assert "Missing Slack API key" in str(exc_info.value.code)
    assert capsys.readouterr().out == ""


def test_main_rejects_bad_output_token(capsys):
    with patch("slack_directory.requests.get") as get:
        with pytest.raises(SystemExit) as exc_info:
            slackline.main(["-k", "xoxb-1", "-o", "JSON"])

    assert get.call_count == 0
    assert exc_info.value.code == "Error: Invalid output type: JSON"
    assert capsys.readouterr().out == ""


def test_main_malformed_member_writes_nothing(members, capsys, make_response):
    members.append({"id": "U003", "name": "nobody", "real_name": "No Profile"})
    with patch(
        "slack_directory.requests.get",
        return_value=make_response({"ok": True, "members": members}),
    ):
        with pytest.raises(SystemExit) as exc_info:
            slackline.main(["-k", "xoxb-1", "-o", "csv"])

    assert "U003" in str(exc_info.value.code)
    assert capsys.readouterr().out == ""


@pytest.mark.parametrize(
    "bad_member,output",
    [
        (None, "table"),
        ({"id": "U004", "name": "num", "real_name": 42, "profile": {}}, "html"),
    ],
)
def test_main_invalid_member_type_exits_with_message(members, capsys, make_response, bad_member, output):
    members.append(bad_member)
    with patch(
        "slack_directory.requests.get",
        return_value=make_response({"ok": True, "members": members}),
    ):
        with pytest.raises(SystemExit) as exc_info:
            slackline.main(["-k", "xoxb-1", "-o", output])

    assert str(exc_info.value.code).startswith("Error: Member ")
    assert capsys.readouterr().out == ""


def test_setup_logging_quiets_http_libraries():
    slackline.setup_logging(verbose=True)

    assert logging.getLogger("slack_sdk").level == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_main_upstream_failure_exits_nonzero(capsys, make_response):
    with patch(
        "slack_directory.requests.get",
        return_value=make_response({"ok": False, "error": "invalid_auth"}),
    ):
        with pytest.raises(SystemExit) as exc_info:
            slackline.main(["-k", "xoxb-bad"])

    assert exc_info.value.code == "Error: users.list failed: invalid_auth"
    assert capsys.readouterr().out == ""


def test_main_reads_key_from_dotenv(members, tmp_path, monkeypatch, capsys, make_response):
    (tmp_path / ".env").write_text("SLACK_API_KEY=xoxb-dotenv\n", encoding="utf-8")
    # registered so monkeypatch removes the variable load_dotenv sets
    monkeypatch.setenv("SLACK_API_KEY", "")
    monkeypatch.delenv("SLACK_API_KEY")
    with patch(
        "slack_directory.requests.get",
        return_value=make_response({"ok": True, "members": members}),
    ) as get:
        assert slackline.main(["-o", "csv"]) == 0

    assert get.call_args[1]["headers"] == {"Authorization": "Bearer xoxb-dotenv"}
    assert capsys.readouterr().out.startswith("name,handle,email")
