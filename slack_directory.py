import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

import requests


logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"
API_KEY_ENV = "SLACK_API_KEY"
REQUEST_TIMEOUT = 30


class DirectoryExportError(RuntimeError):
    pass


class MissingCredential(DirectoryExportError):
    def __init__(self) -> None:
        super().__init__(f"Missing Slack API key. Pass --key or set {API_KEY_ENV}.")


class InvalidOutputFormat(DirectoryExportError):
    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Invalid output type: {token}")


class UpstreamRequestFailed(DirectoryExportError):
    def __init__(self, endpoint: str, cause: object) -> None:
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"{endpoint} failed: {cause}")


class MalformedMemberRecord(DirectoryExportError):
    def __init__(self, member_id: Optional[str], field: str) -> None:
        self.member_id = member_id
        self.field = field
        super().__init__(f"Member {member_id or '<unknown>'} has a missing or invalid {field}")


class OutputFormat(Enum):
    TABLE = "table"
    JSON = "json"
    HTML = "html"
    CSV = "csv"
    MARKDOWN = "markdown"


_FORMAT_TOKENS: Dict[str, OutputFormat] = {
    "table": OutputFormat.TABLE,
    "json": OutputFormat.JSON,
    "html": OutputFormat.HTML,
    "csv": OutputFormat.CSV,
    "markdown": OutputFormat.MARKDOWN,
    "md": OutputFormat.MARKDOWN,
}

OUTPUT_TOKENS = tuple(_FORMAT_TOKENS)


def parse_output_format(token: str) -> OutputFormat:
    # Tokens are case-sensitive: "JSON" is rejected.
    try:
        return _FORMAT_TOKENS[token]
    except KeyError:
        raise InvalidOutputFormat(token) from None


class PresenceStatus(Enum):
    Active = "active"
    Away = "away"
    DoNotDisturb = "dnd"
    Offline = "offline"


@dataclass(frozen=True)
class RunConfig:
    api_token: str
    channel_scope: Optional[str]
    output_format: OutputFormat


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    handle: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    picture_url: Optional[str] = None
    presence_status: PresenceStatus = PresenceStatus.Offline

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "handle": self.handle,
            "email": self.email,
            "phone_number": self.phone_number,
            "picture_url": self.picture_url,
            "presence_status": self.presence_status.name,
        }


ENTRY_FIELDS = ["name", "handle", "email", "phone_number", "picture_url", "presence_status"]


def load_dotenv(path: str = ".env") -> None:
    """
    Minimal .env loader.
    - Supports lines like KEY=VALUE
    - Ignores blank lines and comments (# ...)
    - Does not overwrite already-set environment variables
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip("'").strip('"')
                if not key:
                    continue
                if os.environ.get(key) is None:
                    os.environ[key] = value
    except FileNotFoundError:
        return


def clean_token(token: str) -> str:
    token = (token or "").strip()
    for prefix in ("OAuth token:", "OAuth Token:", "Token:", "Bearer "):
        if token.startswith(prefix):
            token = token[len(prefix) :].strip()
    return token


def resolve_config(
    key: Optional[str] = None,
    channel: Optional[str] = None,
    output: str = "table",
    environ: Optional[Mapping[str, str]] = None,
) -> RunConfig:
    """
    Build the immutable run configuration from command-line values.

    The flag wins over the environment; the output token is validated here so
    a bad token fails before any request is made.
    """
    if environ is None:
        environ = os.environ

    token = clean_token(key or "") or clean_token(environ.get(API_KEY_ENV) or "")
    if not token:
        raise MissingCredential()

    return RunConfig(
        api_token=token,
        channel_scope=channel or None,
        output_format=parse_output_format(output),
    )


def _request_json(token: str, endpoint: str, params: Optional[dict] = None) -> dict:
    url = f"{SLACK_API_BASE}/{endpoint.lstrip('/')}"
    headers = {"Authorization": f"Bearer {clean_token(token)}"}

    logger.debug("GET %s params=%s", endpoint, params)
    try:
        resp = requests.get(url, headers=headers, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise UpstreamRequestFailed(endpoint, e) from e

    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamRequestFailed(endpoint, f"invalid JSON response ({e})") from e

    if not isinstance(data, dict):
        raise UpstreamRequestFailed(endpoint, "unexpected response body")
    if data.get("ok") is not True:
        raise UpstreamRequestFailed(endpoint, data.get("error", "unknown_error"))
    return data


def _collection(data: dict, endpoint: str, key: str) -> List[dict]:
    items = data.get(key)
    if not isinstance(items, list):
        raise UpstreamRequestFailed(endpoint, f"response has no '{key}' list")
    return items


def list_channels(token: str) -> List[dict]:
    # conversations.list never embeds member ids, so only archived channels are excluded.
    data = _request_json(token, "conversations.list", params={"exclude_archived": "true"})
    return _collection(data, "conversations.list", "channels")


def list_users(token: str) -> List[dict]:
    data = _request_json(token, "users.list")
    return _collection(data, "users.list", "members")


def _channel_matches(channel: dict, scope: str) -> bool:
    wanted = scope.lstrip("#")
    return wanted in (channel.get("id"), channel.get("name"))


def fetch_members(config: RunConfig) -> List[dict]:
    """
    Fetch the raw member records for one run.

    When a channel scope is set the channel list is requested as well, but it
    is only checked and logged; the returned members are never filtered.
    """
    if config.channel_scope:
        channels = list_channels(config.api_token)
        logger.info("Fetched %d channels", len(channels))
        if not any(_channel_matches(ch, config.channel_scope) for ch in channels):
            logger.warning(
                "Channel %s not found on the first page of public unarchived channels",
                config.channel_scope,
            )

    members = list_users(config.api_token)
    logger.info("Fetched %d members", len(members))
    return members


def normalize_member(member: dict) -> DirectoryEntry:
    if not isinstance(member, dict):
        raise MalformedMemberRecord(None, "member")
    member_id = member.get("id")

    name = member.get("real_name")
    if not isinstance(name, str):
        raise MalformedMemberRecord(member_id, "real_name")
    handle = member.get("name")
    if not isinstance(handle, str):
        raise MalformedMemberRecord(member_id, "name")
    profile = member.get("profile")
    if not isinstance(profile, dict):
        raise MalformedMemberRecord(member_id, "profile")

    return DirectoryEntry(
        name=name,
        handle=handle,
        email=profile.get("email"),
        phone_number=profile.get("phone"),
        picture_url=profile.get("image_512"),
        presence_status=PresenceStatus.Offline,
    )


def normalize_members(members: List[dict], max_workers: Optional[int] = None) -> List[DirectoryEntry]:
    # Executor.map keeps input order and re-raises the first failure.
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="normalize") as pool:
        return list(pool.map(normalize_member, members))


def export_directory(config: RunConfig, *, max_workers: Optional[int] = None) -> List[DirectoryEntry]:
    members = fetch_members(config)
    entries = normalize_members(members, max_workers=max_workers)
    logger.debug("Normalized %d entries", len(entries))
    return entries
