import logging
import os
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from directory_render import FILE_EXTENSIONS, render
from slack_directory import (
    DirectoryExportError,
    OutputFormat,
    RunConfig,
    export_directory,
    load_dotenv,
    parse_output_format,
)


logger = logging.getLogger(__name__)

COMMAND = "/export-directory"
DEFAULT_APP_FORMAT = OutputFormat.CSV


def _is_dm_command(command: dict) -> bool:
    # Slash commands include channel_name; for DMs it is "directmessage".
    channel_name = (command.get("channel_name") or "").lower()
    if channel_name == "directmessage":
        return True
    channel_id = (command.get("channel_id") or "").strip()
    return channel_id.startswith("D")


def _is_admin_user(client, user_id: str) -> bool:
    info = client.users_info(user=user_id)
    user = (info or {}).get("user") or {}
    return bool(user.get("is_admin") or user.get("is_owner") or user.get("is_primary_owner"))


def _filename(output_format: OutputFormat) -> str:
    ts = int(time.time())
    return f"slack_directory_{ts}.{FILE_EXTENSIONS[output_format]}"


def handle_export_directory(ack, respond, command, client, *, bot_token: str) -> None:
    """
    Usage:
      /export-directory [table|json|html|csv|markdown|md]
    Notes:
      - Only runs in a DM with the bot, for workspace admins/owners.
      - The document is uploaded to that DM as a file (csv by default).
    """
    ack()

    # Directory data includes emails and phone numbers.
    if not _is_dm_command(command):
        respond(
            "For safety, this command can only be run in a **DM with me**.\n"
            f"Open a DM with the app and run:\n`{COMMAND} csv`"
        )
        return

    try:
        if not _is_admin_user(client, command.get("user_id")):
            respond("Sorry, this command is restricted to **workspace admins/owners**.")
            return
    except Exception:
        logger.exception("Admin check failed")
        respond("Could not verify your admin status. Please try again, or contact an admin.")
        return

    token = (command.get("text") or "").strip()
    try:
        output_format = parse_output_format(token) if token else DEFAULT_APP_FORMAT
    except DirectoryExportError as e:
        respond(f"{e}. Usage: `{COMMAND} [table|json|html|csv|markdown|md]`")
        return

    respond(f"Working on it… exporting the team directory as `{output_format.value}`.")

    try:
        config = RunConfig(api_token=bot_token, channel_scope=None, output_format=output_format)
        document = render(export_directory(config), output_format)
    except DirectoryExportError as e:
        logger.warning("Directory export failed: %s", e)
        respond(
            "Export failed.\n"
            f"- Error: `{e}`\n"
            "- If you see `missing_scope`, add `users:read` and `users:read.email` and reinstall the app."
        )
        return
    except Exception as e:
        logger.exception("Unexpected error during export")
        respond(f"Export failed due to an unexpected error: `{type(e).__name__}`")
        return

    filename = _filename(output_format)
    try:
        client.files_upload_v2(
            channel=command.get("channel_id"),
            filename=filename,
            title=filename,
            content=document,
            initial_comment="Here is the team directory",
        )
    except Exception:
        logger.exception("Failed to upload file")
        respond(
            "Export succeeded, but uploading the file failed.\n"
            "- Ensure the app has `files:write` scope and is allowed to post in this channel."
        )
        return

    respond(f"Done. Uploaded `{filename}`.")


def build_app(bot_token: str) -> App:
    app = App(token=bot_token)

    @app.command(COMMAND)
    def export_directory_command(ack, respond, command, client):
        handle_export_directory(ack, respond, command, client, bot_token=bot_token)

    return app


class HealthCheckHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-type", "text/plain")
        self.end_headers()
        self.wfile.write(b"OK")

    def log_message(self, format, *args):
        pass


def start_health_server(port: int) -> HTTPServer:
    http_server = HTTPServer(("0.0.0.0", port), HealthCheckHandler)
    http_thread = threading.Thread(target=http_server.serve_forever, daemon=True)
    http_thread.start()
    logger.info("Health check server listening on port %d", port)
    return http_server


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    load_dotenv(".env")

    bot_token = os.environ.get("SLACK_BOT_TOKEN")
    app_token = os.environ.get("SLACK_APP_TOKEN")  # xapp-... for Socket Mode

    if not bot_token:
        raise SystemExit("Missing SLACK_BOT_TOKEN (xoxb-...).")
    if not app_token:
        raise SystemExit("Missing SLACK_APP_TOKEN (xapp-...). Enable Socket Mode and set SLACK_APP_TOKEN.")

    app = build_app(bot_token)

    start_health_server(int(os.environ.get("PORT", "10000")))

    logger.info("Starting Socket Mode connection to Slack...")
    SocketModeHandler(app, app_token).start()


if __name__ == "__main__":
    main()
