"""CLI device client for Pantry Sync.

Mirrors each synced collection as ``<fileType>.json`` in a local directory and
drives pull / push / status / delete against the server.
"""

from __future__ import annotations

import argparse
import getpass
import json
import sys
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

CONFIG_FILE = ".pantry-sync.json"
CLIENT_VERSION = "1.0.0"
FILE_TYPES = ("categories", "locations", "inventoryItems", "todoItems", "settings")
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


class SyncClientError(Exception):
    """Error reported by the server in its error envelope."""

    def __init__(self, code: str, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(f"{code}: {message}")


def _raise_for_envelope(resp: httpx.Response) -> dict[str, Any]:
    """Return the JSON body, raising SyncClientError on an error envelope."""
    try:
        body: dict[str, Any] = resp.json()
    except ValueError:
        resp.raise_for_status()
        raise SyncClientError("INVALID_RESPONSE", "Server returned non-JSON body", resp.status_code)
    if resp.status_code >= 400 or body.get("success") is False:
        error = body.get("error") or {}
        raise SyncClientError(
            error.get("code", "SERVER_ERROR"),
            error.get("message", f"HTTP {resp.status_code}"),
            resp.status_code,
        )
    return body


def data_path(data_dir: Path, file_type: str) -> Path:
    return data_dir / f"{file_type}.json"


def load_local(data_dir: Path, file_type: str) -> Any | None:
    """Load a collection from disk, or None if it has no local file."""
    path = data_path(data_dir, file_type)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def save_local(data_dir: Path, file_type: str, data: Any) -> None:
    path = data_path(data_dir, file_type)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


class SyncClient:
    """Client for syncing collections with a Pantry Sync server."""

    def __init__(
        self,
        server_url: str,
        data_dir: Path,
        token: str,
        device_id: str,
        device_name: str | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.data_dir = data_dir
        self.device_id = device_id
        self.device_name = device_name
        self.client = httpx.Client(
            base_url=self.server_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=60.0,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def pull(self, file_type: str) -> dict[str, Any]:
        """Download a collection and write it to its local file.

        A collection the server has never stored leaves the local file alone.
        """
        resp = self.client.get(f"/api/sync/{file_type}/pull")
        body = _raise_for_envelope(resp)
        if not body.get("lastSyncTime"):
            return body
        save_local(self.data_dir, file_type, body.get("data", []))
        self._record_sync_time(file_type, body["lastSyncTime"])
        return body

    def push(self, file_type: str) -> dict[str, Any] | None:
        """Upload a collection from its local file. Returns None if there is no file."""
        data = load_local(self.data_dir, file_type)
        if data is None:
            return None
        payload: dict[str, Any] = {
            "version": CLIENT_VERSION,
            "deviceId": self.device_id,
            "syncTimestamp": datetime.now(UTC).isoformat(),
            "data": data,
        }
        if self.device_name:
            payload["deviceName"] = self.device_name
        resp = self.client.post(f"/api/sync/{file_type}/push", json=payload)
        body = _raise_for_envelope(resp)
        self._record_sync_time(file_type, body["lastSyncTime"])
        return body

    def status(self, file_type: str | None = None) -> dict[str, Any]:
        """Return server metadata for one collection or all of them."""
        params = {"fileType": file_type} if file_type else None
        resp = self.client.get("/api/sync/status", params=params)
        body = _raise_for_envelope(resp)
        result: dict[str, Any] = body["data"]
        return result

    def delete(self, file_type: str) -> str:
        """Delete a collection on the server; the local file is kept."""
        resp = self.client.delete(f"/api/sync/{file_type}/data")
        body = _raise_for_envelope(resp)
        message: str = body["message"]
        return message

    def _record_sync_time(self, file_type: str, last_sync_time: str) -> None:
        config = load_config(self.data_dir)
        sync_times = config.setdefault("last_sync_times", {})
        sync_times[file_type] = last_sync_time
        save_config(self.data_dir, config)


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def validate_file_types(values: list[str]) -> list[str]:
    """Expand an empty selection to every collection and reject unknown names."""
    if not values:
        return list(FILE_TYPES)
    unknown = [v for v in values if v not in FILE_TYPES]
    if unknown:
        raise ValueError(f"Unknown file type(s): {', '.join(unknown)}")
    return values


def load_config(dir_path: Path) -> dict[str, Any]:
    """Load sync config from file."""
    config_path = dir_path / CONFIG_FILE
    if not config_path.exists():
        return {}
    config: dict[str, Any] = json.loads(config_path.read_text())
    return config


def save_config(dir_path: Path, config: dict[str, Any]) -> None:
    """Save sync config to file."""
    config_path = dir_path / CONFIG_FILE
    config_path.write_text(json.dumps(config, indent=2))


def login(server_url: str, email: str, password: str) -> str:
    """Exchange credentials for an access token."""
    with httpx.Client(base_url=server_url, timeout=30.0) as http:
        resp = http.post("/api/auth/login", json={"email": email, "password": password})
        body = _raise_for_envelope(resp)
    token: str = body["accessToken"]
    return token


def _print_status(status: dict[str, Any], file_type: str | None) -> None:
    entries = {file_type: status} if file_type else status
    print("Sync Status:")
    for name, meta in entries.items():
        if meta is None:
            print(f"  {name:<15} never synced")
            continue
        device = meta.get("deviceName") or meta.get("lastSyncedByDeviceId")
        print(
            f"  {name:<15} {meta['lastSyncTime']}  by {device}  "
            f"({meta['totalSyncs']} sync(s))"
        )


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="pantry-sync",
        description="Sync local collections with a Pantry Sync server",
    )
    parser.add_argument("--dir", "-d", default=".", help="Data directory (default: current)")
    parser.add_argument("--server", "-s", help="Server URL")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    subparsers = parser.add_subparsers(dest="command")
    init_parser = subparsers.add_parser("init", help="Initialize sync configuration")
    init_parser.add_argument("--device-id", help="Device identifier (default: random)")
    init_parser.add_argument("--device-name", help="Human-readable device name")
    login_parser = subparsers.add_parser("login", help="Log in and store the access token")
    login_parser.add_argument("--email", "-e", help="Account email")
    pull_parser = subparsers.add_parser("pull", help="Download collections")
    pull_parser.add_argument("file_types", nargs="*", metavar="FILE_TYPE")
    push_parser = subparsers.add_parser("push", help="Upload collections")
    push_parser.add_argument("file_types", nargs="*", metavar="FILE_TYPE")
    status_parser = subparsers.add_parser("status", help="Show server sync metadata")
    status_parser.add_argument("file_type", nargs="?", metavar="FILE_TYPE")
    delete_parser = subparsers.add_parser("delete", help="Delete a collection on the server")
    delete_parser.add_argument("file_type", metavar="FILE_TYPE")

    args = parser.parse_args()
    data_dir = Path(args.dir).resolve()

    if args.command == "init":
        if not args.server:
            print("Error: --server required for init")
            sys.exit(1)
        try:
            server_url = validate_server_url(args.server, args.allow_insecure_http)
        except ValueError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        data_dir.mkdir(parents=True, exist_ok=True)
        config = load_config(data_dir)
        config["server"] = server_url
        config["device_id"] = args.device_id or config.get("device_id") or str(uuid.uuid4())
        if args.device_name:
            config["device_name"] = args.device_name
        save_config(data_dir, config)
        print(f"Initialized sync config in {data_dir / CONFIG_FILE}")
        return

    config = load_config(data_dir)
    configured_server_url = args.server or config.get("server")
    if not configured_server_url:
        print("Error: No server configured. Run 'pantry-sync init --server <url>' first.")
        sys.exit(1)
    try:
        server_url = validate_server_url(configured_server_url, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    if args.command == "login":
        email = args.email or input("Email: ")
        password = getpass.getpass("Password: ")
        try:
            config["token"] = login(server_url, email, password)
        except SyncClientError as exc:
            print(f"Error: Login failed ({exc.message})")
            sys.exit(1)
        save_config(data_dir, config)
        print("Logged in.")
        return

    token = config.get("token")
    if not token:
        print("Error: Not logged in. Run 'pantry-sync login' first.")
        sys.exit(1)
    device_id = config.get("device_id")
    if not device_id:
        device_id = config["device_id"] = str(uuid.uuid4())
        save_config(data_dir, config)

    with SyncClient(server_url, data_dir, token, device_id, config.get("device_name")) as client:
        try:
            if args.command == "pull":
                for file_type in validate_file_types(args.file_types):
                    body = client.pull(file_type)
                    print(f"  Pull: {file_type} (last sync {body.get('lastSyncTime') or 'never'})")
            elif args.command == "push":
                for file_type in validate_file_types(args.file_types):
                    result = client.push(file_type)
                    if result is None:
                        print(f"  Skip (missing): {file_type}")
                    else:
                        print(f"  Push: {file_type} ({result['entriesCount']} entries)")
            elif args.command == "status":
                if args.file_type:
                    validate_file_types([args.file_type])
                _print_status(client.status(args.file_type), args.file_type)
            elif args.command == "delete":
                validate_file_types([args.file_type])
                print(client.delete(args.file_type))
            else:
                parser.print_help()
        except (SyncClientError, ValueError) as exc:
            print(f"Error: {exc}")
            sys.exit(1)


if __name__ == "__main__":
    main()
