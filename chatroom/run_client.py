import argparse
import asyncio
import logging
import os
from urllib.parse import urlparse

from .client import DEFAULT_USERNAME, ChatClient

DEFAULT_CLIENT_PORT = 5000


def _parse_server(uri_or_host: str | None, port: int | None) -> tuple[str, int]:
    if uri_or_host and uri_or_host.startswith("ws://"):
        p = urlparse(uri_or_host)
        return (p.hostname or "127.0.0.1", int(p.port or (port or DEFAULT_CLIENT_PORT)))
    host = uri_or_host or os.getenv("CLIENT_HOST", "127.0.0.1")
    return (host, int(port or int(os.getenv("CLIENT_PORT", str(DEFAULT_CLIENT_PORT)))))


def main(argv=None):
    ap = argparse.ArgumentParser(description="LAN chat room terminal client")
    ap.add_argument("--server", help="ws://host:port of server")
    ap.add_argument("--host", help="Server host (if --server not given)")
    ap.add_argument("--port", type=int, help=f"Server port (default {DEFAULT_CLIENT_PORT})")
    ap.add_argument("--username", default=os.getenv("CHAT_USERNAME", DEFAULT_USERNAME))
    ap.add_argument("--verbose", action="store_true", help="Log latency and connection details")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    host, port = _parse_server(args.server or args.host, args.port)
    client = ChatClient(username=args.username)
    print("Type a message and press Enter. /stats shows counters, /quit leaves.")
    try:
        asyncio.run(client.run_client(host=host, port=port))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
