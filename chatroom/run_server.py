import argparse
import asyncio
import logging
import signal
import socket
from pathlib import Path

from .config import ServerConfig, parse_bind
from .server import ChatServer


def lan_address() -> str:
    # Routing lookup only; a UDP connect sends no packets.
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        address = sock.getsockname()[0]
    except OSError:
        return "localhost"
    finally:
        sock.close()
    if address.startswith("127.") or address == "0.0.0.0":
        return "localhost"
    return address


async def _run(config: ServerConfig) -> None:
    server = ChatServer(config)
    stop = asyncio.Event()

    def _signal_handler():
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await server.start()
    except OSError as exc:
        logging.error("Cannot listen on %s: %s", config.bind, exc)
        raise SystemExit(1)

    port = server.port
    logging.info("Local:   http://localhost:%s", port)
    logging.info("Network: http://%s:%s", lan_address(), port)
    try:
        await stop.wait()
    finally:
        await server.stop()


def build_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()
    if args.bind:
        config.host, config.port = parse_bind(args.bind)
    if args.static_dir:
        config.static_dir = Path(args.static_dir)
    if args.send_timeout is not None:
        config.send_timeout = args.send_timeout
    if args.status_interval is not None:
        config.status_interval = args.status_interval
    if args.log_level:
        config.log_level = args.log_level.upper()
    return config


def main(argv=None):
    parser = argparse.ArgumentParser(description="LAN chat room server")
    parser.add_argument(
        "--bind",
        help="Listen address host:port, :port or ws://host:port (default 0.0.0.0:5000, env CHAT_HOST/CHAT_PORT)",
    )
    parser.add_argument("--static-dir", help="Directory served over plain HTTP (env CHAT_STATIC_DIR)")
    parser.add_argument("--send-timeout", type=float, help="Seconds before a stalled peer is dropped")
    parser.add_argument("--status-interval", type=float, help="Seconds between online-count log lines; 0 disables")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR (env CHAT_LOG_LEVEL)")
    args = parser.parse_args(argv)

    config = build_config(args)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
