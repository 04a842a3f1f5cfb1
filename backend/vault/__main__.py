"""Run the relay with uvicorn: ``python -m vault``."""
import uvicorn

from vault.config import get_config


def main() -> None:
    server = get_config().server
    uvicorn.run(
        "vault.main:app",
        host=server.host,
        port=server.port,
        ws_ping_interval=server.ws_ping_interval,
        ws_ping_timeout=server.ws_ping_timeout,
    )


if __name__ == "__main__":
    main()
