"""Server runner.

Starts a pounce ASGI server with the live conduit App object. pounce is
an optional dependency (``pip install conduit[server]``); any other ASGI
server can serve the app directly.
"""

import logging
from typing import Any

from conduit.errors import ConfigurationError

logger = logging.getLogger("conduit.server")


def run_server(app: Any, host: str, port: int) -> None:
    """Serve *app* on *host*:*port* until interrupted.

    TLS is enabled when the app's config names both a certificate and a
    key file. With ``debug`` set, pounce reloads on file changes.
    """
    try:
        from pounce.config import ServerConfig
        from pounce.server import Server
    except ImportError as exc:
        msg = (
            "Running the built-in server requires the 'pounce' package. "
            "Install it with: pip install conduit[server]"
        )
        raise ConfigurationError(msg) from exc

    config = app.config
    server_config = ServerConfig(
        host=host,
        port=port,
        workers=1,
        reload=config.debug,
        log_level=config.log_level,
        ssl_certfile=config.ssl_certfile if config.secure else None,
        ssl_keyfile=config.ssl_keyfile if config.secure else None,
    )
    scheme = "https" if config.secure else "http"
    default_port = 443 if config.secure else 80
    suffix = "" if port == default_port else f":{port}"
    logger.info("Server listening on %s://%s%s", scheme, host, suffix)
    Server(server_config, app).run()
