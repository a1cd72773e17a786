import logging
import ssl
from pathlib import Path
from typing import Optional

from pggateway.core.exceptions import TLSContextError

log = logging.getLogger(__name__)


def _require_file(label: str, path: Optional[str]) -> Path:
    if not path:
        raise TLSContextError(f"{label} is not set")
    resolved = Path(path)
    if not resolved.is_file():
        raise TLSContextError(f"{label} does not point to a readable file: {path}")
    return resolved


def build_ssl_context(key_path: Optional[str], chain_path: Optional[str]) -> ssl.SSLContext:
    """
    Load the private key and certificate chain into a server-side context.

    Both files are read synchronously. Any failure is fatal to startup and
    is raised before the listener binds.
    """
    key_file = _require_file("SSL_KEY_PATH", key_path)
    chain_file = _require_file("SSL_CHAIN_PATH", chain_path)

    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    try:
        context.load_cert_chain(certfile=str(chain_file), keyfile=str(key_file))
    except (ssl.SSLError, OSError) as e:
        raise TLSContextError(f"invalid TLS key/certificate pair: {e}") from e

    log.info(f"[TLS] Loaded certificate chain {chain_file}")
    return context
