# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Observes the certificate chain a TLS server presents.

The connection deliberately accepts any certificate: its only purpose is
to see what the peer sends so the decision engine can judge it.
"""

import socket
import ssl
import logging
from typing import List

from cf_truster.exceptions import ConnectError, HandshakeError
from cf_truster.models import CertificateChain, Target

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000


def observing_context() -> ssl.SSLContext:
    """Client context that completes a handshake with any certificate."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _to_der(item) -> bytes:
    if isinstance(item, (bytes, bytearray)):
        return bytes(item)
    # _ssl.Certificate objects (Python < 3.13) default to PEM output
    return ssl.PEM_cert_to_DER_cert(item.public_bytes())


def _presented_chain(ssock: ssl.SSLSocket) -> List[bytes]:
    """
    Returns the full chain sent by the peer, leaf first.
    Python 3.13 exposes get_unverified_chain() publicly, 3.10-3.12 only on
    the underlying SSL object. Older interpreters give us the leaf alone.
    """
    getter = getattr(ssock, "get_unverified_chain", None)
    if not callable(getter):
        getter = getattr(getattr(ssock, "_sslobj", None), "get_unverified_chain", None)

    if callable(getter):
        chain = getter()
        if chain:
            return [_to_der(item) for item in chain]

    leaf = ssock.getpeercert(binary_form=True)
    return [leaf] if leaf else []


def fetch_certificate_chain(target: Target, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> CertificateChain:
    """
    Connects to the target and returns the certificates it presents.

    Raises:
        ConnectError: connection refused, timed out, or DNS failure.
        HandshakeError: TLS failure or no certificate presented.
    """
    timeout = timeout_ms / 1000.0
    logger.debug(f"Connecting to {target} (timeout {timeout_ms} ms)")

    try:
        sock = socket.create_connection((target.host, target.port), timeout=timeout)
    except OSError as e:
        raise ConnectError(target, f"cannot connect to {target}: {e}") from e

    try:
        with sock:
            with observing_context().wrap_socket(sock, server_hostname=target.host) as ssock:
                certificates = _presented_chain(ssock)
    except ssl.SSLError as e:
        raise HandshakeError(target, f"TLS handshake with {target} failed: {e}") from e
    except socket.timeout as e:
        raise ConnectError(target, f"timed out talking to {target}: {e}") from e
    except OSError as e:
        raise HandshakeError(target, f"{target} closed the connection during the handshake: {e}") from e

    if not certificates:
        raise HandshakeError(target, f"{target} presented no certificate")

    logger.debug(f"{target} presented {len(certificates)} certificate(s)")
    return CertificateChain(certificates)
