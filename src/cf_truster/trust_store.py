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
Process-wide set of trust anchors.

The store only ever grows. Writers build a new snapshot under a lock and
swap it in with a single assignment, so readers (including TLS clients in
other threads) always see a complete anchor set without locking.

When a bundle path is configured every addition is written out as a PEM
bundle and published through SSL_CERT_FILE / REQUESTS_CA_BUNDLE.

ssl_context() and session() accept a chain ending at any anchor, which is
the rule is_trusted() applies. Clients that only read the published bundle
get the same rule from ssl.create_default_context() on Python 3.13+; older
interpreters only accept chains there that end at a self-signed anchor.
"""

import os
import ssl
import logging
import tempfile
import threading
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

from cf_truster.exceptions import CertificateParseError, TrustStoreError
from cf_truster.ssl_helpers import configure_ssl_env, default_ca_file

logger = logging.getLogger(__name__)

_PEM_END = b"-----END CERTIFICATE-----"


def load_certificate(der: bytes) -> x509.Certificate:
    """Decodes one DER certificate, raising CertificateParseError on garbage."""
    try:
        return x509.load_der_x509_certificate(bytes(der))
    except ValueError as e:
        raise CertificateParseError(f"invalid DER certificate: {e}") from e


def fingerprint(cert: x509.Certificate) -> str:
    """SHA-256 fingerprint as lowercase hex."""
    return cert.fingerprint(hashes.SHA256()).hex()


def load_pem_certificates(data: bytes) -> List[x509.Certificate]:
    """
    Parses every certificate in a PEM bundle.
    Platform bundles occasionally carry entries cryptography rejects; those
    are skipped rather than failing the whole bundle.
    """
    try:
        return x509.load_pem_x509_certificates(data)
    except ValueError:
        logger.debug("CA bundle did not parse as a whole, loading entries one by one")

    certs = []
    for block in data.split(_PEM_END):
        if b"-----BEGIN CERTIFICATE-----" not in block:
            continue
        try:
            certs.append(x509.load_pem_x509_certificate(block + _PEM_END))
        except ValueError as e:
            logger.debug(f"Skipping unparsable CA bundle entry: {e}")
    return certs


class _Anchors(NamedTuple):
    by_fingerprint: Dict[str, x509.Certificate]
    by_subject: Dict[x509.Name, Tuple[x509.Certificate, ...]]


class TrustStore:
    """
    Thread-safe, grow-only collection of trust anchors.

    Tests create isolated instances; the running process shares the one
    returned by default_trust_store().
    """

    def __init__(self, certificates: Iterable[x509.Certificate] = (), bundle_path: Optional[str] = None):
        self._lock = threading.RLock()
        self._anchors = _Anchors({}, {})
        self.bundle_path = bundle_path
        self._extend(certificates)

    @classmethod
    def from_defaults(cls, bundle_path: Optional[str] = None, ca_file: Optional[str] = None) -> "TrustStore":
        """Creates a store seeded with the platform's default trust material."""
        ca_file = ca_file or default_ca_file()
        try:
            with open(ca_file, "rb") as f:
                data = f.read()
        except OSError as e:
            raise TrustStoreError(f"cannot read default CA bundle {ca_file}: {e}", ca_file) from e

        store = cls(load_pem_certificates(data), bundle_path=bundle_path)
        logger.debug(f"Loaded {len(store)} default trust anchors from {ca_file}")
        return store

    def __len__(self) -> int:
        return len(self._anchors.by_fingerprint)

    def __contains__(self, der: bytes) -> bool:
        return self.contains(der)

    def anchors(self) -> Tuple[x509.Certificate, ...]:
        """Immutable snapshot of the current anchors."""
        return tuple(self._anchors.by_fingerprint.values())

    def contains(self, der: bytes) -> bool:
        return self.contains_certificate(load_certificate(der))

    def contains_certificate(self, cert: x509.Certificate) -> bool:
        return fingerprint(cert) in self._anchors.by_fingerprint

    def issuers_of(self, cert: x509.Certificate) -> Tuple[x509.Certificate, ...]:
        """Anchors whose subject matches the certificate's issuer name."""
        return self._anchors.by_subject.get(cert.issuer, ())

    def add(self, der: bytes) -> bool:
        """
        Adds a DER certificate as a trust anchor.

        Returns:
            True if the certificate was new, False if it was already present.

        Raises:
            CertificateParseError: if the bytes are not a certificate.
            TrustStoreError: if the grown bundle could not be published.
        """
        cert = load_certificate(der)
        with self._lock:
            if not self._extend([cert]):
                return False
            if self.bundle_path:
                self.publish()
        logger.debug(f"Added trust anchor {cert.subject.rfc4514_string()} ({fingerprint(cert)[:16]})")
        return True

    def _extend(self, certificates: Iterable[x509.Certificate]) -> int:
        with self._lock:
            current = self._anchors
            by_fingerprint = dict(current.by_fingerprint)
            by_subject = dict(current.by_subject)
            added = 0
            for cert in certificates:
                fp = fingerprint(cert)
                if fp in by_fingerprint:
                    continue
                by_fingerprint[fp] = cert
                by_subject[cert.subject] = by_subject.get(cert.subject, ()) + (cert,)
                added += 1
            if added:
                # Single reference swap; readers never see a half-built set
                self._anchors = _Anchors(by_fingerprint, by_subject)
            return added

    def to_pem(self) -> bytes:
        return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in self.anchors())

    def publish(self, path: Optional[str] = None) -> str:
        """
        Atomically writes the anchors to a PEM bundle and points the process
        CA bundle environment variables at it.

        Returns:
            The path written.
        """
        path = path or self.bundle_path
        if not path:
            raise TrustStoreError("no CA bundle path configured")

        directory = os.path.dirname(os.path.abspath(path))
        with self._lock:
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".cf-truster-", suffix=".pem")
            except OSError as e:
                raise TrustStoreError(f"cannot create CA bundle in {directory}: {e}", path) from e

            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(self.to_pem())
                os.replace(tmp_path, path)
            except OSError as e:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise TrustStoreError(f"cannot write CA bundle {path}: {e}", path) from e

            configure_ssl_env(path)
        logger.debug(f"Published {len(self)} trust anchors to {path}")
        return path

    def ssl_context(self) -> ssl.SSLContext:
        """
        A verifying client context that trusts exactly the current anchors.

        Anchors added on first use are usually leaves or intermediates, not
        self-signed roots; OpenSSL only accepts those as the end of a chain
        with VERIFY_X509_PARTIAL_CHAIN.
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
        if len(self):
            context.load_verify_locations(cadata=self.to_pem().decode("ascii"))
        return context

    def session(self) -> requests.Session:
        """A requests session whose https connections verify with ssl_context()."""
        session = requests.Session()
        session.mount("https://", TrustStoreAdapter(self.ssl_context()))
        return session


class TrustStoreAdapter(HTTPAdapter):
    """Hands a fixed SSLContext to every urllib3 pool the adapter creates."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().proxy_manager_for(*args, **kwargs)


_default_store: Optional[TrustStore] = None
_default_store_lock = threading.Lock()


def default_trust_store(bundle_path: Optional[str] = None) -> TrustStore:
    """
    The process-wide store, created on first use from the default CA bundle.
    bundle_path only applies to that first call.
    """
    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = TrustStore.from_defaults(bundle_path=bundle_path)
        return _default_store
