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
Decides whether an observed chain is already trusted and, if not, trusts it.

This is trust-on-first-use: an untrusted leaf is added as an anchor with no
hostname, expiry or CA policy check. Whoever controls the network path at
startup decides what gets trusted. Anything stricter would change which
hosts the application can reach, so the behaviour is kept as is.
"""

import logging
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature

from cf_truster.models import CertificateChain, TrustOutcome
from cf_truster.trust_store import TrustStore, load_certificate

logger = logging.getLogger(__name__)


def _issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Issuer name matches and the signature verifies with the issuer's key."""
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _anchored(cert: x509.Certificate, store: TrustStore) -> bool:
    if store.contains_certificate(cert):
        return True
    return any(_issued_by(cert, anchor) for anchor in store.issuers_of(cert))


def _next_in_path(cert: x509.Certificate, presented: List[x509.Certificate]) -> Optional[x509.Certificate]:
    for candidate in presented:
        if candidate is not cert and candidate.subject == cert.issuer and _issued_by(cert, candidate):
            return candidate
    return None


def is_trusted(chain: CertificateChain, store: TrustStore) -> bool:
    """
    Walks the presented chain from the leaf towards a root. The chain is
    trusted as soon as a certificate on that path is an anchor or is signed
    by one. Servers may send extra or out-of-order certificates, so each
    issuer is looked up among everything presented.
    """
    presented = [load_certificate(der) for der in chain]
    if not presented:
        return False

    cert = presented[0]
    # A path can't be longer than the chain; this also stops issuer loops
    for _ in range(len(presented)):
        if _anchored(cert, store):
            return True
        cert = _next_in_path(cert, presented)
        if cert is None:
            break
    return False


def ensure_trusted(chain: CertificateChain, store: TrustStore) -> TrustOutcome:
    """
    Returns ALREADY_TRUSTED without touching the store when the chain
    validates, otherwise adds the leaf as a trust anchor and returns ADDED.

    Raises:
        CertificateParseError: a presented certificate is not valid DER.
        TrustStoreError: the store could not be grown.
    """
    if is_trusted(chain, store):
        return TrustOutcome.already_trusted()

    leaf = load_certificate(chain.leaf)
    logger.warning(f"Trusting previously unknown certificate {leaf.subject.rfc4514_string()}")
    store.add(chain.leaf)
    return TrustOutcome.added()
