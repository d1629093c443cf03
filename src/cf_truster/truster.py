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
Trusts the certificates of the hosts named by CF_TARGET and TRUST_CERTS.

If CF_TARGET is an https:// URL, the certificate of that host is fetched
and trusted unless it already is. TRUST_CERTS adds a comma separated list of
host[:port] entries handled the same way. With neither set nothing happens.

Call initialize() once during startup, before the application makes TLS
calls that depend on these hosts. A failed report means startup must not
continue; deciding to exit is left to the caller.
"""

import logging
import threading
from typing import Callable, Mapping, Optional

from cf_truster.config import TrusterConfig, default_bundle_path
from cf_truster.decision import ensure_trusted
from cf_truster.exceptions import TrusterError
from cf_truster.fetcher import fetch_certificate_chain
from cf_truster.models import CertificateChain, Target, TargetResult, TrustOutcome, TrustReport
from cf_truster.targets import resolve_targets
from cf_truster.trust_store import TrustStore, default_trust_store

logger = logging.getLogger(__name__)

Fetcher = Callable[[Target, int], CertificateChain]


class CertificateTruster:
    """
    Runs fetch-then-trust for every configured target, one at a time,
    stopping at the first failure.
    """

    def __init__(self, store: Optional[TrustStore] = None, fetch: Fetcher = fetch_certificate_chain,
                 timeout_ms: Optional[int] = None):
        self._store = store
        self.fetch = fetch
        self.timeout_ms = timeout_ms

    def store_for(self, config: TrusterConfig) -> TrustStore:
        if self._store is None:
            self._store = default_trust_store(config.bundle_path or default_bundle_path())
        return self._store

    def trust_target(self, target: Target, store: TrustStore, timeout_ms: int) -> TargetResult:
        try:
            chain = self.fetch(target, timeout_ms)
            outcome = ensure_trusted(chain, store)
        except TrusterError as e:
            # ConnectError, HandshakeError and decision engine errors alike
            logger.error(f"trusting certificate at {target.host}:{target.port} failed: {e}")
            return TargetResult(target, TrustOutcome.failed(str(e)))
        except Exception as e:
            logger.exception(f"trusting certificate at {target.host}:{target.port} failed unexpectedly")
            return TargetResult(target, TrustOutcome.failed(f"{e.__class__.__name__}: {e}"))

        logger.info(f"trusting certificate at {target.host}:{target.port} succeeded ({outcome})")
        return TargetResult(target, outcome)

    def run(self, environ: Optional[Mapping[str, str]] = None) -> TrustReport:
        return self.run_config(TrusterConfig.from_environ(environ))

    def run_config(self, config: TrusterConfig) -> TrustReport:
        report = TrustReport()
        if not config.configured:
            logger.debug("Neither CF_TARGET nor TRUST_CERTS is set, nothing to trust")
            return report

        # CF_TARGET first, then TRUST_CERTS in order, repeats dropped
        targets = resolve_targets(config.cf_target, config.trust_certs)
        if not targets:
            return report

        store = self.store_for(config)
        timeout_ms = self.timeout_ms or config.timeout_ms
        for target in targets:
            result = self.trust_target(target, store, timeout_ms)
            report.results.append(result)
            if not result.outcome.ok:
                break
        return report


def trust_certificates(environ: Optional[Mapping[str, str]] = None,
                       store: Optional[TrustStore] = None) -> TrustReport:
    """Runs the truster once against the given (or process default) store."""
    return CertificateTruster(store).run(environ)


_report: Optional[TrustReport] = None
_init_lock = threading.Lock()


def initialize(environ: Optional[Mapping[str, str]] = None,
               store: Optional[TrustStore] = None) -> TrustReport:
    """
    Startup hook. The first call trusts the configured certificates; later
    calls return the same report without touching the network again.
    """
    global _report
    with _init_lock:
        if _report is None:
            _report = trust_certificates(environ, store)
        return _report
