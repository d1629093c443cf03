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
Environment configuration.

  CF_TARGET          https URL of the platform API whose certificate to trust
  TRUST_CERTS        comma separated host[:port] list, port defaults to 443
  TRUST_BUNDLE_PATH  where the grown CA bundle is published
  TRUST_TIMEOUT_MS   per-connection timeout, default 5000
"""

import os
import logging
import tempfile
from dataclasses import dataclass
from typing import Mapping, Optional

from cf_truster.fetcher import DEFAULT_TIMEOUT_MS

logger = logging.getLogger(__name__)

CF_TARGET = "CF_TARGET"
TRUST_CERTS = "TRUST_CERTS"
TRUST_BUNDLE_PATH = "TRUST_BUNDLE_PATH"
TRUST_TIMEOUT_MS = "TRUST_TIMEOUT_MS"


def default_bundle_path() -> str:
    return os.path.join(tempfile.gettempdir(), f"cf-truster-{os.getpid()}.pem")


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


@dataclass
class TrusterConfig:
    cf_target: Optional[str] = None
    trust_certs: Optional[str] = None
    bundle_path: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "TrusterConfig":
        """Reads the configuration; empty values count as unset."""
        if environ is None:
            environ = os.environ

        timeout_ms = DEFAULT_TIMEOUT_MS
        raw_timeout = _non_empty(environ.get(TRUST_TIMEOUT_MS))
        if raw_timeout:
            try:
                timeout_ms = int(raw_timeout)
                if timeout_ms <= 0:
                    raise ValueError("must be positive")
            except ValueError as e:
                logger.warning(f"Ignoring {TRUST_TIMEOUT_MS}='{raw_timeout}' ({e}), using {DEFAULT_TIMEOUT_MS} ms")
                timeout_ms = DEFAULT_TIMEOUT_MS

        return cls(
            cf_target=_non_empty(environ.get(CF_TARGET)),
            trust_certs=_non_empty(environ.get(TRUST_CERTS)),
            bundle_path=_non_empty(environ.get(TRUST_BUNDLE_PATH)),
            timeout_ms=timeout_ms,
        )

    @property
    def configured(self) -> bool:
        """True when there is anything to trust."""
        return bool(self.cf_target or self.trust_certs)
