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
Exception hierarchy for the certificate truster.

ConfigParseError is never fatal. Everything else raised while trusting a
target aborts startup.
"""

from typing import Optional

from cf_truster.models import Target


class TrusterError(Exception):
    """Base class for all truster errors."""


class ConfigParseError(TrusterError, ValueError):
    """A CF_TARGET value or TRUST_CERTS entry could not be turned into a target."""


class FetchError(TrusterError):
    """Observing a target's certificate chain failed."""

    def __init__(self, target: Target, message: str):
        super().__init__(message)
        self.target = target


class ConnectError(FetchError):
    """Connection refused, timed out, or the host name did not resolve."""


class HandshakeError(FetchError):
    """The TLS handshake failed before the peer's certificates were seen."""


class CertificateParseError(TrusterError):
    """A presented certificate is not valid DER."""


class TrustStoreError(TrusterError):
    """The trust store could not be read or grown."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
