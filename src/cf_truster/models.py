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
Data models for the certificate truster.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

DEFAULT_HTTPS_PORT = 443


@dataclass(frozen=True)
class Target:
    """A host/port pair whose certificate should be trusted."""
    host: str
    port: int = DEFAULT_HTTPS_PORT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class CertificateChain:
    """
    DER-encoded certificates exactly as presented by a peer, leaf first.
    """
    certificates: Tuple[bytes, ...]

    def __post_init__(self):
        # Accept any iterable of bytes but always store an immutable tuple
        object.__setattr__(self, "certificates", tuple(bytes(c) for c in self.certificates))

    @property
    def leaf(self) -> bytes:
        if not self.certificates:
            raise ValueError("certificate chain is empty")
        return self.certificates[0]

    def __len__(self) -> int:
        return len(self.certificates)

    def __iter__(self):
        return iter(self.certificates)


class TrustStatus(Enum):
    ALREADY_TRUSTED = "already trusted"
    ADDED = "added"
    FAILED = "failed"


@dataclass(frozen=True)
class TrustOutcome:
    """Per-target result of a trust decision."""
    status: TrustStatus
    reason: Optional[str] = None

    @classmethod
    def already_trusted(cls) -> "TrustOutcome":
        return cls(TrustStatus.ALREADY_TRUSTED)

    @classmethod
    def added(cls) -> "TrustOutcome":
        return cls(TrustStatus.ADDED)

    @classmethod
    def failed(cls, reason: str) -> "TrustOutcome":
        return cls(TrustStatus.FAILED, reason)

    @property
    def ok(self) -> bool:
        return self.status is not TrustStatus.FAILED

    def __str__(self) -> str:
        if self.reason:
            return f"{self.status.value}: {self.reason}"
        return self.status.value


@dataclass(frozen=True)
class TargetResult:
    target: Target
    outcome: TrustOutcome


@dataclass
class TrustReport:
    """
    Ordered results of one truster run.
    A report with no results means nothing was configured.
    """
    results: List[TargetResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.outcome.ok for r in self.results)

    @property
    def failure(self) -> Optional[TargetResult]:
        for result in self.results:
            if not result.outcome.ok:
                return result
        return None

    @property
    def added(self) -> List[Target]:
        return [r.target for r in self.results if r.outcome.status is TrustStatus.ADDED]
