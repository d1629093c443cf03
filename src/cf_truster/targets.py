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
Turns CF_TARGET / TRUST_CERTS style configuration strings into targets.

  CF_TARGET    an https:// URL, e.g. https://api.run.example.com
  TRUST_CERTS  comma separated host[:port] entries, port defaults to 443

Nothing here touches the network. Bad input is dropped, never fatal.
"""

import re
import logging
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from cf_truster.exceptions import ConfigParseError
from cf_truster.models import DEFAULT_HTTPS_PORT, Target

logger = logging.getLogger(__name__)

MAX_PORT = 65535
_PORT_RE = re.compile(r"[+-]?[0-9]+")


def parse_https_url(url: str) -> Optional[Target]:
    """
    Returns the target for an https URL, or None for any other scheme.

    Raises:
        ConfigParseError: if the value is not a syntactically valid URL.
    """
    try:
        parts = urlsplit(url.strip())
        # .port validates the number and its range
        port = parts.port
    except ValueError as e:
        raise ConfigParseError(str(e)) from e

    if not parts.scheme or not parts.netloc:
        raise ConfigParseError("no scheme or authority")

    if parts.scheme.lower() != "https":
        return None

    host = parts.hostname
    if not host:
        return None
    return Target(host, port if port else DEFAULT_HTTPS_PORT)


def parse_host_port(entry: str) -> Target:
    """
    Parses one TRUST_CERTS entry. A missing or non-numeric port means 443.

    Raises:
        ConfigParseError: for an empty host or a port outside 1-65535.
    """
    parts = entry.strip().split(":")
    host = parts[0].strip().lower()
    port = DEFAULT_HTTPS_PORT
    if len(parts) > 1:
        digits = parts[1].strip()
        # Signed ASCII digits only; "1_000" or non-ASCII digits mean 443
        if _PORT_RE.fullmatch(digits):
            port = int(digits)

    if not host:
        raise ConfigParseError(f"empty host in '{entry}'")
    if not 0 < port <= MAX_PORT:
        raise ConfigParseError(f"port {port} out of range in '{entry}'")
    return Target(host, port)


def resolve_primary_target(raw: Optional[str]) -> Optional[Target]:
    """Resolves CF_TARGET. Only https URLs produce a target."""
    if raw is None or not raw.strip():
        return None
    try:
        target = parse_https_url(raw)
    except ConfigParseError as e:
        logger.error(f"Cannot parse CF_TARGET '{raw}' as a URL: {e}")
        return None

    if target is None:
        logger.debug(f"CF_TARGET '{raw}' is not an https URL, skipping")
    return target


def resolve_trust_list(raw: Optional[str]) -> List[Target]:
    """Resolves TRUST_CERTS into targets in the order they were listed."""
    if raw is None:
        return []

    targets = []
    for entry in raw.split(","):
        if not entry.strip():
            continue
        try:
            targets.append(parse_host_port(entry))
        except ConfigParseError as e:
            logger.debug(f"Dropping TRUST_CERTS entry: {e}")
    return _unique(targets)


def resolve_targets(raw_primary_target: Optional[str], raw_trust_list: Optional[str]) -> List[Target]:
    """
    Resolves both configuration values into one ordered list of distinct
    targets, primary target first.
    """
    primary = resolve_primary_target(raw_primary_target)
    listed = resolve_trust_list(raw_trust_list)
    return _unique(([primary] if primary else []) + listed)


def _unique(targets: Iterable[Target]) -> List[Target]:
    seen = set()
    out = []
    for target in targets:
        if target not in seen:
            seen.add(target)
            out.append(target)
    return out
