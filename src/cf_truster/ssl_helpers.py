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
CA bundle resolution and publication.

The initial trust material is looked up in priority order:
  1. Explicit override via --ca-bundle CLI arg
  2. REQUESTS_CA_BUNDLE environment variable
  3. CURL_CA_BUNDLE environment variable
  4. SSL_CERT_FILE environment variable
  5. The certifi bundle

Once certificates have been trusted the grown bundle is published back
through the same variables so every later TLS client in the process sees it.
"""

import os
import logging

import certifi

logger = logging.getLogger(__name__)

CA_BUNDLE_ENV_VARS = ("REQUESTS_CA_BUNDLE", "CURL_CA_BUNDLE", "SSL_CERT_FILE")

# Variables pointed at the published bundle. requests reads REQUESTS_CA_BUNDLE
# first, OpenSSL's default verify paths read SSL_CERT_FILE.
PUBLISH_ENV_VARS = ("SSL_CERT_FILE", "REQUESTS_CA_BUNDLE")

# Module-level override set by the CLI --ca-bundle flag
_ca_bundle_override: str | None = None


def set_ca_bundle_override(path: str) -> None:
    """Set an explicit CA bundle path from a CLI argument."""
    global _ca_bundle_override
    _ca_bundle_override = path
    logger.info(f"CA bundle override set to: {path}")


def get_ca_bundle() -> str | bool:
    """
    Resolve the CA bundle configured for outbound HTTPS requests.

    Returns:
        str: Path to a CA bundle file, or
        bool: True when nothing is configured (certifi / OS defaults).
    """
    if _ca_bundle_override:
        return _ca_bundle_override

    for var in CA_BUNDLE_ENV_VARS:
        value = os.environ.get(var)
        if value:
            logger.debug(f"Using CA bundle from {var}: {value}")
            return value

    return True


def default_ca_file() -> str:
    """Path of the PEM file holding the platform's default trust anchors."""
    bundle = get_ca_bundle()
    if isinstance(bundle, str):
        return bundle
    return certifi.where()


def configure_ssl_env(bundle: str) -> None:
    """
    Point SSL_CERT_FILE and REQUESTS_CA_BUNDLE at a published bundle so that
    requests, httpx and anything calling ssl.create_default_context() after
    this point trust it.
    """
    for var in PUBLISH_ENV_VARS:
        if os.environ.get(var) != bundle:
            os.environ[var] = bundle
            logger.debug(f"Set {var}={bundle}")
