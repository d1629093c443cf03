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
Command line entry point and startup hook.

    cf-truster [options] [-- COMMAND ARGS...]

Trusts the certificates named by CF_TARGET / TRUST_CERTS, then (optionally)
replaces itself with COMMAND so the application starts with the grown CA
bundle already published in its environment.
"""

import argparse
import os
import sys
import logging
from pathlib import Path
from typing import List, Optional

import requests
from rich.console import Console
from rich.logging import RichHandler

from cf_truster.config import CF_TARGET, TRUST_BUNDLE_PATH, TRUST_CERTS, TRUST_TIMEOUT_MS, TrusterConfig, default_bundle_path
from cf_truster.fetcher import DEFAULT_TIMEOUT_MS
from cf_truster.models import Target, TrustReport
from cf_truster.ssl_helpers import set_ca_bundle_override
from cf_truster.trust_store import default_trust_store
from cf_truster.truster import initialize

logger = logging.getLogger(__name__)


def setup_logging(verbosity: int, quiet: bool = False, log_file: Optional[str] = None):
    """
    Configures logging:
    - Console (stderr, rich): default=INFO, -q=ERROR, -v=DEBUG
    - File: --log-file (DEBUG)
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    if quiet:
        level = logging.ERROR
    elif verbosity >= 1:
        level = logging.DEBUG
    else:
        level = logging.INFO

    console_handler = RichHandler(console=Console(stderr=True), show_path=False)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root.addHandler(file_handler)

    # Silence connection pool chatter unless asked for
    if verbosity < 2:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cf-truster",
        description="Trust the TLS certificates of the hosts named by CF_TARGET and TRUST_CERTS",
    )
    parser.add_argument("--cf-target", help="https URL whose certificate to trust (overrides CF_TARGET)")
    parser.add_argument("--trust-certs", help="Comma-separated host[:port] list (overrides TRUST_CERTS)")
    parser.add_argument("--ca-bundle", help="CA bundle to start from instead of the system/certifi defaults")
    parser.add_argument("--bundle-out", help="Where to publish the grown CA bundle (overrides TRUST_BUNDLE_PATH)")
    parser.add_argument("--timeout", type=int, help="Per-connection timeout in milliseconds (default: 5000)")
    parser.add_argument("--verify", action="store_true", help="Confirm each target with a verifying HTTPS request afterwards")
    parser.add_argument("--log-file", help="Also write DEBUG logs to this file")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase output verbosity (-v=DEBUG, -vv also shows urllib3)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report errors")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to exec once trust is established")
    return parser


def _environment(args) -> dict:
    """The process environment with CLI overrides applied."""
    environ = dict(os.environ)
    overrides = {
        CF_TARGET: args.cf_target,
        TRUST_CERTS: args.trust_certs,
        TRUST_BUNDLE_PATH: args.bundle_out,
        TRUST_TIMEOUT_MS: str(args.timeout) if args.timeout else None,
    }
    for key, value in overrides.items():
        if value:
            environ[key] = value
    return environ


def verify_targets(targets: List[Target], timeout_ms: int = DEFAULT_TIMEOUT_MS) -> int:
    """
    Sends a HEAD request to each target through a requests session that
    verifies against the trust store. Certificates trusted on first use often don't match the host
    name, so failures are reported but never fatal.

    Returns:
        Number of targets that failed verification.
    """
    session = default_trust_store().session()
    failures = 0
    for target in targets:
        url = f"https://{target.host}:{target.port}/"
        try:
            session.head(url, timeout=timeout_ms / 1000.0, allow_redirects=False)
            logger.info(f"    > verified {target}")
        except requests.exceptions.SSLError as e:
            failures += 1
            logger.warning(f"    [!] {target} is trusted but does not verify with requests: {e}")
        except requests.RequestException as e:
            failures += 1
            logger.warning(f"    [!] could not verify {target}: {e}")
    return failures


def _discard_private_bundle(environ: dict):
    """
    Removes the temp bundle the default store published when no bundle path
    was configured. Without a command to inherit the environment nothing
    else can use it.
    """
    if TrusterConfig.from_environ(environ).bundle_path:
        return
    path = default_bundle_path()
    try:
        os.unlink(path)
        logger.debug(f"Removed private CA bundle {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Cannot remove private CA bundle {path}: {e}")


def _exec(command: List[str]) -> int:
    logger.debug(f"Exec: {' '.join(command)}")
    try:
        os.execvpe(command[0], command, os.environ)
    except OSError as e:
        logger.error(f"Cannot run {command[0]}: {e}")
        return 127
    return 0


def main():
    try:
        sys.exit(_main_cli())
    except KeyboardInterrupt:
        # Use stderr so it captures attention even if stdout is redirected
        sys.stderr.write("\n\033[31m[-] Cancelled by user\033[0m\n")
        sys.exit(130)


def _main_cli(argv: Optional[List[str]] = None) -> int:
    """
    Parses arguments, establishes trust and returns the process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, quiet=args.quiet, log_file=args.log_file)

    if args.ca_bundle:
        set_ca_bundle_override(args.ca_bundle)

    command = args.command
    if command and command[0] == "--":
        command = command[1:]

    environ = _environment(args)
    exec_command = False
    try:
        report: TrustReport = initialize(environ)
        if not report.ok:
            failed = report.failure
            logger.error(f"Aborting startup: certificate at {failed.target} could not be trusted")
            return 1

        if report.results:
            added = report.added
            logger.info(f"Trust established for {len(report.results)} target(s), {len(added)} newly trusted")
            if args.verify:
                verify_targets([r.target for r in report.results], args.timeout or DEFAULT_TIMEOUT_MS)
        exec_command = bool(command)
    finally:
        # Only an exec'd command inherits the published bundle
        if not exec_command:
            _discard_private_bundle(environ)

    if exec_command:
        return _exec(command)
    return 0


if __name__ == "__main__":
    main()
