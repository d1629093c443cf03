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

import unittest

from cf_truster import targets
from cf_truster.exceptions import ConfigParseError
from cf_truster.models import Target


class TestResolvePrimaryTarget(unittest.TestCase):
    """CF_TARGET handling."""

    def test_https_without_port_defaults_to_443(self):
        self.assertEqual(targets.resolve_primary_target("https://example.org"), Target("example.org", 443))

    def test_https_with_explicit_port(self):
        self.assertEqual(targets.resolve_primary_target("https://example.org:8443"), Target("example.org", 8443))

    def test_path_and_case_are_ignored(self):
        self.assertEqual(
            targets.resolve_primary_target("HTTPS://API.Example.org/v2/info"),
            Target("api.example.org", 443),
        )

    def test_http_yields_nothing_silently(self):
        with self.assertNoLogs("cf_truster.targets", level="ERROR"):
            self.assertIsNone(targets.resolve_primary_target("http://example.org"))

    def test_absent_or_blank(self):
        self.assertIsNone(targets.resolve_primary_target(None))
        self.assertIsNone(targets.resolve_primary_target("   "))

    def test_invalid_url_is_logged_not_raised(self):
        with self.assertLogs("cf_truster.targets", level="ERROR") as logs:
            self.assertIsNone(targets.resolve_primary_target("not a url"))
        self.assertIn("Cannot parse CF_TARGET 'not a url'", logs.output[0])

    def test_out_of_range_port_is_a_parse_error(self):
        with self.assertLogs("cf_truster.targets", level="ERROR"):
            self.assertIsNone(targets.resolve_primary_target("https://example.org:99999"))

    def test_broken_ipv6_literal_is_a_parse_error(self):
        with self.assertRaises(ConfigParseError):
            targets.parse_https_url("https://[::1")


class TestResolveTrustList(unittest.TestCase):
    """TRUST_CERTS handling."""

    def test_valid_entries(self):
        self.assertEqual(
            targets.resolve_trust_list("a.example.com,b.example.com:8443"),
            [Target("a.example.com", 443), Target("b.example.com", 8443)],
        )

    def test_missing_or_non_numeric_port_defaults_to_443(self):
        self.assertEqual(
            targets.resolve_trust_list("a.example.com:,b.example.com:https"),
            [Target("a.example.com", 443), Target("b.example.com", 443)],
        )

    def test_only_plain_ascii_digits_are_a_port(self):
        # int() would accept these, but they are not port numbers
        self.assertEqual(
            targets.resolve_trust_list("a.example.com:1_000,b.example.com:\u0668\u0664\u0664\u0663,c.example.com:+8443"),
            [Target("a.example.com", 443), Target("b.example.com", 443), Target("c.example.com", 8443)],
        )

    def test_bad_port_does_not_affect_other_entries(self):
        result = targets.resolve_trust_list("good.example.com:9443,badhost:notaport,other.example.com")
        self.assertIn(Target("good.example.com", 9443), result)
        self.assertIn(Target("other.example.com", 443), result)
        # A non-numeric port falls back to the default
        self.assertIn(Target("badhost", 443), result)

    def test_empty_host_and_out_of_range_ports_are_dropped(self):
        result = targets.resolve_trust_list(":443,zero.example.com:0,big.example.com:65536,ok.example.com:65535")
        self.assertEqual(result, [Target("ok.example.com", 65535)])

    def test_whitespace_and_empty_entries(self):
        self.assertEqual(
            targets.resolve_trust_list(" a.example.com : 444 ,, "),
            [Target("a.example.com", 444)],
        )

    def test_duplicates_collapse_in_order(self):
        self.assertEqual(
            targets.resolve_trust_list("b.example.com,a.example.com,b.example.com:443"),
            [Target("b.example.com", 443), Target("a.example.com", 443)],
        )

    def test_absent(self):
        self.assertEqual(targets.resolve_trust_list(None), [])

    def test_parse_host_port_raises_for_rejected_entries(self):
        with self.assertRaises(ConfigParseError):
            targets.parse_host_port(":8443")
        with self.assertRaises(ConfigParseError):
            targets.parse_host_port("example.com:-1")


class TestResolveTargets(unittest.TestCase):
    def test_primary_first_then_list(self):
        self.assertEqual(
            targets.resolve_targets("https://api.example.org", "x.example.org:1443,api.example.org"),
            [Target("api.example.org", 443), Target("x.example.org", 1443)],
        )

    def test_nothing_configured(self):
        self.assertEqual(targets.resolve_targets(None, None), [])


if __name__ == '__main__':
    unittest.main()
