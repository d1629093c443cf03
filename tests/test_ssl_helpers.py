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
from unittest.mock import patch
import os

from cf_truster import ssl_helpers


class TestGetCaBundle(unittest.TestCase):
    """Test CA bundle resolution priority."""

    def setUp(self):
        # Reset any module-level override between tests
        ssl_helpers._ca_bundle_override = None

    def tearDown(self):
        ssl_helpers._ca_bundle_override = None

    def test_default_returns_true(self):
        """With no env vars and no override, system defaults are used."""
        with patch.dict(os.environ, {}, clear=True):
            self.assertIs(ssl_helpers.get_ca_bundle(), True)

    def test_ssl_cert_file(self):
        with patch.dict(os.environ, {"SSL_CERT_FILE": "/path/ssl.pem"}, clear=True):
            self.assertEqual(ssl_helpers.get_ca_bundle(), "/path/ssl.pem")

    def test_requests_ca_bundle_beats_all_env(self):
        with patch.dict(os.environ, {
            "SSL_CERT_FILE": "/path/ssl.pem",
            "CURL_CA_BUNDLE": "/path/curl.pem",
            "REQUESTS_CA_BUNDLE": "/path/requests.pem",
        }, clear=True):
            self.assertEqual(ssl_helpers.get_ca_bundle(), "/path/requests.pem")

    def test_cli_override_beats_everything(self):
        with patch.dict(os.environ, {"REQUESTS_CA_BUNDLE": "/path/requests.pem"}, clear=True):
            ssl_helpers.set_ca_bundle_override("/path/cli.pem")
            self.assertEqual(ssl_helpers.get_ca_bundle(), "/path/cli.pem")


class TestDefaultCaFile(unittest.TestCase):
    def setUp(self):
        ssl_helpers._ca_bundle_override = None

    def tearDown(self):
        ssl_helpers._ca_bundle_override = None

    @patch('cf_truster.ssl_helpers.certifi.where', return_value="/certifi/cacert.pem")
    def test_falls_back_to_certifi(self, mock_where):
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(ssl_helpers.default_ca_file(), "/certifi/cacert.pem")

    def test_configured_bundle_wins(self):
        with patch.dict(os.environ, {"CURL_CA_BUNDLE": "/path/curl.pem"}, clear=True):
            self.assertEqual(ssl_helpers.default_ca_file(), "/path/curl.pem")


class TestConfigureSslEnv(unittest.TestCase):
    def test_points_clients_at_bundle(self):
        with patch.dict(os.environ, {"REQUESTS_CA_BUNDLE": "/old.pem"}, clear=True):
            ssl_helpers.configure_ssl_env("/run/trusted.pem")
            self.assertEqual(os.environ["SSL_CERT_FILE"], "/run/trusted.pem")
            self.assertEqual(os.environ["REQUESTS_CA_BUNDLE"], "/run/trusted.pem")


if __name__ == '__main__':
    unittest.main()
