"""Tests for listen option resolution"""

import unittest

from devlisten.certificates import HTTPSOptions
from devlisten.options import ListenOptions, normalize_https, resolve_config
from devlisten.ports import PortRequest

ARGV = ["app"]


def resolve(env=None, argv=ARGV, **kwargs):
    return resolve_config(ListenOptions(**kwargs), env=env or {}, argv=argv)


class TestDefaults(unittest.TestCase):
    def test_development_defaults(self):
        config = resolve()
        self.assertEqual(config.port, 3000)
        self.assertEqual(config.hostname, "localhost")
        self.assertFalse(config.public)
        self.assertFalse(config.https)
        self.assertEqual(config.base_url, "/")
        self.assertTrue(config.show_url)
        self.assertTrue(config.qr)
        self.assertTrue(config.auto_close)
        self.assertFalse(config.open)
        self.assertFalse(config.clipboard)
        self.assertFalse(config.tunnel)
        self.assertEqual(config.scheme, "http")

    def test_production_is_public(self):
        config = resolve(env={"NODE_ENV": "production"})
        self.assertTrue(config.is_prod)
        self.assertTrue(config.public)
        self.assertEqual(config.hostname, "")

    def test_host_flag_makes_public(self):
        config = resolve(argv=["app", "--host"])
        self.assertTrue(config.public)
        self.assertEqual(config.hostname, "")

        config = resolve(argv=["app", "--host=0.0.0.0"])
        self.assertTrue(config.public)

    def test_host_flag_in_program_name_ignored(self):
        config = resolve(argv=["--host"])
        self.assertFalse(config.public)


class TestEnvironment(unittest.TestCase):
    def test_env_seeds_port_and_host(self):
        config = resolve(env={"PORT": "4000", "HOST": "192.168.1.5"})
        self.assertEqual(config.port, "4000")
        self.assertEqual(config.hostname, "192.168.1.5")

    def test_caller_input_beats_env(self):
        config = resolve(env={"PORT": "4000", "HOST": "192.168.1.5"}, port=5000, hostname="localhost")
        self.assertEqual(config.port, 5000)
        self.assertEqual(config.hostname, "localhost")

    def test_empty_port_env_ignored(self):
        self.assertEqual(resolve(env={"PORT": ""}).port, 3000)

    def test_port_request_passes_through(self):
        request = PortRequest(port=4000, port_range=(4000, 4010))
        self.assertIs(resolve(port=request).port, request)

    def test_test_mode_silences_output(self):
        config = resolve(env={"NODE_ENV": "test"}, show_url=True, open=True, clipboard=True)
        self.assertTrue(config.is_test)
        self.assertFalse(config.show_url)
        self.assertFalse(config.open)
        self.assertFalse(config.clipboard)

    def test_production_disables_open_and_clipboard(self):
        config = resolve(env={"NODE_ENV": "production"}, open=True, clipboard=True)
        self.assertFalse(config.open)
        self.assertFalse(config.clipboard)
        self.assertTrue(config.show_url)

    def test_explicit_mode_flags_beat_env(self):
        config = resolve(env={"NODE_ENV": "production"}, is_prod=False)
        self.assertFalse(config.is_prod)
        self.assertFalse(config.public)


class TestExposureConflicts(unittest.TestCase):
    """public never contradicts the hostname class after resolution"""

    def test_loopback_hostname_implies_private(self):
        config = resolve(hostname="127.0.0.1")
        self.assertFalse(config.public)
        self.assertEqual(config.hostname, "127.0.0.1")

    def test_any_hostname_implies_public(self):
        config = resolve(hostname="0.0.0.0")
        self.assertTrue(config.public)
        self.assertEqual(config.hostname, "0.0.0.0")

    def test_public_with_loopback_hostname_downgraded(self):
        with self.assertLogs("devlisten.options", level="WARNING") as logs:
            config = resolve(public=True, hostname="localhost")
        self.assertFalse(config.public)
        self.assertEqual(config.hostname, "localhost")
        self.assertIn("private host", logs.output[0])

    def test_private_with_any_hostname_rewritten(self):
        with self.assertLogs("devlisten.options", level="WARNING") as logs:
            config = resolve(public=False, hostname="0.0.0.0")
        self.assertFalse(config.public)
        self.assertEqual(config.hostname, "localhost")
        self.assertIn("public host", logs.output[0])

    def test_public_without_hostname_binds_everything(self):
        config = resolve(public=True)
        self.assertTrue(config.public)
        self.assertEqual(config.hostname, "")

    def test_specific_hostname_keeps_explicit_public(self):
        config = resolve(public=True, hostname="192.168.1.5")
        self.assertTrue(config.public)
        self.assertEqual(config.hostname, "192.168.1.5")

    def test_invariant_over_combinations(self):
        from devlisten.addresses import is_anyhost, is_localhost

        for public in (None, True, False):
            for hostname in (None, "", "0.0.0.0", "::", "localhost", "127.0.0.1", "::1", "10.0.0.2"):
                with self.subTest(public=public, hostname=hostname):
                    config = resolve(public=public, hostname=hostname)
                    if config.public:
                        self.assertFalse(is_localhost(config.hostname))
                    else:
                        self.assertFalse(is_anyhost(config.hostname))


class TestHTTPSOption(unittest.TestCase):
    def test_https_true_becomes_options(self):
        config = resolve(https=True)
        self.assertIsInstance(config.https, HTTPSOptions)
        self.assertEqual(config.scheme, "https")

    def test_https_false(self):
        self.assertFalse(normalize_https(False))
        self.assertFalse(normalize_https(None))

    def test_https_mapping(self):
        options = normalize_https({"cert": "c.pem", "key": "k.pem", "validityDays": 7})
        self.assertEqual(options.cert, "c.pem")
        self.assertEqual(options.validity_days, 7)

    def test_unknown_kwargs_rejected(self):
        with self.assertRaises(TypeError):
            ListenOptions.from_kwargs(prot=3000)


if __name__ == "__main__":
    unittest.main()
