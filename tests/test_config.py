"""Tests for project configuration and command-line option merging"""

import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from devlisten.certificates import HTTPSOptions
from devlisten.config import ProjectConfig
from devlisten.main import build_parser, collect_options, load_app, main, parse_https_args


class TestProjectConfig(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_no_config_file(self):
        config = ProjectConfig(self.temp_dir)
        self.assertFalse(config.exists())
        self.assertEqual(config.options(), {})

    def test_found_in_parent_directory(self):
        (self.temp_dir / "devlisten.yml").write_text("name: api\nport: 4000\nhost: 0.0.0.0\n", encoding="utf-8")
        nested = self.temp_dir / "src" / "app"
        nested.mkdir(parents=True)

        config = ProjectConfig(nested)

        self.assertTrue(config.exists())
        self.assertEqual(config.name, "api")
        self.assertEqual(config.port, 4000)
        self.assertEqual(config.options(), {"name": "api", "port": 4000, "hostname": "0.0.0.0"})

    def test_yaml_extension(self):
        (self.temp_dir / "devlisten.yaml").write_text("https:\n  validity_days: 7\n", encoding="utf-8")
        config = ProjectConfig(self.temp_dir)
        self.assertEqual(config.https, {"validity_days": 7})

    def test_unknown_keys_ignored(self):
        (self.temp_dir / "devlisten.yml").write_text("name: api\ndomain: x\n", encoding="utf-8")
        with self.assertLogs("devlisten.config", level="WARNING"):
            config = ProjectConfig(self.temp_dir)
        self.assertNotIn("domain", config.options())

    def test_broken_file_reported_and_ignored(self):
        (self.temp_dir / "devlisten.yml").write_text("name: [unclosed\n", encoding="utf-8")
        with patch("devlisten.config.print_error") as print_error:
            config = ProjectConfig(self.temp_dir)
        print_error.assert_called_once()
        self.assertEqual(config.options(), {})


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.parser = build_parser()
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_plain_https_flag(self):
        args = self.parser.parse_args(["main:app", "--https"])
        self.assertIs(parse_https_args(args), True)

    def test_no_https_flags(self):
        args = self.parser.parse_args(["main:app"])
        self.assertIsNone(parse_https_args(args))

    def test_certificate_flags_imply_https(self):
        args = self.parser.parse_args(
            ["main:app", "--https-cert", "cert.pem", "--https-key", "key.pem", "--https-domains", "a.test, b.test"]
        )
        options = parse_https_args(args)
        self.assertIsInstance(options, HTTPSOptions)
        self.assertEqual(options.cert, "cert.pem")
        self.assertEqual(options.key, "key.pem")
        self.assertEqual(options.domains, ["a.test", "b.test"])

    def test_bare_host_flag_means_all_interfaces(self):
        args = self.parser.parse_args(["main:app", "--host"])
        self.assertEqual(args.hostname, "")

    def test_flags_override_project_file(self):
        (self.temp_dir / "devlisten.yml").write_text("port: 4000\nname: api\nqr: false\n", encoding="utf-8")
        project = ProjectConfig(self.temp_dir)
        args = self.parser.parse_args(["main:app", "--port", "5000", "--no-public"])

        options = collect_options(args, project)

        self.assertEqual(options["port"], "5000")
        self.assertEqual(options["name"], "api")
        self.assertIs(options["qr"], False)
        self.assertIs(options["public"], False)
        self.assertNotIn("https", options)


class TestWorkingDirectory(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.module_name = f"devlisten_cwd_app_{id(self)}"
        (self.temp_dir / f"{self.module_name}.py").write_text("app = object()\n", encoding="utf-8")
        self.saved_path = list(sys.path)

    def tearDown(self):
        sys.path[:] = self.saved_path
        sys.modules.pop(self.module_name, None)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_cwd_flag(self):
        args = build_parser().parse_args(["main:app", "--cwd", "services/api"])
        self.assertEqual(args.cwd, "services/api")

    def test_load_app_from_directory(self):
        app = load_app(f"{self.module_name}:app", self.temp_dir)
        self.assertIs(app, sys.modules[self.module_name].app)
        self.assertEqual(sys.path[0], str(self.temp_dir))

    @patch("devlisten.main.setup_logging")
    @patch("devlisten.main.serve", new_callable=AsyncMock)
    def test_main_reads_app_and_project_file_from_cwd(self, mock_serve, _mock_logging):
        (self.temp_dir / "devlisten.yml").write_text("name: from-cwd\nport: 4100\n", encoding="utf-8")

        main([f"{self.module_name}:app", "--cwd", str(self.temp_dir)])

        app, options = mock_serve.await_args.args
        self.assertIs(app, sys.modules[self.module_name].app)
        self.assertEqual(options["name"], "from-cwd")
        self.assertEqual(options["port"], 4100)

    @patch("devlisten.main.setup_logging")
    @patch("devlisten.main.print_error")
    def test_main_rejects_missing_cwd(self, mock_error, _mock_logging):
        with self.assertRaises(SystemExit) as ctx:
            main([f"{self.module_name}:app", "--cwd", str(self.temp_dir / "missing")])

        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("does not exist", mock_error.call_args.args[0])


if __name__ == "__main__":
    unittest.main()
