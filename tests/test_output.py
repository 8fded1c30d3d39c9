"""Tests for the URL banner and developer conveniences"""

import subprocess
import unittest
from unittest.mock import MagicMock, patch

from devlisten import features
from devlisten.output import url_banner
from devlisten.urls import ListenURL

LOCAL = ListenURL("http://localhost:3000/", "local")
NETWORK = ListenURL("http://192.168.1.5:3000/", "network")
TUNNEL = ListenURL("https://abc.trycloudflare.com", "tunnel")


def plain(lines):
    return [line.plain for line in lines]


class TestURLBanner(unittest.TestCase):
    def test_private_listener_hints_host_flag(self):
        lines = plain(url_banner([LOCAL], show_qr=True))
        self.assertEqual(len(lines), 2)
        self.assertIn("Local:", lines[0])
        self.assertIn("http://localhost:3000/", lines[0])
        self.assertIn("--host", lines[1])

    def test_name_suffix(self):
        lines = plain(url_banner([LOCAL], name="api"))
        self.assertIn("(api)", lines[0])

    def test_copied_marker_on_first_local(self):
        lines = plain(url_banner([LOCAL, NETWORK], copied=True, show_qr=False))
        self.assertIn("[copied to clipboard]", lines[0])
        self.assertNotIn("[copied to clipboard]", lines[1])

    def test_qr_code_for_first_public_url(self):
        with patch("devlisten.output.generate_qr_code", return_value="##\n##\n") as qr:
            lines = plain(url_banner([LOCAL, NETWORK, TUNNEL]))
        qr.assert_called_once_with(NETWORK.url)
        self.assertIn("[QR code below]", lines[1])
        self.assertNotIn("[QR code below]", lines[2])
        self.assertEqual(lines[-1], " " * 14 + "##")

    def test_no_qr_when_disabled(self):
        with patch("devlisten.output.generate_qr_code") as qr:
            lines = plain(url_banner([LOCAL, NETWORK], show_qr=False))
        qr.assert_not_called()
        self.assertEqual(len(lines), 2)


class TestFeatures(unittest.TestCase):
    def test_generate_qr_code(self):
        rendered = features.generate_qr_code("http://192.168.1.5:3000/")
        self.assertGreater(len(rendered.splitlines()), 5)

    def test_copy_to_clipboard(self):
        result = MagicMock(returncode=0, stderr=b"")
        with patch("devlisten.features._clipboard_command", return_value=["xclip", "-selection", "clipboard"]):
            with patch("devlisten.features.subprocess.run", return_value=result) as run:
                self.assertTrue(features.copy_to_clipboard("http://localhost:3000/"))
        self.assertEqual(run.call_args.kwargs["input"], b"http://localhost:3000/")

    def test_copy_without_tool(self):
        with patch("devlisten.features._clipboard_command", return_value=None):
            self.assertFalse(features.copy_to_clipboard("x"))

    def test_copy_timeout(self):
        with patch("devlisten.features._clipboard_command", return_value=["xsel"]):
            with patch("devlisten.features.subprocess.run", side_effect=subprocess.TimeoutExpired("xsel", 5)):
                self.assertFalse(features.copy_to_clipboard("x"))

    def test_open_browser(self):
        with patch("devlisten.features.webbrowser.open", return_value=True) as opened:
            self.assertTrue(features.open_browser("http://localhost:3000/"))
        opened.assert_called_once_with("http://localhost:3000/")


if __name__ == "__main__":
    unittest.main()
