# Copyright 2025 TIER IV, INC. All rights reserved.
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
"""Tests for the ota-dist-tools CLI."""

from __future__ import annotations

import json
import logging
import plistlib
from pathlib import Path

import pytest

from ota_dist_libs import version
from ota_dist_libs.ipa import inspector
from ota_dist_tools.__main__ import main
from ota_dist_tools.cmds.render_profile import slugify

from tests.conftest import ACME_BUNDLE_ID, ACME_VERSION, make_profile_plist


def test_version(capsys):
    main(["version"])
    assert capsys.readouterr().out.strip() == f"Build with ota-dist-libs v{version}."


def test_missing_subcommand(capsys):
    main([])
    assert "Please specify subcommand." in capsys.readouterr().out


def test_debug_logging(adhoc_ipa: Path):
    main(["-d", "inspect-ipa", str(adhoc_ipa)])
    assert logging.getLogger("ota_dist_libs").level == logging.DEBUG
    assert logging.getLogger("ota_dist_tools").level == logging.DEBUG

    main(["inspect-ipa", str(adhoc_ipa)])
    assert logging.getLogger("ota_dist_libs").level == logging.INFO


@pytest.mark.parametrize(
    "subcmd", ["inspect-ipa", "render-manifest", "render-profile", "serve"]
)
def test_subcommands_registered(subcmd, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([subcmd, "--help"])
    assert exc_info.value.code == 0
    assert subcmd in capsys.readouterr().out


class TestInspectIPA:
    def test_summary(self, adhoc_ipa: Path, capsys):
        main(["inspect-ipa", str(adhoc_ipa)])

        _out = capsys.readouterr().out
        assert f"Bundle ID: {ACME_BUNDLE_ID}" in _out
        assert f"Version: {ACME_VERSION} (7)" in _out
        assert "Distribution: Ad Hoc Distribution" in _out
        assert "Provisioned devices: 2" in _out

    def test_summary_with_certificates(
        self, ipa_factory, developer_cert_der: bytes, capsys
    ):
        _ipa = ipa_factory(
            profile=make_profile_plist(
                devices=["udid-1"], certificates=[developer_cert_der]
            )
        )
        main(["inspect-ipa", str(_ipa)])

        _out = capsys.readouterr().out
        assert "Developer certificate: Apple Distribution: Acme Inc." in _out

    def test_profile_is_parsed_once(self, adhoc_ipa: Path, mocker, capsys):
        _extract = mocker.spy(inspector, "extract_trust_artifact")
        _unwrap = mocker.spy(inspector, "unwrap_trust_artifact")
        main(["inspect-ipa", str(adhoc_ipa)])

        assert _extract.call_count == 1
        assert _unwrap.call_count == 1
        assert "Provisioned devices: 2" in capsys.readouterr().out

    def test_app_store_build(self, appstore_ipa: Path, capsys):
        main(["inspect-ipa", str(appstore_ipa)])

        _out = capsys.readouterr().out
        assert "Distribution: App Store" in _out
        assert "Provisioning profile: <none>" in _out

    def test_json(self, adhoc_ipa: Path, capsys):
        main(["inspect-ipa", "--json", str(adhoc_ipa)])

        _parsed = json.loads(capsys.readouterr().out)
        assert _parsed["bundle_id"] == ACME_BUNDLE_ID
        assert _parsed["distribution_class"] == "adHoc"
        assert _parsed["supported_devices"] == ["phone", "tablet"]
        assert "provisioning_profile_b64" not in _parsed

    def test_file_not_found(self, tmp_path: Path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["inspect-ipa", str(tmp_path / "missing.ipa")])
        assert exc_info.value.code == 1
        assert capsys.readouterr().out.startswith("ERR: ")

    def test_missing_descriptor(self, ipa_factory, capsys):
        _ipa = ipa_factory(app_dir="Payload/NotABundle")
        with pytest.raises(SystemExit):
            main(["inspect-ipa", str(_ipa)])
        assert "MissingDescriptor" in capsys.readouterr().out


class TestRenderManifest:
    def test_to_file(self, adhoc_ipa: Path, tmp_path: Path):
        _dst = tmp_path / "manifest.plist"
        main(
            [
                "render-manifest",
                "--url",
                "https://example.com/acme.ipa",
                "--title",
                "Acme Beta",
                "-o",
                str(_dst),
                str(adhoc_ipa),
            ]
        )

        _item = plistlib.loads(_dst.read_bytes())["items"][0]
        assert _item["assets"][0]["url"] == "https://example.com/acme.ipa"
        assert _item["metadata"]["title"] == "Acme Beta"
        assert _item["metadata"]["subtitle"] == f"v{ACME_VERSION} (7)"

    def test_to_stdout(self, adhoc_ipa: Path, capsys):
        main(["render-manifest", "--url", "https://example.com/a.ipa", str(adhoc_ipa)])

        _manifest = plistlib.loads(capsys.readouterr().out.encode())
        assert _manifest["items"][0]["metadata"]["title"] == "Acme"


class TestRenderProfile:
    def test_default_output(self, adhoc_ipa: Path, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        main(
            [
                "render-profile",
                "--manifest-url",
                "https://example.com/manifest.plist",
                "--org",
                "Acme Inc.",
                str(adhoc_ipa),
            ]
        )

        _doc = plistlib.loads((tmp_path / f"acme-auto-v{ACME_VERSION}.mobileconfig").read_bytes())
        assert _doc["PayloadOrganization"] == "Acme Inc."
        assert _doc["PayloadIdentifier"] == f"{ACME_BUNDLE_ID}.auto.profile"

    def test_app_store_build(self, appstore_ipa: Path, tmp_path: Path, capsys):
        _dst = tmp_path / "out.mobileconfig"
        with pytest.raises(SystemExit) as exc_info:
            main(
                [
                    "render-profile",
                    "--manifest-url",
                    "https://example.com/manifest.plist",
                    "--org",
                    "Acme Inc.",
                    "-o",
                    str(_dst),
                    str(appstore_ipa),
                ]
            )
        assert exc_info.value.code == 1
        assert "PolicyViolation" in capsys.readouterr().out
        assert not _dst.exists()


@pytest.mark.parametrize(
    "_in, _expected",
    (
        ("Acme", "acme"),
        ("Acme Beta App!", "acme-beta-app"),
        ("  --  ", "app"),
    ),
)
def test_slugify(_in, _expected):
    assert slugify(_in) == _expected


class TestServe:
    def test_serve(self, tmp_path: Path, mocker):
        _config = tmp_path / "settings.yaml"
        _config.write_text(
            f"db_path: {tmp_path / 'dist.sqlite3'}\n"
            f"storage_root: {tmp_path / 'storage'}\n"
            "public_base_url: https://ota.example.com/\n"
        )
        _run_mock = mocker.patch("uvicorn.run")

        main(["serve", "-c", str(_config), "--port", "8080"])

        _run_mock.assert_called_once()
        assert _run_mock.call_args.kwargs["port"] == 8080
        assert _run_mock.call_args.kwargs["host"] == "127.0.0.1"
        assert (tmp_path / "dist.sqlite3").is_file()

    def test_invalid_settings(self, tmp_path: Path, mocker, capsys):
        _config = tmp_path / "settings.yaml"
        _config.write_text("token_ttl_seconds: -1\n")
        _run_mock = mocker.patch("uvicorn.run")

        with pytest.raises(SystemExit):
            main(["serve", "-c", str(_config)])
        _run_mock.assert_not_called()
        assert capsys.readouterr().out.startswith("ERR: ")
