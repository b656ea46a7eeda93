# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import json
from unittest.mock import Mock

import pytest

from ade2eah.cli.args.parser import build_parser, parse_args_with_config
from ade2eah.core.exceptions import Fatal

BASE = ["-g", "rg1", "--source-vm", "web01", "--new-vm", "web01-eah"]


def _parse(argv):
    return parse_args_with_config(argv, logger=Mock())


def _bad_args(argv):
    with pytest.raises(Fatal) as ei:
        _parse(argv)
    assert ei.value.code == 5
    return ei.value


@pytest.mark.unit
class TestParser:
    def test_defaults(self):
        args, conf, _ = _parse(BASE)
        assert conf == {}
        assert args.resource_group == "rg1"
        assert args.admin_username == "azureadmin"
        assert args.sas_duration_hours == 24
        assert args.decrypt_poll_interval == 30.0
        assert args.decrypt_timeout is None
        assert not args.dry_run
        assert not args.include_data_disks

    def test_flags(self):
        args, _, _ = _parse(BASE + ["--dry-run", "--include-data-disks", "--vm-size", "Standard_D8s_v5", "--decrypt-timeout", "3600"])
        assert args.dry_run and args.include_data_disks
        assert args.vm_size == "Standard_D8s_v5"
        assert args.decrypt_timeout == 3600.0

    def test_epilog_lists_exit_codes(self):
        assert "decryption timeout" in build_parser().epilog

    @pytest.mark.parametrize("drop,flag", [("-g", "--resource-group"), ("--source-vm", "--source-vm"), ("--new-vm", "--new-vm")])
    def test_required(self, drop, flag):
        argv = list(BASE)
        i = argv.index(drop)
        del argv[i : i + 2]
        assert flag in _bad_args(argv).msg

    def test_same_name(self):
        _bad_args(["-g", "rg1", "--source-vm", "web01", "--new-vm", "WEB01"])

    @pytest.mark.parametrize("name", ["web01-", "-web01", "web 01", "x" * 80])
    def test_invalid_vm_name(self, name):
        _bad_args(["-g", "rg1", "--source-vm", "web01", "--new-vm", name])

    def test_invalid_disk_name(self):
        _bad_args(BASE + ["--new-os-disk-name", "bad/name"])

    @pytest.mark.parametrize("flag,value", [("--sas-duration-hours", "0"), ("--decrypt-poll-interval", "-1"), ("--decrypt-timeout", "0")])
    def test_non_positive(self, flag, value):
        _bad_args(BASE + [flag, value])


@pytest.mark.unit
class TestConfigDefaults:
    def test_config_supplies_required(self, tmp_path):
        cfg = tmp_path / "job.yaml"
        cfg.write_text(
            "resource-group: rg1\nsource_vm: web01\nnew_vm: web01-eah\ninclude_data_disks: true\nsas_duration_hours: 4\n",
            encoding="utf-8",
        )
        args, conf, _ = _parse(["--config", str(cfg)])
        assert conf["resource_group"] == "rg1"
        assert args.new_vm == "web01-eah"
        assert args.include_data_disks is True
        assert args.sas_duration_hours == 4

    def test_cli_overrides_config(self, tmp_path):
        cfg = tmp_path / "job.yaml"
        cfg.write_text("resource_group: rg1\nsource_vm: web01\nnew_vm: from-config\n", encoding="utf-8")
        args, _, _ = _parse(["--config", str(cfg), "--new-vm", "from-cli"])
        assert args.new_vm == "from-cli"

    def test_later_config_wins(self, tmp_path):
        a = tmp_path / "a.yaml"
        b = tmp_path / "b.json"
        a.write_text("resource_group: rg1\nsource_vm: web01\nnew_vm: first\n", encoding="utf-8")
        b.write_text(json.dumps({"new_vm": "second"}), encoding="utf-8")
        args, _, _ = _parse(["--config", str(a), "--config", str(b)])
        assert args.new_vm == "second"

    def test_unknown_key_warns(self, tmp_path):
        cfg = tmp_path / "job.yaml"
        cfg.write_text("resource_group: rg1\nsource_vm: web01\nnew_vm: web01-eah\nbogus: 1\n", encoding="utf-8")
        logger = Mock()
        parse_args_with_config(["--config", str(cfg)], logger=logger)
        assert any("bogus" in repr(c.args) for c in logger.warning.call_args_list)


@pytest.mark.unit
@pytest.mark.security
class TestCredentials:
    def test_password_env_must_exist(self, monkeypatch):
        monkeypatch.delenv("EAH_TEST_PW", raising=False)
        _bad_args(BASE + ["--admin-password-env", "EAH_TEST_PW"])

    def test_password_env_present(self, monkeypatch):
        monkeypatch.setenv("EAH_TEST_PW", "P@ssw0rd!")
        args, _, _ = _parse(BASE + ["--admin-password-env", "EAH_TEST_PW"])
        assert args.admin_password is None
        assert args.admin_password_env == "EAH_TEST_PW"

    def test_dump_args_masks_password(self, capsys):
        with pytest.raises(SystemExit) as ei:
            _parse(BASE + ["--admin-password", "P@ssw0rd!", "--dump-args"])
        assert ei.value.code == 0
        out = capsys.readouterr().out
        assert "P@ssw0rd!" not in out
        assert json.loads(out)["admin_password"] == "***"
