# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import unittest
from unittest.mock import Mock

import pytest

from ade2eah.azure.models import DomainInfo, parse_domain_info
from ade2eah.migration.finisher import PostBuildFinisher, operator_checklist
from fakes.fake_compute import DOMAIN_JOINED, FakeClock, FakeCompute


@pytest.mark.unit
class TestOperatorChecklist:
    def test_domain_joined(self):
        lines = operator_checklist(parse_domain_info(DOMAIN_JOINED))
        text = "\n".join(lines)
        assert "corp.example.com" in lines[0]
        assert "ipconfig /registerdns" in lines
        assert "Test-ComputerSecureChannel" in text
        assert "WEB01.corp.example.com" in text

    def test_workgroup(self):
        lines = operator_checklist(DomainInfo(part_of_domain=False))
        assert lines == ["Source VM was not domain-joined; no manual DNS or identity steps are needed."]

    def test_unknown(self):
        lines = operator_checklist(DomainInfo.unknown())
        assert len(lines) == 1
        assert "could not be read" in lines[0]


@pytest.mark.unit
class TestPostBuildFinisher(unittest.TestCase):
    def setUp(self):
        self.logger = Mock()
        self.clock = FakeClock()
        self.compute = FakeCompute()

    def _finisher(self, attempts=20):
        return PostBuildFinisher(
            self.logger,
            self.compute,
            restart_interval_s=15,
            restart_attempts=attempts,
            sleep=self.clock.sleep,
            clock=self.clock,
        )

    def test_verifies_flag(self):
        self.compute.add_vm("rg1", "web01-eah", encryption_at_host=True)
        self.assertTrue(self._finisher().verify_encryption_at_host("rg1", "web01-eah"))

    def test_missing_flag_only_warns(self):
        self.compute.add_vm("rg1", "web01-eah", encryption_at_host=False)
        self.assertFalse(self._finisher().verify_encryption_at_host("rg1", "web01-eah"))
        self.assertTrue(self.logger.warning.called)

    def test_initialize_restart_and_volumes(self):
        self.compute.add_vm("rg1", "web01-eah", encryption_at_host=True)
        res = self._finisher().finish("rg1", "web01-eah", has_data_disks=True, domain=DomainInfo(part_of_domain=False))
        self.assertTrue(res.encryption_at_host)
        self.assertTrue(res.disks_initialized)
        self.assertTrue(res.restarted)
        self.assertEqual([v.drive_letter for v in res.volumes], ["C", "F"])
        self.assertEqual(self.compute.mutation_ops(), ["initialize_data_disks", "vm_restart"])
        self.assertEqual(self.clock.sleeps, [15])

    def test_no_data_disks_no_guest_work(self):
        self.compute.add_vm("rg1", "web01-eah", encryption_at_host=True)
        res = self._finisher().finish("rg1", "web01-eah", has_data_disks=False, domain=DomainInfo.unknown())
        self.assertEqual(self.compute.guest_calls, [])
        self.assertFalse(res.restarted)
        self.assertEqual(len(res.checklist), 1)

    def test_restart_never_reaches_running(self):
        self.compute.add_vm("rg1", "web01-eah", encryption_at_host=True)
        self.compute.vm_restart = Mock()
        self.compute.power[("rg1", "web01-eah")] = "starting"
        res = self._finisher(attempts=3).initialize_data_disks("rg1", "web01-eah")
        self.assertFalse(res.restarted)
        self.assertEqual(res.volumes, [])
        self.assertEqual(len(self.clock.sleeps), 3)

    def test_guest_failure_is_not_fatal(self):
        self.compute.add_vm("rg1", "web01-eah", encryption_at_host=True)
        self.compute.guest_error = RuntimeError("run-command conflict")
        res = self._finisher().initialize_data_disks("rg1", "web01-eah")
        self.assertFalse(res.disks_initialized)
        self.assertTrue(res.restarted)
        self.assertEqual(res.volumes, [])
