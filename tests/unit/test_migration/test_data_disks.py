# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from unittest.mock import Mock

import pytest

from ade2eah.azure.models import VirtualMachineDescriptor
from ade2eah.migration.data_disks import DataDiskMapper
from ade2eah.migration.options import data_disk_target_name
from fakes.fake_compute import GIB, FakeCompute


@pytest.mark.unit
def test_map_keeps_lun_and_caching():
    compute = FakeCompute()
    vm = VirtualMachineDescriptor.from_az(
        compute.add_vm("rg1", "web01", data_disks=[(2, "logs", "None"), (0, "data", "ReadOnly")])
    )
    infos = DataDiskMapper(Mock(), compute).map(vm)
    assert [(i.lun, i.caching, i.name) for i in infos] == [(0, "ReadOnly", "data"), (2, "None", "logs")]
    assert infos[0].disk.size_bytes == 256 * GIB
    assert compute.mutations == []


@pytest.mark.unit
def test_no_data_disks():
    compute = FakeCompute()
    vm = VirtualMachineDescriptor.from_az(compute.add_vm("rg1", "web01"))
    assert DataDiskMapper(Mock(), compute).map(vm) == []


@pytest.mark.unit
def test_target_name():
    assert data_disk_target_name("web01-data0") == "web01-data0-EAH"
