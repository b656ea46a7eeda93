# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from unittest.mock import Mock

import pytest

from ade2eah.azure.models import VirtualMachineDescriptor
from ade2eah.migration.placement import PlacementValidator, resolve_placement
from fakes.fake_compute import FakeCompute


@pytest.fixture
def compute():
    return FakeCompute()


@pytest.mark.unit
class TestResolvePlacement:
    def test_zones(self, compute):
        vm = VirtualMachineDescriptor.from_az(compute.add_vm("rg1", "web01", zones=["3"]))
        p = resolve_placement(vm)
        assert p.zones == ("3",)
        assert p.availability_set_id is None
        assert p.location == "westeurope"

    def test_availability_set_wins(self, compute):
        raw = compute.add_vm("rg1", "web01", availability_set="/as/web")
        raw["zones"] = ["1"]
        p = resolve_placement(VirtualMachineDescriptor.from_az(raw))
        assert p.availability_set_id == "/as/web"
        assert p.zones is None

    def test_regional(self, compute):
        p = resolve_placement(VirtualMachineDescriptor.from_az(compute.add_vm("rg1", "web01")))
        assert p.zones is None and p.availability_set_id is None


@pytest.mark.unit
class TestPlacementValidator:
    def test_valid_zone(self, compute):
        assert PlacementValidator(Mock(), compute).validate("westeurope", "Standard_D4s_v5", ("2",))

    def test_unknown_size(self, compute):
        assert not PlacementValidator(Mock(), compute).validate("westeurope", "Standard_Nope", None)

    def test_restricted_size(self, compute):
        compute.skus[0]["restrictions"] = [
            {"type": "Location", "reasonCode": "NotAvailableForSubscription", "restrictionInfo": {"locations": ["westeurope"]}}
        ]
        assert not PlacementValidator(Mock(), compute).validate("westeurope", "Standard_D4s_v5")

    def test_zones_requested_but_none_offered(self, compute):
        compute.skus[0]["locationInfo"] = [{"location": "westeurope", "zones": []}]
        assert not PlacementValidator(Mock(), compute).validate("westeurope", "Standard_D4s_v5", ("1",))

    def test_missing_capability_only_warns(self, compute):
        compute.skus[0]["capabilities"] = []
        logger = Mock()
        assert PlacementValidator(logger, compute).validate("westeurope", "Standard_D4s_v5")
        assert logger.warning.called
