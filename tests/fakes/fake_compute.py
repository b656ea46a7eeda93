# SPDX-License-Identifier: LGPL-3.0-or-later
"""
In-memory stand-in for ade2eah.azure.cli.AzureCompute.

Holds VMs, disks and NICs as az-shaped dicts, records every mutating call in
`mutations`, and every guest command in `guest_calls`.
"""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ade2eah.azure.exceptions import AzureCLIError, AzureNotFoundError
from ade2eah.azure.models import DiskRecord, SkuInfo
from ade2eah.migration import guest_scripts

SUB = "/subscriptions/0000"
GIB = 1024 ** 3

FULLY_DECRYPTED_OS = """BitLocker Drive Encryption: Configuration Tool
Volume C: [OS Volume]
    Size:                 126.45 GB
    Conversion Status:    Fully Decrypted
    Percentage Encrypted: 0.0%
    Protection Status:    Protection Off
"""

DOMAIN_JOINED = '{"PartOfDomain":true,"Domain":"corp.example.com","Name":"WEB01"}'
WORKGROUP = '{"PartOfDomain":false,"Domain":"WORKGROUP","Name":"WEB01"}'
VOLUMES = '[{"DriveLetter":"C","FileSystemLabel":"","Size":135771664384,"SizeRemaining":90000000000},' \
          '{"DriveLetter":"F","FileSystemLabel":"Data1","Size":136363114496,"SizeRemaining":136000000000}]'


def disk_id(rg: str, name: str) -> str:
    return f"{SUB}/resourceGroups/{rg}/providers/Microsoft.Compute/disks/{name}"


def nic_id(rg: str, name: str) -> str:
    return f"{SUB}/resourceGroups/{rg}/providers/Microsoft.Network/networkInterfaces/{name}"


def vm_id(rg: str, name: str) -> str:
    return f"{SUB}/resourceGroups/{rg}/providers/Microsoft.Compute/virtualMachines/{name}"


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeCompute:
    def __init__(self, location: str = "westeurope"):
        self.session = SimpleNamespace(subscription="0000", tenant=None)
        self.location = location
        self.vms: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.disks: Dict[str, Dict[str, Any]] = {}
        self.nics: Dict[str, Dict[str, Any]] = {}
        self.power: Dict[Tuple[str, str], str] = {}
        self.encryption: Dict[Tuple[str, str], Any] = {}
        self.skus: List[Dict[str, Any]] = [
            {
                "name": "Standard_D4s_v5",
                "locationInfo": [{"location": location, "zones": ["1", "2", "3"]}],
                "capabilities": [{"name": "EncryptionAtHostSupported", "value": "True"}],
                "restrictions": [],
            }
        ]
        self.feature = "Registered"
        self.terms: Dict[Tuple[str, str, str], bool] = {}

        self.mutations: List[Tuple[str, Tuple[Any, ...]]] = []
        self.guest_calls: List[str] = []
        self.grants: List[Tuple[str, str]] = []
        self.revokes: List[str] = []
        self.vm_create_args: List[List[str]] = []

        self.bitlocker_outputs: List[str] = [FULLY_DECRYPTED_OS]
        self.domain_output: str = WORKGROUP
        self.volumes_output: str = VOLUMES
        self.guest_error: Optional[Exception] = None
        self.revoke_error: Optional[Exception] = None

    # ------------------------------------------------------------------ fixtures

    def add_disk(
        self,
        rg: str,
        name: str,
        *,
        size_gb: int = 128,
        sku: str = "Premium_LRS",
        os_type: Optional[str] = None,
        hyper_v_generation: Optional[str] = "V2",
        zones: Sequence[str] = (),
        disk_state: str = "Reserved",
    ) -> str:
        did = disk_id(rg, name)
        self.disks[did] = {
            "id": did,
            "name": name,
            "resourceGroup": rg,
            "location": self.location,
            "diskSizeBytes": size_gb * GIB,
            "diskSizeGb": size_gb,
            "sku": {"name": sku},
            "osType": os_type,
            "hyperVGeneration": hyper_v_generation,
            "zones": list(zones) or None,
            "diskState": disk_state,
        }
        return did

    def add_nic(self, rg: str, name: str, *, attached_to: Optional[str] = None) -> str:
        nid = nic_id(rg, name)
        self.nics[nid] = {
            "id": nid,
            "name": name,
            "virtualMachine": {"id": attached_to} if attached_to else None,
        }
        return nid

    def add_vm(
        self,
        rg: str,
        name: str,
        *,
        size: str = "Standard_D4s_v5",
        encryption_at_host: bool = False,
        data_disks: Sequence[Tuple[int, str, str]] = (),
        nics: Sequence[Tuple[str, bool]] = (("web01-nic", True),),
        image: Optional[Dict[str, str]] = None,
        plan: Optional[Dict[str, str]] = None,
        zones: Sequence[str] = (),
        availability_set: Optional[str] = None,
        boot_diagnostics: Optional[Dict[str, Any]] = None,
        license_type: Optional[str] = "Windows_Server",
        with_os_disk: bool = True,
        encrypted: Any = None,
    ) -> Dict[str, Any]:
        vid = vm_id(rg, name)
        os_name = f"{name}_OsDisk_1"
        os_disk: Dict[str, Any] = {"name": os_name, "osType": "Windows"}
        if with_os_disk:
            os_disk["managedDisk"] = {"id": self.add_disk(rg, os_name, os_type="Windows", zones=zones)}

        dd = []
        for lun, dname, caching in data_disks:
            dd.append(
                {
                    "lun": lun,
                    "name": dname,
                    "caching": caching,
                    "managedDisk": {"id": self.add_disk(rg, dname, size_gb=256, zones=zones)},
                }
            )

        nic_refs = []
        for nname, primary in nics:
            nic_refs.append({"id": self.add_nic(rg, nname, attached_to=vid), "primary": primary})

        storage: Dict[str, Any] = {"osDisk": os_disk, "dataDisks": dd}
        if image:
            storage["imageReference"] = dict(image)

        vm: Dict[str, Any] = {
            "id": vid,
            "name": name,
            "resourceGroup": rg,
            "location": self.location,
            "hardwareProfile": {"vmSize": size},
            "storageProfile": storage,
            "networkProfile": {"networkInterfaces": nic_refs},
            "securityProfile": {"encryptionAtHost": encryption_at_host} if encryption_at_host else None,
            "zones": list(zones) or None,
            "availabilitySet": {"id": availability_set} if availability_set else None,
            "plan": dict(plan) if plan else None,
            "licenseType": license_type,
            "diagnosticsProfile": {"bootDiagnostics": boot_diagnostics or {"enabled": True, "storageUri": None}},
        }
        self.vms[(rg, name)] = vm
        self.power[(rg, name)] = "running"
        self.encryption[(rg, name)] = encrypted if encrypted is not None else {
            "disks": [{"name": os_name, "statuses": [{"code": "EncryptionState/encrypted"}]}]
        }
        return vm

    def _mut(self, op: str, *args: Any) -> None:
        self.mutations.append((op, args))

    def mutation_ops(self) -> List[str]:
        return [op for op, _ in self.mutations]

    def _vm(self, rg: str, name: str) -> Dict[str, Any]:
        vm = self.vms.get((rg, name))
        if vm is None:
            raise AzureNotFoundError(code=99, msg=f"az: not found: vm {name}")
        return vm

    # ------------------------------------------------------------------ account / features

    def account_show(self) -> Dict[str, Any]:
        return {"id": "0000", "name": "test-sub", "tenantId": "tttt"}

    def feature_state(self, namespace: str = "Microsoft.Compute", name: str = "EncryptionAtHost") -> str:
        return self.feature

    def feature_register(self, namespace: str = "Microsoft.Compute", name: str = "EncryptionAtHost") -> None:
        self._mut("feature_register", namespace, name)
        self.feature = "Registering"

    def provider_register(self, namespace: str = "Microsoft.Compute") -> None:
        self._mut("provider_register", namespace)

    # ------------------------------------------------------------------ VMs

    def vm_show(self, rg: str, name: str) -> Optional[Dict[str, Any]]:
        return self.vms.get((rg, name))

    def vm_power_state(self, rg: str, name: str) -> str:
        return self.power.get((rg, name), "unknown")

    def vm_deallocate(self, rg: str, name: str) -> None:
        self._mut("vm_deallocate", rg, name)
        self._vm(rg, name)
        self.power[(rg, name)] = "deallocated"

    def vm_start(self, rg: str, name: str) -> None:
        self._mut("vm_start", rg, name)
        self.power[(rg, name)] = "running"

    def vm_restart(self, rg: str, name: str, *, wait: bool = True) -> None:
        self._mut("vm_restart", rg, name)
        self.power[(rg, name)] = "running"

    def vm_delete(self, rg: str, name: str) -> None:
        self._mut("vm_delete", rg, name)
        vm = self.vms.pop((rg, name))
        for ref in vm["networkProfile"]["networkInterfaces"]:
            self.nics[ref["id"]]["virtualMachine"] = None

    @staticmethod
    def _argval(args: List[str], flag: str) -> Optional[str]:
        return args[args.index(flag) + 1] if flag in args else None

    def vm_create(self, args: Sequence[str]) -> Dict[str, Any]:
        a = list(args)
        self._mut("vm_create", tuple(a))
        self.vm_create_args.append(a)
        rg = self._argval(a, "--resource-group")
        name = self._argval(a, "--name")
        i = a.index("--nics") + 1
        nic_ids = []
        while i < len(a) and not a[i].startswith("--"):
            nic_ids.append(a[i])
            i += 1

        attach = self._argval(a, "--attach-os-disk")
        if attach:
            os_disk = {"name": attach.rsplit("/", 1)[-1], "managedDisk": {"id": attach}}
        else:
            os_disk_id = self.add_disk(rg, f"{name}_OsDisk_1_image", os_type="Windows")
            os_disk = {"name": f"{name}_OsDisk_1_image", "managedDisk": {"id": os_disk_id}}

        vid = vm_id(rg, name)
        vm = {
            "id": vid,
            "name": name,
            "resourceGroup": rg,
            "location": self._argval(a, "--location"),
            "hardwareProfile": {"vmSize": self._argval(a, "--size")},
            "storageProfile": {"osDisk": os_disk, "dataDisks": []},
            "networkProfile": {
                "networkInterfaces": [{"id": n, "primary": idx == 0} for idx, n in enumerate(nic_ids)]
            },
            "securityProfile": {"encryptionAtHost": self._argval(a, "--encryption-at-host") == "true"},
            "zones": [self._argval(a, "--zone")] if "--zone" in a else None,
            "availabilitySet": {"id": self._argval(a, "--availability-set")} if "--availability-set" in a else None,
            "licenseType": self._argval(a, "--license-type"),
        }
        for n in nic_ids:
            self.nics[n]["virtualMachine"] = {"id": vid}
        self.vms[(rg, name)] = vm
        self.power[(rg, name)] = "running"
        return vm

    def vm_set_os_disk(self, rg: str, name: str, disk_id_: str) -> None:
        self._mut("vm_set_os_disk", rg, name, disk_id_)
        vm = self._vm(rg, name)
        vm["storageProfile"]["osDisk"] = {"name": disk_id_.rsplit("/", 1)[-1], "managedDisk": {"id": disk_id_}}

    def vm_attach_disk(self, rg: str, vm_name: str, disk_id_: str, *, lun: int, caching: str) -> None:
        self._mut("vm_attach_disk", rg, vm_name, disk_id_, lun, caching)
        vm = self._vm(rg, vm_name)
        vm["storageProfile"]["dataDisks"].append(
            {"lun": lun, "caching": caching, "name": disk_id_.rsplit("/", 1)[-1], "managedDisk": {"id": disk_id_}}
        )

    def vm_boot_diagnostics(self, rg: str, name: str, *, enabled: bool, storage_uri: Optional[str] = None) -> None:
        self._mut("vm_boot_diagnostics", rg, name, enabled, storage_uri)
        self._vm(rg, name)["diagnosticsProfile"] = {"bootDiagnostics": {"enabled": enabled, "storageUri": storage_uri}}

    # ------------------------------------------------------------------ encryption / guest

    def vm_encryption_show(self, rg: str, name: str) -> Any:
        return self.encryption.get((rg, name))

    def vm_encryption_disable(self, rg: str, name: str, volume_type: str) -> None:
        self._mut("vm_encryption_disable", rg, name, volume_type)

    def vm_extension_delete(self, rg: str, vm_name: str, ext_name: str = "AzureDiskEncryption") -> None:
        self._mut("vm_extension_delete", rg, vm_name, ext_name)

    def run_powershell(self, rg: str, name: str, script: str) -> str:
        self.guest_calls.append(script)
        if self.guest_error is not None:
            raise self.guest_error
        if script == guest_scripts.BITLOCKER_STATUS:
            if len(self.bitlocker_outputs) > 1:
                return self.bitlocker_outputs.pop(0)
            return self.bitlocker_outputs[0]
        if script == guest_scripts.DOMAIN_INFO:
            return self.domain_output
        if script == guest_scripts.LIST_VOLUMES:
            return self.volumes_output
        if script == guest_scripts.INITIALIZE_DATA_DISKS:
            self._mut("initialize_data_disks", rg, name)
            return "initialized disk 2 (MBR) as Data1\nraw disks initialized: 1"
        return ""

    # ------------------------------------------------------------------ disks

    def disk_show(self, rg: str, name: str) -> Optional[DiskRecord]:
        d = self.disks.get(disk_id(rg, name))
        return DiskRecord.from_az(d) if d else None

    def disk_show_by_id(self, did: str) -> DiskRecord:
        return DiskRecord.from_az(self.disks[did])

    def disk_create_for_upload(
        self,
        *,
        rg: str,
        name: str,
        location: str,
        upload_size_bytes: int,
        sku: str,
        hyper_v_generation: Optional[str],
        os_type: Optional[str],
        zone: Optional[str],
    ) -> DiskRecord:
        self._mut("disk_create_for_upload", rg, name, upload_size_bytes, sku, hyper_v_generation, os_type, zone)
        did = disk_id(rg, name)
        self.disks[did] = {
            "id": did,
            "name": name,
            "resourceGroup": rg,
            "location": location,
            "diskSizeBytes": upload_size_bytes - 512,
            "sku": {"name": sku},
            "osType": os_type,
            "hyperVGeneration": hyper_v_generation,
            "zones": [zone] if zone else None,
            "diskState": "ReadyToUpload",
        }
        return DiskRecord.from_az(self.disks[did])

    def disk_grant_access(self, did: str, *, duration_s: int, access: str) -> str:
        self._mut("disk_grant_access", did, access, duration_s)
        disk = self.disks.get(did)
        if access == "Write" and disk is not None:
            if disk.get("diskState") not in ("ReadyToUpload", "ActiveUpload"):
                raise AzureCLIError(code=1, msg=f"(OperationNotAllowed) Write access is only allowed on upload disks: {did}")
            disk["diskState"] = "ActiveUpload"
        self.grants.append((did, access))
        return f"https://md-x.blob.core.windows.net/{did.rsplit('/', 1)[-1]}/abcd?sv=2020&sig=SECRET{len(self.grants)}"

    def disk_revoke_access(self, did: str) -> None:
        self._mut("disk_revoke_access", did)
        self.revokes.append(did)
        if self.revoke_error is not None:
            raise self.revoke_error
        if did in self.disks and self.disks[did].get("diskState") in ("ReadyToUpload", "ActiveUpload"):
            self.disks[did]["diskState"] = "Unattached"

    # ------------------------------------------------------------------ catalog / network / marketplace

    def list_skus(self, location: str, size: str) -> List[SkuInfo]:
        return [SkuInfo.from_az(s, location) for s in self.skus if s["name"].lower() == size.lower()]

    def nic_show_by_id(self, nid: str) -> Dict[str, Any]:
        return dict(self.nics[nid])

    def terms_accepted(self, publisher: str, offer: str, plan: str) -> bool:
        return self.terms.get((publisher, offer, plan), False)

    def terms_accept(self, publisher: str, offer: str, plan: str) -> None:
        self._mut("terms_accept", publisher, offer, plan)
        self.terms[(publisher, offer, plan)] = True


class RecordingRunner:
    """Copy-tool runner returning a fixed exit status."""

    def __init__(self, rc: int = 0, on_call: Optional[Callable[[List[str]], None]] = None):
        self.rc = rc
        self.calls: List[List[str]] = []
        self.on_call = on_call

    def __call__(self, cmd: List[str]) -> int:
        self.calls.append(list(cmd))
        if self.on_call is not None:
            self.on_call(cmd)
        return self.rc
