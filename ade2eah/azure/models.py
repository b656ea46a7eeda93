# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/azure/models.py
"""
Typed snapshots of az CLI payloads.

Every `from_az`/`parse_*` here is the single place a raw payload is probed for
optional fields; the migration code only sees these dataclasses.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.props import as_bool, as_int, first_present, prop

# Fixed VHD footer appended to page-blob uploads.
VHD_TRAILER_BYTES = 512


def _zones(v: Any) -> Tuple[str, ...]:
    if not v:
        return ()
    return tuple(str(z) for z in v)


@dataclass(frozen=True)
class Placement:
    location: str
    availability_set_id: Optional[str] = None
    zones: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if self.availability_set_id and self.zones:
            raise ValueError("placement cannot use both an availability set and zones")


@dataclass(frozen=True)
class DataDiskRef:
    lun: int
    name: str
    id: str
    caching: str = "None"


@dataclass(frozen=True)
class NicRef:
    id: str
    primary: bool = False

    @property
    def name(self) -> str:
        return self.id.rstrip("/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ImageReference:
    publisher: Optional[str] = None
    offer: Optional[str] = None
    sku: Optional[str] = None
    version: Optional[str] = None
    exact_version: Optional[str] = None

    @property
    def is_marketplace(self) -> bool:
        return bool(self.publisher and self.offer and self.sku)

    @property
    def urn(self) -> str:
        version = self.version or "latest"
        if version.lower() == "latest" and self.exact_version:
            version = self.exact_version
        return f"{self.publisher}:{self.offer}:{self.sku}:{version}"


@dataclass(frozen=True)
class MarketplacePlan:
    name: str
    product: str
    publisher: str


@dataclass(frozen=True)
class BootDiagnostics:
    enabled: bool = False
    storage_uri: Optional[str] = None

    @property
    def mode(self) -> str:
        if not self.enabled:
            return "disabled"
        return "custom" if self.storage_uri else "managed"


@dataclass(frozen=True)
class VirtualMachineDescriptor:
    """Frozen snapshot of the source VM, read once before anything is mutated."""

    id: str
    name: str
    resource_group: str
    location: str
    size: str
    os_disk_id: Optional[str]
    os_disk_name: Optional[str]
    os_type: Optional[str] = None
    availability_set_id: Optional[str] = None
    zones: Tuple[str, ...] = ()
    data_disks: Tuple[DataDiskRef, ...] = ()
    nics: Tuple[NicRef, ...] = ()
    encryption_at_host: bool = False
    plan: Optional[MarketplacePlan] = None
    license_type: Optional[str] = None
    boot_diagnostics: BootDiagnostics = field(default_factory=BootDiagnostics)
    image_reference: Optional[ImageReference] = None

    @classmethod
    def from_az(cls, vm: Dict[str, Any]) -> "VirtualMachineDescriptor":
        data_disks: List[DataDiskRef] = []
        for dd in prop(vm, "storageProfile.dataDisks", []) or []:
            did = prop(dd, "managedDisk.id")
            lun = as_int(prop(dd, "lun"))
            if not did or lun is None:
                continue
            data_disks.append(
                DataDiskRef(
                    lun=lun,
                    name=prop(dd, "name") or did.rsplit("/", 1)[-1],
                    id=did,
                    caching=prop(dd, "caching") or "None",
                )
            )

        nics = tuple(
            NicRef(
                id=n["id"],
                primary=as_bool(first_present(n, ("primary", "properties.primary"))),
            )
            for n in prop(vm, "networkProfile.networkInterfaces", []) or []
            if prop(n, "id")
        )

        plan = None
        if prop(vm, "plan.name"):
            plan = MarketplacePlan(
                name=prop(vm, "plan.name"),
                product=prop(vm, "plan.product", ""),
                publisher=prop(vm, "plan.publisher", ""),
            )

        image = None
        if prop(vm, "storageProfile.imageReference"):
            image = ImageReference(
                publisher=prop(vm, "storageProfile.imageReference.publisher"),
                offer=prop(vm, "storageProfile.imageReference.offer"),
                sku=prop(vm, "storageProfile.imageReference.sku"),
                version=prop(vm, "storageProfile.imageReference.version"),
                exact_version=prop(vm, "storageProfile.imageReference.exactVersion"),
            )

        return cls(
            id=prop(vm, "id", ""),
            name=prop(vm, "name", ""),
            resource_group=prop(vm, "resourceGroup", ""),
            location=prop(vm, "location", ""),
            size=prop(vm, "hardwareProfile.vmSize", ""),
            os_disk_id=prop(vm, "storageProfile.osDisk.managedDisk.id"),
            os_disk_name=prop(vm, "storageProfile.osDisk.name"),
            os_type=prop(vm, "storageProfile.osDisk.osType"),
            availability_set_id=prop(vm, "availabilitySet.id"),
            zones=_zones(prop(vm, "zones")),
            data_disks=tuple(sorted(data_disks, key=lambda d: d.lun)),
            nics=nics,
            encryption_at_host=as_bool(prop(vm, "securityProfile.encryptionAtHost")),
            plan=plan,
            license_type=prop(vm, "licenseType"),
            boot_diagnostics=BootDiagnostics(
                enabled=as_bool(prop(vm, "diagnosticsProfile.bootDiagnostics.enabled")),
                storage_uri=prop(vm, "diagnosticsProfile.bootDiagnostics.storageUri"),
            ),
            image_reference=image,
        )

    @property
    def primary_nic_id(self) -> Optional[str]:
        """Explicitly-primary NIC, else the first one (the platform's rule)."""
        for n in self.nics:
            if n.primary:
                return n.id
        return self.nics[0].id if self.nics else None

    def to_jsonable(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DiskRecord:
    id: str
    name: str
    size_bytes: int
    sku: str
    resource_group: str
    location: str = ""
    hyper_v_generation: Optional[str] = None
    os_type: Optional[str] = None
    zones: Tuple[str, ...] = ()
    disk_state: Optional[str] = None

    @classmethod
    def from_az(cls, d: Dict[str, Any]) -> "DiskRecord":
        size = as_int(prop(d, "diskSizeBytes"))
        if size is None:
            gb = as_int(first_present(d, ("diskSizeGb", "diskSizeGB", "properties.diskSizeGB")), 0) or 0
            size = gb * 1024 ** 3
        return cls(
            id=prop(d, "id", ""),
            name=prop(d, "name", ""),
            size_bytes=size,
            sku=prop(d, "sku.name", ""),
            resource_group=prop(d, "resourceGroup", ""),
            location=prop(d, "location", ""),
            hyper_v_generation=prop(d, "hyperVGeneration"),
            os_type=prop(d, "osType"),
            zones=_zones(prop(d, "zones")),
            disk_state=prop(d, "diskState"),
        )

    @property
    def upload_size_bytes(self) -> int:
        return self.size_bytes + VHD_TRAILER_BYTES

    @property
    def awaiting_upload(self) -> bool:
        return (self.disk_state or "").lower() in ("readytoupload", "activeupload")


@dataclass(frozen=True)
class CopiedDiskRecord:
    name: str
    id: str
    lun: int
    caching: str


@dataclass(frozen=True)
class ReclaimedNic:
    id: str
    name: str
    primary: bool


@dataclass(frozen=True)
class SkuInfo:
    name: str
    location: str
    zones: Tuple[str, ...] = ()
    capabilities: Tuple[Tuple[str, str], ...] = ()
    restricted: bool = False

    def capability(self, *names: str) -> Optional[str]:
        caps = dict(self.capabilities)
        for n in names:
            if n in caps:
                return caps[n]
        return None

    @classmethod
    def from_az(cls, s: Dict[str, Any], location: str) -> "SkuInfo":
        loc = location.lower()
        zones: Tuple[str, ...] = ()
        for li in prop(s, "locationInfo", []) or []:
            if str(prop(li, "location", "")).lower() == loc:
                zones = _zones(prop(li, "zones"))

        restricted = False
        for r in prop(s, "restrictions", []) or []:
            if prop(r, "reasonCode") != "NotAvailableForSubscription":
                continue
            r_locs = [str(x).lower() for x in (prop(r, "restrictionInfo.locations", []) or [])]
            if prop(r, "type") == "Location" and (not r_locs or loc in r_locs):
                restricted = True

        caps = tuple(
            (str(prop(cap, "name", "")), str(prop(cap, "value", "")))
            for cap in prop(s, "capabilities", []) or []
        )
        return cls(name=prop(s, "name", ""), location=location, zones=zones, capabilities=caps, restricted=restricted)


# ---------------------------------------------------------------------------
# Encryption status (shape varies by platform / CLI version)
# ---------------------------------------------------------------------------

_OS_STATUS_KEYS = ("osDisk", "osVolumeEncrypted", "OsVolumeEncrypted", "os_disk", "osDiskEncryptionStatus")
_DATA_STATUS_KEYS = ("dataDisk", "dataVolumesEncrypted", "DataVolumesEncrypted", "data_disk", "dataDiskEncryptionStatus")


def _is_encrypted_status(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v or "").replace(" ", "").replace("_", "").lower()
    if not s or s.startswith("not") or s == "unknown":
        return False
    if "decrypted" in s:
        return False
    return "encrypt" in s or "decrypt" in s


@dataclass(frozen=True)
class EncryptionScope:
    os_encrypted: bool = False
    data_encrypted: bool = False

    @property
    def any(self) -> bool:
        return self.os_encrypted or self.data_encrypted

    @property
    def volume_type(self) -> str:
        """Volume type argument for 'az vm encryption disable'."""
        return "ALL" if self.data_encrypted else "OS"


def _disk_encrypted(disk: Dict[str, Any]) -> bool:
    for st in prop(disk, "statuses", []) or []:
        code = str(prop(st, "code", "")).lower()
        if code.startswith("encryptionstate/"):
            return _is_encrypted_status(code.split("/", 1)[1])
    return False


def parse_encryption_scope(payload: Any, os_disk_name: Optional[str] = None) -> EncryptionScope:
    if not payload:
        return EncryptionScope()

    disks = prop(payload, "disks")
    if isinstance(disks, list) and disks:
        os_idx = 0
        if os_disk_name:
            for i, d in enumerate(disks):
                if str(prop(d, "name", "")).lower() == os_disk_name.lower():
                    os_idx = i
                    break
        os_enc = _disk_encrypted(disks[os_idx])
        data_enc = any(_disk_encrypted(d) for i, d in enumerate(disks) if i != os_idx)
        return EncryptionScope(os_encrypted=os_enc, data_encrypted=data_enc)

    return EncryptionScope(
        os_encrypted=_is_encrypted_status(first_present(payload, _OS_STATUS_KEYS)),
        data_encrypted=_is_encrypted_status(first_present(payload, _DATA_STATUS_KEYS)),
    )


# ---------------------------------------------------------------------------
# Guest-side snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainInfo:
    part_of_domain: bool = False
    domain: Optional[str] = None
    computer_name: Optional[str] = None
    captured: bool = True

    @classmethod
    def unknown(cls) -> "DomainInfo":
        return cls(captured=False)


def _json_tail(text: str) -> Any:
    """Parse the JSON document at the end of guest stdout (scripts may print banners first)."""
    s = (text or "").strip()
    for opener in ("{", "["):
        i = s.find(opener)
        if i >= 0:
            try:
                return json.loads(s[i:])
            except ValueError:
                continue
    raise ValueError("no JSON document in guest output")


def parse_domain_info(text: str) -> DomainInfo:
    obj = _json_tail(text)
    part = as_bool(first_present(obj, ("PartOfDomain", "partOfDomain", "part_of_domain")))
    domain = first_present(obj, ("Domain", "domain"))
    name = first_present(obj, ("Name", "ComputerName", "computerName", "name"))
    return DomainInfo(
        part_of_domain=part,
        domain=str(domain) if (part and domain) else None,
        computer_name=str(name) if name else None,
    )


@dataclass(frozen=True)
class VolumeInfo:
    drive_letter: str
    label: str = ""
    size_bytes: int = 0
    free_bytes: int = 0


def parse_volumes(text: str) -> List[VolumeInfo]:
    obj = _json_tail(text)
    if isinstance(obj, dict):
        obj = [obj]
    out: List[VolumeInfo] = []
    for v in obj or []:
        letter = first_present(v, ("DriveLetter", "driveLetter"))
        if not letter:
            continue
        out.append(
            VolumeInfo(
                drive_letter=str(letter),
                label=str(first_present(v, ("FileSystemLabel", "Label", "label"), "") or ""),
                size_bytes=as_int(first_present(v, ("Size", "size")), 0) or 0,
                free_bytes=as_int(first_present(v, ("SizeRemaining", "sizeRemaining")), 0) or 0,
            )
        )
    return sorted(out, key=lambda x: x.drive_letter)
