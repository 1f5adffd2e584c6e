"""Latest-known state of every device the engine has heard from."""
import dataclasses
import threading
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from mqtt2rules.rules.models import DeviceData


class DeviceStateTable:
    """Keeps one DeviceData record per device id.

    Records are replaced wholesale on every update. Readers only ever get
    copies, so callers cannot change the stored state behind the table's
    back.
    """

    def __init__(self):
        self._devices: Dict[str, DeviceData] = {}
        self._lock = threading.Lock()

    def upsert(self, device: DeviceData, now: float) -> DeviceData:
        """Store a copy of ``device`` stamped with ``now``.

        Returns:
            A copy of the stored record
        """
        record = dataclasses.replace(device.copy(), timestamp=now)
        with self._lock:
            self._devices[record.device_id] = record
        return record.copy()

    def mark_offline(self, device_id: str, now: float) -> Optional[DeviceData]:
        """Flag a known device as offline.

        Returns:
            A copy of the updated record, or None if the device is unknown
        """
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            record = dataclasses.replace(device, online=False, timestamp=now)
            self._devices[device_id] = record
        return record.copy()

    def get(self, device_id: str) -> Optional[DeviceData]:
        """Get a copy of a device's record, or None if unknown."""
        with self._lock:
            device = self._devices.get(device_id)
        return device.copy() if device is not None else None

    def snapshot(self) -> Mapping[str, DeviceData]:
        """Return a read-only mapping of copies of all records."""
        with self._lock:
            copies = {device_id: d.copy() for device_id, d in self._devices.items()}
        return MappingProxyType(copies)

    def count(self) -> int:
        """Get the number of known devices."""
        with self._lock:
            return len(self._devices)

    def online_count(self) -> int:
        """Get the number of devices currently online."""
        with self._lock:
            return sum(1 for d in self._devices.values() if d.online)
