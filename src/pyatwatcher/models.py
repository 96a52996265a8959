"""Data models for pyatwatcher."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

from .const import (
    KEY_BUILDING,
    KEY_DEVICE_ID,
    KEY_DEVICE_ID_ALIAS,
    KEY_DEVICE_NAME,
    KEY_DEVICE_ROOM,
    KEY_DEVICES,
    KEY_LEVEL,
    KEY_LEVELS,
    KEY_SMART,
)
from .exceptions import MalformedCatalogError


def _require(record: dict[str, Any], key: str, expected: type | tuple, where: str) -> Any:
    """Return record[key] if present and of the expected type."""
    if key not in record:
        err_msg = f"{where}: missing field '{key}'"
        raise MalformedCatalogError(err_msg)
    value = record[key]
    # bool is an int subclass, never a valid level or room
    if isinstance(value, bool) or not isinstance(value, expected):
        err_msg = f"{where}: field '{key}' has unexpected type {type(value).__name__}"
        raise MalformedCatalogError(err_msg)
    return value


def _require_record(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        err_msg = f"{where}: expected an object, got {type(value).__name__}"
        raise MalformedCatalogError(err_msg)
    return value


@dataclass(frozen=True)
class Device:
    """Represents a lockable device."""

    id: str
    name: str
    room: int | str

    @classmethod
    def from_dict(cls, data: Any, where: str = "device") -> Device:
        """Decode a single device record."""
        record = _require_record(data, where)
        # The backend sends UDID; plain "id" is accepted as well
        id_key = KEY_DEVICE_ID if KEY_DEVICE_ID in record else KEY_DEVICE_ID_ALIAS
        if id_key not in record:
            err_msg = f"{where}: missing field '{KEY_DEVICE_ID}'"
            raise MalformedCatalogError(err_msg)
        return cls(
            id=_require(record, id_key, str, where),
            name=_require(record, KEY_DEVICE_NAME, str, where),
            room=_require(record, KEY_DEVICE_ROOM, (int, str), where),
        )


@dataclass(frozen=True)
class Level:
    """Represents a level of a building and the devices on it."""

    level: int
    devices: tuple[Device, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, where: str = "level") -> Level:
        """Decode a level record, rejecting duplicate device ids."""
        record = _require_record(data, where)
        level = _require(record, KEY_LEVEL, int, where)
        raw_devices = _require(record, KEY_DEVICES, list, where)
        devices: list[Device] = []
        seen: set[str] = set()
        for index, raw_device in enumerate(raw_devices):
            device = Device.from_dict(raw_device, f"{where}.devices[{index}]")
            if device.id in seen:
                err_msg = f"{where}: duplicate device id '{device.id}'"
                raise MalformedCatalogError(err_msg)
            seen.add(device.id)
            devices.append(device)
        return cls(level=level, devices=tuple(devices))


@dataclass(frozen=True)
class Building:
    """Represents a building and its levels."""

    building: str
    levels: tuple[Level, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, where: str = "building") -> Building:
        """Decode a building record, rejecting duplicate levels."""
        record = _require_record(data, where)
        name = _require(record, KEY_BUILDING, str, where)
        raw_levels = _require(record, KEY_LEVELS, list, where)
        levels: list[Level] = []
        seen: set[int] = set()
        for index, raw_level in enumerate(raw_levels):
            level = Level.from_dict(raw_level, f"{where}.levels[{index}]")
            if level.level in seen:
                err_msg = f"{where}: duplicate level {level.level}"
                raise MalformedCatalogError(err_msg)
            seen.add(level.level)
            levels.append(level)
        return cls(building=name, levels=tuple(levels))

    def get_level(self, level: int) -> Level | None:
        """Return the level with the given value, if any."""
        for candidate in self.levels:
            if candidate.level == level:
                return candidate
        return None


@dataclass(frozen=True)
class Catalog:
    """The building -> level -> device hierarchy returned by the backend.

    A catalog is immutable. The client replaces it wholesale on every
    successful fetch, so callers should keep keys (building name, level
    value, device id) rather than references into an older catalog.
    """

    buildings: tuple[Building, ...] = ()
    smart: Device | None = None

    @classmethod
    def empty(cls) -> Catalog:
        """Return the catalog used before the first successful fetch."""
        return cls()

    @classmethod
    def from_dict(cls, data: Any) -> Catalog:
        """Decode a full device list payload.

        Raises:
            MalformedCatalogError: If any required field is absent, has the
                wrong shape, or a uniqueness rule is violated.

        """
        record = _require_record(data, "payload")
        raw_buildings = _require(record, KEY_DEVICES, list, "payload")

        smart = None
        if record.get(KEY_SMART) is not None:
            smart = Device.from_dict(record[KEY_SMART], KEY_SMART)

        buildings: list[Building] = []
        seen: set[str] = set()
        for index, raw_building in enumerate(raw_buildings):
            building = Building.from_dict(raw_building, f"devices[{index}]")
            if building.building in seen:
                err_msg = f"payload: duplicate building '{building.building}'"
                raise MalformedCatalogError(err_msg)
            seen.add(building.building)
            buildings.append(building)

        return cls(buildings=tuple(buildings), smart=smart)

    @classmethod
    def from_json(cls, raw: bytes | str) -> Catalog:
        """Decode a device list from its JSON representation."""
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as err:
            err_msg = f"payload is not valid JSON: {err}"
            raise MalformedCatalogError(err_msg) from err
        return cls.from_dict(data)

    def get_building(self, building: str) -> Building | None:
        """Return the building with the given name, if any."""
        for candidate in self.buildings:
            if candidate.building == building:
                return candidate
        return None

    def building_names(self) -> list[str]:
        """Return the building names in payload order."""
        return [building.building for building in self.buildings]

    def levels(self, building: str) -> list[int]:
        """Return the level values of a building, empty if it is unknown."""
        found = self.get_building(building)
        if found is None:
            return []
        return [level.level for level in found.levels]

    def has_building(self, building: str) -> bool:
        """Return True if the catalog contains the building."""
        return self.get_building(building) is not None

    def has_level(self, building: str, level: int) -> bool:
        """Return True if the catalog contains the level in the building."""
        found = self.get_building(building)
        return found is not None and found.get_level(level) is not None

    def devices(self, building: str, level: int) -> list[Device]:
        """Return the devices on a level.

        Unknown buildings and levels yield an empty list, exactly like a
        level without devices. Use has_building/has_level to tell them apart.
        """
        found = self.get_building(building)
        if found is None:
            return []
        found_level = found.get_level(level)
        if found_level is None:
            return []
        return list(found_level.devices)

    def find_device(self, building: str, level: int, device_id: str) -> Device | None:
        """Return the device with the given id on a level, if any."""
        for device in self.devices(building, level):
            if device.id == device_id:
                return device
        return None
