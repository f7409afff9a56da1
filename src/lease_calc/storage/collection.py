from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

from lease_calc.financing.rates import as_amount, money_factor_to_apr
from lease_calc.vehicles.record import DEFAULT_HANDLING_FEES, LeaseVehicle, new_vehicle_id

logger = logging.getLogger(__name__)

# Bound views that can be edited alongside the stored fields.
DERIVED_EDITS = ("discount_amount", "money_factor")


class LastVehicleError(ValueError):
    """A collection that has held a vehicle must keep at least one."""


def _legacy(record: Mapping[str, Any], *keys: str) -> float:
    return sum(as_amount(record.get(k)) for k in keys)


def migrate_vehicle_record(record: Mapping[str, Any]) -> LeaseVehicle:
    """
    Bring a stored record of any schema age up to the current one.

    Absent fields take their defaults. Older layouts are folded in: cap-cost
    percent becomes a discount, a lone money factor becomes the APR, and the
    itemized fee fields collapse into the three current fee buckets.
    """
    d = dict(record)

    if d.get("discount") is None:
        if d.get("capCostPercent") is not None:
            d["discount"] = (1.0 - as_amount(d["capCostPercent"]) / 100.0) * 100.0
        elif as_amount(d.get("discountAmount")) and as_amount(d.get("msrp")) > 0:
            d["discount"] = as_amount(d["discountAmount"]) / as_amount(d["msrp"]) * 100.0

    if not as_amount(d.get("apr")) and as_amount(d.get("marketFactor")):
        d["apr"] = money_factor_to_apr(as_amount(d["marketFactor"]))

    title_and_dealer = as_amount(d.get("titleAndDealerFees"))
    if d.get("tagTitleFilingFees") is None:
        d["tagTitleFilingFees"] = (
            _legacy(d, "titleFee", "licensePlateFee", "registrationFee") + title_and_dealer * 0.6
        )
    if d.get("handlingFees") is None:
        handling = _legacy(d, "acquisitionFee", "documentationFee", "dealerFee") + title_and_dealer * 0.4
        d["handlingFees"] = handling or DEFAULT_HANDLING_FEES
    if "inspectionFee" in d or "dispositionFee" in d:
        d["otherFees"] = _legacy(d, "inspectionFee", "dispositionFee", "otherFees")

    if not d.get("id"):
        d["id"] = new_vehicle_id()
    return LeaseVehicle.from_record(d)


@dataclass
class SavedCollection:
    vehicles: list[LeaseVehicle] = field(default_factory=list)
    current_id: str | None = None

    @property
    def current(self) -> LeaseVehicle | None:
        if self.current_id is None:
            return None
        return self.get(self.current_id)

    def get(self, vehicle_id: str) -> LeaseVehicle:
        for v in self.vehicles:
            if v.id == vehicle_id:
                return v
        raise KeyError(vehicle_id)

    def _index(self, vehicle_id: str) -> int:
        for i, v in enumerate(self.vehicles):
            if v.id == vehicle_id:
                return i
        raise KeyError(vehicle_id)

    def add(self, vehicle: LeaseVehicle | None = None) -> LeaseVehicle:
        v = vehicle if vehicle is not None else LeaseVehicle()
        if any(existing.id == v.id for existing in self.vehicles):
            raise ValueError(f"vehicle id already in collection: {v.id}")
        self.vehicles.append(v)
        self.current_id = v.id
        return v

    def upsert(self, vehicle: LeaseVehicle) -> LeaseVehicle:
        # Loading a single saved vehicle replaces the one with the same id.
        try:
            self.vehicles[self._index(vehicle.id)] = vehicle
        except KeyError:
            self.vehicles.append(vehicle)
        self.current_id = vehicle.id
        return vehicle

    def select(self, vehicle_id: str) -> LeaseVehicle:
        v = self.get(vehicle_id)
        self.current_id = v.id
        return v

    def edit(self, vehicle_id: str, **changes: Any) -> LeaseVehicle:
        """
        Replace a vehicle with an edited copy.

        Stored fields are applied before the bound views (discount_amount,
        money_factor) so a new MSRP is used when converting a discount amount.
        """
        if "id" in changes:
            raise ValueError("vehicle id is immutable")
        stored = {f.name for f in fields(LeaseVehicle)}
        unknown = sorted(set(changes) - stored - set(DERIVED_EDITS))
        if unknown:
            raise ValueError(f"unknown vehicle fields: {', '.join(unknown)}")

        i = self._index(vehicle_id)
        v = replace(self.vehicles[i], **{k: val for k, val in changes.items() if k in stored})
        for name in DERIVED_EDITS:
            if name in changes:
                setattr(v, name, changes[name])
        self.vehicles[i] = v
        return v

    def delete(self, vehicle_id: str) -> None:
        i = self._index(vehicle_id)
        if len(self.vehicles) <= 1:
            raise LastVehicleError("cannot delete the last vehicle; add another first")
        del self.vehicles[i]
        if self.current_id == vehicle_id:
            self.current_id = self.vehicles[0].id

    def to_payload(self) -> dict[str, Any]:
        return {"cars": [v.to_record() for v in self.vehicles], "currentCarId": self.current_id}


def load_collection(payload: Any) -> SavedCollection:
    """Accept the multi-vehicle layout or the older single-vehicle one."""
    if not isinstance(payload, Mapping):
        raise ValueError("stored collection must be a JSON object")

    cars = payload.get("cars")
    if isinstance(cars, list):
        vehicles = [migrate_vehicle_record(c) for c in cars if isinstance(c, Mapping)]
        ids = {v.id for v in vehicles}
        current = payload.get("currentCarId")
        if current not in ids:
            current = vehicles[0].id if vehicles else None
        return SavedCollection(vehicles=vehicles, current_id=current)

    v = migrate_vehicle_record(payload)
    return SavedCollection(vehicles=[v], current_id=v.id)


class JsonCollectionStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> SavedCollection | None:
        # A missing or unreadable file means "start fresh", not a crash.
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return load_collection(payload)
        except (OSError, ValueError, TypeError) as e:
            logger.error("Failed to load vehicle collection from %s: %s", self.path, e)
            return None

    def save(self, collection: SavedCollection) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(collection.to_payload(), indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.debug("saved %d vehicles to %s", len(collection.vehicles), self.path)
