import pytest

from app.core.config import COLLECTION_DRIVERS, COLLECTION_VEHICLES
from app.core.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed
from app.models.driver import DriverCreate, DriverRatingUpdate
from app.models.enums import EntityType
from app.models.vehicle import VehicleCreate
from conftest import make_vendor


@pytest.fixture
async def fleet(services, db):
    owner = await make_vendor(db, "SUPER", email="fleet-owner@example.com")
    other = await make_vendor(db, "SUPER")

    async def vehicle(vendor, registration_number):
        return await services.vehicles.create_vehicle(
            vendor,
            VehicleCreate(registration_number=registration_number, model="Innova", seating_capacity=7, fuel_type="DIESEL"),
        )

    async def driver(vendor, email):
        return await services.drivers.create_driver(
            vendor, DriverCreate(name="Ravi Kumar", email=email, phone="9876543210")
        )

    return {
        "owner": owner,
        "other": other,
        "vehicle": await vehicle(owner, "ka01 ab 0001"),
        "vehicle2": await vehicle(owner, "KA01AB0002"),
        "driver": await driver(owner, "ravi@example.com"),
        "driver2": await driver(owner, "sita@example.com"),
        "foreign_driver": await driver(other, "arjun@example.com"),
    }


async def _pointers(db, vehicle_id, driver_id):
    vehicle = await db[COLLECTION_VEHICLES].find_one({"vehicle_id": vehicle_id})
    driver = await db[COLLECTION_DRIVERS].find_one({"driver_id": driver_id})
    return vehicle["assigned_driver_id"], driver["assigned_vehicle_id"]


async def test_registration_number_is_normalized_and_unique(services, fleet):
    assert fleet["vehicle"]["registration_number"] == "KA01 AB 0001"
    with pytest.raises(Conflict):
        await services.vehicles.create_vehicle(
            fleet["owner"],
            VehicleCreate(registration_number="ka01ab0002", model="Innova", seating_capacity=7, fuel_type="CNG"),
        )


async def test_assign_sets_both_pointers(services, db, fleet, mailer):
    vehicle_id = fleet["vehicle"]["vehicle_id"]
    driver_id = fleet["driver"]["driver_id"]

    result = await services.assignments.assign(fleet["owner"], vehicle_id, driver_id)

    assert result["vehicle"]["assigned_driver_id"] == driver_id
    assert result["driver"]["assigned_vehicle_id"] == vehicle_id
    assert await _pointers(db, vehicle_id, driver_id) == (driver_id, vehicle_id)
    assert "fleet-owner@example.com" in mailer.sent_to()


async def test_reassigning_same_pair_is_allowed(services, db, fleet):
    vehicle_id = fleet["vehicle"]["vehicle_id"]
    driver_id = fleet["driver"]["driver_id"]
    await services.assignments.assign(fleet["owner"], vehicle_id, driver_id)
    await services.assignments.assign(fleet["owner"], vehicle_id, driver_id)
    assert await _pointers(db, vehicle_id, driver_id) == (driver_id, vehicle_id)


async def test_conflicting_assignment_is_rejected(services, db, fleet):
    owner = fleet["owner"]
    await services.assignments.assign(owner, fleet["vehicle"]["vehicle_id"], fleet["driver"]["driver_id"])

    with pytest.raises(ValidationFailed):
        await services.assignments.assign(owner, fleet["vehicle2"]["vehicle_id"], fleet["driver"]["driver_id"])
    with pytest.raises(ValidationFailed):
        await services.assignments.assign(owner, fleet["vehicle"]["vehicle_id"], fleet["driver2"]["driver_id"])

    assert await _pointers(db, fleet["vehicle2"]["vehicle_id"], fleet["driver2"]["driver_id"]) == (None, None)


async def test_assignment_across_vendors_is_rejected(services, fleet):
    # a SUPER vendor cannot reach another SUPER vendor's driver
    with pytest.raises(PermissionDenied):
        await services.assignments.assign(
            fleet["owner"], fleet["vehicle"]["vehicle_id"], fleet["foreign_driver"]["driver_id"]
        )


async def test_unassign_clears_both_pointers(services, db, fleet):
    vehicle_id = fleet["vehicle"]["vehicle_id"]
    driver_id = fleet["driver"]["driver_id"]
    await services.assignments.assign(fleet["owner"], vehicle_id, driver_id)

    result = await services.assignments.unassign_driver(fleet["owner"], driver_id)

    assert result["driver_id"] == driver_id
    assert await _pointers(db, vehicle_id, driver_id) == (None, None)
    with pytest.raises(ValidationFailed):
        await services.assignments.unassign_vehicle(fleet["owner"], vehicle_id)


async def test_delete_vehicle_frees_driver_and_drops_documents(services, db, fleet):
    vehicle_id = fleet["vehicle"]["vehicle_id"]
    driver_id = fleet["driver"]["driver_id"]
    await services.assignments.assign(fleet["owner"], vehicle_id, driver_id)
    await services.documents.create_embedded_documents(
        EntityType.VEHICLE, vehicle_id, {"permit": {"number": "P-9", "document_url": "https://x/p.pdf"}},
        fleet["owner"]["vendor_id"],
    )

    await services.vehicles.delete_vehicle(vehicle_id)

    driver = await db[COLLECTION_DRIVERS].find_one({"driver_id": driver_id})
    assert driver["assigned_vehicle_id"] is None
    assert await services.documents.list_entity_documents(EntityType.VEHICLE, vehicle_id) == []
    with pytest.raises(NotFound):
        await services.vehicles.get_vehicle(vehicle_id)


async def test_delete_driver_frees_vehicle(services, db, fleet):
    vehicle_id = fleet["vehicle"]["vehicle_id"]
    driver_id = fleet["driver"]["driver_id"]
    await services.assignments.assign(fleet["owner"], vehicle_id, driver_id)

    await services.drivers.delete_driver(driver_id)

    vehicle = await db[COLLECTION_VEHICLES].find_one({"vehicle_id": vehicle_id})
    assert vehicle["assigned_driver_id"] is None


async def test_update_rating_counts_completed_trips(services, fleet):
    driver_id = fleet["driver"]["driver_id"]

    await services.drivers.update_rating(driver_id, DriverRatingUpdate(rating=4.5, completed_trip=True))
    updated = await services.drivers.update_rating(driver_id, DriverRatingUpdate(rating=4.0))

    assert updated["rating"] == 4.0
    assert updated["total_trips"] == 1
