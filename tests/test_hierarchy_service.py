import itertools

import pytest

from app.core.config import COLLECTION_VENDORS
from app.core.exceptions import InvalidHierarchy, NotFound, PermissionDenied, ValidationFailed
from app.models.enums import VendorType
from app.services.cache_service import HIERARCHY_KEY
from app.services.hierarchy_service import is_valid_pairing
from conftest import make_vendor

PERMITTED = {
    ("SUPER", "CITY"),
    ("CITY", "SUB"),
    ("CITY", "LOCAL"),
    ("SUB", "LOCAL"),
}


@pytest.mark.parametrize(
    "parent_type, child_type",
    list(itertools.product([t.value for t in VendorType], repeat=2)),
)
def test_is_valid_pairing_matches_permitted_pairs(parent_type, child_type):
    assert is_valid_pairing(parent_type, child_type) == ((parent_type, child_type) in PERMITTED)


def test_is_valid_pairing_accepts_enums():
    assert is_valid_pairing(VendorType.CITY, VendorType.LOCAL)
    assert not is_valid_pairing(VendorType.REGIONAL, VendorType.CITY)


@pytest.fixture
async def tree(db):
    """SUPER -> CITY(Metropolis) -> {SUB -> LOCAL2, LOCAL}."""
    super_vendor = await make_vendor(db, "SUPER", name="Acme")
    city = await make_vendor(db, "CITY", super_vendor, name="Metro", city="Metropolis", zones=["North", "South"])
    sub = await make_vendor(db, "SUB", city, name="Metro Sub", city="Metropolis", zones=["North"])
    local = await make_vendor(db, "LOCAL", city, name="Metro Local", city="Metropolis", zones=["South"])
    local2 = await make_vendor(db, "LOCAL", sub, name="Sub Local", city="Metropolis", zones=["North"])
    return {"super": super_vendor, "city": city, "sub": sub, "local": local, "local2": local2}


async def test_validate_hierarchy(services, tree):
    hierarchy = services.hierarchy
    assert await hierarchy.validate_hierarchy(tree["city"]["vendor_id"], tree["super"]["vendor_id"])
    assert not await hierarchy.validate_hierarchy(tree["super"]["vendor_id"], tree["city"]["vendor_id"])
    assert not await hierarchy.validate_hierarchy("missing", tree["super"]["vendor_id"])


async def test_build_vendor_hierarchy(services, tree):
    result = await services.hierarchy.build_vendor_hierarchy(tree["super"]["vendor_id"])

    root = result["vendor"]
    assert root["id"] == tree["super"]["vendor_id"]
    assert [c["id"] for c in root["children"]] == [tree["city"]["vendor_id"]]

    city_node = root["children"][0]
    assert [c["type"] for c in city_node["children"]] == ["SUB", "LOCAL"]
    sub_node = city_node["children"][0]
    assert [c["id"] for c in sub_node["children"]] == [tree["local2"]["vendor_id"]]
    assert sub_node["children"][0]["children"] == []


async def test_build_vendor_hierarchy_missing_vendor(services):
    assert await services.hierarchy.build_vendor_hierarchy("nope") is None


async def test_get_vendor_hierarchy_is_cached(services, tree):
    vendor_id = tree["city"]["vendor_id"]
    first = await services.hierarchy.get_vendor_hierarchy(vendor_id)

    assert await services.cache.get(HIERARCHY_KEY.format(vendor_id)) == first


async def test_get_all_sub_vendors_returns_each_descendant_once(services, tree):
    descendants = await services.hierarchy.get_all_sub_vendors(tree["super"]["vendor_id"])

    ids = [v["vendor_id"] for v in descendants]
    assert len(ids) == len(set(ids))
    assert set(ids) == {
        tree["city"]["vendor_id"],
        tree["sub"]["vendor_id"],
        tree["local"]["vendor_id"],
        tree["local2"]["vendor_id"],
    }
    assert all("password_hash" not in v for v in descendants)


async def test_walks_terminate_with_injected_cycle(services, db, tree):
    # SUPER now claims CITY as its parent
    await db[COLLECTION_VENDORS].update_one(
        {"vendor_id": tree["super"]["vendor_id"]},
        {"$set": {"parent_vendor_id": tree["city"]["vendor_id"]}},
    )

    descendants = await services.hierarchy.get_all_sub_vendors(tree["super"]["vendor_id"])
    ids = [v["vendor_id"] for v in descendants]
    assert tree["super"]["vendor_id"] not in ids
    assert len(ids) == len(set(ids)) == 4

    chain = await services.hierarchy.get_parent_chain(tree["city"]["vendor_id"])
    assert [c["id"] for c in chain] == [tree["super"]["vendor_id"]]

    assert await services.hierarchy.build_vendor_hierarchy(tree["super"]["vendor_id"]) is not None


async def test_get_parent_chain(services, tree):
    chain = await services.hierarchy.get_parent_chain(tree["local2"]["vendor_id"])
    assert [c["type"] for c in chain] == ["SUB", "CITY", "SUPER"]
    assert await services.hierarchy.get_parent_chain(tree["super"]["vendor_id"]) == []


async def test_get_sub_vendors_filters_by_type(services, tree):
    locals_only = await services.hierarchy.get_sub_vendors(tree["city"]["vendor_id"], VendorType.LOCAL)
    assert [v["vendor_id"] for v in locals_only] == [tree["local"]["vendor_id"]]


async def test_local_outside_city_operating_area_is_rejected(services, tree):
    with pytest.raises(ValidationFailed):
        await services.hierarchy.ensure_valid_parent(
            "LOCAL", tree["city"], operating_area={"city": "OtherCity", "zones": ["North"]}
        )
    with pytest.raises(ValidationFailed):
        await services.hierarchy.ensure_valid_parent(
            "LOCAL", tree["city"], operating_area={"city": "Metropolis", "zones": ["East"]}
        )
    with pytest.raises(ValidationFailed):
        await services.hierarchy.ensure_valid_parent(
            "LOCAL", tree["city"], operating_area={"city": "Metropolis", "zones": []}
        )


async def test_local_inside_city_operating_area_is_accepted(services, tree):
    await services.hierarchy.ensure_valid_parent(
        "LOCAL", tree["city"], operating_area={"city": " metropolis ", "zones": ["north", "SOUTH"]}
    )


async def test_ensure_valid_parent_rejects_bad_pairing_and_cycles(services, tree):
    with pytest.raises(InvalidHierarchy):
        await services.hierarchy.ensure_valid_parent("CITY", tree["sub"])
    with pytest.raises(InvalidHierarchy):
        await services.hierarchy.ensure_valid_parent("SUB", tree["city"], child_id=tree["city"]["vendor_id"])


async def test_transfer_local_from_city_to_sub(services, db, tree):
    await services.cache.set(HIERARCHY_KEY.format(tree["city"]["vendor_id"]), {"stale": True})

    moved = await services.hierarchy.transfer_vendor(tree["local"]["vendor_id"], tree["sub"]["vendor_id"])

    assert moved["parent_vendor_id"] == tree["sub"]["vendor_id"]
    stored = await db[COLLECTION_VENDORS].find_one({"vendor_id": tree["local"]["vendor_id"]})
    assert stored["parent_vendor_id"] == tree["sub"]["vendor_id"]
    assert await services.cache.get(HIERARCHY_KEY.format(tree["city"]["vendor_id"])) is None


async def test_transfer_rejects_invalid_parent(services, tree):
    with pytest.raises(InvalidHierarchy):
        await services.hierarchy.transfer_vendor(tree["city"]["vendor_id"], tree["sub"]["vendor_id"])
    with pytest.raises(NotFound):
        await services.hierarchy.transfer_vendor(tree["local"]["vendor_id"], "missing")


async def test_transfer_local_to_city_with_other_zones_is_rejected(services, db, tree):
    other_city = await make_vendor(db, "CITY", tree["super"], city="Gotham", zones=["East"])
    with pytest.raises(ValidationFailed):
        await services.hierarchy.transfer_vendor(tree["local"]["vendor_id"], other_city["vendor_id"])


async def test_transfer_sub_rejected_when_its_locals_leave_the_city_area(services, db, tree):
    other_city = await make_vendor(db, "CITY", tree["super"], city="Gotham", zones=["East"])

    with pytest.raises(ValidationFailed):
        await services.hierarchy.transfer_vendor(tree["sub"]["vendor_id"], other_city["vendor_id"])

    stored = await db[COLLECTION_VENDORS].find_one({"vendor_id": tree["sub"]["vendor_id"]})
    assert stored["parent_vendor_id"] == tree["city"]["vendor_id"]


async def test_transfer_sub_to_city_covering_its_locals(services, db, tree):
    twin_city = await make_vendor(db, "CITY", tree["super"], city="Metropolis", zones=["North", "West"])

    moved = await services.hierarchy.transfer_vendor(tree["sub"]["vendor_id"], twin_city["vendor_id"])

    assert moved["parent_vendor_id"] == twin_city["vendor_id"]


async def test_can_manage(services, tree):
    hierarchy = services.hierarchy
    assert await hierarchy.can_manage(tree["super"], tree["local2"]["vendor_id"])
    assert await hierarchy.can_manage(tree["sub"], tree["sub"]["vendor_id"])
    assert not await hierarchy.can_manage(tree["local"], tree["city"]["vendor_id"])
    assert not await hierarchy.can_manage(tree["sub"], tree["local"]["vendor_id"])

    with pytest.raises(PermissionDenied):
        await hierarchy.ensure_can_manage(tree["local"], tree["city"]["vendor_id"])
    with pytest.raises(NotFound):
        await hierarchy.ensure_can_manage(tree["super"], "missing")


async def test_get_vendor_stats_counts_descendants(services, tree):
    stats = await services.hierarchy.get_vendor_stats(tree["super"]["vendor_id"])

    assert stats["hierarchy"]["total_vendors"] == 5
    assert stats["hierarchy"]["vendor_types"] == {"SUPER": 0, "CITY": 1, "SUB": 1, "LOCAL": 2}
    assert stats["vendors"]["total"] == 1
