# app/services/hierarchy_service.py
"""
Vendor hierarchy resolution.

The tree is SUPER -> CITY -> {SUB, LOCAL}, with SUB -> LOCAL allowed for
transfers. Parent links are plain ``parent_vendor_id`` references, so every
walk here is depth bounded and keeps a visited set instead of trusting the
type ordering to rule out cycles.
"""
import asyncio
from typing import Any, Dict, List, Optional, Set

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import COLLECTION_VENDORS
from app.core.exceptions import InvalidHierarchy, NotFound, PermissionDenied, ValidationFailed
from app.models.enums import VendorType
from app.services.cache_service import CacheService, ALL_VENDORS_KEY, HIERARCHY_KEY
from app.services.fleet_stats_service import FleetStatsService
from app.utiles.custom_helpers import _storage_now
from app.utiles.logger import get_logger

logger = get_logger(__name__)

# SUPER > CITY > SUB > LOCAL
MAX_HIERARCHY_DEPTH = 4

# child type -> permitted parent types
ALLOWED_PARENT_TYPES = {
    VendorType.CITY.value: {VendorType.SUPER.value},
    VendorType.SUB.value: {VendorType.CITY.value},
    VendorType.LOCAL.value: {VendorType.CITY.value, VendorType.SUB.value},
}

# parent type -> child types that appear under it in the tree
CHILD_TYPES = {
    VendorType.SUPER.value: [VendorType.CITY.value],
    VendorType.CITY.value: [VendorType.SUB.value, VendorType.LOCAL.value],
    VendorType.SUB.value: [VendorType.LOCAL.value],
    VendorType.LOCAL.value: [],
}

VENDOR_PROJECTION = {"_id": 0, "password_hash": 0}


def _type_value(vendor_type) -> str:
    return vendor_type.value if isinstance(vendor_type, VendorType) else str(vendor_type)


def is_valid_pairing(parent_type, child_type) -> bool:
    """True only for SUPER->CITY, CITY->SUB, CITY->LOCAL and SUB->LOCAL."""
    return _type_value(parent_type) in ALLOWED_PARENT_TYPES.get(_type_value(child_type), set())


def _node(vendor: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": vendor["vendor_id"],
        "name": vendor.get("name"),
        "type": vendor.get("vendor_type"),
        "children": [],
    }


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class HierarchyService:
    def __init__(self, db: AsyncIOMotorDatabase, cache: CacheService, fleet_stats: FleetStatsService):
        self.db = db
        self.cache = cache
        self.fleet_stats = fleet_stats

    @property
    def vendors(self):
        return self.db[COLLECTION_VENDORS]

    async def get_vendor(self, vendor_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not vendor_id:
            return None
        return await self.vendors.find_one({"vendor_id": vendor_id}, VENDOR_PROJECTION)

    # --------------------------
    # Validation
    # --------------------------
    async def validate_hierarchy(self, vendor_id: str, parent_vendor_id: str) -> bool:
        """Check whether ``parent_vendor_id`` may be the parent of ``vendor_id``."""
        vendor, parent = await asyncio.gather(self.get_vendor(vendor_id), self.get_vendor(parent_vendor_id))
        if not vendor or not parent:
            return False
        return is_valid_pairing(parent["vendor_type"], vendor["vendor_type"])

    async def find_city_ancestor(self, parent: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if parent.get("vendor_type") == VendorType.CITY.value:
            return parent
        if parent.get("vendor_type") == VendorType.SUB.value:
            return await self.get_vendor(parent.get("parent_vendor_id"))
        return None

    def check_operating_area(self, operating_area: Dict[str, Any], city_vendor: Dict[str, Any]):
        """A LOCAL vendor must sit inside its CITY's city and zones."""
        operating_area = operating_area or {}
        parent_area = city_vendor.get("operating_area") or {}

        local_city = _norm(operating_area.get("city"))
        parent_city = _norm(parent_area.get("city"))
        if not local_city or not parent_city or local_city != parent_city:
            logger.error(
                "Operating area city mismatch: local=%s parent=%s (parent_id=%s)",
                operating_area.get("city"), parent_area.get("city"), city_vendor.get("vendor_id"),
            )
            raise ValidationFailed(
                "Local vendor operating area city must match the parent City vendor operating area city."
            )

        local_zones = {_norm(z) for z in operating_area.get("zones") or []}
        parent_zones = {_norm(z) for z in parent_area.get("zones") or []}
        if not local_zones or not local_zones.issubset(parent_zones):
            logger.error("Zone validation failed: local=%s parent=%s", local_zones, parent_zones)
            raise ValidationFailed(
                "One or more zones specified for the Local vendor do not exist in the parent City vendor's zones."
            )

    async def ensure_valid_parent(
        self,
        child_type,
        parent: Dict[str, Any],
        child_id: Optional[str] = None,
        operating_area: Optional[Dict[str, Any]] = None,
    ):
        """
        Reject a parent assignment that breaks the type ordering, would create
        a cycle, or would push the tree past its depth bound.
        """
        child_type = _type_value(child_type)
        if not is_valid_pairing(parent.get("vendor_type"), child_type):
            logger.error(
                "Invalid hierarchy: %s cannot be placed under %s (%s)",
                child_type, parent.get("vendor_type"), parent.get("vendor_id"),
            )
            raise InvalidHierarchy(
                f"A {child_type} vendor cannot be placed under a {parent.get('vendor_type')} vendor"
            )

        chain = await self.get_parent_chain(parent["vendor_id"])
        ancestor_ids = [parent["vendor_id"]] + [item["id"] for item in chain]
        if child_id and child_id in ancestor_ids:
            logger.error("Invalid hierarchy: assigning %s under %s creates a cycle", child_id, parent["vendor_id"])
            raise InvalidHierarchy("Vendor cannot be placed under itself or one of its descendants")
        if len(ancestor_ids) + 1 > MAX_HIERARCHY_DEPTH:
            raise InvalidHierarchy("Vendor hierarchy cannot exceed four levels")

        if child_type == VendorType.LOCAL.value:
            city_vendor = await self.find_city_ancestor(parent)
            if not city_vendor:
                raise InvalidHierarchy("Local vendors must belong to a City vendor")
            self.check_operating_area(operating_area, city_vendor)

    # --------------------------
    # Tree construction
    # --------------------------
    async def build_vendor_hierarchy(self, vendor_id: str) -> Optional[Dict[str, Any]]:
        """Build ``{"vendor": {id, name, type, children}}`` for a vendor, or None."""
        vendor = await self.get_vendor(vendor_id)
        if not vendor:
            return None

        root = _node(vendor)
        visited: Set[str] = {vendor_id}
        stack = [(root, vendor, 1)]

        while stack:
            node, current, depth = stack.pop()
            child_types = CHILD_TYPES.get(current.get("vendor_type"), [])
            if not child_types or depth >= MAX_HIERARCHY_DEPTH:
                continue

            children = await self.vendors.find(
                {"parent_vendor_id": current["vendor_id"], "vendor_type": {"$in": child_types}},
                VENDOR_PROJECTION,
            ).to_list(None)
            # SUB nodes before LOCAL nodes, matching the type ordering
            children.sort(key=lambda c: child_types.index(c["vendor_type"]))

            for child in children:
                if child["vendor_id"] in visited:
                    logger.warning("Skipping repeated vendor %s while building hierarchy", child["vendor_id"])
                    continue
                visited.add(child["vendor_id"])
                child_node = _node(child)
                node["children"].append(child_node)
                stack.append((child_node, child, depth + 1))

        return {"vendor": root}

    async def get_vendor_hierarchy(self, vendor_id: str) -> Optional[Dict[str, Any]]:
        return await self.cache.cache_vendor_hierarchy(vendor_id, self.build_vendor_hierarchy)

    # --------------------------
    # Walks
    # --------------------------
    async def get_sub_vendors(self, vendor_id: str, vendor_type: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"parent_vendor_id": vendor_id}
        if vendor_type:
            query["vendor_type"] = _type_value(vendor_type)
        return await self.vendors.find(query, VENDOR_PROJECTION).to_list(None)

    async def get_all_sub_vendors(self, vendor_id: str) -> List[Dict[str, Any]]:
        """Depth-first list of every descendant; bounded and cycle safe."""
        result: List[Dict[str, Any]] = []
        visited: Set[str] = {vendor_id}
        stack = [(vendor_id, 1)]

        while stack:
            current_id, depth = stack.pop()
            if depth >= MAX_HIERARCHY_DEPTH:
                continue
            children = await self.vendors.find({"parent_vendor_id": current_id}, VENDOR_PROJECTION).to_list(None)
            # reversed so the walk visits children in query order
            for child in reversed(children):
                if child["vendor_id"] in visited:
                    logger.warning("Cycle or duplicate detected at vendor %s", child["vendor_id"])
                    continue
                visited.add(child["vendor_id"])
                result.append(child)
                stack.append((child["vendor_id"], depth + 1))

        return result

    async def get_parent_chain(self, vendor_id: str) -> List[Dict[str, Any]]:
        """Ancestors from the direct parent up to the root."""
        chain: List[Dict[str, Any]] = []
        visited: Set[str] = {vendor_id}
        current = await self.get_vendor(vendor_id)

        while current and current.get("parent_vendor_id") and len(chain) < MAX_HIERARCHY_DEPTH:
            parent_id = current["parent_vendor_id"]
            if parent_id in visited:
                logger.warning("Cycle detected in parent chain of vendor %s at %s", vendor_id, parent_id)
                break
            parent = await self.get_vendor(parent_id)
            if not parent:
                break
            visited.add(parent_id)
            chain.append({"id": parent["vendor_id"], "name": parent.get("name"), "type": parent.get("vendor_type")})
            current = parent

        return chain

    # --------------------------
    # Authorization
    # --------------------------
    async def can_manage(self, actor: Dict[str, Any], vendor_id: str) -> bool:
        """The actor manages itself and every vendor below it."""
        if actor["vendor_id"] == vendor_id:
            return True
        chain = await self.get_parent_chain(vendor_id)
        return any(item["id"] == actor["vendor_id"] for item in chain)

    async def ensure_can_manage(self, actor: Dict[str, Any], vendor_id: str) -> Dict[str, Any]:
        vendor = await self.get_vendor(vendor_id)
        if not vendor:
            logger.warning("Vendor not found: vendor_id=%s", vendor_id)
            raise NotFound("Vendor not found")
        if not await self.can_manage(actor, vendor_id):
            logger.warning("Vendor %s is outside the hierarchy of %s", vendor_id, actor["vendor_id"])
            raise PermissionDenied("You are not authorized to access this vendor")
        return vendor

    # --------------------------
    # Mutations
    # --------------------------
    async def invalidate_hierarchy_caches(self, *vendor_ids: Optional[str]):
        await self.cache.delete(*[HIERARCHY_KEY.format(v) for v in vendor_ids if v])
        await self.cache.clear_by_pattern(HIERARCHY_KEY.format("*"))
        await self.cache.clear_by_pattern(ALL_VENDORS_KEY.format("*"))
        for vendor_id in vendor_ids:
            if vendor_id:
                await self.fleet_stats.invalidate(vendor_id)

    async def _ensure_locals_fit_city(self, vendor_id: str, new_parent: Dict[str, Any]):
        """LOCAL vendors below a moved SUB must still fit the CITY they end up under."""
        local_vendors = [
            v for v in await self.get_all_sub_vendors(vendor_id)
            if v.get("vendor_type") == VendorType.LOCAL.value
        ]
        if not local_vendors:
            return

        city_vendor = await self.find_city_ancestor(new_parent)
        if not city_vendor:
            raise InvalidHierarchy("Local vendors must belong to a City vendor")
        for local in local_vendors:
            try:
                self.check_operating_area(local.get("operating_area"), city_vendor)
            except ValidationFailed as e:
                logger.error(
                    "Transfer of %s rejected: local vendor %s falls outside city %s",
                    vendor_id, local["vendor_id"], city_vendor["vendor_id"],
                )
                raise ValidationFailed(
                    f"Local vendor {local['name']} does not fit the operating area of the target City vendor"
                ) from e

    async def transfer_vendor(self, vendor_id: str, new_parent_id: str) -> Dict[str, Any]:
        """Re-parent a vendor after re-validating the pairing."""
        vendor, new_parent = await asyncio.gather(self.get_vendor(vendor_id), self.get_vendor(new_parent_id))
        if not vendor or not new_parent:
            logger.error("Transfer failed: vendor=%s or parent=%s not found", vendor_id, new_parent_id)
            raise NotFound("Vendor or parent not found")

        await self.ensure_valid_parent(
            vendor["vendor_type"],
            new_parent,
            child_id=vendor_id,
            operating_area=vendor.get("operating_area"),
        )
        if vendor["vendor_type"] == VendorType.SUB.value:
            await self._ensure_locals_fit_city(vendor_id, new_parent)

        old_parent_id = vendor.get("parent_vendor_id")
        now = _storage_now()
        await self.vendors.update_one(
            {"vendor_id": vendor_id},
            {"$set": {"parent_vendor_id": new_parent_id, "updated_at": now}},
        )
        await self.invalidate_hierarchy_caches(old_parent_id, new_parent_id, vendor_id)

        logger.info("Vendor %s transferred from %s to %s", vendor_id, old_parent_id, new_parent_id)
        vendor.update({"parent_vendor_id": new_parent_id, "updated_at": now})
        return vendor

    # --------------------------
    # Stats
    # --------------------------
    async def get_vendor_stats(self, vendor_id: str) -> Dict[str, Any]:
        vendor = await self.get_vendor(vendor_id)
        if not vendor:
            raise NotFound("Vendor not found")

        sub_vendors, stats = await asyncio.gather(
            self.get_all_sub_vendors(vendor_id),
            self.fleet_stats.get_fleet_stats(vendor_id),
        )
        stats = dict(stats)
        stats["hierarchy"] = {
            "total_vendors": len(sub_vendors) + 1,
            "vendor_types": {
                vendor_type: sum(1 for v in sub_vendors if v.get("vendor_type") == vendor_type)
                for vendor_type in (VendorType.SUPER.value, VendorType.CITY.value, VendorType.SUB.value, VendorType.LOCAL.value)
            },
        }
        return stats
