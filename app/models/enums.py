from enum import Enum


class VendorType(str, Enum):
    SUPER = "SUPER"
    REGIONAL = "REGIONAL"
    CITY = "CITY"
    SUB = "SUB"
    LOCAL = "LOCAL"


class Permission(str, Enum):
    ALL = "ALL"
    FLEET_MANAGEMENT = "FLEET_MANAGEMENT"
    DRIVER_MANAGEMENT = "DRIVER_MANAGEMENT"
    PAYMENT_PROCESSING = "PAYMENT_PROCESSING"
    COMPLIANCE_TRACKING = "COMPLIANCE_TRACKING"
    DOCUMENT_VERIFICATION = "DOCUMENT_VERIFICATION"
    REPORT_GENERATION = "REPORT_GENERATION"
    USER_MANAGEMENT = "USER_MANAGEMENT"
    SETTINGS_MANAGEMENT = "SETTINGS_MANAGEMENT"


class VehicleStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"
    SUSPENDED = "SUSPENDED"


class DriverStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class FuelType(str, Enum):
    PETROL = "PETROL"
    DIESEL = "DIESEL"
    CNG = "CNG"
    ELECTRIC = "ELECTRIC"


class EntityType(str, Enum):
    VEHICLE = "VEHICLE"
    DRIVER = "DRIVER"
    VENDOR = "VENDOR"


class DocumentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class VendorLevel(str, Enum):
    CITY = "city"
    SUB = "sub"
    LOCAL = "local"
