from datetime import datetime, timedelta, timezone

from app.utiles.document_helpers import (
    derive_document_status,
    get_days_until_expiry,
    is_document_expired,
    is_document_expiring_soon,
    is_entity_compliant,
    summarize_documents,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_expired_only_strictly_before_now():
    assert is_document_expired(NOW - timedelta(seconds=1), NOW)
    assert not is_document_expired(NOW, NOW)
    assert not is_document_expired(NOW + timedelta(days=1), NOW)


def test_missing_expiry_never_expires():
    assert not is_document_expired(None, NOW)
    assert not is_document_expiring_soon(None, 30, NOW)


def test_naive_datetimes_are_treated_as_utc():
    naive = (NOW - timedelta(hours=1)).replace(tzinfo=None)
    assert is_document_expired(naive, NOW)


def test_expiring_soon_window_boundaries():
    assert is_document_expiring_soon(NOW + timedelta(days=30), 30, NOW)
    assert is_document_expiring_soon(NOW + timedelta(minutes=1), 30, NOW)
    assert not is_document_expiring_soon(NOW + timedelta(days=30, seconds=1), 30, NOW)
    assert not is_document_expiring_soon(NOW, 30, NOW)
    assert not is_document_expiring_soon(NOW - timedelta(days=1), 30, NOW)


def test_days_until_expiry_rounds_up():
    assert get_days_until_expiry(NOW + timedelta(days=2, hours=1), NOW) == 3
    assert get_days_until_expiry(NOW + timedelta(days=2), NOW) == 2
    assert get_days_until_expiry(NOW - timedelta(days=2, hours=1), NOW) == -2


def test_derive_document_status():
    assert derive_document_status(NOW - timedelta(days=1), True, NOW) == "EXPIRED"
    assert derive_document_status(NOW + timedelta(days=1), True, NOW) == "ACTIVE"
    assert derive_document_status(NOW + timedelta(days=1), False, NOW) == "PENDING_VERIFICATION"
    assert derive_document_status(None, True, NOW) == "ACTIVE"


def test_entity_without_documents_is_not_compliant():
    assert not is_entity_compliant([], NOW)


def test_entity_compliance_requires_verified_and_unexpired():
    good = {"is_verified": True, "expiry_date": NOW + timedelta(days=90)}
    no_expiry = {"is_verified": True, "expiry_date": None}
    unverified = {"is_verified": False, "expiry_date": NOW + timedelta(days=90)}
    expired = {"is_verified": True, "expiry_date": NOW - timedelta(days=1)}

    assert is_entity_compliant([good, no_expiry], NOW)
    assert not is_entity_compliant([good, unverified], NOW)
    assert not is_entity_compliant([good, expired], NOW)


def test_summarize_documents_splits_expired_and_expiring():
    documents = [
        {"document_id": "a", "document_type": "permit", "expiry_date": NOW - timedelta(days=3)},
        {"document_id": "b", "document_type": "pollution_certificate", "expiry_date": NOW + timedelta(days=5)},
        {"document_id": "c", "document_type": "registration_certificate", "expiry_date": NOW + timedelta(days=200)},
        {"document_id": "d", "document_type": "identity_proof", "expiry_date": None},
    ]

    summary = summarize_documents(documents, 30, NOW)

    assert summary["is_expired"] is True
    assert summary["expiring_soon"] is True
    assert [d["document_id"] for d in summary["expired_documents"]] == ["a"]
    assert summary["expired_documents"][0]["days_overdue"] == 3
    assert [d["document_id"] for d in summary["expiring_soon_documents"]] == ["b"]
    assert summary["expiring_soon_documents"][0]["days_until_expiry"] == 5
