"""
Test Suite: Record Store Type Slots

A URL holds at most one live record per schema type. The slot is taken at
record creation (explicit types) or on success (Auto), and released when the
record fails or is soft deleted.
"""

import pytest

from schemaforge.database import GenerationStatus
from schemaforge.models import DuplicateSchemaType, RegenerationLimitReached

URL = "https://example.org/guides/widgets"


class TestTypeSlots:
    """Test the live (account, url, type) uniqueness."""

    def test_second_claim_rejected(self, store, funded_account):
        store.create(funded_account, URL, "Article", claim_type="Article")

        with pytest.raises(DuplicateSchemaType):
            store.create(funded_account, URL, "Article", claim_type="Article")

    def test_unclaimed_records_do_not_collide(self, store, funded_account):
        store.create(funded_account, URL, "Auto")
        store.create(funded_account, URL, "Auto")

        assert len(store.find_for_url(funded_account, URL)) == 2

    def test_other_url_or_account_is_independent(self, store, ledger, funded_account):
        other_account = ledger.open_account("acct-other", initial_balance=1)
        store.create(funded_account, URL, "Article", claim_type="Article")

        store.create(funded_account, URL + "/2", "Article", claim_type="Article")
        store.create(other_account, URL, "Article", claim_type="Article")

    def test_failed_record_releases_slot(self, store, funded_account):
        record_id = store.create(funded_account, URL, "Article", claim_type="Article")
        store.update(record_id, status=GenerationStatus.FAILED, live_type=None)

        store.create(funded_account, URL, "Article", claim_type="Article")

    def test_soft_delete_releases_slot(self, store, funded_account):
        record_id = store.create(funded_account, URL, "Article", claim_type="Article")
        store.update(record_id, status=GenerationStatus.SUCCESS, final_type="Article")
        store.soft_delete(record_id, funded_account)

        assert store.get(record_id).live_type is None
        store.create(funded_account, URL, "Article", claim_type="Article")


class TestClaimSuccess:
    """Test the success-time claim used for Auto generations."""

    def test_claim_reports_earlier_payment(self, store, funded_account):
        first = store.create(funded_account, URL, "Auto")
        second = store.create(funded_account, URL, "Auto")

        with store.scope() as db:
            assert store.claim_success(db, first, funded_account, URL, "Article") is False
        with store.scope() as db:
            assert store.claim_success(db, second, funded_account, URL, "WebPage") is True

        assert store.get(second).live_type == "WebPage"

    def test_claim_of_held_type_rejected(self, store, funded_account):
        store.create(funded_account, URL, "Article", claim_type="Article")
        pending = store.create(funded_account, URL, "Auto")

        with pytest.raises(DuplicateSchemaType):
            with store.scope() as db:
                store.claim_success(db, pending, funded_account, URL, "Article")

        assert store.get(pending).status == GenerationStatus.PENDING, "Rejected claim must not persist"

    def test_claim_after_regeneration_rejected(self, store, funded_account):
        original = store.create(funded_account, URL, "Article", claim_type="Article")
        store.update(original, status=GenerationStatus.SUCCESS, final_type="Article")
        store.soft_delete(original, funded_account)
        regenerated = store.create(funded_account, URL, "Auto")
        with store.scope() as db:
            store.claim_success(db, regenerated, funded_account, URL, "Article")
        assert store.get(regenerated).deletion_count == 1

        pending = store.create(funded_account, URL, "Auto")
        with pytest.raises(RegenerationLimitReached):
            with store.scope() as db:
                store.claim_success(db, pending, funded_account, URL, "Article")

    def test_discard_removes_pending_record(self, store, funded_account):
        record_id = store.create(funded_account, URL, "Article", claim_type="Article")

        store.discard(record_id)

        assert store.get(record_id) is None
        store.create(funded_account, URL, "Article", claim_type="Article")
