# tests/test_registry.py
"""Tests for the registry state machine."""

import threading

import pytest

from mediavault import BlockClock, MediaRegistry
from mediavault.errors import (
    ContentAlreadyExists,
    ContentMissing,
    FileSizeViolation,
    InvalidMetadata,
    MalformedCall,
    OwnershipMismatch,
    RegistryError,
    TagValidationFailed,
    ViewingRestricted,
)
from mediavault.vault import ContentRecord

ALICE = "alice"
BOB = "bob"
CAROL = "carol"


@pytest.fixture
def clock():
    return BlockClock(100)


@pytest.fixture
def registry(clock):
    return MediaRegistry(master_authority="admin", clock=clock)


def register_sample(registry, caller=ALICE, title="Sunset"):
    return registry.register(caller, title, 2048, "Beach at dusk", ["photo", "beach"])


class TestRegister:
    """Test registration."""

    def test_ids_are_sequential(self, registry):
        """Successive registrations yield 1, 2, 3."""
        ids = [register_sample(registry, title=f"t{i}") for i in range(3)]
        assert ids == [1, 2, 3]
        assert registry.counter.peek() == 3

    def test_record_fields(self, registry, clock):
        """Retrieve returns submitted fields plus created_at from the clock."""
        content_id = register_sample(registry)
        view = registry.retrieve(ALICE, content_id)

        assert view.content_id == content_id
        assert view.title == "Sunset"
        assert view.owner == ALICE
        assert view.size_bytes == 2048
        assert view.description == "Beach at dusk"
        assert view.tags == ["photo", "beach"]
        assert view.created_at == 100

    def test_created_at_follows_clock(self, registry, clock):
        """Later registrations carry later heights."""
        first = register_sample(registry)
        clock.advance(5)
        second = register_sample(registry)

        assert registry.retrieve(ALICE, first).created_at == 100
        assert registry.retrieve(ALICE, second).created_at == 105

    def test_registrant_gets_explicit_grant(self, registry):
        content_id = register_sample(registry)
        assert registry.access.lookup(content_id, ALICE) is True

    def test_empty_title(self, registry):
        with pytest.raises(InvalidMetadata):
            registry.register(ALICE, "", 10, "desc", ["a"])

    def test_zero_size(self, registry):
        with pytest.raises(FileSizeViolation):
            registry.register(ALICE, "title", 0, "desc", ["a"])

    def test_size_upper_bound(self, registry):
        with pytest.raises(FileSizeViolation):
            registry.register(ALICE, "title", 1_000_000_000, "desc", ["a"])
        assert registry.register(ALICE, "title", 999_999_999, "desc", ["a"]) == 1

    def test_eleven_tags(self, registry):
        with pytest.raises(TagValidationFailed):
            registry.register(ALICE, "title", 10, "desc", [f"t{i}" for i in range(11)])

    def test_long_description(self, registry):
        with pytest.raises(InvalidMetadata):
            registry.register(ALICE, "title", 10, "d" * 129, ["a"])

    def test_failed_registration_changes_nothing(self, registry):
        """A refused registration does not advance the counter or write state."""
        with pytest.raises(TagValidationFailed):
            registry.register(ALICE, "title", 10, "desc", [])

        assert registry.counter.peek() == 0
        assert len(registry) == 0
        assert len(registry.access) == 0
        assert len(registry.events) == 0

        assert register_sample(registry) == 1

    def test_duplicate_tags_allowed(self, registry):
        content_id = registry.register(ALICE, "title", 10, "desc", ["x", "x"])
        assert registry.retrieve(ALICE, content_id).tags == ["x", "x"]

    def test_stored_tags_are_copied(self, registry):
        """Mutating the caller's list after registration does not touch the record."""
        tags = ["a", "b"]
        content_id = registry.register(ALICE, "title", 10, "desc", tags)
        tags.append("c")
        assert registry.retrieve(ALICE, content_id).tags == ["a", "b"]

    def test_id_collision_refused(self, registry):
        """A record already sitting at the next id is never overwritten."""
        registry.vault.insert(1, ContentRecord("x", BOB, 1, 0, "y", ["z"]))

        with pytest.raises(ContentAlreadyExists):
            register_sample(registry)
        assert registry.counter.peek() == 0
        assert registry.owner_of(1) == BOB


class TestModify:
    """Test metadata replacement."""

    def test_owner_modifies(self, registry, clock):
        content_id = register_sample(registry)
        clock.advance()

        assert registry.modify(ALICE, content_id, "Dawn", 4096, "Morning", ["sky"]) is True

        view = registry.retrieve(ALICE, content_id)
        assert view.title == "Dawn"
        assert view.size_bytes == 4096
        assert view.description == "Morning"
        assert view.tags == ["sky"]
        assert view.owner == ALICE
        assert view.created_at == 100

    def test_non_owner_refused(self, registry):
        """Non-owner modify fails and leaves the record unchanged."""
        content_id = register_sample(registry)
        before = registry.vault.get(content_id)

        with pytest.raises(OwnershipMismatch):
            registry.modify(BOB, content_id, "Dawn", 4096, "Morning", ["sky"])

        assert registry.vault.get(content_id) == before

    def test_missing_content(self, registry):
        with pytest.raises(ContentMissing):
            registry.modify(ALICE, 42, "Dawn", 4096, "Morning", ["sky"])

    def test_ownership_checked_before_metadata(self, registry):
        """A non-owner sending bad metadata sees OwnershipMismatch."""
        content_id = register_sample(registry)
        with pytest.raises(OwnershipMismatch):
            registry.modify(BOB, content_id, "", 0, "", [])

    def test_invalid_metadata_leaves_record(self, registry):
        content_id = register_sample(registry)
        before = registry.vault.get(content_id)

        with pytest.raises(FileSizeViolation):
            registry.modify(ALICE, content_id, "Dawn", 0, "Morning", ["sky"])

        assert registry.vault.get(content_id) == before


class TestTransferOwnership:
    """Test ownership transfer."""

    def test_transfer_moves_control(self, registry):
        """After A transfers to B, A can no longer modify and B can."""
        content_id = register_sample(registry)

        assert registry.transfer_ownership(ALICE, content_id, BOB) is True
        assert registry.owner_of(content_id) == BOB

        with pytest.raises(OwnershipMismatch):
            registry.modify(ALICE, content_id, "Dawn", 1, "Morning", ["sky"])
        assert registry.modify(BOB, content_id, "Dawn", 1, "Morning", ["sky"]) is True

    def test_previous_owner_keeps_grant(self, registry):
        content_id = register_sample(registry)
        registry.transfer_ownership(ALICE, content_id, BOB)

        assert registry.retrieve(ALICE, content_id).owner == BOB
        report = registry.check_permissions(content_id, ALICE)
        assert report.has_explicit_permission is True
        assert report.is_owner is False

    def test_new_owner_views_through_ownership(self, registry):
        content_id = register_sample(registry)
        registry.transfer_ownership(ALICE, content_id, BOB)

        assert registry.access.lookup(content_id, BOB) is None
        assert registry.retrieve(BOB, content_id).title == "Sunset"

    def test_non_owner_refused(self, registry):
        content_id = register_sample(registry)
        with pytest.raises(OwnershipMismatch):
            registry.transfer_ownership(BOB, content_id, BOB)
        assert registry.owner_of(content_id) == ALICE

    def test_other_fields_untouched(self, registry):
        content_id = register_sample(registry)
        before = registry.vault.get(content_id)
        registry.transfer_ownership(ALICE, content_id, BOB)
        after = registry.vault.get(content_id)

        assert after == before.with_owner(BOB)


class TestDelete:
    """Test deletion."""

    def test_delete_removes_record(self, registry):
        content_id = register_sample(registry)
        assert registry.delete(ALICE, content_id) is True

        with pytest.raises(ContentMissing):
            registry.retrieve(ALICE, content_id)
        with pytest.raises(ContentMissing):
            registry.delete(ALICE, content_id)

    def test_non_owner_refused(self, registry):
        content_id = register_sample(registry)
        with pytest.raises(OwnershipMismatch):
            registry.delete(BOB, content_id)
        assert content_id in registry.vault

    def test_ids_not_reused(self, registry):
        first = register_sample(registry)
        registry.delete(ALICE, first)
        assert register_sample(registry) == first + 1

    def test_statistics_count_deleted(self, registry):
        first = register_sample(registry)
        register_sample(registry)
        registry.delete(ALICE, first)

        assert registry.vault_statistics().total_registered == 2
        assert len(registry) == 1

    def test_grants_survive_by_default(self, registry):
        content_id = register_sample(registry)
        registry.set_permission(ALICE, content_id, BOB, True)
        registry.delete(ALICE, content_id)

        assert registry.access.lookup(content_id, ALICE) is True
        assert registry.access.lookup(content_id, BOB) is True

    def test_grants_pruned_when_enabled(self, clock):
        registry = MediaRegistry("admin", clock=clock, prune_orphaned_grants=True)
        content_id = register_sample(registry)
        registry.set_permission(ALICE, content_id, BOB, True)
        registry.delete(ALICE, content_id)

        assert registry.access.grants_for(content_id) == {}
        assert registry.events.list()[-1].data["grants_purged"] == 2


class TestSetPermission:
    """Test explicit grants."""

    def test_grant_allows_viewing(self, registry):
        content_id = register_sample(registry)
        with pytest.raises(ViewingRestricted):
            registry.retrieve(BOB, content_id)

        assert registry.set_permission(ALICE, content_id, BOB, True) is True
        assert registry.retrieve(BOB, content_id).title == "Sunset"

    def test_grant_is_written(self, registry):
        content_id = register_sample(registry)
        registry.set_permission(ALICE, content_id, BOB, False)
        assert registry.access.lookup(content_id, BOB) is False

    def test_revoke(self, registry):
        content_id = register_sample(registry)
        registry.set_permission(ALICE, content_id, BOB, True)
        registry.set_permission(ALICE, content_id, BOB, False)

        with pytest.raises(ViewingRestricted):
            registry.retrieve(BOB, content_id)

    def test_owner_denial_does_not_block_owner(self, registry):
        """Owner fallback wins over an explicit False."""
        content_id = register_sample(registry)
        registry.set_permission(ALICE, content_id, ALICE, False)
        assert registry.retrieve(ALICE, content_id).owner == ALICE

    def test_non_owner_refused(self, registry):
        content_id = register_sample(registry)
        with pytest.raises(OwnershipMismatch):
            registry.set_permission(BOB, content_id, BOB, True)
        assert registry.access.lookup(content_id, BOB) is None

    def test_missing_content(self, registry):
        with pytest.raises(ContentMissing):
            registry.set_permission(ALICE, 9, BOB, True)


class TestReadQueries:
    """Test read-only queries."""

    def test_statistics(self, registry):
        register_sample(registry)
        stats = registry.vault_statistics()
        assert stats.total_registered == 1
        assert stats.master_authority == "admin"

    def test_owner_of_missing(self, registry):
        with pytest.raises(ContentMissing):
            registry.owner_of(1)

    def test_check_permissions_unrelated(self, registry):
        content_id = register_sample(registry)
        report = registry.check_permissions(content_id, CAROL)
        assert report.to_dict() == {
            "has_explicit_permission": False,
            "is_owner": False,
            "can_access": False,
        }

    def test_check_permissions_owner(self, registry):
        content_id = register_sample(registry)
        report = registry.check_permissions(content_id, ALICE)
        assert (report.has_explicit_permission, report.is_owner, report.can_access) == (True, True, True)

    def test_check_permissions_missing(self, registry):
        with pytest.raises(ContentMissing):
            registry.check_permissions(3, ALICE)

    def test_master_authority_required(self):
        with pytest.raises(ValueError):
            MediaRegistry(master_authority="")


class TestJournal:
    """Test that committed calls are journaled."""

    def test_events_for_lifecycle(self, registry):
        content_id = register_sample(registry)
        registry.modify(ALICE, content_id, "Dawn", 1, "Morning", ["sky"])
        registry.set_permission(ALICE, content_id, CAROL, True)
        registry.transfer_ownership(ALICE, content_id, BOB)
        registry.delete(BOB, content_id)

        types = [e.event_type for e in registry.events.find_by_content(content_id)]
        assert types == [
            "ContentRegistered",
            "ContentModified",
            "PermissionSet",
            "OwnershipTransferred",
            "ContentDeleted",
        ]
        assert [e.sequence for e in registry.events.list()] == [1, 2, 3, 4, 5]
        assert len(registry.events.find_by_actor(BOB)) == 1

    def test_refused_calls_not_journaled(self, registry):
        content_id = register_sample(registry)
        with pytest.raises(OwnershipMismatch):
            registry.delete(BOB, content_id)
        assert len(registry.events) == 1


class TestSerialization:
    """Test registry to_dict/from_dict."""

    def test_state_survives(self, registry):
        content_id = register_sample(registry)
        registry.set_permission(ALICE, content_id, BOB, False)
        registry.delete(ALICE, register_sample(registry))

        restored = MediaRegistry.from_dict(registry.to_dict())

        assert restored.master_authority == "admin"
        assert restored.counter.peek() == 2
        assert restored.clock.now() == 100
        assert restored.vault.get(content_id) == registry.vault.get(content_id)
        assert restored.access.lookup(content_id, BOB) is False
        assert len(restored.events) == len(registry.events)
        assert register_sample(restored) == 3

    def test_counter_below_ids_refused(self, registry):
        register_sample(registry)
        register_sample(registry)
        data = registry.to_dict()
        data["counter"] = 1
        with pytest.raises(ValueError):
            MediaRegistry.from_dict(data)

    def test_tag_string_refused(self, registry):
        """A tags field stored as a bare string is not split into characters."""
        content_id = register_sample(registry)
        data = registry.to_dict()
        data["records"][str(content_id)]["tags"] = "abc"
        with pytest.raises(ValueError):
            MediaRegistry.from_dict(data)


class TestNonces:
    """Test the signed-call nonce ledger."""

    def test_first_use_only(self, registry):
        assert registry.consume_nonce("n1") is True
        assert registry.consume_nonce("n1") is False
        assert registry.consume_nonce("n2") is True

    def test_expired_entries_pruned(self, registry, clock):
        registry.consume_nonce("short", valid_until=101)
        registry.consume_nonce("forever")

        clock.advance(1)
        registry.consume_nonce("other")
        assert "short" in registry.used_nonces

        clock.advance(1)
        registry.consume_nonce("later")
        assert "short" not in registry.used_nonces
        assert "forever" in registry.used_nonces

    def test_ledger_serialized(self, registry):
        registry.consume_nonce("n1", valid_until=500)
        restored = MediaRegistry.from_dict(registry.to_dict())
        assert restored.used_nonces == {"n1": 500}
        assert restored.consume_nonce("n1") is False


class TestConcurrency:
    """Test that calls are serialized."""

    def test_parallel_registrations_get_unique_ids(self, registry):
        ids = []
        lock = threading.Lock()

        def worker(n):
            for i in range(25):
                content_id = registry.register(f"p{n}", f"t{i}", 10, "desc", ["a"])
                with lock:
                    ids.append(content_id)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(ids) == list(range(1, 101))
        assert registry.vault_statistics().total_registered == 100


class TestErrorKinds:
    """Test the error classes hosts see through to_dict()."""

    def test_codes_are_unique(self):
        kinds = RegistryError.__subclasses__()
        assert len({k.code for k in kinds}) == len(kinds)
        assert len({k.kind for k in kinds}) == len(kinds)
        assert all(k.kind == k.__name__ for k in kinds)

    def test_default_message_is_kind(self):
        error = MalformedCall()
        assert error.message == "MalformedCall"
        assert error.to_dict() == {"kind": "MalformedCall", "code": 10, "message": "MalformedCall"}

    def test_explicit_message(self):
        assert ContentMissing("gone").to_dict()["message"] == "gone"
