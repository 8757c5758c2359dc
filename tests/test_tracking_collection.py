"""Tests for TrackingCollection membership classification, commit and rollback."""
import dataclasses

import pytest

from trackstate import ChangeAction, TrackingCollection, tracking_config

from fakes import EmailNode, make_email


@pytest.fixture
def collection_events(emails):
    """Structural changes fired by the emails fixture, as (action, new, old, index)."""
    changes = []
    emails.on_collection_changed(lambda sender, change: changes.append(change))
    return changes


class TestConstruction:
    """Initial state."""

    def test_initial_items_are_baseline(self, emails, email_a, email_b):
        assert list(emails) == [email_a, email_b]
        assert emails.baseline == (email_a, email_b)
        assert emails.is_changed is False
        assert len(emails.added_items) == 0
        assert len(emails.removed_items) == 0
        assert len(emails.modified_items) == 0

    def test_non_tracking_items_rejected(self, emails):
        with pytest.raises(TypeError):
            TrackingCollection([make_email()])
        with pytest.raises(TypeError):
            emails.append("not a node")

    def test_empty_collection(self):
        collection = TrackingCollection()
        assert len(collection) == 0
        assert collection.is_changed is False
        assert collection.is_valid is True


class TestClassification:
    """added / removed / modified partitions."""

    def test_track_added(self, emails, email_c, recorder, collection_events):
        emails.on_property_changed(recorder)
        emails.append(email_c)
        assert len(emails) == 3
        assert list(emails.added_items) == [email_c]
        assert emails.is_changed is True
        assert recorder.names == ["count", "added_items", "is_changed"]
        assert collection_events[0].action is ChangeAction.ADD
        assert collection_events[0].new_items == (email_c,)
        assert collection_events[0].index == 2

    def test_removing_added_item_is_clean(self, emails, email_c):
        emails.append(email_c)
        emails.remove(email_c)
        assert emails.is_changed is False
        assert len(emails.added_items) == 0

    def test_track_removed(self, emails, email_b, recorder):
        emails.on_property_changed(recorder)
        emails.remove(email_b)
        assert len(emails) == 1
        assert list(emails.removed_items) == [email_b]
        assert emails.is_changed is True
        assert recorder.names == ["count", "removed_items", "is_changed"]

    def test_readding_removed_item_is_clean(self, emails, email_b):
        emails.remove(email_b)
        emails.append(email_b)
        assert emails.is_changed is False
        assert len(emails.removed_items) == 0

    def test_track_modified(self, emails, email_a, recorder):
        emails.on_property_changed(recorder)
        email_a.email = "modified@fakedomain.com"
        assert list(emails.modified_items) == [email_a]
        assert emails.is_changed is True
        assert recorder.names == ["modified_items", "is_changed"]

    def test_modified_revert_is_clean(self, emails, email_a):
        original = email_a.email
        email_a.email = "modified@fakedomain.com"
        email_a.email = original
        assert len(emails.modified_items) == 0
        assert emails.is_changed is False

    def test_edits_to_added_item_are_not_modifications(self, emails, email_c):
        emails.append(email_c)
        email_c.email = "changed@fakedomain.com"
        assert list(emails.added_items) == [email_c]
        assert len(emails.modified_items) == 0

    def test_modified_then_removed_is_only_removed(self, emails, email_a):
        email_a.email = "modified@fakedomain.com"
        emails.remove(email_a)
        assert list(emails.removed_items) == [email_a]
        assert len(emails.modified_items) == 0

    def test_readded_modified_item_is_modified(self, emails, email_a):
        emails.remove(email_a)
        email_a.email = "modified@fakedomain.com"
        emails.append(email_a)
        assert list(emails.modified_items) == [email_a]
        assert len(emails.removed_items) == 0

    def test_replace_item(self, emails, email_a, email_c, collection_events):
        emails[0] = email_c
        assert list(emails) == [email_c, emails[1]]
        assert list(emails.added_items) == [email_c]
        assert list(emails.removed_items) == [email_a]
        assert collection_events[0].action is ChangeAction.REPLACE
        assert collection_events[0].old_items == (email_a,)

    def test_assigning_same_item_is_noop(self, emails, email_a, collection_events):
        emails[0] = email_a
        assert collection_events == []
        assert emails.is_changed is False

    def test_clear(self, emails, email_a, email_b, recorder, collection_events):
        emails.on_property_changed(recorder)
        emails.clear()
        assert len(emails) == 0
        assert list(emails.removed_items) == [email_a, email_b]
        assert collection_events[0].action is ChangeAction.RESET
        assert "count" in recorder.names

    def test_pop_and_del(self, emails, email_a, email_b):
        popped = emails.pop()
        assert popped is email_b
        del emails[0]
        assert list(emails.removed_items) == [email_a, email_b]

    def test_extend_fires_single_add(self, emails, email_c, collection_events):
        extra = EmailNode(make_email("fourth@fakedomain.com"))
        emails.extend([email_c, extra])
        assert len(collection_events) == 1
        assert collection_events[0].new_items == (email_c, extra)
        assert list(emails.added_items) == [email_c, extra]

    def test_move_is_not_a_change(self, emails, email_a, email_b, recorder, collection_events):
        emails.on_property_changed(recorder)
        emails.move(0, 1)
        assert list(emails) == [email_b, email_a]
        assert emails.is_changed is False
        assert collection_events[0].action is ChangeAction.MOVE
        assert recorder.events == []


class TestDuplicates:
    """An item can be live in a collection at most once."""

    def test_append_live_item_rejected(self, emails, email_a, collection_events):
        with pytest.raises(ValueError):
            emails.append(email_a)
        assert len(emails) == 2
        assert emails.is_changed is False
        assert collection_events == []

    def test_reject_restores_membership_after_refused_duplicate(self, emails, email_a, email_b):
        with pytest.raises(ValueError):
            emails.insert(0, email_b)
        emails.reject_changes()
        assert list(emails) == [email_a, email_b]

    def test_extend_with_repeated_item_rejected(self, emails, email_c):
        with pytest.raises(ValueError):
            emails.extend([email_c, email_c])
        assert email_c not in emails

    def test_constructor_with_repeated_item_rejected(self, email_a):
        with pytest.raises(ValueError):
            TrackingCollection([email_a, email_a])

    def test_replace_with_item_live_elsewhere_rejected(self, emails, email_b):
        with pytest.raises(ValueError):
            emails[0] = email_b

    def test_slice_replace_may_reuse_replaced_items(self, emails, email_a, email_b, email_c):
        emails[0:2] = [email_b, email_a, email_c]
        assert list(emails) == [email_b, email_a, email_c]
        assert list(emails.added_items) == [email_c]
        assert len(emails.removed_items) == 0

    def test_owner_backing_list_stays_unique(self, customer, customer_model):
        with pytest.raises(ValueError):
            customer.emails.append(customer.emails[0])
        assert len(customer_model.emails) == 1


class TestIdentity:
    """Membership is by identity, never by equality."""

    def test_equal_models_are_distinct_members(self):
        model = make_email("same@fakedomain.com")
        twin = dataclasses.replace(model)
        assert model == twin
        first, second = EmailNode(model), EmailNode(twin)
        collection = TrackingCollection([first])

        collection.append(second)
        assert len(collection) == 2
        assert list(collection.added_items) == [second]
        assert collection.index(second) == 1

        collection.remove(second)
        assert list(collection) == [first]
        assert collection.is_changed is False

    def test_contains_uses_identity(self, emails, email_a):
        lookalike = EmailNode(dataclasses.replace(email_a.model))
        assert email_a in emails
        assert lookalike not in emails
        with pytest.raises(ValueError):
            emails.index(lookalike)

    def test_removed_item_is_unwired(self, emails, email_b, recorder):
        emails.remove(email_b)
        emails.on_property_changed(recorder)
        email_b.email = "changed@fakedomain.com"
        assert len(emails.modified_items) == 0
        assert recorder.events == []


class TestAcceptChanges:
    """Commit."""

    def test_accept_commits_membership_and_items(self, emails, email_a, email_b, email_c):
        emails.append(email_c)
        emails.remove(email_b)
        email_a.email = "modified@fakedomain.com"

        emails.accept_changes()
        assert emails.is_changed is False
        assert emails.baseline == (email_a, email_c)
        assert len(emails.added_items) == 0
        assert len(emails.removed_items) == 0
        assert len(emails.modified_items) == 0
        assert email_a.is_changed is False
        assert email_a.email_original == "modified@fakedomain.com"
        assert email_b not in emails

    def test_accept_notifies(self, emails, email_c, recorder):
        emails.append(email_c)
        emails.on_property_changed(recorder)
        emails.accept_changes()
        assert "" in recorder.names
        assert recorder.names.count("is_changed") == 1

    def test_second_accept_fires_nothing(self, emails, email_c, recorder, collection_events):
        emails.append(email_c)
        emails.accept_changes()
        emails.on_property_changed(recorder)
        emails.accept_changes()
        assert recorder.events == []
        assert len(collection_events) == 1


class TestRejectChanges:
    """Rollback."""

    def test_reject_restores_membership_and_items(self, emails, email_a, email_b, email_c):
        original_a = email_a.email
        emails.append(email_c)
        emails.remove(email_b)
        email_a.email = "modified@fakedomain.com"

        emails.reject_changes()
        assert len(emails) == 2
        assert email_a in emails
        assert email_b in emails
        assert email_c not in emails
        assert email_a.email == original_a
        assert emails.is_changed is False

    def test_reject_reverts_edits_of_removed_items(self, emails, email_b):
        original = email_b.email
        email_b.email = "modified@fakedomain.com"
        emails.remove(email_b)
        emails.reject_changes()
        assert email_b in emails
        assert email_b.email == original
        assert email_b.is_changed is False

    def test_reject_fires_reset_when_membership_changes(self, emails, email_c, collection_events):
        emails.append(email_c)
        emails.reject_changes()
        assert collection_events[-1].action is ChangeAction.RESET
        assert collection_events[-1].old_items[-1] is email_c

    def test_reject_of_item_edits_fires_no_structural_change(self, emails, email_a, collection_events):
        email_a.email = "modified@fakedomain.com"
        emails.reject_changes()
        assert collection_events == []

    def test_removed_items_return_at_end_by_default(self, email_a, email_b, email_c):
        collection = TrackingCollection([email_a, email_b, email_c])
        collection.remove(email_a)
        collection.reject_changes()
        assert list(collection) == [email_b, email_c, email_a]

    def test_removed_items_return_to_baseline_position(self, email_a, email_b, email_c):
        collection = TrackingCollection([email_a, email_b, email_c])
        collection.remove(email_a)
        with tracking_config(restore_removed_positions=True):
            collection.reject_changes()
        assert list(collection) == [email_a, email_b, email_c]

    def test_reject_rewires_restored_items(self, emails, email_b):
        emails.remove(email_b)
        emails.reject_changes()
        email_b.email = "modified@fakedomain.com"
        assert list(emails.modified_items) == [email_b]


class TestValidity:
    """Collection validity is the conjunction of item validity."""

    def test_invalid_item_invalidates_collection(self, emails, email_a, recorder):
        emails.on_property_changed(recorder)
        email_a.email = "broken"
        assert emails.is_valid is False
        assert "is_valid" in recorder.names

    def test_adding_invalid_item(self, emails):
        emails.append(EmailNode(make_email("broken")))
        assert emails.is_valid is False

    def test_removing_invalid_item_restores_validity(self, emails, email_a):
        email_a.email = "broken"
        emails.remove(email_a)
        assert emails.is_valid is True


class TestSubscriptions:
    """Structural change subscriptions."""

    def test_disposed_subscription_stops_notifications(self, emails, email_c):
        changes = []
        subscription = emails.on_collection_changed(lambda sender, change: changes.append(change))
        subscription.dispose()
        emails.append(email_c)
        assert changes == []

    def test_dispose_unwires_items(self, emails, email_a, recorder):
        emails.on_property_changed(recorder)
        emails.dispose()
        email_a.email = "modified@fakedomain.com"
        assert recorder.events == []
