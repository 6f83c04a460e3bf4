import threading

import pytest
from sqlmodel import select

from blindquote.db.session import get_session
from blindquote.models.quote import QuoteRecord
from blindquote.services.sessions import QuoteSessionStore, SessionNotFound
from blindquote.services.state import (
    BeginEdit,
    CancelEdit,
    DeleteItem,
    Reset,
    SetCustomer,
    SetStep,
    SetViewMode,
    StateChannel,
    StateError,
    SubmitItem,
    UpdateItem,
    apply,
    diff,
    generate_quote_number,
    new_state,
)


@pytest.fixture
def state(customer):
    return apply(new_state("QU000001"), SetCustomer(customer=customer))


@pytest.fixture
def filled(state, make_item):
    for location in ("Kitchen", "Bedroom 1", "Lounge"):
        state = apply(state, SubmitItem(item=make_item(location=location)))
    return state


class TestQuoteNumber:

    def test_format(self):
        number = generate_quote_number()
        assert number.startswith("QU")
        assert len(number) == 8
        assert number[2:].isdigit()

    def test_new_state(self):
        state = new_state()
        assert state.step == "customer"
        assert state.items == ()
        assert state.customer is None
        assert state.view_mode == "customer"


class TestReducer:

    def test_submit_requires_customer(self, item):
        with pytest.raises(StateError):
            apply(new_state("QU1"), SubmitItem(item=item))

    def test_set_customer_rejects_incomplete(self):
        from blindquote.models.quote import Customer

        with pytest.raises(StateError):
            apply(new_state("QU1"), SetCustomer(customer=Customer(name="Only Name")))

    def test_submit_appends(self, state, item):
        after = apply(state, SubmitItem(item=item))
        assert after.items == (item,)
        assert state.items == ()

    def test_submit_while_editing_replaces(self, filled, make_item):
        editing = apply(filled, BeginEdit(index=1))
        assert editing.editing_index == 1
        replacement = make_item(location="Study")
        after = apply(editing, SubmitItem(item=replacement))
        assert len(after.items) == 3
        assert after.items[1].location == "Study"
        assert after.editing_index is None

    def test_update_item(self, filled, make_item):
        after = apply(filled, UpdateItem(index=0, item=make_item(location="Hall")))
        assert [i.location for i in after.items] == ["Hall", "Bedroom 1", "Lounge"]

    def test_update_bad_index(self, filled, item):
        with pytest.raises(StateError):
            apply(filled, UpdateItem(index=3, item=item))

    def test_delete_item(self, filled):
        after = apply(filled, DeleteItem(index=0))
        assert [i.location for i in after.items] == ["Bedroom 1", "Lounge"]

    def test_delete_before_edited_item_shifts_index(self, filled):
        editing = apply(filled, BeginEdit(index=2))
        after = apply(editing, DeleteItem(index=0))
        assert after.editing_index == 1
        assert after.items[after.editing_index].location == "Lounge"

    def test_delete_edited_item_clears_edit(self, filled):
        editing = apply(filled, BeginEdit(index=1))
        assert apply(editing, DeleteItem(index=1)).editing_index is None

    def test_delete_after_edited_item_keeps_index(self, filled):
        editing = apply(filled, BeginEdit(index=0))
        assert apply(editing, DeleteItem(index=2)).editing_index == 0

    def test_delete_last_item_leaves_review(self, state, item):
        state = apply(state, SubmitItem(item=item))
        state = apply(state, SetStep(step="review"))
        after = apply(state, DeleteItem(index=0))
        assert after.items == ()
        assert after.step == "items"

    def test_cancel_edit(self, filled):
        editing = apply(filled, BeginEdit(index=0))
        after = apply(editing, CancelEdit())
        assert after.editing_index is None
        assert after.items == filled.items

    def test_begin_edit_moves_to_items(self, filled):
        review = apply(filled, SetStep(step="review"))
        assert apply(review, BeginEdit(index=0)).step == "items"

    def test_step_gating(self, state, item):
        with pytest.raises(StateError):
            apply(new_state("QU1"), SetStep(step="items"))
        with pytest.raises(StateError):
            apply(state, SetStep(step="review"))
        with pytest.raises(StateError):
            apply(state, SetStep(step="summary"))
        with_item = apply(state, SubmitItem(item=item))
        assert apply(with_item, SetStep(step="quotation")).step == "quotation"

    def test_view_mode(self, state):
        assert apply(state, SetViewMode(view_mode="internal")).view_mode == "internal"
        with pytest.raises(StateError):
            apply(state, SetViewMode(view_mode="admin"))

    def test_reset_keeps_quote_number(self, filled):
        after = apply(filled, Reset())
        assert after.quote_number == filled.quote_number
        assert after.customer is None
        assert after.items == ()
        assert after.step == "customer"

    def test_unknown_action(self, state):
        with pytest.raises(StateError):
            apply(state, object())


class TestDiff:

    def test_only_changed_fields(self, state, item):
        after = apply(state, SubmitItem(item=item))
        changes = diff(state, after)
        assert list(changes) == ["items"]
        assert changes["items"][0]["unit_price"] == 55

    def test_no_change(self, state):
        assert diff(state, state) == {}


class TestStateChannel:

    def test_publish_to_subscribers(self):
        channel = StateChannel()
        seen = []
        channel.subscribe(lambda q, changes: seen.append((q, changes)))
        channel.publish("QU1", {"step": "items"})
        assert seen == [("QU1", {"step": "items"})]

    def test_empty_changes_not_published(self):
        channel = StateChannel()
        seen = []
        channel.subscribe(lambda q, changes: seen.append(q))
        channel.publish("QU1", {})
        assert seen == []

    def test_unsubscribe(self):
        channel = StateChannel()
        seen = []
        unsubscribe = channel.subscribe(lambda q, changes: seen.append(q))
        unsubscribe()
        unsubscribe()
        channel.publish("QU1", {"step": "items"})
        assert seen == []

    def test_failing_listener_does_not_block_others(self):
        channel = StateChannel()
        seen = []

        def broken(q, changes):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(lambda q, changes: seen.append(q))
        channel.publish("QU1", {"step": "items"})
        assert seen == ["QU1"]


class TestSessionStore:

    def test_create_and_get(self):
        store = QuoteSessionStore()
        created = store.create()
        assert store.get(created.quote_number) == created

    def test_quote_numbers_are_unique(self):
        store = QuoteSessionStore()
        numbers = {store.create().quote_number for _ in range(5)}
        assert len(numbers) == 5

    def test_dispatch_persists_and_publishes(self, customer):
        channel = StateChannel()
        events = []
        channel.subscribe(lambda q, changes: events.append((q, sorted(changes))))
        store = QuoteSessionStore(channel)
        created = store.create()

        updated = store.dispatch(created.quote_number, SetCustomer(customer=customer))
        assert store.get(created.quote_number).customer == customer
        assert updated.customer == customer
        assert events == [(created.quote_number, ["customer"])]

    def test_failed_action_leaves_state(self, item):
        store = QuoteSessionStore()
        created = store.create()
        with pytest.raises(StateError):
            store.dispatch(created.quote_number, SubmitItem(item=item))
        assert store.get(created.quote_number) == created

    def test_missing_session(self):
        store = QuoteSessionStore()
        with pytest.raises(SessionNotFound):
            store.get("QU404404")
        with pytest.raises(SessionNotFound):
            store.dispatch("QU404404", CancelEdit())

    def test_timestamps_are_utc(self):
        record = QuoteRecord(quote_number="QU000002", state="{}")
        assert record.created_at.utcoffset().total_seconds() == 0
        assert record.updated_at.utcoffset().total_seconds() == 0

    def test_dispatch_refreshes_updated_at(self, customer):
        store = QuoteSessionStore()
        created = store.create()
        session = get_session()
        try:
            record = session.exec(select(QuoteRecord).where(QuoteRecord.quote_number == created.quote_number)).one()
            before = record.updated_at
        finally:
            session.close()

        store.dispatch(created.quote_number, SetCustomer(customer=customer))
        session = get_session()
        try:
            record = session.exec(select(QuoteRecord).where(QuoteRecord.quote_number == created.quote_number)).one()
            assert record.updated_at >= before
        finally:
            session.close()

    def test_concurrent_dispatch_keeps_every_item(self, customer, make_item):
        store = QuoteSessionStore()
        number = store.create().quote_number
        store.dispatch(number, SetCustomer(customer=customer))
        errors = []

        def add(i):
            try:
                store.dispatch(number, SubmitItem(item=make_item(location=f"Room {i}")))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=add, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        items = store.get(number).items
        assert len(items) == 20
        assert {i.location for i in items} == {f"Room {i}" for i in range(20)}

    def test_concurrent_create_gives_unique_numbers(self):
        store = QuoteSessionStore()
        numbers = []
        threads = [threading.Thread(target=lambda: numbers.append(store.create().quote_number)) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(numbers)) == 10
