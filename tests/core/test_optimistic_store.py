from __future__ import annotations

import pytest

from menu_core.store import OptimisticStore, match_id, match_identity
from menu_core.types import MenuItem


def _item(item_id, name, price=10.0):
    return MenuItem(id=item_id, name=name, price=price)


def test_new_item_is_prepended_and_update_keeps_position():
    store = OptimisticStore([_item(1, "A"), _item(2, "B")])

    store.upsert_optimistic(MenuItem(name="New", price=5), is_new=True)
    assert [x.name for x in store.items] == ["New", "A", "B"]

    store.upsert_optimistic(_item(2, "B2"), is_new=False)
    assert [x.name for x in store.items] == ["New", "A", "B2"]


def test_update_without_id_is_ignored():
    store = OptimisticStore([_item(None, "Draft")])
    before = store.items

    store.upsert_optimistic(_item(None, "Other"), is_new=False)
    assert store.items is before


def test_prior_reference_is_not_mutated():
    store = OptimisticStore([_item(1, "A"), _item(2, "B")])
    held = store.items
    snap = store.snapshot()

    store.remove(1)
    store.upsert_optimistic(_item(3, "C"), is_new=True)
    store.update_field(0, "name", "C2")

    assert [x.name for x in held] == ["A", "B"]
    assert snap == held
    assert [x.name for x in store.items] == ["C2", "B"]


def test_replace_one_by_identity_swaps_placeholder():
    placeholder = MenuItem(name="Dosa", price=40)
    twin = MenuItem(name="Dosa", price=40)  # equal by value, different object
    store = OptimisticStore([_item(1, "A")])
    store.upsert_optimistic(twin, is_new=True)
    store.upsert_optimistic(placeholder, is_new=True)

    saved = MenuItem(id=7, name="Dosa", price=40)
    store.replace_one(match_identity(placeholder), saved)

    assert store.items[0] == saved
    assert store.items[1] is twin
    assert store.items[2].id == 1


def test_replace_one_drops_entry_that_already_carries_the_id():
    placeholder = MenuItem(name="Dosa", price=40)
    store = OptimisticStore([placeholder])
    # a broadcast of the created record landed before the create response
    store.upsert_optimistic(MenuItem(id=7, name="Dosa", price=40), is_new=True)

    store.replace_one(match_identity(placeholder), MenuItem(id=7, name="Dosa", price=41))

    assert len(store) == 1
    assert store.items[0].price == 41


def test_replace_one_by_id():
    store = OptimisticStore([_item(1, "A"), _item(2, "B")])
    store.replace_one(match_id(2), _item(2, "B-canonical"))
    assert [x.name for x in store.items] == ["A", "B-canonical"]


def test_restore_snapshot_after_remove():
    store = OptimisticStore([_item(1, "A"), _item(2, "B")])
    snap = store.snapshot()
    store.remove(1)
    assert store.find(1) is None

    store.restore(snap)
    assert list(store.items) == [_item(1, "A"), _item(2, "B")]


def test_replace_all_adopts_order_and_notifies_listeners():
    store = OptimisticStore([_item(1, "A")])
    seen = []
    unsubscribe = store.subscribe(lambda items: seen.append([x.id for x in items]))

    store.replace_all([_item(3, "C"), _item(2, "B")])
    unsubscribe()
    store.replace_all([])

    assert seen == [[3, 2]]
    assert store.revision == 2


def test_failing_listener_does_not_block_mutation():
    store = OptimisticStore()

    def boom(_items):
        raise RuntimeError("listener failed")

    store.subscribe(boom)
    store.upsert_optimistic(_item(1, "A"), is_new=True)
    assert len(store) == 1


def test_update_field_rejects_unknown_field():
    store = OptimisticStore([_item(1, "A")])
    with pytest.raises(TypeError):
        store.update_field(0, "colour", "red")
    assert store.items[0].name == "A"


def test_update_field_accepts_wire_names_and_coerces():
    store = OptimisticStore([_item(1, "A")])

    store.update_field(0, "prepTimeMin", "5")
    store.update_field(0, "price", "12")
    store.update_field(0, "available", "false")
    store.update_field(0, "tags", "veg, hot")

    item = store.items[0]
    assert item.prep_time_min == 5
    assert item.price == 12.0
    assert item.available is False
    assert item.tags == ("veg", "hot")
