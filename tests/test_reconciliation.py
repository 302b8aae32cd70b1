from __future__ import annotations

import itertools

from board_archive.ingestion.normalize import normalize_batch, normalize_references
from board_archive.pipeline.reconciliation import (
    merge_group_batches,
    reconcile_batches,
    reconcile_references,
    reconcile_scope,
)
from board_archive.schemas.messages import Message


def _batch(*raws):
    return normalize_batch(list(raws)).messages


def _snapshot(result):
    return {k: (m.body.model_dump(), m.created_at) for k, m in result.messages.items()}


def test_full_record_replaces_stub_in_either_order():
    stub = {"id": 5}
    full = {"id": 5, "body": {"plain": "hi"}}
    for order in ([stub], [full]), ([full], [stub]):
        result = reconcile_batches([_batch(*b) for b in order])
        assert result.messages[5].body.plain == "hi"


def test_longer_content_wins_in_either_order():
    short = {"id": "9", "body": {"plain": "a"}}
    longer = {"id": "9", "body": {"plain": "a longer text"}}
    for order in ([short], [longer]), ([longer], [short]):
        result = reconcile_batches([_batch(*b) for b in order])
        assert result.messages[9].body.plain == "a longer text"


def test_equal_length_keeps_first():
    first = {"id": "1", "body": {"plain": "abc"}}
    second = {"id": "1", "body": {"plain": "xyz"}}
    result = reconcile_batches([_batch(first), _batch(second)])
    assert result.messages[1].body.plain == "abc"
    assert result.counts["duplicates"] == 1


def test_reconciliation_is_idempotent_and_order_independent():
    b1 = [{"id": "1", "body": {"plain": "root"}}, {"id": "2"}]
    b2 = [{"id": "2", "body": {"plain": "reply"}, "replied_to_id": "1"}, {"id": "3", "body": {"plain": "x"}}]
    b3 = [{"id": "1", "body": {"plain": "root, edited and longer"}}]
    expected = None
    for perm in itertools.permutations([b1, b2, b3]):
        snap = _snapshot(reconcile_batches([_batch(*b) for b in perm]))
        if expected is None:
            expected = snap
        assert snap == expected
    twice = reconcile_batches([_batch(*b) for b in (b1, b2, b3, b1, b2, b3)])
    assert _snapshot(twice) == expected
    assert sorted(twice.messages) == [1, 2, 3]


def test_replace_keeps_existing_children():
    child = Message(id=2, replied_to_id=1)
    stub = Message(id=1, children=[child])
    full = _batch({"id": 1, "body": {"plain": "now full"}})
    result = reconcile_batches([[stub], full])
    assert result.messages[1].body.plain == "now full"
    assert [c.id for c in result.messages[1].children] == [2]


def test_checkpoint_is_passed_through():
    result = reconcile_batches([], checkpoint="12345678901234567890")
    assert result.checkpoint == "12345678901234567890"
    assert result.messages == {}


def test_group_merge_sorts_output_deterministically():
    msgs_a = [{"id": "2", "body": {"plain": "b"}}, {"id": "10", "body": {"plain": "a"}}]
    msgs_b = [{"id": "3", "body": {"plain": "c"}}, {"id": "2"}]
    refs_a = [{"type": "user", "id": "1", "full_name": "One"}, {"type": "message", "id": "10"}]
    refs_b = [{"type": "user", "id": "4", "full_name": "Four"}]

    m1 = merge_group_batches([msgs_a, msgs_b], [refs_a, refs_b], checkpoint=99)
    m2 = merge_group_batches([msgs_b, msgs_a], [refs_b, refs_a], checkpoint=99)

    ids = [r["id"] for r in m1.messages_doc["body"]["value"]]
    assert ids == ["10", "3", "2"]
    ref_keys = [(r["type"], r["id"]) for r in m1.references_doc["body"]["value"]]
    assert ref_keys == [("user", "4"), ("user", "1"), ("message", "10")]
    assert m1.messages_doc == m2.messages_doc
    assert m1.references_doc == m2.references_doc
    assert m1.checkpoint == 99
    assert m1.counts["messages"] == 3


def test_group_merge_preserves_raw_fields_and_counts_discards():
    merged = merge_group_batches(
        [[{"id": "1", "body": {"plain": "x"}, "privacy": "public"}, {"group_created_id": "1"}]],
        [],
    )
    assert merged.messages_doc["body"]["value"][0]["privacy"] == "public"
    assert merged.counts["discarded"] == 1


def test_scope_ingests_message_references_as_stubs():
    result, refs = reconcile_scope(
        [{"id": "2", "replied_to_id": "1", "body": {"plain": "reply"}}],
        [
            {"type": "message", "id": "1", "content_excerpt": "starter"},
            {"type": "message", "id": "2"},
            {"type": "user", "id": "7", "full_name": "Grace"},
        ],
    )
    assert sorted(result.messages) == [1, 2]
    assert result.messages[1].is_stub
    assert result.messages[2].body.plain == "reply"
    assert len(refs) == 3


def _refs(*orders):
    return reconcile_references(normalize_references(list(b)) for b in orders)


def test_full_reference_replaces_stub_in_either_order():
    stub = {"type": "user", "id": "5"}
    full = {"type": "user", "id": "5", "full_name": "Ada"}
    for order in ([stub], [full]), ([full], [stub]):
        refs = _refs(*order)
        assert list(refs) == [("user", 5)]
        assert refs[("user", 5)].full_name == "Ada"


def test_larger_reference_wins_in_either_order():
    short = {"type": "user", "id": "5", "full_name": "Ada"}
    longer = {"type": "user", "id": "5", "full_name": "Ada Lovelace", "email": "ada@example.com"}
    for order in ([short], [longer]), ([longer], [short]):
        assert _refs(*order)[("user", 5)].full_name == "Ada Lovelace"


def test_equal_size_reference_keeps_first_arrival():
    ada = {"type": "user", "id": "5", "full_name": "Ada"}
    bob = {"type": "user", "id": "5", "full_name": "Bob"}
    assert _refs([ada], [bob])[("user", 5)].full_name == "Ada"
    assert _refs([bob], [ada])[("user", 5)].full_name == "Bob"
    # within a single batch too
    assert _refs([ada, bob])[("user", 5)].full_name == "Ada"


def test_references_are_keyed_by_type_and_id():
    refs = _refs(
        [
            {"type": "user", "id": "5", "full_name": "Ada"},
            {"type": "message", "id": 5, "content_excerpt": "hello"},
            {"id": "5", "full_name": "Someone"},
        ]
    )
    assert sorted(refs) == [("message", 5), ("unlabeled", 5), ("user", 5)]
    assert refs[("user", 5)].full_name == "Ada"
