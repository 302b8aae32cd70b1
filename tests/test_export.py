from __future__ import annotations

from board_archive.export.markdown import MarkdownExporter
from board_archive.export.search import count_label, search_forest
from board_archive.export.text import NO_CONTENT, message_text, strip_rich_text
from board_archive.export.traversal import ForestWalk
from board_archive.ingestion.normalize import normalize_batch, normalize_message
from board_archive.pipeline.hierarchy import build_forest
from board_archive.pipeline.reconciliation import reconcile_batches

SCENARIO = [
    {"id": "1", "created_at": "2025/01/01 00:00:00 +0000", "body": {"plain": "root"}},
    {"id": "2", "replied_to_id": "1", "created_at": "2025/01/02 00:00:00 +0000", "body": {"plain": "reply"}},
]


def _forest(raws):
    return build_forest(reconcile_batches([normalize_batch(raws).messages]).messages)


def _nested_forest():
    return _forest(
        [
            {"id": "1", "created_at": "2025/01/01 00:00:00 +0000", "body": {"plain": "first thread"}},
            {"id": "2", "replied_to_id": "1", "created_at": "2025/01/02 00:00:00 +0000", "body": {"plain": "a"}},
            {"id": "3", "replied_to_id": "2", "created_at": "2025/01/03 00:00:00 +0000", "body": {"plain": "b"}},
            {"id": "4", "replied_to_id": "1", "created_at": "2025/01/04 00:00:00 +0000", "body": {"plain": "c"}},
            {"id": "5", "created_at": "2025/02/01 00:00:00 +0000", "body": {"plain": "second thread"}},
        ]
    )


def test_rich_text_is_stripped():
    msg = normalize_message({"id": "1", "body": {"rich": "<p>Hi&amp;Bye<br>Next</p>"}})
    assert message_text(msg) == "Hi&Bye\nNext"
    assert strip_rich_text("a<br/>b<BR />c &lt;tag&gt; &quot;q&quot;") == 'a\nb\nc <tag> "q"'
    assert strip_rich_text("<br>Hi <br>") == "\nHi"
    assert strip_rich_text("  <b>x</b>") == "x"


def test_rich_text_of_only_line_breaks_falls_back():
    msg = normalize_message({"id": "1", "body": {"rich": "<br><br>"}, "content_excerpt": "excerpt"})
    assert message_text(msg) == "excerpt"


def test_body_priority():
    def text(raw):
        return message_text(normalize_message({"id": "1", **raw}))

    assert text({"body": {"plain": "p", "parsed": "x", "rich": "<b>r</b>"}}) == "p"
    assert text({"body": {"parsed": "x", "rich": "<b>r</b>"}}) == "x"
    assert text({"body": {"rich": "<b>r</b>"}}) == "r"
    assert text({"content_excerpt": "ex"}) == "ex"
    assert text({}) == NO_CONTENT


def test_walk_is_preorder_with_depth_and_parent():
    forest = _nested_forest()
    steps = [(s.message.id, s.depth, s.parent.id if s.parent else None) for s in ForestWalk(forest)]
    assert steps == [(5, 0, None), (1, 0, None), (2, 1, 1), (3, 2, 2), (4, 1, 1)]


def test_walk_is_restartable():
    walk = ForestWalk(_nested_forest())
    assert [s.message.id for s in walk] == [s.message.id for s in walk]


def test_walk_expand_predicate_prunes_collapsed_threads():
    walk = ForestWalk(_nested_forest(), expand=lambda m: m.id == 1)
    assert [s.message.id for s in walk] == [5, 1, 2, 4]


def test_end_to_end_markdown():
    forest = _forest(SCENARIO)
    assert [r.id for r in forest.roots] == [1]
    assert [c.id for c in forest.roots[0].children] == [2]

    doc = MarkdownExporter(scope_name="General", scope_id="77", generated_at="2025-03-01T00:00:00").export(
        forest, {}
    )
    assert "- Generated on: 2025-03-01T00:00:00" in doc
    assert "- Scope: General (77)" in doc
    assert "- Threads: 1" in doc
    assert "- Messages: 2" in doc
    assert "- Messages with missing parents: 0" in doc
    section = doc[doc.index("## 1. User ID: unknown") :]
    assert section.index("root") < section.index("reply")
    assert "### 1.1. User ID: unknown" in doc
    assert "- **Date:** 2025-01-01 00:00:00 UTC" in doc
    assert "- **ID:** 2" in doc


def test_markdown_numbering_and_authors():
    forest = _nested_forest()
    doc = MarkdownExporter(scope_name="G").export(forest, {})
    headings = [line for line in doc.splitlines() if line.startswith("#")]
    assert headings[0] == "# Message Archive: G"
    numbers = [h.split(" ")[1] for h in headings[1:]]
    assert numbers == ["1.", "2.", "2.1.", "2.1.1.", "2.2."]


def test_markdown_uses_user_names_and_raw_date_fallback():
    forest = _forest([{"id": "1", "sender_id": "9", "created_at": "someday", "body": {"plain": "x"}}])
    doc = MarkdownExporter(scope_name="G").export(forest, {9: "Grace Hopper"})
    assert "## 1. Grace Hopper" in doc
    assert "- **Date:** someday" in doc


def test_search_is_case_insensitive_in_walk_order():
    forest = _nested_forest()
    hits = search_forest(forest, "THREAD", {})
    assert [h.message_id for h in hits] == [5, 1]
    assert hits[1].root_id == 1
    assert search_forest(forest, "   ", {}) == []
    assert count_label(0) == "No results found"
    assert count_label(1) == "1 result found"
    assert count_label(3) == "3 results found"
