# SPDX-License-Identifier: MIT

import itertools

import pytest

from section_stream.streaming.sections import Section, ValueKind, classify
from section_stream.timeline.items import ParsedSection, RawToken, ReasoningSpan, StreamEnd, UserMessage
from section_stream.timeline.reconciler import TimelineReconciler


def _reconciler(**kwargs):
    ticks = itertools.count(1)
    return TimelineReconciler(clock=lambda: float(next(ticks)), **kwargs)


def _sec(name, value):
    return Section(name, value, classify(value))


def _types(r):
    return [item.type for item in r.items]


def _assert_orders(r):
    assert [item.order for item in r.items] == list(range(len(r.items)))


def test_interleaved_raw_and_user_messages():
    r = _reconciler()
    r.apply_raw_delta("a")
    r.apply_raw_delta("b")
    r.insert_user_message({"text": "hi"})
    r.apply_raw_delta("c")
    assert _types(r) == ["rawToken", "userMessage", "rawToken"]
    assert r.items[0].content == "ab"
    assert r.items[2].content == "c"
    _assert_orders(r)


def test_raw_delta_refreshes_timestamp():
    r = _reconciler()
    r.apply_raw_delta("a")
    first = r.items[0].started_at
    r.apply_raw_delta("b")
    assert r.items[0].started_at > first


def test_raw_delta_extends_across_parsed_sections():
    r = _reconciler()
    r.apply_raw_delta('{"response": "x"')
    r.apply_decoder_snapshot([_sec("response", "x")])
    r.apply_raw_delta("}")
    assert _types(r) == ["rawToken", "parsedSection"]
    assert r.items[0].content == '{"response": "x"}'


def test_empty_deltas_are_ignored():
    r = _reconciler()
    r.apply_raw_delta("")
    r.apply_reasoning_delta("")
    assert r.items == []


def test_reasoning_extends_until_a_boundary():
    r = _reconciler()
    r.apply_reasoning_delta("think", ts=10.0)
    r.apply_reasoning_delta("ing", ts=12.0)
    assert _types(r) == ["reasoningSpan"]
    span = r.items[0]
    assert isinstance(span, ReasoningSpan)
    assert (span.content, span.started_at, span.ended_at) == ("thinking", 10.0, 12.0)

    r.apply_decoder_snapshot([_sec("reasoning", "t")])
    r.apply_reasoning_delta(" more", ts=13.0)
    assert _types(r) == ["reasoningSpan", "parsedSection"]
    assert span.content == "thinking more"

    r.apply_decoder_snapshot([_sec("reasoning", "t"), _sec("response", "ok")])
    r.apply_reasoning_delta("again", ts=14.0)
    assert _types(r) == ["reasoningSpan", "parsedSection", "parsedSection", "reasoningSpan"]
    _assert_orders(r)


def test_reasoning_does_not_cross_user_message():
    r = _reconciler()
    r.apply_reasoning_delta("a")
    r.insert_user_message("next")
    r.apply_reasoning_delta("b")
    assert _types(r) == ["reasoningSpan", "userMessage", "reasoningSpan"]


def test_tail_section_updated_in_place():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("response", "a")])
    r.apply_decoder_snapshot([_sec("response", "ab")])
    assert len(r.items) == 1
    item = r.items[0]
    assert isinstance(item, ParsedSection)
    assert (item.content, item.is_new, item.is_updated) == ("ab", False, True)


def test_unchanged_snapshot_is_a_no_op():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("response", "a")])
    r.apply_decoder_snapshot([_sec("response", "a")])
    item = r.items[0]
    assert (item.is_new, item.is_updated) == (True, False)


def test_repeated_section_names_are_separate_items():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("response", "one")])
    r.apply_decoder_snapshot([_sec("response", "one"), _sec("response", "two")])
    assert [i.content for i in r.items] == ["one", "two"]


def test_revision_of_earlier_entry_is_not_picked_up():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("response", "a"), _sec("node_id", 1)])
    r.apply_decoder_snapshot([_sec("response", "CHANGED"), _sec("node_id", 1)])
    assert [i.content for i in r.items] == ["a", 1]


def test_section_content_is_copied():
    r = _reconciler()
    value = {"tool_name": "x"}
    r.apply_decoder_snapshot([_sec("action_json", value)])
    value["tool_name"] = "mutated"
    assert r.items[0].content == {"tool_name": "x"}


@pytest.mark.parametrize(
    "value, expected",
    [
        ([{"tool_name": "a"}, {"tool_name": "b"}, {"tool_name": "c"}], 3),
        ([], 0),
        ({"tool_name": "a"}, 1),
    ],
)
def test_batchable_arrays_fan_out(value, expected):
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("action_json", value)])
    assert len(r.items) == expected
    assert all(i.section_name == "action_json" for i in r.items)


def test_non_batchable_array_is_one_item():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("list", [1, 2, 3])])
    assert len(r.items) == 1
    assert r.items[0].content == [1, 2, 3]


def test_fan_out_grows_across_snapshots():
    r = _reconciler()
    r.apply_decoder_snapshot([Section("action_json", [{"tool_name": "a"}], ValueKind.ARRAY, complete=False)])
    r.apply_decoder_snapshot([_sec("action_json", [{"tool_name": "a"}, {"tool_name": "b"}])])
    assert [i.content for i in r.items] == [{"tool_name": "a"}, {"tool_name": "b"}]


def test_action_id_from_action_code():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("action_json", [{"action_code": 7}, {"tool_name": "x"}])])
    assert [i.action_id for i in r.items] == ["7", None]


def test_display_filter_hides_sections():
    r = _reconciler(display_sections=["response"])
    r.apply_decoder_snapshot([_sec("node_id", 1), _sec("response", "a")])
    r.apply_decoder_snapshot([_sec("node_id", 1), _sec("response", "ab")])
    assert [(i.section_name, i.content) for i in r.items] == [("response", "ab")]


def test_stream_end_is_idempotent():
    r = _reconciler()
    r.apply_raw_delta("x")
    r.mark_stream_end()
    r.mark_stream_end()
    assert _types(r) == ["rawToken", "streamEnd"]
    assert isinstance(r.items[-1], StreamEnd)


def test_reset_sections_keeps_the_timeline():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("response", "turn one")])
    r.reset_sections()
    r.apply_decoder_snapshot([_sec("response", "turn two")])
    assert [i.content for i in r.items] == ["turn one", "turn two"]
    _assert_orders(r)


def test_items_serialize():
    r = _reconciler()
    msg = r.insert_user_message({"text": "hi"})
    r.apply_raw_delta("x")
    assert isinstance(msg, UserMessage)
    assert isinstance(r.items[1], RawToken)
    dumped = [i.dump_model() for i in r.items]
    assert dumped[0] == {"order": 0, "type": "userMessage", "payload": {"text": "hi"}, "created_at": 1.0}
    assert dumped[1]["type"] == "rawToken"


def _open(name, value):
    return Section(name, value, classify(value), complete=False)


def test_open_payload_string_finalized_into_empty_batch():
    r = _reconciler()
    r.apply_decoder_snapshot([_open("action_json", "[]")])
    assert [i.content for i in r.items] == ["[]"]

    r.apply_decoder_snapshot([_sec("action_json", [])])
    assert r.items == []

    r.apply_decoder_snapshot([_sec("action_json", []), _open("response", "hel")])
    r.apply_decoder_snapshot([_sec("action_json", []), _sec("response", "hello")])
    assert [(i.section_name, i.content) for i in r.items] == [("response", "hello")]
    _assert_orders(r)


def test_tail_entry_replaced_by_next_section():
    r = _reconciler()
    r.apply_decoder_snapshot([_open("action_json", "[] ")])
    r.apply_decoder_snapshot([_sec("action_json", []), _open("response", "hi")])
    assert len(r.items) == 1
    item = r.items[0]
    assert (item.section_name, item.content, item.is_updated) == ("response", "hi", True)
    assert item.action_id is None


def test_open_payload_string_finalized_into_larger_batch():
    r = _reconciler()
    r.apply_decoder_snapshot([_open("action_json", '[{"action_code": 1}')])
    r.apply_decoder_snapshot([_sec("action_json", [{"action_code": 1}, {"action_code": 2}])])
    assert [i.content for i in r.items] == [{"action_code": 1}, {"action_code": 2}]
    assert [i.action_id for i in r.items] == ["1", "2"]


def test_removed_entries_renumber_the_timeline():
    r = _reconciler()
    r.apply_raw_delta("x")
    r.apply_decoder_snapshot([_sec("node_id", 1), _open("action_json", "[")])
    r.insert_user_message("later")
    r.apply_decoder_snapshot([_sec("node_id", 1), _sec("action_json", [])])
    assert _types(r) == ["rawToken", "parsedSection", "userMessage"]
    _assert_orders(r)

    r.apply_decoder_snapshot([_sec("node_id", 1), _sec("action_json", []), _sec("response", "ok")])
    assert [(i.type, i.order) for i in r.items][-1] == ("parsedSection", 3)
    r.apply_decoder_snapshot([_sec("node_id", 1), _sec("action_json", []), _sec("response", "ok!")])
    assert r.items[3].content == "ok!"


def test_each_stream_gets_its_own_stream_end():
    r = _reconciler()
    r.apply_decoder_snapshot([_sec("response", "one")])
    r.mark_stream_end()
    r.begin_stream()
    r.apply_decoder_snapshot([_sec("response", "two")])
    r.mark_stream_end()
    r.mark_stream_end()
    assert _types(r) == ["parsedSection", "streamEnd", "parsedSection", "streamEnd"]
    assert r.items[2].content == "two"
    _assert_orders(r)


def test_empty_stream_adds_no_second_stream_end():
    r = _reconciler()
    r.mark_stream_end()
    r.begin_stream()
    r.mark_stream_end()
    assert _types(r) == ["streamEnd"]
