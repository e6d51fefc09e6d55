import unittest

from chat_session_store.models import (
    SessionRecord,
    default_session_name,
    has_content,
    parse_timestamp,
    sort_most_recent_first,
)
from tests.sessions.base import make_record


class ParseTimestampTests(unittest.TestCase):
    def test_date_only_reads_as_utc_midnight(self) -> None:
        parsed = parse_timestamp("2024-06-01")
        self.assertEqual((2024, 6, 1, 0), (parsed.year, parsed.month, parsed.day, parsed.hour))
        self.assertIsNotNone(parsed.tzinfo)

    def test_zulu_suffix_and_offset_compare_equal(self) -> None:
        self.assertEqual(
            parse_timestamp("2024-06-01T10:00:00Z"),
            parse_timestamp("2024-06-01T12:00:00+02:00"),
        )

    def test_garbage_raises_value_error(self) -> None:
        with self.assertRaises(ValueError):
            parse_timestamp("yesterday")


class SessionRecordTests(unittest.TestCase):
    def test_to_dict_uses_camel_case_wire_keys(self) -> None:
        payload = make_record("a").to_dict()
        self.assertEqual(
            {"id", "name", "persona", "messages", "createdAt", "lastModified"},
            set(payload),
        )

    def test_from_dict_ignores_unknown_fields(self) -> None:
        payload = make_record("a").to_dict()
        payload["user_id"] = "someone"
        payload["futureField"] = {"x": 1}
        record = SessionRecord.from_dict(payload)
        self.assertEqual(make_record("a"), record)

    def test_from_dict_rejects_missing_messages(self) -> None:
        payload = make_record("a").to_dict()
        del payload["messages"]
        with self.assertRaises(ValueError):
            SessionRecord.from_dict(payload)

    def test_from_dict_accepts_empty_messages(self) -> None:
        payload = make_record("a", messages=[]).to_dict()
        self.assertEqual([], SessionRecord.from_dict(payload).messages)

    def test_from_dict_rejects_last_modified_before_created(self) -> None:
        payload = make_record("a", "2023-01-01", created_at="2024-01-01").to_dict()
        with self.assertRaises(ValueError):
            SessionRecord.from_dict(payload)

    def test_heat_level_uses_snake_case_key(self) -> None:
        payload = make_record("a").to_dict()
        payload["heat_level"] = 3
        record = SessionRecord.from_dict(payload)
        self.assertEqual(3, record.heat_level)
        self.assertEqual(3, record.to_dict()["heat_level"])
        self.assertNotIn("heatLevel", record.to_dict())

    def test_camel_case_heat_level_is_still_read(self) -> None:
        payload = make_record("a").to_dict()
        payload["heatLevel"] = 1
        self.assertEqual(1, SessionRecord.from_dict(payload).heat_level)

    def test_renamed_blank_name_uses_generated_label(self) -> None:
        record = make_record("a", created_at="2024-01-01T09:30:00+00:00", last_modified="2024-01-02T00:00:00+00:00")
        renamed = record.renamed("   ", "2024-02-01T00:00:00+00:00")
        self.assertEqual(default_session_name(record.created_at), renamed.name)
        self.assertEqual("Chat 2024-01-01 09:30", renamed.name)
        self.assertEqual("2024-02-01T00:00:00+00:00", renamed.last_modified)

    def test_touched_never_precedes_created_at(self) -> None:
        record = make_record("a", "2024-05-01", created_at="2024-05-01")
        touched = record.touched("2020-01-01T00:00:00+00:00")
        self.assertEqual(record.created_at, touched.last_modified)

    def test_sort_most_recent_first(self) -> None:
        records = [make_record("old", "2024-01-01"), make_record("new", "2024-06-01"), make_record("mid", "2024-03-01")]
        self.assertEqual(["new", "mid", "old"], [r.id for r in sort_most_recent_first(records)])

    def test_has_content_skips_blank_placeholders(self) -> None:
        self.assertFalse(has_content({"content": "  "}))
        self.assertFalse(has_content({"isAI": True}))
        self.assertTrue(has_content({"content": "hello"}))


if __name__ == "__main__":
    unittest.main()
