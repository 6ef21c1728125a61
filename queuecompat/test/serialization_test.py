"""
Tests for job snapshots.
"""

import unittest

import simplejson as json

from queuecompat.adapters import serialization
from queuecompat.config import DEFAULT_JOB_NAME


class TestToData(unittest.TestCase):
    """Test flattening of legacy job records."""

    def test_every_field_is_a_string(self):
        """Test present values are strings and absent ones None"""
        snapshot = serialization.to_data({
            "id": 3, "name": "job", "data": {"x": 1}, "opts": {"attempts": 2},
            "progress": 50, "delay": 0, "timestamp": 1000,
            "attemptsMade": 1, "failedReason": "boom",
            "stacktrace": ["trace"], "returnvalue": None,
            "finishedOn": 2000, "processedOn": None,
        })
        self.assertEqual(set(serialization.FIELDS), set(snapshot))
        self.assertEqual("3", snapshot["id"])
        self.assertEqual('{"x": 1}', snapshot["data"])
        self.assertEqual('"boom"', snapshot["failedReason"])
        self.assertEqual('["trace"]', snapshot["stacktrace"])
        self.assertEqual("0", snapshot["delay"])
        self.assertEqual("2000", snapshot["finishedOn"])
        self.assertIsNone(snapshot["returnvalue"])
        self.assertIsNone(snapshot["processedOn"])


class TestParse(unittest.TestCase):
    """Test parsing of snapshots."""

    def test_defaults(self):
        """Test an empty snapshot parses to defaults"""
        fields = serialization.parse({})
        self.assertEqual(DEFAULT_JOB_NAME, fields["name"])
        self.assertEqual({}, fields["data"])
        self.assertEqual({}, fields["opts"])
        self.assertEqual(0, fields["progress"])
        self.assertEqual(0, fields["attemptsMade"])
        self.assertEqual([], fields["stacktrace"])
        self.assertIsNone(fields["timestamp"])
        self.assertIsNone(fields["finishedOn"])
        self.assertIsNone(fields["returnvalue"])

    def test_malformed_values(self):
        """Test malformed JSON and numbers fall back instead of failing"""
        fields = serialization.parse({
            "data": "{not json", "opts": "[", "progress": "??",
            "timestamp": "later", "attemptsMade": "x",
            "stacktrace": '{"not": "a list"}', "returnvalue": "plain text",
        })
        self.assertEqual({}, fields["data"])
        self.assertEqual({}, fields["opts"])
        self.assertEqual(0, fields["progress"])
        self.assertIsNone(fields["timestamp"])
        self.assertEqual(0, fields["attemptsMade"])
        self.assertEqual([], fields["stacktrace"])
        self.assertEqual("plain text", fields["returnvalue"])

    def test_returnvalue_only_parsed_from_strings(self):
        """Test a non-string returnvalue is kept as is"""
        self.assertEqual(7, serialization.parse({"returnvalue": 7})["returnvalue"])
        self.assertEqual({"a": 1}, serialization.parse(
            {"returnvalue": '{"a": 1}'})["returnvalue"])

    def test_failed_reason(self):
        """Test failedReason accepts JSON and raw strings"""
        self.assertEqual("boom", serialization.parse(
            {"failedReason": '"boom"'})["failedReason"])
        self.assertEqual("boom", serialization.parse(
            {"failedReason": "boom"})["failedReason"])


class TestEngineRecord(unittest.TestCase):
    """Test snapshots of engine records."""

    def test_delay_lifted_from_opts(self):
        """Test the delay comes from the options JSON"""
        snapshot = serialization.from_engine_record({
            "id": "7", "name": "n", "data": "{}",
            "opts": json.dumps({"delay": 250, "attempts": 1}),
            "timestamp": 10, "attemptsMade": 0,
        })
        self.assertEqual("250", snapshot["delay"])
        self.assertEqual("10", snapshot["timestamp"])
        self.assertEqual("0", snapshot["attemptsMade"])
        self.assertIsNone(snapshot["finishedOn"])
        self.assertEqual("7", snapshot["id"])

    def test_legacy_opts(self):
        """Test engine option names are turned into legacy ones"""
        snapshot = serialization.from_engine_record({
            "opts": json.dumps({
                "job_id": "12", "stack_trace_limit": 3,
                "remove_on_complete": True, "remove_on_fail": None,
                "attempts": 2, "repeat": {"every": 1000, "count": 1},
                "backoff": {"type": "fixed", "delay": 10}}),
        })
        opts = json.loads(snapshot["opts"])
        self.assertEqual(12, opts["jobId"])
        self.assertEqual(3, opts["stackTraceLimit"])
        self.assertTrue(opts["removeOnComplete"])
        self.assertNotIn("removeOnFail", opts)
        self.assertEqual(2, opts["attempts"])
        self.assertEqual(1000, opts["repeat"]["every"])
        self.assertEqual({"type": "fixed", "delay": 10}, opts["backoff"])
        self.assertNotIn("job_id", opts)

    def test_failed_reason_is_json(self):
        """Test a plain text failure reason is JSON in the snapshot"""
        snapshot = serialization.from_engine_record({"failedReason": "404"})
        self.assertEqual('"404"', snapshot["failedReason"])
        self.assertEqual("404", serialization.parse(snapshot)["failedReason"])
        snapshot = serialization.from_engine_record({})
        self.assertIsNone(snapshot["failedReason"])

    def test_bad_opts(self):
        """Test unparsable options leave the options and delay unset"""
        snapshot = serialization.from_engine_record({"opts": "nope"})
        self.assertIsNone(snapshot["opts"])
        self.assertIsNone(snapshot["delay"])

    def test_none(self):
        self.assertIsNone(serialization.from_engine_record(None))
