"""
Tests for the legacy/engine option translation.
"""

import unittest
from unittest import mock

import pytest

from queuecompat.adapters import options
from queuecompat.config import QueueConfig
from queuecompat.engine.types import (BackoffOpts, ClientType, JobsOpts,
                                      RepeatableJob, RepeatOpts)
from queuecompat.errors import RepeatOptionsError


@pytest.mark.parametrize("legacy", [
    {},
    {"priority": 3, "delay": 1500, "attempts": 4, "lifo": True,
     "timeout": 200, "stackTraceLimit": 5},
    {"jobId": "custom-id", "removeOnComplete": True, "removeOnFail": False},
    {"jobId": 42, "backoff": 1000},
    {"backoff": {"type": "exponential", "delay": 50}},
    {"repeat": {"cron": "*/5 * * * *", "tz": "Europe/Paris",
                "startDate": 1700000000000, "endDate": 1800000000000,
                "limit": 10}},
    {"repeat": {"every": 5000, "limit": 3}},
])
def testJobOptionsRoundTrip(legacy):
    assert options.to_job_options(options.to_engine_jobs_opts(legacy)) == legacy


class TestJobsOpts(unittest.TestCase):
    """Test translation of job options."""

    def test_direct_fields(self):
        """Test directly copied fields land on their engine names"""
        opts = options.to_engine_jobs_opts(
            {"priority": 1, "stackTraceLimit": 7, "timeout": 30})
        self.assertEqual(1, opts.priority)
        self.assertEqual(7, opts.stack_trace_limit)
        self.assertEqual(30, opts.timeout)
        self.assertIsNone(opts.delay)

    def test_job_id_is_string(self):
        """Test numeric job ids become strings"""
        self.assertEqual("12", options.to_engine_jobs_opts({"jobId": 12}).job_id)
        self.assertEqual("ab", options.to_engine_jobs_opts({"jobId": "ab"}).job_id)

    def test_job_id_conversion(self):
        """Test engine ids come back as int when all digits"""
        self.assertEqual(12, options.to_job_id("12"))
        self.assertEqual("a12", options.to_job_id("a12"))
        self.assertIsNone(options.to_job_id(None))
        self.assertIsNone(options.to_engine_job_id(None))

    def test_backoff_shapes(self):
        """Test backoff keeps its number or record shape"""
        self.assertEqual(100, options.to_engine_jobs_opts({"backoff": 100}).backoff)
        self.assertEqual(
            BackoffOpts(type="fixed", delay=10),
            options.to_engine_jobs_opts(
                {"backoff": {"type": "fixed", "delay": 10}}).backoff)

    def test_numeric_retention_dropped(self):
        """Test numeric removeOnComplete/removeOnFail warn and are dropped"""
        with self.assertLogs("queuecompat.adapters.options", "WARNING") as logs:
            opts = options.to_engine_jobs_opts(
                {"removeOnComplete": 10, "removeOnFail": 3})
        self.assertIsNone(opts.remove_on_complete)
        self.assertIsNone(opts.remove_on_fail)
        self.assertEqual(2, len(logs.records))
        self.assertIn("removeOnComplete", logs.output[0])
        self.assertIn("removeOnFail", logs.output[1])
        self.assertEqual({}, options.to_job_options(opts))

    def test_caller_dict_untouched(self):
        """Test translation never modifies its input"""
        legacy = {"removeOnComplete": 5, "repeat": {"every": 10}}
        with self.assertLogs("queuecompat.adapters.options", "WARNING"):
            options.to_engine_jobs_opts(legacy)
        self.assertEqual({"removeOnComplete": 5, "repeat": {"every": 10}},
                         legacy)

    def test_repeat_counters_hidden(self):
        """Test engine repeat bookkeeping is not surfaced"""
        engine = JobsOpts(repeat=RepeatOpts(every=100, count=3,
                                            prev_millis=1234))
        self.assertEqual({"repeat": {"every": 100}},
                         options.to_job_options(engine))

    def test_cron_repeat_drops_every_fields(self):
        """Test cron schedules come back without every"""
        repeat = RepeatOpts(cron="0 * * * *", start_date=5)
        self.assertEqual({"cron": "0 * * * *", "startDate": 5},
                         options.to_repeat_options(repeat))

    def test_repeat_needs_one_of_cron_every(self):
        """Test a repeat spec with both or neither of cron and every"""
        with self.assertRaises(RepeatOptionsError):
            options.to_engine_repeat_opts({"cron": "* * * * *", "every": 10})
        with self.assertRaises(RepeatOptionsError):
            options.to_engine_repeat_opts({"tz": "UTC"})
        with self.assertRaises(ValueError):
            options.to_engine_jobs_opts({"repeat": {"limit": 1}})

    def test_none(self):
        """Test absent records stay absent"""
        self.assertIsNone(options.to_engine_jobs_opts(None))
        self.assertIsNone(options.to_job_options(None))
        self.assertIsNone(options.to_engine_repeat_opts(None))
        self.assertIsNone(options.to_engine_rate_limiter_opts(None))
        self.assertIsNone(options.to_engine_advanced_opts(None))


class TestQueueOptions(unittest.TestCase):
    """Test translation of queue, worker and events options."""

    def test_queue_options(self):
        """Test queue options carry connection, prefix and default job options"""
        config = QueueConfig({"redis": {"host": "h", "port": 1},
                              "prefix": "pfx",
                              "defaultJobOptions": {"attempts": 2}})
        opts = options.to_engine_queue_options(config)
        self.assertEqual({"host": "h", "port": 1}, opts.connection)
        self.assertEqual("pfx", opts.prefix)
        self.assertEqual(2, opts.default_job_options.attempts)
        self.assertIsNone(opts.create_client)

    def test_events_options(self):
        """Test events options leave lastEventId and blockingTimeout unset"""
        opts = options.to_engine_queue_events_options(QueueConfig({}))
        self.assertEqual("bull", opts.prefix)
        self.assertIsNone(opts.last_event_id)
        self.assertIsNone(opts.blocking_timeout)

    def test_worker_options(self):
        """Test worker options carry limiter and settings"""
        config = QueueConfig({
            "limiter": {"max": 5, "duration": 1000},
            "settings": {"lockDuration": 100, "backoffStrategies": {}},
        })
        opts = options.to_engine_worker_options(config, 3)
        self.assertEqual(3, opts.concurrency)
        self.assertEqual(5, opts.limiter.max)
        self.assertEqual(1000, opts.limiter.duration)
        self.assertEqual(100, opts.settings.lock_duration)
        self.assertEqual({}, opts.settings.backoff_strategies)

    def test_bounce_back_warns(self):
        """Test limiter.bounceBack is dropped with a warning"""
        with self.assertLogs("queuecompat.adapters.options", "WARNING") as logs:
            limiter = options.to_engine_rate_limiter_opts(
                {"max": 1, "duration": 10, "bounceBack": True})
        self.assertIn("bounceBack option is not supported", logs.output[0])
        self.assertFalse(hasattr(limiter, "bounce_back"))

    def test_lock_renew_time_warns(self):
        """Test settings.lockRenewTime is dropped with a warning"""
        with self.assertLogs("queuecompat.adapters.options", "WARNING") as logs:
            settings = options.to_engine_advanced_opts(
                {"lockRenewTime": 10, "stalledInterval": 20})
        self.assertIn("lockRenewTime option is not supported", logs.output[0])
        self.assertEqual(20, settings.stalled_interval)

    def test_create_client(self):
        """Test client kinds map to legacy createClient types"""
        createClient = mock.Mock(return_value="a-client")
        redis = {"host": "h"}
        factory = options.adapt_create_client(createClient, redis)
        self.assertEqual("a-client", factory(ClientType.BLOCKING))
        createClient.assert_called_with("bclient", redis)
        factory(ClientType.NORMAL)
        createClient.assert_called_with("client", redis)
        self.assertIsNone(factory("subscriber"))
        self.assertEqual(2, createClient.call_count)
        self.assertIsNone(options.adapt_create_client(None, redis))


class TestResults(unittest.TestCase):
    """Test translation of engine results."""

    def test_job_counts(self):
        """Test wait is renamed and unknown states dropped"""
        counts = options.to_job_counts({
            "wait": 1, "paused": 2, "active": 3, "completed": 4,
            "failed": 5, "delayed": 6})
        self.assertEqual({"waiting": 1, "active": 3, "completed": 4,
                          "failed": 5, "delayed": 6}, counts)

    def test_job_counts_missing(self):
        """Test states the engine did not report are None"""
        counts = options.to_job_counts({"active": 1})
        self.assertEqual(1, counts["active"])
        self.assertIsNone(counts["waiting"])
        self.assertIsNone(options.to_job_counts(None))

    def test_job_information(self):
        """Test repeatable entries use the legacy field names"""
        entry = RepeatableJob(key="n:i:9:UTC:* * * * *", name="n", id="i",
                              end_date=9, tz="UTC", cron="* * * * *",
                              next=100)
        self.assertEqual({
            "key": "n:i:9:UTC:* * * * *", "name": "n", "id": "i",
            "endDate": 9, "tz": "UTC", "cron": "* * * * *", "next": 100,
        }, options.to_job_information(entry))
