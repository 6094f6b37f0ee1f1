"""
Tests for audit records, the clock helpers and the log sanitizer.
"""

import logging

import pytest

from custodian.clock import ManualClock, system_clock
from custodian.logger import LogManager, TerminalSafeFormatter, get_logger
from custodian.policy.events import AuditAction, AuditEvent, AuditLog
from custodian.policy.limits import SpendLimitPolicy
from custodian.roles import Roles


ACTOR = "0x" + "11" * 20


# ══════════════════════════════════════════════════════════════════════
#  1. AUDIT LOG
# ══════════════════════════════════════════════════════════════════════

class TestAuditLog:

    def test_record_uses_clock(self):
        clock = ManualClock(1234)
        log = AuditLog(clock)
        event = log.record("spend_limit", AuditAction.INITIALIZED, ACTOR, value=100)
        assert event.timestamp == 1234
        assert log.last is event
        assert len(log) == 1

    def test_filter(self):
        log = AuditLog()
        log.record("spend_limit", AuditAction.INITIALIZED, ACTOR, value=100)
        log.record("spend_limit", AuditAction.SUBMITTED, ACTOR, value=60)
        log.record("top_up", AuditAction.EXECUTED, ACTOR)
        assert len(log.filter(subject="spend_limit")) == 2
        assert len(log.filter(action=AuditAction.EXECUTED)) == 1
        assert log.filter(subject="top_up", action=AuditAction.SUBMITTED) == []

    def test_subscribers_notified(self):
        log = AuditLog()
        seen = []
        log.subscribe(seen.append)
        event = log.record("whitelist", AuditAction.INITIALIZED, ACTOR)
        assert seen == [event]

    def test_failing_subscriber_is_isolated(self, caplog):
        log = AuditLog()
        seen = []

        def broken(event):
            raise RuntimeError("listener down")

        log.subscribe(broken)
        log.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="custodian.policy.events"):
            event = log.record("spend_limit", AuditAction.CONFIRMED, ACTOR, value=60)

        assert log.last is event
        assert seen == [event]
        assert "listener down" in caplog.text
        assert "[spend_limit/confirmed]" in caplog.text

    def test_failing_subscriber_does_not_undo_change(self):
        clock = ManualClock(1_700_000_000)
        log = AuditLog(clock)
        log.subscribe(lambda event: 1 / 0)
        spend = SpendLimitPolicy(Roles(ACTOR, ["0x" + "22" * 20]), log, clock=clock)

        spend.initialize(ACTOR, 100)
        assert spend.initialized
        assert spend.value == 100
        assert log.last.name == "spend_limit/initialized"

    def test_events_is_a_copy(self):
        log = AuditLog()
        log.record("whitelist", AuditAction.INITIALIZED, ACTOR)
        log.events.clear()
        assert len(log) == 1

    def test_event_is_frozen(self):
        event = AuditEvent("transfer", AuditAction.EXECUTED, ACTOR)
        with pytest.raises(AttributeError):
            event.actor = "0x" + "22" * 20

    def test_to_dict_stringifies_amounts(self):
        log = AuditLog(ManualClock(5))
        log.record(
            "transfer", AuditAction.EXECUTED, ACTOR,
            value={"amount": 10 ** 21, "whitelisted": True, "path": (1, 2)},
        )
        d = log.to_dict()
        assert d["count"] == 1
        entry = d["events"][0]
        assert entry["event"] == "transfer/executed"
        assert entry["value"] == {"amount": str(10 ** 21), "whitelisted": True, "path": ["1", "2"]}
        assert entry["timestamp"] == 5

    def test_record_logs_at_info(self, caplog):
        log = AuditLog()
        with caplog.at_level(logging.INFO, logger="custodian.policy.events"):
            log.record("spend_limit", AuditAction.CONFIRMED, ACTOR, value=60)
        assert "[spend_limit/confirmed]" in caplog.text


# ══════════════════════════════════════════════════════════════════════
#  2. CLOCKS
# ══════════════════════════════════════════════════════════════════════

class TestClock:

    def test_manual_clock(self):
        clock = ManualClock(100)
        assert clock() == 100
        assert clock.advance(5) == 105
        assert clock.advance_days(1) == 105 + 86_400
        clock.set(10 ** 9)
        assert clock.now == 10 ** 9

    def test_manual_clock_never_rewinds(self):
        clock = ManualClock(100)
        with pytest.raises(ValueError):
            clock.advance(-1)
        with pytest.raises(ValueError):
            clock.set(99)

    def test_system_clock_is_int(self):
        assert isinstance(system_clock(), int)


# ══════════════════════════════════════════════════════════════════════
#  3. LOGGING
# ══════════════════════════════════════════════════════════════════════

class TestLogging:

    def test_sanitize_strips_escapes(self):
        dirty = "actor=\x1b[31m0xabc\x1b[0m\r\x07 ok"
        assert TerminalSafeFormatter.sanitize(dirty) == "actor=0xabc ok"

    def test_sanitize_keeps_tabs_and_newlines(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_get_logger_returns_named_logger(self):
        assert get_logger("custodian.test").name == "custodian.test"

    def test_log_manager_is_singleton(self):
        assert LogManager() is LogManager()
        assert LogManager().is_configured

    def test_formatter_sanitizes_messages(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            "custodian.test", logging.INFO, __file__, 1, "to=\x1b[2J%s", ("0xabc",), None,
        )
        assert formatter.format(record) == "to=0xabc"
