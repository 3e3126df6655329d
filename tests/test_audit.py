# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
"""Tests for the governance audit log."""

import json
import threading
import time

from gatewaystack.audit import AuditEntry, AuditLogger


class TestAuditEntry:
    """Tests for AuditEntry dataclass and factory methods."""

    def test_allowed_entry(self):
        entry = AuditEntry.allowed("u:alice", tool="search", risk_score=25, pii_types=["email"])
        assert entry.event_type == "allowed"
        assert entry.stage == "complete"
        assert entry.reason == "All checks passed"
        assert entry.pii_types == ["email"]

    def test_denied_entry(self):
        entry = AuditEntry.denied("policy", "u:alice", "Missing permissions: admin", tool="delete")
        assert entry.event_type == "denied"
        assert entry.stage == "policy"
        assert entry.reason == "Missing permissions: admin"
        assert entry.pii_types == []

    def test_proxied_entry(self):
        entry = AuditEntry.proxied("u:alice", "openai", 200, 150.5, model="gpt-4o")
        assert entry.event_type == "proxied"
        assert entry.stage == "egress"
        assert entry.provider == "openai"
        assert entry.status_code == 200
        assert entry.duration_ms == 150.5

    def test_failed_entry(self):
        entry = AuditEntry.failed("u:alice", "openai", "Upstream error 500: boom", status_code=500)
        assert entry.event_type == "error"
        assert entry.stage == "egress"
        assert entry.status_code == 500

    def test_to_json(self):
        data = json.loads(AuditEntry.denied("content", "anonymous", "blocked").to_json())
        assert data["event_type"] == "denied"
        assert data["stage"] == "content"
        assert data["key"] == "anonymous"

    def test_timestamp_is_recent(self):
        before = time.time()
        entry = AuditEntry.allowed("anonymous")
        after = time.time()
        assert before <= entry.timestamp <= after


class TestAuditLogger:
    """Tests for AuditLogger file operations."""

    def test_log_creates_file_and_parents(self, tmp_path):
        log_path = tmp_path / "nested" / "audit.log"
        with AuditLogger(log_path) as audit:
            audit.log(AuditEntry.allowed("anonymous"))
        assert log_path.exists()

    def test_log_writes_json_lines(self, tmp_path):
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as audit:
            audit.log(AuditEntry.allowed("u:a"))
            audit.log(AuditEntry.denied("admission", "u:b", "Rate limited. Retry after 3s"))
            audit.log(AuditEntry.proxied("u:a", "openai", 200, 10.0))
            assert audit.entry_count == 3

        lines = log_path.read_text().strip().splitlines()
        assert len(lines) == 3
        assert [json.loads(line)["event_type"] for line in lines] == ["allowed", "denied", "proxied"]

    def test_appends_across_sessions(self, tmp_path):
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as audit:
            audit.log(AuditEntry.allowed("u:a"))
        with AuditLogger(log_path) as audit:
            audit.log(AuditEntry.allowed("u:b"))
            assert audit.entry_count == 1
        assert len(log_path.read_text().strip().splitlines()) == 2

    def test_read_recent(self, tmp_path):
        with AuditLogger(tmp_path / "audit.log") as audit:
            for i in range(10):
                audit.log(AuditEntry.denied("policy", f"u:{i}", "no"))
            recent = audit.read_recent(3)
        assert [e.key for e in recent] == ["u:7", "u:8", "u:9"]
        assert isinstance(recent[0], AuditEntry)

    def test_read_recent_missing_file(self, tmp_path):
        audit = AuditLogger(tmp_path / "audit.log")
        assert audit.read_recent() == []

    def test_read_recent_skips_malformed(self, tmp_path):
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as audit:
            audit.log(AuditEntry.allowed("u:a"))
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("not json\n")
            f.write('{"unexpected": 1}\n')
        with AuditLogger(log_path) as audit:
            audit.log(AuditEntry.allowed("u:b"))
            assert [e.key for e in audit.read_recent()] == ["u:a", "u:b"]

    def test_get_stats(self, tmp_path):
        with AuditLogger(tmp_path / "audit.log") as audit:
            audit.log(AuditEntry.allowed("u:a"))
            audit.log(AuditEntry.proxied("u:a", "openai", 200, 5.0))
            audit.log(AuditEntry.denied("admission", "u:b", "limit"))
            audit.log(AuditEntry.denied("admission", "u:b", "limit"))
            audit.log(AuditEntry.denied("content", "u:c", "risk"))
            audit.log(AuditEntry.failed("u:a", "openai", "timeout"))
            stats = audit.get_stats()

        assert stats == {
            "total": 6,
            "allowed": 1,
            "proxied": 1,
            "denied": 3,
            "errors": 1,
            "denied_by_stage": {"admission": 2, "content": 1},
            "unique_keys": 3,
        }

    def test_read_recent_filters(self, tmp_path):
        with AuditLogger(tmp_path / "audit.log") as audit:
            audit.log(AuditEntry.allowed("u:a"))
            audit.log(AuditEntry.denied("admission", "u:a", "limit"))
            audit.log(AuditEntry.denied("content", "u:b", "risk"))
            audit.log(AuditEntry.denied("admission", "u:b", "limit"))
            audit.log(AuditEntry.proxied("u:b", "openai", 200, 5.0))

            denied = audit.read_recent(event_type="denied")
            assert [(e.stage, e.key) for e in denied] == [
                ("admission", "u:a"),
                ("content", "u:b"),
                ("admission", "u:b"),
            ]
            assert [e.event_type for e in audit.read_recent(stage="egress")] == ["proxied"]
            assert [e.key for e in audit.read_recent(1, stage="admission")] == ["u:b"]
            both = audit.read_recent(event_type="denied", key="u:b")
            assert [e.stage for e in both] == ["content", "admission"]
            assert audit.read_recent(event_type="error") == []

    def test_entries_streams_in_file_order(self, tmp_path):
        with AuditLogger(tmp_path / "audit.log") as audit:
            for i in range(3):
                audit.log(AuditEntry.allowed(f"u:{i}"))
            assert [e.key for e in audit.entries()] == ["u:0", "u:1", "u:2"]
        assert list(AuditLogger(tmp_path / "missing" / "audit.log").entries()) == []

    def test_get_stats_window(self, tmp_path):
        with AuditLogger(tmp_path / "audit.log") as audit:
            audit.log(AuditEntry.denied("policy", "u:a", "no"))
            audit.log(AuditEntry.allowed("u:b"))
            audit.log(AuditEntry.allowed("u:c"))
            stats = audit.get_stats(window=2)
        assert stats["total"] == 2
        assert stats["denied"] == 0
        assert stats["denied_by_stage"] == {}
        assert stats["unique_keys"] == 2

    def test_concurrent_writes(self, tmp_path):
        log_path = tmp_path / "audit.log"
        audit = AuditLogger(log_path)

        def write_many(n):
            for _ in range(25):
                audit.log(AuditEntry.allowed(f"u:{n}"))

        threads = [threading.Thread(target=write_many, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        audit.close()

        lines = log_path.read_text().strip().splitlines()
        assert len(lines) == 100
        for line in lines:
            json.loads(line)

    def test_path_property(self, tmp_path):
        audit = AuditLogger(tmp_path / "audit.log")
        assert audit.path == tmp_path / "audit.log"
