# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Governance audit log.

Every terminal pipeline outcome -- allowed, denied at a stage, proxied,
or failed upstream -- is written as one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterator, TextIO

logger = logging.getLogger("gatewaystack.audit")


@dataclass
class AuditEntry:
    """A single governance decision."""

    timestamp: float
    event_type: str  # "allowed", "denied", "proxied", "error"
    stage: str  # "admission", "policy", "content", "egress", "complete"
    key: str  # Resolved limit key of the caller
    tool: str = ""
    model: str = ""
    provider: str = ""
    reason: str = ""
    status_code: int = 0  # Upstream status (0 if never sent)
    risk_score: int = 0
    pii_types: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def allowed(
        cls,
        key: str,
        tool: str = "",
        model: str = "",
        risk_score: int = 0,
        pii_types: list[str] | None = None,
    ) -> AuditEntry:
        """Passed every stage; no upstream call was made."""
        return cls(
            timestamp=time.time(),
            event_type="allowed",
            stage="complete",
            key=key,
            tool=tool,
            model=model,
            reason="All checks passed",
            risk_score=risk_score,
            pii_types=pii_types or [],
        )

    @classmethod
    def denied(
        cls,
        stage: str,
        key: str,
        reason: str,
        tool: str = "",
        model: str = "",
        risk_score: int = 0,
        pii_types: list[str] | None = None,
    ) -> AuditEntry:
        return cls(
            timestamp=time.time(),
            event_type="denied",
            stage=stage,
            key=key,
            tool=tool,
            model=model,
            reason=reason,
            risk_score=risk_score,
            pii_types=pii_types or [],
        )

    @classmethod
    def proxied(
        cls,
        key: str,
        provider: str,
        status_code: int,
        duration_ms: float,
        tool: str = "",
        model: str = "",
        risk_score: int = 0,
        pii_types: list[str] | None = None,
    ) -> AuditEntry:
        return cls(
            timestamp=time.time(),
            event_type="proxied",
            stage="egress",
            key=key,
            tool=tool,
            model=model,
            provider=provider,
            status_code=status_code,
            duration_ms=duration_ms,
            risk_score=risk_score,
            pii_types=pii_types or [],
        )

    @classmethod
    def failed(
        cls,
        key: str,
        provider: str,
        reason: str,
        status_code: int = 0,
        duration_ms: float = 0.0,
        tool: str = "",
        model: str = "",
    ) -> AuditEntry:
        """The upstream call raised."""
        return cls(
            timestamp=time.time(),
            event_type="error",
            stage="egress",
            key=key,
            tool=tool,
            model=model,
            provider=provider,
            reason=reason,
            status_code=status_code,
            duration_ms=duration_ms,
        )


class AuditLogger:
    """Append-only JSON Lines sink for governance decisions.

    Writes are serialised under a lock so concurrent request handlers never
    interleave lines. Reads stream the file and skip lines that do not parse
    as an ``AuditEntry``.
    """

    def __init__(self, log_path: str | Path | None = None) -> None:
        if log_path is None:
            from gatewaystack.config import DEFAULT_AUDIT_LOG_PATH

            log_path = DEFAULT_AUDIT_LOG_PATH

        self._path = Path(log_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._sink: TextIO | None = None
        self._written = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def entry_count(self) -> int:
        """Entries written through this logger since it was created."""
        return self._written

    def log(self, entry: AuditEntry) -> None:
        """Append one decision. A failed write is logged and dropped."""
        line = entry.to_json()
        with self._lock:
            try:
                if self._sink is None or self._sink.closed:
                    self._sink = open(self._path, "a", encoding="utf-8")
                self._sink.write(line + "\n")
                self._sink.flush()
            except OSError as exc:
                logger.error(
                    "Audit write to %s failed (%s at %s): %s",
                    self._path,
                    entry.event_type,
                    entry.stage,
                    exc,
                )
                return
            self._written += 1

    def close(self) -> None:
        with self._lock:
            if self._sink is not None and not self._sink.closed:
                self._sink.close()
            self._sink = None

    def entries(self) -> Iterator[AuditEntry]:
        """Every parseable entry in file order."""
        try:
            with open(self._path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        yield AuditEntry(**json.loads(line))
                    except (json.JSONDecodeError, TypeError):
                        logger.debug("Skipping malformed audit line in %s", self._path)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.error("Failed to read audit log %s: %s", self._path, exc)

    def read_recent(
        self,
        n: int = 50,
        *,
        event_type: str | None = None,
        stage: str | None = None,
        key: str | None = None,
    ) -> list[AuditEntry]:
        """The ``n`` most recent entries matching every given filter."""
        recent: deque[AuditEntry] = deque(maxlen=n)
        for entry in self.entries():
            if event_type is not None and entry.event_type != event_type:
                continue
            if stage is not None and entry.stage != stage:
                continue
            if key is not None and entry.key != key:
                continue
            recent.append(entry)
        return list(recent)

    def get_stats(self, window: int = 1000) -> dict:
        """Decision counts over the last ``window`` entries."""
        by_event: Counter[str] = Counter()
        denied_by_stage: Counter[str] = Counter()
        keys: set[str] = set()
        for entry in self.read_recent(window):
            by_event[entry.event_type] += 1
            if entry.event_type == "denied":
                denied_by_stage[entry.stage] += 1
            keys.add(entry.key)

        return {
            "total": sum(by_event.values()),
            "allowed": by_event["allowed"],
            "proxied": by_event["proxied"],
            "denied": by_event["denied"],
            "errors": by_event["error"],
            "denied_by_stage": dict(denied_by_stage),
            "unique_keys": len(keys),
        }

    def __enter__(self) -> AuditLogger:
        return self

    def __exit__(self, *args) -> None:
        self.close()
