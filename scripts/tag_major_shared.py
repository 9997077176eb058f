#!/usr/bin/env python3
"""Shared script utilities.

Keep scripts tiny: centralize structured logging + workflow annotations.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any


ANNOTATION_KINDS = frozenset({"error", "warning", "notice"})


def configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, sort_keys=True, default=str))


def annotate(kind: str, message: str) -> None:
    """Emit a GitHub Actions workflow annotation on stderr."""
    if kind not in ANNOTATION_KINDS:
        raise ValueError(f"unknown annotation kind: {kind}")
    print(f"::{kind}::{message}", file=sys.stderr)
