"""JSON schema definition for reporter output."""
from __future__ import annotations

SCHEMA_VERSION = "1.0.0"

JSON_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "nctest report",
    "type": "object",
    "required": ["schema_version", "generated_at", "summary", "fragments"],
    "properties": {
        "schema_version": {"type": "string"},
        "generated_at": {"type": "string", "format": "date-time"},
        "summary": {
            "type": "object",
            "required": ["fragments", "total", "passed", "failed", "skipped", "errors", "duration_s"],
            "properties": {
                "fragments": {"type": "integer"},
                "total": {"type": "integer"},
                "passed": {"type": "integer"},
                "failed": {"type": "integer"},
                "skipped": {"type": "integer"},
                "errors": {"type": "integer"},
                "duration_s": {"type": "number"},
            },
        },
        "fragments": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["path", "key", "passed", "cases"],
                "properties": {
                    "path": {"type": "string"},
                    "key": {"type": "string"},
                    "dialect": {"type": ["string", "null"]},
                    "passed": {"type": "boolean"},
                    "error": {"type": "string"},
                    "artifact": {"type": ["string", "null"]},
                    "cases": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["name", "status", "duration_ms", "start_line", "end_line", "expected"],
                            "properties": {
                                "name": {"type": "string"},
                                "status": {
                                    "enum": [
                                        "passed",
                                        "expectation-mismatch",
                                        "unexpected-diagnostic",
                                        "unexpected-success",
                                        "compiler-crash",
                                        "timeout",
                                        "skipped",
                                    ]
                                },
                                "duration_ms": {"type": "number"},
                                "start_line": {"type": "integer", "minimum": 1},
                                "end_line": {"type": "integer", "minimum": 1},
                                "reason": {"type": "string"},
                                "expected": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "required": ["text", "regex", "severity"],
                                        "properties": {
                                            "text": {"type": "string"},
                                            "regex": {"type": "boolean"},
                                            "severity": {"type": "string"},
                                            "line": {"type": ["integer", "null"]},
                                        },
                                    },
                                },
                                "unexpected": {"type": "array", "items": {"type": "string"}},
                                "exit_code": {"type": ["integer", "null"]},
                                "output": {"type": "string"},
                            },
                        },
                    },
                },
            },
        },
    },
}
