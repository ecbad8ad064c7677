"""
Configuration constants for the payments load test harness.

This module contains all configuration parameters including:
- Target service endpoint and request paths
- Per-call timeouts and accepted status codes per operation
- Connection pool limits
- Built-in stage presets
"""

import os
from typing import Any, Dict, List

# =============================================================================
# TARGET SERVICE CONFIGURATION
# =============================================================================

# Base URL of the payments REST API (all paths below are relative to it)
BASE_URL: str = os.getenv("PAYBENCH_BASE_URL", "http://localhost:8080/api")

READ_PATH: str = "/payments"
READ_ALL_PATH: str = "/payments/all"
WRITE_PATH: str = "/payments/fetch-and-save"

# Result size for bounded reads; 0 or less reads everything via READ_ALL_PATH
READ_LIMIT: int = int(os.getenv("PAYBENCH_READ_LIMIT", "10"))

# =============================================================================
# TIMEOUTS
# =============================================================================

# Per-call timeout used when neither the stage nor the CLI sets one
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("PAYBENCH_TIMEOUT_SECONDS", "5"))

# Time allowed for resolving the target host before the run starts
PREFLIGHT_TIMEOUT_SECONDS: float = 5.0

# =============================================================================
# HTTP STATUS CODES
# =============================================================================

HTTP_OK_STATUS: int = 200
HTTP_CREATED_STATUS: int = 201
HTTP_ERROR_STATUS: int = 500

# The payments service answers a duplicate upstream fetch with 500; a write
# stage treats that as handled by default.
DEFAULT_ACCEPTED_STATUS_CODES: Dict[str, List[int]] = {
    "read": [HTTP_OK_STATUS],
    "write": [HTTP_OK_STATUS, HTTP_CREATED_STATUS, HTTP_ERROR_STATUS],
}

# =============================================================================
# CONNECTION POOL
# =============================================================================

# Total and per-host connection limits of the shared client session (0 = unlimited)
CONNECTION_LIMIT: int = int(os.getenv("PAYBENCH_CONNECTION_LIMIT", "0"))
CONNECTION_LIMIT_PER_HOST: int = 0

# =============================================================================
# PROGRESS REPORTING
# =============================================================================

PROGRESS_INTERVAL_SECONDS: float = 1.0  # Log stage progress every N seconds

# =============================================================================
# REPORT LAYOUT
# =============================================================================

REPORT_NAME_WIDTH: int = 16
REPORT_NUMBER_WIDTH: int = 10
REPORT_RULE_CHAR: str = "="
MILLISECONDS_PER_SECOND: int = 1000

# =============================================================================
# PRESETS
# =============================================================================

# Each preset mirrors one of the original load scripts. Stage dictionaries use
# the same keys as a scenario file.
PRESETS: Dict[str, Dict[str, Any]] = {
    "full": {
        "description": "Concurrent save and read stages over the same 5 second window",
        "stages": [
            {
                "name": "stage_save",
                "operation": "write",
                "workers": 75,
                "iterations": 20,
                "max_duration": 5.0,
                "start_offset": 0.0,
                "timeout": 5.0,
                "accepted_status_codes": [200, 201, 500],
            },
            {
                "name": "stage_read",
                "operation": "read",
                "workers": 25,
                "iterations": 100,
                "max_duration": 5.0,
                "start_offset": 0.0,
                "timeout": 3.0,
                "accepted_status_codes": [200],
            },
        ],
    },
    "read": {
        "description": "Bounded reads with a tight 100 ms call budget",
        "stages": [
            {
                "name": "read_load",
                "operation": "read",
                "workers": 100,
                "iterations": 30,
                "max_duration": 10.0,
                "start_offset": 0.0,
                "timeout": 0.1,
            },
        ],
    },
    "write": {
        "description": "Sustained fetch-and-save writes, any 2xx accepted",
        "stages": [
            {
                "name": "write_load",
                "operation": "write",
                "workers": 100,
                "iterations": 30,
                "max_duration": 10.0,
                "start_offset": 0.0,
                "timeout": 2.0,
                "accepted_status_codes": ["2xx"],
            },
        ],
    },
    "write-burst": {
        "description": "Short burst of writes from many workers without connection reuse",
        "connection_reuse": False,
        "stages": [
            {
                "name": "write_burst",
                "operation": "write",
                "workers": 500,
                "iterations": 4,
                "max_duration": 10.0,
                "start_offset": 0.0,
                "timeout": 2.0,
                "accepted_status_codes": [200, 201],
            },
        ],
    },
}
