"""Default values shared across the pipeline."""

from __future__ import annotations

DEFAULT_CAPTURE_CONCURRENCY = 6
DEFAULT_COMPARE_CONCURRENCY = 4
DEFAULT_SCREENSHOT_DIR = "visreg"
DEFAULT_CONFIG_FILE = "visreg.config.json"
DEFAULT_THRESHOLD = 0.1
DEFAULT_BROWSER = "chromium"
DEFAULT_COMPARISON_CORE = "pixel"
DEFAULT_DIFF_COLOR = "#00ff00"
DEFAULT_CAPTURE_TIMEOUT_MS = 30000  # per capture

SNAPSHOT_EXTENSION = ".png"

# Storage kinds
KIND_BASE = "base"
KIND_CURRENT = "current"
KIND_DIFF = "diff"

# Comparison reasons
REASON_PIXEL_DIFF = "pixel-diff"
REASON_MISSING_CURRENT = "missing-current"
REASON_MISSING_BASE = "missing-base"
REASON_ERROR = "error"

# Process exit codes
EXIT_OK = 0
EXIT_TESTS_FAILED = 1
EXIT_TOOL_ERROR = 2
