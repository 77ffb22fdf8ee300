from __future__ import annotations

# gh API calls (lookup, create, delete)
GH_TIMEOUT_SECONDS = 60.0
# Asset uploads can be large binaries
GH_UPLOAD_TIMEOUT_SECONDS = 15 * 60.0

# Idempotent gh read retry policy. Writes are never retried.
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0
