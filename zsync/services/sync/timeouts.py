from __future__ import annotations

# Source snapshot (zipball) download, whole transfer.
SNAPSHOT_TIMEOUT_SECONDS = 150.0

# Everything else uses the transport default.
HTTP_TIMEOUT_SECONDS = 60.0
