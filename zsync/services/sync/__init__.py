"""Release-to-Zenodo synchronization.

- context: release event validation and normalization
- metadata: in-place rewrite of codemeta.json / CITATION.cff
- github: contents API, release assets, source snapshots
- zenodo: deposition draft lifecycle
- orchestrator: the ordered saga with compensating draft deletion
"""

from __future__ import annotations
