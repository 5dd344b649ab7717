from __future__ import annotations
from typing import Literal

OperationKind = Literal["branch_protection", "repo_settings", "secret_upsert", "protection_verify"]
Outcome = Literal["succeeded", "skipped", "failed"]

# Secret phase lifecycle: uninitialized -> key_fetched -> done
SecretPhaseState = Literal["uninitialized", "key_fetched", "done"]
