from __future__ import annotations

import os
import subprocess
from typing import Optional

def get_token_from_env() -> Optional[str]:
    return os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")


def get_token_from_gh_cli(hostname: str = "github.com") -> Optional[str]:
    """
    Uses GitHub CLI to fetch an access token from the local auth context.
    Requires: gh auth login
    """
    try:
        proc = subprocess.run(
            ["gh", "auth", "token", "--hostname", hostname],
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    token = proc.stdout.strip()
    return token or None


def resolve_token(explicit: Optional[str] = None, *, hostname: str = "github.com") -> Optional[str]:
    """
    Token lookup order:
      1) explicit value (CLI argument)
      2) GITHUB_TOKEN / GH_TOKEN
      3) gh auth token
    """
    if explicit and explicit.strip():
        return explicit.strip()
    return get_token_from_env() or get_token_from_gh_cli(hostname)
