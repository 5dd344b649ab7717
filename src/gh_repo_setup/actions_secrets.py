from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from .exceptions import EncryptionUnavailableError, KeyFetchError
from .models import EncryptionKey, OperationResult, RepositoryRef, SecretSpec
from .rest import GitHubRestClient
from .types import SecretPhaseState
from .utils import b64

log = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "NEEDS_REAL_VALUE_"
SECRET_OK = (201, 204)


def load_sealed_box() -> Tuple[Any, Any]:
    """Returns the (nacl.encoding, nacl.public) modules."""
    try:
        from nacl import encoding, public
    except ImportError as exc:
        raise EncryptionUnavailableError("PyNaCl is required to encrypt secrets (pip install pynacl)") from exc
    return encoding, public


def placeholder_value(value: str) -> str:
    """Visibly invalid stand-in for a value that could not be encrypted."""
    return PLACEHOLDER_PREFIX + b64(value[:20])


def encrypt_secret(value: str, public_key_b64: str, *, allow_placeholder: bool = False) -> str:
    """
    Seal `value` for the repository public key (libsodium sealed box).
    Only GitHub, holding the private key, can decrypt the result.

    Without PyNaCl, returns a NEEDS_REAL_VALUE_ placeholder when allow_placeholder
    is set and raises EncryptionUnavailableError otherwise.
    """
    try:
        encoding, public = load_sealed_box()
    except EncryptionUnavailableError:
        if not allow_placeholder:
            raise
        log.warning("PyNaCl not available; using a placeholder value that must be replaced")
        return placeholder_value(value)

    key = public.PublicKey(public_key_b64.encode("utf-8"), encoding.Base64Encoder)
    sealed_box = public.SealedBox(key)
    return (
        encoding.Base64Encoder()
        .encode(sealed_box.encrypt(value.encode("utf-8")))
        .decode("utf-8")
    )


@dataclass
class SecretProvisioner:
    gh: GitHubRestClient
    allow_placeholder: bool = False
    state: SecretPhaseState = "uninitialized"
    key: Optional[EncryptionKey] = field(default=None, repr=False)

    def fetch_encryption_key(self, ref: RepositoryRef) -> EncryptionKey:
        res = self.gh.call("GET", f"{ref.path}/actions/secrets/public-key")
        body = res.body if isinstance(res.body, dict) else {}
        key = body.get("key")
        key_id = body.get("key_id")
        if not res.ok or not key or not key_id:
            raise KeyFetchError(f"Failed to get repository public key for {ref.full_name} ({res.describe()})")

        self.key = EncryptionKey(key_id=str(key_id), key=str(key))
        self.state = "key_fetched"
        log.info("Repository public key obtained (key_id=%s)", self.key.key_id)
        return self.key

    def upsert_secret(self, ref: RepositoryRef, spec: SecretSpec, *, dry_run: bool = False) -> OperationResult:
        """PUT /repos/{owner}/{repo}/actions/secrets/{name}; creates or replaces."""
        if self.state != "key_fetched" or self.key is None:
            raise RuntimeError("fetch_encryption_key() must succeed before upserting secrets")

        try:
            encrypted = encrypt_secret(spec.value, self.key.key, allow_placeholder=self.allow_placeholder)
        except EncryptionUnavailableError as e:
            log.warning("Could not encrypt secret %s: %s", spec.name, e)
            return OperationResult("secret_upsert", spec.name, "failed", str(e))
        except (ValueError, TypeError) as e:
            # malformed public key
            log.warning("Could not encrypt secret %s: %s", spec.name, e)
            return OperationResult("secret_upsert", spec.name, "failed", f"encryption failed: {e}")

        placeholder = encrypted.startswith(PLACEHOLDER_PREFIX)
        if dry_run:
            log.info("dry-run: would PUT secret %s", spec.name)
            return OperationResult("secret_upsert", spec.name, "skipped", "dry-run: would create secret")

        log.info("Creating secret: %s", spec.name)
        res = self.gh.call(
            "PUT",
            f"{ref.path}/actions/secrets/{spec.name}",
            json_body={"encrypted_value": encrypted, "key_id": self.key.key_id},
        )
        if res.status in SECRET_OK:
            detail = "created with placeholder value" if placeholder else "created"
            if res.status == 204:
                detail = detail.replace("created", "updated")
            return OperationResult("secret_upsert", spec.name, "succeeded", detail)

        log.warning("Failed to create secret %s: %s", spec.name, res.describe())
        return OperationResult("secret_upsert", spec.name, "failed", res.describe())

    def run(
        self,
        ref: RepositoryRef,
        specs: Sequence[SecretSpec],
        *,
        dry_run: bool = False,
        map_fn: Callable[..., Iterable[OperationResult]] = map,
    ) -> List[OperationResult]:
        """
        Fetches the key once, then upserts every spec. KeyFetchError propagates
        before any upsert is attempted.
        """
        self.fetch_encryption_key(ref)
        results = list(map_fn(lambda s: self.upsert_secret(ref, s, dry_run=dry_run), specs))
        self.state = "done"
        return results
