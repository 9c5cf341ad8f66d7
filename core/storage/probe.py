from __future__ import annotations

from core.storage.errors import ProbeError
from core.storage.provider import call_provider
from core.storage.registry import BackendRegistry
from core.storage.types import StorageBackend, UsageSnapshot

DEFAULT_FALLBACK_TOTAL_BYTES = 10 * 1024 * 1024 * 1024


class CapacityProbe:
    def __init__(
        self,
        *,
        registry: BackendRegistry,
        fallback_total_bytes: int = DEFAULT_FALLBACK_TOTAL_BYTES,
        timeout_seconds: float = 30,
    ) -> None:
        self._registry = registry
        self._fallback_total_bytes = fallback_total_bytes
        self._timeout = timeout_seconds

    async def probe(self, backend: StorageBackend) -> UsageSnapshot:
        try:
            provider = self._registry.provider_for(backend)
            quota = await call_provider(provider.get_quota, timeout=self._timeout)
        except TimeoutError as err:
            raise ProbeError(f"Quota request timed out after {self._timeout}s", backend_id=backend.id) from err
        except Exception as err:
            raise ProbeError(f"Quota request failed: {err}", backend_id=backend.id) from err

        used = max(quota.used_bytes, 0)
        total = quota.total_bytes if quota.total_bytes and quota.total_bytes > 0 else self._fallback_total_bytes
        # Accounts can report usage past their limit; keep used <= total.
        total = max(total, used)
        return UsageSnapshot(backend_id=backend.id, used_bytes=used, total_bytes=total)
