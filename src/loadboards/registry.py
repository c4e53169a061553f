"""Adapters by provider. One explicit instance per application context."""

import logging

from src.loadboards.interface import LoadBoardAdapter
from src.loadboards.models import Provider

logger = logging.getLogger(__name__)


class LoadBoardRegistry:
    def __init__(self, adapters: list[LoadBoardAdapter] | None = None):
        self._adapters: dict[Provider, LoadBoardAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: LoadBoardAdapter) -> None:
        self._adapters[adapter.provider] = adapter
        logger.info("Registry: registered %s adapter (%s)", adapter.provider.value, adapter.name)

    def get(self, provider: Provider | str) -> LoadBoardAdapter | None:
        try:
            return self._adapters.get(Provider(provider))
        except ValueError:
            return None

    def all(self) -> list[LoadBoardAdapter]:
        return list(self._adapters.values())

    def enabled(self) -> list[LoadBoardAdapter]:
        return [a for a in self._adapters.values() if a.enabled]

    def for_providers(self, providers: list[Provider | str]) -> list[LoadBoardAdapter]:
        """Adapters for the named providers, in the given order; unknown names are skipped."""
        out: list[LoadBoardAdapter] = []
        for provider in providers:
            adapter = self.get(provider)
            if adapter is None:
                logger.warning("Registry: no adapter for provider %s", provider)
            elif adapter not in out:
                out.append(adapter)
        return out
