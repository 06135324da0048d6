"""Asset library: typed character, scene and prop references."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, List, Optional

from ..i18n import ASSET_DEFAULT_NAMES
from .models import ASSET_EDITABLE_FIELDS, Asset, AssetType, Language, asset_from_payload, new_id


class AssetLibrary:
    def __init__(self) -> None:
        self._assets: List[Asset] = []

    def __len__(self) -> int:
        return len(self._assets)

    @property
    def assets(self) -> List[Asset]:
        return list(self._assets)

    def get(self, asset_id: str) -> Optional[Asset]:
        for asset in self._assets:
            if asset.id == asset_id:
                return asset
        return None

    def add_asset(self, asset_type: AssetType, language: Language = Language.ZH) -> Asset:
        asset = Asset(
            id=new_id(),
            name=ASSET_DEFAULT_NAMES[language][asset_type],
            type=asset_type,
        )
        self._assets = self._assets + [asset]
        return asset

    def remove_asset(self, asset_id: str) -> bool:
        remaining = [asset for asset in self._assets if asset.id != asset_id]
        removed = len(remaining) != len(self._assets)
        self._assets = remaining
        return removed

    def update(self, asset_id: str, field_name: str, value: str) -> Optional[Asset]:
        if field_name not in ASSET_EDITABLE_FIELDS:
            raise ValueError(f"Unknown asset field: {field_name}")
        asset = self.get(asset_id)
        if asset is None:
            return None
        updated = replace(asset, **{field_name: value})
        self._assets = [updated if a.id == asset_id else a for a in self._assets]
        return updated

    def replace_all(self, assets: Iterable[Asset]) -> List[Asset]:
        """Wholesale replace; prior assets are discarded."""
        self._assets = list(assets)
        return self.assets

    def summary(self) -> str:
        """One line per asset, used as context for per-shot prompt synthesis."""
        return "\n".join(f"{a.name}({a.type.value}): {a.prompt}" for a in self._assets)


def assets_from_payloads(payloads: Iterable[Any]) -> List[Asset]:
    """Build assets from model output; items with an unknown type are dropped."""
    built = (asset_from_payload(p) for p in payloads if isinstance(p, dict))
    return [asset for asset in built if asset is not None]
