from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .model import CatalogRow


def fold_code(code: Optional[str]) -> str:
    return (code or "").strip().casefold()


class CatalogIndex:
    """
    Read-only lookup over catalog rows, built in one pass.

    Both lookups are case-insensitive exact matches. Blank codes are never
    indexed, so a blank query never matches anything.
    """

    def __init__(self, rows: Iterable[CatalogRow]):
        self._rows: List[CatalogRow] = list(rows)
        self._by_primary: Dict[str, List[CatalogRow]] = {}
        self._by_secondary: Dict[str, CatalogRow] = {}
        for row in self._rows:
            p = fold_code(row.primary_code)
            if p:
                self._by_primary.setdefault(p, []).append(row)
            s = fold_code(row.secondary_code)
            if s and s not in self._by_secondary:
                self._by_secondary[s] = row

    def __len__(self) -> int:
        return len(self._rows)

    def find_by_primary_code(self, code: Optional[str]) -> List[CatalogRow]:
        key = fold_code(code)
        if not key:
            return []
        return list(self._by_primary.get(key, ()))

    def find_by_secondary_code(self, code: Optional[str]) -> Optional[CatalogRow]:
        key = fold_code(code)
        if not key:
            return None
        return self._by_secondary.get(key)
