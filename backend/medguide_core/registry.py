from __future__ import annotations

from .models import Specialization


class SpecializationRegistry:
    def __init__(self) -> None:
        self._specializations: dict[str, Specialization] = {}
        self._aliases: dict[str, str] = {}

    def register(self, specialization: Specialization) -> None:
        self._specializations[specialization.id] = specialization

    def add_alias(self, alias: str, target: str) -> None:
        self._aliases[alias.strip().lower()] = target

    def canonical_id(self, name: str) -> str | None:
        key = (name or "").strip().lower()
        canonical = self._aliases.get(key, key)
        if canonical in self._specializations:
            return canonical
        return None

    def resolve(self, name: str) -> Specialization:
        canonical = self.canonical_id(name)
        if canonical is None:
            raise KeyError(f"Specialization not found: {name}")
        return self._specializations[canonical]

    def get(self, name: str) -> Specialization | None:
        canonical = self.canonical_id(name)
        return self._specializations.get(canonical) if canonical else None

    def list_ids(self) -> list[str]:
        return sorted(self._specializations.keys())

    def all(self) -> list[Specialization]:
        return [self._specializations[spec_id] for spec_id in self.list_ids()]

    def locales(self) -> set[str]:
        found: set[str] = set()
        for spec in self._specializations.values():
            found.update(spec.keyword_sets.keys())
        return found
