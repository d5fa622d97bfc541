"""
Static ingredient synonym table (Indonesian base terms with their English and
regional variants).

Built once at import time and exposed read-only; nothing writes to it
afterwards, so concurrent requests can share it without locking.
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Tuple

from pantry_rewards.services.text_normalizer import normalize


_RAW_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "gula": ("gula pasir", "gula putih", "gula halus", "sugar"),
    "garam": ("salt", "garam dapur"),
    "merica": ("lada", "pepper", "merica bubuk", "lada bubuk"),
    "bawang putih": ("garlic", "bawang putih bubuk"),
    "bawang merah": ("bawang bombai", "shallot", "onion"),
    "tomat": ("tomato", "tomatoes"),
    "cabai": ("cabe", "chili", "chilli", "lombok"),
    "telur": ("egg", "eggs", "telor"),
    "ayam": ("chicken", "daging ayam"),
    "daging sapi": ("beef", "sapi"),
    "ikan": ("fish",),
    "udang": ("shrimp", "prawn"),
    "susu": ("milk", "susu cair", "susu segar"),
    "mentega": ("butter", "margarin", "margarine"),
    "minyak": ("oil", "minyak goreng", "cooking oil"),
    "tepung terigu": ("flour", "tepung", "all purpose flour"),
    "kecap": ("kecap manis", "soy sauce", "sweet soy sauce"),
    "saus tiram": ("oyster sauce",),
    "keju": ("cheese",),
    "wortel": ("carrot", "carrots"),
    "kentang": ("potato", "potatoes"),
    "beras": ("rice", "nasi"),
}


def _build_groups() -> Mapping[str, FrozenSet[str]]:
    """Normalized base term -> every normalized surface form (base included)"""
    groups = {}
    for base, variants in _RAW_SYNONYMS.items():
        key = normalize(base)
        groups[key] = frozenset({key, *(normalize(v) for v in variants)})
    return MappingProxyType(groups)


def _build_index(groups: Mapping[str, FrozenSet[str]]) -> Mapping[str, FrozenSet[str]]:
    """Normalized surface form -> base terms whose group contains it"""
    index: Dict[str, set] = {}
    for base, forms in groups.items():
        for form in forms:
            index.setdefault(form, set()).add(base)
    return MappingProxyType({form: frozenset(bases) for form, bases in index.items()})


SYNONYM_GROUPS = _build_groups()
_FORM_TO_BASES = _build_index(SYNONYM_GROUPS)


def bases_for(normalized_text: str) -> FrozenSet[str]:
    """Base terms an already-normalized string belongs to (empty if unknown)"""
    return _FORM_TO_BASES.get(normalized_text, frozenset())


def are_synonyms(normalized_a: str, normalized_b: str) -> bool:
    """True when both normalized strings sit in the same synonym group"""
    return bool(bases_for(normalized_a) & bases_for(normalized_b))
