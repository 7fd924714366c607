"""
Naming rules for entity types and verbs.

Provides the derived forms used everywhere in nounkit:
- Verb conjugation (action, activity, event) with consonant doubling
- Pluralization and best-effort singularization of type names
- Remote collection names and slugs

Invariants:
    - Every function is total: any non-empty input yields a result
    - Output depends only on the input string (deterministic)

How to change safely:
    - Collection names are part of the remote wire contract; changing
      pluralize() renames collections on existing backends
    - Hook method names are derived from conjugate(); changing it
      renames public methods on every entity type

Example:
    >>> conjugate("qualify")
    ('qualify', 'qualifying', 'qualified')
    >>> to_collection_name("Company")
    'companies'
"""

from __future__ import annotations

import re
from typing import Tuple

VOWELS = "aeiou"

CRUD_FORMS = {
    "create": ("create", "creating", "created"),
    "update": ("update", "updating", "updated"),
    "delete": ("delete", "deleting", "deleted"),
}

# Multi-syllable verbs stressed on the last syllable, plus common short verbs
# whose final consonant doubles. Verbs of three letters or fewer always double.
DOUBLING_VERBS = frozenset({
    "submit", "commit", "permit", "omit", "admit", "emit", "transmit",
    "refer", "prefer", "defer", "occur", "recur", "begin",
    "stop", "drop", "shop", "plan", "scan", "stun", "shut", "spit", "quit", "knit",
    "drag", "brag", "flag", "scrub", "grab", "stab", "throb", "prod", "plod",
    "plot", "blot", "spot", "knot", "trot", "chat", "slap", "clap", "flap",
    "wrap", "snap", "trap", "slip", "trip", "drip", "chip", "clip", "flip",
    "grip", "ship", "skip", "whip", "strip", "equip", "chop", "crop", "prop",
    "flop", "swim", "trim", "slim", "skim", "brim", "grim", "stem", "cram",
    "slam", "scam", "spam", "tram", "drum", "strum", "chum", "plum",
})


def _is_vowel(char: str) -> bool:
    return bool(char) and char.lower() in VOWELS


def _should_double(verb: str) -> bool:
    if len(verb) < 2:
        return False
    last, second_last = verb[-1], verb[-2]
    if last in "wxy":
        return False
    if _is_vowel(last) or not _is_vowel(second_last):
        return False
    if len(verb) <= 3:
        return True
    return any(verb == v or verb.endswith(v) for v in DOUBLING_VERBS)


def to_past_participle(verb: str) -> str:
    """create -> created, qualify -> qualified, submit -> submitted."""
    if verb.endswith("e"):
        return verb + "d"
    if verb.endswith("y") and len(verb) > 1 and not _is_vowel(verb[-2]):
        return verb[:-1] + "ied"
    if _should_double(verb):
        return verb + verb[-1] + "ed"
    return verb + "ed"


def to_gerund(verb: str) -> str:
    """create -> creating, tie -> tying, submit -> submitting."""
    if verb.endswith("ie"):
        return verb[:-2] + "ying"
    if verb.endswith("e") and not verb.endswith("ee"):
        return verb[:-1] + "ing"
    if _should_double(verb):
        return verb + verb[-1] + "ing"
    return verb + "ing"


def conjugate(verb: str) -> Tuple[str, str, str]:
    """Derive (action, activity, event) forms of a verb."""
    if verb in CRUD_FORMS:
        return CRUD_FORMS[verb]
    return verb, to_gerund(verb), to_past_participle(verb)


def pluralize(word: str) -> str:
    """Pluralize a word.

    consonant + y -> ies, s/x/ch/sh -> +es, anything else -> +s.
    """
    lower = word.lower()
    if len(word) > 1 and lower.endswith("y") and not _is_vowel(lower[-2]):
        return word[:-1] + "ies"
    if lower.endswith(("s", "x", "ch", "sh")):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """Best-effort inverse of pluralize(); irregular plurals are not handled."""
    lower = word.lower()
    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lower.endswith(("sses", "ches", "shes", "xes")):
        return word[:-2]
    if lower.endswith("s") and not lower.endswith("ss") and len(word) > 1:
        return word[:-1]
    return word


def lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


def to_collection_name(type_name: str) -> str:
    """Remote collection for a type: Contact -> contacts, Company -> companies."""
    return pluralize(lower_first(type_name))


def slugify(name: str) -> str:
    """FeatureFlag -> feature-flag."""
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"-\1", name).lower()
