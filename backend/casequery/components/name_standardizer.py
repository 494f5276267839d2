"""
Canonical form for person names.

"Hon. John Edward Smith Jr." and "John E Smith" both become "John E Smith":
honorifics and suffixes are dropped, interior names are reduced to an
upper-cased initial, and connector words ("van", "de la") are kept lowercase.
"""
import re
from typing import Optional

HONORIFICS = (
    "Hon.", "Honorable", "Judge", "Justice", "Dr.", "Doctor", "Professor", "Prof.",
    "Mr.", "Mrs.", "Ms.", "Miss", "Mx.", "Sir", "Madam", "Dame",
)
SUFFIXES = (
    "Esq.", "Esquire", "Sr.", "Senior", "Jr.", "Junior", "I", "II", "III", "IV", "V",
    "MD", "PhD", "JD", "DDS", "CPA", "MBA",
)
CONNECTORS = frozenset(["de", "la", "van", "von", "der", "del", "of", "the"])

HONORIFIC_ALTERNATION = "|".join(re.escape(title) for title in HONORIFICS)

_WHITESPACE_RE = re.compile(r"\s+")
_PREFIX_RE = re.compile(rf"^(?:{HONORIFIC_ALTERNATION})\s+", re.IGNORECASE)
_SUFFIX_RE = re.compile(
    r"\s+(?:" + "|".join(re.escape(s.rstrip(".")) for s in SUFFIXES) + r")\.?$",
    re.IGNORECASE,
)
_HONORIFIC_TOKEN_RE = re.compile(rf"^(?:{HONORIFIC_ALTERNATION})$", re.IGNORECASE)


def is_honorific(token: str) -> bool:
    """True for a bare title token such as "Hon." or "judge\""""
    return bool(_HONORIFIC_TOKEN_RE.match(token))


def standardize_name(name: Optional[str]) -> Optional[str]:
    """
    Return the canonical form of a person name.

    Stacked titles ("Hon. Judge ...") and suffixes ("... Jr. III") are all
    removed so that standardize_name(standardize_name(x)) == standardize_name(x).
    """
    if not name:
        return name

    name = _WHITESPACE_RE.sub(" ", name.strip())
    previous = None
    while previous != name:
        previous = name
        name = _PREFIX_RE.sub("", name)
        name = _SUFFIX_RE.sub("", name)

    parts = name.split(" ")
    if len(parts) < 3:
        return name

    middle = []
    for part in parts[1:-1]:
        if part.lower() in CONNECTORS:
            middle.append(part.lower())
        else:
            middle.append(part[0].upper())

    return " ".join([parts[0], *middle, parts[-1]])


class NameStandardizer:
    """Callable wrapper so the standardizer can be injected and replaced in tests"""

    def __call__(self, name: Optional[str]) -> Optional[str]:
        return standardize_name(name)

    standardize = staticmethod(standardize_name)
