"""Option matching for selects, radio groups and listboxes.

Two matchers live here:

* :func:`match_dropdown_option` is used by the mapper to re-target a resolved
  profile value onto an option that is known to exist.
* :func:`find_best_option` is used at fill time against the options actually
  rendered, and understands license aliases, yes/no semantics and stop-word
  overlap.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from rapidfuzz import fuzz

US_STATES: Dict[str, str] = {
    "AL": "Alabama",
    "AK": "Alaska",
    "AZ": "Arizona",
    "AR": "Arkansas",
    "CA": "California",
    "CO": "Colorado",
    "CT": "Connecticut",
    "DE": "Delaware",
    "FL": "Florida",
    "GA": "Georgia",
    "HI": "Hawaii",
    "ID": "Idaho",
    "IL": "Illinois",
    "IN": "Indiana",
    "IA": "Iowa",
    "KS": "Kansas",
    "KY": "Kentucky",
    "LA": "Louisiana",
    "ME": "Maine",
    "MD": "Maryland",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "MN": "Minnesota",
    "MS": "Mississippi",
    "MO": "Missouri",
    "MT": "Montana",
    "NE": "Nebraska",
    "NV": "Nevada",
    "NH": "New Hampshire",
    "NJ": "New Jersey",
    "NM": "New Mexico",
    "NY": "New York",
    "NC": "North Carolina",
    "ND": "North Dakota",
    "OH": "Ohio",
    "OK": "Oklahoma",
    "OR": "Oregon",
    "PA": "Pennsylvania",
    "RI": "Rhode Island",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TN": "Tennessee",
    "TX": "Texas",
    "UT": "Utah",
    "VT": "Vermont",
    "VA": "Virginia",
    "WA": "Washington",
    "WV": "West Virginia",
    "WI": "Wisconsin",
    "WY": "Wyoming",
    "DC": "District of Columbia",
}

STATE_ABBREVIATIONS: Dict[str, str] = {name.lower(): abbr for abbr, name in US_STATES.items()}

LICENSE_ALIASES: Dict[str, Sequence[str]] = {
    "APRN": ("advanced practice registered nurse", "advanced practice nurse", "aprn"),
    "NP": ("nurse practitioner", "np"),
    "PA": ("physician assistant", "physician associate", "pa-c", "pa"),
    "MD": ("doctor of medicine", "physician", "md"),
    "DO": ("doctor of osteopathic medicine", "osteopathic", "do"),
    "CRNA": ("certified registered nurse anesthetist", "nurse anesthetist", "crna"),
    "DMD": ("doctor of dental medicine", "dmd"),
    "DDS": ("doctor of dental surgery", "dentist", "dds"),
    "DPM": ("doctor of podiatric medicine", "podiatrist", "dpm"),
    "OD": ("doctor of optometry", "optometrist", "od"),
    "CAA": ("certified anesthesiologist assistant", "caa"),
    "RN": ("registered nurse", "rn"),
}

VETERAN_MAP: Dict[str, str] = {
    "protected_veteran": "I am a protected veteran",
    "not_a_veteran": "I am not a veteran",
    "decline": "I decline to self-identify",
}

DISABILITY_MAP: Dict[str, str] = {
    "yes": "Yes, I have a disability",
    "no": "No, I do not have a disability",
    "decline": "I decline to self-identify",
}

GENDER_MAP: Dict[str, str] = {
    "male": "Male",
    "female": "Female",
    "non_binary": "Non-binary",
    "decline": "I decline to self-identify",
}

RACE_MAP: Dict[str, str] = {
    "asian": "Asian",
    "white": "White",
    "black_or_african_american": "Black or African American",
    "hispanic_or_latino": "Hispanic or Latino",
    "american_indian_or_alaska_native": "American Indian or Alaska Native",
    "native_hawaiian_or_other_pacific_islander": "Native Hawaiian or Other Pacific Islander",
    "two_or_more_races": "Two or More Races",
    "decline": "Decline to self-identify",
}

DEGREE_ABBREVIATIONS: Dict[str, Sequence[str]] = {
    "dnp": ("doctor of nursing practice", "doctorate", "doctoral"),
    "phd": ("doctor of philosophy", "doctorate", "doctoral"),
    "md": ("doctor of medicine", "doctorate", "doctoral"),
    "msn": ("master of science in nursing", "master", "masters"),
    "mba": ("master of business administration", "master", "masters"),
    "ms": ("master of science", "master", "masters"),
    "ma": ("master of arts", "master", "masters"),
    "bsn": ("bachelor of science in nursing", "bachelor", "bachelors"),
    "bs": ("bachelor of science", "bachelor", "bachelors"),
    "ba": ("bachelor of arts", "bachelor", "bachelors"),
    "adn": ("associate degree in nursing", "associate", "associates"),
    "as": ("associate of science", "associate", "associates"),
}

DEGREE_LEVELS: Sequence[str] = ("doctor", "master", "bachelor", "associate", "high school", "diploma")

PLACEHOLDER_OPTION = re.compile(r"^(select|choose|--|please select)", re.IGNORECASE)
YES_VALUES = {"yes", "true", "1", "y"}
NO_VALUES = {"no", "false", "0", "n"}
STOP_WORDS = {"i", "a", "am", "an", "the", "to", "of", "or", "and", "in", "for", "my", "do", "self"}
FUZZY_FLOOR = 0.4


def _stringify(value: object) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    return str(value).strip()


def real_options(options: Iterable[str]) -> List[str]:
    """Drop blank and placeholder entries such as "Select..." or "--"."""

    return [option for option in options if option and option.strip() and not PLACEHOLDER_OPTION.match(option.strip())]


def similarity(left: str, right: str) -> float:
    """Normalized edit-distance similarity in [0, 1]."""

    if not left and not right:
        return 1.0
    return fuzz.ratio(left.lower(), right.lower()) / 100.0


def match_dropdown_option(value: object, options: Sequence[str]) -> Optional[str]:
    """Pick the option that best represents ``value``.

    Tries, in order: exact (case-insensitive), state abbreviation → name,
    state name → abbreviation, substring either way, then edit-distance
    similarity above ``FUZZY_FLOOR``.
    """

    text = _stringify(value)
    if not text or not options:
        return None
    lower = text.lower()
    candidates = real_options(options) or list(options)

    for option in candidates:
        if option.strip().lower() == lower:
            return option

    if len(text) == 2 and text.upper() in US_STATES:
        state_name = US_STATES[text.upper()].lower()
        for option in candidates:
            if state_name in option.lower():
                return option

    abbreviation = STATE_ABBREVIATIONS.get(lower)
    if abbreviation:
        for option in candidates:
            if option.strip().upper() == abbreviation:
                return option

    for option in candidates:
        option_lower = option.strip().lower()
        if lower in option_lower:
            return option
    for option in candidates:
        option_lower = option.strip().lower()
        if len(option_lower) > 1 and option_lower in lower:
            return option

    best_option: Optional[str] = None
    best_score = 0.0
    for option in candidates:
        score = similarity(text, option.strip())
        if score > best_score:
            best_option, best_score = option, score
    if best_option is not None and best_score > FUZZY_FLOOR:
        return best_option
    return None


def _words(text: str) -> List[str]:
    return [word for word in re.split(r"[\s\-]+", text.lower()) if len(word) > 1 and word not in STOP_WORDS]


def find_best_option(value: object, options: Sequence[str]) -> Optional[str]:
    """Match a value against rendered option labels at fill time."""

    text = _stringify(value)
    real = real_options(options)
    if not text or not real:
        return None
    lower = text.lower()

    for option in real:
        if option.strip().lower() == lower:
            return option

    aliases = LICENSE_ALIASES.get(text.upper())
    if aliases:
        for option in real:
            option_lower = option.lower()
            if any(re.search(rf"\b{re.escape(alias)}\b", option_lower) for alias in aliases):
                return option

    if len(text) == 2 and text.upper() in US_STATES:
        expanded = US_STATES[text.upper()].lower()
        for option in real:
            option_lower = option.lower()
            if option_lower == expanded or expanded in option_lower or option_lower in expanded:
                return option

    for option in real:
        option_lower = option.lower()
        if lower in option_lower or option_lower in lower:
            return option

    if lower in YES_VALUES:
        for option in real:
            if re.match(r"^yes", option.strip(), re.IGNORECASE):
                return option
    if lower in NO_VALUES:
        for option in real:
            if re.match(r"^no\b", option.strip(), re.IGNORECASE):
                return option

    value_words = _words(lower)
    if value_words:
        best_match: Optional[str] = None
        best_score = 0.0
        for option in real:
            option_words = _words(option)
            overlap = sum(
                1
                for word in value_words
                if any(other == word or word in other or other in word for other in option_words)
            )
            score = overlap / len(value_words)
            if score > best_score:
                best_match, best_score = option, score
        if best_match is not None and best_score >= 0.5:
            return best_match
    return None


def humanize_eeo(value: Optional[str], mapping: Mapping[str, str]) -> str:
    """Convert a stored snake_case EEO answer into the wording forms use."""

    if not value:
        return ""
    if value in mapping:
        return mapping[value]
    return " ".join(part.capitalize() for part in value.replace("_", " ").split())


def yes_no(value: Optional[bool]) -> str:
    if value is None:
        return ""
    return "Yes" if value else "No"


def is_affirmative(value: object) -> bool:
    return _stringify(value).lower() in YES_VALUES


def is_negative(value: object) -> bool:
    return _stringify(value).lower() in NO_VALUES


def matches_degree(option: str, degree: str) -> bool:
    """Return True when an education-level option describes ``degree``."""

    option_lower = (option or "").lower().strip()
    degree_lower = (degree or "").lower().strip()
    if not option_lower or not degree_lower:
        return False
    if option_lower == degree_lower or degree_lower in option_lower:
        return True

    compact = re.sub(r"[^a-z]", "", degree_lower)
    for abbreviation, expansions in DEGREE_ABBREVIATIONS.items():
        if compact == abbreviation or re.search(rf"\b{abbreviation}\b", degree_lower):
            if any(expansion in option_lower for expansion in expansions):
                return True

    for level in DEGREE_LEVELS:
        if level in degree_lower and level in option_lower:
            return True

    keywords = [word for word in re.split(r"\W+", degree_lower) if len(word) > 3 and word not in {"degree", "science"}]
    if keywords:
        hits = sum(1 for word in keywords if word in option_lower)
        return hits > len(keywords) / 2
    return False
