"""Income source types - central registry for all revenue categories"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class SourceType:
    id: str
    label: str
    description: str
    category: str  # digital | performance | mechanical | sync


STREAMING = "streaming"
SOUNDEXCHANGE = "soundexchange"
PRO = "pro"
MLC = "mlc"
YOUTUBE = "youtube"
NEIGHBOURING = "neighbouring"
SYNC = "sync"

SOURCE_TYPES: Dict[str, SourceType] = {
    STREAMING: SourceType(STREAMING, "Streaming", "Spotify, Apple Music, etc.", "digital"),
    SOUNDEXCHANGE: SourceType(SOUNDEXCHANGE, "SoundExchange", "Digital radio royalties", "performance"),
    PRO: SourceType(PRO, "PRO", "ASCAP, BMI, SESAC", "performance"),
    MLC: SourceType(MLC, "MLC", "Mechanical Licensing Collective", "mechanical"),
    YOUTUBE: SourceType(YOUTUBE, "YouTube", "Content ID & Partner Program", "digital"),
    NEIGHBOURING: SourceType(NEIGHBOURING, "Neighbouring Rights", "PPL, SoundExchange intl", "performance"),
    SYNC: SourceType(SYNC, "Sync Licensing", "TV, film, ads", "sync"),
}

# Evaluated top to bottom; first rule with a matching keyword wins.
_SOURCE_RULES = [
    (STREAMING, ("stream", "spotify", "apple music")),
    (SOUNDEXCHANGE, ("soundexchange",)),
    (PRO, ("pro", "ascap", "bmi", "sesac")),
    (MLC, ("mlc", "mechanical")),
    (YOUTUBE, ("youtube",)),
    (NEIGHBOURING, ("neighbour", "ppl")),
    (SYNC, ("sync",)),
]


def map_source_type(name: str) -> str:
    """
    Map a free-text store, service or PRO name to a source type.

    Matching is case-insensitive substring search; unknown names fall back to
    streaming, which is what most distributor store columns contain.
    """
    normalized = (name or "").lower().strip()
    for source_type, keywords in _SOURCE_RULES:
        if any(keyword in normalized for keyword in keywords):
            return source_type
    return STREAMING


def get_source(source_id: str) -> SourceType:
    """Source metadata by id, defaulting to streaming"""
    return SOURCE_TYPES.get(source_id, SOURCE_TYPES[STREAMING])
