from .candidates import (
    AudioChannels,
    Candidate,
    LanguageTag,
    MatchResult,
    Quality,
    RawCandidate,
)
from .media import ContentType, RequestMetadata, StreamRequest
from .streams import (
    DebridFile,
    DebridTorrent,
    ResolutionStatus,
    ResolvedStream,
    StreamResolution,
    UnrestrictedLink,
)

__all__ = [
    "AudioChannels",
    "Candidate",
    "ContentType",
    "DebridFile",
    "DebridTorrent",
    "LanguageTag",
    "MatchResult",
    "Quality",
    "RawCandidate",
    "RequestMetadata",
    "ResolutionStatus",
    "ResolvedStream",
    "StreamRequest",
    "StreamResolution",
    "UnrestrictedLink",
]
