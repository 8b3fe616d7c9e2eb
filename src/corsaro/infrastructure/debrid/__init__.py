from .realdebrid import RealDebridClient
from .resolver import CacheResolver, CandidateState, ResolverReport

__all__ = ["CacheResolver", "CandidateState", "RealDebridClient", "ResolverReport"]
