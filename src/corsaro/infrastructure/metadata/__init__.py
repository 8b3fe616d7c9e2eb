from .ids import parse_stream_id
from .kitsu import KitsuMapper, KitsuMapping
from .tmdb import TmdbMetadataClient

__all__ = ["KitsuMapper", "KitsuMapping", "TmdbMetadataClient", "parse_stream_id"]
