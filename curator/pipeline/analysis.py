"""External analysis boundary.

Vision/content analysis runs in an external AI service. The pipeline only
needs its numeric quality score, fetched through the analysis cache.
"""

from typing import Any, Optional, Protocol

import structlog

from curator.recording.models import RecordedSession
from curator.services.cache import ExpiringCache, extract_quality_score

logger = structlog.get_logger()

VISUAL_ANALYSIS_TYPE = "visual_quality"


class AnalysisProvider(Protocol):
    """Protocol for external session analyzers."""

    async def analyze_session(self, session: RecordedSession) -> Optional[dict[str, Any]]:
        """Analyze a session; the payload carries a ``qualityScore`` (0-100)."""
        ...


async def fetch_visual_score(
    provider: Optional[AnalysisProvider],
    cache: ExpiringCache,
    session: RecordedSession,
    ttl_hours: Optional[float] = None,
) -> Optional[float]:
    """Cached visual quality score for a session, or None when unavailable.

    Provider failures are logged and treated as "no visual score".
    """
    if provider is None:
        return None

    try:
        payload = await cache.get_or_compute(
            session.session_id,
            VISUAL_ANALYSIS_TYPE,
            compute=lambda: provider.analyze_session(session),
            ttl_hours=ttl_hours,
        )
    except Exception as e:
        logger.warning(
            "External analysis failed",
            session_id=session.session_id,
            error=str(e),
        )
        return None

    if payload is None:
        return None
    return extract_quality_score(payload)
