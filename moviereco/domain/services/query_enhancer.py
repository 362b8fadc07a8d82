import logging

from moviereco.domain.services.constants import (
    ENHANCE_SKIP_LENGTH,
    ENHANCE_TEMPERATURE,
    MAX_ENHANCED_QUERY_LENGTH,
    MAX_QUERY_ENHANCE_TOKENS,
)
from moviereco.domain.services.guardrails import wrap_user_input
from moviereco.domain.services.llm_client import ModelTier, ReasoningClient
from moviereco.domain.services.prompts import ENHANCE_SYSTEM

logger = logging.getLogger(__name__)


class QueryEnhancer:
    """Best-effort expansion of short queries into a richer phrase for embedding."""

    def __init__(self, llm: ReasoningClient):
        self.llm = llm

    async def enhance(self, query: str) -> str:
        if len(query) > ENHANCE_SKIP_LENGTH:
            # no need to enhance what appears to be a detailed query
            return query

        try:
            response = await self.llm.complete(
                ENHANCE_SYSTEM,
                wrap_user_input(query),
                tier=ModelTier.MINI,
                temperature=ENHANCE_TEMPERATURE,
                max_tokens=MAX_QUERY_ENHANCE_TOKENS,
                json_mode=False,
            )
        except Exception as e:
            logger.error(f"Query enhancement failed, using original: {e}")
            return query

        enhanced = response.strip().strip('"').strip()[:MAX_ENHANCED_QUERY_LENGTH]
        if not enhanced:
            return query
        logger.info(f"Query enhanced from {query!r} to {enhanced!r}")
        return enhanced
