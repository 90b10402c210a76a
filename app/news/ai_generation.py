"""
AI generation for news records.

Asks the LLM for a strict-JSON deal analysis of a news item (deal flag,
deal type, named GPs / funds / companies / LPs / service providers,
amounts, geography, dates, confidence) and persists it as an `ai_outputs`
row for the entity linker to consume.
"""
import logging
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from sqlalchemy.orm import Session

from app.core.errors import AIGenerationError, NotFoundError
from app.core.llm_client import LLMClient
from app.core.news_models import AIOutput, AIOutputStatus, News

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "You are a private markets research analyst."

PROMPT_TEMPLATE = """Analyze the following news article and extract ONLY factual information.
Do NOT guess. Do NOT hallucinate.

Return output strictly in valid JSON matching this schema:

{{
  "deal_detected": boolean,
  "deal_type": "fundraise" | "investment" | "acquisition" | "exit" | null,
  "entities": {{
    "general_partners": string[],
    "funds": string[],
    "portfolio_companies": string[],
    "limited_partners": string[],
    "service_providers": string[]
  }},
  "amounts": {{
    "value": number | null,
    "currency": string | null
  }},
  "geography": {{
    "country": string | null,
    "city": string | null
  }},
  "dates": {{
    "announcement_date": string | null
  }},
  "confidence_score": number,
  "reasoning": string
}}

Rules:
- If no deal is present, set deal_detected=false and keep fields null/empty
- Use ISO date format (YYYY-MM-DD)
- confidence_score must be between 0 and 100
- reasoning must be max 2 sentences

NEWS HEADLINE:
{headline}

NEWS BODY:
{body}
"""


class ExtractedEntities(BaseModel):
    general_partners: List[str] = Field(default_factory=list)
    funds: List[str] = Field(default_factory=list)
    portfolio_companies: List[str] = Field(default_factory=list)
    limited_partners: List[str] = Field(default_factory=list)
    service_providers: List[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def clean_names(cls, v):
        """Null bucket -> []; null elements dropped, scalars coerced to str."""
        if v is None:
            return []
        if not isinstance(v, list):
            return v
        return [str(name) for name in v if name is not None and not isinstance(name, (dict, list))]


class DealAmount(BaseModel):
    value: Optional[float] = None
    currency: Optional[str] = None


class DealGeography(BaseModel):
    country: Optional[str] = None
    city: Optional[str] = None


class DealDates(BaseModel):
    announcement_date: Optional[str] = None


class NewsAIOutput(BaseModel):
    """Validated shape of the LLM's deal analysis."""

    deal_detected: bool = False
    deal_type: Optional[Literal["fundraise", "investment", "acquisition", "exit"]] = None
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    amounts: DealAmount = Field(default_factory=DealAmount)
    geography: DealGeography = Field(default_factory=DealGeography)
    dates: DealDates = Field(default_factory=DealDates)
    confidence_score: float = Field(default=0, ge=0, le=100)
    reasoning: str = ""


def build_prompt(headline: Optional[str], raw_text: Optional[str]) -> str:
    return PROMPT_TEMPLATE.format(headline=headline or "", body=raw_text or "")


class AIGenerator:
    """
    Produces and stores the AI analysis of one news record.

    Usage:
        generator = AIGenerator(session_factory, build_llm_client(get_settings()))
        ai_output_id = await generator.generate(org_id, news_id, user_id)
    """

    def __init__(self, session_factory: Callable[[], Session], llm_client: LLMClient):
        self.session_factory = session_factory
        self.llm_client = llm_client

    async def generate(self, tenant_id: str, news_id: str, user_id: Optional[str] = None) -> str:
        """
        Returns:
            Id of the persisted ai_outputs row

        Raises:
            NotFoundError: News missing or owned by another organization
            AIGenerationError: LLM not configured or returned no usable JSON
        """
        if not self.llm_client.is_available:
            raise AIGenerationError("llm_not_configured")

        db = self.session_factory()
        try:
            news = (
                db.query(News.headline, News.raw_text, News.cleaned_text)
                .filter(News.id == news_id, News.org_id == tenant_id)
                .first()
            )
            if news is None:
                raise NotFoundError("news_not_found", resource_id=news_id)

            prompt = build_prompt(news.headline, news.cleaned_text or news.raw_text)
            response = await self.llm_client.complete(
                prompt, system_prompt=SYSTEM_PROMPT, json_mode=True
            )

            data = response.parse_json()
            if data is None:
                logger.error(f"AI raw output for news {news_id}: {response.content[:500]}")
                raise AIGenerationError("ai_invalid_json")

            try:
                output = NewsAIOutput.model_validate(data)
            except PydanticValidationError as e:
                logger.error(f"AI output for news {news_id} failed validation: {e}")
                raise AIGenerationError("ai_invalid_schema")

            record = AIOutput(
                org_id=tenant_id,
                source_type="news",
                source_id=news_id,
                output_json=output.model_dump(),
                status=AIOutputStatus.AI_DONE,
                model=response.model,
                created_by=user_id,
            )
            db.add(record)
            db.commit()

            logger.info(
                f"AI output {record.id} for news {news_id}: "
                f"deal_detected={output.deal_detected}, tokens={response.total_tokens}"
            )
            return record.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
