import os
import json
from typing import List, Dict, Any

from loguru import logger
from openai import AsyncOpenAI
from pydantic import ValidationError

from pipeline import config
from pipeline.errors import AnalysisDegraded
from pipeline.models import Annotation, ContactExtraction, RawCandidate, ScoreFactor

class AnalysisClient:
    """Client for the external AI analysis capability (annotations, score factors, contact extraction)."""

    def __init__(self, api_key: str = None, model: str = None, timeout: float = None):
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = timeout if timeout is not None else config.OPENAI_TIMEOUT_S
        self._client = None

        if self.api_key:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        else:
            logger.warning("No OpenAI API key provided, analysis will return default annotations")

    async def analyze(self, candidate: RawCandidate, strict: bool = False) -> Annotation:
        """
        Annotate a candidate with intent, budget, timeline and related signals.

        Args:
            candidate: Deduplicated lead candidate
            strict: Re-raise AnalysisDegraded instead of returning the default

        Returns:
            Fully populated Annotation; the neutral default if the call fails
        """
        try:
            content = await self._complete(
                self._get_analysis_rubric(),
                self._build_analysis_prompt(candidate),
                temperature=0.3,
                max_tokens=500,
            )
            annotation = Annotation.coerce(self._parse_json(content))
            logger.info(f"Analysis completed for {candidate.name}: intent={annotation.intent.value}")
            return annotation

        except AnalysisDegraded as e:
            logger.error(f"Analysis degraded for {candidate.name}: {e}")
            if strict:
                raise
            return Annotation.default()

    async def suggest_score_factors(self, candidate: RawCandidate, strict: bool = False) -> List[ScoreFactor]:
        """
        Ask the model for an advisory scoring breakdown.

        Returns:
            List of ScoreFactor; empty if the call fails (re-raised when strict)
        """
        try:
            content = await self._complete(
                self._get_factors_rubric(),
                self._build_factors_prompt(candidate),
                temperature=0.3,
                max_tokens=600,
            )
            return self._parse_factors(self._parse_json(content))

        except AnalysisDegraded as e:
            logger.error(f"Score factor suggestion failed for {candidate.name}: {e}")
            if strict:
                raise
            return []

    async def extract_contacts(self, text: str) -> ContactExtraction:
        """Pull names, companies and contact details out of free text (e.g. a news article)."""
        if not text or not text.strip():
            return ContactExtraction()

        try:
            content = await self._complete(
                self._get_extraction_rubric(),
                f"Extract contact information from the following text:\n\n{text}",
                temperature=0.1,
                max_tokens=500,
            )
            return ContactExtraction.model_validate(self._parse_json(content))

        except (AnalysisDegraded, ValueError) as e:
            logger.error(f"Contact extraction failed: {e}")
            return ContactExtraction()

    async def _complete(self, system: str, prompt: str, temperature: float, max_tokens: int) -> str:
        """Single chat completion call. Any failure surfaces as AnalysisDegraded."""
        if not self._client:
            raise AnalysisDegraded("analysis capability not configured")

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt}
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
            return response.choices[0].message.content or ""
        except Exception as e:
            raise AnalysisDegraded(f"analysis call failed: {e}") from e

    def _parse_json(self, content: str) -> Dict[str, Any]:
        """Parse a JSON object out of the model response."""
        text = (content or "").strip()
        if "{" in text and "}" in text:
            start = text.find("{")
            end = text.rfind("}") + 1
            try:
                result = json.loads(text[start:end])
            except json.JSONDecodeError as e:
                raise AnalysisDegraded(f"malformed response: {e}") from e
            if isinstance(result, dict):
                return result
        raise AnalysisDegraded("response did not contain a JSON object")

    def _parse_factors(self, data: Dict[str, Any]) -> List[ScoreFactor]:
        """Valid factors from a parsed response. Malformed entries are skipped."""
        items = data.get("factors", [])
        if not isinstance(items, list):
            raise AnalysisDegraded(f"factors is {type(items).__name__}, expected a list")

        factors = []
        for item in items:
            if not isinstance(item, dict) or not item.get("factor"):
                continue
            try:
                factors.append(ScoreFactor.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed score factor {item.get('factor')!r}: {e.error_count()} error(s)")
        return factors

    def _get_analysis_rubric(self) -> str:
        return """You are a B2B sales analyst qualifying prospective leads.

Return ONLY valid JSON with exactly these keys:
{"intent": "High|Medium|Low|Unknown",
 "pain_points": ["..."],
 "budget": "High|Medium|Low|Unknown",
 "timeline": "Immediate|1-3mo|3-6mo|6mo+|Unknown",
 "decision_maker": true,
 "sentiment": "Positive|Neutral|Negative"}

Use "Unknown" whenever the information does not support a judgement."""

    def _get_factors_rubric(self) -> str:
        return """You are a B2B sales analyst explaining how a lead should be weighed.

Consider job title relevance to decision making, company size and growth potential,
industry alignment, contact information completeness and website quality indicators.

Return ONLY valid JSON in this format:
{"factors": [{"factor": "Job Title Relevance", "weight": 0.3, "value": "High", "reason": "Explanation"}]}
Weights are fractions between 0 and 1."""

    def _get_extraction_rubric(self) -> str:
        return """You extract business contacts from text.

Return ONLY valid JSON in this format:
{"emails": [], "phones": [], "names": [], "companies": [], "job_titles": []}
names, companies and job_titles must be index-aligned: the i-th name works at the i-th company.
If no information is found for a field, return an empty array."""

    def _build_analysis_prompt(self, candidate: RawCandidate) -> str:
        industry = candidate.industry.value if candidate.industry else "N/A"
        size = candidate.company_size.value if candidate.company_size else "N/A"
        return f"""Analyze this lead:

Name: {candidate.name}
Company: {candidate.company}
Job Title: {candidate.job_title or 'N/A'}
Industry: {industry}
Company Size: {size}
Website: {candidate.company_website or 'N/A'}
Location: {candidate.location or 'N/A'}
Description: {candidate.description or 'No description available'}"""

    def _build_factors_prompt(self, candidate: RawCandidate) -> str:
        industry = candidate.industry.value if candidate.industry else "N/A"
        size = candidate.company_size.value if candidate.company_size else "N/A"
        has_email = "yes" if candidate.email else "no"
        has_phone = "yes" if candidate.phone else "no"
        return f"""Provide scoring factors for this lead:

Company: {candidate.company}
Industry: {industry}
Job Title: {candidate.job_title or 'N/A'}
Company Size: {size}
Website: {candidate.company_website or 'N/A'}
Email known: {has_email}
Phone known: {has_phone}"""

# Global analysis client instance
llm_client = AnalysisClient()

async def analyze_lead(candidate: RawCandidate, strict: bool = False) -> Annotation:
    """Annotate a candidate using the global analysis client."""
    return await llm_client.analyze(candidate, strict=strict)

async def suggest_score_factors(candidate: RawCandidate, strict: bool = False) -> List[ScoreFactor]:
    """Suggest advisory score factors using the global analysis client."""
    return await llm_client.suggest_score_factors(candidate, strict=strict)

async def extract_contact_info(text: str) -> ContactExtraction:
    """Extract contacts from free text using the global analysis client."""
    return await llm_client.extract_contacts(text)
