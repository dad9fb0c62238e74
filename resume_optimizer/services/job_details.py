import re
import logging
from typing import Dict, List, Optional

import httpx
from bs4 import BeautifulSoup

from resume_optimizer.core import prompts
from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import (
    AppException,
    ExtractionError,
    JobResolutionError,
    MissingJobInfoError,
)
from resume_optimizer.core.schemas import Malformed, Ok, validate_as
from resume_optimizer.schemas.job import JobDetails

logger = logging.getLogger(__name__)

STEP = "extracting_details"
MIN_DESCRIPTION_CHARS = 50

# Posting-site selectors are tried before the generic ones
LINKEDIN_SELECTORS: Dict[str, List[str]] = {
    "title": [".top-card-layout__title", ".job-details-jobs-unified-top-card__job-title"],
    "company": [".topcard__org-name-link", ".job-details-jobs-unified-top-card__company-name"],
    "location": [".topcard__flavor--bullet", ".job-details-jobs-unified-top-card__bullet"],
    "salary": [".compensation__salary", ".job-details-jobs-unified-top-card__salary-info"],
    "description": [".description__text", ".job-details-jobs-unified-top-card__job-description"],
}

GENERIC_SELECTORS: Dict[str, List[str]] = {
    "title": ["h1", ".job-title", '[data-testid="job-title"]', ".position-title"],
    "company": [".company-name", '[data-testid="company-name"]', ".employer"],
    "location": [".location", '[data-testid="location"]', ".job-location"],
    "salary": [".salary", '[data-testid="salary-range"]', ".compensation"],
    "description": [".job-description", "#job-description", '[data-testid="job-description"]', ".description"],
}

REMOTE_MARKERS = ("remote", "work from home", "wfh")
_APPLICANTS = re.compile(r"\d+\s*applicants?", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def _clean(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def scrape_job_page(html: str) -> Dict[str, str]:
    """Pull title, company, location, salary and description out of a posting page."""
    soup = BeautifulSoup(html, "html.parser")

    def find(field: str) -> str:
        for selector in LINKEDIN_SELECTORS[field] + GENERIC_SELECTORS[field]:
            element = soup.select_one(selector)
            if element is None:
                continue
            text = _clean(element.get_text(" "))
            if field == "location":
                text = _APPLICANTS.sub("", text).strip(" ,")
            if text:
                return text
        return ""

    fields = {name: find(name) for name in ("title", "company", "location", "salary", "description")}

    if not fields["description"]:
        for selector in (".job-view-layout", "main"):
            element = soup.select_one(selector)
            if element is not None:
                fields["description"] = _clean(element.get_text(" "))
                if fields["description"]:
                    break

    body_text = soup.get_text(" ").lower()
    haystacks = (fields["description"].lower(), fields["location"].lower(), body_text)
    if any(marker in text for text in haystacks for marker in REMOTE_MARKERS):
        fields["location"] = f"{fields['location']} (Remote)" if fields["location"] else "Remote"

    return fields


class JobDetailsResolver:
    """Turns a job URL or a pasted description into a normalized JobDetails."""

    def __init__(self, ai, http_client: Optional[httpx.AsyncClient] = None):
        self.ai = ai
        self._http_client = http_client

    async def resolve(self, job_url: Optional[str] = None, job_description: Optional[str] = None) -> JobDetails:
        job_url = (job_url or "").strip()
        job_description = (job_description or "").strip()
        if not job_url and not job_description:
            raise MissingJobInfoError()

        try:
            return await self._resolve(job_url, job_description)
        except JobResolutionError:
            raise
        except AppException as e:
            raise JobResolutionError(e.message, step=STEP, details={"cause": e.error_code})
        except Exception as e:
            logger.exception("Job details resolution failed")
            raise JobResolutionError(
                "Failed to extract job details. Please paste the description manually.",
                step=STEP,
                details={"cause": str(e)},
            )

    async def _resolve(self, job_url: str, job_description: str) -> JobDetails:
        scraped: Dict[str, str] = {}
        if job_description:
            # A pasted description wins over a URL; no fetch happens
            posting_text = job_description
        else:
            scraped = await self._fetch(job_url)
            posting_text = scraped["description"]
            if len(posting_text) < MIN_DESCRIPTION_CHARS:
                raise ExtractionError(
                    "Could not extract sufficient job details. The page might be dynamically "
                    "loaded or require authentication.",
                    step=STEP,
                    details={"url": job_url, "descriptionLength": len(posting_text)},
                )

        result = await self.ai.generate_structured(
            prompts.JOB_DETAILS_SYSTEM,
            prompts.get_prompt(prompts.JOB_DETAILS_USER_TEMPLATE, posting_text=posting_text),
            temperature=0.3,
        )
        if isinstance(result, Ok):
            data = dict(result.value)
            # The posting text itself is the description of record
            data["description"] = posting_text
            for field in ("title", "company", "location", "salary"):
                if scraped.get(field):
                    data[field] = scraped[field]
            result = validate_as(Ok(data), JobDetails)

        if isinstance(result, Malformed):
            raise JobResolutionError(
                "Job details could not be extracted from the generation response",
                step=STEP,
                details={"reason": result.reason},
            )

        details = result.value
        logger.info(f"Resolved job details: {details.title} at {details.company} ({details.position_level.value})")
        return details

    async def _fetch(self, url: str) -> Dict[str, str]:
        if not url.startswith(("http://", "https://")):
            raise ExtractionError("Job URL must be an http(s) address", step=STEP, details={"url": url})

        logger.info(f"Fetching job posting: {url}")
        headers = {"User-Agent": "Mozilla/5.0 (compatible; ResumeOptimizer/1.0)"}
        if self._http_client is not None:
            response = await self._http_client.get(url, headers=headers, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=settings.pipeline.job_fetch_timeout) as client:
                response = await client.get(url, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return scrape_job_page(response.text)
