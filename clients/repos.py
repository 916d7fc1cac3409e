"""Repository boundary: AI tools backed by tracked GitHub repositories.

Each tracked repository is fetched from the GitHub repos API and turned
into an AITool graded from its stars, forks and freshness. Tools are
ranked per category by stars, and each tool's rank change is derived
from the ranking the caller last saw.

Emerging tools are a curated list with hand-assigned grades and stage.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from clients.http import ApiClient, ApiError
from grading import grade_repository
from models.result import FetchResult
from models.tool import AITool, ToolCategory
from ranking import assign_ranks, rank_changes

logger = logging.getLogger(__name__)

GITHUB_BASE_URL = "https://api.github.com"
GITHUB_HEADERS = {
    "Accept": "application/vnd.github.v3+json",
    "User-Agent": "CyberPress-App",
}


@dataclass(frozen=True)
class TrackedRepo:
    """A repository whose stats back one listed tool."""
    owner: str
    repo: str
    name: str
    category: ToolCategory
    grade_overrides: dict[str, str] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def tool_id(self) -> str:
        return f"{self.owner}-{self.repo}"


TRACKED_REPOS = [
    TrackedRepo("openai", "openai-python", "OpenAI Python SDK", ToolCategory.TEXT_GENERATION),
    TrackedRepo("anthropics", "anthropic-sdk-typescript", "Claude 3.5 Sonnet", ToolCategory.TEXT_GENERATION),
    TrackedRepo("google", "generative-ai-js", "Gemini Pro", ToolCategory.TEXT_GENERATION),
    TrackedRepo("meta-llama", "llama", "Llama 3.1", ToolCategory.TEXT_GENERATION),
    TrackedRepo("microsoft", "semantic-kernel", "Semantic Kernel", ToolCategory.PRODUCTIVITY),
    TrackedRepo("langchain-ai", "langchain", "LangChain", ToolCategory.PRODUCTIVITY),
    TrackedRepo("nomic-ai", "gpt4all", "GPT4All", ToolCategory.TEXT_GENERATION),
    TrackedRepo("ollama", "ollama", "Ollama", ToolCategory.PRODUCTIVITY),
]


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_repo(raw: dict[str, Any], tracked: TrackedRepo, now: datetime | None = None) -> AITool:
    """Build an AITool from a GitHub repos API record.

    Rank is left at 1; ranking happens once the whole category is known.

    Raises:
        ValidationError: When the record cannot produce a valid tool
    """
    now = now or datetime.now(timezone.utc)
    stars = raw.get("stargazers_count") or 0
    forks = raw.get("forks_count") or 0
    last_commit = _parse_timestamp(raw.get("pushed_at") or raw.get("updated_at"))
    days_since_update = (now - last_commit).total_seconds() / 86400 if last_commit else float("inf")
    html_url = raw.get("html_url") or f"https://github.com/{tracked.full_name}"

    return AITool(
        id=tracked.tool_id,
        name=tracked.name,
        description=raw.get("description") or "AI tool repository",
        category=tracked.category,
        url=raw.get("homepage") or html_url,
        grades=grade_repository(stars, forks, days_since_update, tracked.grade_overrides),
        github_url=html_url,
        stars=stars,
        forks=forks,
        last_commit=last_commit,
    )


def rank_by_category(
    tools: list[AITool],
    previous: dict[str, int] | None = None,
    limit: int | None = None,
) -> list[AITool]:
    """Rank tools 1..N inside each category by stars and mark rank changes.

    Categories keep their first-seen order; each category is capped at limit.
    """
    by_category: dict[ToolCategory, list[AITool]] = {}
    for tool in tools:
        by_category.setdefault(tool.category, []).append(tool)

    ranked: list[AITool] = []
    for members in by_category.values():
        ordered = rank_changes(assign_ranks(members, key=lambda tool: tool.popularity), previous or {})
        ranked.extend(ordered[:limit] if limit else ordered)
    return ranked


def fallback_tools() -> list[AITool]:
    """Single placeholder tool."""
    return [AITool(
        id="anthropic-claude",
        name="Claude 3.5 Sonnet",
        description="Advanced reasoning and coding capabilities with exceptional context understanding.",
        category=ToolCategory.TEXT_GENERATION,
        url="https://claude.ai",
        rank=1,
        change="same",
        grades={
            "Barrier to Entry": "A",
            "Cost": "B+",
            "Efficiency": "A+",
            "Speed": "A",
            "Community": "A+",
        },
        github_url="https://github.com/anthropics/anthropic-sdk-typescript",
        stars=1250,
        forks=89,
    )]


EMERGING_TOOLS: list[dict[str, Any]] = [
    {
        "id": "cursor-ai",
        "name": "Cursor AI",
        "description": "AI-powered code editor with predictive coding",
        "category": ToolCategory.PRODUCTIVITY,
        "url": "https://cursor.sh",
        "grades": {"Barrier to Entry": "B+", "Cost": "A", "Efficiency": "A-", "Speed": "A+", "Community": "B"},
        "stage": "Beta",
        "noteworthy": "Revolutionary autocomplete that predicts entire functions",
        "stars": 2500,
        "forks": 180,
    },
    {
        "id": "perplexity-spaces",
        "name": "Perplexity Spaces",
        "description": "Collaborative AI research workspace",
        "category": ToolCategory.RESEARCH,
        "url": "https://perplexity.ai",
        "grades": {"Barrier to Entry": "A-", "Cost": "B+", "Efficiency": "A", "Speed": "A-", "Community": "B+"},
        "stage": "Early Access",
        "noteworthy": "Real-time fact-checking with source verification",
        "stars": 890,
        "forks": 67,
    },
    {
        "id": "runway-gen3",
        "name": "Runway Gen-3",
        "description": "Next-generation video AI model",
        "category": ToolCategory.AUDIO_VIDEO,
        "url": "https://runwayml.com",
        "grades": {"Barrier to Entry": "C+", "Cost": "C", "Efficiency": "A+", "Speed": "B+", "Community": "A-"},
        "stage": "Limited Beta",
        "noteworthy": "Photorealistic video generation from text prompts",
        "stars": 450,
        "forks": 34,
    },
]


class RepositoryClient:
    """Fetches and grades the tracked tool repositories.

    Example:
        >>> client = RepositoryClient(api, token=config.github_token)
        >>> result = await client.fetch_tools(limit=10, previous={"ollama-ollama": 2})
    """

    def __init__(
        self,
        api: ApiClient,
        token: str = "",
        tracked: list[TrackedRepo] | None = None,
    ):
        self.api = api
        self.token = token
        self.tracked = tracked if tracked is not None else TRACKED_REPOS

    def _headers(self) -> dict[str, str]:
        headers = dict(GITHUB_HEADERS)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _fetch_repo(self, tracked: TrackedRepo) -> dict[str, Any]:
        data = await self.api.get_cached(
            f"github:repo:{tracked.full_name}",
            lambda: self.api.get(f"/repos/{tracked.full_name}", headers=self._headers()),
        )
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected payload for {tracked.full_name}")
        return data

    async def fetch_tools(
        self,
        category: ToolCategory | None = None,
        limit: int = 10,
        previous: dict[str, int] | None = None,
    ) -> FetchResult[AITool]:
        """Fetch, grade and rank the tracked tools.

        Args:
            category: Only this category (all when None)
            limit: Maximum tools per category
            previous: Tool id -> rank from the last refresh, for change markers

        Returns:
            FetchResult ranked per category; fallback when no repository loads
        """
        tracked = [t for t in self.tracked if category is None or t.category == category]
        results = await asyncio.gather(*(self._fetch_repo(t) for t in tracked), return_exceptions=True)

        now = datetime.now(timezone.utc)
        tools: list[AITool] = []
        for repo, result in zip(tracked, results):
            if isinstance(result, Exception):
                logger.warning("Repository fetch failed | repo=%s error=%s", repo.full_name, result)
                continue
            try:
                tools.append(normalize_repo(result, repo, now))
            except ValidationError as e:
                logger.warning("Skipping invalid repository | repo=%s errors=%d", repo.full_name, e.error_count())

        if not tools:
            logger.error("No repositories loaded, serving fallback | tracked=%d", len(tracked))
            return FetchResult.fallback(fallback_tools(), error="Repository API unavailable")

        ranked = rank_by_category(tools, previous, limit)
        logger.info("Tools fetched | tools=%d failed=%d", len(ranked), len(tracked) - len(tools))
        return FetchResult(items=ranked, source="GitHub", last_updated=now)

    async def discover_emerging_tools(self) -> FetchResult[AITool]:
        """Curated emerging tools, ranked by stars."""
        now = datetime.now(timezone.utc)
        tools = [AITool(**entry, last_commit=now, change="new") for entry in EMERGING_TOOLS]
        return FetchResult(items=assign_ranks(tools, key=lambda tool: tool.popularity), source="Curated")
