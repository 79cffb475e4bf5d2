"""
Chat-completion client used for availability summaries.

The pipeline treats the model as an opaque "prompt in, JSON out"
collaborator.  Three OpenAI-compatible providers are supported; which one a
run uses is the wizard's ``ai_provider`` argument.

Nothing here is allowed to fail a run: ``summarize_availability`` returns
neutral (0.0) defense impacts on any error and F3 simply leans on the
DRtg trend alone.
"""

import json
import logging
import os
import re
from typing import Dict, List, Optional

import requests

from pickgen.core.factor_types import PlayerInjury, RunContext
from pickgen.core.signal_math import clamp

logger = logging.getLogger(__name__)

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

PROVIDERS: Dict[str, Dict[str, str]] = {
    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "model": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        "key_env": "OPENAI_API_KEY",
    },
    "perplexity": {
        "url": "https://api.perplexity.ai/chat/completions",
        "model": os.getenv("PERPLEXITY_MODEL", "sonar"),
        "key_env": "PERPLEXITY_API_KEY",
    },
    "xai": {
        "url": "https://api.x.ai/v1/chat/completions",
        "model": os.getenv("XAI_MODEL", "grok-2-latest"),
        "key_env": "XAI_API_KEY",
    },
}

# "grok" is what the capper UI calls the xAI provider.
_PROVIDER_ALIASES = {"grok": "xai"}

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class LLMClient:
    """Minimal JSON-mode chat-completions client."""

    def __init__(self, provider: str = "perplexity", api_key: Optional[str] = None):
        provider = _PROVIDER_ALIASES.get(provider.lower(), provider.lower())
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {provider}")
        self.provider = provider
        self.config = PROVIDERS[provider]
        self.api_key = api_key or os.getenv(self.config["key_env"])
        if not self.api_key:
            raise ValueError(f"{self.config['key_env']} not set in environment")

    def complete_json(self, prompt: str, system: str = "Respond with a single JSON object only.") -> Dict:
        """Send ``prompt`` and parse the reply as JSON.

        Raises:
            requests.exceptions.RequestException: Transport or HTTP error.
            ValueError: The reply is not a JSON object.
        """
        payload = {
            "model": self.config["model"],
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        resp = requests.post(self.config["url"], json=payload, headers=headers, timeout=LLM_TIMEOUT_SECONDS)
        resp.raise_for_status()

        content = resp.json()["choices"][0]["message"]["content"]
        parsed = json.loads(_FENCE_RE.sub("", content.strip()))
        if not isinstance(parsed, dict):
            raise ValueError("LLM reply is not a JSON object")
        return parsed


def build_availability_prompt(ctx: RunContext, injuries: List[PlayerInjury], news_window_hours: int = 24) -> str:
    lines = [
        f"NBA game: {ctx.away} (away) at {ctx.home} (home).",
        f"Consider injury and rotation news from the last {news_window_hours} hours.",
        "Known injury report:",
    ]
    if injuries:
        for inj in injuries:
            lines.append(f"- {inj.team}: {inj.player} ({inj.position}) {inj.status}, {inj.ppg:.1f} PPG, {inj.mpg:.1f} MPG")
    else:
        lines.append("- none reported")
    lines.append(
        "Rate how much each team's DEFENSE is weakened by absences, from -1 (defense "
        "stronger than usual) to 1 (defense badly weakened). Reply as JSON: "
        '{"away_defense_impact": <float>, "home_defense_impact": <float>, "summary": "<one sentence>"}'
    )
    return "\n".join(lines)


def summarize_availability(
    ctx: RunContext,
    injuries: List[PlayerInjury],
    client: Optional[LLMClient] = None,
    provider: str = "perplexity",
    news_window_hours: int = 24,
) -> Dict:
    """Defense impact per team in ``[-1, 1]``; neutral on any failure."""
    neutral = {"away": 0.0, "home": 0.0, "summary": None, "source": "none"}
    try:
        client = client or LLMClient(provider)
        reply = client.complete_json(build_availability_prompt(ctx, injuries, news_window_hours))
        away = clamp(float(reply.get("away_defense_impact", 0.0)), -1.0, 1.0)
        home = clamp(float(reply.get("home_defense_impact", 0.0)), -1.0, 1.0)
    except (requests.exceptions.RequestException, ValueError, KeyError, TypeError, IndexError) as exc:
        logger.warning("Availability summary failed for %s @ %s: %s", ctx.away, ctx.home, exc)
        return neutral

    return {"away": away, "home": home, "summary": reply.get("summary"), "source": client.provider}
