"""
AI content optimization over the OpenAI Chat Completions API.

This module provides:
- Per-platform optimization of title, description and tags (cached 1h)
- Trending hashtags, posting time suggestions, SEO descriptions and
  A/B variations
- The deterministic helpers around them (category detection, scoring,
  suggestions, tips and fallbacks used when the API is unavailable)

The HTTP call lives in chat_completion(); everything else is plain Python
so it can be tested without the network.
"""

import hashlib
import json
import re
from typing import Dict, Any, List, Optional

import requests

from app.config import get_settings
from app.services.cache_service import cache_get, cache_set
from app.utils.platform_utils import platform_display_name


OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class AIServiceError(Exception):
    """The AI provider is not configured or did not answer usably."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


PLATFORM_PROMPTS: Dict[str, Dict[str, str]] = {
    "youtube": {
        "title": "Create an engaging YouTube title that is SEO-optimized, clickable, and under 60 characters. Focus on trending keywords and emotional triggers that encourage clicks.",
        "description": "Write a YouTube description that includes relevant keywords, call-to-actions, and helpful information. Structure it with sections for better readability.",
        "tags": "Generate 10-15 relevant YouTube tags that will help with discoverability. Include both broad and specific keywords.",
    },
    "tiktok": {
        "title": "Create a catchy TikTok caption that uses trending language, incorporates relevant hashtags, and encourages engagement. Keep it under 150 characters.",
        "description": "Write a TikTok description that is fun, engaging, and uses popular TikTok language. Include trending hashtags and calls-to-action.",
        "tags": "Generate 5-10 trending TikTok hashtags that are relevant to the content and likely to boost discoverability.",
    },
    "instagram": {
        "title": "Create an Instagram caption that tells a story, encourages engagement, and includes relevant hashtags. Make it authentic and relatable.",
        "description": "Write an Instagram description that builds community, asks questions, and includes strategic hashtags for maximum reach.",
        "tags": "Generate 20-30 Instagram hashtags mixing popular and niche tags for optimal reach without appearing spammy.",
    },
    "facebook": {
        "title": "Create a Facebook post title that encourages sharing and discussion. Focus on community building and storytelling.",
        "description": "Write a Facebook description that sparks conversation, includes relevant keywords, and encourages interaction.",
        "tags": "Generate relevant Facebook hashtags and topics that will help with organic reach and community building.",
    },
    "x": {
        "title": "Create an X post that is concise, engaging, and likely to be reposted. Use trending language and relevant hashtags.",
        "description": "Write an X thread-style description that provides value and encourages engagement in under 280 characters per post.",
        "tags": "Generate 3-5 trending X hashtags that are relevant and likely to increase visibility.",
    },
    "snapchat": {
        "title": "Create a Snapchat title that is fun, casual, and encourages friends to view and share the content.",
        "description": "Write a Snapchat description that is authentic, playful, and encourages interaction with friends.",
        "tags": "Generate Snapchat-relevant keywords and topics for better discoverability.",
    },
    "pinterest": {
        "title": "Create a Pinterest title that is keyword-rich, descriptive, and optimized for search. Focus on what users are searching for.",
        "description": "Write a Pinterest description that includes relevant keywords, helpful information, and encourages saves and clicks.",
        "tags": "Generate Pinterest keywords and hashtags that are search-optimized and relevant to the content niche.",
    },
}

# Checked in order; the first category with a matching keyword wins.
CONTENT_CATEGORIES: Dict[str, List[str]] = {
    "entertainment": ["entertainment", "funny", "viral", "trending"],
    "education": ["educational", "tutorial", "how-to", "learning"],
    "lifestyle": ["lifestyle", "daily routine", "personal", "relatable"],
    "fitness": ["fitness", "workout", "health", "wellness"],
    "food": ["food", "cooking", "recipe", "delicious"],
    "travel": ["travel", "adventure", "explore", "destination"],
    "tech": ["technology", "gadgets", "review", "innovation"],
    "business": ["business", "entrepreneur", "success", "marketing"],
    "gaming": ["gaming", "gameplay", "review", "entertainment"],
    "music": ["music", "song", "artist", "performance"],
    "fashion": ["fashion", "style", "outfit", "trends"],
    "diy": ["diy", "crafts", "creative", "handmade"],
}

PLATFORM_TIPS: Dict[str, List[str]] = {
    "youtube": [
        "Post consistently for better algorithm performance",
        "Use custom thumbnails for higher click-through rates",
        "Add end screens to promote other videos",
        "Engage with comments within the first hour",
    ],
    "tiktok": [
        "Post at least once daily for maximum reach",
        "Use trending sounds and effects",
        "Hook viewers in the first 3 seconds",
        "Participate in trending challenges",
    ],
    "instagram": [
        "Post when your audience is most active",
        "Use Stories to increase engagement",
        "Create visually consistent content",
        "Engage with your community regularly",
    ],
    "facebook": [
        "Share content that sparks conversation",
        "Use Facebook Groups to build community",
        "Post native videos for better reach",
        "Respond to comments promptly",
    ],
    "x": [
        "Post consistently throughout the day",
        "Join trending conversations",
        "Use Spaces for audio content",
        "Repost and engage with others",
    ],
}

FALLBACK_HASHTAGS: Dict[str, List[str]] = {
    "youtube": ["#youtube", "#video", "#content", "#trending"],
    "tiktok": ["#fyp", "#viral", "#trending", "#tiktok"],
    "instagram": ["#instagram", "#reels", "#content", "#viral"],
    "facebook": ["#facebook", "#video", "#social", "#content"],
    "x": ["#twitter", "#video", "#content", "#trending"],
}

DEFAULT_POSTING_TIMES: Dict[str, List[Dict[str, str]]] = {
    "youtube": [
        {"time": "2:00 PM", "reason": "Weekday afternoon peak"},
        {"time": "8:00 PM", "reason": "Evening entertainment time"},
        {"time": "10:00 AM", "reason": "Weekend morning activity"},
    ],
    "tiktok": [
        {"time": "6:00 AM", "reason": "Early morning commute"},
        {"time": "7:00 PM", "reason": "After work/school peak"},
        {"time": "9:00 PM", "reason": "Evening entertainment peak"},
    ],
    "instagram": [
        {"time": "11:00 AM", "reason": "Late morning peak"},
        {"time": "2:00 PM", "reason": "Lunch break scrolling"},
        {"time": "5:00 PM", "reason": "After work peak"},
    ],
}


# =============================================================================
# OpenAI
# =============================================================================

def chat_completion(
    messages: List[Dict[str, Any]],
    max_tokens: int = 300,
    temperature: float = 0.7,
    model: Optional[str] = None,
    timeout: int = 60
) -> str:
    """
    Run one Chat Completions request and return the assistant's text.

    Raises:
        AIServiceError: 503 when OPENAI_API_KEY is missing, 502 for API errors
    """
    settings = get_settings()
    if not settings.openai_api_key:
        raise AIServiceError("OpenAI API key not configured. Set OPENAI_API_KEY environment variable.", status_code=503)

    try:
        response = requests.post(
            OPENAI_CHAT_URL,
            headers={"Authorization": f"Bearer {settings.openai_api_key}"},
            json={
                "model": model or settings.openai_model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            timeout=timeout,
        )
    except requests.exceptions.Timeout:
        raise AIServiceError("OpenAI request timed out")
    except requests.exceptions.ConnectionError as e:
        raise AIServiceError(f"OpenAI connection error - {str(e)}")

    if response.status_code != 200:
        raise AIServiceError(f"OpenAI API error ({response.status_code}): {response.text[:300]}")

    try:
        return response.json()["choices"][0]["message"]["content"].strip()
    except (ValueError, KeyError, IndexError):
        raise AIServiceError("OpenAI returned an unexpected response")


def _ask(system: str, prompt: str, max_tokens: int, temperature: float) -> str:
    return chat_completion(
        [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        temperature=temperature,
    )


def _split_list(text: str) -> List[str]:
    return [item.strip() for item in text.replace("\n", ",").split(",") if item.strip()]


# =============================================================================
# Deterministic Helpers
# =============================================================================

def detect_content_category(content: str) -> str:
    content = (content or "").lower()
    for category, keywords in CONTENT_CATEGORIES.items():
        if any(keyword in content for keyword in keywords):
            return category
    return "general"


def calculate_optimization_score(platform: str, title: str, description: str, tags: List[str]) -> int:
    """Heuristic 0-100 score of how well the content fits the platform."""
    score = 0

    if len(title) > 0:
        score += 20
    if len(title) <= 60:
        score += 15
    if re.search(r"[0-9]", title):
        score += 10
    if re.search(r"[!?]", title):
        score += 5

    if len(description) > 50:
        score += 20
    if description.count("#") >= 3:
        score += 10
    if "?" in description:
        score += 5

    if len(tags) >= 5:
        score += 15
    if len(tags) <= 30:
        score += 10

    if platform == "tiktok" and 3 <= len(tags) <= 10:
        score += 5
    elif platform == "instagram" and 10 <= len(tags) <= 30:
        score += 5
    elif platform == "youtube" and len(description) > 125:
        score += 5

    return min(100, score)


def generate_suggestions(platform: str, title: str, description: str, tags: List[str]) -> List[str]:
    suggestions = []

    if len(title) > 60:
        suggestions.append(f"Consider shortening the title for better readability on {platform_display_name(platform)}")
    if len(description) < 50:
        suggestions.append("Add more detail to your description to improve engagement")
    if len(tags) < 5:
        suggestions.append("Add more relevant hashtags to increase discoverability")

    platform_suggestions = {
        "youtube": "Consider adding timestamps to your description for better user experience",
        "tiktok": "Use trending sounds and effects to boost algorithm performance",
        "instagram": "Add a call-to-action in your caption to encourage engagement",
    }
    if platform in platform_suggestions:
        suggestions.append(platform_suggestions[platform])

    return suggestions


def get_platform_tips(platform: str) -> List[str]:
    return PLATFORM_TIPS.get(platform, ["Optimize your content for your target audience"])


def generate_fallback_tags(category: str) -> List[str]:
    return list(CONTENT_CATEGORIES.get(category, ["general", "content", "video", "social media"]))


def get_fallback_hashtags(platform: str) -> List[str]:
    return list(FALLBACK_HASHTAGS.get(platform, ["#content", "#video", "#social"]))


def get_default_posting_times(platform: str) -> List[Dict[str, str]]:
    return [dict(t) for t in DEFAULT_POSTING_TIMES.get(platform, DEFAULT_POSTING_TIMES["youtube"])]


def parse_posting_times(content: str) -> Optional[List[Dict[str, str]]]:
    """
    Extract [{"time", "reason"}] from a model answer.

    Accepts a JSON array (optionally inside a ```json fence) or an object
    with a "times" array. Returns None when nothing usable is found.
    """
    match = re.search(r"\[.*\]", content or "", re.DOTALL)
    candidates = [match.group(0)] if match else []
    candidates.append(content or "")

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            data = data.get("times")
        if not isinstance(data, list):
            continue
        times = [
            {"time": str(item["time"]), "reason": str(item.get("reason", ""))}
            for item in data
            if isinstance(item, dict) and item.get("time")
        ]
        if times:
            return times
    return None


def parse_ab_variations(content: str) -> List[str]:
    return [block.strip() for block in (content or "").split("\n\n") if block.strip()]


# =============================================================================
# Optimization
# =============================================================================

def optimize_for_platform(
    platform: str,
    title: str,
    description: str,
    category: Optional[str] = None
) -> Dict[str, Any]:
    """
    Optimized title, description and tags for one platform.

    Results are cached for AI_CACHE_TTL_SECONDS per (platform, title, description).

    Raises:
        AIServiceError: When the model cannot be reached
    """
    digest = hashlib.md5(f"{title}{description}".encode("utf-8")).hexdigest()
    cache_key = f"ai_optimization_{platform}_{digest}"
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    prompts = PLATFORM_PROMPTS.get(platform, PLATFORM_PROMPTS["youtube"])
    context = f"Content category: {category}. " if category else ""
    specialist = "You are a professional content optimization specialist."

    optimized_title = _ask(
        specialist,
        f"{context}{prompts['title']}\n\nOriginal title: '{title}'\nContent description: '{description}'",
        max_tokens=100, temperature=0.7,
    )
    optimized_description = _ask(
        specialist,
        f"{context}{prompts['description']}\n\nTitle: '{title}'\nOriginal description: '{description}'",
        max_tokens=400, temperature=0.7,
    )
    tags = _split_list(_ask(
        "You are a hashtag and keyword specialist.",
        f"{context}{prompts['tags']}\n\nTitle: '{title}'\nDescription: '{description}'\n\nReturn a comma-separated list.",
        max_tokens=200, temperature=0.6,
    ))

    result = {
        "title": optimized_title,
        "description": optimized_description,
        "tags": tags,
        "optimization_score": calculate_optimization_score(platform, optimized_title, optimized_description, tags),
        "suggestions": generate_suggestions(platform, optimized_title, optimized_description, tags),
        "platform_specific_tips": get_platform_tips(platform),
    }
    cache_set(cache_key, result, get_settings().ai_cache_ttl_seconds)
    return result


def optimize_for_platforms(title: str, description: str, platforms: List[str]) -> Dict[str, Dict[str, Any]]:
    """Optimize for each platform; a failing platform falls back to the original content."""
    category = detect_content_category(f"{title} {description}")
    optimizations: Dict[str, Dict[str, Any]] = {}

    for platform in platforms:
        try:
            optimizations[platform] = optimize_for_platform(platform, title, description, category)
        except AIServiceError as e:
            print(f"ERROR: AI optimization failed for platform {platform}: {str(e)}")
            optimizations[platform] = {
                "title": title,
                "description": description,
                "tags": generate_fallback_tags(category),
                "optimization_score": 0,
                "suggestions": ["AI optimization temporarily unavailable"],
                "platform_specific_tips": get_platform_tips(platform),
            }

    return optimizations


def generate_trending_hashtags(platform: str, content: str, count: int = 10) -> List[str]:
    name = platform_display_name(platform)
    prompt = (
        f"Based on the content: '{content}', generate {count} trending hashtags for {name} that are currently "
        "popular and relevant. Consider seasonal trends, current events, and platform-specific hashtag "
        "strategies. Return only the hashtags in a comma-separated list, with # symbols."
    )
    try:
        answer = _ask(f"You are a social media expert specializing in {name} hashtag strategy.", prompt, 200, 0.7)
    except AIServiceError as e:
        print(f"WARNING: Failed to generate trending hashtags for {platform}: {str(e)}")
        return get_fallback_hashtags(platform)

    hashtags = [t if t.startswith("#") else f"#{t}" for t in _split_list(answer)]
    return hashtags[:count] or get_fallback_hashtags(platform)


def suggest_optimal_posting_times(platform: str, content: str, timezone: str = "UTC") -> List[Dict[str, str]]:
    name = platform_display_name(platform)
    prompt = (
        f"Analyze this content for {name}: '{content}'. Based on the content type and target audience, suggest "
        "the best 3 posting times for maximum engagement. Consider the platform's peak activity hours and the "
        f"content's target demographic. Provide times in {timezone} timezone. Answer with a JSON array of "
        'objects like {"time": "9:00 AM", "reason": "..."} and nothing else.'
    )
    try:
        answer = _ask(f"You are a social media timing strategist with expertise in {name} audience behavior.", prompt, 300, 0.5)
    except AIServiceError as e:
        print(f"WARNING: Failed to suggest posting times for {platform}: {str(e)}")
        return get_default_posting_times(platform)

    return parse_posting_times(answer) or get_default_posting_times(platform)


def generate_seo_description(title: str, description: str, platform: str) -> str:
    name = platform_display_name(platform)
    prompt = (
        f"Create an SEO-optimized description for {name} based on this title: '{title}' and description: "
        f"'{description}'. Include relevant keywords naturally, maintain readability, and optimize for {name}'s "
        "search algorithm. Make it engaging and likely to rank well in searches."
    )
    try:
        return _ask(f"You are an SEO expert specializing in {name} content optimization.", prompt, 500, 0.6)
    except AIServiceError as e:
        print(f"WARNING: Failed to generate SEO description for {platform}: {str(e)}")
        return description


def generate_ab_variations(platform: str, title: str, description: str, variations: int = 3) -> List[str]:
    name = platform_display_name(platform)
    prompt = (
        f"Create {variations} different variations of this {name} content for A/B testing:\n"
        f"Title: {title}\nDescription: {description}\n\n"
        "Each variation should test different approaches (emotional, logical, curiosity-driven) while maintaining "
        "the core message. Make them distinctly different to get meaningful test results. Separate variations "
        "with a blank line."
    )
    try:
        answer = _ask(f"You are an A/B testing specialist for {name} content optimization.", prompt, 1000, 0.8)
    except AIServiceError as e:
        print(f"WARNING: Failed to generate A/B variations for {platform}: {str(e)}")
        return []
    return parse_ab_variations(answer)
