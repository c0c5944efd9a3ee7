"""Prompt builders. Every numbered course list is rendered from a CatalogExcerpt."""

from src.core.schemas import UserProfile
from src.pipeline.matcher import CatalogExcerpt

CHAT_SYSTEM_PROMPT = (
    "You are a helpful educational assistant that recommends courses based on "
    "user queries. Understand the user's learning goals and suggest the most "
    "relevant courses."
)

PROFILE_SYSTEM_PROMPT = (
    "You are an educational course recommendation expert. Provide course "
    "recommendations based on user preferences and learning goals. Return only "
    "the requested course numbers."
)


def render_excerpt(excerpt: CatalogExcerpt, *, with_rating: bool = False) -> str:
    """Render the excerpt as a 1-based numbered list in excerpt order."""
    lines = []
    for index, course in enumerate(excerpt, start=1):
        details = f"{course.category}, {course.difficulty}"
        if with_rating:
            details += f", Rating: {course.rating:g}/5"
        lines.append(f"{index}. {course.title} ({details})")
    return "\n".join(lines)


def user_context(profile: UserProfile | None) -> str:
    """One-line requester context for the chat prompt; empty when unknown."""
    if profile is None:
        return ""
    expertise = ", ".join(profile.expertise) or "None"
    context = f"User context: Role - {profile.role}, Expertise - {expertise}"
    if profile.preferred_categories:
        context += f", Past categories - {', '.join(profile.preferred_categories)}"
    if profile.preferred_difficulties:
        context += f", Past difficulties - {', '.join(profile.preferred_difficulties)}"
    return context


def build_chat_prompt(query: str, excerpt: CatalogExcerpt, profile: UserProfile | None) -> str:
    """Prompt for free-text course questions."""
    context = user_context(profile)
    context_block = f"{context}\n" if context else ""
    return (
        f'User query: "{query}"\n'
        f"{context_block}\n"
        "Available courses:\n"
        f"{render_excerpt(excerpt)}\n\n"
        "Based on the user's query, recommend the most relevant course numbers "
        f"(1-{len(excerpt)}) separated by commas. Consider the user's learning "
        "goals and context."
    )


def build_profile_prompt(profile: UserProfile, excerpt: CatalogExcerpt, limit: int) -> str:
    """Prompt for profile-driven recommendations with no free-text query."""
    top = min(limit, len(excerpt))
    return (
        f"Based on the user profile below, recommend the top {top} courses from "
        "the available options.\n\n"
        "User Profile:\n"
        f"- Role: {profile.role}\n"
        f"- Expertise: {', '.join(profile.expertise) or 'None specified'}\n"
        f"- Preferred categories: {', '.join(profile.preferred_categories) or 'Any'}\n"
        f"- Preferred difficulties: {', '.join(profile.preferred_difficulties) or 'Any'}\n"
        f"- Completion rate: {profile.completion_rate:.0f}%\n\n"
        "Available Courses:\n"
        f"{render_excerpt(excerpt, with_rating=True)}\n\n"
        'Return only course numbers separated by commas (e.g., "3,1,7,2").'
    )


OUTLINE_SYSTEM_PROMPT = (
    "You are an experienced instructional designer who drafts course outlines. "
    "Reply with a single JSON object and no other text."
)


def build_outline_prompt(title: str, description: str) -> str:
    """Prompt asking for objectives, prerequisites, lessons, and outcomes as JSON."""
    return (
        f'Create a detailed course outline for: "{title}"\n'
        f"Description: {description or 'Not provided'}\n\n"
        "Please provide:\n"
        "1. Course objectives\n"
        "2. Prerequisites\n"
        "3. Lesson structure (at least 5 lessons with titles and brief content)\n"
        "4. Learning outcomes\n\n"
        "Format the response as JSON with this structure:\n"
        "{\n"
        '  "objectives": ["..."],\n'
        '  "prerequisites": ["..."],\n'
        '  "lessons": [{"title": "...", "content": "...", "duration": 30, "order": 1}],\n'
        '  "learningOutcomes": ["..."]\n'
        "}\n"
        "Lesson duration is in minutes."
    )
