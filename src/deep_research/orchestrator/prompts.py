"""
Prompt generation for the planner and the reliability evaluator.

Creates prompts by combining:
- The session's research question
- Accumulated research context (learnings, visited sources, directions)
- Optional user source preferences
"""

from datetime import datetime, timezone


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def planner_system_prompt() -> str:
    return f"""You are an expert research strategist. Today is {_today()}.

You plan web searches for a recursive research process. Each round you see
what has been learned so far and propose the next set of search queries.

Rules:
- Each query must be distinct from the others and from queries already run
- Prefer queries that close gaps, verify uncertain learnings or follow open directions
- Keep queries concise, as a skilled researcher would type them into a search engine
- Attach a short research goal to each query: what it should establish and how to go deeper next
- Propose follow-up directions: questions that later rounds should pursue, with priority 1 (highest) to 5
- If the topic is exhausted, return an empty query list"""


def planner_user_prompt(query: str, context_text: str, breadth: int) -> str:
    context_block = context_text or "No research has been done yet. This is the first round."

    return f"""# Research Question

{query}

---

{context_block}

---

# Your Task

Propose at most {breadth} new search queries for this round, each with a
research goal, plus any follow-up research directions."""


def evaluation_system_prompt() -> str:
    return f"""You are a meticulous source reliability analyst. Today is {_today()}.

Assess how trustworthy and relevant a single web source is for a research query.

Scoring guide:
- 0.9-1.0: primary sources, official documentation, peer-reviewed research, major reputable outlets
- 0.7-0.9: established publications and recognised experts
- 0.4-0.7: general sites with some editorial standard, reasonably sourced blogs
- 0.0-0.4: SEO content farms, anonymous forums, affiliate or marketing pages, unsupported claims

Decide whether the source should be used. Also extract the single most useful
finding the source contributes to the query, in one or two factual sentences
with any concrete numbers, names or dates it gives."""


def evaluation_user_prompt(
    query: str,
    url: str | None,
    domain: str,
    title: str | None,
    published_date: str | None,
    content: str,
    preferences: str | None = None,
) -> str:
    preference_block = ""
    if preferences:
        preference_block = f"""
## Source Preferences

The user asked to avoid sources matching: {preferences}

If this source violates these preferences, set should_use to false and explain
the violation in preference_violation. Otherwise leave preference_violation empty.
"""

    return f"""# Research Query

{query}

## Source

- URL: {url or "unknown"}
- Domain: {domain or "unknown"}
- Title: {title or "untitled"}
- Published: {published_date or "unknown"}
{preference_block}
## Content

{content or "(no content extracted)"}"""
