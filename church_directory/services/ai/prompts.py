"""Prompt templates for church enrichment."""

from church_directory.core.schema import ChurchContext

PROMPT_VERSION = "1.0"

# Website excerpt lengths embedded in each prompt
GENERATION_EXCERPT_CHARS = 2000
COMBINED_EXCERPT_CHARS = 3000
EXTRACTION_EXCERPT_CHARS = 4000


SYSTEM_PROMPT = """You write listings for a church directory. Be factual, warm and concise.

CRITICAL RULES:
1. NEVER invent specific details (names, times, programs) that are not in the provided information
2. Write in the third person
3. When asked for JSON, output ONLY valid JSON with no additional text"""


DESCRIPTION_PROMPT_TEMPLATE = """Write a brief, welcoming 2-3 sentence description for a church directory listing.

{context_section}

The description should be:
- Factual and based on available information
- Welcoming to potential visitors
- Written in third person
- 2-3 sentences maximum

Do not make up specific details that aren't provided. Focus on what makes this church a welcoming place of worship."""


WHAT_TO_EXPECT_PROMPT_TEMPLATE = """Write a helpful "What to Expect" guide for first-time visitors to a church.

{context_section}

Include sections for:
1. Dress code (what's typical)
2. Service format (general structure)
3. Tips for visitors (parking, where to go, etc.)

Keep it practical and welcoming. If specific details aren't available, provide general guidance typical for this type of church. Format with clear section headers."""


COMBINED_PROMPT_TEMPLATE = """Generate content for a church directory listing. Return only valid JSON.

{context_section}

Return JSON with exactly these two fields:
{{
  "description": "A brief, welcoming 2-3 sentence description. Factual, third person, based on available info.",
  "what_to_expect": "A helpful guide for first-time visitors covering: dress code, service format, and tips. Keep practical and welcoming. Use \\n for line breaks between sections."
}}"""


EXTRACTION_PROMPT_TEMPLATE = """Extract structured information from this church website content.

Church: {name}
Website content:
{website_content}

Extract and return as JSON:
{{
  "denomination": "string or null",
  "worship_style": ["array of styles like 'Contemporary', 'Traditional', 'Blended'"] or null,
  "service_times": [{{"day": "Sunday", "time": "9:00 AM", "name": "Early Service"}}] or null,
  "has_kids_ministry": boolean or null,
  "has_youth_group": boolean or null,
  "has_small_groups": boolean or null,
  "pastor_name": "string or null",
  "year_founded": number or null
}}

Only include fields where information is clearly stated. Return null for uncertain fields.
Respond with only valid JSON, no explanation."""


def build_context_section(church: ChurchContext, excerpt_chars: int) -> str:
    """
    Format the listing context shared by the generation prompts.

    Args:
        church: Listing context.
        excerpt_chars: Maximum website excerpt length to include.

    Returns:
        Multi-line context block.
    """
    lines = [
        f"Church: {church.name}",
        f"Location: {church.city}, {church.state}",
    ]
    if church.denomination:
        lines.append(f"Denomination: {church.denomination}")
    if church.website_content:
        lines.append(f"Website excerpt: {church.website_content[:excerpt_chars]}")
    return "\n".join(lines)


def build_description_prompt(church: ChurchContext) -> str:
    return DESCRIPTION_PROMPT_TEMPLATE.format(
        context_section=build_context_section(church, GENERATION_EXCERPT_CHARS)
    )


def build_what_to_expect_prompt(church: ChurchContext) -> str:
    return WHAT_TO_EXPECT_PROMPT_TEMPLATE.format(
        context_section=build_context_section(church, GENERATION_EXCERPT_CHARS)
    )


def build_combined_prompt(church: ChurchContext) -> str:
    return COMBINED_PROMPT_TEMPLATE.format(
        context_section=build_context_section(church, COMBINED_EXCERPT_CHARS)
    )


def build_extraction_prompt(church: ChurchContext, website_content: str) -> str:
    """Build the structured-extraction prompt for a website's cleaned text."""
    return EXTRACTION_PROMPT_TEMPLATE.format(
        name=church.name,
        website_content=website_content[:EXTRACTION_EXCERPT_CHARS],
    )
