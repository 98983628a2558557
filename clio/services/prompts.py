"""Prompt templates for README generation.

Pure data only. The generator fills the placeholders with ``str.format``.
"""

# Lines 1-11 of the task list; the model is asked for each section in order.
README_SECTIONS: tuple[str, ...] = (
    "**Project Title & Description** - Clear, engaging title and description",
    "**Badges** (if requested) - Build status, version, license, etc.",
    "**Table of Contents** (if requested) - Well-organized navigation",
    "**Installation** - Clear setup instructions",
    "**Usage** - Examples and usage patterns",
    "**API Documentation** (if applicable) - Endpoint documentation",
    "**Configuration** - Environment variables, config files",
    "**Contributing** - Guidelines for contributors",
    "**License** - License information",
    "**Changelog** (if applicable) - Recent changes",
    "**Support** - How to get help",
)

README_REQUIREMENTS: str = """\
- Use proper Markdown formatting
- Include code examples with syntax highlighting
- Make it visually appealing and professional
- Ensure all sections are relevant to the actual codebase
- Use emojis sparingly but effectively
- Include practical examples based on the actual file structure
- Make installation and usage instructions specific to this project"""

CUSTOM_INSTRUCTIONS_BLOCK: str = "CUSTOM INSTRUCTIONS:\n{custom_prompt}\n"

README_PROMPT_TEMPLATE: str = """\
You are an expert technical writer specializing in creating comprehensive, professional README.md files for GitHub repositories.

REPOSITORY INFORMATION:
- Name: {name}
- Description: {description}
- Primary Language: {language}
- Topics: {topics}
- File Structure: {structure}
- Key Files: {key_files}

STYLE REQUIREMENTS:
- Style: {style}
- Include Images: {include_images}
- Include Badges: {include_badges}
- Include Table of Contents: {include_toc}

{custom_block}
TASK: Generate a comprehensive README.md file that includes:

{sections}

REQUIREMENTS:
{requirements}

Generate the complete README.md content now:"""
