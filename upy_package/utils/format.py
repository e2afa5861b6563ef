"""
Terminal formatting of package listings and search results.
"""
import re
from typing import List, Sequence

HIGHLIGHT_COLOR = "\x1b[38;2;82;140;227m"
BOLD = "\x1b[1m"
RESET = "\x1b[0m"


def highlight_pattern(text: str, pattern: str) -> str:
    """Highlight every case-insensitive occurrence of ``pattern`` in ``text``."""
    if not pattern:
        return text
    regex = re.compile(re.escape(pattern), re.IGNORECASE)
    return regex.sub(lambda m: f"{BOLD}{HIGHLIGHT_COLOR}{m.group(0)}{RESET}", text)


def truncate_description(description: str, pattern: str, max_length: int = 80) -> str:
    """
    Cut ``description`` down to ``max_length`` characters centred on the
    first match, marking removed text with ``...``.
    """
    if len(description) <= max_length:
        return description

    index = max(description.lower().find(pattern.lower()), 0)
    start = max(0, index - (max_length - len(pattern)) // 2)
    end = min(len(description), start + max_length - len(pattern))
    truncated = description[start:end]

    if start > 0:
        truncated = f"...{truncated}"
    if end < len(description):
        truncated = f"{truncated}..."
    return truncated


def format_package_list(packages: Sequence) -> str:
    return "\n".join(f"📦 {p.name}" for p in packages)


def format_package_info(package) -> str:
    """Multi-line summary of one package."""
    lines = [f"📦 {package.name}"]
    lines.append(f"🔗 {package.url or package.name}")
    if package.version:
        lines.append(f"🏷️  {package.version}")
    if package.tags:
        lines.append(f"🔖 [{', '.join(package.tags)}]")
    if package.author:
        lines.append(f"👤 {package.author}")
    if package.license:
        lines.append(f"📜 {package.license}")
    if package.required_runtime:
        lines.append(f"🐍 MicroPython {package.required_runtime}")
    if package.docs:
        lines.append(f"📚 {package.docs}")
    if package.description:
        lines.append("")
        lines.append(package.description)
    return "\n".join(lines)


def format_search_results(packages: Sequence, pattern: str) -> str:
    """Render search hits with the matching parts highlighted."""
    if not packages:
        return "🤷 No matching packages found."

    needle = pattern.lower()
    blocks: List[str] = []
    for package in packages:
        lines = [f"📦 {highlight_pattern(package.name, pattern)}"]

        if needle and package.description and needle in package.description.lower():
            snippet = truncate_description(package.description, pattern)
            lines.append(f"📝 {highlight_pattern(snippet, pattern)}")

        matching_tags = [t for t in package.tags if needle and needle in t.lower()]
        if matching_tags:
            tags = ", ".join(highlight_pattern(t, pattern) for t in matching_tags)
            lines.append(f"🔖 [{tags}]")

        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
