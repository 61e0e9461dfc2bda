"""Export of stored notes to Markdown and standalone HTML documents."""

import html
import re
from datetime import date, datetime
from typing import Optional, Union

EXPORT_FORMATS = ("markdown", "html")

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, sans-serif;
      max-width: 800px;
      margin: 0 auto;
      padding: 2rem;
      line-height: 1.6;
    }}
    h1 {{ color: #1a1a1a; margin-bottom: 0.5rem; }}
    .date {{ color: #6b7280; margin-bottom: 2rem; }}
    .content {{ color: #374151; }}
    @media print {{
      body {{ margin: 1cm; }}
    }}
  </style>
</head>
<body>
  <h1>{title}</h1>
  <p class="date">{date}</p>
  <div class="content">{content}</div>
</body>
</html>
"""

# Tags the generator may emit that Markdown has no syntax for; kept as inline HTML.
_INLINE_HTML_TAGS = ("math", "sup", "sub")


def safe_filename(title: str, extension: str) -> str:
    """Filesystem-safe download name derived from a note title."""
    stem = re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE) or "note"
    return f"{stem}.{extension}"


def format_display_date(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def strip_tags(notes_html: str) -> str:
    """Plain text of an HTML fragment."""
    return html.unescape(re.sub(r"<[^>]*>", "", notes_html))


def html_to_markdown(notes_html: str) -> str:
    """
    Convert generated lecture notes HTML to Markdown.

    Handles the tag subset the generator is restricted to. MathML and
    superscript/subscript markup stay as inline HTML.
    """
    text = notes_html
    text = re.sub(r"<h1[^>]*>(.*?)</h1>", r"\n# \1\n", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<h2[^>]*>(.*?)</h2>", r"\n## \1\n", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<h3[^>]*>(.*?)</h3>", r"\n### \1\n", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<li[^>]*>(.*?)</li>", r"\n- \1", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"</?ul[^>]*>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<p[^>]*>(.*?)</p>", r"\n\1\n", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)

    keep = "|".join(_INLINE_HTML_TAGS)
    text = re.sub(rf"<(?!/?(?:{keep})\b)[^>]*>", "", text, flags=re.IGNORECASE)

    # Blocks only need a single blank line between them.
    lines = [line.strip() for line in html.unescape(text).splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip() + "\n"


def note_to_markdown(
    title: str,
    notes_html: str,
    lecture_date: Optional[date] = None,
    lecture_url: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> str:
    """Markdown document with YAML frontmatter for a note."""
    lines = ["---"]
    # Quote title to handle special YAML characters like colons
    lines.append(f'title: "{title.replace(chr(34), chr(92)+chr(34))}"')
    if lecture_date:
        lines.append(f"date: {lecture_date.isoformat()}")
    elif created_at:
        lines.append(f"date: {created_at.strftime('%Y-%m-%d')}")
    if lecture_url:
        lines.append(f"source: {lecture_url}")
    lines.append("---")
    lines.append("")
    lines.append(html_to_markdown(notes_html))
    return "\n".join(lines)


def note_to_html(
    title: str,
    notes_html: str,
    lecture_date: Optional[date] = None,
    created_at: Optional[datetime] = None,
) -> str:
    """Standalone, printable HTML document for a note."""
    return HTML_TEMPLATE.format(
        title=html.escape(title),
        date=format_display_date(lecture_date or created_at),
        content=notes_html,
    )
