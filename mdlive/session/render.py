"""Default markdown renderer."""

from markdown_it import MarkdownIt


def create_markdown_parser() -> MarkdownIt:
    """CommonMark parser with GitHub-style tables and strikethrough."""
    return MarkdownIt("commonmark").enable(["table", "strikethrough"])


_parser = create_markdown_parser()


def render_markdown(text: str) -> str:
    """Render markdown source to an HTML fragment."""
    return _parser.render(text)
