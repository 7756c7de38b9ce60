import re
import xml.etree.ElementTree as etree
from urllib.parse import quote

import markdown
from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor

WIKILINK_RE = r'!?\[\[([^\]|]+?)(?:\|([^\]]*?))?\]\]'
_TASK_ITEM_RE = re.compile(r'<li>(<p>)?\[([ xX])\]\s*')

EXTENSIONS = ["fenced_code", "tables", "toc", "sane_lists", "nl2br", "codehilite"]


def resolve_internal_link(link_text: str, file_index) -> str | None:
    """Resolve ``[[link]]`` text to a vault path using the file index.

    Tries an exact path (with or without ``.md``), then the bare file name,
    then a case-insensitive path suffix.
    """
    target = link_text.strip().lstrip("/")
    if not target:
        return None
    with_ext = target if target.lower().endswith(".md") else target + ".md"

    for f in file_index:
        fp = f["filePath"].lstrip("/")
        if fp == target or fp == with_ext or re.sub(r'\.md$', '', fp, flags=re.I) == target:
            return f["filePath"]

    stem = re.sub(r'\.md$', '', target, flags=re.I)
    for f in file_index:
        if f["fileName"] == stem:
            return f["filePath"]

    suffix = "/" + with_ext.lower()
    for f in file_index:
        if ("/" + f["filePath"].lstrip("/")).lower().endswith(suffix):
            return f["filePath"]
    return None


def note_href(path: str) -> str:
    return "/notes/" + quote(path.lstrip("/"))


class WikiLinkProcessor(InlineProcessor):
    """``[[target]]`` / ``[[target|alias]]`` -> note link, or an unresolved span."""

    def __init__(self, pattern, md, file_index=None):
        super().__init__(pattern, md)
        self.file_index = file_index

    def resolve(self, target: str) -> str | None:
        if self.file_index is None:
            return target if "." in target.rsplit("/", 1)[-1] else target + ".md"
        return resolve_internal_link(target, self.file_index)

    def handleMatch(self, m, data):
        target = m.group(1).strip()
        display = (m.group(2) or "").strip() or target
        resolved = self.resolve(target)
        if resolved is None:
            el = etree.Element("span")
            el.set("class", "internal-link unresolved")
        else:
            el = etree.Element("a")
            el.set("href", note_href(resolved))
            el.set("class", "internal-link")
        el.text = display
        return el, m.start(0), m.end(0)


class VaultMarkdown(Extension):
    """Wikilinks, and no raw HTML passthrough: markup in notes is shown as text."""

    def __init__(self, file_index=None, **kwargs):
        self.file_index = file_index
        super().__init__(**kwargs)

    def extendMarkdown(self, md):
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")
        # above "link" so [[...]] is not read as a reference, below "backtick"
        md.inlinePatterns.register(WikiLinkProcessor(WIKILINK_RE, md, self.file_index), "wikilink", 175)


def auto_link_urls(text: str) -> str:
    return re.sub(
        r'(?<!\]\()(?<!\()(?<!<)(https?://[^\s<>\)\]]+)',
        lambda m: f'[{m.group(1)}]({m.group(1)})',
        text,
    )


def interactive_checkboxes(html: str) -> str:

    def replace(m):
        checked = " checked" if m.group(2) in "xX" else ""
        return f'<li>{m.group(1) or ""}<input type="checkbox" data-interactive="true"{checked}> '

    return _TASK_ITEM_RE.sub(replace, html)


def render_markdown(text: str, file_index=None) -> str:
    text = auto_link_urls(text)
    html = markdown.markdown(text, extensions=EXTENSIONS + [VaultMarkdown(file_index)])
    html = interactive_checkboxes(html)
    html = re.sub(
        r'<a href="(https?://[^"]+)"',
        r'<a href="\1" target="_blank" rel="noopener noreferrer"',
        html,
    )
    return html


def render_preview(text: str, file_index=None) -> str:
    return f'<div class="markdown-body">{render_markdown(text, file_index)}</div>'
