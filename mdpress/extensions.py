from __future__ import annotations

import html
import re

from markdown.extensions import Extension
from markdown.extensions.toc import render_inner_html, strip_tags
from markdown.treeprocessors import Treeprocessor

HEADING_RE = re.compile(r"^h[1-6]$")
FALLBACK_ID = "section"


class HeadingIdProcessor(Treeprocessor):
    """Gives every heading a unique id, numbering repeats ``intro``, ``intro-1``, ``intro-2``."""

    def __init__(self, md, slugify, separator):
        super().__init__(md)
        self.slugify = slugify
        self.separator = separator

    def unique(self, base, used):
        base = base or FALLBACK_ID
        candidate = base
        count = 0
        while candidate in used:
            count += 1
            candidate = f"{base}{self.separator}{count}"
        used.add(candidate)
        return candidate

    def run(self, root):
        used = {el.get("id") for el in root.iter() if el.get("id")}
        for el in root.iter():
            if not isinstance(el.tag, str) or not HEADING_RE.match(el.tag) or "id" in el.attrib:
                continue
            name = strip_tags(render_inner_html(el, self.md))
            el.set("id", self.unique(self.slugify(html.unescape(name), self.separator), used))


class HeadingIdExtension(Extension):
    def __init__(self, **kwargs):
        self.config = {
            "slugify": [None, "Callable turning heading text into an id"],
            "separator": ["-", "Word separator, also used before the repeat counter"],
        }
        super().__init__(**kwargs)

    def extendMarkdown(self, md):
        processor = HeadingIdProcessor(md, self.getConfig("slugify"), self.getConfig("separator"))
        # Between inline parsing (20) and toc (5); toc keeps ids that already exist.
        md.treeprocessors.register(processor, "heading_ids", 10)
