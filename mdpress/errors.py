from __future__ import annotations


class BuildError(Exception):
    """Base class for failures that abort the whole build."""


class ConfigError(BuildError):
    pass


class ContentError(BuildError):
    pass


class FrontMatterError(BuildError):
    pass


class TemplateError(BuildError):
    pass


class SlugError(BuildError):
    pass


class DuplicateSlugError(SlugError):
    def __init__(self, slug: str, first: str, second: str):
        super().__init__(f"Duplicate slug '{slug}': {first} and {second} resolve to the same page.")
        self.slug = slug
        self.first = first
        self.second = second
