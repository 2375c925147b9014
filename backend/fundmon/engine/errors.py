from typing import Optional


class EngineError(Exception):
    """Base class for position engine errors."""


class ClassificationGapError(EngineError):
    """A position matched no rule of a taxonomy."""

    def __init__(self, taxonomy: str, project_id: str, asset_class: Optional[str] = None):
        self.taxonomy = taxonomy
        self.project_id = project_id
        self.asset_class = asset_class
        where = project_id if asset_class is None else f"{project_id}/{asset_class}"
        super().__init__(f"No {taxonomy} rule matched position {where}")


class UnknownTaxonomyError(EngineError, ValueError):
    """Raised for a taxonomy selector the engine does not know."""
