"""Exception hierarchy for the AI tool finder."""


class ToolFinderError(Exception):
    """Base class for all tool finder errors."""


class AdapterError(ToolFinderError):
    """External ranking could not produce a usable result."""


class CatalogError(ToolFinderError):
    """Base class for catalog store failures."""


class CatalogIntegrityError(CatalogError):
    """A join row references a tool, category or tag that does not exist."""


class StoreUnavailableError(CatalogError):
    """The backing database could not be reached or queried."""


class DuplicateEntryError(CatalogError):
    """A unique name was inserted twice."""
