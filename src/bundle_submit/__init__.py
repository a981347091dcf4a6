"""Submit FHIR bundles to a resource server."""

__version__ = "0.1.0"
