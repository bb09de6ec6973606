"""Service layer for business logic."""

from vault.services.object_pipeline import DeleteReport, Download, ObjectPipeline

__all__ = [
    "DeleteReport",
    "Download",
    "ObjectPipeline",
]
