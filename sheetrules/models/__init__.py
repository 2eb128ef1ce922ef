from sheetrules.models.manifest import ContentManifest, ManifestError, RuleDef

__all__ = [
    "ContentManifest",
    "ManifestError",
    "RuleDef",
]
