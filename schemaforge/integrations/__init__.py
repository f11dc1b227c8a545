"""External collaborators: page analysis and AI schema providers."""

from .content_analyzer import (
    ContentAnalyzer,
    AnalyzerError,
    AnalyzerErrorKind,
    UrlCheck,
)
from .providers import (
    SchemaProvider,
    ClaudeSchemaProvider,
    OpenAISchemaProvider,
    ProviderError,
    ProviderErrorKind,
    create_schema_provider,
)

__all__ = [
    # Content analysis
    "ContentAnalyzer",
    "AnalyzerError",
    "AnalyzerErrorKind",
    "UrlCheck",
    # AI providers
    "SchemaProvider",
    "ClaudeSchemaProvider",
    "OpenAISchemaProvider",
    "ProviderError",
    "ProviderErrorKind",
    "create_schema_provider",
]
