"""Error types and terminal formatting for xtpl diagnostics."""

from xtpl.environment.exceptions import (
    ErrorCode,
    FormatNotFoundError,
    RenderDepthError,
    SourceSnippet,
    TemplateError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    build_source_snippet,
)

__all__ = [
    "ErrorCode",
    "FormatNotFoundError",
    "RenderDepthError",
    "SourceSnippet",
    "TemplateError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "build_source_snippet",
]
