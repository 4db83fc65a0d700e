"""xtpl XTemplate: a template compiled lazily to a Python render function.

Construction only stores the source and configuration. The first
``apply``/``apply_out`` compiles the source to an ``ast.Module``, executes
it once and keeps the resulting ``render`` function; later renders reuse it.

StringBuilder Pattern:
    Generated code appends to the caller's output list::

        def render(this, out, values, parent, xindex, xcount):
            _append = out.append
            _append("Name: ")
            _v = _lookup(values, "name")
            if _v is not None and _v is not _UNDEFINED:
                _append(_str(_v))

Thread-Safety:
    - Compilation happens at most once per template, under a lock
    - ``render`` keeps all per-call state in locals and the output list
    - Multiple threads can apply the same template simultaneously

"""

from __future__ import annotations

import ast
import logging
import threading
import types
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from xtpl.compiler import Compiler
from xtpl.environment.exceptions import (
    ErrorCode,
    TemplateError,
    TemplateRuntimeError,
    TemplateSyntaxError,
)
from xtpl.render_context import (
    RenderContext,
    get_render_context,
    reset_render_context,
    set_render_context,
)
from xtpl.template.helpers import EMPTY

if TYPE_CHECKING:
    from xtpl.formats import FormatLibrary

logger = logging.getLogger(__name__)

Renderer = Callable[[Any, list[Any], Any, Any, int, int], None]


class XTemplate:
    """Template with logic directives, compiled on first use.

    Args:
        *fragments: Source text, given as one or more strings (concatenated)
            or a single list of strings. A trailing mapping is read as
            configuration, like keyword arguments.
        name: Template name used in logs and error messages
        disable_formats: Ignore ``:format`` suffixes on tags
        definitions: Python code (str or list of str) run once at module
            level of the generated code; names it defines are visible to
            every expression in the template
        formats: FormatLibrary (or mapping of name -> function) backing
            ``{value:format}`` tags
        max_depth: Nesting limit for templates applied from inside templates
        **members: Any other keyword becomes a template member. Callables are
            bound as methods (reachable as ``this.name(...)`` and
            ``{value:this.name}``), other values become attributes.

    Example:
        >>> tpl = XTemplate(
        ...     '<tpl for="kids">{#}:{name} </tpl>',
        ...     name="kids",
        ... )
        >>> tpl.apply({"kids": [{"name": "a"}, {"name": "b"}]})
        '1:a 2:b '

    """

    def __init__(self, *fragments: Any, **config: Any):
        if len(fragments) == 1 and isinstance(fragments[0], (list, tuple)):
            fragments = tuple(fragments[0])
        parts: list[str] = []
        for fragment in fragments:
            if isinstance(fragment, Mapping):
                config = {**fragment, **config}
            elif isinstance(fragment, str):
                parts.append(fragment)
            else:
                raise TypeError(
                    f"XTemplate fragments must be strings, got {type(fragment).__name__}"
                )

        self._source = "".join(parts)
        self.name: str | None = config.pop("name", None)
        self.disable_formats = bool(config.pop("disable_formats", False))
        self.definitions = _definitions(config.pop("definitions", ()))
        self.formats = _library(config.pop("formats", None))
        self.max_depth = int(config.pop("max_depth", 50))

        for key, value in config.items():
            if hasattr(type(self), key):
                raise ValueError(f"Template member {key!r} would shadow XTemplate.{key}")
            if callable(value) and not isinstance(value, type):
                value = types.MethodType(value, self)
            setattr(self, key, value)

        self._renderer: Renderer | None = None
        self._lock = threading.Lock()

    # ─────────────────────────────────────────────────────────────────────────
    # Source and compilation
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def source(self) -> str:
        return self._source

    def set(self, source: str) -> XTemplate:
        """Replace the source; the next render recompiles."""
        with self._lock:
            self._source = source
            self._renderer = None
        return self

    def compile(self) -> XTemplate:
        """No-op kept for API familiarity; compilation is lazy and automatic."""
        return self

    @property
    def is_compiled(self) -> bool:
        return self._renderer is not None

    @property
    def renderer(self) -> Renderer:
        """The compiled render function, compiling on first access.

        Raises:
            TemplateSyntaxError: If the source cannot be compiled.
        """
        renderer = self._renderer
        if renderer is None:
            with self._lock:
                renderer = self._renderer
                if renderer is None:
                    renderer = self._renderer = self._build()
        return renderer

    def _compiler(self) -> Compiler:
        return Compiler(
            self.name,
            disable_formats=self.disable_formats,
            definitions=self.definitions,
        )

    def _build(self) -> Renderer:
        compiler = self._compiler()
        code = compiler.compile(self._source)
        namespace = Compiler.namespace(self.formats)
        try:
            exec(code, namespace)
        except Exception as e:
            raise TemplateSyntaxError(
                f"Template definitions failed: {type(e).__name__}: {e}",
                name=self.name,
                code=ErrorCode.INVALID_DEFINITIONS,
            ) from e
        logger.debug("Compiled template %s", self.name or "<template>")
        return namespace["render"]

    @property
    def code(self) -> str:
        """Python source of the generated module (for debugging)."""
        return ast.unparse(self._compiler().generate(self._source))

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def apply(self, values: Any, parent: Any = None) -> str:
        """Render ``values`` and return the text.

        Example:
            >>> XTemplate("Name: {name}").apply({"name": "Don"})
            'Name: Don'
        """
        return "".join(self.apply_out(values, [], parent))

    apply_template = apply

    def apply_out(self, values: Any, out: list[Any], parent: Any = None) -> list[Any]:
        """Render ``values`` by appending text pieces to ``out``; return ``out``.

        Raises:
            TemplateSyntaxError: On the first call, if the source cannot be
                compiled.
            RenderDepthError: If templates applied from inside templates
                nest deeper than ``max_depth``.
            TemplateRuntimeError: If the render fails outside any contained
                evaluation.
        """
        renderer = self.renderer
        outer = get_render_context()
        if outer is None:
            ctx = RenderContext(template_name=self.name, max_depth=self.max_depth)
        else:
            outer.check_depth(self.name)
            ctx = outer.child_context(self.name)

        token = set_render_context(ctx)
        try:
            renderer(self, out, values, EMPTY if parent is None else parent, 1, 1)
        except TemplateError:
            raise
        except Exception as e:
            raise self._enhance_error(e, values) from e
        finally:
            reset_render_context(token)
        return out

    def _enhance_error(self, error: Exception, values: Any) -> TemplateRuntimeError:
        """Convert an uncontained exception into a TemplateRuntimeError."""
        message = str(error).strip() or f"{type(error).__name__} (no details available)"
        shown = {"values": values} if values is not None else None
        return TemplateRuntimeError(
            f"{type(error).__name__}: {message}",
            values=shown,
            template_name=self.name,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Class-level templates
    # ─────────────────────────────────────────────────────────────────────────

    @classmethod
    def get_tpl(cls, instance: Any, name: str) -> XTemplate | None:
        """Resolve a template stored under ``name`` on ``instance`` or its class.

        The stored value may already be an XTemplate, or a source string,
        a list of fragments, or a mapping of configuration with a
        ``source`` key. It is turned into an XTemplate once and written back
        where it was found (the instance, or the class that defined it), so
        every instance sharing a class-level template shares one compiled
        renderer.

        Example:
            >>> class Card:
            ...     tpl = "<b>{title}</b>"
            >>> XTemplate.get_tpl(Card(), "tpl") is XTemplate.get_tpl(Card(), "tpl")
            True
        """
        value = getattr(instance, name, None)
        if value is None or isinstance(value, XTemplate):
            return value

        tpl = cls._from_config(value)
        if name in getattr(instance, "__dict__", {}):
            setattr(instance, name, tpl)
        else:
            owner = next(
                (klass for klass in type(instance).__mro__ if name in vars(klass)),
                None,
            )
            if owner is not None:
                setattr(owner, name, tpl)
        return tpl

    @classmethod
    def _from_config(cls, value: Any) -> XTemplate:
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, Sequence):
            return cls(list(value))
        if isinstance(value, Mapping):
            config = dict(value)
            source = config.pop("source", "")
            if isinstance(source, str):
                return cls(source, **config)
            return cls(list(source), **config)
        raise TypeError(f"Cannot build an XTemplate from {type(value).__name__}")

    def __repr__(self) -> str:
        return f"<XTemplate {self.name or '(inline)'!s}>"


def _definitions(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise TypeError("definitions must be a string or a list of strings")


def _library(value: Any) -> FormatLibrary:
    from xtpl.formats import FormatLibrary
    from xtpl.formats import formats as shared

    if value is None:
        return shared
    if isinstance(value, FormatLibrary):
        return value
    if isinstance(value, Mapping):
        library = shared.copy()
        library.update(value)
        return library
    raise TypeError(f"formats must be a FormatLibrary or a mapping, got {type(value).__name__}")
