"""xtpl RenderContext: per-render state kept out of the data object.

Each ``apply``/``apply_out`` call runs inside a RenderContext held in a
ContextVar. It carries the template name, the nesting depth of templates
applied from inside other templates, and the diagnostics collected from
contained evaluations (failed helper expressions, exec bodies and code
blocks that were logged and skipped instead of aborting the render).

Thread Safety:
    ContextVars are thread-local by design. Concurrent renders of the same
    template each see their own RenderContext.

Example:
    with render_context() as ctx:
        html = tpl.apply(values)
    for diagnostic in ctx.diagnostics:
        print(diagnostic.format())

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

from xtpl.environment import terminal


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A contained evaluation failure recorded during a render.

    Attributes:
        template_name: Name of the template whose code failed (may be None)
        source: Template text of the failing expression or statement
        message: ``str()`` of the exception
        error_type: Exception class name
        exception: The exception itself
    """

    template_name: str | None
    source: str
    message: str
    error_type: str
    exception: BaseException | None = field(default=None, compare=False, repr=False)

    def format(self) -> str:
        """One-line human-readable form, colored when the terminal allows."""
        where = terminal.location(self.template_name or "<template>")
        return f"{where}: {self.error_type} in {self.source!r}: {self.message}"


@dataclass
class RenderContext:
    """Per-render state isolated from the data object.

    Attributes:
        template_name: Name of the template being rendered
        depth: Nesting depth of templates applied from inside templates
        max_depth: Maximum allowed depth (runaway recursion guard)
        diagnostics: Contained evaluation failures, shared with child contexts
        template_stack: Names of the enclosing templates, outermost first
    """

    template_name: str | None = None

    # Bounds self-applying templates below the interpreter recursion limit
    depth: int = 0
    max_depth: int = 50

    diagnostics: list[Diagnostic] = field(default_factory=list)
    template_stack: list[str] = field(default_factory=list)

    def record(self, diagnostic: Diagnostic) -> None:
        """Append a contained evaluation failure."""
        self.diagnostics.append(diagnostic)

    def check_depth(self, template_name: str | None) -> None:
        """Raise if applying another template would exceed ``max_depth``.

        Raises:
            RenderDepthError: If depth >= max_depth
        """
        if self.depth >= self.max_depth:
            from xtpl.environment.exceptions import RenderDepthError

            raise RenderDepthError(
                f"Maximum render depth exceeded ({self.max_depth}) "
                f"when applying '{template_name or '<template>'}'",
                template_name=self.template_name,
                suggestion="Check for a template that applies itself: A -> B -> A",
            )

    def child_context(self, template_name: str | None = None) -> RenderContext:
        """Create the context for a template applied from inside this render.

        Shares diagnostics with the parent so the outermost caller sees
        every failure of the whole document.
        """
        stack = self.template_stack.copy()
        if self.template_name:
            stack.append(self.template_name)
        return RenderContext(
            template_name=template_name,
            depth=self.depth + 1,
            max_depth=self.max_depth,
            diagnostics=self.diagnostics,
            template_stack=stack,
        )


# Module-level ContextVar
_render_context: ContextVar[RenderContext | None] = ContextVar(
    "render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Get the current render context (None outside a render)."""
    return _render_context.get()


@contextmanager
def render_context(
    template_name: str | None = None,
    max_depth: int = 50,
) -> Iterator[RenderContext]:
    """Context manager for render-scoped state.

    Renders started inside the block run as children of the yielded
    context, so its ``diagnostics`` collect their contained failures.

    Example:
        with render_context() as ctx:
            tpl.apply({"name": "Don"})
        assert not ctx.diagnostics
    """
    ctx = RenderContext(
        template_name=template_name,
        max_depth=max_depth,
    )
    token: Token[RenderContext | None] = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)


def set_render_context(ctx: RenderContext) -> Token[RenderContext | None]:
    """Set a RenderContext and return the reset token."""
    return _render_context.set(ctx)


def reset_render_context(token: Token[RenderContext | None]) -> None:
    """Reset the render context using a token from set_render_context."""
    _render_context.reset(token)
