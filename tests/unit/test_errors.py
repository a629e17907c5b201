"""Unit tests for the error taxonomy."""

from linetrace.errors import (
    EngineError,
    ErrorCategory,
    InputError,
    InternalError,
    NotFoundError,
    ParseError,
    StrictError,
    VcsError,
    wrap_error,
)


class TestEngineError:
    """Test cases for EngineError and its subclasses."""

    def test_categories(self):
        """Test that every subclass reports its own category."""
        assert InputError("x").category == ErrorCategory.INPUT
        assert VcsError("x").category == ErrorCategory.VCS
        assert NotFoundError("a.py", 3).category == ErrorCategory.VCS
        assert ParseError("x").category == ErrorCategory.PARSE
        assert StrictError("x").category == ErrorCategory.STRICT
        assert InternalError("x").category == ErrorCategory.INTERNAL

    def test_none_context_values_are_dropped(self):
        """Test that unset context keys are not recorded."""
        error = StrictError("mismatch", file="a.py", revision=None)
        assert error.context == {"file": "a.py"}

    def test_with_context_keeps_inner_values(self):
        """Test that outer context never overwrites the innermost location."""
        error = StrictError("mismatch", file="inner.py", revision=7)
        error.with_context(file="outer.py", operation="file-pipeline")

        assert error.context == {"file": "inner.py", "revision": 7, "operation": "file-pipeline"}

    def test_to_dict(self):
        """Test the serialized error report."""
        error = ParseError("bad header", file="a.py", operation="raw-diff")
        assert error.to_dict() == {
            "category": "PARSE",
            "message": "bad header",
            "context": {"file": "a.py", "operation": "raw-diff"},
        }

    def test_str_includes_category_and_context(self):
        """Test the human readable rendering."""
        assert str(InputError("bad range")) == "[INPUT] bad range"
        assert str(VcsError("down", revision=4)) == "[VCS] down (revision=4)"

    def test_not_found_carries_location(self):
        """Test NotFoundError attributes."""
        error = NotFoundError("src/a.py", 12)
        assert error.path == "src/a.py"
        assert error.revision == 12
        assert error.context == {"file": "src/a.py", "revision": 12}
        assert isinstance(error, VcsError)


class TestWrapError:
    """Test cases for wrap_error."""

    def test_engine_errors_keep_category(self):
        """Test that engine errors are returned with extra context."""
        original = StrictError("orphan")
        wrapped = wrap_error(original, operation="align", file="a.py")

        assert wrapped is original
        assert wrapped.category == ErrorCategory.STRICT
        assert wrapped.context == {"operation": "align", "file": "a.py"}

    def test_foreign_errors_become_internal(self):
        """Test that unexpected exceptions become InternalError."""
        wrapped = wrap_error(KeyError("x"), operation="reduce")

        assert isinstance(wrapped, InternalError)
        assert isinstance(wrapped, EngineError)
        assert wrapped.context == {"operation": "reduce"}

    def test_foreign_errors_with_explicit_category(self):
        """Test wrapping into a chosen category."""
        wrapped = wrap_error(ValueError(""), VcsError, file="a.py")

        assert isinstance(wrapped, VcsError)
        assert wrapped.message == "ValueError"
