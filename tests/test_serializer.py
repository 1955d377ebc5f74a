"""Tests for rendering selections to request text."""

import json
import logging
from enum import Enum

import pytest
from pydantic import BaseModel, Field

from gql_pyselect.core import FragmentSpread, ParameterRef, SerializeOptions, StringValue, serialize
from gql_pyselect.core.errors import FragmentConflictError, SerializationError, VariableTypeConflictError
from gql_pyselect.core.serializer import is_multi_line


class PostStatus(Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class PostFilterModel(BaseModel):
    status: str | None = None
    title_prefix: str | None = Field(default=None, alias="titlePrefix")


# =============================================================================
# Argument literals
# =============================================================================


class TestLiterals:
    """Tests for argument literal encoding."""

    def test_string_is_quoted(self, query):
        assert str(query.search(term="graphql")) == '{\n  search(term: "graphql")\n}\n'

    def test_string_escaping(self, query):
        assert str(query.search(term='say "hi"')) == '{\n  search(term: "say \\"hi\\"")\n}\n'

    def test_non_ascii_kept(self, query):
        assert 'search(term: "café")' in str(query.search(term="café"))

    def test_string_value_unquoted(self, query):
        assert "search(term: raw)" in str(query.search(term=StringValue("raw", quoted=False)))

    def test_string_value_quoted(self, query):
        assert 'search(term: "42")' in str(query.search(term=StringValue(42)))

    def test_enum_string_is_bare(self, query):
        selection = query.posts({"status": "PUBLISHED"}, lambda p: p.id)
        assert "posts(status: PUBLISHED)" in str(selection)

    def test_python_enum_renders_value(self, query):
        selection = query.posts({"status": PostStatus.DRAFT}, lambda p: p.id)
        assert "posts(status: DRAFT)" in str(selection)

    def test_null_bool_and_numbers(self, author):
        assert "avatar(size: null)" in str(author.avatar(size=None))
        assert "avatar(size: 1.5)" in str(author.avatar(size=1.5))
        assert "avatar(size: true)" in str(author.avatar(size=True))

    def test_input_object_uses_nested_metadata(self, query):
        selection = query.posts({"filter": {"status": "DRAFT"}}, lambda p: p.id)
        assert str(selection) == (
            "{\n"
            "  posts(\n"
            "    filter: {status: DRAFT}\n"
            "  ) {\n"
            "    id\n"
            "  }\n"
            "}\n"
        )

    def test_multi_line_lines_have_no_trailing_space(self, query):
        selection = query.posts({"filter": {"status": "DRAFT"}, "ids": [1, 2, 3]}, lambda p: p.id)
        assert str(selection) == (
            "{\n"
            "  posts(\n"
            "    filter: {status: DRAFT},\n"
            "    ids: [1, 2, 3]\n"
            "  ) {\n"
            "    id\n"
            "  }\n"
            "}\n"
        )

    def test_pydantic_model_literal(self, query):
        """Models are dumped by alias with None fields left out."""
        selection = query.posts({"filter": PostFilterModel(status="DRAFT", titlePrefix="Intro")}, lambda p: p.id)
        assert 'filter: {status: DRAFT, titlePrefix: "Intro"}' in str(selection)
        selection = query.posts({"filter": PostFilterModel(status="DRAFT")}, lambda p: p.id)
        assert "filter: {status: DRAFT}" in str(selection)

    def test_list_literal(self, query):
        selection = query.posts({"ids": ["1", "2"]}, lambda p: p.id)
        assert 'ids: ["1", "2"]' in str(selection)

    def test_unsupported_value(self, query):
        with pytest.raises(SerializationError, match="object"):
            str(query.search(term=object()))

    def test_undeclared_argument_skipped(self, author, caplog):
        with caplog.at_level(logging.WARNING, logger="gql_pyselect.core.serializer"):
            text = str(author.avatar(size=1, shape="round"))
        assert text == "{\n  avatar(size: 1)\n}\n"
        assert "Unexpected argument: shape" in caplog.text

    def test_only_undeclared_arguments(self, author):
        assert str(author.avatar(shape="round")) == "{\n  avatar\n}\n"

    def test_multi_line_arguments(self, post):
        selection = post.title.directive("cost", {"a": 1, "b": 2, "c": 3})
        assert str(selection) == (
            "{\n"
            "  title @cost(\n"
            "    a: 1,\n"
            "    b: 2,\n"
            "    c: 3\n"
            "  )\n"
            "}\n"
        )


class TestIsMultiLine:
    """Tests for the multi-line heuristic."""

    def test_two_scalars_inline(self):
        assert not is_multi_line({"a": 1, "b": 2})

    def test_three_members(self):
        assert is_multi_line({"a": 1, "b": 2, "c": 3})
        assert is_multi_line([1, 2, 3])

    def test_composite_member(self):
        assert is_multi_line({"a": [1]})
        assert is_multi_line({"a": {"b": 1}})

    def test_variable_is_not_composite(self):
        assert not is_multi_line({"a": ParameterRef.of("a"), "b": 1})


# =============================================================================
# Variables
# =============================================================================


class TestVariables:
    """Tests for variable type collection."""

    def test_declared_type_recorded(self, query):
        selection = query.search(term=ParameterRef.of("q"))
        assert str(selection) == "{\n  search(term: $q)\n}\n"
        assert selection.variable_type_map == {"q": "String!"}

    def test_variable_reused_with_same_type(self, query):
        selection = query.search(term=ParameterRef.of("q")).post({"id": ParameterRef.of("id")}, lambda p: p.id)
        assert selection.variable_type_map == {"q": "String!", "id": "ID!"}

    def test_variable_conflict(self, query):
        selection = (
            query.search(term=ParameterRef.of("x"))
            .posts({"status": ParameterRef.of("x")}, lambda p: p.id)
        )
        with pytest.raises(VariableTypeConflictError, match="'x'"):
            str(selection)

    def test_explicit_type_must_match(self, query):
        with pytest.raises(VariableTypeConflictError, match="'Int'"):
            str(query.search(term=ParameterRef.of("term", "Int")))

    def test_nested_variables_collected(self, query):
        selection = query.post(lambda p: p.comments({"first": ParameterRef.of("first")}, lambda c: c.totalCount))
        assert selection.variable_type_map == {"id": "ID!", "first": "Int"}

    def test_variable_inside_input_object(self, query):
        selection = query.posts({"filter": {"status": ParameterRef.of("status", "PostStatus")}}, lambda p: p.id)
        assert "filter: {status: $status}" in str(selection)
        assert selection.variable_type_map == {"status": "PostStatus"}

    def test_untyped_variable_inside_input_object(self, query):
        selection = query.posts({"filter": {"status": ParameterRef.of("status")}}, lambda p: p.id)
        with pytest.raises(SerializationError, match="no declared type"):
            str(selection)

    def test_variable_inside_list_takes_item_type(self, query):
        selection = query.posts({"ids": [ParameterRef.of("first"), "2", ParameterRef.of("last")]}, lambda p: p.id)
        assert 'ids: [$first, "2", $last]' in str(selection)
        assert selection.variable_type_map == {"first": "ID!", "last": "ID!"}

    def test_variable_inside_list_type_conflict(self, query):
        selection = query.posts({"ids": [ParameterRef.of("a", "Int")]}, lambda p: p.id)
        with pytest.raises(VariableTypeConflictError, match="'ID!' vs ParameterRef 'Int'"):
            str(selection)

    def test_directive_variable_needs_type(self, post):
        with pytest.raises(SerializationError, match="no declared type"):
            str(post.title.directive("cached", {"ttl": ParameterRef.of("ttl")}))

    def test_directive_variable_with_type(self, post):
        selection = post.title.directive("cached", {"ttl": ParameterRef.of("ttl", "Int")})
        assert "title @cached(ttl: $ttl)" in str(selection)
        assert selection.variable_type_map == {"ttl": "Int"}


# =============================================================================
# Fragments
# =============================================================================


class TestFragments:
    """Tests for named fragment rendering."""

    def test_fragment_rendered_once(self, query, post):
        fields = FragmentSpread("PostFields", post.id.title)
        selection = query.post(lambda p: p.on(fields)).posts(lambda p: p.on(fields))
        assert str(selection).count("... PostFields") == 2
        assert selection.to_fragment_string() == "fragment PostFields on Post {\n  id\n  title\n}\n"

    def test_equal_selections_do_not_conflict(self, post):
        selection = post.on(post.id, "PostId").on(post.id, "PostId")
        assert selection.to_fragment_string() == "fragment PostId on Post {\n  id\n}\n"

    def test_conflicting_fragments(self, post):
        selection = post.on(post.id, "PostFields").on(post.title, "PostFields")
        with pytest.raises(FragmentConflictError, match="PostFields"):
            str(selection)

    def test_fragment_inside_fragment(self, post, author):
        author_fields = FragmentSpread("AuthorFields", author.id.name)
        selection = post.on(post.id.author(lambda a: a.on(author_fields)), "PostFields")
        assert str(selection) == "{\n  ... PostFields\n}\n"
        assert selection.to_fragment_string() == (
            "fragment PostFields on Post {\n"
            "  id\n"
            "  author {\n"
            "    ... AuthorFields\n"
            "  }\n"
            "}\n"
            "fragment AuthorFields on Author {\n"
            "  id\n"
            "  name\n"
            "}\n"
        )

    def test_fragment_directives(self, post):
        selection = post.on(post.directive("cached").id, "PostId")
        assert selection.to_fragment_string() == "fragment PostId on Post @cached {\n  id\n}\n"

    def test_anonymous_spread_with_directive(self, post):
        selection = post.on(post.directive("defer").title)
        assert str(selection) == "{\n  ... @defer {\n    title\n  }\n}\n"

    def test_inline_spread_with_directive(self, post, author):
        selection = post.on(author.directive("include", {"if": True}).name)
        assert "... on Author @include(if: true) {" in str(selection)


# =============================================================================
# Output
# =============================================================================


class TestOutput:
    """Tests for the serialized result."""

    def test_deterministic(self, query):
        def build():
            return query.post({"id": "1"}, lambda p: p.id.title.author(lambda a: a.id.name))
        assert str(build()) == str(build())

    def test_memoized(self, post):
        selection = post.id
        assert selection.selection_node.serialized() is selection.selection_node.serialized()

    def test_to_json(self, post):
        payload = json.loads(post.id.on(post.title, "PostTitle").to_json())
        assert payload == {
            "text": "{\n  id\n  ... PostTitle\n}\n",
            "fragmentText": "fragment PostTitle on Post {\n  title\n}\n",
            "variableTypeMap": {},
        }

    def test_custom_indent(self, post):
        result = serialize(post.id.author(lambda a: a.name).selection_node, SerializeOptions(indent="\t"))
        assert result.text == "{\n\tid\n\tauthor {\n\t\tname\n\t}\n}\n"
        assert result.fragment_text == ""

    def test_empty_selection(self, post):
        assert str(post) == "{\n}\n"
