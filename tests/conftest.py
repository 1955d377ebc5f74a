"""Shared fixtures: a small blog schema registered in a private registry."""

import pytest

from gql_pyselect.core import (
    EnumInputMetadataBuilder,
    FieldDescriptor,
    SchemaFieldCategory,
    SchemaRegistry,
    SchemaTypeCategory,
    create_schema_type,
    create_selection,
)


@pytest.fixture
def registry():
    """Blog schema: Query -> Post -> Author, Post -> comments connection."""
    reg = SchemaRegistry()
    create_schema_type("Comment", SchemaTypeCategory.OBJECT, [], [
        FieldDescriptor("id", SchemaFieldCategory.ID),
        "body",
    ], registry=reg)
    create_schema_type("CommentEdge", SchemaTypeCategory.EDGE, [], [
        FieldDescriptor("node", SchemaFieldCategory.REFERENCE, target_type_name="Comment"),
        "cursor",
    ], registry=reg)
    create_schema_type("CommentConnection", SchemaTypeCategory.CONNECTION, [], [
        FieldDescriptor("edges", SchemaFieldCategory.LIST, target_type_name="CommentEdge"),
        "totalCount",
    ], registry=reg)
    create_schema_type("Author", SchemaTypeCategory.OBJECT, [], [
        FieldDescriptor("id", SchemaFieldCategory.ID),
        "name",
        "alias",
        FieldDescriptor("avatar", args={"size": "Int"}, undefinable=True),
    ], registry=reg)
    create_schema_type("Post", SchemaTypeCategory.OBJECT, [], [
        FieldDescriptor("id", SchemaFieldCategory.ID),
        "title",
        "status",
        FieldDescriptor("author", SchemaFieldCategory.REFERENCE, target_type_name="Author"),
        FieldDescriptor(
            "comments",
            SchemaFieldCategory.CONNECTION,
            args={"first": "Int", "after": "String"},
            target_type_name="Comment",
            connection_type_name="CommentConnection",
            edge_type_name="CommentEdge",
        ),
    ], registry=reg)
    create_schema_type("Query", SchemaTypeCategory.OBJECT, [], [
        FieldDescriptor("post", SchemaFieldCategory.REFERENCE, args={"id": "ID!"}, target_type_name="Post"),
        FieldDescriptor(
            "posts",
            SchemaFieldCategory.LIST,
            args={"status": "PostStatus", "filter": "PostFilter", "ids": "[ID!]"},
            target_type_name="Post",
        ),
        FieldDescriptor("search", args={"term": "String!"}),
        "version",
    ], registry=reg)
    return reg


@pytest.fixture
def metadata():
    """Enum/input metadata for the blog schema."""
    return (
        EnumInputMetadataBuilder()
        .add("PostStatus")
        .add("PostFilter", [("status", "PostStatus")])
        .build()
    )


@pytest.fixture
def query(registry, metadata):
    """Empty root selection of Query."""
    return create_selection(registry.require("Query"), metadata, registry=registry)


@pytest.fixture
def post(registry, metadata):
    """Empty root selection of Post."""
    return create_selection(registry.require("Post"), metadata, registry=registry)


@pytest.fixture
def author(registry, metadata):
    """Empty root selection of Author."""
    return create_selection(registry.require("Author"), metadata, registry=registry)
