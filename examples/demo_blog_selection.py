#!/usr/bin/env python3
"""Demonstration of chainable GraphQL selections.

This script shows how to:
1. Load a GraphQL schema
2. Build selections with arguments, aliases, directives and fragments
3. Render request text and execute it through an injected executor

Note: This demo doesn't make real API calls - the executor answers from a
canned response.
"""

import asyncio

from gql_pyselect.core import FragmentSpread, GraphQLExecutor, ParameterRef, load_schema

SCHEMA = """
enum PostStatus { DRAFT PUBLISHED }

input PostFilter { status: PostStatus, authorId: ID }

type Author { id: ID! name: String! avatar(size: Int): String }

type Comment { id: ID! body: String }
type CommentEdge { node: Comment! cursor: String! }
type CommentConnection { edges: [CommentEdge!]! totalCount: Int! }

type Post {
  id: ID!
  title: String!
  status: PostStatus!
  author: Author!
  comments(first: Int, after: String): CommentConnection!
}

type Query {
  post(id: ID!): Post
  posts(filter: PostFilter): [Post!]!
}
"""


async def fake_executor(request, variables):
    print("\n   -> executor received variables:", variables)
    return {"data": {"posts": [{"id": "1", "headline": "Hello", "__typename": "Post"}]}}


def main():
    print("=== gql-pyselect Demo ===\n")

    print("1. Loading schema...")
    schema = load_schema(SCHEMA)
    print(f"   {len(schema.registry.names())} selectable types, "
          f"{len(schema.enum_input_metadata)} enum/input types")

    print("\n2. Simple query with a required argument")
    query = schema.query()
    selection = query.post(lambda p: p.id.title.author(lambda a: a.name))
    print(GraphQLExecutor().build_request(selection, operation_name="GetPost"))

    print("3. Aliases, directives, connections and fragments")
    author_fields = FragmentSpread("AuthorFields", schema.selection("Author").id.name.avatar(size=64))
    selection = query.posts(
        {"filter": {"status": "PUBLISHED", "authorId": ParameterRef.of("authorId", "ID")}},
        lambda p: (
            p.id
            .title.alias("headline")
            .status.include(ParameterRef.of("withStatus"))
            .author(lambda a: a.on(author_fields))
            .comments({"first": 3}, lambda c: c.totalCount.edges(lambda e: e.cursor.node(lambda n: n.body)))
        ),
    )
    print(GraphQLExecutor().build_request(selection, operation_name="ListPosts"))

    print("4. Executing through an injected executor")
    executor = GraphQLExecutor(fake_executor)
    data = asyncio.run(executor.execute(selection, {"authorId": "a1", "withStatus": False}))
    print(f"   Result: {data}")


if __name__ == "__main__":
    main()
