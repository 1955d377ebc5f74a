"""Tests for the execution and subscription facade."""

import asyncio
import json

import httpx
import pytest
from pydantic import BaseModel, Field

from gql_pyselect.core import (
    GraphQLExecutor,
    ParameterRef,
    ResponseEnvelope,
    SerializeOptions,
    create_schema_type,
    create_selection,
    execute,
    set_graphql_executor,
    set_graphql_subscriber,
    subscribe,
)
from gql_pyselect.core.errors import ExecutorNotConfiguredError, GraphQLError


class CommentInput(BaseModel):
    body: str
    reply_to: str | None = Field(default=None, alias="replyTo")


@pytest.fixture
def recorded():
    """Executor that records calls and answers with a fixed envelope."""
    calls = []

    async def executor(request, variables):
        calls.append((request, variables))
        return {"data": {"post": {"id": "1", "title": "Hello"}}}

    return calls, executor


@pytest.fixture
def reset_default_executor():
    yield
    set_graphql_executor(None)
    set_graphql_subscriber(None)


# =============================================================================
# Request assembly
# =============================================================================


class TestBuildRequest:
    """Tests for GraphQLExecutor.build_request."""

    def test_query_with_variables(self, query):
        request = GraphQLExecutor().build_request(query.post(lambda p: p.id.title), operation_name="GetPost")
        assert request == "query GetPost($id: ID!) {\n  post(id: $id) {\n    id\n    title\n  }\n}\n"

    def test_anonymous_query(self, query):
        assert GraphQLExecutor().build_request(query.version) == "query {\n  version\n}\n"

    def test_operation_type_from_root(self, registry, metadata):
        mutation_type = create_schema_type("Mutation", "OBJECT", [], ["reset"], registry=registry)
        request = GraphQLExecutor().build_request(create_selection(mutation_type, metadata).reset)
        assert request.startswith("mutation {")

    def test_explicit_operation_type(self, query):
        request = GraphQLExecutor().build_request(query.version, "subscription", "OnVersion")
        assert request.startswith("subscription OnVersion {")

    def test_fragments_follow_body(self, query, post):
        request = GraphQLExecutor().build_request(query.post({"id": "1"}, lambda p: p.on(post.id, "PostId")))
        assert request == (
            "query {\n"
            '  post(id: "1") {\n'
            "    ... PostId\n"
            "  }\n"
            "}\n"
            "\n"
            "fragment PostId on Post {\n"
            "  id\n"
            "}\n"
        )

    def test_custom_indent_keeps_header(self, query):
        request = GraphQLExecutor().build_request(
            query.post(lambda p: p.id), operation_name="GetPost", options=SerializeOptions(indent="\t")
        )
        assert request == "query GetPost($id: ID!) {\n\tpost(id: $id) {\n\t\tid\n\t}\n}\n"

    def test_rejects_non_selection(self):
        with pytest.raises(TypeError, match="Expected a selection"):
            GraphQLExecutor().build_request("{ version }")


# =============================================================================
# Execute
# =============================================================================


class TestExecute:
    """Tests for GraphQLExecutor.execute."""

    @pytest.mark.asyncio
    async def test_returns_data(self, query, recorded):
        calls, executor = recorded
        selection = query.post(lambda p: p.id.title)

        data = await GraphQLExecutor(executor).execute(selection, {"id": "1"})

        assert data == {"post": {"id": "1", "title": "Hello"}}
        request, variables = calls[0]
        assert request.startswith("query($id: ID!) {")
        assert variables == {"id": "1"}

    @pytest.mark.asyncio
    async def test_sync_executor(self, query):
        executor = GraphQLExecutor(lambda request, variables: {"data": {"version": "1.0"}})
        assert await executor.execute(query.version) == {"version": "1.0"}

    @pytest.mark.asyncio
    async def test_variables_serialized(self, query, recorded):
        calls, executor = recorded
        variables = {
            "input": CommentInput(body="Nice", replyTo="c1"),
            "inputs": [CommentInput(body="A"), "raw"],
            "skipped": None,
        }
        await GraphQLExecutor(executor).execute(query.version, variables)
        assert calls[0][1] == {
            "input": {"body": "Nice", "replyTo": "c1"},
            "inputs": [{"body": "A"}, "raw"],
        }

    @pytest.mark.asyncio
    async def test_errors_aggregated(self, query):
        async def executor(request, variables):
            return {"data": None, "errors": [{"message": "Not found"}, {"message": "Forbidden"}]}

        with pytest.raises(GraphQLError, match="GraphQL errors: Not found; Forbidden") as exc_info:
            await GraphQLExecutor(executor).execute(query.version)
        assert len(exc_info.value.errors) == 2

    @pytest.mark.asyncio
    async def test_missing_data_is_empty(self, query):
        executor = GraphQLExecutor(lambda request, variables: {"extensions": {"cost": 1}})
        assert await executor.execute(query.version) == {}

    @pytest.mark.asyncio
    async def test_envelope_instance_accepted(self, query):
        executor = GraphQLExecutor(lambda request, variables: ResponseEnvelope(data={"version": "2"}))
        assert await executor.execute(query.version) == {"version": "2"}

    @pytest.mark.asyncio
    async def test_not_configured(self, query):
        with pytest.raises(ExecutorNotConfiguredError):
            await GraphQLExecutor().execute(query.version)

    @pytest.mark.asyncio
    async def test_set_executor(self, query, recorded):
        _, executor = recorded
        graphql = GraphQLExecutor()
        graphql.set_executor(executor)
        assert "post" in await graphql.execute(query.version)

    @pytest.mark.asyncio
    async def test_httpx_transport(self, query):
        """An injected executor posting JSON through httpx."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            seen.append(payload)
            return httpx.Response(200, json={"data": {"search": "found"}})

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as client:
            async def post_json(request, variables):
                response = await client.post("/graphql", json={"query": request, "variables": variables})
                response.raise_for_status()
                return response.json()

            selection = query.search(term=ParameterRef.of("q"))
            data = await GraphQLExecutor(post_json).execute(selection, {"q": "graphql"})

        assert data == {"search": "found"}
        assert seen == [{
            "query": "query($q: String!) {\n  search(term: $q)\n}\n",
            "variables": {"q": "graphql"},
        }]

    @pytest.mark.asyncio
    async def test_module_level_execute(self, query, recorded, reset_default_executor):
        calls, executor = recorded
        set_graphql_executor(executor)
        data = await execute(query.version)
        assert data["post"]["id"] == "1"
        assert calls[0][0] == "query {\n  version\n}\n"


# =============================================================================
# Subscribe
# =============================================================================


class TestSubscribe:
    """Tests for GraphQLExecutor.subscribe."""

    @pytest.mark.asyncio
    async def test_yields_data(self, query):
        requests = []

        async def subscriber(request, variables):
            requests.append(request)
            for tick in range(3):
                yield {"data": {"version": str(tick)}}

        received = [data async for data in GraphQLExecutor(subscriber=subscriber).subscribe(query.version)]

        assert received == [{"version": "0"}, {"version": "1"}, {"version": "2"}]
        assert requests == ["subscription {\n  version\n}\n"]

    @pytest.mark.asyncio
    async def test_early_close_closes_source(self, query):
        closed = []

        async def subscriber(request, variables):
            try:
                tick = 0
                while True:
                    yield {"data": {"version": str(tick)}}
                    tick += 1
            finally:
                closed.append(True)

        stream = GraphQLExecutor(subscriber=subscriber).subscribe(query.version)
        received = []
        async for data in stream:
            received.append(data)
            if len(received) == 2:
                break
        await stream.aclose()

        assert len(received) == 2
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_cancelled_consumer_closes_source(self, query):
        """Cancelling the consuming task while it waits tears the source down."""
        closed = []
        first_received = asyncio.Event()

        class EnvelopeSource:
            def __init__(self):
                self.sent = False

            def __aiter__(self):
                return self

            async def __anext__(self):
                if not self.sent:
                    self.sent = True
                    return {"data": {"version": "0"}}
                await asyncio.Event().wait()

            async def aclose(self):
                closed.append(True)

        received = []

        async def consume():
            async for data in GraphQLExecutor(subscriber=lambda request, variables: EnvelopeSource()).subscribe(
                query.version
            ):
                received.append(data)
                first_received.set()

        task = asyncio.create_task(consume())
        await first_received.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert received == [{"version": "0"}]
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_error_envelope(self, query):
        async def subscriber(request, variables):
            yield {"data": {"version": "0"}}
            yield {"errors": [{"message": "stream reset"}]}

        with pytest.raises(GraphQLError, match="stream reset"):
            [data async for data in GraphQLExecutor(subscriber=subscriber).subscribe(query.version)]

    @pytest.mark.asyncio
    async def test_not_configured(self, query):
        with pytest.raises(ExecutorNotConfiguredError):
            async for _ in GraphQLExecutor().subscribe(query.version):
                pass

    @pytest.mark.asyncio
    async def test_module_level_subscribe(self, query, reset_default_executor):
        async def subscriber(request, variables):
            yield {"data": {"version": "1"}}

        set_graphql_subscriber(subscriber)

        assert [data async for data in subscribe(query.version)] == [{"version": "1"}]
