"""GraphQL executor for running finished selections.

Turns a selection into request text plus a variables bundle, hands both to
an injected transport callable and unwraps the response envelope. The
runtime does no HTTP itself and imposes no retry or timeout policy.
"""

import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from .errors import ExecutorNotConfiguredError, GraphQLError
from .selection import unwrap_node
from .serializer import SerializeOptions, serialize

logger = logging.getLogger(__name__)

# (request text, variables) -> response envelope
Executor = Callable[[str, dict[str, Any]], Awaitable[Any]]
# (request text, variables) -> stream of response envelopes
Subscriber = Callable[[str, dict[str, Any]], AsyncIterator[Any]]

OPERATION_TYPES = {
    "Query": "query",
    "Mutation": "mutation",
    "Subscription": "subscription",
}


class ResponseEnvelope(BaseModel):
    """A GraphQL response: ``data`` and/or ``errors``."""
    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] | None = None
    errors: list[dict[str, Any]] | None = None
    extensions: dict[str, Any] | None = None


class GraphQLExecutor:
    """Executes selections through injected transport callables.

    Examples:
        async def post_json(request, variables):
            response = await http.post(url, json={"query": request, "variables": variables})
            return response.json()

        executor = GraphQLExecutor(post_json)
        data = await executor.execute(query.post(lambda p: p.id.title), {"id": "1"})
    """

    def __init__(
        self,
        executor: Executor | None = None,
        subscriber: Subscriber | None = None,
    ):
        """Initialize the executor.

        Args:
            executor: Coroutine function taking (request, variables) and
                returning a response envelope
            subscriber: Function taking (request, variables) and returning an
                async iterator of response envelopes
        """
        self._executor = executor
        self._subscriber = subscriber

    def set_executor(self, executor: Executor | None):
        self._executor = executor

    def set_subscriber(self, subscriber: Subscriber | None):
        self._subscriber = subscriber

    def build_request(
        self,
        selection: Any,
        operation_type: str | None = None,
        operation_name: str | None = None,
        options: SerializeOptions | None = None,
    ) -> str:
        """Build the complete request text for a selection.

        Args:
            selection: A root selection (``Selection`` or ``SelectionNode``)
            operation_type: 'query', 'mutation' or 'subscription'; inferred
                from the root type name when omitted
            operation_name: Optional operation name
            options: Formatting options; the memoized default rendering
                is used when omitted

        Returns:
            Operation header, body and named fragments
        """
        node = unwrap_node(selection)
        if operation_type is None:
            operation_type = OPERATION_TYPES.get(node.schema_type.name, "query")

        result = node.serialized() if options is None else serialize(node, options)
        header = operation_type
        if operation_name:
            header = f"{header} {operation_name}"
        if result.variable_type_map:
            decls = ", ".join(f"${name}: {type_name}" for name, type_name in result.variable_type_map.items())
            header = f"{header}({decls})"

        request = f"{header} {result.text}"
        if result.fragment_text:
            request = f"{request}\n{result.fragment_text}"
        logger.debug("Built %s request for %s", operation_type, node.schema_type.name)
        return request

    async def execute(
        self,
        selection: Any,
        variables: Mapping[str, Any] | None = None,
        *,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Execute a selection.

        Args:
            selection: The root selection
            variables: Values for the selection's variables

        Returns:
            The 'data' portion of the response

        Raises:
            GraphQLError: If the response contains errors
            ExecutorNotConfiguredError: If no executor was injected
        """
        if self._executor is None:
            raise ExecutorNotConfiguredError("No GraphQL executor configured")

        request = self.build_request(selection, operation_name=operation_name)
        result = self._executor(request, self._serialize_variables(variables))
        if inspect.isawaitable(result):
            result = await result
        return self._unwrap(result)

    async def subscribe(
        self,
        selection: Any,
        variables: Mapping[str, Any] | None = None,
        *,
        operation_name: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Subscribe to a selection, yielding the 'data' of every envelope.

        Closing or cancelling the returned iterator closes the source.

        Raises:
            GraphQLError: If an envelope contains errors
            ExecutorNotConfiguredError: If no subscriber was injected
        """
        if self._subscriber is None:
            raise ExecutorNotConfiguredError("No GraphQL subscriber configured")

        request = self.build_request(selection, "subscription", operation_name)
        source = self._subscriber(request, self._serialize_variables(variables))
        try:
            async for envelope in source:
                yield self._unwrap(envelope)
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    def _unwrap(self, envelope: Any) -> dict[str, Any]:
        if isinstance(envelope, ResponseEnvelope):
            response = envelope
        else:
            response = ResponseEnvelope.model_validate(envelope)

        if response.errors:
            error_messages = "; ".join(e.get("message", str(e)) for e in response.errors)
            raise GraphQLError(f"GraphQL errors: {error_messages}", response.errors)

        return response.data or {}

    def _serialize_variables(self, variables: Mapping[str, Any] | None) -> dict[str, Any]:
        """Serialize variables for the GraphQL request.

        Handles Pydantic models by converting them to dicts.
        """
        result = {}
        for key, value in (variables or {}).items():
            if value is None:
                continue  # Skip None values
            if isinstance(value, BaseModel):
                result[key] = value.model_dump(by_alias=True, exclude_none=True)
            elif isinstance(value, list):
                result[key] = [
                    v.model_dump(by_alias=True, exclude_none=True) if isinstance(v, BaseModel) else v
                    for v in value
                ]
            else:
                result[key] = value
        return result


default_executor = GraphQLExecutor()


def set_graphql_executor(executor: Executor | None):
    """Install the transport used by the module-level ``execute``."""
    default_executor.set_executor(executor)


def set_graphql_subscriber(subscriber: Subscriber | None):
    """Install the transport used by the module-level ``subscribe``."""
    default_executor.set_subscriber(subscriber)


async def execute(selection: Any, variables: Mapping[str, Any] | None = None, **kwargs: Any) -> dict[str, Any]:
    return await default_executor.execute(selection, variables, **kwargs)


def subscribe(selection: Any, variables: Mapping[str, Any] | None = None, **kwargs: Any) -> AsyncIterator[dict[str, Any]]:
    return default_executor.subscribe(selection, variables, **kwargs)
