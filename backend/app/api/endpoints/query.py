"""
GraphQL Query Endpoint

Builds the strawberry `GraphQLRouter` installed for the `query-endpoint` stage.

- The GraphiQL IDE is served on `GET /graphql` for browsers (`Accept: text/html`).
- JSON responses are pretty-printed when the stage asks for it.
- The data store handle and environment flags are injected into the resolver
  context; the schema never reaches for a global connection.
"""

import json
from typing import Any, Dict

from strawberry.fastapi import GraphQLRouter

from app.api.schema import schema
from app.core.data_types import EnvironmentFlags, Stage
from app.data.connection import DataStore


class PrettyGraphQLRouter(GraphQLRouter):
    """GraphQL router that indents its JSON responses."""

    json_indent = 2

    def encode_json(self, data: object) -> str:
        return json.dumps(data, indent=self.json_indent)


def build_graphql_router(stage: Stage, store: DataStore, flags: EnvironmentFlags) -> GraphQLRouter:
    """
    Creates the router for one `query-endpoint` stage.

    Args:
        stage (Stage): The assembled stage; reads the `graphiql` and `pretty` options.
        store (DataStore): Data store handle passed to resolvers.
        flags (EnvironmentFlags): Process environment flags passed to resolvers.

    Returns:
        GraphQLRouter: Router to include under `stage.path`.
    """

    async def get_context() -> Dict[str, Any]:
        return {"store": store, "flags": flags}

    router_class = PrettyGraphQLRouter if stage.options.get("pretty") else GraphQLRouter
    return router_class(
        schema,
        context_getter=get_context,
        graphql_ide="graphiql" if stage.options.get("graphiql") else None,
    )
