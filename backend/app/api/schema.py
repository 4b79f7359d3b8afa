"""
GraphQL Schema

Strawberry types and resolvers exposed by the `/graphql` endpoint.

Resolvers read two entries from the request context:
- `store`: the `DataStore` handle (posts queries and mutation)
- `flags`: the process `EnvironmentFlags` (server info)

Example query:
--------------
    {
      serverInfo { environment build dataStore }
      posts(limit: 5) { id title createdAt }
    }
"""

from datetime import datetime
from typing import List, Optional

import strawberry
from strawberry.types import Info

from app.core.data_types import PostRecord
from app.data import db_operations


@strawberry.type(description="A published post.")
class Post:
    id: int
    title: str
    body: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: PostRecord) -> "Post":
        return cls(
            id=record["id"],
            title=record["title"],
            body=record["body"],
            created_at=record["created_at"],
        )


@strawberry.type(description="Runtime information about this server process.")
class ServerInfo:
    environment: str
    build: str
    data_store: str


@strawberry.type
class Query:
    @strawberry.field(description="Deployment mode, build mode and data store state.")
    def server_info(self, info: Info) -> ServerInfo:
        flags = info.context["flags"]
        return ServerInfo(
            environment=flags.deployment_mode,
            build=flags.build_mode,
            data_store=info.context["store"].state.value,
        )

    @strawberry.field(description="Most recent posts, newest first.")
    async def posts(self, info: Info, limit: int = 10) -> List[Post]:
        records = await db_operations.list_posts(info.context["store"], limit)
        return [Post.from_record(record) for record in records]

    @strawberry.field
    async def post(self, info: Info, id: int) -> Optional[Post]:
        record = await db_operations.get_post(info.context["store"], id)
        return Post.from_record(record) if record else None


@strawberry.type
class Mutation:
    @strawberry.mutation(description="Creates a post and returns it.")
    async def create_post(self, info: Info, title: str, body: str = "") -> Post:
        record = await db_operations.create_post(info.context["store"], title, body)
        return Post.from_record(record)


schema = strawberry.Schema(query=Query, mutation=Mutation)
