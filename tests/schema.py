"""Schema built from the test models, shared by the integration tests."""

from graphql import graphql

from tableql import build_schema_sdl
from tests.models import Base

build = build_schema_sdl(Base)
schema = build.executable_schema(exports=True)


async def execute(query: str, db_session, variables=None, context=None):
    """Run ``query`` against the shared schema with ``db_session`` in the context."""
    ctx = {'db_session': db_session}
    ctx.update(context or {})
    return await graphql(schema, query, variable_values=variables, context_value=ctx)
