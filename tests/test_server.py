import asyncio

import pytest

from codechunk.server import TOOL_NAMES, build_tool_table, create_server, validate_tool_table


def test_server_registers_exactly_the_known_tools(app_context):
    mcp = create_server(app_context)
    tools = asyncio.run(mcp.list_tools())
    assert sorted(tool.name for tool in tools) == sorted(TOOL_NAMES)
    assert all(tool.description for tool in tools)


def test_missing_tool_is_rejected(app_context):
    table = build_tool_table(app_context)
    del table["keyword_search"]
    with pytest.raises(ValueError, match="keyword_search"):
        validate_tool_table(table)


def test_unknown_tool_is_rejected(app_context):
    table = build_tool_table(app_context)

    def extra() -> dict:
        """Not part of the tool set."""
        return {}

    table["extra"] = extra
    with pytest.raises(ValueError, match="extra"):
        validate_tool_table(table)


def test_tool_without_description_is_rejected(app_context):
    table = build_tool_table(app_context)
    table["list_projects"] = lambda: {}
    with pytest.raises(ValueError, match="list_projects"):
        validate_tool_table(table)


def test_health_check_tool(app_context):
    table = build_tool_table(app_context)
    status = asyncio.run(table["health_check"]())
    assert status["success"] is True
    assert status["components"] == {"server": True, "vector_db": True, "embeddings": True}
