import json

import pytest

from metatag_backend.features.metadata import MetadataWriterService
from metatag_backend.server import MetaTagServer


@pytest.fixture
def server(fake_exiftool):
    writer = MetadataWriterService(fake_exiftool, timeout_ms=5000, check_permissions=False)
    return MetaTagServer(writer, shutdown_timeout_s=1.0)


def test_registers_single_write_tool(server):
    assert [t.name for t in server.tools] == ["writeImageMetadata"]
    schema = server.tools[0].inputSchema
    assert schema["required"] == ["filePath", "metadata"]
    assert schema["properties"]["metadata"]["properties"]["tags"]["maxItems"] == 50
    assert server.server.name == "MetaTagGenie"


@pytest.mark.asyncio
async def test_dispatch_returns_json_response(server, fake_exiftool, image_file):
    path = image_file("a.jpg")
    content = await server.dispatch("writeImageMetadata", {"filePath": path, "metadata": {"tags": ["Vacation"]}})
    assert len(content) == 1
    assert content[0].type == "text"
    payload = json.loads(content[0].text)
    assert payload["success"] is True
    assert payload["message"] == "Metadata successfully written to JPG image."
    assert fake_exiftool.store[path]["Subject"] == ["Vacation"]


@pytest.mark.asyncio
async def test_dispatch_unknown_tool(server):
    content = await server.dispatch("deleteEverything", {})
    payload = json.loads(content[0].text)
    assert payload["success"] is False
    assert payload["errorCode"] == -32603
    assert payload["errorData"]["errorMessage"] == "Unknown tool: deleteEverything"


@pytest.mark.asyncio
async def test_dispatch_failure_is_a_response_not_an_exception(server):
    content = await server.dispatch("writeImageMetadata", {"filePath": "rel.jpg", "metadata": {}})
    payload = json.loads(content[0].text)
    assert payload["success"] is False
    assert payload["errorCode"] == -32010


@pytest.mark.asyncio
async def test_close_releases_writer(server, fake_exiftool):
    await server.close()
    await server.close()
    assert fake_exiftool.end_calls == 1
