"""Protocol Buffer messages for the gRPC and gRPC-Web adapters.

The descriptors are assembled at import time, so no protoc step is needed.
``graphrag.proto`` next to this module is the same schema for external
clients and must be kept in sync with ``_MESSAGES``.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "graphrag"
SERVICE_NAME = f"{PACKAGE}.GraphRAGService"

_F = descriptor_pb2.FieldDescriptorProto

_SCALARS = {
    "string": _F.TYPE_STRING,
    "int32": _F.TYPE_INT32,
    "double": _F.TYPE_DOUBLE,
    "bool": _F.TYPE_BOOL,
}

# message -> [(field, number, type, repeated)]; "map<k,v>" and message names
# are resolved below.
_MESSAGES: dict[str, list[tuple[str, int, str, bool]]] = {
    "GraphQuery": [
        ("query", 1, "string", False),
        ("graph_id", 2, "string", False),
        ("model", 3, "string", False),
        ("max_depth", 4, "int32", False),
        ("node_types", 5, "string", True),
        ("streaming", 6, "bool", False),
        ("compare_baseline", 7, "bool", False),
    ],
    "GraphNode": [
        ("id", 1, "string", False),
        ("label", 2, "string", False),
        ("type", 3, "string", False),
        ("connections", 4, "int32", False),
        ("frequency", 5, "int32", False),
    ],
    "ContextChunk": [
        ("entity_id", 1, "string", False),
        ("description", 2, "string", False),
        ("relevance_score", 3, "double", False),
        ("entity_type", 4, "string", False),
    ],
    "PerformanceMetrics": [
        ("processing_time_ms", 1, "double", False),
        ("context_retrieval_time_ms", 2, "double", False),
        ("generation_time_ms", 3, "double", False),
        ("baseline_generation_time_ms", 4, "double", False),
        ("total_nodes_accessed", 5, "int32", False),
        ("total_edges_traversed", 6, "int32", False),
    ],
    "TokenUsage": [
        ("input", 1, "int32", False),
        ("output", 2, "int32", False),
        ("total", 3, "int32", False),
    ],
    "BaselineAnswer": [
        ("response_text", 1, "string", False),
        ("generation_time_ms", 2, "double", False),
        ("error", 3, "string", False),
    ],
    "GraphRAGResponse": [
        ("query_id", 1, "string", False),
        ("query", 2, "string", False),
        ("graph_id", 3, "string", False),
        ("model", 4, "string", False),
        ("response", 5, "string", False),
        ("context", 6, "ContextChunk", True),
        ("performance", 7, "PerformanceMetrics", False),
        ("timestamp", 8, "string", False),
        ("tokens", 9, "TokenUsage", False),
        ("baseline", 10, "BaselineAnswer", False),
        ("truncated", 11, "bool", False),
    ],
    "ContextRequest": [
        ("query", 1, "string", False),
        ("graph_id", 2, "string", False),
        ("max_context_size", 3, "int32", False),
    ],
    "EntityQuery": [
        ("entity_name", 1, "string", False),
        ("graph_id", 2, "string", False),
        ("max_results", 3, "int32", False),
    ],
    "EntityMatch": [
        ("entity_id", 1, "string", False),
        ("entity_name", 2, "string", False),
        ("entity_type", 3, "string", False),
        ("connections", 4, "int32", False),
        ("frequency", 5, "int32", False),
        ("rank", 6, "int32", False),
    ],
    "EntityResolution": [
        ("matches", 1, "EntityMatch", True),
        ("total_found", 2, "int32", False),
        ("search_time_ms", 3, "double", False),
        ("graph_id", 4, "string", False),
    ],
    "HealthCheckRequest": [
        ("service", 1, "string", False),
    ],
    "HealthCheckResponse": [
        ("status", 1, "string", False),
        ("version", 2, "string", False),
        ("timestamp", 3, "string", False),
        ("services", 4, "map<string,string>", False),
        ("uptime_seconds", 5, "double", False),
        ("backends", 6, "map<string,bool>", False),
    ],
}

# rpc name -> (request, response, server streaming)
METHODS: dict[str, tuple[str, str, bool]] = {
    "QueryGraph": ("GraphQuery", "GraphRAGResponse", False),
    "TraverseGraph": ("GraphQuery", "GraphNode", True),
    "GetContextStream": ("ContextRequest", "ContextChunk", True),
    "ResolveEntities": ("EntityQuery", "EntityResolution", False),
    "HealthCheck": ("HealthCheckRequest", "HealthCheckResponse", False),
}


def _entry_name(field: str) -> str:
    return "".join(part.capitalize() for part in field.split("_")) + "Entry"


def _add_field(msg: descriptor_pb2.DescriptorProto, owner: str, field_def: tuple[str, int, str, bool]) -> None:
    name, number, kind, repeated = field_def
    field = msg.field.add(name=name, number=number)
    field.label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    if kind.startswith("map<"):
        key_kind, value_kind = kind[4:-1].split(",")
        entry = msg.nested_type.add(name=_entry_name(name))
        entry.options.map_entry = True
        entry.field.add(name="key", number=1, type=_SCALARS[key_kind], label=_F.LABEL_OPTIONAL)
        entry.field.add(name="value", number=2, type=_SCALARS[value_kind], label=_F.LABEL_OPTIONAL)
        field.label = _F.LABEL_REPEATED
        field.type = _F.TYPE_MESSAGE
        field.type_name = f".{PACKAGE}.{owner}.{entry.name}"
    elif kind in _SCALARS:
        field.type = _SCALARS[kind]
    else:
        field.type = _F.TYPE_MESSAGE
        field.type_name = f".{PACKAGE}.{kind}"


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(name="graphrag.proto", package=PACKAGE, syntax="proto3")
    for message_name, fields in _MESSAGES.items():
        msg = fdp.message_type.add(name=message_name)
        for field_def in fields:
            _add_field(msg, message_name, field_def)
    service = fdp.service.add(name="GraphRAGService")
    for rpc, (request, response, streaming) in METHODS.items():
        service.method.add(
            name=rpc,
            input_type=f".{PACKAGE}.{request}",
            output_type=f".{PACKAGE}.{response}",
            server_streaming=streaming,
        )
    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(build_file_descriptor().SerializeToString())


def _message(name: str) -> type:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


GraphQuery = _message("GraphQuery")
GraphNode = _message("GraphNode")
ContextChunk = _message("ContextChunk")
PerformanceMetrics = _message("PerformanceMetrics")
TokenUsage = _message("TokenUsage")
BaselineAnswer = _message("BaselineAnswer")
GraphRAGResponse = _message("GraphRAGResponse")
ContextRequest = _message("ContextRequest")
EntityQuery = _message("EntityQuery")
EntityMatch = _message("EntityMatch")
EntityResolution = _message("EntityResolution")
HealthCheckRequest = _message("HealthCheckRequest")
HealthCheckResponse = _message("HealthCheckResponse")

MESSAGE_CLASSES: dict[str, type] = {name: _message(name) for name in _MESSAGES}


def method_path(rpc: str) -> str:
    return f"/{SERVICE_NAME}/{rpc}"
