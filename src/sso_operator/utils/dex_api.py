"""
Wire schema of the Dex gRPC API (``api.Dex`` service).

Only the client management subset used by the operator is described. The
message classes are built at import time from a ``FileDescriptorProto`` in a
private descriptor pool, so no generated ``*_pb2`` modules are needed and the
schema cannot clash with other protobuf users in the process.

Field numbers match Dex's ``api/api.proto``.
"""

import grpc
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "api"
SERVICE = "Dex"

_Field = descriptor_pb2.FieldDescriptorProto

_STRING = _Field.TYPE_STRING
_BOOL = _Field.TYPE_BOOL
_MESSAGE = _Field.TYPE_MESSAGE
_OPTIONAL = _Field.LABEL_OPTIONAL
_REPEATED = _Field.LABEL_REPEATED

# message name -> [(field name, number, type, label, message type name)]
_MESSAGES: dict[str, list[tuple[str, int, int, int, str | None]]] = {
    "Client": [
        ("id", 1, _STRING, _OPTIONAL, None),
        ("secret", 2, _STRING, _OPTIONAL, None),
        ("redirect_uris", 3, _STRING, _REPEATED, None),
        ("trusted_peers", 4, _STRING, _REPEATED, None),
        ("public", 5, _BOOL, _OPTIONAL, None),
        ("name", 6, _STRING, _OPTIONAL, None),
        ("logo_url", 7, _STRING, _OPTIONAL, None),
    ],
    "CreateClientReq": [
        ("client", 1, _MESSAGE, _OPTIONAL, "Client"),
    ],
    "CreateClientResp": [
        ("already_exists", 1, _BOOL, _OPTIONAL, None),
        ("client", 2, _MESSAGE, _OPTIONAL, "Client"),
    ],
    "UpdateClientReq": [
        ("id", 1, _STRING, _OPTIONAL, None),
        ("redirect_uris", 2, _STRING, _REPEATED, None),
        ("trusted_peers", 3, _STRING, _REPEATED, None),
        ("name", 4, _STRING, _OPTIONAL, None),
        ("logo_url", 5, _STRING, _OPTIONAL, None),
    ],
    "UpdateClientResp": [
        ("not_found", 1, _BOOL, _OPTIONAL, None),
    ],
    "DeleteClientReq": [
        ("id", 1, _STRING, _OPTIONAL, None),
    ],
    "DeleteClientResp": [
        ("not_found", 1, _BOOL, _OPTIONAL, None),
    ],
}


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="sso_operator/dex_api.proto", package=PACKAGE, syntax="proto3"
    )
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for field_name, number, field_type, label, type_name in fields:
            field = message.field.add(
                name=field_name, number=number, type=field_type, label=label
            )
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(
        _pool.FindMessageTypeByName(f"{PACKAGE}.{name}")
    )


Client = _message_class("Client")
CreateClientReq = _message_class("CreateClientReq")
CreateClientResp = _message_class("CreateClientResp")
UpdateClientReq = _message_class("UpdateClientReq")
UpdateClientResp = _message_class("UpdateClientResp")
DeleteClientReq = _message_class("DeleteClientReq")
DeleteClientResp = _message_class("DeleteClientResp")


def method_path(method: str) -> str:
    """Full gRPC method path, e.g. ``/api.Dex/CreateClient``."""
    return f"/{PACKAGE}.{SERVICE}/{method}"


class DexStub:
    """Client stub for the client management methods of ``api.Dex``."""

    def __init__(self, channel: grpc.aio.Channel):
        self.CreateClient = channel.unary_unary(
            method_path("CreateClient"),
            request_serializer=CreateClientReq.SerializeToString,
            response_deserializer=CreateClientResp.FromString,
        )
        self.UpdateClient = channel.unary_unary(
            method_path("UpdateClient"),
            request_serializer=UpdateClientReq.SerializeToString,
            response_deserializer=UpdateClientResp.FromString,
        )
        self.DeleteClient = channel.unary_unary(
            method_path("DeleteClient"),
            request_serializer=DeleteClientReq.SerializeToString,
            response_deserializer=DeleteClientResp.FromString,
        )
