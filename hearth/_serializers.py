import base64
import json
import typing as tp

import msgpack

from hearth._models import CachedResponse

__all__ = ("BaseSerializer", "JSONSerializer", "MsgpackSerializer")

StoredEntry = tp.Tuple[str, CachedResponse]


class BaseSerializer:
    def dumps(self, url: str, response: CachedResponse) -> tp.Union[str, bytes]:
        raise NotImplementedError()

    def loads(self, data: tp.Union[str, bytes]) -> StoredEntry:
        raise NotImplementedError()

    @property
    def is_binary(self) -> bool:
        raise NotImplementedError()


class JSONSerializer(BaseSerializer):
    """A simple json-based serializer."""

    def dumps(self, url: str, response: CachedResponse) -> tp.Union[str, bytes]:
        """
        Dumps the stored response together with the URL it is stored under.

        :param url: Cache key of the entry
        :type url: str
        :param response: The stored response
        :type response: CachedResponse
        :return: Serialized entry
        :rtype: tp.Union[str, bytes]
        """
        full_json = {
            "url": url,
            "response": {
                "status": response.status_code,
                "headers": [[key, value] for key, value in response.headers],
                "content": base64.b64encode(response.content).decode("ascii"),
                "extensions": dict(response.extensions),
            },
        }
        return json.dumps(full_json, indent=4)

    def loads(self, data: tp.Union[str, bytes]) -> StoredEntry:
        """
        Loads the stored response and its URL from serialized data.

        :param data: Serialized data
        :type data: tp.Union[str, bytes]
        :return: The URL and the stored response
        :rtype: tp.Tuple[str, CachedResponse]
        """
        full_json = json.loads(data)
        response_dict = full_json["response"]
        response = CachedResponse(
            status_code=response_dict["status"],
            headers=[(key, value) for key, value in response_dict["headers"]],
            content=base64.b64decode(response_dict["content"].encode("ascii")),
            extensions=dict(response_dict["extensions"]),
        )
        return full_json["url"], response

    @property
    def is_binary(self) -> bool:
        return False


class MsgpackSerializer(BaseSerializer):
    """Compact binary serializer, the default for the SQLite storage."""

    def dumps(self, url: str, response: CachedResponse) -> tp.Union[str, bytes]:
        return tp.cast(
            bytes,
            msgpack.packb(
                {
                    "url": url,
                    "status": response.status_code,
                    "headers": [[key, value] for key, value in response.headers],
                    "content": response.content,
                    "extensions": dict(response.extensions),
                },
                use_bin_type=True,
            ),
        )

    def loads(self, data: tp.Union[str, bytes]) -> StoredEntry:
        assert isinstance(data, bytes)
        unpacked = msgpack.unpackb(data, raw=False)
        response = CachedResponse(
            status_code=unpacked["status"],
            headers=[(key, value) for key, value in unpacked["headers"]],
            content=unpacked["content"],
            extensions=dict(unpacked["extensions"]),
        )
        return unpacked["url"], response

    @property
    def is_binary(self) -> bool:
        return True
