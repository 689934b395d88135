"""Convert containers to and from age encrypted bytes.

The plaintext is a JSON document mapping namespaces to objects of
``name: value`` pairs. Keys are sorted and all non-ASCII characters are
escaped, so an unchanged container always serializes to the same bytes.

"""

import json
from typing import TYPE_CHECKING, Optional

import pyrage

from envchain import CorruptContainer, DecryptionError
from envchain.container import Container

if TYPE_CHECKING:
    from envchain.identity import Identity


def serialize(container: Container) -> bytes:
    text = json.dumps(
        container.to_dict(), indent=2, sort_keys=True, ensure_ascii=True
    )
    return (text + "\n").encode("ascii")


def deserialize(plaintext: bytes, source: Optional[str] = None) -> Container:
    source = source or "<memory>"
    try:
        data = json.loads(plaintext.decode("utf-8"))
    except UnicodeDecodeError:
        raise CorruptContainer.from_context(
            source, "content is not valid UTF-8"
        ) from None
    except ValueError as e:
        raise CorruptContainer.from_context(
            source, f"content is not valid JSON ({e})"
        ) from None

    if not isinstance(data, dict):
        raise CorruptContainer.from_context(
            source, "expected an object of namespaces"
        )
    for namespace, entries in data.items():
        if not isinstance(entries, dict):
            raise CorruptContainer.from_context(
                source, f"namespace `{namespace}` is not an object"
            )
        for name, value in entries.items():
            if not isinstance(value, str):
                raise CorruptContainer.from_context(
                    source,
                    f"value of `{namespace}.{name}` is not a string",
                )
    try:
        # Empty namespaces are dropped here.
        return Container.from_dict(data)
    except ValueError as e:
        raise CorruptContainer.from_context(source, str(e)) from None


def encode(container: Container, identity: "Identity") -> bytes:
    return pyrage.encrypt(serialize(container), [identity.recipient])


def decode(
    data: bytes, identity: "Identity", source: Optional[str] = None
) -> Container:
    if not data:
        return Container()
    try:
        plaintext = pyrage.decrypt(data, identity.identities)
    except pyrage.DecryptError as e:
        raise DecryptionError.from_context(
            source or "<memory>", identity, str(e)
        ) from None
    return deserialize(plaintext, source)
