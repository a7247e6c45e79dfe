"""Contract event schema and log decoding.

A receipt carries raw logs from every contract touched by the call. Logs are
matched on topic0 (Keccak-256 of the event signature); anything that does not
match a known event, or that fails to decode, is skipped without error.

Only static ABI types are supported (`intN`, `uintN`, `address`, `bool`,
`bytes32`), which covers the capability contract's response-code events.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from core.domain.identifiers import keccak256, to_checksum_address

_WORD = 32


class RawLog(BaseModel):
    """Undecoded log entry as found in an execution receipt."""

    model_config = ConfigDict(frozen=True)

    address: str
    topics: tuple[str, ...] = ()
    data: str = "0x"
    log_index: int = 0


class EventRecord(BaseModel):
    """Decoded log entry."""

    model_config = ConfigDict(frozen=True)

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    address: str
    log_index: int = 0


class EventInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    indexed: bool = False


class EventDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    inputs: tuple[EventInput, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(i.type for i in self.inputs)})"

    @property
    def topic(self) -> str:
        return "0x" + keccak256(self.signature.encode("ascii")).hex()

    def encode(self, *, address: str, values: Sequence[Any], log_index: int = 0) -> RawLog:
        """Build the raw log this event would emit. Used by the sandbox network."""

        if len(values) != len(self.inputs):
            raise ValueError(f"{self.name} takes {len(self.inputs)} values, got {len(values)}")
        topics = [self.topic]
        data = b""
        for spec, value in zip(self.inputs, values):
            word = _encode_word(spec.type, value)
            if spec.indexed:
                topics.append("0x" + word.hex())
            else:
                data += word
        return RawLog(address=address, topics=tuple(topics), data="0x" + data.hex(), log_index=log_index)

    def decode(self, log: RawLog) -> EventRecord:
        indexed = [i for i in self.inputs if i.indexed]
        plain = [i for i in self.inputs if not i.indexed]
        if len(log.topics) != 1 + len(indexed):
            raise ValueError("topic count mismatch")
        data = _hex_bytes(log.data)
        if len(data) < _WORD * len(plain):
            raise ValueError("data too short")

        args: dict[str, Any] = {}
        for spec, topic in zip(indexed, log.topics[1:]):
            args[spec.name] = _decode_word(spec.type, _hex_bytes(topic))
        for pos, spec in enumerate(plain):
            args[spec.name] = _decode_word(spec.type, data[pos * _WORD : (pos + 1) * _WORD])
        return EventRecord(name=self.name, args=args, address=log.address, log_index=log.log_index)


class EventSchema:
    """Known events of a contract, keyed by topic0."""

    def __init__(self, events: Iterable[EventDefinition]) -> None:
        self._by_topic: dict[str, EventDefinition] = {}
        self._by_name: dict[str, EventDefinition] = {}
        for event in events:
            self._by_topic[event.topic] = event
            self._by_name[event.name] = event

    @classmethod
    def from_abi(cls, abi: Iterable[dict[str, Any]]) -> "EventSchema":
        events: list[EventDefinition] = []
        for entry in abi:
            if not isinstance(entry, dict) or entry.get("type") != "event" or entry.get("anonymous"):
                continue
            inputs = tuple(
                EventInput(name=i.get("name") or f"arg{n}", type=i["type"], indexed=bool(i.get("indexed")))
                for n, i in enumerate(entry.get("inputs") or [])
            )
            events.append(EventDefinition(name=entry["name"], inputs=inputs))
        return cls(events)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def event(self, name: str) -> EventDefinition:
        return self._by_name[name]

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def decode_logs(self, logs: Iterable[RawLog]) -> list[EventRecord]:
        """Decode the logs that match this schema, in receipt order."""

        out: list[EventRecord] = []
        for log in logs:
            if not log.topics:
                continue
            definition = self._by_topic.get(log.topics[0].lower())
            if definition is None:
                continue
            try:
                out.append(definition.decode(log))
            except ValueError:
                continue
        return out


def _response_code_event(name: str) -> EventDefinition:
    return EventDefinition(name=name, inputs=(EventInput(name="responseCode", type="int256"),))


RESPONSE_CODE = "ResponseCode"
TOKEN_MINT_COMPLETE = "TokenMintComplete"

DEFAULT_EVENTS = (
    _response_code_event(RESPONSE_CODE),
    _response_code_event(TOKEN_MINT_COMPLETE),
)


def _hex_bytes(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


def _bits(type_name: str, prefix: str) -> int:
    suffix = type_name[len(prefix) :]
    bits = int(suffix) if suffix else 256
    if bits <= 0 or bits > 256 or bits % 8:
        raise ValueError(f"unsupported type {type_name}")
    return bits


def _encode_word(type_name: str, value: Any) -> bytes:
    if type_name.startswith("uint"):
        return int(value).to_bytes(_WORD, "big")
    if type_name.startswith("int"):
        return int(value).to_bytes(_WORD, "big", signed=True)
    if type_name == "address":
        return bytes.fromhex(to_checksum_address(value)[2:]).rjust(_WORD, b"\x00")
    if type_name == "bool":
        return (1 if value else 0).to_bytes(_WORD, "big")
    if type_name == "bytes32":
        return _hex_bytes(value).ljust(_WORD, b"\x00")
    raise ValueError(f"unsupported type {type_name}")


def _decode_word(type_name: str, word: bytes) -> Any:
    if len(word) != _WORD:
        raise ValueError("word must be 32 bytes")
    if type_name.startswith("uint"):
        value = int.from_bytes(word, "big")
        if value >= 2 ** _bits(type_name, "uint"):
            raise ValueError(f"value out of range for {type_name}")
        return value
    if type_name.startswith("int"):
        value = int.from_bytes(word, "big", signed=True)
        bound = 2 ** (_bits(type_name, "int") - 1)
        if not -bound <= value < bound:
            raise ValueError(f"value out of range for {type_name}")
        return value
    if type_name == "address":
        return to_checksum_address(word[-20:].hex())
    if type_name == "bool":
        return int.from_bytes(word, "big") != 0
    if type_name == "bytes32":
        return "0x" + word.hex()
    raise ValueError(f"unsupported type {type_name}")
