"""
YAMLをデコードした値を、文字列・リスト・マッピングの3種類のノードに変換するモジュール。
抽出処理はisinstanceの連鎖ではなく、このノードのkindで分岐する。
"""
from datetime import date, datetime
from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, Field


class ScalarNode(BaseModel):
    kind: Literal["scalar"] = "scalar"
    value: str | None = None


class ListNode(BaseModel):
    kind: Literal["list"] = "list"
    items: list["DocNode"] = Field(default_factory=list)


class MappingNode(BaseModel):
    kind: Literal["mapping"] = "mapping"
    # YAMLのキー順を保つため、dictではなく(キー, 値)のリストで持つ
    entries: list[tuple[str, "DocNode"]] = Field(default_factory=list)

    def get(self, key: str) -> "DocNode | None":
        for k, v in self.entries:
            if k == key:
                return v
        return None

    def has(self, key: str) -> bool:
        return any(k == key for k, _ in self.entries)

    def keys(self) -> list[str]:
        return [k for k, _ in self.entries]


DocNode = Annotated[Union[ScalarNode, ListNode, MappingNode], Field(discriminator="kind")]

ListNode.model_rebuild()
MappingNode.model_rebuild()


def key_text(key: Any) -> str:
    """
    マッピングのキーを文字列にする。
    YAML 1.1ではクォートなしの`on`が真偽値Trueになるため、Trueは"on"として扱う。
    """
    if key is True:
        return "on"
    if key is False:
        return "off"
    if key is None:
        return "null"
    return str(key)


def scalar_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_node(value: Any) -> ScalarNode | ListNode | MappingNode:
    """PyYAMLのデコード結果をノードに変換する"""
    if isinstance(value, dict):
        return MappingNode(entries=[(key_text(k), to_node(v)) for k, v in value.items()])
    if isinstance(value, (list, tuple)):
        return ListNode(items=[to_node(v) for v in value])
    return ScalarNode(value=scalar_text(value))


def as_text(node: DocNode | None) -> str | None:
    if node is not None and node.kind == "scalar":
        return node.value
    return None


def as_list(node: DocNode | None) -> list[DocNode]:
    if node is not None and node.kind == "list":
        return node.items
    return []


def as_mapping(node: DocNode | None) -> MappingNode | None:
    if node is not None and node.kind == "mapping":
        return node
    return None
