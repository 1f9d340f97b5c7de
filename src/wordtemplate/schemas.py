"""Pydantic models for render requests."""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OperationsConfig(BaseModel):
    """Operations applied around template expansion.

    Accepts the camelCase keys used by API payloads as well as snake_case.
    ``repeat_table_header`` left unset behaves like ``False``. ``computed``
    and ``conditional_blocks`` change the data before expansion; the table
    flags change ``word/document.xml`` after it.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    table_page_breaking: bool = Field(default=False, alias="tablePageBreaking")
    long_table_split: bool = Field(default=False, alias="longTableSplit")
    repeat_table_header: Optional[bool] = Field(default=None, alias="repeatTableHeader")
    computed: Dict[str, str] = Field(default_factory=dict)
    conditional_blocks: Dict[str, bool] = Field(default_factory=dict, alias="conditionalBlocks")


OperationsInput = Union[OperationsConfig, Dict[str, Any], None]


def coerce_operations(config: OperationsInput) -> OperationsConfig:
    """Missing config means defaults: no page breaks, header markers stripped."""
    if config is None:
        return OperationsConfig()
    if isinstance(config, OperationsConfig):
        return config
    return OperationsConfig.model_validate(config)


class RenderOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: Dict[str, Any] = Field(default_factory=dict)
    operations: Optional[OperationsConfig] = None
