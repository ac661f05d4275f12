from typing import Any, Dict, List, Mapping, Union

from sqlinsight.core.errors import TransformError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import ColumnInfo, ResultSet
from sqlinsight.warehouse.base import RawResult

logger = get_logger(__name__)

# Redshift Data API "Field" members; exactly one is set per cell.
VALUE_FIELDS = ("booleanValue", "longValue", "doubleValue", "stringValue", "blobValue", "arrayValue")


def unwrap_cell(cell: Any) -> Any:
    if cell is None:
        return None
    if not isinstance(cell, Mapping):
        return cell
    if cell.get("isNull"):
        return None

    populated = [key for key in cell if key != "isNull"]
    unknown = [key for key in populated if key not in VALUE_FIELDS]
    if unknown:
        raise TransformError(f"Unknown typed-value field(s): {', '.join(unknown)}")
    if len(populated) != 1:
        raise TransformError(f"Typed value must have exactly one field, got {len(populated)}")

    value = cell[populated[0]]
    if populated[0] == "arrayValue" and isinstance(value, Mapping):
        return _unwrap_array(value)
    return value


def _unwrap_array(array: Mapping[str, Any]) -> List[Any]:
    # ArrayValue nests one typed list: {"longValues": [...]} or {"arrayValues": [{...}]}
    for key, values in array.items():
        if key == "arrayValues":
            return [_unwrap_array(item) for item in values]
        return list(values)
    return []


def _column(meta: Mapping[str, Any], index: int) -> ColumnInfo:
    if not isinstance(meta, Mapping):
        raise TransformError(f"Column {index} metadata is not an object")
    name = meta.get("name") or meta.get("label") or f"column{index}"
    return ColumnInfo(
        name=name,
        type_name=meta.get("typeName") or meta.get("type_name"),
        label=meta.get("label"),
    )


def _coerce(raw: Union[RawResult, Mapping[str, Any], None]) -> RawResult:
    if raw is None:
        return RawResult()
    if isinstance(raw, RawResult):
        return raw
    # Accept both our own keys and the Data API's GetStatementResult keys
    return RawResult(
        columns=raw.get("columns") or raw.get("ColumnMetadata") or raw.get("columnMetadata") or [],
        rows=raw.get("rows") or raw.get("Records") or raw.get("records") or [],
        total_rows=raw.get("total_rows", raw.get("TotalNumRows", raw.get("totalNumRows"))),
    )


class ResultTransformer:
    """Normalize provider rows into a ResultSet of plain values."""

    def transform(self, raw: Union[RawResult, Dict[str, Any], None]) -> ResultSet:
        try:
            payload = _coerce(raw)
        except (TypeError, ValueError, AttributeError) as e:
            raise TransformError(f"Malformed result payload: {e}") from e

        columns = [_column(meta, index) for index, meta in enumerate(payload.columns)]
        width = len(columns)

        records = []
        for row_index, row in enumerate(payload.rows):
            if not isinstance(row, (list, tuple)):
                raise TransformError(f"Row {row_index} is not a list")
            if len(row) != width:
                raise TransformError(
                    f"Row {row_index} has {len(row)} cells but {width} columns were described"
                )
            records.append([unwrap_cell(cell) for cell in row])

        total = payload.total_rows if payload.total_rows is not None else len(records)
        return ResultSet(column_metadata=columns, records=records, total_row_count=total)
