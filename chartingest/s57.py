"""Reading chart metadata and features from S-57 datasets.

The chart file itself is decoded by an *opener*: a callable taking the file
path and returning a dataset object. The dataset must provide
``layer_names()`` and ``get_layer(name)``. ``get_layer`` returns an iterable
of raw features, or ``None`` when the layer is absent. It may also provide
``close()``.

Each raw feature exposes ``fields`` and ``geometry``. ``fields`` maps field
names to values, with ``None`` for unset or null fields. ``geometry`` is a
GeoJSON mapping in WGS84 longitude/latitude order, or ``None``.

An opener signals a file it cannot read by raising :class:`ChartOpenError`
(or any :class:`OSError`) or by returning ``None``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any, Optional, Protocol

from chartingest.jsonutil import to_json_object
from chartingest.models import EXCLUDED_LAYERS, ChartInfo, Feature
from chartingest.zfinder import calculate_z_range, find_zoom

_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


class ChartOpenError(OSError):
    """Raised by an opener when a chart file cannot be opened."""


class _RawFeature(Protocol):
    fields: Mapping[str, Any]
    geometry: Optional[Any]


class _ChartDataset(Protocol):
    def layer_names(self) -> Iterable[str]: ...

    def get_layer(self, name: str) -> Optional[Iterable[_RawFeature]]: ...


Opener = Callable[[str], Optional[_ChartDataset]]


def is_excluded_layer(layer_name: str) -> bool:
    """Return True for layers that hold metadata or topology, not features."""
    return layer_name in EXCLUDED_LAYERS


def _field_as_string(value: Any) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float):
        return format(value, ".15g")
    if isinstance(value, (list, tuple)):
        items = ",".join(_field_as_string(item) for item in value)
        return f"({len(value)}:{items})"
    return str(value)


def extract_properties(fields: Mapping[str, Any]) -> dict[str, str]:
    """Return the set, non-empty fields of a feature as strings."""
    props: dict[str, str] = {}
    for name, value in fields.items():
        if value is None:
            continue
        text = _field_as_string(value)
        if text:
            props[name] = text
    return props


def _parse_int(text: str) -> Optional[int]:
    """Parse a leading integer the way a lenient C parser does."""
    stripped = text.lstrip()
    end = 0
    if stripped[:1] in ("+", "-"):
        end = 1
    start_digits = end
    while end < len(stripped) and stripped[end].isdigit():
        end += 1
    if end == start_digits:
        return None
    value = int(stripped[:end])
    if not _INT_MIN <= value <= _INT_MAX:
        return None
    return value


def scale_range(props: Mapping[str, str]) -> tuple[int, int]:
    """Return the zoom range given by the SCAMIN and SCAMAX properties."""

    def scale_of(key: str) -> int:
        text = props.get(key)
        if text is None:
            return 0
        parsed = _parse_int(text)
        return 0 if parsed is None else parsed

    return calculate_z_range(scale_of("SCAMIN"), scale_of("SCAMAX"))


def _geometry_to_geojson(geometry: Any) -> str:
    if geometry is None:
        return "{}"
    if isinstance(geometry, str):
        return geometry
    return json.dumps(geometry, separators=(",", ":"))


def _sounding_depth(geometry: Any) -> Optional[float]:
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Point":
        return None
    coords = geometry.get("coordinates") or ()
    if len(coords) < 3:
        return None
    return float(coords[2])


class S57:
    """An opened S-57 chart cell."""

    def __init__(self, file_path: str | Path, opener: Opener) -> None:
        self._file_path = str(file_path)
        try:
            self._dataset: Optional[_ChartDataset] = opener(self._file_path)
        except OSError:
            self._dataset = None

    @property
    def file_path(self) -> str:
        """The path the chart was opened from."""
        return self._file_path

    def is_open(self) -> bool:
        """Return True while the chart's dataset is available."""
        return self._dataset is not None

    def close(self) -> None:
        """Release the dataset; later queries return empty results."""
        dataset, self._dataset = self._dataset, None
        closer = getattr(dataset, "close", None)
        if callable(closer):
            closer()

    def __enter__(self) -> S57:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def layer_names(self) -> list[str]:
        """Return the names of all layers in dataset order."""
        if self._dataset is None:
            return []
        return list(self._dataset.layer_names())

    def _layer(self, name: str) -> Optional[Iterable[_RawFeature]]:
        if self._dataset is None:
            return None
        return self._dataset.get_layer(name)

    def _first_feature(self, layer_name: str) -> Optional[_RawFeature]:
        layer = self._layer(layer_name)
        if layer is None:
            return None
        return next(iter(layer), None)

    def dsid_properties(self) -> dict[str, str]:
        """Return the properties of the dataset identification record."""
        feature = self._first_feature("DSID")
        return {} if feature is None else extract_properties(feature.fields)

    def mcovr_properties(self) -> dict[str, str]:
        """Return the properties of the first coverage record."""
        feature = self._first_feature("M_COVR")
        return {} if feature is None else extract_properties(feature.fields)

    def coverage_geojson(self) -> str:
        """Return the chart coverage geometry as GeoJSON text."""
        feature = self._first_feature("M_COVR")
        if feature is None:
            return "{}"
        return _geometry_to_geojson(feature.geometry)

    def chart_info(self) -> ChartInfo:
        """Return the chart's metadata."""
        info = ChartInfo()
        if not self.is_open():
            return info

        dsid = self.dsid_properties()
        path = Path(self._file_path)
        info.name = dsid.get("DSNM", path.stem)
        if "DSPM_CSCL" in dsid:
            parsed = _parse_int(dsid["DSPM_CSCL"])
            info.scale = 0 if parsed is None else parsed
        info.updated = dsid.get("UADT", "")
        info.issued = dsid.get("ISDT", "")
        info.file_name = path.name
        if info.scale > 0:
            info.zoom = find_zoom(info.scale)
        info.covr_geojson = self.coverage_geojson()
        info.dsid_props = to_json_object(dsid)
        info.chart_txt = to_json_object(self.mcovr_properties())
        return info

    def _build_feature(self, layer_name: str, raw: _RawFeature) -> Feature:
        feature = Feature(layer=layer_name)
        props = extract_properties(raw.fields)
        geometry = raw.geometry

        if layer_name == "SOUNDG":
            depth = _sounding_depth(geometry)
            if depth is not None:
                props["METERS"] = f"{depth:.1f}"

        if geometry is not None:
            feature.geom_geojson = _geometry_to_geojson(geometry)
        feature.props_json = to_json_object(props)
        feature.min_z, feature.max_z = scale_range(props)

        refs = raw.fields.get("LNAM_REFS")
        if isinstance(refs, (list, tuple)):
            feature.lnam_refs = [str(ref) for ref in refs]
        return feature

    def _iter_layer(self, layer_name: str) -> Iterator[Feature]:
        if is_excluded_layer(layer_name):
            return
        layer = self._layer(layer_name)
        if layer is None:
            return
        for raw in layer:
            yield self._build_feature(layer_name, raw)

    def layer_features(self, layer_name: str) -> list[Feature]:
        """Return every feature of one layer; excluded layers give none."""
        return list(self._iter_layer(layer_name))

    def iter_features(self) -> Iterator[Feature]:
        """Yield the features of every non-excluded layer in layer order."""
        for name in self.layer_names():
            yield from self._iter_layer(name)

    def all_features(self) -> list[Feature]:
        """Return the features of every non-excluded layer."""
        return list(self.iter_features())