"""Records shared by chart reading, storage and ingestion."""

from __future__ import annotations

from dataclasses import dataclass, field

from chartingest.zfinder import ONE_TO_ONE_ZOOM

#: Layers that carry dataset metadata or topology rather than chart features.
EXCLUDED_LAYERS: tuple[str, ...] = (
    "DSID",
    "IsolatedNode",
    "ConnectedNode",
    "Edge",
    "Face",
)

#: Reader options used when opening S-57 datasets.
S57_READER_OPTIONS = (
    "RETURN_PRIMITIVES=OFF,"
    "RETURN_LINKAGES=OFF,"
    "LNAM_REFS=ON,"
    "UPDATES=APPLY,"
    "SPLIT_MULTIPOINT=ON,"
    "RECODE_BY_DSSI=ON:"
    "ADD_SOUNDG_DEPTH=ON"
)

DEFAULT_DATABASE_URL = "postgresql://localhost/njord"


@dataclass
class ChartInfo:
    """Metadata of one chart cell."""

    name: str = ""
    scale: int = 0
    file_name: str = ""
    updated: str = ""
    issued: str = ""
    zoom: int = 0
    covr_geojson: str = ""
    dsid_props: str = ""
    chart_txt: str = ""


@dataclass
class Feature:
    """One chart feature ready for storage."""

    layer: str = ""
    geom_geojson: str = ""
    props_json: str = ""
    min_z: int = 0
    max_z: int = ONE_TO_ONE_ZOOM
    lnam_refs: list[str] = field(default_factory=list)


@dataclass
class ProcessingResult:
    """Outcome of ingesting a single chart file."""

    success: bool = False
    file_name: str = ""
    chart_name: str = ""
    feature_count: int = 0
    error_message: str = ""


@dataclass
class ProcessingOptions:
    """Options gathered from the command line."""

    database_url: str = DEFAULT_DATABASE_URL
    workers: int = 4
    recursive: bool = False
    verbose: bool = False
    list_only: bool = False
    info_only: bool = False
    init_schema: bool = False