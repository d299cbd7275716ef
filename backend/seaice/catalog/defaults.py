"""Built-in source catalog for the Arctic sea-ice viewer.

Base maps and overlays come from NASA GIBS in the EPSG:3413 polar
stereographic tile matrix sets, sea-ice concentration comes from NOAA/NSIDC
G02135 GeoTIFFs, EUMETSAT OSI SAF AMSR2 NetCDF files served over THREDDS
WMS, and the Copernicus Marine WMTS.
"""

from __future__ import annotations

from seaice.catalog import models

GIBS_URL_TEMPLATE = (
    "https://gibs.earthdata.nasa.gov/wmts/epsg3413/best/{layer}/default/"
    "{time}/{tileMatrixSet}/{z}/{y}/{x}.{format}"
)
GIBS_STATIC_URL_TEMPLATE = (
    "https://gibs.earthdata.nasa.gov/wmts/epsg3413/best/{layer}/default/"
    "{tileMatrixSet}/{z}/{y}/{x}.{format}"
)
NOAA_GEOTIFF_TEMPLATE = (
    "https://noaadata.apps.nsidc.org/NOAA/G02135/north/daily/geotiff/"
    "{year}/{month}_{monthName}/N_{ymd}_concentration_v4.0.tif"
)
OSI_SAF_WMS_FILE_TEMPLATE = (
    "https://thredds.met.no/thredds/wms/osisaf/met.no/ice/amsr2_conc/"
    "{YYYY}/{MM}/ice_conc_nh_polstere-100_amsr2_{YYYYMMDD}1200.nc"
)
OSI_SAF_CATALOG_ROOT = (
    "https://thredds.met.no/thredds/catalog/osisaf/met.no/ice/amsr2_conc"
)
COPERNICUS_WMTS_TEMPLATE = (
    "https://wmts.marine.copernicus.eu/teroWmts?SERVICE=WMTS&REQUEST=GetTile"
    "&VERSION=1.0.0&LAYER={layer}&STYLE=cmap:ice&TILEMATRIXSET="
    "{tileMatrixSet}&TILEMATRIX={z}&TILEROW={y}&TILECOL={x}&TIME={time}"
    "&FORMAT=image/{format}"
)
COPERNICUS_CAPABILITIES_URL = (
    "https://wmts.marine.copernicus.eu/teroWmts?SERVICE=WMTS"
    "&REQUEST=GetCapabilities&VERSION=1.0.0"
)

MAP_CONFIG = models.MapConfiguration(
    projection="EPSG:3413",
    proj4=(
        "+proj=stere +lat_0=90 +lat_ts=70 +lon_0=-45 +k=1 +x_0=0 +y_0=0 "
        "+datum=WGS84 +units=m +no_defs"
    ),
    resolutions=(8192, 4096, 2048, 1024, 512, 256, 128, 64),
    origin=(-4194304, 4194304),
    bounds=((-4194304, -4194304), (4194304, 4194304)),
    center=(90, 0),
    initial_zoom=1,
    min_zoom=0,
    max_zoom=7,
    max_bounds=((50, -180), (90, 180)),
)

BASE_LAYERS: dict[str, models.LayerSource] = {
    "blueMarble": models.TileSource(
        id="blueMarble",
        label="Blue Marble",
        layer="BlueMarble_NextGeneration",
        tile_matrix_set="500m",
        format="jpeg",
        attribution="NASA GIBS",
        url_template=GIBS_STATIC_URL_TEMPLATE,
        opacity=0.9,
    ),
    "blueMarbleBathymetry": models.TileSource(
        id="blueMarbleBathymetry",
        label="Blue Marble Bathymetry",
        layer="BlueMarble_ShadedRelief_Bathymetry",
        tile_matrix_set="500m",
        format="jpeg",
        attribution="NASA GIBS",
        url_template=GIBS_STATIC_URL_TEMPLATE,
        opacity=0.9,
    ),
    "modisTrueColor": models.TileSource(
        id="modisTrueColor",
        label="MODIS Terra True Color",
        layer="MODIS_Terra_CorrectedReflectance_TrueColor",
        tile_matrix_set="250m",
        format="jpg",
        attribution="NASA GIBS",
        url_template=GIBS_URL_TEMPLATE,
        opacity=0.95,
        ready_on_first_tile=True,
    ),
}

_OSI_SAF_COMMON: dict[str, object] = {
    "format": "png",
    "attribution": "EUMETSAT OSI SAF",
    "info_url": "https://osi-saf.eumetsat.int/products/sea-ice-products",
    "url_template": OSI_SAF_WMS_FILE_TEMPLATE,
    "opacity": 0.75,
    "time_enabled": False,
    "crs": ("EPSG:3857", "CRS:84", "EPSG:4326"),
    "catalog_root": OSI_SAF_CATALOG_ROOT,
}

ICE_SOURCES: dict[str, models.LayerSource] = {
    "noaaSeaIceConcentration": models.GeoTiffSource(
        id="noaaSeaIceConcentration",
        label="NOAA Sea Ice Concentration (GeoTIFF)",
        layer="NOAA_G02135",
        format="tif",
        attribution="NSIDC NOAA G02135",
        info_url="https://nsidc.org/data/g02135",
        url_template=NOAA_GEOTIFF_TEMPLATE,
        opacity=0.7,
    ),
    "osiSafAmsr2Wms": models.WmsSource(
        id="osiSafAmsr2Wms",
        label="OSI SAF AMSR2 SIC (WMS · ice_conc)",
        layer="ice_conc",
        styles=("boxfill/occam", "boxfill/rainbow"),
        default_style="boxfill/occam",
        color_scale_range=(0.0, 100.0),
        **_OSI_SAF_COMMON,
    ),
    "osiSafAmsr2WmsUncertainty": models.WmsSource(
        id="osiSafAmsr2WmsUncertainty",
        label="OSI SAF AMSR2 SIC (WMS · total_uncertainty)",
        layer="total_uncertainty",
        **_OSI_SAF_COMMON,
    ),
    "copernicusArcticSiconc": models.TileSource(
        id="copernicusArcticSiconc",
        label="Copernicus Arctic Sea Ice Concentration (WMTS)",
        layer=(
            "ARCTIC_ANALYSISFORECAST_PHY_002_001/"
            "cmems_mod_arc_phy_anfc_6km_detided_P1D-m_202311/siconc"
        ),
        tile_matrix_set="EPSG:3413",
        format="png",
        attribution="E.U. Copernicus Marine Service",
        info_url="https://data.marine.copernicus.eu/product/"
        "ARCTIC_ANALYSISFORECAST_PHY_002_001",
        url_template=COPERNICUS_WMTS_TEMPLATE,
        opacity=0.75,
        capabilities_url=COPERNICUS_CAPABILITIES_URL,
        ready_on_first_tile=True,
    ),
}

OVERLAYS: dict[str, models.OverlaySource] = {
    "coastlines": models.TileSource(
        id="coastlines_nasa",
        label="Coastlines NASA GIBS",
        layer="Coastlines",
        tile_matrix_set="250m",
        format="png",
        attribution="NASA GIBS",
        url_template=GIBS_URL_TEMPLATE,
        opacity=0.9,
    ),
    "graticule": models.TileSource(
        id="graticule",
        label="Graticule",
        layer="Graticule",
        tile_matrix_set="250m",
        format="png",
        attribution="NASA GIBS",
        url_template=GIBS_STATIC_URL_TEMPLATE,
        opacity=0.45,
    ),
    "graticuleExtended": models.TileSource(
        id="graticuleExtended",
        label="Graticule Extended",
        layer="Graticule_Extended",
        tile_matrix_set="1.5km",
        format="png",
        attribution="NASA GIBS",
        url_template=GIBS_STATIC_URL_TEMPLATE,
        opacity=0.6,
    ),
    "graticuleLocal": models.GraticuleSource(
        id="graticuleLocal",
        label="Graticule (local)",
        opacity=0.6,
        min_lat=50.0,
        max_lat=90.0,
        density=models.GraticuleDensity(
            lat_step=10.0,
            lon_step=30.0,
            segment_step=5.0,
            label_lat_every=10.0,
            label_lon_every=30.0,
        ),
        zoom_overrides=(
            models.ZoomDensity(
                min_zoom=3,
                max_zoom=4,
                density=models.GraticuleDensity(
                    lat_step=5.0,
                    lon_step=15.0,
                    segment_step=2.5,
                    label_lat_every=5.0,
                    label_lon_every=30.0,
                ),
            ),
            models.ZoomDensity(
                min_zoom=5,
                max_zoom=7,
                density=models.GraticuleDensity(
                    lat_step=0.5,
                    lon_step=5.0,
                    segment_step=1.0,
                    label_lat_every=2.5,
                    label_lon_every=10.0,
                ),
            ),
        ),
    ),
}

SNAPSHOTS: tuple[models.Snapshot, ...] = (
    models.Snapshot("Feb 01", "2026-02-01", 13.92, -0.34, "NNE", 92),
    models.Snapshot("Feb 02", "2026-02-02", 13.71, -0.41, "NE", 89),
    models.Snapshot("Feb 03", "2026-02-03", 13.55, -0.48, "E", 86),
    models.Snapshot("Feb 04", "2026-02-04", 13.42, -0.53, "ESE", 83),
    models.Snapshot("Feb 05", "2026-02-05", 13.66, -0.36, "ENE", 90),
    models.Snapshot("Feb 06", "2026-02-06", 13.58, -0.39, "NE", 88),
    models.Snapshot("Feb 07", "2026-02-07", 13.49, -0.42, "E", 87),
    models.Snapshot("Feb 08", "2026-02-08", 13.44, -0.45, "ESE", 85),
)

DATASET = models.DatasetCatalog(
    map_config=MAP_CONFIG,
    base_layers=BASE_LAYERS,
    ice_sources=ICE_SOURCES,
    overlays=OVERLAYS,
    snapshots=SNAPSHOTS,
    defaults=models.CatalogDefaults(
        base_layer_key="blueMarble",
        ice_source_key="noaaSeaIceConcentration",
        show_coastlines=True,
        show_graticule=True,
        default_date="2026-02-08",
    ),
)
