"""
Satellite Data Pipeline — Streamlit front-end

Define a processing job (point AOI, date range, processing type), submit it to
the imagery-processing service and render the result.  The map is a small
Leaflet component declared with ``declare_component``: Python sends the current
AOI marker, JS sends back map clicks tagged with a monotonically increasing
sequence number.
"""

import html
import json
import sys
import time
import datetime as dt
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import streamlit as st
import streamlit.components.v1 as components
from anyio.from_thread import BlockingPortal, start_blocking_portal
from loguru import logger

from nimbuschain_pipeline.controller import PipelineRuntime
from nimbuschain_pipeline.logging_config import configure_logging
from nimbuschain_pipeline.presenter import ViewState
from nimbuschain_pipeline.settings import get_settings
from nimbuschain_pipeline_ui.view_runtime import (
    MODE_OPTIONS,
    POLL_INTERVAL_SECONDS,
    as_date,
    as_float,
    build_form_patch,
    mode_index,
    parse_map_event,
    single_image_html,
    temporal_entry_html,
)


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECT PATHS & LOGGING
# ═══════════════════════════════════════════════════════════════════════════════
PROJECT_ROOT = Path(__file__).resolve().parents[2]
SETTINGS = get_settings()

configure_logging(
    level=SETTINGS.nimbus_log_level,
    json_logs=SETTINGS.nimbus_log_json,
    log_file=SETTINGS.nimbus_log_file,
)
logger.info("Satellite Data Pipeline UI starting")
logger.info(f"API URL : {SETTINGS.api_url}")
logger.info(f"Python  : {sys.executable}")

MAP_HEIGHT = 260
MAP_ZOOM = 10
VIEWER_HEIGHT = 720


# ═══════════════════════════════════════════════════════════════════════════════
# STYLING
# ═══════════════════════════════════════════════════════════════════════════════

CUSTOM_CSS = """
<style>
html, body, [data-testid="stAppViewContainer"], [data-testid="stApp"] {
    background: #111827 !important;
    color: #e2e8f0 !important;
}
.pipeline-title {
    font-size: 2.6rem; font-weight: 700; text-align: center;
    background: linear-gradient(90deg, #22d3ee, #2563eb);
    -webkit-background-clip: text; -webkit-text-fill-color: transparent;
}
.pipeline-tagline { text-align: center; color: #9ca3af; margin-bottom: 1.5rem; }
.viewer-info { color: #6b7280; text-align: center; padding: 0 1rem; }
.viewer-error { color: #f87171; text-align: center; padding: 1rem; }
.viewer-error .heading { font-weight: 700; margin-bottom: .5rem; }
.stButton > button { width: 100%; font-weight: 700 !important; }
</style>
"""


# ═══════════════════════════════════════════════════════════════════════════════
# LEAFLET COMPONENT HTML
# ═══════════════════════════════════════════════════════════════════════════════

LEAFLET_HTML = r"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css"/>
<style>
*{margin:0;padding:0;box-sizing:border-box}
html,body{height:100%;overflow:hidden;background:#111827}
#map{width:100%;height:100%;border-radius:8px}
</style>
</head>
<body>
<div id="map"></div>
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
<script>
(function(){
"use strict";

const Streamlit = {
    setComponentValue: function(v){
        window.parent.postMessage({isStreamlitMessage:true,type:"streamlit:setComponentValue",value:v},"*");
    },
    setFrameHeight: function(h){
        window.parent.postMessage({isStreamlitMessage:true,type:"streamlit:setFrameHeight",height:h},"*");
    }
};
window.parent.postMessage({isStreamlitMessage:true,type:"streamlit:componentReady",apiVersion:1},"*");

let map = null;
let marker = null;
let clickSeq = 0;
let prevMarker = "";

function initMap(center, zoom){
    map = L.map("map", {scrollWheelZoom:true}).setView(center, zoom);
    L.tileLayer("https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png", {
        maxZoom: 19,
        attribution: "&copy; OpenStreetMap contributors"
    }).addTo(map);
    marker = L.marker(center).addTo(map);

    map.on("click", function(e){
        // Sequence stays monotonic across iframe reloads.
        clickSeq = Math.max(clickSeq + 1, Date.now());
        marker.setLatLng(e.latlng);
        Streamlit.setComponentValue({type:"click", lat:e.latlng.lat, lng:e.latlng.lng, seq:clickSeq});
    });
    Streamlit.setFrameHeight(document.body.scrollHeight || 260);
}

function onStreamlitRender(args){
    const position = args.marker ? JSON.parse(args.marker) : [6.5244, 3.3792];
    const zoom = args.zoom || 10;
    if(!map){
        initMap(position, zoom);
        prevMarker = args.marker || "";
        return;
    }
    if((args.marker || "") !== prevMarker){
        prevMarker = args.marker || "";
        marker.setLatLng(position);
        if(!map.getBounds().contains(position)){
            map.panTo(position);
        }
    }
}

window.addEventListener("message", function(event){
    if(!event.data) return;
    if(event.data.type === "streamlit:render"){
        onStreamlitRender(event.data.args || {});
    }
});

})();
</script>
</body>
</html>"""


# ═══════════════════════════════════════════════════════════════════════════════
# COMPONENT SETUP
# ═══════════════════════════════════════════════════════════════════════════════

# Some environments mount the package directory read-only; fall back to a
# temporary directory if needed.
try:
    _COMP_DIR = PROJECT_ROOT / "_aoi_map_comp"
    _COMP_DIR.mkdir(exist_ok=True)
    (_COMP_DIR / "index.html").write_text(LEAFLET_HTML, encoding="utf-8")
except OSError as e:
    import tempfile
    _COMP_DIR = Path(tempfile.gettempdir()) / "nimbus_pipeline_aoi_map_comp"
    _COMP_DIR.mkdir(parents=True, exist_ok=True)
    try:
        (_COMP_DIR / "index.html").write_text(LEAFLET_HTML, encoding="utf-8")
    except OSError:
        raise RuntimeError(f"Unable to write Leaflet component HTML: {e}")

_aoi_map_func = components.declare_component("aoi_map", path=str(_COMP_DIR))


def aoi_map(marker: str, zoom: int = MAP_ZOOM, key: str = "aoi_map") -> Optional[Dict[str, Any]]:
    """Render the AOI picker map and return the last click event."""
    return _aoi_map_func(marker=marker, zoom=zoom, key=key, default=None, height=MAP_HEIGHT)


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION STATE
# ═══════════════════════════════════════════════════════════════════════════════

@st.cache_resource
def shared_portal() -> Tuple[Any, BlockingPortal]:
    """One event loop thread for every browser session of this server."""
    # Keep the context manager alive alongside the portal; dropping it stops the loop.
    portal_cm = start_blocking_portal()
    portal = portal_cm.__enter__()
    logger.info("Started shared pipeline event loop")
    return portal_cm, portal


def get_runtime() -> PipelineRuntime:
    runtime = st.session_state.get("runtime")
    if runtime is None:
        _, portal = shared_portal()
        runtime = PipelineRuntime(settings=SETTINGS, portal=portal)
        st.session_state["runtime"] = runtime
        logger.info("Created pipeline runtime for a new session")
    return runtime


def sync_form_from_params(runtime: PipelineRuntime) -> None:
    params = runtime.params.get()
    today = dt.date.today()
    st.session_state["lat_input"] = as_float(params.latitude, SETTINGS.nimbus_pipeline_default_lat)
    st.session_state["lon_input"] = as_float(params.longitude, SETTINGS.nimbus_pipeline_default_lon)
    st.session_state["start_input"] = as_date(params.start_date, today)
    st.session_state["end_input"] = as_date(params.end_date, today)
    st.session_state["mode_input"] = MODE_OPTIONS[mode_index(params.mode)]


def init_state(runtime: PipelineRuntime) -> None:
    if "lat_input" not in st.session_state:
        sync_form_from_params(runtime)


# ═══════════════════════════════════════════════════════════════════════════════
# FORM
# ═══════════════════════════════════════════════════════════════════════════════

def render_job_form(runtime: PipelineRuntime) -> None:
    st.markdown("#### 1. Select Area of Interest")
    params = runtime.params.get()
    marker = json.dumps([
        as_float(params.latitude, SETTINGS.nimbus_pipeline_default_lat),
        as_float(params.longitude, SETTINGS.nimbus_pipeline_default_lon),
    ])
    event = parse_map_event(aoi_map(marker=marker))
    if event is not None:
        lat, lng, seq = event
        if runtime.picker.on_click(lat, lng, seq):
            sync_form_from_params(runtime)
            st.rerun()

    c1, c2 = st.columns(2)
    with c1:
        st.number_input("Latitude", format="%.4f", step=0.0001, key="lat_input")
    with c2:
        st.number_input("Longitude", format="%.4f", step=0.0001, key="lon_input")

    st.markdown("#### 2. Time Range & Processing")
    c3, c4 = st.columns(2)
    with c3:
        st.date_input("Start Date", key="start_input")
    with c4:
        st.date_input("End Date", key="end_input")
    st.selectbox("Processing Type", options=MODE_OPTIONS, key="mode_input")

    runtime.params.set(
        **build_form_patch(
            latitude=st.session_state["lat_input"],
            longitude=st.session_state["lon_input"],
            start_date=st.session_state["start_input"],
            end_date=st.session_state["end_input"],
            mode_label=st.session_state["mode_input"],
        )
    )

    pending = runtime.is_pending
    label = "Processing..." if pending else "🛰️ Run Pipeline"
    if st.button(label, disabled=pending, type="primary", key="run_pipeline"):
        runtime.submit()
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════════
# VIEWER
# ═══════════════════════════════════════════════════════════════════════════════

def render_view(view: ViewState) -> None:
    if view.kind == "progress":
        with st.spinner("Processing..."):
            time.sleep(POLL_INTERVAL_SECONDS)
        return

    if view.kind == "error":
        st.markdown(
            f"<div class='viewer-error'><p class='heading'>{html.escape(view.heading)}</p>"
            f"<p>{html.escape(view.message)}</p></div>",
            unsafe_allow_html=True,
        )
        return

    if view.kind == "temporal":
        with st.container(height=VIEWER_HEIGHT):
            for entry in view.entries:
                st.markdown(temporal_entry_html(entry), unsafe_allow_html=True)
        return

    if view.kind == "single" and view.handle is not None:
        st.markdown(
            single_image_html(view.handle, alt=view.alt, height=VIEWER_HEIGHT),
            unsafe_allow_html=True,
        )
        return

    st.markdown(f"<p class='viewer-info'>{html.escape(view.message)}</p>", unsafe_allow_html=True)


def main():
    st.set_page_config(
        page_title="Satellite Data Pipeline",
        page_icon="🛰️",
        layout="wide",
    )
    st.markdown(CUSTOM_CSS, unsafe_allow_html=True)

    runtime = get_runtime()
    init_state(runtime)

    st.markdown("<div class='pipeline-title'>Satellite Data Pipeline</div>", unsafe_allow_html=True)
    st.markdown(
        "<div class='pipeline-tagline'>Define and run on-demand processing jobs in the cloud.</div>",
        unsafe_allow_html=True,
    )

    col_form, col_view = st.columns([2, 3], gap="large")
    with col_form:
        render_job_form(runtime)
    with col_view:
        render_view(runtime.view())

    # Keep re-running until the in-flight job settles.
    if runtime.is_pending:
        st.rerun()


if __name__ == "__main__":
    main()
