from __future__ import annotations

import asyncio
import json
import threading
import time

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from postload.config import RunConfig, RunMode
from postload.loadgen.runner import run_load_test
from postload.metrics import LiveSnapshot, RequestOutcome, RunResult, RunStatus, poll_live_progress
from postload.storage import default_storage


st.set_page_config(page_title="POST Load Tester", layout="wide")

storage = default_storage()

POLL_INTERVAL_SEC = 0.5


@st.cache_data
def _load_runs() -> pd.DataFrame:
    return storage.list_runs()


def _render_header() -> None:
    st.title("POST Load Tester")
    st.caption("Concurrent POST load generation with live latency tracking.")


def _build_config() -> RunConfig | None:
    with st.sidebar:
        st.header("Run Configuration")
        target_url = st.text_input("Target URL", "https://httpbin.org/post")
        raw_payload = st.text_area("JSON payload", '{"username": "demo", "password": "demo"}')
        mode = st.radio("Mode", ["count", "duration"], horizontal=True)
        if mode == "count":
            request_count = st.slider("Requests", 1, 10000, 100)
            duration = 0
        else:
            request_count = 0
            duration = st.slider("Duration (sec)", 1, 600, 30)
        concurrency = st.slider("Concurrency", 1, 500, 10)
        notes = st.text_input("Notes", "")

    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError as exc:
        st.sidebar.error(f"Invalid JSON payload: {exc}")
        return None
    if not isinstance(payload, dict):
        st.sidebar.error("Payload must be a JSON object")
        return None
    return RunConfig(
        url=target_url,
        payload=payload,
        mode=RunMode(mode),
        concurrency=concurrency,
        request_count=request_count,
        duration_sec=duration,
        notes=notes,
    )


def _run_button(config: RunConfig | None) -> None:
    if config is None or not st.sidebar.button("Start run"):
        return
    outcomes: list[RequestOutcome] = []
    holder: dict[str, RunResult] = {}

    def target() -> None:
        holder["result"] = asyncio.run(run_load_test(config, on_outcome=outcomes.append))

    worker = threading.Thread(target=target, daemon=True)
    worker.start()
    placeholder = st.empty()
    tick = 0
    while worker.is_alive():
        with placeholder.container():
            _render_live(poll_live_progress(), config, tick)
        tick += 1
        time.sleep(POLL_INTERVAL_SEC)
    worker.join()
    with placeholder.container():
        _render_live(poll_live_progress(), config, tick)

    result = holder["result"]
    if result.status is RunStatus.ERROR:
        st.sidebar.error(f"Run failed: {result.error_message}")
        return
    storage.save_run(config, result, outcomes)
    st.sidebar.success(f"Run completed: {result.run_id} ({result.status.value})")
    st.cache_data.clear()


def _render_live(snapshot: LiveSnapshot, config: RunConfig, tick: int) -> None:
    if snapshot.target_duration_seconds:
        fraction = snapshot.elapsed_seconds / snapshot.target_duration_seconds
    elif config.request_count:
        fraction = snapshot.total_requests / config.request_count
    else:
        fraction = 0.0
    st.progress(min(1.0, fraction), text="Running..." if snapshot.running else "Finished")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Requests", snapshot.total_requests)
    col2.metric("Failed", snapshot.failed_requests)
    col3.metric("RPS", f"{snapshot.requests_per_second:.1f}")
    col4.metric("p95 (recent)", f"{snapshot.p95_latency_ms} ms")
    st.plotly_chart(_plot_recent(snapshot), use_container_width=True, key=f"live-latency-{tick}")


def _plot_recent(snapshot: LiveSnapshot) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            y=snapshot.recent_latencies,
            name="Latency (ms)",
            mode="lines",
        )
    )
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10), title="Recent latencies")
    return fig


def _plot_latency_hist(outcomes: pd.DataFrame) -> go.Figure:
    ok = outcomes[outcomes["success"]]
    if ok.empty:
        return go.Figure()
    fig = px.histogram(ok, x="latency_ms", nbins=30, title="Latency distribution (successful requests)")
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _plot_status_codes(outcomes: pd.DataFrame) -> go.Figure:
    grouped = outcomes.groupby("status_code").size().reset_index(name="count")
    grouped["status_code"] = grouped["status_code"].astype(str)
    fig = px.bar(grouped, x="status_code", y="count", title="Responses by status code")
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _render_run_view(run_id: str) -> None:
    result = storage.load_result(run_id)
    if result is None:
        st.info("Run not found")
        return
    outcomes = storage.load_outcomes(run_id)
    meta = storage.load_run_meta(run_id) or {}
    st.subheader(f"Run {run_id}")
    st.caption(meta.get("notes", ""))

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Status", result.status.value)
    col2.metric("Requests", result.total_requests)
    col3.metric("Success rate", f"{result.success_rate:.1f}%")
    col4.metric("RPS", f"{result.requests_per_second:.1f}")
    st.table(
        pd.DataFrame(
            {
                "metric": ["avg", "min", "max", "p50", "p95", "p99"],
                "latency_ms": [
                    round(result.average_latency_ms, 2),
                    result.min_latency_ms,
                    result.max_latency_ms,
                    result.p50_latency_ms,
                    result.p95_latency_ms,
                    result.p99_latency_ms,
                ],
            }
        )
    )
    if outcomes.empty:
        return
    col5, col6 = st.columns(2)
    with col5:
        st.plotly_chart(_plot_latency_hist(outcomes), use_container_width=True)
    with col6:
        st.plotly_chart(_plot_status_codes(outcomes), use_container_width=True)


def main() -> None:
    _render_header()
    config = _build_config()
    _run_button(config)

    runs = _load_runs()
    if runs.empty:
        st.info("No runs yet. Start one from the sidebar.")
        return
    st.dataframe(runs, use_container_width=True)
    selected_run = st.selectbox("Select run", runs["run_id"].tolist())
    _render_run_view(selected_run)


if __name__ == "__main__":
    main()
