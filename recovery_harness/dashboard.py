"""
Run Dashboard - Progress Monitor
================================
Small web view of a running scenario: current phase, writer progress and
the store's live visible count.
"""

import html
import logging
import threading

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from .scenarios import RunState
from .store_client import MATCH_ALL

logger = logging.getLogger(__name__)

DASHBOARD_PORT = 9000

HTML_CONTENT = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Recovery Harness</title>
    <style>
        body { background: #0f172a; color: #e2e8f0; font-family: 'Segoe UI', sans-serif; padding: 24px; }
        h1 { color: #38bdf8; }
        .grid { display: grid; grid-template-columns: repeat(4, 1fr); gap: 16px; }
        .card { background: #1e293b; border: 1px solid #334155; border-radius: 8px; padding: 16px; }
        .label { color: #94a3b8; font-size: 12px; text-transform: uppercase; }
        .value { font-size: 28px; font-weight: bold; }
        .error { color: #f87171; font-family: monospace; }
    </style>
</head>
<body>
    <h1>Recovery Harness <span id="scenario" style="color:#e2e8f0"></span></h1>
    <p>Phase: <b id="phase">--</b> &middot; Collection: <b>{{ collection }}</b></p>
    <div class="grid">
        <div class="card"><div class="label">Writers</div><div class="value" id="writers">--</div></div>
        <div class="card"><div class="label">Ids Issued</div><div class="value" id="ids">--</div></div>
        <div class="card"><div class="label">Acknowledged</div><div class="value" id="written">--</div></div>
        <div class="card"><div class="label">Visible</div><div class="value" id="visible">--</div></div>
    </div>
    <p>Failures: <b id="failures">0</b></p>
    <p class="error" id="error"></p>
    <script>
        async function refreshData() {
            try {
                const res = await fetch('/api/run-state');
                const s = await res.json();
                document.getElementById('scenario').innerText = s.scenario || '';
                document.getElementById('phase').innerText = s.phase;
                document.getElementById('writers').innerText = s.writers;
                document.getElementById('ids').innerText = s.ids_issued;
                document.getElementById('written').innerText = s.successful_writes;
                document.getElementById('visible').innerText = s.visible_docs ?? '--';
                document.getElementById('failures').innerText = s.failures;
                document.getElementById('error').innerText = s.error || '';
            } catch(e) {
                console.error("Failed to fetch", e);
            }
        }
        refreshData();
        setInterval(refreshData, 2000);
    </script>
</body>
</html>
"""


def create_app(state: RunState) -> FastAPI:
    app = FastAPI(title="Recovery Harness Dashboard")

    @app.get("/")
    async def home():
        return HTMLResponse(HTML_CONTENT.replace("{{ collection }}", html.escape(str(state.collection))))

    @app.get("/api/run-state")
    def get_run_state():
        writer = state.writer
        result = {
            "scenario": state.scenario,
            "phase": state.phase,
            "writers": writer.writer_count if writer else 0,
            "ids_issued": writer.ids_issued if writer else 0,
            "successful_writes": writer.total_successful_writes() if writer else 0,
            "failures": len(writer.failures) if writer else 0,
            "visible_docs": None,
            "error": None,
        }

        if state.client is not None and state.collection is not None:
            try:
                result["visible_docs"] = state.client.count(state.collection, MATCH_ALL)
            except Exception as e:
                # the collection may not exist yet, or the store may be mid-relocation
                result["error"] = str(e)
        return result

    return app


def start_dashboard(state: RunState, port: int = DASHBOARD_PORT) -> threading.Thread:
    """Serve the dashboard from a daemon thread for the lifetime of the run."""
    app = create_app(state)
    thread = threading.Thread(
        target=lambda: uvicorn.run(app, host="0.0.0.0", port=port, log_level="error"),
        name="dashboard",
        daemon=True
    )
    thread.start()
    logger.info("RUN DASHBOARD: http://localhost:%d", port)
    return thread
