from __future__ import annotations
import argparse
import html
import logging
from flask import Flask, request, jsonify, Response
from triage.engine import Engine
from triage.loader import TermsLoadError
from triage.config import CATEGORIES, DEFAULT_DSN, SAVE_DEBOUNCE
from triage.normalize import highlight_issues

log = logging.getLogger(__name__)

app = Flask(__name__)
_engine: Engine | None = None
_load_error: str | None = None


def _eng() -> Engine:
    if _engine is None or _engine.overrides is None:
        raise RuntimeError(_load_error or "No terms loaded.")
    return _engine


def _filters() -> dict:
    a = request.args
    return {
        "search": a.get("search", "", type=str),
        "priority": a.get("priority") or None,
        "category": a.get("category") or None,
        "status": a.get("status") or None,
        "sort": a.get("sort", "impact", type=str),
    }


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _flag(body: dict, key: str, default: bool) -> bool:
    """JSON booleans, 0/1, or the usual spellings of true/false."""
    v = body.get(key, default)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true", "1", "yes", "on"):
            return True
        if s in ("false", "0", "no", "off", ""):
            return False
    elif isinstance(v, (bool, int)):
        return bool(v)
    elif v is None:
        return default
    raise ValueError(f"{key!r} must be true or false, got {v!r}")


def _ids(body: dict) -> list[int]:
    """Explicit ids from the request, else the current selection."""
    if "ids" in body and body["ids"] is not None:
        return [int(i) for i in body["ids"]]
    return sorted(_eng().overrides.selected)


def _row_json(e) -> dict:
    d = e.to_dict()
    d["highlighted"] = highlight_issues(e.record.raw_term)
    return d


# ---------- errors ----------
@app.errorhandler(KeyError)
def _not_found(exc):
    return jsonify({"error": f"no such record: {exc.args[0] if exc.args else ''}"}), 404

@app.errorhandler(ValueError)
def _bad_request(exc):
    return jsonify({"error": str(exc)}), 400

@app.errorhandler(RuntimeError)
def _unavailable(exc):
    return jsonify({"error": str(exc)}), 503


# ---------- API: reads ----------
@app.get("/api/health")
def api_health():
    loaded = _engine is not None and _engine.overrides is not None
    return jsonify({
        "ok": loaded,
        "error": _load_error,
        "sync": _engine.sync_status if loaded else None,
    })

@app.get("/api/terms")
def api_terms():
    eng = _eng()
    if eng.session:
        eng.session.poll()
    rows = eng.rows(**_filters())
    return jsonify({
        "rows": [_row_json(e) for e in rows],
        "shown": len(rows),
        "total": len(eng.records),
        "selected": sorted(eng.overrides.selected),
    })

@app.get("/api/stats")
def api_stats():
    return jsonify(_eng().stats())

@app.get("/api/sync")
def api_sync():
    eng = _eng()
    s = eng.session
    if s:
        s.poll()
    return jsonify({
        "status": eng.sync_status,
        "dataset_id": eng.dataset_id,
        "pending": bool(s and s.unsaved),
        "last_applied": s.last_applied.isoformat() if s and s.last_applied else None,
        "error": s.last_error if s else None,
    })

@app.post("/api/sync/flush")
def api_sync_flush():
    eng = _eng()
    flushed = eng.session.flush() if eng.session else False
    return jsonify({"flushed": flushed, "status": eng.sync_status})


# ---------- API: single-record edits ----------
@app.post("/api/terms/<int:rid>/completed")
def api_completed(rid: int):
    eng = _eng()
    eng.overrides.set_completed(rid, _flag(_body(), "completed", True))
    return jsonify(_row_json(eng.view.effective(rid)))

@app.post("/api/terms/<int:rid>/proposed")
def api_proposed(rid: int):
    eng = _eng()
    body = _body()
    if "text" not in body:
        raise ValueError("missing 'text'")
    eng.overrides.edit_proposed_term(rid, str(body["text"]))
    return jsonify(_row_json(eng.view.effective(rid)))

@app.post("/api/terms/<int:rid>/categories")
def api_categories(rid: int):
    eng = _eng()
    body = _body()
    action = body.get("action", "add")
    tag = str(body.get("tag", ""))
    if action == "add":
        eng.overrides.add_category(rid, tag)
    elif action == "remove":
        eng.overrides.remove_category(rid, tag)
    elif action == "replace":
        eng.overrides.replace_category(rid, str(body.get("old", "")), tag)
    else:
        raise ValueError(f"unknown action: {action!r}")
    return jsonify(_row_json(eng.view.effective(rid)))


# ---------- API: bulk ----------
@app.post("/api/bulk/categories")
def api_bulk_categories():
    eng = _eng()
    body = _body()
    n = eng.overrides.bulk_apply_category(
        _ids(body), str(body.get("tag", "")), str(body.get("mode", "add"))
    )
    return jsonify({"changed": n})

@app.post("/api/bulk/terms")
def api_bulk_terms():
    eng = _eng()
    body = _body()
    n = eng.overrides.bulk_edit_terms(
        _ids(body),
        str(body.get("mode", "replace")),
        text=str(body.get("text", "")),
        find=str(body.get("find", "")),
        replace=str(body.get("replace", "")),
        regex=_flag(body, "regex", False),
    )
    return jsonify({"changed": n})

@app.post("/api/bulk/completed")
def api_bulk_completed():
    eng = _eng()
    body = _body()
    done = _flag(body, "completed", True)
    ids = _ids(body)
    for rid in ids:
        eng.overrides.set_completed(rid, done)
    return jsonify({"changed": len(ids)})

@app.post("/api/selection")
def api_selection():
    eng = _eng()
    body = _body()
    action = body.get("action", "toggle")
    ov = eng.overrides
    if action == "select":
        ov.select(body.get("ids") or [])
    elif action == "deselect":
        ov.deselect(body.get("ids") or [])
    elif action == "toggle":
        ov.toggle_selected(int(body.get("id", 0)))
    elif action == "all":
        visible = [e.id for e in eng.rows(**_filters())]
        ov.select_all(visible, bool(body.get("checked", True)))
    elif action == "clear":
        ov.clear_selection()
    else:
        raise ValueError(f"unknown action: {action!r}")
    return jsonify({"selected": sorted(ov.selected)})


# ---------- API: exports ----------
@app.get("/api/export/csv")
def api_export_csv():
    eng = _eng()
    body = eng.export_csv(eng.rows(**_filters()))
    return Response(body, mimetype="text/csv", headers={
        "Content-Disposition": "attachment; filename=database_cleanup_report.csv",
    })

@app.get("/api/export/sql")
def api_export_sql():
    eng = _eng()
    body = eng.export_sql(eng.rows(**_filters()))
    return Response(body, mimetype="text/plain", headers={
        "Content-Disposition": "attachment; filename=search_terms_cleanup.sql",
    })


# ---------- UI ----------
@app.get("/")
def home():
    if _engine is None or _engine.overrides is None:
        msg = _load_error or "No terms loaded."
        return Response(_EMPTY_HTML.replace("{{message}}", html.escape(msg)), mimetype="text/html")
    options = "".join(f'<option value="{c}">{c}</option>' for c in CATEGORIES)
    return Response(_HTML.replace("{{category_options}}", options), mimetype="text/html")


_EMPTY_HTML = r"""
<!doctype html>
<html lang="en"><head><meta charset="utf-8" /><title>Search Term Triage</title></head>
<body style="font:16px system-ui;background:#0b0f14;color:#cfd8e3">
  <div class="no-results" style="margin:48px auto;max-width:640px">
    Error loading data. Please ensure the terms file is accessible.<br><small>{{message}}</small>
  </div>
</body></html>
"""

_HTML = r"""
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<title>Search Term Triage</title>
<style>
:root{
  --bg:#0b0f14; --panel:#0f141b; --ink:#cfd8e3; --muted:#8a94a6;
  --accent:#6ee7ff; --border:#1c2530; --danger:#ff5d5d; --ok:#45d483;
}
*{box-sizing:border-box}
body{ margin:0; background:var(--bg); color:var(--ink); font:14px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Arial }
.container{ max-width:1280px; margin:20px auto; padding:0 16px }
.card{ background:var(--panel); border:1px solid var(--border); border-radius:14px; padding:16px; margin-bottom:12px }
.stats{ display:flex; gap:18px; flex-wrap:wrap }
.stat b{ display:block; font-size:20px }
.controls{ display:flex; gap:8px; flex-wrap:wrap; align-items:center }
input,select,.btn{ padding:7px 10px; border-radius:8px; border:1px solid var(--border); background:#0b1117; color:var(--ink) }
.btn{ cursor:pointer } .btn:hover{ border-color:var(--accent) }
table{ width:100%; border-collapse:collapse }
th,td{ padding:8px; border-top:1px solid var(--border); text-align:left; vertical-align:top }
.tag{ display:inline-block; padding:1px 8px; margin:1px; border-radius:10px; background:#16202b; font-size:12px }
.tag a{ color:var(--muted); cursor:pointer; margin-left:4px }
.issue-highlight{ background:rgba(255,93,93,.3); color:#ffb0b0 }
.impact-critical{ color:var(--danger) } .impact-high{ color:#ffb454 } .impact-medium{ color:var(--accent) }
.done td{ opacity:.55 }
.small{ color:var(--muted); font-size:12px }
.sync-connected{ color:var(--ok) } .sync-disconnected{ color:var(--danger) }
</style>
</head>
<body>
<div class="container">
  <div class="card stats" id="stats"></div>
  <div class="card controls">
    <input id="search" placeholder="Search terms…" autocomplete="off" />
    <select id="priority"><option value="">All priorities</option>
      <option>critical</option><option>high</option><option>medium</option><option>low</option></select>
    <select id="category"><option value="">All categories</option>{{category_options}}</select>
    <select id="status"><option value="">All</option><option value="pending">Pending</option><option value="completed">Completed</option></select>
    <select id="sort"><option value="impact">Impact</option><option value="alphabetical">A-Z</option>
      <option value="category">Category</option><option value="priority">Priority</option></select>
    <a class="btn" id="csv">Export CSV</a> <a class="btn" id="sql">Export SQL</a>
    <span id="sync" class="small"></span>
  </div>
  <div class="card controls">
    <span class="small" id="selcount">0 selected</span>
    <select id="bulkTag">{{category_options}}</select>
    <select id="bulkMode"><option>add</option><option>remove</option><option>replace</option></select>
    <button class="btn" id="bulkCat">Apply category</button>
    <select id="termMode"><option>replace</option><option>prefix</option><option>suffix</option><option value="find-replace">find-replace</option></select>
    <input id="termText" placeholder="text / find" /> <input id="termRepl" placeholder="replacement" />
    <button class="btn" id="bulkTerm">Edit terms</button>
    <button class="btn" id="bulkDone">Mark completed</button>
    <button class="btn" id="clearSel">Clear selection</button>
  </div>
  <div class="card">
    <div class="small" id="count"></div>
    <table>
      <thead><tr><th><input type="checkbox" id="all" /></th><th>#</th><th>Fixed</th><th>Term</th><th>Count</th>
        <th>Categories</th><th>Issues</th><th>Action</th><th>Proposed</th><th>Priority</th></tr></thead>
      <tbody id="rows"></tbody>
    </table>
  </div>
</div>
<script>
const $ = (s) => document.querySelector(s);
const CATS = [...$("#bulkTag").options].map(o => o.value);
let t;
function qs(){
  const p = new URLSearchParams();
  for (const k of ["search","priority","category","status","sort"]) { const v = $("#"+k).value; if (v) p.set(k, v); }
  return p.toString();
}
async function post(url, body){
  const r = await fetch(url, {method:"POST", headers:{"Content-Type":"application/json"}, body:JSON.stringify(body)});
  if (!r.ok) alert((await r.json()).error || ("HTTP " + r.status));
  return r;
}
function esc(s){ const d = document.createElement("div"); d.textContent = s; return d.innerHTML; }
async function refresh(){
  const [terms, stats, sync] = await Promise.all([
    fetch("/api/terms?" + qs()).then(r => r.json()),
    fetch("/api/stats").then(r => r.json()),
    fetch("/api/sync").then(r => r.json()),
  ]);
  $("#stats").innerHTML = [["Terms",stats.total_terms],["Critical",stats.critical],["Formatting",stats.formatting],
    ["Failed searches",stats.total_impact],["Completed",stats.completed],["Remaining",stats.remaining]]
    .map(([k,v]) => `<div class="stat"><b>${v}</b><span class="small">${k}</span></div>`).join("");
  $("#sync").className = "small sync-" + sync.status; $("#sync").textContent = "sync: " + sync.status;
  $("#count").textContent = `Showing ${terms.shown} of ${terms.total} individual database entries`;
  $("#selcount").textContent = `${terms.selected.length} selected`;
  $("#csv").href = "/api/export/csv?" + qs(); $("#sql").href = "/api/export/sql?" + qs();
  const sel = new Set(terms.selected);
  $("#rows").innerHTML = terms.rows.length ? terms.rows.map((r, i) => `
    <tr class="${r.completed ? "done" : ""}">
      <td><input type="checkbox" data-sel="${r.id}" ${sel.has(r.id) ? "checked" : ""}/></td>
      <td class="small">${i + 1}</td>
      <td><input type="checkbox" data-done="${r.id}" ${r.completed ? "checked" : ""}/></td>
      <td>${r.highlighted}</td>
      <td class="impact-${r.priority}">${r.count}</td>
      <td>${r.categories.map(c => `<span class="tag">${c}<a data-rm="${r.id}" data-tag="${c}">×</a></span>`).join("")}
        <select data-add="${r.id}"><option value="">+</option>${CATS.filter(c => !r.categories.includes(c)).map(c => `<option>${c}</option>`).join("")}</select></td>
      <td class="small">${r.issues.length ? r.issues.map(esc).join("<br>") : "No specific issues detected"}</td>
      <td class="small">${esc(r.suggested_fix)}</td>
      <td><input data-term="${r.id}" value="${esc(r.needs_change ? r.proposed_term : "No change needed").replaceAll('"', "&quot;")}" /></td>
      <td class="impact-${r.priority}">${r.priority.toUpperCase()}</td>
    </tr>`).join("") : `<tr><td colspan="10" class="small">No terms match your current filters</td></tr>`;
}
$("#rows").addEventListener("change", async (ev) => {
  const el = ev.target, d = el.dataset;
  if (d.sel) await post("/api/selection", {action:"toggle", id:+d.sel});
  else if (d.done) await post(`/api/terms/${d.done}/completed`, {completed: el.checked});
  else if (d.term) await post(`/api/terms/${d.term}/proposed`, {text: el.value});
  else if (d.add && el.value) await post(`/api/terms/${d.add}/categories`, {action:"add", tag: el.value});
  refresh();
});
$("#rows").addEventListener("click", async (ev) => {
  const d = ev.target.dataset;
  if (d.rm) { await post(`/api/terms/${d.rm}/categories`, {action:"remove", tag:d.tag}); refresh(); }
});
$("#all").addEventListener("change", async (ev) => {
  await post("/api/selection?" + qs(), {action:"all", checked: ev.target.checked}); refresh();
});
$("#bulkCat").onclick = async () => { await post("/api/bulk/categories", {tag:$("#bulkTag").value, mode:$("#bulkMode").value}); refresh(); };
$("#bulkTerm").onclick = async () => {
  const mode = $("#termMode").value, text = $("#termText").value;
  await post("/api/bulk/terms", mode === "find-replace" ? {mode, find:text, replace:$("#termRepl").value} : {mode, text});
  refresh();
};
$("#bulkDone").onclick = async () => { await post("/api/bulk/completed", {completed:true}); refresh(); };
$("#clearSel").onclick = async () => { await post("/api/selection", {action:"clear"}); $("#all").checked = false; refresh(); };
$("#search").addEventListener("input", () => { clearTimeout(t); t = setTimeout(refresh, 150); });
for (const k of ["priority","category","status","sort"]) $("#"+k).addEventListener("change", refresh);
setInterval(refresh, 5000);  // pick up edits from other tabs
refresh();
</script>
</body>
</html>
"""


def load_engine(terms: str, *, db_dsn: str | None, debounce: float | None = None,
                verbose: bool = False) -> Engine | None:
    """Load terms into the module engine; on failure keep the message for the UI."""
    global _engine, _load_error
    eng = Engine()
    try:
        eng.load(terms, db_dsn=db_dsn, debounce=debounce, verbose=verbose)
    except TermsLoadError as exc:
        log.error("Failed to load terms: %s", exc)
        _engine, _load_error = None, str(exc)
        return None
    _engine, _load_error = eng, None
    return eng


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Run the triage web UI")
    ap.add_argument("--terms", required=True, help="JSON array of {term, count}")
    ap.add_argument("--db", dest="db", default=DEFAULT_DSN)  # DSN: "sqlite:///path" or "memory://"
    ap.add_argument("--local", action="store_true", help="Do not persist overrides")
    ap.add_argument("--debounce", type=float, default=SAVE_DEBOUNCE)
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    load_engine(args.terms, db_dsn=None if args.local else args.db,
                debounce=args.debounce, verbose=args.verbose)
    try:
        app.run(host=args.host, port=args.port, debug=args.verbose)
    finally:
        if _engine is not None:
            _engine.shutdown()
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
