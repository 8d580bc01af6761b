from __future__ import annotations
import logging
from datetime import datetime, timezone
from flask import Flask, jsonify, request, abort, redirect, url_for
from .config import Config
from .db import init_db
from .models import Fund, CashMovementRecord, SnapshotRecord
from .services.bootstrap import get_or_create_fund, replace_fund_contents
from .services.holdings import ledger_for_fund, snapshots_for_fund, fund_names, fund_scenario, all_scenarios
from .services.ingest import ingest_all
from .services.ledger import CashMovement, InvalidInputError, as_date, ensure_finite
from .services.scenario import build_export, parse_scenario
from .services.snapshots import capture_snapshot, edit_snapshot, live_metrics, reconcile
from .services.summary import latest_comparison, rate_series


def _iso(d):
    return d.isoformat() if d is not None else None


def _snapshot_json(sid, snapshot, metrics):
    return {
        "id": sid,
        "calculation_timestamp": _iso(snapshot.calculation_timestamp),
        "valuation_date": _iso(snapshot.valuation_date),
        "current_value": snapshot.current_value,
        **metrics.as_dict(),
    }


def _configure_logging(app: Flask):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s: %(message)s'))
    # app.logger ("fundcalc.app") and the services propagate to this one
    logger = logging.getLogger("fundcalc")
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(handler)


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    # before the first app.logger access, so Flask skips its default handler
    _configure_logging(app)

    engine, Session = init_db(app.config["SQLALCHEMY_DATABASE_URI"])
    app.extensions["fundcalc_session"] = Session

    if app.config.get("INGEST_ON_STARTUP"):
        with Session() as s:
            app.config["INGEST_REPORT"] = ingest_all(s, app.config["DATA_DIR"])

    @app.teardown_appcontext
    def remove_session(exc=None):
        Session.remove()

    @app.errorhandler(InvalidInputError)
    def invalid_input(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not found"}), 404

    def _fund_or_404(s, fund_id: int) -> Fund:
        fund = s.get(Fund, fund_id)
        if fund is None:
            abort(404)
        return fund

    def _body() -> dict:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise InvalidInputError("request body must be a JSON object")
        return payload

    @app.get("/")
    def index():
        rep = app.config.get("INGEST_REPORT") or []
        ok = sum(1 for r in rep if r.get("status") == "ok")
        err = sum(1 for r in rep if r.get("status") == "error")
        return jsonify({"ingest": {"ok": ok, "errors": err, "files": rep}})

    @app.post("/reingest")
    def reingest():
        with Session() as s:
            app.config["INGEST_REPORT"] = ingest_all(s, app.config["DATA_DIR"])
        return redirect(url_for("index"))

    # ---------- funds ----------
    @app.get("/api/funds")
    def api_funds():
        with Session() as s:
            return jsonify([{"id": fid, "name": name} for fid, name in sorted(fund_names(s).items())])

    @app.post("/api/funds")
    def api_create_fund():
        name = _body().get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("fund name is required")
        with Session() as s:
            fund = get_or_create_fund(s, name.strip())
            return jsonify({"id": fund.id, "name": fund.name}), 201

    @app.get("/api/funds/<int:fund_id>")
    def api_fund(fund_id: int):
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            return jsonify({
                "id": fund.id,
                "name": fund.name,
                "valuation_date": _iso(fund.valuation_date),
                "current_value": fund.current_value,
                "cashflows": [r.to_dict() for r in fund.cashflows],
            })

    @app.delete("/api/funds/<int:fund_id>")
    def api_delete_fund(fund_id: int):
        with Session() as s:
            s.delete(_fund_or_404(s, fund_id))
            s.commit()
            return "", 204

    # ---------- cash flows ----------
    @app.post("/api/funds/<int:fund_id>/cashflows")
    def api_add_cashflow(fund_id: int):
        m = CashMovement.from_dict(_body())
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            rec = CashMovementRecord(fund_id=fund.id, date=m.date, amount=m.amount, direction=m.direction)
            s.add(rec)
            s.commit()
            return jsonify(rec.to_dict()), 201

    @app.patch("/api/funds/<int:fund_id>/cashflows/<int:cf_id>")
    def api_update_cashflow(fund_id: int, cf_id: int):
        patch = _body()
        with Session() as s:
            rec = s.get(CashMovementRecord, cf_id)
            if rec is None or rec.fund_id != fund_id:
                abort(404)
            merged = {**rec.to_movement().to_dict(), **{k: patch[k] for k in ("date", "amount", "direction") if k in patch}}
            m = CashMovement.from_dict(merged)
            rec.date, rec.amount, rec.direction = m.date, m.amount, m.direction
            s.commit()
            return jsonify(rec.to_dict())

    @app.delete("/api/funds/<int:fund_id>/cashflows/<int:cf_id>")
    def api_delete_cashflow(fund_id: int, cf_id: int):
        with Session() as s:
            rec = s.get(CashMovementRecord, cf_id)
            if rec is None or rec.fund_id != fund_id:
                abort(404)
            s.delete(rec)
            s.commit()
            return "", 204

    # ---------- valuation & metrics ----------
    @app.put("/api/funds/<int:fund_id>/valuation")
    def api_set_valuation(fund_id: int):
        payload = _body()
        d = payload.get("date")
        v = payload.get("value")
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            fund.valuation_date = as_date(d) if d else None
            fund.current_value = ensure_finite(v, "value") if v is not None else None
            s.commit()
            return jsonify({"valuation_date": _iso(fund.valuation_date), "current_value": fund.current_value})

    @app.get("/api/funds/<int:fund_id>/metrics")
    def api_metrics(fund_id: int):
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            m = live_metrics(ledger_for_fund(s, fund.id), fund.valuation_date, fund.current_value)
            return jsonify(m.as_dict())

    # ---------- snapshots ----------
    @app.post("/api/funds/<int:fund_id>/snapshots")
    def api_save_snapshot(fund_id: int):
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            ledger = ledger_for_fund(s, fund.id)
            res = capture_snapshot(ledger, fund.valuation_date, fund.current_value)
            if not res.ok:
                return jsonify({"error": res.reason}), 400
            rec = SnapshotRecord.from_snapshot(fund.id, res.value)
            s.add(rec)
            s.commit()
            app.logger.info("Snapshot %s saved for fund %r", rec.id, fund.name)
            return jsonify(_snapshot_json(rec.id, res.value, reconcile(res.value, ledger))), 201

    @app.get("/api/funds/<int:fund_id>/history")
    def api_history(fund_id: int):
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            ledger = ledger_for_fund(s, fund.id)
            pairs = sorted(snapshots_for_fund(s, fund.id), key=lambda p: p[1].valuation_date)
            return jsonify([_snapshot_json(sid, snap, reconcile(snap, ledger)) for sid, snap in pairs])

    @app.patch("/api/funds/<int:fund_id>/snapshots/<int:snapshot_id>")
    def api_edit_snapshot(fund_id: int, snapshot_id: int):
        patch = _body()
        with Session() as s:
            rec = s.get(SnapshotRecord, snapshot_id)
            if rec is None or rec.fund_id != fund_id:
                abort(404)
            edited = edit_snapshot(rec.to_snapshot(), patch.get("valuation_date"), patch.get("current_value"))
            rec.valuation_date = edited.valuation_date
            rec.current_value = edited.current_value
            rec.net_invested = edited.net_invested
            s.commit()
            return jsonify(_snapshot_json(rec.id, edited, reconcile(edited, ledger_for_fund(s, fund_id))))

    @app.delete("/api/funds/<int:fund_id>/snapshots/<int:snapshot_id>")
    def api_delete_snapshot(fund_id: int, snapshot_id: int):
        with Session() as s:
            rec = s.get(SnapshotRecord, snapshot_id)
            if rec is None or rec.fund_id != fund_id:
                abort(404)
            s.delete(rec)
            s.commit()
            return "", 204

    # ---------- import / export ----------
    @app.get("/api/funds/<int:fund_id>/export")
    def api_export(fund_id: int):
        with Session() as s:
            fund = _fund_or_404(s, fund_id)
            return jsonify(build_export(fund_scenario(s, fund)))

    @app.post("/api/import")
    def api_import():
        parsed = parse_scenario(request.get_json(silent=True))
        if not parsed.ok:
            return jsonify({"error": parsed.reason}), 400
        scenario = parsed.value
        name = scenario.fund_name or f"Imported {datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S}"
        with Session() as s:
            fund = replace_fund_contents(s, get_or_create_fund(s, name), scenario)
            return jsonify({"id": fund.id, "name": fund.name,
                            "cashflows": len(scenario.cashflows), "snapshots": len(scenario.history)}), 201

    # ---------- fund comparison ----------
    @app.get("/api/summary")
    def api_summary():
        rate = request.args.get("rate", "irr")
        if rate not in ("irr", "simple_rate"):
            raise InvalidInputError("rate must be 'irr' or 'simple_rate'")
        with Session() as s:
            funds = all_scenarios(s)
        latest = [{**row, "valuation_date": _iso(row["valuation_date"])} for row in latest_comparison(funds)]
        series = [
            {"fund_name": ser["fund_name"], "points": [{"date": _iso(d), "rate": r} for d, r in ser["points"]]}
            for ser in rate_series(funds, rate)
        ]
        return jsonify({"latest": latest, "series": series})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
