from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pathlib import Path
import json
import os

app = FastAPI(title="Mock Reference Data Server", version="1.0.0")
# UPSTREAM_STUB_DIR points at an alternative set of stub files
DATA_DIR = Path(os.environ.get("UPSTREAM_STUB_DIR", Path(__file__).resolve().parent / "stubs"))

@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/rates/live")
def live_rates(access_key: str = ""):
    if not access_key:
        return JSONResponse(content={
            "success": False,
            "error": {"code": 101, "type": "missing_access_key", "info": "You have not supplied an API Access Key."},
        })
    return JSONResponse(content=json.loads((DATA_DIR / "live.json").read_text()))

@app.get("/bins/{bin}")
def lookup_bin(bin: str):
    bins = json.loads((DATA_DIR / "bins.json").read_text())
    if bin not in bins:
        raise HTTPException(status_code=404, detail="bin not found")
    return JSONResponse(content={"country": {"alpha2": bins[bin]}})
