import os
import json
import uuid
import mimetypes
from typing import Dict, Optional, Literal
import traceback

from fastapi import FastAPI, HTTPException, UploadFile, File, Form
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, HttpUrl, ValidationError
from starlette.responses import FileResponse, PlainTextResponse
from concurrent.futures import ThreadPoolExecutor

import requests

from stringart.darkness import load_grayscale
from stringart.estimates import (
    calculate_time_estimates,
    format_digital_time,
    format_physical_time,
    format_thread_length,
)
from stringart.export import (
    EXPORT_FORMATS,
    EXPORT_MEDIA_TYPES,
    export_connections,
    write_instructions_pdf,
)
from stringart.generator import QUALITY_PRESETS, StringArtConfig, StringArtResult
from stringart.render import make_timelapse, render_result
from stringart.worker import ErrorMessage, GenerationJob, ResultMessage

# -------------------------------------------------------------------
# Basic config
# -------------------------------------------------------------------

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL")  # e.g. https://string-art-api.onrender.com
JOBS_ROOT = os.getenv("JOBS_ROOT", "jobs")
os.makedirs(JOBS_ROOT, exist_ok=True)

MAX_WORKERS = int(os.getenv("MAX_WORKERS", "2"))

# Defaults for the generator when the caller leaves a field out
DEFAULT_PEGS_PER_SIDE = 10
DEFAULT_ITERATIONS = 500
DEFAULT_LINE_OPACITY = 0.25
DEFAULT_FRAME_SIZE = 800

SNAPSHOT_EVERY = int(os.getenv("SNAPSHOT_EVERY", "25"))  # lines per timelapse frame
TIMELAPSE_FORMAT = os.getenv("TIMELAPSE_FORMAT", "mp4")  # "mp4", "gif" or "" to skip
DOWNLOAD_TIMEOUT = 20


app = FastAPI(title="String Art API", version="2.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Job pipelines (load, wait for generation, write files) and the generation
# runs themselves live in separate pools so a pipeline never waits on a
# thread it is occupying.
EXECUTOR = ThreadPoolExecutor(max_workers=MAX_WORKERS)
GENERATION_EXECUTOR = ThreadPoolExecutor(max_workers=MAX_WORKERS)

# Runs still in flight, for live progress and cancellation
ACTIVE_JOBS: Dict[str, GenerationJob] = {}


# -------------------------------------------------------------------
# Pydantic models
# -------------------------------------------------------------------

class RedeemBody(BaseModel):
    imageUrl: HttpUrl
    pegsPerSide: int = DEFAULT_PEGS_PER_SIDE
    iterations: int = DEFAULT_ITERATIONS
    lineOpacity: float = DEFAULT_LINE_OPACITY
    frameSize: int = DEFAULT_FRAME_SIZE
    invert: bool = False


class JobStatus(BaseModel):
    jobId: str
    status: Literal["queued", "processing", "done", "error", "cancelled"]
    error: Optional[str] = None
    completedIterations: int = 0
    totalIterations: Optional[int] = None
    currentPeg: Optional[int] = None
    connectionCount: Optional[int] = None
    resultImageUrl: Optional[str] = None
    resultPdfUrl: Optional[str] = None
    resultTxtUrl: Optional[str] = None
    resultJsonUrl: Optional[str] = None
    resultCsvUrl: Optional[str] = None
    resultTimelapseUrl: Optional[str] = None


# -------------------------------------------------------------------
# Helper functions for status JSON per job
# -------------------------------------------------------------------

def job_dir(job_id: str) -> str:
    return os.path.join(JOBS_ROOT, job_id)


def status_path(job_id: str) -> str:
    return os.path.join(job_dir(job_id), "status.json")


def read_status(job_id: str) -> JobStatus:
    path = status_path(job_id)
    if not os.path.exists(path):
        raise HTTPException(status_code=404, detail="Unknown job_id")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return JobStatus(**data)


def write_status(status: JobStatus) -> None:
    jd = job_dir(status.jobId)
    os.makedirs(jd, exist_ok=True)
    path = status_path(status.jobId)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(status.model_dump(), f)
    os.replace(tmp, path)


def build_file_url(job_id: str, filename: str) -> str:
    if PUBLIC_BASE_URL:
        base = PUBLIC_BASE_URL.rstrip("/")
        return f"{base}/files/{job_id}/{filename}"
    # Fallback: relative path
    return f"/files/{job_id}/{filename}"


def make_config(pegs_per_side, iterations, line_opacity, frame_size) -> StringArtConfig:
    try:
        return StringArtConfig(pegs_per_side=pegs_per_side, iterations=iterations,
                               line_opacity=line_opacity, frame_size=frame_size)
    except ValidationError as e:
        detail = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise HTTPException(status_code=422, detail=detail)


# -------------------------------------------------------------------
# Core pipeline: grayscale → greedy threading → PNG, exports, PDF, timelapse
# -------------------------------------------------------------------

def write_result_assets(result: StringArtResult, job_id: str, status: JobStatus) -> None:
    jd = job_dir(job_id)

    with open(os.path.join(jd, "result.json"), "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f)

    for fmt in EXPORT_FORMATS:
        with open(os.path.join(jd, f"connections.{fmt}"), "w", encoding="utf-8") as f:
            f.write(export_connections(result.connections, fmt))

    render_result(result, os.path.join(jd, "string_art_result.png"))
    status.resultImageUrl = build_file_url(job_id, "string_art_result.png")
    status.resultTxtUrl = build_file_url(job_id, "connections.txt")
    status.resultJsonUrl = build_file_url(job_id, "connections.json")
    status.resultCsvUrl = build_file_url(job_id, "connections.csv")

    # nothing to thread when the image was blank
    if result.line_count:
        write_instructions_pdf(result.connections, os.path.join(jd, "string_art_instructions.pdf"))
        status.resultPdfUrl = build_file_url(job_id, "string_art_instructions.pdf")

        if TIMELAPSE_FORMAT:
            name = f"string_art_timelapse.{TIMELAPSE_FORMAT}"
            make_timelapse(result, os.path.join(jd, name), snapshot_every=SNAPSHOT_EVERY)
            status.resultTimelapseUrl = build_file_url(job_id, name)


def generate_string_art_assets(input_path: str, job_id: str,
                               config: StringArtConfig, invert: bool = False) -> None:
    """
    Runs the full pipeline for a given job:
    - load the image as frame-sized grayscale
    - run the greedy generator on the generation pool, following its progress
    - write PNG, txt/json/csv exports, PDF instructions and timelapse
    Updates status.json as it goes.
    """
    status = JobStatus(jobId=job_id, status="processing", totalIterations=config.iterations)
    write_status(status)

    print(f"[JOB {job_id}] Starting pipeline, input_path={input_path}, config={config}", flush=True)

    try:
        gray = load_grayscale(input_path, int(round(config.frame_size)))

        job = GenerationJob.submit(GENERATION_EXECUTOR, gray, config, invert=invert)
        ACTIVE_JOBS[job_id] = job
        try:
            for msg in job.events():
                if isinstance(msg, ResultMessage):
                    result = msg.result
                elif isinstance(msg, ErrorMessage):
                    status.status = "cancelled" if job.cancelled else "error"
                    status.error = msg.error
                    status.completedIterations = job.latest_progress.iteration if job.latest_progress else 0
                    write_status(status)
                    print(f"[JOB {job_id}] {status.status.upper()}: {msg.error}", flush=True)
                    return
        finally:
            ACTIVE_JOBS.pop(job_id, None)

        status.completedIterations = result.line_count
        status.currentPeg = result.connections[-1]
        status.connectionCount = len(result.connections)
        if result.line_count < config.iterations:
            print(f"[JOB {job_id}] Stopped early after {result.line_count} lines", flush=True)

        write_result_assets(result, job_id, status)

        status.status = "done"
        write_status(status)

        print(f"[JOB {job_id}] Finished OK", flush=True)

    except Exception as e:
        status.status = "error"
        status.error = str(e)
        write_status(status)

        print(f"[JOB {job_id}] ERROR: {e!r}", flush=True)
        traceback.print_exc()


def start_job(contents: bytes, config: StringArtConfig, invert: bool,
              content_type: str = "image/jpeg") -> JobStatus:
    job_id = uuid.uuid4().hex[:12]
    jd = job_dir(job_id)
    os.makedirs(jd, exist_ok=True)

    # keep a real image suffix so the reader picks the right plugin
    suffix = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ".jpg"
    input_path = os.path.join(jd, f"input{suffix}")
    try:
        with open(input_path, "wb") as out:
            out.write(contents)
    except Exception as e:
        status = JobStatus(jobId=job_id, status="error", error=f"Failed to save upload: {e}")
        write_status(status)
        return status

    status = JobStatus(jobId=job_id, status="queued", totalIterations=config.iterations)
    write_status(status)

    EXECUTOR.submit(generate_string_art_assets, input_path, job_id, config, invert)

    return status


# -------------------------------------------------------------------
# API endpoints
# -------------------------------------------------------------------

@app.get("/")
def root():
    return {
        "status": "ok",
        "publicBaseUrl": PUBLIC_BASE_URL or "(relative)",
        "filesRoot": JOBS_ROOT,
        "activeJobs": len(ACTIVE_JOBS),
    }


@app.get("/presets")
def presets():
    return {
        name: {"pegsPerSide": p, "iterations": it, "lineOpacity": op}
        for name, (p, it, op) in QUALITY_PRESETS.items()
    }


@app.get("/estimate")
def estimate(pegsPerSide: int = DEFAULT_PEGS_PER_SIDE, iterations: int = DEFAULT_ITERATIONS):
    if pegsPerSide < 2 or iterations < 1:
        raise HTTPException(status_code=422, detail="pegsPerSide must be >= 2 and iterations >= 1")
    est = calculate_time_estimates(pegsPerSide, iterations)
    return {
        "totalPegs": pegsPerSide * 4,
        "digital": f"{format_digital_time(est.digital_min_s)} - {format_digital_time(est.digital_max_s)}",
        "physical": {
            "beginner": format_physical_time(est.beginner_min),
            "average": format_physical_time(est.average_min),
            "experienced": format_physical_time(est.experienced_min),
        },
        "threadLength": f"{format_thread_length(est.thread_min_m)} - {format_thread_length(est.thread_max_m)}",
    }


@app.post("/generate", response_model=JobStatus)
async def generate(
    file: UploadFile = File(...),
    pegsPerSide: int = Form(DEFAULT_PEGS_PER_SIDE),
    iterations: int = Form(DEFAULT_ITERATIONS),
    lineOpacity: float = Form(DEFAULT_LINE_OPACITY),
    frameSize: int = Form(DEFAULT_FRAME_SIZE),
    invert: bool = Form(False),
):
    """
    Start a job from an uploaded image.
    Always writes a status.json file so /status/{job_id} never 404s.
    """
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Uploaded file must be an image")

    config = make_config(pegsPerSide, iterations, lineOpacity, frameSize)
    contents = await file.read()
    return start_job(contents, config, invert, file.content_type)


@app.post("/generate-url", response_model=JobStatus)
def generate_from_url(body: RedeemBody):
    """Start a job from an image URL."""
    config = make_config(body.pegsPerSide, body.iterations, body.lineOpacity, body.frameSize)
    try:
        resp = requests.get(str(body.imageUrl), timeout=DOWNLOAD_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPException(status_code=400, detail=f"Could not download image: {e}")

    content_type = resp.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="URL does not point to an image")

    return start_job(resp.content, config, body.invert, content_type)


@app.get("/status/{job_id}", response_model=JobStatus)
def get_status(job_id: str):
    status = read_status(job_id)

    job = ACTIVE_JOBS.get(job_id)
    if job is not None and job.latest_progress is not None:
        status.completedIterations = job.latest_progress.iteration
        status.totalIterations = job.latest_progress.total
        status.currentPeg = job.latest_progress.current_peg

    return status


@app.get("/result/{job_id}")
def get_result(job_id: str):
    status = read_status(job_id)
    if status.status != "done":
        raise HTTPException(status_code=409, detail=f"Job is {status.status}")
    with open(os.path.join(job_dir(job_id), "result.json"), "r", encoding="utf-8") as f:
        return json.load(f)


@app.get("/export/{job_id}")
def export(job_id: str, format: str = "txt"):
    status = read_status(job_id)
    if status.status != "done":
        raise HTTPException(status_code=409, detail=f"Job is {status.status}")
    with open(os.path.join(job_dir(job_id), "result.json"), "r", encoding="utf-8") as f:
        connections = json.load(f)["connections"]
    try:
        content = export_connections(connections, format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PlainTextResponse(content, media_type=EXPORT_MEDIA_TYPES[format])


@app.delete("/jobs/{job_id}", response_model=JobStatus)
def cancel_job(job_id: str):
    status = read_status(job_id)
    job = ACTIVE_JOBS.get(job_id)
    if job is None:
        if status.status in ("queued", "processing"):
            # still loading the image; nothing to stop yet
            raise HTTPException(status_code=409, detail="Job has not started generating yet")
        raise HTTPException(status_code=409, detail=f"Job is already {status.status}")
    job.cancel()
    print(f"[JOB {job_id}] Cancel requested", flush=True)
    return status


@app.get("/files/{job_id}/{filename}")
def get_file(job_id: str, filename: str):
    if os.path.basename(filename) != filename:
        raise HTTPException(status_code=404, detail="File not found")
    path = os.path.join(job_dir(job_id), filename)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)
