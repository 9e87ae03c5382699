#!/usr/bin/env python3
from fastapi import FastAPI, UploadFile, File, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import logging, os
from typing import AsyncIterator, List, Optional

from json_filter.config import load_settings
from json_filter.errors import ConfigurationError, ParseError, StreamFilterError
from json_filter.response_filter import ResponseStreamFilter

app = FastAPI(title="JSON Filter Service")
logger = logging.getLogger(__name__)
settings = load_settings(os.environ.get("JSON_FILTER_CONFIG"))

request_counter = Counter("json_filter_requests_total", "Total JSON uploads filtered")
record_counter = Counter("json_filter_records_total", "Records emitted after filtering")
failure_counter = Counter("json_filter_failures_total", "Uploads rejected", ["reason"])
process_duration = Histogram("json_filter_process_seconds", "Time spent filtering")


async def read_upload(file: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        yield chunk


@app.get("/health", tags=["ops"])
def health():
    return {"status": "healthy"}


@app.get("/metrics", tags=["ops"])
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/filter/file", tags=["filter"])
async def filter_file(file: UploadFile = File(...),
                      extract_path: Optional[str] = Query(None),
                      fields: Optional[List[str]] = Query(None)):
    request_counter.inc()
    try:
        response_filter = ResponseStreamFilter(
            fields_to_keep=fields if fields is not None else settings.fields_to_keep,
            extract_path=extract_path or settings.extract_path,
        )
    except ConfigurationError as e:
        failure_counter.labels(reason="configuration").inc()
        raise HTTPException(status_code=400, detail=str(e))

    with process_duration.time():
        try:
            records = await response_filter.aprocess(read_upload(file, settings.chunk_size))
        except ParseError as e:
            failure_counter.labels(reason="parse").inc()
            raise HTTPException(status_code=422, detail=str(e))
        except StreamFilterError as e:
            failure_counter.labels(reason="stream").inc()
            raise HTTPException(status_code=500, detail=str(e))

    record_counter.inc(len(records))
    return JSONResponse({
        "filename": file.filename,
        "bytes": response_filter.last_stats["bytes"],
        "records": len(records),
        "response": records,
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
