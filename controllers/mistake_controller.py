import asyncio
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import Response

from controllers.dependencies import get_analyzer, get_identity, get_persistence
from models.mistake_record import MasteryLevel, MistakeRecord, Subject, apply_analysis, new_mistake
from services.image_compressor import ImageCompressor
from services.notebook_state import NotebookState, compute_stats, filter_records
from services.openai.cost_generator import CostGenerator
from services.records_io import backup_filename, export_json, parse_import


async def _load_notebook(request: Request) -> NotebookState:
    notebook = NotebookState(get_persistence(request), get_identity(request))
    await notebook.reload()
    return notebook


def _require(notebook: NotebookState, record_id: str) -> MistakeRecord:
    record = notebook.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Mistake not found")
    return record


async def list_mistakes(
    request: Request,
    search: str = "",
    subject: Optional[str] = None,
    mastery: Optional[str] = None,
) -> Dict[str, Any]:
    """List the caller's records, newest first, optionally filtered."""
    records = await get_persistence(request).list_all(get_identity(request))
    matched = filter_records(
        records,
        search=search,
        subject=Subject.parse(subject) if subject else None,
        mastery=MasteryLevel.parse(mastery) if mastery else None,
    )
    return {"items": [r.to_dict() for r in matched], "total": len(records)}


async def create_mistake(
    request: Request,
    image_data_url: str,
    subject: Optional[str],
    user_notes: str,
    user_correct_answer: str,
    compress: bool = True,
) -> Dict[str, Any]:
    """Compress the photographed question and save it as a new record.

    Args:
        request: FastAPI Request object (used to access app.state for shared services).
        image_data_url: Photo of the question as a data URL.
        subject: Subject value or member name; defaults to math.
        user_notes: Optional note; becomes the question text until analysis runs.
        user_correct_answer: The correct answer as entered by the user.
        compress: Downscale and re-encode the photo before saving.

    Returns:
        The record as stored.
    """
    if not user_correct_answer.strip():
        raise HTTPException(status_code=400, detail="The correct answer is required.")

    image_url = image_data_url
    if compress:
        # Pillow work is blocking -> run in thread
        image_url = await asyncio.to_thread(ImageCompressor().compress_data_url, image_data_url)

    record = new_mistake(
        image_url=image_url,
        subject=Subject.parse(subject) if subject else Subject.SANSU,
        user_notes=user_notes,
        user_correct_answer=user_correct_answer,
    )
    stored = await get_persistence(request).create(get_identity(request), record)
    return stored.to_dict()


async def replace_mistake(request: Request, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the full value of a record (reflection edits, manual answers, ...)."""
    record = MistakeRecord.from_dict({**data, "id": record_id})
    if not record.created_at:
        raise HTTPException(status_code=400, detail="createdAt is required.")
    stored = await get_persistence(request).update(get_identity(request), record)
    return stored.to_dict()


async def update_mastery(request: Request, record_id: str, mastery: str) -> Dict[str, Any]:
    notebook = await _load_notebook(request)
    _require(notebook, record_id)
    stored = await notebook.set_mastery(record_id, MasteryLevel.parse(mastery))
    return stored.to_dict()


async def delete_mistake(request: Request, record_id: str) -> Dict[str, Any]:
    """Delete a record and report whether its image was cleaned up."""
    notebook = await _load_notebook(request)
    _require(notebook, record_id)
    outcome = await notebook.delete(record_id)
    return {
        "id": record_id,
        "deleted": True,
        "imageDeleted": outcome.image_deleted,
        "imageCleanupError": outcome.image_cleanup_error,
    }


async def mistake_stats(request: Request) -> Dict[str, Any]:
    records = await get_persistence(request).list_all(get_identity(request))
    return compute_stats(records).to_dict()


async def analyze_mistake(
    request: Request,
    record_id: str,
    language: Optional[str],
    custom_instructions: Optional[str],
) -> Dict[str, Any]:
    """Run AI analysis on a record's image and persist the enrichment.

    The `imageBase64` backup is preferred over `imageUrl` so the image does
    not need to be downloaded again.
    """
    analyzer = get_analyzer(request)
    notebook = await _load_notebook(request)
    record = _require(notebook, record_id)
    image = record.image_base64 or record.image_url
    if not image:
        raise HTTPException(status_code=400, detail="This mistake has no image to analyze.")

    result = await analyzer.analyze_image(
        image, hint=record.user_notes or "", language=language, custom_instructions=custom_instructions
    )
    stored = await notebook.update(apply_analysis(record, result))
    return {
        "item": stored.to_dict(),
        "analysis": result.to_dict(),
        "cost": CostGenerator().estimate_usage(result.token_usage, analyzer.model),
    }


async def similar_question(request: Request, record_id: str, language: Optional[str]) -> Dict[str, Any]:
    analyzer = get_analyzer(request)
    notebook = await _load_notebook(request)
    record = _require(notebook, record_id)
    result = await analyzer.generate_similar_question(record.question_text, record.ai_analysis, language)
    return {
        **result.to_dict(),
        "cost": CostGenerator().estimate_usage(result.token_usage, analyzer.model),
    }


async def export_mistakes(request: Request) -> Response:
    """Return the full collection as a downloadable JSON array."""
    records = await get_persistence(request).export_records(get_identity(request))
    return Response(
        content=export_json(records),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{backup_filename()}"'},
    )


async def import_mistakes(request: Request, body: bytes) -> Dict[str, Any]:
    """Restore a backup into the local store and report a coarse status."""
    records = parse_import(body)
    report = await get_persistence(request).import_records(records)
    return {"status": "success", "processed": report.processed, "skipped": report.skipped}


async def clear_local_mistakes(request: Request) -> Dict[str, Any]:
    deleted = await get_persistence(request).clear_local()
    return {"status": "success", "deleted": deleted}
