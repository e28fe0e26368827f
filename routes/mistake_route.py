"""FastAPI routes for mistake records, analysis, and backups."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from controllers import mistake_controller
from controllers.error_mapping import to_http_exception

router = APIRouter(prefix="/api/mistakes", tags=["mistakes"])


class CreatePayload(BaseModel):
	image_data_url: str = Field(alias="imageDataUrl")
	subject: Optional[str] = None
	user_notes: str = Field(default="", alias="userNotes")
	user_correct_answer: str = Field(alias="userCorrectAnswer")
	compress: bool = True


class MasteryPayload(BaseModel):
	mastery: str


class AnalyzePayload(BaseModel):
	language: Optional[str] = None
	custom_instructions: Optional[str] = Field(default=None, alias="customInstructions")


class SimilarPayload(BaseModel):
	language: Optional[str] = None


async def _call(coro):
	try:
		return await coro
	except HTTPException:
		raise
	except Exception as exc:
		raise to_http_exception(exc) from exc


@router.get("")
async def list_mistakes_route(
	request: Request,
	q: str = "",
	subject: Optional[str] = Query(None),
	mastery: Optional[str] = Query(None),
):
	return await _call(mistake_controller.list_mistakes(request, q, subject, mastery))


@router.post("", status_code=201)
async def create_mistake_route(request: Request, payload: CreatePayload):
	return await _call(
		mistake_controller.create_mistake(
			request,
			payload.image_data_url,
			payload.subject,
			payload.user_notes,
			payload.user_correct_answer,
			payload.compress,
		)
	)


@router.delete("")
async def clear_local_route(request: Request):
	return await _call(mistake_controller.clear_local_mistakes(request))


@router.get("/stats")
async def stats_route(request: Request):
	return await _call(mistake_controller.mistake_stats(request))


@router.get("/export")
async def export_route(request: Request):
	return await _call(mistake_controller.export_mistakes(request))


@router.post("/import")
async def import_route(request: Request):
	body = await request.body()
	return await _call(mistake_controller.import_mistakes(request, body))


@router.put("/{record_id}")
async def replace_mistake_route(request: Request, record_id: str, payload: Dict[str, Any]):
	return await _call(mistake_controller.replace_mistake(request, record_id, payload))


@router.patch("/{record_id}/mastery")
async def update_mastery_route(request: Request, record_id: str, payload: MasteryPayload):
	return await _call(mistake_controller.update_mastery(request, record_id, payload.mastery))


@router.delete("/{record_id}")
async def delete_mistake_route(request: Request, record_id: str):
	return await _call(mistake_controller.delete_mistake(request, record_id))


@router.post("/{record_id}/analyze")
async def analyze_route(request: Request, record_id: str, payload: AnalyzePayload):
	return await _call(
		mistake_controller.analyze_mistake(request, record_id, payload.language, payload.custom_instructions)
	)


@router.post("/{record_id}/similar")
async def similar_route(request: Request, record_id: str, payload: SimilarPayload):
	return await _call(mistake_controller.similar_question(request, record_id, payload.language))
