from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from sicenet.schemas.sicenet import SicenetLoginRequest
from sicenet.services.sicenet_service import SicenetService, get_sicenet_service

router = APIRouter(prefix="/api/sicenet", tags=["sicenet"])


@router.post("/login")
async def login(
    payload: SicenetLoginRequest,
    service: SicenetService = Depends(get_sicenet_service),
):
    return await service.login(student_id=payload.student_id.strip(), secret=payload.secret)


@router.post("/logout")
async def logout(service: SicenetService = Depends(get_sicenet_service)):
    return await service.logout()


@router.get("/session")
async def session(service: SicenetService = Depends(get_sicenet_service)):
    return await service.session_info()


@router.get("/profile")
async def profile(service: SicenetService = Depends(get_sicenet_service)):
    return await service.profile()


@router.get("/course-load")
async def course_load(service: SicenetService = Depends(get_sicenet_service)):
    return await service.course_load()


@router.get("/transcript")
async def transcript(
    service: SicenetService = Depends(get_sicenet_service),
    curriculum: Optional[int] = Query(default=None, ge=0),
):
    return await service.transcript(curriculum_code=curriculum)


@router.get("/unit-grades")
async def unit_grades(service: SicenetService = Depends(get_sicenet_service)):
    return await service.unit_grades()


@router.get("/final-grades")
async def final_grades(
    service: SicenetService = Depends(get_sicenet_service),
    model: Optional[int] = Query(default=None, ge=0),
):
    return await service.final_grades(education_model_code=model)
