"""
hackjudge/routes/__init__.py
Route registration
"""
from fastapi import APIRouter
from hackjudge.routes import admin, judge, public

router = APIRouter()

router.include_router(admin.router)
router.include_router(judge.router)
router.include_router(public.router)
