from __future__ import annotations

from fastapi import APIRouter, Depends

from ..db.store import KeyValueStore
from ..deps.state import get_store
from ..schemas.preferences import ThemePreference
from ..services.preferences import load_theme, save_theme

router = APIRouter(prefix="/api/v1/preferences", tags=["preferences"])


@router.get("/theme", response_model=ThemePreference)
def get_theme(store: KeyValueStore = Depends(get_store)):
    return ThemePreference(theme=load_theme(store))


@router.put("/theme", response_model=ThemePreference)
def put_theme(payload: ThemePreference, store: KeyValueStore = Depends(get_store)):
    return ThemePreference(theme=save_theme(store, payload.theme))
