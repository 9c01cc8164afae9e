from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class ThemePreference(BaseModel):
    theme: Literal["light", "dark"]
