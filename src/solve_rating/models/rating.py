"""Rating records for a single skill dimension and for a whole user."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RATING = 1500.0
DEFAULT_RD = 350.0
DEFAULT_VOLATILITY = 0.06


class UserRating(BaseModel):
    """Glicko-2 belief about one skill dimension (global or one category)."""

    rating: float = DEFAULT_RATING
    rd: float = DEFAULT_RD
    volatility: float = Field(default=DEFAULT_VOLATILITY, gt=0)
    last_updated: datetime | None = None
    solve_count: int = 0


class UserRatings(BaseModel):
    """Global rating plus lazily populated per-category ratings."""

    model_config = ConfigDict(populate_by_name=True)

    global_: UserRating = Field(default_factory=UserRating, alias="global")
    categories: dict[str, UserRating] = Field(default_factory=dict)

    def rating_for(self, category: str) -> UserRating:
        """Category rating, falling back to the global rating when absent."""
        return self.categories.get(category, self.global_)
