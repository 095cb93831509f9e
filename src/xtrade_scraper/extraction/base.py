# ABOUTME: Data models produced by the extraction stage
# ABOUTME: Candidate cards parsed from model output and page-structure classification results

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExtractedCard(BaseModel):
    """A candidate card found on a source page. Ephemeral, never persisted as-is."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(min_length=1, description="Card name as shown on the source")
    image_url: str = Field(min_length=1, description="Absolute URL of the card image")
    series: str | None = None
    member_name: str | None = None
    group_name: str | None = None
    rarity: str | None = None
    release_date: str | None = None
    source_url: str | None = None


class SelectorSet(BaseModel):
    """CSS selectors locating cards on a listing page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    card_list: str = ""
    card_name: str = ""
    card_image: str = ""
    next_page: str | None = None


class PageAnalysis(BaseModel):
    """Whether a page looks like a card listing, with optional selector hints."""

    is_card_list_page: bool = False
    suggested_selectors: SelectorSet | None = None
    reason: str | None = None
