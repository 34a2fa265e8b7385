from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Rating(_CamelModel):
    score: str | None = None  # e.g. "8.7", period as decimal separator
    total_reviews: int | None = None


class Room(_CamelModel):
    name: str
    max_occupancy: int | None = None
    description: str = ""
    images: list[str] = []
    size: str = ""
    amenities: list[str] = []


class Review(_CamelModel):
    name: str = ""
    country: str = ""
    text: str = ""


class NearbyPlace(_CamelModel):
    place: str = ""
    distance: str = ""
    type: str = ""  # poi block heading, lower-cased


class CheckTimes(_CamelModel):
    checkin: str | None = None
    checkout: str | None = None


class HotelData(_CamelModel):
    hotel_name: str | None = None
    address: str | None = None
    description: str = ""
    rating: Rating = Field(default_factory=Rating)
    gallery_images: list[str] = []
    features: list[str] = []
    rooms: list[Room] = []
    reviews: list[Review] = []
    checkin: str | None = None
    checkout: str | None = None
    nearby_places: list[NearbyPlace] = []
