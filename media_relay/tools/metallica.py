"""Demonstration tool returning Metallica's studio albums."""

import logging
from typing import Any, Dict

from pydantic import BaseModel, Field

from media_relay.config.constants import LOGGER_NAME
from media_relay.tools.registry import ToolDescriptor

logger = logging.getLogger(LOGGER_NAME)

METALLICA_ALBUMS = [
    {"name": "Kill 'Em All", "releaseYear": 1983},
    {"name": "Ride the Lightning", "releaseYear": 1984},
    {"name": "Master of Puppets", "releaseYear": 1986},
    {"name": "...And Justice for All", "releaseYear": 1988},
    {"name": "Metallica (The Black Album)", "releaseYear": 1991},
    {"name": "Load", "releaseYear": 1996},
    {"name": "Reload", "releaseYear": 1997},
    {"name": "St. Anger", "releaseYear": 2003},
    {"name": "Death Magnetic", "releaseYear": 2008},
    {"name": "Hardwired... to Self-Destruct", "releaseYear": 2016},
]


class MetallicaAlbumsInput(BaseModel):
    limit: int = Field(default=10, ge=0, description="Maximum number of albums to return")


async def get_metallica_albums(arguments: MetallicaAlbumsInput) -> Dict[str, Any]:
    logger.info(f"Fetching up to {arguments.limit} Metallica albums")
    return {"albums": [dict(album) for album in METALLICA_ALBUMS[: arguments.limit]]}


metallica_albums_tool = ToolDescriptor(
    name="getMetallicaAlbums",
    description="Get Metallica albums",
    input_model=MetallicaAlbumsInput,
    executor=get_metallica_albums,
)
