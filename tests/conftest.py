"""
Shared fixtures for the multi-agent housing system tests.
"""

import json
import logging
from typing import Callable, List, Union
from unittest.mock import Mock

import pytest

from housing_multi_agent.config import Config
from housing_multi_agent.listings import Listing, ListingStore


class StubInference:
    """Inference double: a responder maps each prompt to text or an exception."""

    def __init__(self, responder: Callable[[str], Union[str, Exception]] = lambda prompt: ""):
        self.responder = responder
        self.prompts: List[str] = []

    async def infer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        result = self.responder(prompt)
        if isinstance(result, Exception):
            raise result
        return result


LISTING_RECORDS = [
    {
        "url": "https://www.facebook.com/marketplace/item/1234567890123/",
        "title": "Sunny 1BR downtown",
        "price": "$1,850",
        "location": "Downtown, San Francisco",
        "description": "Bright one-bedroom, in-unit laundry.",
        "bedrooms": 1,
        "bathrooms": 1,
        "housingType": "apartment",
        "privateRoom": True,
        "privateBath": True,
        "coordinates": {"latitude": 37.7897, "longitude": -122.4},
        "availableDate": "2026-11-01",
        "source": "facebook",
    },
    {
        "url": "https://www.facebook.com/marketplace/item/2345678901234/",
        "title": "Private room in shared Victorian",
        "price": 1150,
        "location": "Mission District, San Francisco",
        "description": "Furnished room, quiet housemates.",
        "bedrooms": 1,
        "bathrooms": 1,
        "housingType": "room",
        "privateRoom": True,
        "privateBath": False,
        "genderPreference": "female",
        "coordinates": {"latitude": 37.7599, "longitude": -122.4148},
        "source": "facebook",
    },
    {
        "url": "https://sfbay.craigslist.org/sfc/apa/d/downtown-loft/7712345678.html",
        "title": "Downtown loft",
        "price": 2450,
        "location": "Downtown, San Francisco",
        "description": "Open loft, 12 month lease, deposit one month rent.",
        "bedrooms": 1,
        "bathrooms": 1,
        "housingType": "apartment",
        "privateRoom": True,
        "privateBath": True,
        "coordinates": {"latitude": 37.7857, "longitude": -122.4057},
        "availableDate": "2026-11-01",
        "source": "craigslist",
    },
    {
        "url": "https://sfbay.craigslist.org/pen/hou/d/daly-city-house/7734567890.html",
        "title": "3BR house in Daly City",
        "price": 4100,
        "location": "Daly City",
        "description": "Family home with a backyard.",
        "bedrooms": 3,
        "bathrooms": 2,
        "housingType": "house",
        "privateRoom": True,
        "privateBath": True,
        "coordinates": None,
        "source": "craigslist",
    },
]


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing."""
    return Mock(spec=logging.Logger)


@pytest.fixture
def config(tmp_path):
    """Default configuration with every file path under a temp directory."""
    config = Config()
    config.logging.file = str(tmp_path / "logs" / "test.log")
    config.messaging.session_file = str(tmp_path / "sessions" / "session.json")
    return config


@pytest.fixture
def listings():
    return [Listing.model_validate(record) for record in LISTING_RECORDS]


@pytest.fixture
def store(listings, mock_logger):
    return ListingStore(listings, mock_logger)


@pytest.fixture
def config_dir(tmp_path):
    """A config.yaml plus one listing file, laid out the way the app expects."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "listings.json").write_text(json.dumps(LISTING_RECORDS), encoding="utf-8")

    config_content = f"""
aws:
  region: "us-east-1"
  access_key_id: ""
  secret_access_key: ""

data:
  sources:
    - name: "local"
      path: "data/listings.json"

messaging:
  session_file: "{(tmp_path / 'sessions' / 'session.json').as_posix()}"

logging:
  level: "DEBUG"
  file: "{(tmp_path / 'logs' / 'system.log').as_posix()}"
"""
    (tmp_path / "config.yaml").write_text(config_content, encoding="utf-8")
    return tmp_path
