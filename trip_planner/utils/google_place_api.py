import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from tenacity import retry, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class GooglePlaceAPI:
    """
    A client for the Google Places API (New) text search.

    Used to pin the places proposed by the model to real listings: coordinates,
    place id, rating and website.
    """

    def __init__(self, api_key: str):
        """
        Initialize the Google Places API client.

        Args:
            api_key: Your Google API key with Places API access enabled
        """
        self.api_key = api_key
        self.base_url = "https://places.googleapis.com/v1"

        # Default fields to request for text search
        self.default_fields = (
            "places.id,places.displayName,places.formattedAddress,places.location,"
            "places.rating,places.websiteUri,places.regularOpeningHours,places.businessStatus"
        )

        # Rate limiting parameters
        self.max_concurrent_requests = 5
        self.request_delay = 0.1  # 100ms between requests

    def _extract_property_from_results(self, place: Dict[str, Any]) -> Dict[str, Any]:
        """
        Extract and format relevant properties from a place result.

        Args:
            place: The place dictionary from the API response

        Returns:
            Dictionary with formatted place properties; missing values are None
        """
        location = place.get("location", {})
        opening_hours = place.get("regularOpeningHours", {}).get("weekdayDescriptions", [])
        return {
            "place_id": place.get("id"),
            "place_name": place.get("displayName", {}).get("text"),
            "formatted_address": place.get("formattedAddress"),
            "latitude": location.get("latitude"),
            "longitude": location.get("longitude"),
            "rating": place.get("rating"),
            "website_uri": place.get("websiteUri"),
            "regular_opening_hours": ", ".join(opening_hours) if opening_hours else None,
            "business_status": place.get("businessStatus"),
        }

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=10))
    async def _async_text_search(
        self, text_query: str, max_results: int = 1, fields: Optional[str] = None
    ) -> List[Dict]:
        """
        Perform an asynchronous text search with retry logic.

        Args:
            text_query: The search query
            max_results: Maximum number of results to return (at most 20)
            fields: Comma-separated list of fields to request

        Returns:
            List of dictionaries containing formatted place information
        """
        if fields is None:
            fields = self.default_fields

        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": fields,
        }
        endpoint = f"{self.base_url}/places:searchText"
        payload = {"textQuery": text_query, "maxResultCount": min(max_results, 20)}

        async with aiohttp.ClientSession() as session:
            try:
                async with session.post(endpoint, headers=headers, json=payload) as response:
                    response.raise_for_status()
                    result = await response.json()
            except Exception as e:
                logger.error(f"Error in async text search: {e}")
                raise  # Let the retry decorator handle retries

        places = result.get("places", [])[:max_results]
        return [self._extract_property_from_results(place) for place in places]

    async def batch_text_search(
        self, queries: List[str], max_results_per_query: int = 1, fields: Optional[str] = None
    ) -> Dict[str, List[Dict]]:
        """
        Perform multiple text searches concurrently with rate limiting.

        A query that still fails after its retries maps to an empty list.

        Args:
            queries: List of search queries to process
            max_results_per_query: Maximum number of results per query
            fields: Comma-separated list of fields to request

        Returns:
            Dictionary mapping each query to its search results
        """
        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def search_with_rate_limit(query: str) -> Tuple[str, List[Dict]]:
            async with semaphore:
                try:
                    results = await self._async_text_search(query, max_results_per_query, fields)
                except Exception as e:
                    logger.warning(f"Giving up on place search for '{query}': {e}")
                    results = []
                # Add delay between requests to avoid rate limiting
                await asyncio.sleep(self.request_delay)
                return query, results

        tasks = [search_with_rate_limit(query) for query in dict.fromkeys(queries)]

        results = {}
        for task in asyncio.as_completed(tasks):
            query, query_results = await task
            results[query] = query_results

        return results
