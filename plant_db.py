import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from fuzzywuzzy import process

from api_config import PLANTS_TABLE, FAVORITES_TABLE

logger = logging.getLogger(__name__)

FUZZY_SCORE_THRESHOLD = 70


def normalize_plant(row: Dict[str, Any]) -> Dict[str, Any]:
    """Fills the optional plant fields so the page can render any row."""
    plant = dict(row)
    for key in ("name", "scientific_name", "category", "description", "image_url"):
        if plant.get(key) is None:
            plant[key] = ""
    for key in ("medical_uses", "active_compounds"):
        value = plant.get(key)
        if not isinstance(value, list):
            plant[key] = [value] if isinstance(value, str) and value else []
    plant.setdefault("ai_insights", None)
    return plant


def load_plants(client) -> List[Dict[str, Any]]:
    response = client.table(PLANTS_TABLE).select("*").order("name").execute()
    rows = response.data or []
    logger.debug("Loaded %d plants", len(rows))
    return [normalize_plant(r) for r in rows]


def load_favorite_ids(client, user_id: Optional[str]) -> Set[str]:
    if not user_id:
        return set()
    response = (
        client.table(FAVORITES_TABLE)
        .select("plant_id")
        .eq("user_id", user_id)
        .execute()
    )
    return {row["plant_id"] for row in (response.data or []) if row.get("plant_id")}


def add_favorite(client, user_id: str, plant_id: str) -> None:
    client.table(FAVORITES_TABLE).insert({"user_id": user_id, "plant_id": plant_id}).execute()
    logger.info("Favorite added: user=%s plant=%s", user_id, plant_id)


def remove_favorite(client, user_id: str, plant_id: str) -> None:
    (
        client.table(FAVORITES_TABLE)
        .delete()
        .eq("user_id", user_id)
        .eq("plant_id", plant_id)
        .execute()
    )
    logger.info("Favorite removed: user=%s plant=%s", user_id, plant_id)


def toggle_favorite(client, user_id: str, plant_id: str, is_favorited: bool) -> bool:
    """Deletes or inserts the (user, plant) row. Returns the new favorited flag."""
    if is_favorited:
        remove_favorite(client, user_id, plant_id)
        return False
    add_favorite(client, user_id, plant_id)
    return True


def plant_categories(plants: Iterable[Dict[str, Any]]) -> List[str]:
    return sorted({p.get("category") for p in plants if p.get("category")})


def _searchable_text(plant: Dict[str, Any]) -> List[str]:
    texts = [plant.get("name", ""), plant.get("scientific_name", "")]
    texts.extend(plant.get("medical_uses") or [])
    return [t.lower().strip() for t in texts if isinstance(t, str) and t.strip()]


def search_plants(plants: List[Dict[str, Any]], query: Optional[str] = None,
                  category: Optional[str] = None, favorites_only: bool = False,
                  favorite_ids: Optional[Set[str]] = None) -> List[Dict[str, Any]]:
    """
    Filters the loaded plant list for the grid.

    Category and favorites filters are exact. The query first matches as a
    substring of name, scientific name or a medical use; when nothing matches
    that way, fuzzy matching over the same texts is used instead, keeping
    the original (name) order.
    """
    results = list(plants)
    if category:
        results = [p for p in results if p.get("category") == category]
    if favorites_only:
        favorite_ids = favorite_ids or set()
        results = [p for p in results if p.get("id") in favorite_ids]

    search = (query or "").lower().strip()
    if not search:
        return results

    direct = [p for p in results if any(search in text for text in _searchable_text(p))]
    if direct:
        return direct

    # --- Fuzzy fallback (typos in plant names) ---
    text_to_ids = {}
    for p in results:
        for text in _searchable_text(p):
            text_to_ids.setdefault(text, set()).add(p.get("id"))
    if not text_to_ids:
        return []

    matched_ids = set()
    for text, score in process.extract(search, list(text_to_ids.keys()), limit=10):
        if score >= FUZZY_SCORE_THRESHOLD:
            matched_ids.update(text_to_ids[text])
    logger.debug("Fuzzy search '%s' matched %d plants", search, len(matched_ids))
    return [p for p in results if p.get("id") in matched_ids]
